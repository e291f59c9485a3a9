# backend/plantdb/apps/accounts/__init__.py
"""
Accounts app

Responsible for:
- Plant user accounts and their roles

Login, password and session handling are owned by the portal front door;
other apps depend on these models only for "who is allowed to do what".
"""

from . import models  # noqa: F401

__all__ = ["models"]
