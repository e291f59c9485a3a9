# backend/plantdb/__init__.py
"""
Import ORM models from each app so that Alembic and
Base.metadata.create_all() see all tables.

The actual model classes are kept in plantdb/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models              # users + roles
from .apps.master_data import models as master_data_models        # lines + machines
from .apps.maintenance_plans import models as maintenance_plans_models  # schedules, history, yearly grid
from .apps.notifications import models as notifications_models    # email send log

__all__ = [
    "accounts_models",
    "master_data_models",
    "maintenance_plans_models",
    "notifications_models",
]
