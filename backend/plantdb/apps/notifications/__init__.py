# backend/plantdb/apps/notifications/__init__.py
"""
Notifications app

Email rendering, delivery providers and the per-recipient send log.
"""
