# backend/plantdb/apps/master_data/__init__.py
"""
Master data app

Lines and machines. Owned by master-data management; this service only
reads them to validate schedules and fill notification fields.
"""
