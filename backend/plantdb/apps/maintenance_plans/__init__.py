# backend/plantdb/apps/maintenance_plans/__init__.py
"""
Maintenance plans app

Preventive-maintenance schedules per machine, their reschedule history,
checksheet / completion uploads, the yearly PM grid, and the reminder
emails sent a day before each planned date.
"""
