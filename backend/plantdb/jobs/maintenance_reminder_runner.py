"""Maintenance reminder runner.

One reminder scan for cron deployments that run with
MAINTENANCE_SCHEDULER_ENABLED=false. Safe to re-run: each schedule's
reminder latch is set once.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from plantdb.database import WriteSessionLocal
from plantdb.apps.maintenance_plans import scheduler


def run(today: Optional[date] = None) -> dict:
    db = WriteSessionLocal()
    try:
        summary = scheduler.send_upcoming_reminders(db, today=today or date.today())
        db.commit()
        return summary
    finally:
        db.close()


if __name__ == "__main__":
    result = run()
    print("Maintenance reminder runner completed:", result)
