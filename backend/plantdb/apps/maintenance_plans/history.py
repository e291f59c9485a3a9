# backend/plantdb/apps/maintenance_plans/history.py
"""
Reschedule history ledger.

Entries are only ever appended, from inside the schedule update transaction.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from . import models


def record_change(
    db: Session,
    *,
    schedule_id: str,
    previous_date: Optional[date],
    new_date: date,
    reason: Optional[str],
    actor_id: Optional[str],
) -> models.MaintenanceScheduleHistory:
    """Append one entry. Flushes but never commits; the caller owns the transaction."""
    entry = models.MaintenanceScheduleHistory(
        schedule_id=schedule_id,
        previous_scheduled_date=previous_date,
        new_scheduled_date=new_date,
        reason=reason,
        changed_by_id=actor_id,
    )
    db.add(entry)
    db.flush()
    return entry


def list_for(
    db: Session,
    schedule_ids: Iterable[str],
) -> Dict[str, List[models.MaintenanceScheduleHistory]]:
    ids = [sid for sid in dict.fromkeys(schedule_ids) if sid]
    grouped: Dict[str, List[models.MaintenanceScheduleHistory]] = defaultdict(list)
    if not ids:
        return {}

    H = models.MaintenanceScheduleHistory
    rows = (
        db.query(H)
        .filter(H.schedule_id.in_(ids))
        .order_by(H.previous_scheduled_date.asc(), H.created_at.asc())
        .all()
    )
    for row in rows:
        grouped[row.schedule_id].append(row)
    return {sid: grouped.get(sid, []) for sid in ids}
