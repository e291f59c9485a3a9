# backend/plantdb/apps/notifications/templates.py
"""
Plain-text email templates with `{{field}}` placeholders.

Rendering is a single pass: a value that itself contains `{{...}}` is
inserted literally and never expanded again.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Dict, Mapping, Optional

REMINDER_TEMPLATE_KEY = "maintenance_reminder"
COMPLETION_TEMPLATE_KEY = "maintenance_completion"

DEFAULT_REMINDER_TEMPLATE = (
    "Hello,\n"
    "\n"
    "This is a reminder that the machine {{machineName}}{{machineCodeFormatted}} "
    "on line {{lineName}} has a scheduled maintenance on {{scheduledDate}}.\n"
    "\n"
    "Maintenance frequency: {{maintenanceFrequency}}\n"
    "Notes: {{notes}}\n"
    "\n"
    "Please ensure the necessary preparations are made."
)

DEFAULT_COMPLETION_TEMPLATE = (
    "Hello,\n"
    "\n"
    "The maintenance for machine {{machineName}}{{machineCodeFormatted}} "
    "on line {{lineName}} has been marked as completed on {{completedDate}}.\n"
    "\n"
    "Planned maintenance date: {{scheduledDate}}\n"
    "Maintenance frequency: {{maintenanceFrequency}}\n"
    "Notes: {{notes}}\n"
    "\n"
    "Regards,\n"
    "Maintenance Tracker"
)

_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")


def render_template(
    template_text: Optional[str],
    default_template: str,
    fields: Mapping[str, Optional[str]],
) -> str:
    """Fill placeholders and turn the plain text into minimal HTML."""
    source = template_text if template_text and template_text.strip() else default_template
    source = source.replace("\r\n", "\n").replace("\r", "\n")

    def _substitute(match: re.Match) -> str:
        value = fields.get(match.group(1))
        return "" if value is None else str(value)

    filled = _PLACEHOLDER_RE.sub(_substitute, source)
    return "<br/>".join(line.strip() for line in filled.split("\n"))


def html_to_text(html: str) -> str:
    return html.replace("<br/>", "\n")


def _iso(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def build_schedule_fields(
    *,
    machine_name: Optional[str],
    machine_code: Optional[str],
    line_name: Optional[str],
    scheduled_date,
    maintenance_frequency: Optional[str],
    notes: Optional[str],
    completed_date=None,
) -> Dict[str, str]:
    code = (machine_code or "").strip()
    return {
        "machineName": (machine_name or "").strip() or "Unknown Machine",
        "machineCode": code,
        "machineCodeFormatted": f" (Code: {code})" if code else "",
        "lineName": (line_name or "").strip() or "N/A",
        "scheduledDate": _iso(scheduled_date),
        "maintenanceFrequency": (maintenance_frequency or "").strip() or "Not specified",
        "notes": (notes or "").strip() or "None",
        "completedDate": _iso(completed_date),
    }


def reminder_subject(fields: Mapping[str, str]) -> str:
    return f"Maintenance Reminder: {fields['machineName']} ({fields['machineCode'] or 'No Code'})"


def completion_subject(fields: Mapping[str, str]) -> str:
    return f"Maintenance Completed: {fields['machineName']} ({fields['machineCode'] or 'No Code'})"
