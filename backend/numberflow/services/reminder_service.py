from __future__ import annotations

from typing import Any, Mapping

from ..permissions import PermissionDeniedError, require_admin
from ..records import DONE, PENDING, REMINDERS
from ..time_utils import utcnow
from ..validation import ValidationError, coerce_date
from .numbering import next_sr_no, sanitize


def add_reminder(engine, data: Mapping[str, Any]) -> str:
    task_name = (data.get("task_name") or "").strip()
    if not task_name:
        raise ValidationError("task_name is required")
    assigned_to = data.get("assigned_to")
    if isinstance(assigned_to, (list, tuple)):
        assigned_to = [a.strip() for a in assigned_to if a and a.strip()]
    elif isinstance(assigned_to, str):
        assigned_to = assigned_to.strip()
    if not assigned_to:
        raise ValidationError("assigned_to is required")

    reminder = sanitize({
        "sr_no": next_sr_no(engine.state.snapshot(REMINDERS)),
        "task_name": task_name,
        "assigned_to": assigned_to,
        "due_date": coerce_date(data.get("due_date"), "due_date"),
        "status": PENDING,
        "completion_date": None,
        "notes": (data.get("notes") or "").strip() or None,
        "created_by": engine.identity.uid,
    })
    batch = engine.batch()
    reminder_id = batch.set(REMINDERS, reminder)
    engine.commit(batch, info={"task_name": task_name})
    engine.log("Added Reminder", f"Added reminder '{task_name}'.")
    return reminder_id


def mark_reminder_done(engine, reminder_id: str, note: str | None = None) -> None:
    """Employees may only complete reminders assigned to them."""
    reminder = engine.require(REMINDERS, reminder_id)
    identity = engine.identity
    if not identity.is_admin:
        assigned = reminder.get("assigned_to")
        mine = identity.display_name in assigned if isinstance(assigned, list) else assigned == identity.display_name
        if not mine:
            raise PermissionDeniedError("You do not have permission to complete this reminder.")

    changes: dict[str, Any] = {"status": DONE, "completion_date": utcnow()}
    if note and note.strip():
        changes["notes"] = note.strip()
    batch = engine.batch()
    batch.update(REMINDERS, reminder_id, changes)
    engine.commit(batch, info=changes)
    engine.log("Completed Reminder", f"Marked reminder '{reminder.get('task_name')}' as done.")


def delete_reminder(engine, reminder_id: str) -> None:
    require_admin(engine.identity, "delete reminders")
    reminder = engine.require(REMINDERS, reminder_id)
    batch = engine.batch()
    batch.delete(REMINDERS, reminder_id)
    engine.commit(batch)
    engine.log("Deleted Reminder", f"Deleted reminder '{reminder.get('task_name')}'.")
