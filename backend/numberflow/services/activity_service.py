# Overview: Append-only activity log: descriptions, recording and admin deletion.

from __future__ import annotations

from typing import Sequence

from ..permissions import require_admin
from ..records import ACTIVITIES, BulkResult, Identity
from ..time_utils import utcnow
from .numbering import next_sr_no, sanitize


# Batches larger than this are described by count only
ACTIVITY_MOBILE_LIMIT = 25


def describe(base: str, mobiles: Sequence[str], *, list_all: bool = False) -> str:
    """
    "Sold 2 numbers: 9876543210, 1234567890."

    Small batches list every mobile; larger ones only the count unless
    list_all is set.
    """
    count = len(mobiles)
    if count == 0:
        return f"{base} 0 numbers."
    if list_all or count <= ACTIVITY_MOBILE_LIMIT:
        return f"{base} {count} numbers: {', '.join(mobiles)}."
    return f"{base} {count} numbers."


def record_activity(store, state, identity: Identity, action: str, description: str) -> str:
    """Append one Activity entry; returns its id."""
    entry = {
        "sr_no": next_sr_no(state.snapshot(ACTIVITIES)),
        "employee_name": identity.actor_name,
        "action": action,
        "description": description,
        "timestamp": utcnow(),
        "created_by": identity.uid,
    }
    return store.add(ACTIVITIES, sanitize(entry), identity)


def delete_activities(engine, ids: Sequence[str]) -> BulkResult:
    require_admin(engine.identity, "delete activities")
    found = [a for a in (engine.state.find(ACTIVITIES, i) for i in ids) if a]
    result = BulkResult(skipped=len(ids) - len(found))
    if not found:
        return result
    batch = engine.store.batch(engine.identity)
    for activity in found:
        batch.delete(ACTIVITIES, activity["id"])
        result.ids.append(activity["id"])
    engine.commit(batch)
    result.processed = len(found)
    return result
