# Overview: Role checks and the write rules the document store enforces on every batch.

"""
Write rules for the document store.

The store evaluates these rules for every operation in a batch before it
touches the database. A single denied operation rejects the whole batch, so
a caller can never half-apply a cross-collection move.

RULES:
- Every write needs an identity (sweeps write as the system identity).
- Only admins may delete from numbers, activities, reminders and users.
- Activities are append-only: no updates.
- Writes outside the known collections are denied.
"""

from __future__ import annotations

from .records import (
    ACTIVITIES,
    ALL_COLLECTIONS,
    NUMBERS,
    REMINDERS,
    USERS,
    Identity,
)


OP_CREATE = "create"
OP_UPDATE = "update"
OP_DELETE = "delete"

ADMIN_ONLY_DELETES = {NUMBERS, ACTIVITIES, REMINDERS, USERS}
APPEND_ONLY = {ACTIVITIES}


class PermissionDeniedError(Exception):
    """Raised when the caller's role does not allow an operation."""
    pass


def require_admin(identity: Identity | None, action: str) -> None:
    """Role gate used by services before building a batch."""
    if identity is None or not identity.is_admin:
        raise PermissionDeniedError(f"You do not have permission to {action}.")


def write_denial_reason(identity: Identity | None, collection: str, operation: str) -> str | None:
    """
    Return why a single write is denied, or None when it is allowed.
    """
    if identity is None:
        return "unauthenticated"
    if collection not in ALL_COLLECTIONS:
        return f"unknown collection '{collection}'"
    if operation == OP_DELETE and collection in ADMIN_ONLY_DELETES and not identity.is_admin:
        return f"only admins may delete from {collection}"
    if operation == OP_UPDATE and collection in APPEND_ONLY:
        return f"{collection} is append-only"
    return None
