from __future__ import annotations

from ..permissions import require_admin
from ..records import ROLE_EMPLOYEE, ROLES, SYSTEM_IDENTITY, USERS, Identity
from ..validation import ConflictError, ValidationError


def identity_from_document(doc: dict) -> Identity:
    return Identity(
        uid=doc.get("uid") or doc["id"],
        display_name=doc.get("display_name") or "",
        role=doc.get("role") or ROLE_EMPLOYEE,
        email=doc.get("email"),
    )


def get_identity(store, uid: str | None) -> Identity | None:
    if not uid:
        return None
    doc = store.get(USERS, uid)
    return identity_from_document(doc) if doc else None


def create_user(store, uid: str, display_name: str, email: str | None = None,
                role: str = ROLE_EMPLOYEE, *, actor: Identity = SYSTEM_IDENTITY) -> Identity:
    """User documents are keyed by uid."""
    uid = (uid or "").strip()
    display_name = (display_name or "").strip()
    if not uid:
        raise ValidationError("uid is required")
    if not display_name:
        raise ValidationError("display_name is required")
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    if store.get(USERS, uid) is not None:
        raise ConflictError(f"User '{uid}' already exists")

    doc = {"uid": uid, "display_name": display_name, "email": email, "role": role}
    store.add(USERS, doc, actor, doc_id=uid)
    return identity_from_document(doc)


def delete_user(engine, uid: str) -> None:
    require_admin(engine.identity, "delete users")
    if uid == engine.identity.uid:
        raise ValidationError("You cannot delete your own account.")
    user = engine.require(USERS, uid)
    batch = engine.batch()
    batch.delete(USERS, uid)
    engine.commit(batch)
    engine.log("Deleted User", f"Deleted user {user.get('display_name') or uid}.")
