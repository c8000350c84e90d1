# Overview: Collection names, status vocabularies and value types shared by the services.

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Mapping

from numberflow.time_utils import to_utc_z


# ================================================================================
# COLLECTIONS
# ================================================================================

NUMBERS = "numbers"
SALES = "sales"
PORT_OUTS = "portouts"
PRE_BOOKINGS = "prebookings"
DEALER_PURCHASES = "dealerPurchases"
REMINDERS = "reminders"
ACTIVITIES = "activities"
PAYMENTS = "payments"
USERS = "users"

# Collections whose documents carry a mobile number. A mobile may appear in
# at most one document across all of them.
NUMBER_BEARING_COLLECTIONS = (NUMBERS, SALES, PORT_OUTS, DEALER_PURCHASES, PRE_BOOKINGS)

ALL_COLLECTIONS = NUMBER_BEARING_COLLECTIONS + (REMINDERS, ACTIVITIES, PAYMENTS, USERS)


# ================================================================================
# VOCABULARIES
# ================================================================================

STATUS_RTS = "RTS"
STATUS_NON_RTS = "Non-RTS"
NUMBER_STATUSES = (STATUS_RTS, STATUS_NON_RTS)

NUMBER_TYPE_PREPAID = "Prepaid"
NUMBER_TYPE_POSTPAID = "Postpaid"
NUMBER_TYPE_COCP = "COCP"
NUMBER_TYPES = (NUMBER_TYPE_PREPAID, NUMBER_TYPE_POSTPAID, NUMBER_TYPE_COCP)

OWNERSHIP_INDIVIDUAL = "Individual"
OWNERSHIP_PARTNERSHIP = "Partnership"
OWNERSHIP_TYPES = (OWNERSHIP_INDIVIDUAL, OWNERSHIP_PARTNERSHIP)

LOCATION_TYPES = ("Store", "Employee", "Dealer")

PENDING = "Pending"
DONE = "Done"
GENERATED = "Generated"
COMPLETION_STATUSES = (PENDING, DONE)   # upload, payment, port-out, reminder
UPC_STATUSES = (PENDING, GENERATED)

UNASSIGNED = "Unassigned"
SYSTEM_EMPLOYEE = "System"

ROLE_ADMIN = "admin"
ROLE_EMPLOYEE = "employee"
ROLES = (ROLE_ADMIN, ROLE_EMPLOYEE)


# ================================================================================
# VALUE TYPES
# ================================================================================

@dataclass(frozen=True)
class Identity:
    """The caller an operation runs on behalf of (resolved by the auth layer)."""
    uid: str
    display_name: str
    role: str = ROLE_EMPLOYEE
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def actor_name(self) -> str:
        return self.display_name or self.email or "User"


SYSTEM_IDENTITY = Identity(uid="system", display_name=SYSTEM_EMPLOYEE, role=ROLE_ADMIN)


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class NumberSnapshot:
    """
    Point-in-time copy of a NumberRecord, embedded in sale, port-out and
    pre-booking documents as `original_number_data`.

    The snapshot is taken once, when the number leaves inventory, and is
    carried forward unchanged through every later transition. It is never
    re-derived from the live inventory.
    """
    data: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "NumberSnapshot":
        from numberflow.services.numbering import sanitize

        body = {k: copy.deepcopy(v) for k, v in record.items() if k != "id"}
        return cls(data=_freeze(sanitize(body)))

    @classmethod
    def from_document(cls, value: Mapping[str, Any] | None) -> "NumberSnapshot | None":
        if not value:
            return None
        return cls.from_record(value)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_document(self) -> dict[str, Any]:
        return _thaw(self.data)

    def restore(self, **overrides: Any) -> dict[str, Any]:
        """Inventory document rebuilt from the snapshot, with overrides applied."""
        restored = self.to_document()
        restored.update(overrides)
        return restored


def serialize(value: Any) -> Any:
    """JSON-ready copy of a document: datetimes become ISO-8601 'Z' strings."""
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return value


@dataclass
class BulkResult:
    """Outcome of a bulk operation: how many records were acted on and how many were left out."""
    processed: int = 0
    skipped: int = 0
    mobiles: list[str] = field(default_factory=list)
    ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "skipped": self.skipped,
            "mobiles": list(self.mobiles),
            "ids": list(self.ids),
        }
