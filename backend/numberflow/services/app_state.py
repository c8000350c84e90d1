# Overview: Live in-memory mirror of every collection, kept current by document store subscriptions.

"""
Inventory state owned by one session.

The lifecycle engine never queries the database when it plans a transition:
it reads these mirrors. A session subscribes on start(), receives a fresh
snapshot after every commit that touches a collection, and unsubscribes on
stop(). There is no read-your-writes guarantee beyond what the push gives.
"""

from __future__ import annotations

import threading
from typing import Any, Iterable, Mapping

from ..records import (
    ACTIVITIES,
    ALL_COLLECTIONS,
    NUMBER_BEARING_COLLECTIONS,
    NUMBERS,
    PRE_BOOKINGS,
    REMINDERS,
    SALES,
    USERS,
    Identity,
)


class InventoryState:
    def __init__(self, store, collections: Iterable[str] = ALL_COLLECTIONS):
        self._store = store
        self._collections = tuple(collections)
        self._mirrors: dict[str, list[dict]] = {name: [] for name in self._collections}
        self._unsubscribers: list = []
        self._lock = threading.Lock()

    # ----------------------------------------------------------------------
    # Session lifecycle
    # ----------------------------------------------------------------------

    @property
    def started(self) -> bool:
        return bool(self._unsubscribers)

    def start(self) -> "InventoryState":
        if self.started:
            return self
        for name in self._collections:
            self._unsubscribers.append(self._store.subscribe(name, self._on_snapshot))
        return self

    def stop(self) -> None:
        while self._unsubscribers:
            self._unsubscribers.pop()()

    def __enter__(self) -> "InventoryState":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _on_snapshot(self, collection: str, records: list[dict]) -> None:
        with self._lock:
            self._mirrors[collection] = records

    # ----------------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------------

    def snapshot(self, collection: str) -> list[dict]:
        with self._lock:
            return [dict(r) for r in self._mirrors.get(collection, [])]

    def find(self, collection: str, doc_id: str | None) -> dict | None:
        if not doc_id:
            return None
        with self._lock:
            for record in self._mirrors.get(collection, []):
                if record.get("id") == doc_id:
                    return dict(record)
        return None

    def mobile_index(self) -> list[tuple[str, str, str]]:
        """(collection, id, mobile) for every number-bearing document."""
        with self._lock:
            return [
                (name, r.get("id"), r.get("mobile"))
                for name in NUMBER_BEARING_COLLECTIONS
                for r in self._mirrors.get(name, [])
            ]

    def is_mobile_duplicate(self, mobile: str | None, exclude_id: str | None = None) -> bool:
        if not mobile:
            return False
        return any(
            m == mobile and doc_id != exclude_id
            for _, doc_id, m in self.mobile_index()
        )

    def existing_mobiles(self) -> set[str]:
        return {m for _, _, m in self.mobile_index() if m}

    # ----------------------------------------------------------------------
    # Role-filtered views
    # ----------------------------------------------------------------------

    def visible_numbers(self, identity: Identity) -> list[dict]:
        numbers = self.snapshot(NUMBERS)
        if identity.is_admin:
            return numbers
        return [n for n in numbers if n.get("assigned_to") == identity.display_name]

    def visible_reminders(self, identity: Identity) -> list[dict]:
        reminders = self.snapshot(REMINDERS)
        if identity.is_admin:
            return reminders
        return [r for r in reminders if _assigned_to(r, identity.display_name)]

    def visible_prebookings(self, identity: Identity) -> list[dict]:
        prebookings = self.snapshot(PRE_BOOKINGS)
        if identity.is_admin:
            return prebookings
        return [
            p for p in prebookings
            if (p.get("original_number_data") or {}).get("assigned_to") == identity.display_name
        ]

    def visible_activities(self, identity: Identity) -> list[dict]:
        activities = self.snapshot(ACTIVITIES)
        if identity.is_admin:
            return activities
        return [a for a in activities if a.get("created_by") == identity.uid]

    def employees(self) -> list[str]:
        names = {u.get("display_name") for u in self.snapshot(USERS)}
        return sorted(n for n in names if n)

    def vendors(self, defaults: Iterable[str] = ()) -> list[str]:
        """Default vendor list merged with every buyer seen in sales, in first-seen order."""
        merged = list(dict.fromkeys(defaults))
        for sale in self.snapshot(SALES):
            sold_to = sale.get("sold_to")
            if sold_to and sold_to not in merged:
                merged.append(sold_to)
        return merged


def _assigned_to(record: Mapping[str, Any], name: str) -> bool:
    assigned = record.get("assigned_to")
    if isinstance(assigned, (list, tuple)):
        return name in assigned
    return assigned == name
