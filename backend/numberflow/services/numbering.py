# Overview: Pure helpers shared by the lifecycle engine: digital root, serial numbers, sanitizing.

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Iterable, Mapping


MOBILE_PATTERN = re.compile(r"[0-9]{10}")


class _Unset:
    """Marker for an optional field that was never supplied."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


def is_valid_mobile(mobile: Any) -> bool:
    return isinstance(mobile, str) and bool(MOBILE_PATTERN.fullmatch(mobile))


def digital_root(mobile: str) -> int:
    """
    Repeatedly sum the digits of `mobile` until one digit remains.

    Assumes an all-digit string. "9999999999" -> 9, "9876543210" -> 9.
    """
    total = sum(int(ch) for ch in mobile)
    while total > 9:
        total = sum(int(ch) for ch in str(total))
    return total


def next_sr_no(records: Iterable[Mapping[str, Any]]) -> int:
    """
    Next display serial number for a collection: max(sr_no) + 1, or 1 when empty.

    NOT TRANSACTIONAL: two writers reading the same snapshot allocate the same
    value. sr_no is display-only and never used as a key.
    """
    highest = 0
    seen_any = False
    for record in records:
        seen_any = True
        value = record.get("sr_no") or 0
        if value > highest:
            highest = value
    if not seen_any:
        return 1
    return highest + 1


def sanitize(value: Any) -> Any:
    """
    Replace every UNSET, at any depth, with None.

    Mappings become plain dicts and tuples become lists; datetimes and dates
    pass through untouched. Idempotent: sanitize(sanitize(x)) == sanitize(x).
    """
    if value is UNSET or value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value
    if isinstance(value, Mapping):
        return {k: sanitize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize(v) for v in value]
    return value


def contains_unset(value: Any) -> bool:
    if value is UNSET:
        return True
    if isinstance(value, Mapping):
        return any(contains_unset(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(contains_unset(v) for v in value)
    return False
