from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable

from ..records import (
    COMPLETION_STATUSES,
    LOCATION_TYPES,
    NUMBER_STATUSES,
    NUMBER_TYPE_COCP,
    NUMBER_TYPE_PREPAID,
    NUMBER_TYPES,
    OWNERSHIP_PARTNERSHIP,
    OWNERSHIP_TYPES,
    PENDING,
    STATUS_NON_RTS,
    UNASSIGNED,
)
from ..time_utils import parse_import_date
from .numbering import digital_root, is_valid_mobile


REQUIRED_HEADERS = (
    "Mobile",
    "NumberType",
    "PurchaseFrom",
    "PurchasePrice",
    "PurchaseDate",
    "CurrentLocation",
    "LocationType",
    "Status",
    "OwnershipType",
)

OPTIONAL_HEADERS = (
    "SalePrice",
    "Notes",
    "UploadStatus",
    "PartnerName",
    "RTSDate",
    "SafeCustodyDate",
    "AccountName",
)


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text if text else None


def _to_number(value: Any) -> float | int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def _to_date(value: Any) -> datetime | None:
    if isinstance(value, (date, datetime)):
        return parse_import_date(value)
    return parse_import_date(_to_text(value))


@dataclass
class RowOutcome:
    record: dict[str, Any] | None = None
    reason: str | None = None

    @property
    def accepted(self) -> bool:
        return self.reason is None


class NumberRowSchema:
    """
    One structured import row -> one inventory record.

    Checks run in a fixed order and stop at the first failure:
    1. Mobile present and exactly 10 digits
    2. Mobile not used anywhere, nor accepted earlier in the same import
    3. Status present and RTS / Non-RTS
    4. OwnershipType valid; PartnerName for Partnership
    5. COCP: SafeCustodyDate parses and AccountName present
    6. Non-RTS: RTSDate parses
    7. PurchaseDate parses
    8. PurchasePrice is a finite number
    """

    def normalize_row(self, raw_row: dict[str, Any]) -> dict[str, Any]:
        number_type = _to_text(raw_row.get("NumberType"))
        location_type = _to_text(raw_row.get("LocationType"))
        upload_status = _to_text(raw_row.get("UploadStatus"))
        return {
            "mobile": _to_text(raw_row.get("Mobile")),
            "status": _to_text(raw_row.get("Status")),
            "ownership_type": _to_text(raw_row.get("OwnershipType")),
            "partner_name": _to_text(raw_row.get("PartnerName")),
            "number_type": number_type if number_type in NUMBER_TYPES else NUMBER_TYPE_PREPAID,
            "safe_custody_date": raw_row.get("SafeCustodyDate"),
            "account_name": _to_text(raw_row.get("AccountName")),
            "rts_date": raw_row.get("RTSDate"),
            "purchase_date": raw_row.get("PurchaseDate"),
            "purchase_price": raw_row.get("PurchasePrice"),
            "sale_price": raw_row.get("SalePrice"),
            "purchase_from": _to_text(raw_row.get("PurchaseFrom")) or "N/A",
            "current_location": _to_text(raw_row.get("CurrentLocation")) or "N/A",
            "location_type": location_type if location_type in LOCATION_TYPES else "Store",
            "upload_status": upload_status if upload_status in COMPLETION_STATUSES else PENDING,
            "notes": _to_text(raw_row.get("Notes")),
        }

    def validate_row(
        self, row: dict[str, Any], is_duplicate: Callable[[str], bool], assignee: str = UNASSIGNED
    ) -> RowOutcome:
        mobile = row["mobile"]
        if not is_valid_mobile(mobile):
            return RowOutcome(reason="Invalid or missing mobile number (must be exactly 10 digits).")
        if is_duplicate(mobile):
            return RowOutcome(reason="Duplicate mobile number (already exists in the system or earlier in this file).")

        status = row["status"]
        if status not in NUMBER_STATUSES:
            return RowOutcome(reason="Invalid or missing Status (must be RTS or Non-RTS).")

        if row["ownership_type"] not in OWNERSHIP_TYPES:
            return RowOutcome(reason="Invalid or missing OwnershipType (must be Individual or Partnership).")
        if row["ownership_type"] == OWNERSHIP_PARTNERSHIP and not row["partner_name"]:
            return RowOutcome(reason="PartnerName is required when OwnershipType is Partnership.")

        safe_custody_date = None
        if row["number_type"] == NUMBER_TYPE_COCP:
            safe_custody_date = _to_date(row["safe_custody_date"])
            if safe_custody_date is None:
                return RowOutcome(reason="Invalid or missing SafeCustodyDate for COCP number.")
            if not row["account_name"]:
                return RowOutcome(reason="AccountName is required for COCP number.")

        rts_date = None
        if status == STATUS_NON_RTS:
            rts_date = _to_date(row["rts_date"])
            if rts_date is None:
                return RowOutcome(reason="Invalid or missing RTSDate for Non-RTS status.")

        purchase_date = _to_date(row["purchase_date"])
        if purchase_date is None:
            return RowOutcome(reason="Invalid or missing PurchaseDate.")

        purchase_price = _to_number(row["purchase_price"])
        if purchase_price is None:
            return RowOutcome(reason="Invalid or missing PurchasePrice.")

        record = self._record(row, rts_date, safe_custody_date, purchase_date, purchase_price)
        record["assigned_to"] = record["name"] = assignee
        return RowOutcome(record=record)

    def _record(self, row, rts_date, safe_custody_date, purchase_date, purchase_price) -> dict[str, Any]:
        is_cocp = row["number_type"] == NUMBER_TYPE_COCP
        sale_price = _to_number(row["sale_price"])
        return {
            "mobile": row["mobile"],
            "sum": digital_root(row["mobile"]),
            "status": row["status"],
            "rts_date": rts_date,
            "number_type": row["number_type"],
            "safe_custody_date": safe_custody_date,
            "safe_custody_notification_sent": False,
            "account_name": row["account_name"] if is_cocp else None,
            "ownership_type": row["ownership_type"],
            "partner_name": row["partner_name"] if row["ownership_type"] == OWNERSHIP_PARTNERSHIP else None,
            "upload_status": row["upload_status"],
            "upc_status": PENDING,
            "purchase_from": row["purchase_from"],
            "purchase_price": purchase_price,
            "sale_price": sale_price if sale_price is not None else 0,
            "purchase_date": purchase_date,
            "current_location": row["current_location"],
            "location_type": row["location_type"],
            "check_in_date": None,
            "notes": row["notes"],
        }
