from __future__ import annotations

import math
from typing import Any, Mapping

from numberflow.records import (
    COMPLETION_STATUSES,
    GENERATED,
    LOCATION_TYPES,
    NUMBER_STATUSES,
    NUMBER_TYPE_COCP,
    NUMBER_TYPE_PREPAID,
    NUMBER_TYPES,
    OWNERSHIP_INDIVIDUAL,
    OWNERSHIP_PARTNERSHIP,
    OWNERSHIP_TYPES,
    PENDING,
    STATUS_NON_RTS,
    STATUS_RTS,
    UNASSIGNED,
    UPC_STATUSES,
)
from numberflow.services.numbering import UNSET, is_valid_mobile
from numberflow.time_utils import as_datetime


# Upper bound for any single price or payment amount
MAX_AMOUNT = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate mobile number)."""


def _present(value: Any) -> bool:
    if value is None or value is UNSET:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _text(data: Mapping[str, Any], key: str, default: Any = UNSET) -> Any:
    value = data.get(key, UNSET)
    if not _present(value):
        return default
    return str(value).strip()


def coerce_amount(value: Any, field: str, *, required: bool = True) -> float | int | None:
    """
    Coerce a price/amount to a finite, non-negative number.

    Accepts ints, floats and numeric strings; rejects bools, NaN and infinity.
    """
    if not _present(value):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be a number")
        if number.is_integer():
            number = int(number)
    else:
        raise ValidationError(f"{field} must be a number")
    if isinstance(number, float) and not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number")
    if number < 0:
        raise ValidationError(f"{field} must be >= 0")
    if number > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum allowed ({MAX_AMOUNT})")
    return number


def coerce_date(value: Any, field: str, *, required: bool = True):
    if not _present(value):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    try:
        return as_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a valid date")


def require_choice(value: Any, field: str, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return value


def validate_mobile(mobile: Any) -> str:
    text = mobile.strip() if isinstance(mobile, str) else mobile
    if not is_valid_mobile(text):
        raise ValidationError("Mobile number must be exactly 10 digits")
    return text


def validate_number_payload(
    data: Mapping[str, Any], *, require_mobile: bool = True, assignee: str = UNASSIGNED
) -> dict[str, Any]:
    """
    Normalize the attributes of a new inventory number.

    Conditional rules:
    - status Non-RTS requires rts_date; RTS clears it
    - number_type COCP requires safe_custody_date and account_name
    - ownership_type Partnership requires partner_name

    Optional fields that were not supplied come back as UNSET so the caller's
    sanitize step turns them into explicit nulls.
    assigned_to falls back to `assignee` when not supplied.
    """
    out: dict[str, Any] = {}

    if require_mobile:
        out["mobile"] = validate_mobile(data.get("mobile"))

    status = require_choice(_text(data, "status", STATUS_RTS), "status", NUMBER_STATUSES)
    out["status"] = status
    if status == STATUS_NON_RTS:
        out["rts_date"] = coerce_date(data.get("rts_date"), "rts_date")
    else:
        out["rts_date"] = None

    number_type = require_choice(_text(data, "number_type", NUMBER_TYPE_PREPAID), "number_type", NUMBER_TYPES)
    out["number_type"] = number_type
    if number_type == NUMBER_TYPE_COCP:
        out["safe_custody_date"] = coerce_date(data.get("safe_custody_date"), "safe_custody_date")
        account_name = _text(data, "account_name", None)
        if not account_name:
            raise ValidationError("account_name is required for COCP numbers")
        out["account_name"] = account_name
    else:
        out["safe_custody_date"] = UNSET
        out["account_name"] = UNSET

    ownership = require_choice(
        _text(data, "ownership_type", OWNERSHIP_INDIVIDUAL), "ownership_type", OWNERSHIP_TYPES
    )
    out["ownership_type"] = ownership
    if ownership == OWNERSHIP_PARTNERSHIP:
        partner = _text(data, "partner_name", None)
        if not partner:
            raise ValidationError("partner_name is required for Partnership ownership")
        out["partner_name"] = partner
    else:
        out["partner_name"] = UNSET

    out["upload_status"] = require_choice(_text(data, "upload_status", PENDING), "upload_status", COMPLETION_STATUSES)
    out["upc_status"] = require_choice(_text(data, "upc_status", PENDING), "upc_status", UPC_STATUSES)

    out["purchase_from"] = _text(data, "purchase_from", "N/A")
    out["purchase_price"] = coerce_amount(data.get("purchase_price"), "purchase_price")
    sale_price = coerce_amount(data.get("sale_price"), "sale_price", required=False)
    out["sale_price"] = sale_price if sale_price is not None else UNSET
    out["purchase_date"] = coerce_date(data.get("purchase_date"), "purchase_date")

    out["current_location"] = _text(data, "current_location", "N/A")
    out["location_type"] = require_choice(_text(data, "location_type", "Store"), "location_type", LOCATION_TYPES)
    out["assigned_to"] = _text(data, "assigned_to", assignee)
    out["name"] = _text(data, "name", out["assigned_to"])
    out["notes"] = _text(data, "notes", UNSET)
    return out


def validate_sale_details(details: Mapping[str, Any]) -> dict[str, Any]:
    sold_to = _text(details, "sold_to", None)
    if not sold_to:
        raise ValidationError("sold_to is required")
    return {
        "sold_to": sold_to,
        "sale_price": coerce_amount(details.get("sale_price"), "sale_price"),
        "sale_date": coerce_date(details.get("sale_date"), "sale_date"),
    }


def validate_dealer_payload(data: Mapping[str, Any]) -> dict[str, Any]:
    dealer_name = _text(data, "dealer_name", None)
    if not dealer_name:
        raise ValidationError("dealer_name is required")
    return {
        "mobile": validate_mobile(data.get("mobile")),
        "dealer_name": dealer_name,
        "price": coerce_amount(data.get("price"), "price"),
        "payment_status": require_choice(_text(data, "payment_status", PENDING), "payment_status", COMPLETION_STATUSES),
        "port_out_status": require_choice(_text(data, "port_out_status", PENDING), "port_out_status", COMPLETION_STATUSES),
        "upc_status": require_choice(_text(data, "upc_status", PENDING), "upc_status", UPC_STATUSES),
    }


def validate_dealer_statuses(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Partial status update for a dealer purchase; unknown keys are rejected."""
    allowed = {
        "payment_status": COMPLETION_STATUSES,
        "port_out_status": COMPLETION_STATUSES,
        "upc_status": UPC_STATUSES,
    }
    unknown = set(changes) - set(allowed)
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")
    if not changes:
        raise ValidationError("No status changes supplied")
    return {key: require_choice(value, key, allowed[key]) for key, value in changes.items()}


def is_dealer_purchase_complete(record: Mapping[str, Any]) -> bool:
    return (
        record.get("payment_status") == "Done"
        and record.get("port_out_status") == "Done"
        and record.get("upc_status") == GENERATED
    )
