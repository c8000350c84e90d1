# Overview: In-place edits of live records (status, upload, assignment, custody, sale and port-out flags).

from __future__ import annotations

from typing import Any, Iterable, Mapping

from ..records import (
    COMPLETION_STATUSES,
    LOCATION_TYPES,
    NUMBER_STATUSES,
    NUMBERS,
    PORT_OUTS,
    SALES,
    STATUS_RTS,
    UPC_STATUSES,
    BulkResult,
)
from ..time_utils import utcnow
from ..validation import ValidationError, coerce_date, require_choice
from . import activity_service
from .numbering import sanitize


def _apply(engine, collection: str, ids: Iterable[Any], changes: Mapping[str, Any]) -> BulkResult:
    """One batch updating every selected record that is still live."""
    records, missing = engine.resolve(collection, ids)
    result = BulkResult(skipped=missing)
    if not records:
        return result
    clean = sanitize(dict(changes))
    batch = engine.batch()
    for record in records:
        batch.update(collection, record["id"], clean)
        result.ids.append(record["id"])
        result.mobiles.append(record.get("mobile"))
    engine.commit(batch, info=clean)
    result.processed = len(records)
    return result


def _location(location: Mapping[str, Any]) -> dict[str, Any]:
    location_type = require_choice(location.get("location_type"), "location_type", LOCATION_TYPES)
    current = (location.get("current_location") or "").strip()
    if not current:
        raise ValidationError("current_location is required")
    return {"location_type": location_type, "current_location": current}


# ================================================================================
# INVENTORY
# ================================================================================

def update_number_status(engine, number_id: str, status: str, rts_date: Any = None, note: str | None = None) -> None:
    """
    RTS clears rts_date; Non-RTS needs a date. A note is appended to notes.
    """
    number = engine.require(NUMBERS, number_id)
    require_choice(status, "status", NUMBER_STATUSES)
    changes: dict[str, Any] = {"status": status}
    if status == STATUS_RTS:
        changes["rts_date"] = None
    else:
        changes["rts_date"] = coerce_date(rts_date, "rts_date")
    if note and note.strip():
        existing = number.get("notes")
        changes["notes"] = f"{existing}\n{note.strip()}" if existing else note.strip()

    _apply(engine, NUMBERS, [number_id], changes)
    engine.log("Updated RTS Status", f"Marked {number['mobile']} as {status}.")


def update_upload_status(engine, number_id: str, status: str) -> None:
    number = engine.require(NUMBERS, number_id)
    require_choice(status, "upload_status", COMPLETION_STATUSES)
    _apply(engine, NUMBERS, [number_id], {"upload_status": status})
    engine.log("Updated Upload Status", f"Upload status of {number['mobile']} set to {status}.")


def bulk_update_upload_status(engine, number_ids: Iterable[Any], status: str) -> BulkResult:
    require_choice(status, "upload_status", COMPLETION_STATUSES)
    result = _apply(engine, NUMBERS, number_ids, {"upload_status": status})
    if result.processed:
        engine.log(
            "Bulk Updated Upload Status",
            activity_service.describe(f"Set upload status {status} for", result.mobiles),
        )
    return result


def assign_numbers(engine, number_ids: Iterable[Any], employee_name: str, location: Mapping[str, Any]) -> BulkResult:
    name = (employee_name or "").strip()
    if not name:
        raise ValidationError("employee_name is required")
    changes = {"assigned_to": name, "name": name, **_location(location)}
    result = _apply(engine, NUMBERS, number_ids, changes)
    if result.processed:
        engine.log("Assigned Numbers", activity_service.describe(f"Assigned to {name}", result.mobiles))
    return result


def update_number_location(engine, number_ids: Iterable[Any], location: Mapping[str, Any]) -> BulkResult:
    changes = _location(location)
    result = _apply(engine, NUMBERS, number_ids, changes)
    if result.processed:
        engine.log(
            "Updated Location",
            activity_service.describe(f"Moved to {changes['current_location']}", result.mobiles),
        )
    return result


def check_in_number(engine, number_id: str) -> None:
    number = engine.require(NUMBERS, number_id)
    _apply(engine, NUMBERS, [number_id], {"check_in_date": utcnow()})
    engine.log("Checked In Number", f"Checked in number {number['mobile']}.")


def update_safe_custody_date(engine, number_id: str, new_date: Any) -> None:
    """A new date re-arms the one-shot safe-custody notification."""
    number = engine.require(NUMBERS, number_id)
    changes = {
        "safe_custody_date": coerce_date(new_date, "safe_custody_date"),
        "safe_custody_notification_sent": False,
    }
    _apply(engine, NUMBERS, [number_id], changes)
    engine.log("Updated Safe Custody Date", f"Safe custody date of {number['mobile']} updated.")


def bulk_update_safe_custody_date(engine, number_ids: Iterable[Any], new_date: Any) -> BulkResult:
    changes = {
        "safe_custody_date": coerce_date(new_date, "safe_custody_date"),
        "safe_custody_notification_sent": False,
    }
    result = _apply(engine, NUMBERS, number_ids, changes)
    if result.processed:
        engine.log(
            "Bulk Updated Safe Custody Date",
            activity_service.describe("Updated safe custody date for", result.mobiles),
        )
    return result


# ================================================================================
# SALES AND PORT-OUTS
# ================================================================================

def update_sale_statuses(engine, sale_id: str, payment_status: str | None = None, upc_status: str | None = None) -> None:
    sale = engine.require(SALES, sale_id)
    changes: dict[str, Any] = {}
    if payment_status is not None:
        changes["payment_status"] = require_choice(payment_status, "payment_status", COMPLETION_STATUSES)
    if upc_status is not None:
        changes["upc_status"] = require_choice(upc_status, "upc_status", UPC_STATUSES)
    if not changes:
        raise ValidationError("No status changes supplied")
    _apply(engine, SALES, [sale_id], changes)
    summary = ", ".join(f"{k}={v}" for k, v in sorted(changes.items()))
    engine.log("Updated Sale Status", f"Updated sale {sale['mobile']}: {summary}.")


def bulk_update_upc_status(engine, sale_ids: Iterable[Any], status: str) -> BulkResult:
    require_choice(status, "upc_status", UPC_STATUSES)
    result = _apply(engine, SALES, sale_ids, {"upc_status": status})
    if result.processed:
        engine.log("Bulk Updated UPC Status", activity_service.describe(f"Set UPC {status} for", result.mobiles))
    return result


def update_port_out_status(engine, port_out_id: str, payment_status: str) -> None:
    port_out = engine.require(PORT_OUTS, port_out_id)
    require_choice(payment_status, "payment_status", COMPLETION_STATUSES)
    _apply(engine, PORT_OUTS, [port_out_id], {"payment_status": payment_status})
    engine.log("Updated Port Out Payment", f"Payment for {port_out['mobile']} set to {payment_status}.")


def bulk_update_port_out_payment_status(engine, port_out_ids: Iterable[Any], status: str) -> BulkResult:
    require_choice(status, "payment_status", COMPLETION_STATUSES)
    result = _apply(engine, PORT_OUTS, port_out_ids, {"payment_status": status})
    if result.processed:
        engine.log(
            "Bulk Updated Port Out Payment",
            activity_service.describe(f"Set payment {status} for", result.mobiles),
        )
    return result
