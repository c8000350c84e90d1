# Overview: Lifecycle transition engine; moves numbers between collections in atomic batches.

"""
NumberFlow Lifecycle Service

================================================================================
PURPOSE: Move a phone number between inventory, pre-booking, sale and port-out
without ever letting it exist in two places, or in none.
================================================================================

STATE MACHINE:

    numbers --sell--------------> sales --port out--> portouts --delete (payment Done)
       |  ^                        |  ^
       |  +--cancel sale-----------+  |
       |                              |
       +--pre-book--> prebookings ----+ (sell pre-booked)
          ^                |
          +--cancel--------+

EVERY TRANSITION:
1. Locate the source record(s) in the session's live state (never the database)
2. Build the destination document(s); the source is frozen into a NumberSnapshot
   stored as `original_number_data`
3. Queue every create and every delete in ONE WriteBatch
4. Commit (all-or-nothing)
5. Record an Activity describing what happened

RULES (NON-NEGOTIABLE):
1. A mobile lives in at most one of numbers / sales / portouts /
   dealerPurchases / prebookings
2. No create-in-destination without delete-from-source, and vice versa
3. Snapshots are taken once and carried forward; never re-derived
4. Port-out deletion is blocked entirely if any selected record is unpaid
5. Dealer-purchase deletion drops incomplete records and deletes the rest
6. Bulk port-out skips sales whose UPC is not Generated

FAILURES:
- ValidationError / ConflictError: rejected before any write
- NotFoundError: the referenced record is not in the live state
- LifecycleError: a single-record guard is not met
- DeletionBlockedError: the block-all port-out deletion guard tripped
- StoreWriteError: the store rejected the batch; nothing was applied
================================================================================
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from flask import current_app

from ..permissions import require_admin
from ..records import (
    DEALER_PURCHASES,
    DONE,
    GENERATED,
    NUMBERS,
    PENDING,
    PORT_OUTS,
    PRE_BOOKINGS,
    SALES,
    UNASSIGNED,
    BulkResult,
    Identity,
    NumberSnapshot,
)
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    ValidationError,
    is_dealer_purchase_complete,
    validate_dealer_payload,
    validate_dealer_statuses,
    validate_mobile,
    validate_number_payload,
    validate_sale_details,
)
from . import activity_service
from .app_state import InventoryState
from .document_store import DocumentStore, StoreWriteError, WriteBatch
from .import_service import reconcile_rows
from .numbering import digital_root, next_sr_no, sanitize


DUPLICATE_MOBILE_MESSAGE = "This mobile number already exists in the system."
IMPORT_PERMISSION_DENIED = "Permission denied."


class LifecycleError(ValueError):
    """
    Raised when a single-record transition guard is not met.

    This is a domain error, not a technical error.
    """
    pass


class NotFoundError(LookupError):
    """The referenced record is not present in the live state."""
    pass


class DeletionBlockedError(LifecycleError):
    """Block-all deletion guard: nothing was deleted."""

    def __init__(self, message: str, blocked_count: int, blocked_mobiles: Sequence[str] = ()):
        super().__init__(message)
        self.blocked_count = blocked_count
        self.blocked_mobiles = list(blocked_mobiles)


_LABELS = {
    NUMBERS: "Number",
    SALES: "Sale",
    PORT_OUTS: "Port-out record",
    PRE_BOOKINGS: "Pre-booking",
    DEALER_PURCHASES: "Dealer purchase",
}


class LifecycleEngine:
    """
    Transition operations for one session.

    The store and the live state are injected; the identity is the caller
    every write is attributed to.
    """

    def __init__(self, store: DocumentStore, state: InventoryState, identity: Identity):
        self.store = store
        self.state = state
        self.identity = identity

    # ----------------------------------------------------------------------
    # Plumbing
    # ----------------------------------------------------------------------

    def require(self, collection: str, doc_id: str) -> dict:
        record = self.state.find(collection, doc_id)
        if record is None:
            raise NotFoundError(f"{_LABELS.get(collection, 'Record')} not found")
        return record

    def resolve(self, collection: str, records: Iterable[Any]) -> tuple[list[dict], int]:
        """
        Re-read selected records from the live state.

        Accepts ids or record mappings; returns (found, missing_count).
        """
        found: list[dict] = []
        missing = 0
        seen: set[str] = set()
        for item in records:
            doc_id = item.get("id") if isinstance(item, Mapping) else item
            if doc_id in seen:
                continue
            seen.add(doc_id)
            record = self.state.find(collection, doc_id)
            if record is None:
                missing += 1
            else:
                found.append(record)
        return found, missing

    def batch(self) -> WriteBatch:
        return self.store.batch(self.identity)

    def commit(self, batch: WriteBatch, *, info: Any = None) -> None:
        try:
            batch.commit(info=info)
        except StoreWriteError as exc:
            current_app.logger.warning(
                "Store rejected %s on %s (%s) for %s", exc.operation, exc.path, exc.reason, self.identity.uid
            )
            raise

    def log(self, action: str, description: str) -> None:
        """Record an Activity after a committed change; a failure here does not undo it."""
        try:
            activity_service.record_activity(self.store, self.state, self.identity, action, description)
        except StoreWriteError as exc:
            current_app.logger.warning("Activity '%s' was not recorded: %s", action, exc.reason)

    def _next_sr_no(self, collection: str) -> int:
        return next_sr_no(self.state.snapshot(collection))

    # ----------------------------------------------------------------------
    # Duplicate detection
    # ----------------------------------------------------------------------

    def is_mobile_number_duplicate(self, mobile: str, exclude_id: str | None = None) -> bool:
        return self.state.is_mobile_duplicate(mobile, exclude_id)

    # ----------------------------------------------------------------------
    # Adding to inventory
    # ----------------------------------------------------------------------

    def _new_number(self, payload: Mapping[str, Any], mobile: str, sr_no: int) -> dict:
        record = dict(payload)
        record.update(
            mobile=mobile,
            sum=digital_root(mobile),
            sr_no=sr_no,
            safe_custody_notification_sent=False,
            check_in_date=None,
            created_by=self.identity.uid,
        )
        return sanitize(record)

    def add_number(self, data: Mapping[str, Any]) -> str:
        payload = validate_number_payload(data, assignee=self.identity.actor_name)
        mobile = payload.pop("mobile")
        if self.is_mobile_number_duplicate(mobile):
            raise ConflictError(DUPLICATE_MOBILE_MESSAGE)

        batch = self.batch()
        new_id = batch.set(NUMBERS, self._new_number(payload, mobile, self._next_sr_no(NUMBERS)))
        self.commit(batch, info={"mobile": mobile})
        self.log("Added Number", f"Added new number {mobile}.")
        return new_id

    def add_multiple_numbers(self, data: Mapping[str, Any], valid_mobiles: Sequence[str]) -> BulkResult:
        """
        Add already-reviewed mobiles sharing one set of attributes.

        The list is checked again against the live state; any mobile that is
        malformed or now taken rejects the whole call.
        """
        payload = validate_number_payload(data, require_mobile=False, assignee=self.identity.actor_name)
        mobiles = [validate_mobile(m) for m in valid_mobiles]
        if not mobiles:
            raise ValidationError("No valid mobile numbers to add")
        if len(set(mobiles)) != len(mobiles):
            raise ConflictError("The same mobile number appears more than once.")
        taken = [m for m in mobiles if self.is_mobile_number_duplicate(m)]
        if taken:
            raise ConflictError(f"Mobile number(s) already exist in the system: {', '.join(taken)}")

        start = self._next_sr_no(NUMBERS)
        batch = self.batch()
        result = BulkResult()
        for offset, mobile in enumerate(mobiles):
            result.ids.append(batch.set(NUMBERS, self._new_number(payload, mobile, start + offset)))
            result.mobiles.append(mobile)
        self.commit(batch, info={"count": len(mobiles)})
        result.processed = len(mobiles)
        self.log("Added Multiple Numbers", activity_service.describe("Added", result.mobiles))
        return result

    def bulk_add_numbers(self, rows: Iterable[Mapping[str, Any]]) -> dict[str, list]:
        """
        Validate structured rows and persist the accepted ones in one batch.

        Returns {"valid_records", "failed_records"}. If the batch commit is
        rejected, every accepted row moves to failed_records and nothing is
        written.
        """
        reconciled = reconcile_rows(rows, self.state, self.identity.actor_name)
        if not reconciled.accepted:
            return {"valid_records": [], "failed_records": reconciled.failed}

        start = self._next_sr_no(NUMBERS)
        batch = self.batch()
        valid_records = []
        for offset, (_, body) in enumerate(reconciled.accepted):
            record = dict(body, sr_no=start + offset, created_by=self.identity.uid)
            record = sanitize(record)
            record["id"] = batch.set(NUMBERS, record)
            valid_records.append(record)

        try:
            self.commit(batch, info={"count": len(valid_records)})
        except StoreWriteError:
            failed = reconciled.failed + [
                {"row": raw, "reason": IMPORT_PERMISSION_DENIED} for raw, _ in reconciled.accepted
            ]
            return {"valid_records": [], "failed_records": failed}

        self.log(
            "Bulk Added Numbers",
            activity_service.describe("Imported", [r["mobile"] for r in valid_records]),
        )
        return {"valid_records": valid_records, "failed_records": reconciled.failed}

    # ----------------------------------------------------------------------
    # Inventory -> Sale
    # ----------------------------------------------------------------------

    def _sale_from_number(self, number: Mapping[str, Any], details: Mapping[str, Any], sr_no: int) -> dict:
        return sanitize({
            "sr_no": sr_no,
            "mobile": number["mobile"],
            "sum": digital_root(number["mobile"]),
            "sold_to": details["sold_to"],
            "sale_price": details["sale_price"],
            "sale_date": details["sale_date"],
            "payment_status": PENDING,
            "upc_status": PENDING,
            "port_out_status": PENDING,
            "upload_status": number.get("upload_status") or PENDING,
            "created_by": self.identity.uid,
            "original_number_data": NumberSnapshot.from_record(number).to_document(),
        })

    def sell_number(self, number_id: str, details: Mapping[str, Any]) -> str:
        number = self.require(NUMBERS, number_id)
        sale_details = validate_sale_details(details)

        batch = self.batch()
        sale_id = batch.set(SALES, self._sale_from_number(number, sale_details, self._next_sr_no(SALES)))
        batch.delete(NUMBERS, number_id)
        self.commit(batch, info={"mobile": number["mobile"]})
        self.log("Sold Number", f"Sold number {number['mobile']} to {sale_details['sold_to']}.")
        return sale_id

    def bulk_sell_numbers(self, records: Iterable[Any], details: Mapping[str, Any]) -> BulkResult:
        sale_details = validate_sale_details(details)
        numbers, missing = self.resolve(NUMBERS, records)
        result = BulkResult(skipped=missing)
        if not numbers:
            return result

        start = self._next_sr_no(SALES)
        batch = self.batch()
        for offset, number in enumerate(numbers):
            result.ids.append(batch.set(SALES, self._sale_from_number(number, sale_details, start + offset)))
            batch.delete(NUMBERS, number["id"])
            result.mobiles.append(number["mobile"])
        self.commit(batch, info={"count": len(numbers)})
        result.processed = len(numbers)
        self.log(
            "Bulk Sold Numbers",
            activity_service.describe(f"Sold to {sale_details['sold_to']}", result.mobiles),
        )
        return result

    # ----------------------------------------------------------------------
    # Sale -> back to inventory
    # ----------------------------------------------------------------------

    def cancel_sale(self, sale_id: str) -> str:
        sale = self.require(SALES, sale_id)
        snapshot = NumberSnapshot.from_document(sale.get("original_number_data"))
        if snapshot is None:
            raise LifecycleError("Sale has no original number data to restore")

        restored = snapshot.restore(
            assigned_to=UNASSIGNED,
            name=UNASSIGNED,
            sr_no=self._next_sr_no(NUMBERS),
        )
        batch = self.batch()
        number_id = batch.set(NUMBERS, sanitize(restored))
        batch.delete(SALES, sale_id)
        self.commit(batch, info={"mobile": sale["mobile"]})
        self.log("Cancelled Sale", f"Cancelled sale of {sale['mobile']}; number returned to inventory.")
        return number_id

    # ----------------------------------------------------------------------
    # Sale -> Port-out
    # ----------------------------------------------------------------------

    def _port_out_from_sale(self, sale: Mapping[str, Any], sr_no: int) -> dict:
        body = {k: v for k, v in sale.items() if k not in ("id", "port_out_status")}
        body.update(sr_no=sr_no, port_out_date=utcnow())
        return sanitize(body)

    def mark_sale_as_ported_out(self, sale_id: str) -> str:
        sale = self.require(SALES, sale_id)
        if sale.get("upc_status") != GENERATED:
            raise LifecycleError("UPC must be Generated before a sale can be ported out")

        batch = self.batch()
        port_out_id = batch.set(PORT_OUTS, self._port_out_from_sale(sale, self._next_sr_no(PORT_OUTS)))
        batch.delete(SALES, sale_id)
        self.commit(batch, info={"mobile": sale["mobile"]})
        self.log("Marked as Ported Out", f"Number {sale['mobile']} marked as ported out.")
        return port_out_id

    def bulk_mark_as_ported_out(self, records: Iterable[Any]) -> BulkResult:
        """Sales whose UPC is not Generated are skipped, not rejected."""
        sales, missing = self.resolve(SALES, records)
        eligible = [s for s in sales if s.get("upc_status") == GENERATED]
        result = BulkResult(skipped=missing + len(sales) - len(eligible))
        if not eligible:
            return result

        start = self._next_sr_no(PORT_OUTS)
        batch = self.batch()
        for offset, sale in enumerate(eligible):
            result.ids.append(batch.set(PORT_OUTS, self._port_out_from_sale(sale, start + offset)))
            batch.delete(SALES, sale["id"])
            result.mobiles.append(sale["mobile"])
        self.commit(batch, info={"count": len(eligible)})
        result.processed = len(eligible)
        self.log("Bulk Ported Out", activity_service.describe("Ported out", result.mobiles))
        return result

    def delete_port_outs(self, records: Iterable[Any]) -> BulkResult:
        """
        Hard delete port-out records.

        Every selected record must have payment_status Done; a single unpaid
        record blocks the whole deletion.
        """
        port_outs, missing = self.resolve(PORT_OUTS, records)
        blocked = [p for p in port_outs if p.get("payment_status") != DONE]
        if blocked:
            raise DeletionBlockedError(
                f"{len(blocked)} selected record(s) have pending payment. Nothing was deleted.",
                blocked_count=len(blocked),
                blocked_mobiles=[p["mobile"] for p in blocked],
            )
        result = BulkResult(skipped=missing)
        if not port_outs:
            return result

        batch = self.batch()
        for port_out in port_outs:
            batch.delete(PORT_OUTS, port_out["id"])
            result.ids.append(port_out["id"])
            result.mobiles.append(port_out["mobile"])
        self.commit(batch)
        result.processed = len(port_outs)
        self.log("Deleted Port Outs", activity_service.describe("Deleted", result.mobiles))
        return result

    # ----------------------------------------------------------------------
    # Pre-booking
    # ----------------------------------------------------------------------

    def mark_as_pre_booked(self, number_ids: Iterable[Any]) -> BulkResult:
        numbers, missing = self.resolve(NUMBERS, number_ids)
        result = BulkResult(skipped=missing)
        if not numbers:
            return result

        start = self._next_sr_no(PRE_BOOKINGS)
        now = utcnow()
        batch = self.batch()
        for offset, number in enumerate(numbers):
            pre_booking = sanitize({
                "sr_no": start + offset,
                "mobile": number["mobile"],
                "sum": digital_root(number["mobile"]),
                "upload_status": number.get("upload_status") or PENDING,
                "pre_booking_date": now,
                "created_by": self.identity.uid,
                "original_number_data": NumberSnapshot.from_record(number).to_document(),
            })
            result.ids.append(batch.set(PRE_BOOKINGS, pre_booking))
            batch.delete(NUMBERS, number["id"])
            result.mobiles.append(number["mobile"])
        self.commit(batch, info={"count": len(numbers)})
        result.processed = len(numbers)
        self.log("Pre-Booked Numbers", activity_service.describe("Pre-booked", result.mobiles))
        return result

    def cancel_pre_booking(self, pre_booking_id: str) -> str:
        pre_booking = self.require(PRE_BOOKINGS, pre_booking_id)
        snapshot = NumberSnapshot.from_document(pre_booking.get("original_number_data"))
        if snapshot is None:
            raise LifecycleError("Pre-booking has no original number data to restore")

        batch = self.batch()
        number_id = batch.set(NUMBERS, sanitize(snapshot.restore(sr_no=self._next_sr_no(NUMBERS))))
        batch.delete(PRE_BOOKINGS, pre_booking_id)
        self.commit(batch, info={"mobile": pre_booking["mobile"]})
        self.log(
            "Cancelled Pre-Booking",
            f"Cancelled pre-booking of {pre_booking['mobile']}; number returned to inventory.",
        )
        return number_id

    def _sale_from_pre_booking(self, pre_booking: Mapping[str, Any], details: Mapping[str, Any], sr_no: int) -> dict:
        snapshot = NumberSnapshot.from_document(pre_booking.get("original_number_data"))
        return sanitize({
            "sr_no": sr_no,
            "mobile": pre_booking["mobile"],
            "sum": pre_booking.get("sum"),
            "sold_to": details["sold_to"],
            "sale_price": details["sale_price"],
            "sale_date": details["sale_date"],
            "payment_status": PENDING,
            "upc_status": PENDING,
            "port_out_status": PENDING,
            "upload_status": pre_booking.get("upload_status") or PENDING,
            "created_by": self.identity.uid,
            "original_number_data": snapshot.to_document() if snapshot else None,
        })

    def sell_pre_booked_number(self, pre_booking_id: str, details: Mapping[str, Any]) -> str:
        pre_booking = self.require(PRE_BOOKINGS, pre_booking_id)
        sale_details = validate_sale_details(details)

        batch = self.batch()
        sale_id = batch.set(
            SALES, self._sale_from_pre_booking(pre_booking, sale_details, self._next_sr_no(SALES))
        )
        batch.delete(PRE_BOOKINGS, pre_booking_id)
        self.commit(batch, info={"mobile": pre_booking["mobile"]})
        self.log(
            "Sold Pre-Booked Number",
            f"Sold pre-booked number {pre_booking['mobile']} to {sale_details['sold_to']}.",
        )
        return sale_id

    def bulk_sell_pre_booked_numbers(self, records: Iterable[Any], details: Mapping[str, Any]) -> BulkResult:
        sale_details = validate_sale_details(details)
        pre_bookings, missing = self.resolve(PRE_BOOKINGS, records)
        result = BulkResult(skipped=missing)
        if not pre_bookings:
            return result

        start = self._next_sr_no(SALES)
        batch = self.batch()
        for offset, pre_booking in enumerate(pre_bookings):
            result.ids.append(
                batch.set(SALES, self._sale_from_pre_booking(pre_booking, sale_details, start + offset))
            )
            batch.delete(PRE_BOOKINGS, pre_booking["id"])
            result.mobiles.append(pre_booking["mobile"])
        self.commit(batch, info={"count": len(pre_bookings)})
        result.processed = len(pre_bookings)
        self.log(
            "Bulk Sold Pre-Booked Numbers",
            activity_service.describe(f"Sold to {sale_details['sold_to']}", result.mobiles),
        )
        return result

    # ----------------------------------------------------------------------
    # Deleting inventory (admin only)
    # ----------------------------------------------------------------------

    def delete_numbers(self, number_ids: Iterable[Any]) -> BulkResult:
        require_admin(self.identity, "delete numbers")
        numbers, missing = self.resolve(NUMBERS, number_ids)
        result = BulkResult(skipped=missing)
        if not numbers:
            return result

        batch = self.batch()
        for number in numbers:
            batch.delete(NUMBERS, number["id"])
            result.ids.append(number["id"])
            result.mobiles.append(number["mobile"])
        self.commit(batch)
        result.processed = len(numbers)
        self.log("Deleted Numbers", activity_service.describe("Deleted", result.mobiles, list_all=True))
        return result

    # ----------------------------------------------------------------------
    # Dealer purchases
    # ----------------------------------------------------------------------

    def add_dealer_purchase(self, data: Mapping[str, Any]) -> str:
        payload = validate_dealer_payload(data)
        mobile = payload["mobile"]
        if self.is_mobile_number_duplicate(mobile):
            raise ConflictError(DUPLICATE_MOBILE_MESSAGE)

        record = dict(
            payload,
            sr_no=self._next_sr_no(DEALER_PURCHASES),
            sum=digital_root(mobile),
            created_by=self.identity.uid,
        )
        batch = self.batch()
        new_id = batch.set(DEALER_PURCHASES, sanitize(record))
        self.commit(batch, info={"mobile": mobile})
        self.log("Added Dealer Purchase", f"Added dealer purchase {mobile} from {payload['dealer_name']}.")
        return new_id

    def update_dealer_purchase(self, purchase_id: str, statuses: Mapping[str, Any]) -> None:
        purchase = self.require(DEALER_PURCHASES, purchase_id)
        changes = validate_dealer_statuses(statuses)

        batch = self.batch()
        batch.update(DEALER_PURCHASES, purchase_id, changes)
        self.commit(batch, info=changes)
        summary = ", ".join(f"{k}={v}" for k, v in sorted(changes.items()))
        self.log("Updated Dealer Purchase", f"Updated dealer purchase {purchase['mobile']}: {summary}.")

    def delete_dealer_purchases(self, records: Iterable[Any]) -> BulkResult:
        """
        Delete the selected dealer purchases that are complete on all three
        statuses; the rest are skipped and counted.
        """
        purchases, missing = self.resolve(DEALER_PURCHASES, records)
        eligible = [p for p in purchases if is_dealer_purchase_complete(p)]
        result = BulkResult(skipped=missing + len(purchases) - len(eligible))
        if not eligible:
            return result

        batch = self.batch()
        for purchase in eligible:
            batch.delete(DEALER_PURCHASES, purchase["id"])
            result.ids.append(purchase["id"])
            result.mobiles.append(purchase["mobile"])
        self.commit(batch)
        result.processed = len(eligible)
        self.log("Deleted Dealer Purchases", activity_service.describe("Deleted", result.mobiles))
        return result
