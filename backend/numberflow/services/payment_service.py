# Overview: Vendor payments and the per-vendor sale/payment reconciliation summary.

from __future__ import annotations

from typing import Any, Mapping

from ..records import PAYMENTS, PORT_OUTS, SALES
from ..time_utils import utcnow
from ..validation import ValidationError, coerce_amount, coerce_date
from .numbering import next_sr_no, sanitize


def add_payment(engine, data: Mapping[str, Any]) -> str:
    vendor_name = (data.get("vendor_name") or "").strip()
    if not vendor_name:
        raise ValidationError("vendor_name is required")
    amount = coerce_amount(data.get("amount"), "amount")
    if amount == 0:
        raise ValidationError("amount must be greater than 0")

    payment = sanitize({
        "sr_no": next_sr_no(engine.state.snapshot(PAYMENTS)),
        "vendor_name": vendor_name,
        "amount": amount,
        "payment_date": coerce_date(data.get("payment_date"), "payment_date", required=False) or utcnow(),
        "notes": (data.get("notes") or "").strip() or None,
        "created_by": engine.identity.uid,
    })
    batch = engine.batch()
    payment_id = batch.set(PAYMENTS, payment)
    engine.commit(batch, info={"vendor_name": vendor_name, "amount": amount})
    engine.log("Added Payment", f"Recorded payment of {amount} from {vendor_name}.")
    return payment_id


def vendor_summary(state, vendor_name: str) -> dict[str, Any]:
    """
    Totals for one vendor across active sales and port-outs.

    Purchase cost comes from each record's original_number_data snapshot;
    remaining = total sale - total paid.
    """
    records = [
        r for name in (SALES, PORT_OUTS)
        for r in state.snapshot(name)
        if r.get("sold_to") == vendor_name
    ]
    total_purchase = sum((r.get("original_number_data") or {}).get("purchase_price") or 0 for r in records)
    total_sale = sum(r.get("sale_price") or 0 for r in records)
    payments = [p for p in state.snapshot(PAYMENTS) if p.get("vendor_name") == vendor_name]
    total_paid = sum(p.get("amount") or 0 for p in payments)
    return {
        "vendor_name": vendor_name,
        "record_count": len(records),
        "total_purchase": total_purchase,
        "total_sale": total_sale,
        "total_paid": total_paid,
        "remaining": total_sale - total_paid,
        "payments": sorted(payments, key=lambda p: p.get("sr_no") or 0),
    }
