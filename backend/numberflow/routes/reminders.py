# Overview: Flask API routes for reminders, activities and vendor payments.

from flask import Blueprint, current_app, g

from ..decorators import require_identity
from ..records import PAYMENTS
from ..services import activity_service, payment_service, reminder_service
from ..services.session_service import request_engine
from .common import by_sr_no, id_list, json_body, respond


reminders_bp = Blueprint("reminders", __name__, url_prefix="/api/reminders")
activities_bp = Blueprint("activities", __name__, url_prefix="/api/activities")
payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# ================================================================================
# REMINDERS
# ================================================================================

@reminders_bp.get("")
@require_identity
def list_reminders_route():
    engine = request_engine()
    return respond({"reminders": by_sr_no(engine.state.visible_reminders(g.identity))})


@reminders_bp.post("")
@require_identity
def add_reminder_route():
    reminder_id = reminder_service.add_reminder(request_engine(), json_body())
    return respond({"id": reminder_id}, 201)


@reminders_bp.post("/<reminder_id>/done")
@require_identity
def complete_reminder_route(reminder_id: str):
    reminder_service.mark_reminder_done(request_engine(), reminder_id, json_body().get("note"))
    return respond({"id": reminder_id})


@reminders_bp.delete("/<reminder_id>")
@require_identity
def delete_reminder_route(reminder_id: str):
    reminder_service.delete_reminder(request_engine(), reminder_id)
    return respond({"id": reminder_id})


# ================================================================================
# ACTIVITIES
# ================================================================================

@activities_bp.get("")
@require_identity
def list_activities_route():
    engine = request_engine()
    activities = sorted(
        engine.state.visible_activities(g.identity),
        key=lambda a: a.get("sr_no") or 0,
        reverse=True,
    )
    return respond({"activities": activities})


@activities_bp.post("/delete")
@require_identity
def delete_activities_route():
    result = activity_service.delete_activities(request_engine(), id_list(json_body()))
    return respond(result.to_dict())


# ================================================================================
# PAYMENTS
# ================================================================================

@payments_bp.get("")
@require_identity
def list_payments_route():
    return respond({"payments": by_sr_no(request_engine().state.snapshot(PAYMENTS))})


@payments_bp.post("")
@require_identity
def add_payment_route():
    payment_id = payment_service.add_payment(request_engine(), json_body())
    return respond({"id": payment_id}, 201)


@payments_bp.get("/vendors")
@require_identity
def list_vendors_route():
    vendors = request_engine().state.vendors(current_app.config["DEFAULT_VENDORS"])
    return respond({"vendors": vendors})


@payments_bp.get("/vendors/<vendor_name>/summary")
@require_identity
def vendor_summary_route(vendor_name: str):
    return respond(payment_service.vendor_summary(request_engine().state, vendor_name))
