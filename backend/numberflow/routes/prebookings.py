# Overview: Flask API routes for pre-bookings and dealer purchases.

from flask import Blueprint, g

from ..decorators import require_identity
from ..records import DEALER_PURCHASES
from ..services.session_service import request_engine
from .common import by_sr_no, id_list, json_body, respond


prebookings_bp = Blueprint("prebookings", __name__, url_prefix="/api/prebookings")
dealer_purchases_bp = Blueprint("dealer_purchases", __name__, url_prefix="/api/dealer-purchases")


@prebookings_bp.get("")
@require_identity
def list_prebookings_route():
    engine = request_engine()
    return respond({"prebookings": by_sr_no(engine.state.visible_prebookings(g.identity))})


@prebookings_bp.post("/<pre_booking_id>/cancel")
@require_identity
def cancel_pre_booking_route(pre_booking_id: str):
    number_id = request_engine().cancel_pre_booking(pre_booking_id)
    return respond({"number_id": number_id})


@prebookings_bp.post("/<pre_booking_id>/sell")
@require_identity
def sell_pre_booked_route(pre_booking_id: str):
    sale_id = request_engine().sell_pre_booked_number(pre_booking_id, json_body())
    return respond({"sale_id": sale_id}, 201)


@prebookings_bp.post("/bulk-sell")
@require_identity
def bulk_sell_pre_booked_route():
    data = json_body()
    result = request_engine().bulk_sell_pre_booked_numbers(id_list(data), data.get("details") or {})
    return respond(result.to_dict())


@dealer_purchases_bp.get("")
@require_identity
def list_dealer_purchases_route():
    return respond({"dealer_purchases": by_sr_no(request_engine().state.snapshot(DEALER_PURCHASES))})


@dealer_purchases_bp.post("")
@require_identity
def add_dealer_purchase_route():
    purchase_id = request_engine().add_dealer_purchase(json_body())
    return respond({"id": purchase_id}, 201)


@dealer_purchases_bp.patch("/<purchase_id>")
@require_identity
def update_dealer_purchase_route(purchase_id: str):
    request_engine().update_dealer_purchase(purchase_id, json_body())
    return respond({"id": purchase_id})


@dealer_purchases_bp.post("/delete")
@require_identity
def delete_dealer_purchases_route():
    result = request_engine().delete_dealer_purchases(id_list(json_body()))
    return respond(result.to_dict())
