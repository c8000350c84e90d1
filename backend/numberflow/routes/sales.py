# Overview: Flask API routes for sales and port-outs; parses input and returns JSON responses.

"""
Sales & Port-out Routes

Sales:
- GET   /api/sales
- POST  /api/sales/<id>/cancel          - sale -> inventory (assignment reset)
- POST  /api/sales/<id>/port-out        - sale -> port-out (UPC must be Generated)
- POST  /api/sales/port-out             - bulk; ineligible sales are skipped
- PATCH /api/sales/<id>/status          - payment / UPC status
- POST  /api/sales/upc-status           - bulk UPC status

Port-outs:
- GET   /api/portouts
- POST  /api/portouts/delete            - blocked entirely if any record is unpaid
- PATCH /api/portouts/<id>/payment-status
- POST  /api/portouts/payment-status    - bulk
"""

from flask import Blueprint

from ..decorators import require_identity
from ..records import PORT_OUTS, SALES
from ..services import number_service
from ..services.session_service import request_engine
from .common import by_sr_no, id_list, json_body, respond


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")
portouts_bp = Blueprint("portouts", __name__, url_prefix="/api/portouts")


@sales_bp.get("")
@require_identity
def list_sales_route():
    return respond({"sales": by_sr_no(request_engine().state.snapshot(SALES))})


@sales_bp.post("/<sale_id>/cancel")
@require_identity
def cancel_sale_route(sale_id: str):
    number_id = request_engine().cancel_sale(sale_id)
    return respond({"number_id": number_id})


@sales_bp.post("/<sale_id>/port-out")
@require_identity
def port_out_route(sale_id: str):
    port_out_id = request_engine().mark_sale_as_ported_out(sale_id)
    return respond({"port_out_id": port_out_id}, 201)


@sales_bp.post("/port-out")
@require_identity
def bulk_port_out_route():
    result = request_engine().bulk_mark_as_ported_out(id_list(json_body()))
    return respond(result.to_dict())


@sales_bp.patch("/<sale_id>/status")
@require_identity
def update_sale_status_route(sale_id: str):
    data = json_body()
    number_service.update_sale_statuses(
        request_engine(), sale_id, data.get("payment_status"), data.get("upc_status")
    )
    return respond({"id": sale_id})


@sales_bp.post("/upc-status")
@require_identity
def bulk_upc_status_route():
    data = json_body()
    result = number_service.bulk_update_upc_status(request_engine(), id_list(data), data.get("status"))
    return respond(result.to_dict())


@portouts_bp.get("")
@require_identity
def list_port_outs_route():
    return respond({"portouts": by_sr_no(request_engine().state.snapshot(PORT_OUTS))})


@portouts_bp.post("/delete")
@require_identity
def delete_port_outs_route():
    result = request_engine().delete_port_outs(id_list(json_body()))
    return respond(result.to_dict())


@portouts_bp.patch("/<port_out_id>/payment-status")
@require_identity
def update_port_out_payment_route(port_out_id: str):
    number_service.update_port_out_status(request_engine(), port_out_id, json_body().get("payment_status"))
    return respond({"id": port_out_id})


@portouts_bp.post("/payment-status")
@require_identity
def bulk_port_out_payment_route():
    data = json_body()
    result = number_service.bulk_update_port_out_payment_status(request_engine(), id_list(data), data.get("status"))
    return respond(result.to_dict())
