# Overview: Flask API routes for inventory numbers; parses input and returns JSON responses.

"""
Inventory Routes

- GET    /api/numbers                      - numbers visible to the caller
- POST   /api/numbers                      - add one number
- POST   /api/numbers/review               - bucket pasted mobiles (nothing is written)
- POST   /api/numbers/bulk                 - add reviewed mobiles sharing one set of attributes
- GET    /api/numbers/duplicate            - ?mobile=...&exclude_id=...
- POST   /api/numbers/delete               - admin: delete selected numbers
- POST   /api/numbers/<id>/sell            - inventory -> sale
- POST   /api/numbers/bulk-sell            - many inventory -> sale
- POST   /api/numbers/pre-book             - inventory -> pre-booking
- PATCH  /api/numbers/<id>/status          - RTS / Non-RTS
- PATCH  /api/numbers/<id>/upload-status
- POST   /api/numbers/upload-status        - bulk
- POST   /api/numbers/assign               - assign to an employee + location
- POST   /api/numbers/location             - move selected numbers
- POST   /api/numbers/<id>/check-in
- PATCH  /api/numbers/<id>/safe-custody
- POST   /api/numbers/safe-custody         - bulk
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_identity
from ..services import import_service, number_service
from ..services.session_service import request_engine
from .common import by_sr_no, id_list, json_body, respond


numbers_bp = Blueprint("numbers", __name__, url_prefix="/api/numbers")


@numbers_bp.get("")
@require_identity
def list_numbers_route():
    engine = request_engine()
    tracker = current_app.extensions.get("recently_promoted")
    highlighted = tracker.active() if tracker is not None else set()
    numbers = by_sr_no(engine.state.visible_numbers(g.identity))
    for number in numbers:
        number["recently_promoted"] = number["id"] in highlighted
    return respond({"numbers": numbers})


@numbers_bp.post("")
@require_identity
def add_number_route():
    number_id = request_engine().add_number(json_body())
    return respond({"id": number_id}, 201)


@numbers_bp.post("/review")
@require_identity
def review_numbers_route():
    data = json_body()
    review = import_service.review_mobile_input(data.get("text") or "", request_engine().state)
    return respond(review.to_dict())


@numbers_bp.post("/bulk")
@require_identity
def add_multiple_numbers_route():
    data = json_body()
    result = request_engine().add_multiple_numbers(data.get("data") or {}, id_list(data, "mobiles"))
    return respond(result.to_dict(), 201)


@numbers_bp.get("/duplicate")
@require_identity
def duplicate_check_route():
    mobile = (request.args.get("mobile") or "").strip()
    exclude_id = request.args.get("exclude_id") or None
    duplicate = request_engine().is_mobile_number_duplicate(mobile, exclude_id)
    return respond({"mobile": mobile, "duplicate": duplicate})


@numbers_bp.post("/delete")
@require_identity
def delete_numbers_route():
    result = request_engine().delete_numbers(id_list(json_body()))
    return respond(result.to_dict())


@numbers_bp.post("/<number_id>/sell")
@require_identity
def sell_number_route(number_id: str):
    sale_id = request_engine().sell_number(number_id, json_body())
    return respond({"sale_id": sale_id}, 201)


@numbers_bp.post("/bulk-sell")
@require_identity
def bulk_sell_numbers_route():
    data = json_body()
    result = request_engine().bulk_sell_numbers(id_list(data), data.get("details") or {})
    return respond(result.to_dict())


@numbers_bp.post("/pre-book")
@require_identity
def pre_book_route():
    result = request_engine().mark_as_pre_booked(id_list(json_body()))
    return respond(result.to_dict())


@numbers_bp.patch("/<number_id>/status")
@require_identity
def update_status_route(number_id: str):
    data = json_body()
    number_service.update_number_status(
        request_engine(), number_id, data.get("status"), data.get("rts_date"), data.get("note")
    )
    return respond({"id": number_id})


@numbers_bp.patch("/<number_id>/upload-status")
@require_identity
def update_upload_status_route(number_id: str):
    number_service.update_upload_status(request_engine(), number_id, json_body().get("status"))
    return respond({"id": number_id})


@numbers_bp.post("/upload-status")
@require_identity
def bulk_upload_status_route():
    data = json_body()
    result = number_service.bulk_update_upload_status(request_engine(), id_list(data), data.get("status"))
    return respond(result.to_dict())


@numbers_bp.post("/assign")
@require_identity
def assign_numbers_route():
    data = json_body()
    result = number_service.assign_numbers(
        request_engine(), id_list(data), data.get("employee_name"), data.get("location") or {}
    )
    return respond(result.to_dict())


@numbers_bp.post("/location")
@require_identity
def update_location_route():
    data = json_body()
    result = number_service.update_number_location(request_engine(), id_list(data), data.get("location") or {})
    return respond(result.to_dict())


@numbers_bp.post("/<number_id>/check-in")
@require_identity
def check_in_route(number_id: str):
    number_service.check_in_number(request_engine(), number_id)
    return respond({"id": number_id})


@numbers_bp.patch("/<number_id>/safe-custody")
@require_identity
def update_safe_custody_route(number_id: str):
    number_service.update_safe_custody_date(request_engine(), number_id, json_body().get("safe_custody_date"))
    return respond({"id": number_id})


@numbers_bp.post("/safe-custody")
@require_identity
def bulk_safe_custody_route():
    data = json_body()
    result = number_service.bulk_update_safe_custody_date(
        request_engine(), id_list(data), data.get("safe_custody_date")
    )
    return respond(result.to_dict())
