# Overview: Flask API routes for structured number imports and CSV export.

"""
Import Routes

Supports CSV, JSON, and Excel (.xlsx) uploads, or rows posted as JSON.
The response always carries valid_records and failed_records; every
submitted row appears in exactly one of them.
"""

from zipfile import BadZipFile

from flask import Blueprint, Response, current_app, g, jsonify, request

from ..decorators import require_identity
from ..services import import_service
from ..services.import_service import UploadError
from ..services.session_service import request_engine
from ..validation import ValidationError
from .common import json_body, respond


imports_bp = Blueprint("imports", __name__, url_prefix="/api/imports")


def _csv_response(text: str, filename: str) -> Response:
    return Response(
        text,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@imports_bp.post("/numbers")
@require_identity
def import_numbers_route():
    if "file" in request.files:
        file = request.files["file"]
        try:
            rows = import_service.read_upload(file.filename or "", file.stream)
        except (UploadError, ValidationError) as e:
            return jsonify({"error": str(e)}), 400
        except (UnicodeDecodeError, ValueError, BadZipFile):
            current_app.logger.exception("Failed to parse import upload from %s", g.identity.uid)
            return jsonify({"error": "Failed to parse upload"}), 400
    else:
        rows = json_body().get("rows")
        if not isinstance(rows, list):
            return jsonify({"error": "rows must be a list"}), 400
    if not all(isinstance(row, dict) for row in rows):
        return jsonify({"error": "every row must be an object"}), 400

    result = request_engine().bulk_add_numbers(rows)
    return respond({
        "valid_records": result["valid_records"],
        "failed_records": result["failed_records"],
        "accepted": len(result["valid_records"]),
        "failed": len(result["failed_records"]),
    })


@imports_bp.post("/failure-report")
@require_identity
def failure_report_route():
    failed = json_body().get("failed_records")
    if not isinstance(failed, list):
        return jsonify({"error": "failed_records must be a list"}), 400
    headers, rows = import_service.failure_report_rows(failed)
    return _csv_response(import_service.to_csv_text(headers, rows), "import_failures.csv")


@imports_bp.get("/numbers/export")
@require_identity
def export_numbers_route():
    numbers = request_engine().state.visible_numbers(g.identity)
    rows = import_service.export_rows(numbers)
    return _csv_response(import_service.to_csv_text(import_service.EXPORT_HEADERS, rows), "numbers.csv")
