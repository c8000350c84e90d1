# Overview: Small helpers shared by the API blueprints: body parsing and JSON responses.

from flask import jsonify, request

from ..records import serialize
from ..validation import ValidationError


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def id_list(data: dict, key: str = "ids") -> list:
    """Selected records may be sent as ids or as record objects carrying an id."""
    items = data.get(key)
    if not isinstance(items, list) or not items:
        raise ValidationError(f"{key} must be a non-empty list")
    return items


def by_sr_no(records: list[dict]) -> list[dict]:
    return sorted(records, key=lambda r: r.get("sr_no") or 0)


def respond(payload, status: int = 200):
    return jsonify(serialize(payload)), status
