# Overview: Bulk-import reconciliation: free-text review, structured row partitioning, CSV in/out.

"""
Import Service

Two flows feed numbers into inventory in bulk:

(a) Free-text review: a pasted blob of mobiles shares one set of attributes.
    review_mobile_input() splits it into four buckets; only `valid` is ever
    persisted (LifecycleEngine.add_multiple_numbers).

(b) Structured rows: one row per number, many columns. reconcile_rows()
    validates every row with NumberRowSchema and partitions them into
    accepted records and {row, reason} failures. Persisting the accepted ones
    is LifecycleEngine.bulk_add_numbers.

Every input row ends up in exactly one bucket.
"""

from __future__ import annotations

import csv
import io
import json
import re
from dataclasses import dataclass, field
from typing import IO, Any, Iterable, Mapping, Sequence

from ..records import UNASSIGNED
from ..time_utils import format_day
from ..validation import ValidationError
from .import_schemas import OPTIONAL_HEADERS, REQUIRED_HEADERS, NumberRowSchema
from .numbering import is_valid_mobile


FAILURE_REASON_HEADER = "ReasonForFailure"
EXPORT_HEADERS = ("Sum",) + REQUIRED_HEADERS + OPTIONAL_HEADERS + ("AssignedTo",)

_TOKEN_SPLIT = re.compile(r"[\n,]+")
_EXCEL_EXTENSIONS = {"xlsx", "xlsm", "xltx", "xltm"}


class UploadError(ValueError):
    """Upload could not be read as rows."""
    pass


class MissingHeadersError(ValidationError):
    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required column(s): {', '.join(self.missing)}")


# ================================================================================
# (a) FREE-TEXT REVIEW
# ================================================================================

@dataclass
class MobileReview:
    valid: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    existing_duplicates: list[str] = field(default_factory=list)
    input_duplicates: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "valid": list(self.valid),
            "invalid": list(self.invalid),
            "existing_duplicates": list(self.existing_duplicates),
            "input_duplicates": list(self.input_duplicates),
        }


def split_mobile_input(text: str) -> list[str]:
    return [t.strip() for t in _TOKEN_SPLIT.split(text or "") if t.strip()]


def review_mobile_input(text: str, state) -> MobileReview:
    """
    Bucket pasted mobiles.

    Tokens repeated inside the input are reported once in input_duplicates;
    their first occurrence is still classified like any other token.
    """
    review = MobileReview()
    unique: list[str] = []
    seen: set[str] = set()
    for token in split_mobile_input(text):
        if token in seen:
            if token not in review.input_duplicates:
                review.input_duplicates.append(token)
            continue
        seen.add(token)
        unique.append(token)

    for token in unique:
        if not is_valid_mobile(token):
            review.invalid.append(token)
        elif state.is_mobile_duplicate(token):
            review.existing_duplicates.append(token)
        else:
            review.valid.append(token)
    return review


# ================================================================================
# (b) STRUCTURED ROWS
# ================================================================================

@dataclass
class ReconciledRows:
    accepted: list[tuple[dict, dict]] = field(default_factory=list)   # (original row, record body)
    failed: list[dict] = field(default_factory=list)                  # {"row", "reason"}


def reconcile_rows(rows: Iterable[Mapping[str, Any]], state, assignee: str = UNASSIGNED) -> ReconciledRows:
    """
    Validate rows in order; a mobile accepted earlier in the same import
    counts as existing for every later row. Accepted records are assigned
    to `assignee`.
    """
    schema = NumberRowSchema()
    existing = state.existing_mobiles()
    result = ReconciledRows()

    for raw in rows:
        raw_row = dict(raw)
        outcome = schema.validate_row(schema.normalize_row(raw_row), existing.__contains__, assignee)
        if outcome.accepted:
            existing.add(outcome.record["mobile"])
            result.accepted.append((raw_row, outcome.record))
        else:
            result.failed.append({"row": raw_row, "reason": outcome.reason})
    return result


def missing_headers(headers: Iterable[str]) -> list[str]:
    present = {h.strip() for h in headers if h}
    return [h for h in REQUIRED_HEADERS if h not in present]


def check_headers(headers: Iterable[str]) -> None:
    missing = missing_headers(headers)
    if missing:
        raise MissingHeadersError(missing)


def read_import_csv(stream: IO[str]) -> list[dict[str, Any]]:
    reader = csv.DictReader(stream)
    check_headers(reader.fieldnames or [])
    return [row for row in reader if any((v or "").strip() for v in row.values() if isinstance(v, str))]


def read_upload(filename: str, stream: IO[bytes]) -> list[dict[str, Any]]:
    """Rows from an uploaded CSV, JSON or Excel file, header contract checked."""
    ext = (filename or "").rsplit(".", 1)[-1].lower()
    if ext == "csv":
        return read_import_csv(io.StringIO(stream.read().decode("utf-8-sig")))
    if ext == "json":
        rows = json.load(stream)
        if isinstance(rows, dict):
            rows = rows.get("rows", [])
        if not isinstance(rows, list):
            raise UploadError("JSON upload must be a list of rows")
        if not all(isinstance(row, dict) for row in rows):
            raise UploadError("Every JSON row must be an object")
        check_headers(rows[0].keys() if rows else [])
        return rows
    if ext in _EXCEL_EXTENSIONS:
        from openpyxl import load_workbook

        wb = load_workbook(stream, data_only=True)
        data = list(wb.active.values)
        if not data:
            check_headers([])
            return []
        headers = [str(h).strip() if h is not None else "" for h in data[0]]
        check_headers(headers)
        return [
            {headers[i]: row[i] for i in range(len(headers)) if headers[i]}
            for row in data[1:]
            if any(cell not in (None, "") for cell in row)
        ]
    raise UploadError("Unsupported file format")


# ================================================================================
# EXPORT
# ================================================================================

def _cell(value: Any) -> Any:
    return "" if value is None else value


def export_row(record: Mapping[str, Any]) -> dict[str, Any]:
    """Inventory record -> flat row using the import headers."""
    return {
        "Sum": _cell(record.get("sum")),
        "Mobile": _cell(record.get("mobile")),
        "NumberType": _cell(record.get("number_type")),
        "PurchaseFrom": _cell(record.get("purchase_from")),
        "PurchasePrice": _cell(record.get("purchase_price")),
        "PurchaseDate": format_day(record.get("purchase_date")),
        "CurrentLocation": _cell(record.get("current_location")),
        "LocationType": _cell(record.get("location_type")),
        "Status": _cell(record.get("status")),
        "OwnershipType": _cell(record.get("ownership_type")),
        "SalePrice": _cell(record.get("sale_price")),
        "Notes": _cell(record.get("notes")),
        "UploadStatus": _cell(record.get("upload_status")),
        "PartnerName": _cell(record.get("partner_name")),
        "RTSDate": format_day(record.get("rts_date")),
        "SafeCustodyDate": format_day(record.get("safe_custody_date")),
        "AccountName": _cell(record.get("account_name")),
        "AssignedTo": record.get("assigned_to") or UNASSIGNED,
    }


def export_rows(numbers: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    ordered = sorted(numbers, key=lambda n: n.get("sr_no") or 0)
    return [export_row(n) for n in ordered]


def failure_report_rows(failed: Iterable[Mapping[str, Any]]) -> tuple[list[str], list[dict[str, Any]]]:
    """Failed rows as originally supplied, plus a ReasonForFailure column."""
    headers = list(REQUIRED_HEADERS + OPTIONAL_HEADERS)
    rows = []
    for item in failed:
        row = {k: _cell(v) for k, v in dict(item["row"]).items()}
        for key in row:
            if key not in headers:
                headers.append(key)
        row[FAILURE_REASON_HEADER] = item["reason"]
        rows.append(row)
    headers.append(FAILURE_REASON_HEADER)
    return headers, rows


def write_csv(stream: IO[str], headers: Sequence[str], rows: Iterable[Mapping[str, Any]]) -> None:
    writer = csv.DictWriter(stream, fieldnames=list(headers), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({h: row.get(h, "") for h in headers})


def to_csv_text(headers: Sequence[str], rows: Iterable[Mapping[str, Any]]) -> str:
    buffer = io.StringIO()
    write_csv(buffer, headers, rows)
    return buffer.getvalue()
