# Overview: Pytest coverage for free-text review, structured row reconciliation and CSV exchange.

import io
import json
from datetime import datetime

import pytest

from conftest import import_row
from numberflow.records import ACTIVITIES, NUMBERS
from numberflow.services.document_store import StoreWriteError
from numberflow.services.import_service import (
    EXPORT_HEADERS,
    FAILURE_REASON_HEADER,
    MissingHeadersError,
    UploadError,
    export_rows,
    failure_report_rows,
    read_import_csv,
    read_upload,
    reconcile_rows,
    review_mobile_input,
    split_mobile_input,
    to_csv_text,
)
from numberflow.services.lifecycle_service import IMPORT_PERMISSION_DENIED


# =============================================================================
# FREE-TEXT REVIEW
# =============================================================================


class TestMobileReview:

    def test_split_on_commas_and_newlines(self):
        assert split_mobile_input(" 9876543210,\n1234567890 ,,\n\n") == ["9876543210", "1234567890"]
        assert split_mobile_input("") == []

    def test_buckets(self, state, make_number):
        make_number("9876543210")

        review = review_mobile_input("9876543210, 9876543210, 1234567890", state)

        assert review.valid == ["1234567890"]
        assert review.existing_duplicates == ["9876543210"]
        assert review.input_duplicates == ["9876543210"]
        assert review.invalid == []

    def test_invalid_tokens(self, state):
        review = review_mobile_input("12345\nabcdefghij\n98765432101\n1111111111", state)
        assert review.invalid == ["12345", "abcdefghij", "98765432101"]
        assert review.valid == ["1111111111"]

    def test_repeated_token_reported_once(self, state):
        review = review_mobile_input("1111111111,1111111111,1111111111", state)
        assert review.valid == ["1111111111"]
        assert review.input_duplicates == ["1111111111"]

    def test_to_dict(self, state):
        assert review_mobile_input("", state).to_dict() == {
            "valid": [], "invalid": [], "existing_duplicates": [], "input_duplicates": [],
        }


# =============================================================================
# STRUCTURED ROWS
# =============================================================================


class TestReconcileRows:

    def test_accepted_row_becomes_record(self, state):
        result = reconcile_rows([import_row("9876543210", SalePrice="", Notes="box 4")], state)

        assert result.failed == []
        raw, record = result.accepted[0]
        assert raw["Mobile"] == "9876543210"
        assert record["sum"] == 9
        assert record["purchase_date"] == datetime(2024, 1, 5)
        assert record["purchase_price"] == 200
        assert record["sale_price"] == 0
        assert record["assigned_to"] == "Unassigned"
        assert record["upc_status"] == "Pending"
        assert record["safe_custody_notification_sent"] is False
        assert record["notes"] == "box 4"

    @pytest.mark.parametrize("overrides,reason", [
        ({"Mobile": "98765"}, "Invalid or missing mobile number"),
        ({"Status": "Sold"}, "Invalid or missing Status"),
        ({"OwnershipType": ""}, "Invalid or missing OwnershipType"),
        ({"OwnershipType": "Partnership"}, "PartnerName is required"),
        ({"NumberType": "COCP", "AccountName": "Acme"}, "Invalid or missing SafeCustodyDate"),
        ({"NumberType": "COCP", "SafeCustodyDate": "2024-09-01"}, "AccountName is required"),
        ({"Status": "Non-RTS", "RTSDate": "soon"}, "Invalid or missing RTSDate"),
        ({"PurchaseDate": "yesterday"}, "Invalid or missing PurchaseDate."),
        ({"PurchasePrice": "free"}, "Invalid or missing PurchasePrice."),
    ])
    def test_failure_reasons(self, state, overrides, reason):
        result = reconcile_rows([import_row("9876543210", **overrides)], state)
        assert result.accepted == []
        assert result.failed[0]["reason"].startswith(reason)

    def test_first_failing_check_wins(self, state):
        row = import_row("12345", Status="Sold", PurchasePrice="free")
        result = reconcile_rows([row], state)
        assert result.failed[0]["reason"].startswith("Invalid or missing mobile number")

    def test_duplicate_checked_before_status(self, state, make_number):
        make_number("9876543210")
        result = reconcile_rows([import_row("9876543210", Status="Sold")], state)
        assert result.failed[0]["reason"].startswith("Duplicate mobile number")

    def test_duplicates_within_import(self, state):
        rows = [import_row("9876543210"), import_row("9876543210", PurchaseFrom="Jio")]
        result = reconcile_rows(rows, state)

        assert len(result.accepted) == 1
        assert result.accepted[0][1]["purchase_from"] == "Vodafone"
        assert result.failed[0]["row"]["PurchaseFrom"] == "Jio"

    def test_rejected_row_does_not_reserve_mobile(self, state):
        rows = [import_row("9876543210", PurchasePrice="x"), import_row("9876543210")]
        result = reconcile_rows(rows, state)
        assert len(result.accepted) == 1
        assert len(result.failed) == 1

    def test_every_row_lands_in_one_bucket(self, state, make_number):
        make_number("1111111111")
        rows = [
            import_row("9000000001"),
            import_row("1111111111"),
            import_row("bad"),
            import_row("9000000001"),
            import_row("9000000002", Status="Non-RTS", RTSDate="12/31/2024"),
        ]
        result = reconcile_rows(rows, state)
        assert len(result.accepted) + len(result.failed) == len(rows)
        assert len(result.accepted) == 2

    def test_cocp_partnership_row(self, state):
        row = import_row(
            "9876543210",
            NumberType="COCP",
            SafeCustodyDate="15-09-2024",
            AccountName="Acme",
            OwnershipType="Partnership",
            PartnerName="Meera",
        )
        record = reconcile_rows([row], state).accepted[0][1]
        assert record["safe_custody_date"] == datetime(2024, 9, 15)
        assert record["account_name"] == "Acme"
        assert record["partner_name"] == "Meera"

    def test_unknown_types_fall_back_to_defaults(self, state):
        row = import_row("9876543210", NumberType="Satellite", LocationType="Moon", UploadStatus="maybe")
        record = reconcile_rows([row], state).accepted[0][1]
        assert record["number_type"] == "Prepaid"
        assert record["location_type"] == "Store"
        assert record["upload_status"] == "Pending"


class TestBulkAddNumbers:

    def test_persists_accepted_rows_in_order(self, engine, state, make_number):
        make_number("1111111111")
        result = engine.bulk_add_numbers([
            import_row("9000000001"),
            import_row("bad"),
            import_row("9000000002"),
        ])

        assert [r["mobile"] for r in result["valid_records"]] == ["9000000001", "9000000002"]
        assert [r["sr_no"] for r in result["valid_records"]] == [2, 3]
        assert len(result["failed_records"]) == 1
        stored = {n["mobile"]: n for n in state.snapshot(NUMBERS)}
        assert stored["9000000002"]["created_by"] == "admin-1"
        assert stored["9000000001"]["id"] == result["valid_records"][0]["id"]

    def test_nothing_accepted_writes_nothing(self, engine, state):
        result = engine.bulk_add_numbers([import_row("bad")])
        assert result["valid_records"] == []
        assert state.snapshot(NUMBERS) == []
        assert state.snapshot(ACTIVITIES) == []

    def test_rejected_commit_fails_every_accepted_row(self, engine, state, monkeypatch):
        def reject(batch, info):
            raise StoreWriteError(path=NUMBERS, operation="create", reason="permission-denied")

        monkeypatch.setattr(engine.store, "_check", reject)
        result = engine.bulk_add_numbers([import_row("9000000001"), import_row("9000000002"), import_row("bad")])

        assert result["valid_records"] == []
        assert len(result["failed_records"]) == 3
        reasons = [f["reason"] for f in result["failed_records"]]
        assert reasons.count(IMPORT_PERMISSION_DENIED) == 2
        assert state.snapshot(NUMBERS) == []


# =============================================================================
# FILES
# =============================================================================


class TestUploads:

    def test_csv_upload(self):
        text = "Mobile,NumberType,PurchaseFrom,PurchasePrice,PurchaseDate,CurrentLocation,LocationType,Status,OwnershipType\n" \
               "9876543210,Prepaid,Vodafone,200,05-01-2024,Main Shop,Store,RTS,Individual\n" \
               ",,,,,,,,\n"
        rows = read_upload("numbers.csv", io.BytesIO(text.encode("utf-8-sig")))
        assert len(rows) == 1
        assert rows[0]["Mobile"] == "9876543210"

    def test_missing_headers(self):
        with pytest.raises(MissingHeadersError) as exc:
            read_import_csv(io.StringIO("Mobile,Status\n9876543210,RTS\n"))
        assert "PurchasePrice" in exc.value.missing
        assert "Mobile" not in exc.value.missing

    def test_json_upload(self):
        payload = json.dumps({"rows": [import_row("9876543210")]}).encode()
        rows = read_upload("rows.json", io.BytesIO(payload))
        assert rows[0]["PurchaseDate"] == "05-01-2024"

    def test_json_must_be_rows(self):
        with pytest.raises(UploadError):
            read_upload("rows.json", io.BytesIO(b'"nope"'))

    @pytest.mark.parametrize("payload", [b'["9876543210"]', b'{"rows": [1, 2]}'])
    def test_json_rows_must_be_objects(self, payload):
        with pytest.raises(UploadError):
            read_upload("rows.json", io.BytesIO(payload))

    def test_unsupported_extension(self):
        with pytest.raises(UploadError):
            read_upload("numbers.txt", io.BytesIO(b""))

    def test_xlsx_upload(self):
        from openpyxl import Workbook

        wb = Workbook()
        row = import_row("9876543210")
        wb.active.append(list(row.keys()))
        wb.active.append(list(row.values()))
        buffer = io.BytesIO()
        wb.save(buffer)
        buffer.seek(0)

        rows = read_upload("numbers.xlsx", buffer)
        assert rows == [row]


class TestExport:

    def test_export_rows_ordered_and_flat(self, engine, state, make_number):
        make_number("9876543210", notes="top shelf")
        make_number("1234567890", assigned_to="Ravi")

        rows = export_rows(reversed(state.snapshot(NUMBERS)))

        assert [r["Mobile"] for r in rows] == ["9876543210", "1234567890"]
        assert rows[0]["PurchaseDate"] == "2024-01-05"
        assert rows[0]["RTSDate"] == ""
        assert rows[0]["AssignedTo"] == "Asha Admin"
        assert rows[1]["AssignedTo"] == "Ravi"
        assert rows[0]["Notes"] == "top shelf"

    def test_export_csv_header(self, engine, state, make_number):
        make_number("9876543210")
        text = to_csv_text(EXPORT_HEADERS, export_rows(state.snapshot(NUMBERS)))
        header, line = text.splitlines()[:2]
        assert header.split(",")[:2] == ["Sum", "Mobile"]
        assert line.startswith("9,9876543210,Prepaid")

    def test_failure_report(self, state):
        result = reconcile_rows([import_row("bad", Extra="x")], state)
        headers, rows = failure_report_rows(result.failed)

        assert headers[-1] == FAILURE_REASON_HEADER
        assert "Extra" in headers
        assert rows[0]["Mobile"] == "bad"
        assert rows[0][FAILURE_REASON_HEADER].startswith("Invalid or missing mobile number")
