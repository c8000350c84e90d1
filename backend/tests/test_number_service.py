# Overview: Pytest coverage for in-place record edits, reminders, payments, users and activities.

from datetime import datetime

import pytest

from numberflow.permissions import PermissionDeniedError
from numberflow.records import ACTIVITIES, NUMBERS, PORT_OUTS, REMINDERS, SALES, USERS
from numberflow.services import (
    activity_service,
    number_service,
    payment_service,
    reminder_service,
    user_service,
)
from numberflow.services.lifecycle_service import NotFoundError
from numberflow.validation import ConflictError, ValidationError


# =============================================================================
# INVENTORY EDITS
# =============================================================================


class TestNumberEdits:

    def test_status_to_non_rts_needs_date(self, engine, make_number):
        number_id = make_number("9876543210")
        with pytest.raises(ValidationError):
            number_service.update_number_status(engine, number_id, "Non-RTS")

    def test_status_change_appends_note(self, engine, state, make_number):
        number_id = make_number("9876543210", notes="sim in drawer")
        number_service.update_number_status(engine, number_id, "Non-RTS", "2024-08-01", note="waiting on KYC")

        number = state.find(NUMBERS, number_id)
        assert number["status"] == "Non-RTS"
        assert number["rts_date"] == datetime(2024, 8, 1)
        assert number["notes"] == "sim in drawer\nwaiting on KYC"

    def test_back_to_rts_clears_date(self, engine, state, make_number):
        number_id = make_number("9876543210", status="Non-RTS", rts_date=datetime(2024, 8, 1))
        number_service.update_number_status(engine, number_id, "RTS")
        number = state.find(NUMBERS, number_id)
        assert number["status"] == "RTS"
        assert number["rts_date"] is None

    def test_unknown_number(self, engine):
        with pytest.raises(NotFoundError):
            number_service.update_upload_status(engine, "missing", "Done")

    def test_bulk_upload_status(self, engine, state, make_number):
        ids = [make_number("9000000001"), make_number("9000000002")]
        result = number_service.bulk_update_upload_status(engine, ids + ["missing"], "Done")

        assert result.processed == 2
        assert result.skipped == 1
        assert all(n["upload_status"] == "Done" for n in state.snapshot(NUMBERS))

    def test_bad_upload_status(self, engine, make_number):
        with pytest.raises(ValidationError):
            number_service.bulk_update_upload_status(engine, [make_number("9000000001")], "Maybe")

    def test_assign_sets_name_and_location(self, engine, state, make_number):
        number_id = make_number("9876543210")
        number_service.assign_numbers(
            engine, [number_id], "Ravi", {"location_type": "Employee", "current_location": "Ravi's bag"}
        )
        number = state.find(NUMBERS, number_id)
        assert number["assigned_to"] == "Ravi"
        assert number["name"] == "Ravi"
        assert number["location_type"] == "Employee"
        assert number["current_location"] == "Ravi's bag"

    def test_assign_requires_employee(self, engine, make_number):
        with pytest.raises(ValidationError):
            number_service.assign_numbers(
                engine, [make_number("9876543210")], " ", {"location_type": "Store", "current_location": "Shop"}
            )

    def test_location_update(self, engine, state, make_number):
        number_id = make_number("9876543210")
        result = number_service.update_number_location(
            engine, [number_id], {"location_type": "Dealer", "current_location": "Sharma Telecom"}
        )
        assert result.mobiles == ["9876543210"]
        assert state.find(NUMBERS, number_id)["location_type"] == "Dealer"

    def test_check_in(self, engine, state, make_number):
        number_id = make_number("9876543210")
        number_service.check_in_number(engine, number_id)
        assert isinstance(state.find(NUMBERS, number_id)["check_in_date"], datetime)

    def test_safe_custody_date_rearms_flag(self, engine, state, doc_store, make_number):
        number_id = make_number(
            "9876543210", number_type="COCP", account_name="Acme", safe_custody_date=datetime(2024, 6, 1)
        )
        doc_store.update(NUMBERS, number_id, {"safe_custody_notification_sent": True}, engine.identity)

        number_service.update_safe_custody_date(engine, number_id, "2024-12-01")

        number = state.find(NUMBERS, number_id)
        assert number["safe_custody_date"] == datetime(2024, 12, 1)
        assert number["safe_custody_notification_sent"] is False

    def test_bulk_safe_custody_date(self, engine, state, make_number):
        ids = [make_number("9000000001"), make_number("9000000002")]
        result = number_service.bulk_update_safe_custody_date(engine, ids, datetime(2025, 1, 1))
        assert result.processed == 2
        assert {n["safe_custody_date"] for n in state.snapshot(NUMBERS)} == {datetime(2025, 1, 1)}


class TestSaleEdits:

    def test_sale_statuses(self, engine, state, make_number, sale_details):
        sale_id = engine.sell_number(make_number("9876543210"), sale_details)
        number_service.update_sale_statuses(engine, sale_id, payment_status="Done", upc_status="Generated")
        sale = state.find(SALES, sale_id)
        assert sale["payment_status"] == "Done"
        assert sale["upc_status"] == "Generated"

    def test_sale_status_needs_a_change(self, engine, make_number, sale_details):
        sale_id = engine.sell_number(make_number("9876543210"), sale_details)
        with pytest.raises(ValidationError):
            number_service.update_sale_statuses(engine, sale_id)

    def test_bulk_upc_then_port_out_payment(self, engine, state, make_number, sale_details):
        sale_ids = engine.bulk_sell_numbers(
            [make_number("9000000001"), make_number("9000000002")], sale_details
        ).ids
        number_service.bulk_update_upc_status(engine, sale_ids, "Generated")
        port_out_ids = engine.bulk_mark_as_ported_out(sale_ids).ids
        assert len(port_out_ids) == 2

        number_service.update_port_out_status(engine, port_out_ids[0], "Done")
        number_service.bulk_update_port_out_payment_status(engine, port_out_ids[1:], "Done")

        assert {p["payment_status"] for p in state.snapshot(PORT_OUTS)} == {"Done"}
        assert engine.delete_port_outs(port_out_ids).processed == 2


# =============================================================================
# REMINDERS
# =============================================================================


class TestReminders:

    def _reminder(self, engine, assigned_to="Ravi"):
        return reminder_service.add_reminder(
            engine, {"task_name": "Collect KYC", "assigned_to": assigned_to, "due_date": "2024-06-01"}
        )

    def test_add_reminder(self, engine, state):
        reminder_id = self._reminder(engine, ["Ravi", " ", "Asha Admin"])
        reminder = state.find(REMINDERS, reminder_id)
        assert reminder["assigned_to"] == ["Ravi", "Asha Admin"]
        assert reminder["status"] == "Pending"
        assert reminder["due_date"] == datetime(2024, 6, 1)
        assert reminder["sr_no"] == 1

    @pytest.mark.parametrize("data", [
        {"assigned_to": "Ravi", "due_date": "2024-06-01"},
        {"task_name": "x", "assigned_to": [], "due_date": "2024-06-01"},
        {"task_name": "x", "assigned_to": "Ravi"},
    ])
    def test_required_fields(self, engine, data):
        with pytest.raises(ValidationError):
            reminder_service.add_reminder(engine, data)

    def test_employee_completes_own(self, engine, employee_engine, state):
        reminder_id = self._reminder(engine, ["Ravi"])
        reminder_service.mark_reminder_done(employee_engine, reminder_id, note="done at noon")
        reminder = state.find(REMINDERS, reminder_id)
        assert reminder["status"] == "Done"
        assert isinstance(reminder["completion_date"], datetime)
        assert reminder["notes"] == "done at noon"

    def test_employee_cannot_complete_others(self, engine, employee_engine):
        reminder_id = self._reminder(engine, "Someone Else")
        with pytest.raises(PermissionDeniedError):
            reminder_service.mark_reminder_done(employee_engine, reminder_id)

    def test_only_admin_deletes(self, engine, employee_engine, state):
        reminder_id = self._reminder(engine)
        with pytest.raises(PermissionDeniedError):
            reminder_service.delete_reminder(employee_engine, reminder_id)
        reminder_service.delete_reminder(engine, reminder_id)
        assert state.find(REMINDERS, reminder_id) is None

    def test_visibility(self, engine, state, employee):
        self._reminder(engine, ["Ravi"])
        self._reminder(engine, "Asha Admin")
        assert len(state.visible_reminders(employee)) == 1
        assert len(state.visible_reminders(engine.identity)) == 2


# =============================================================================
# PAYMENTS
# =============================================================================


class TestPayments:

    def test_amount_must_be_positive(self, engine):
        for amount in (0, -5, "abc"):
            with pytest.raises(ValidationError):
                payment_service.add_payment(engine, {"vendor_name": "numberwale", "amount": amount})

    def test_vendor_summary(self, engine, state, make_number, sale_details):
        engine.sell_number(make_number("9000000001", purchase_price=100), sale_details)
        engine.sell_number(make_number("9000000002", purchase_price=50), dict(sale_details, sale_price=1))
        engine.sell_number(make_number("9000000003"), dict(sale_details, sold_to="numberatm"))
        payment_service.add_payment(engine, {"vendor_name": "numberwale", "amount": 400})
        payment_service.add_payment(engine, {"vendor_name": "numberwale", "amount": "100", "payment_date": "2024-04-01"})

        summary = payment_service.vendor_summary(state, "numberwale")

        assert summary["record_count"] == 2
        assert summary["total_purchase"] == 150
        assert summary["total_sale"] == 1000
        assert summary["total_paid"] == 500
        assert summary["remaining"] == 500
        assert [p["sr_no"] for p in summary["payments"]] == [1, 2]
        assert summary["payments"][1]["payment_date"] == datetime(2024, 4, 1)

    def test_vendors_merge_defaults_and_buyers(self, engine, state, make_number, sale_details):
        engine.sell_number(make_number("9000000001"), dict(sale_details, sold_to="New Buyer"))
        assert state.vendors(["numberwale"]) == ["numberwale", "New Buyer"]


# =============================================================================
# USERS AND ACTIVITIES
# =============================================================================


class TestUsers:

    def test_create_and_resolve(self, doc_store, admin):
        identity = user_service.get_identity(doc_store, "admin-1")
        assert identity == admin
        assert identity.is_admin
        assert user_service.get_identity(doc_store, "nobody") is None
        assert user_service.get_identity(doc_store, None) is None

    def test_duplicate_uid(self, doc_store, admin):
        with pytest.raises(ConflictError):
            user_service.create_user(doc_store, "admin-1", "Someone")

    def test_bad_role(self, doc_store):
        with pytest.raises(ValidationError):
            user_service.create_user(doc_store, "x", "X", role="owner")

    def test_delete_user(self, engine, state, employee):
        user_service.delete_user(engine, "emp-1")
        assert state.find(USERS, "emp-1") is None

    def test_cannot_delete_self(self, engine):
        with pytest.raises(ValidationError):
            user_service.delete_user(engine, "admin-1")

    def test_employee_cannot_delete_users(self, engine, employee_engine):
        with pytest.raises(PermissionDeniedError):
            user_service.delete_user(employee_engine, "admin-1")

    def test_employees_listing(self, state, admin, employee):
        assert state.employees() == ["Asha Admin", "Ravi"]


class TestActivities:

    def test_describe(self):
        assert activity_service.describe("Sold", []) == "Sold 0 numbers."
        assert activity_service.describe("Sold", ["9876543210"]) == "Sold 1 numbers: 9876543210."
        many = [f"90000000{i:02d}" for i in range(30)]
        assert activity_service.describe("Sold", many) == "Sold 30 numbers."
        assert activity_service.describe("Deleted", many, list_all=True).count("90000000") == 30

    def test_employee_sees_own_activities(self, engine, employee_engine, state, employee, make_number):
        make_number("9000000001")
        employee_engine.add_number({
            "mobile": "9000000002", "purchase_price": 10, "purchase_date": "2024-01-01",
        })
        own = state.visible_activities(employee)
        assert [a["employee_name"] for a in own] == ["Ravi"]
        assert len(state.visible_activities(engine.identity)) == 2

    def test_admin_deletes_activities(self, engine, employee_engine, state, make_number):
        make_number("9000000001")
        ids = [a["id"] for a in state.snapshot(ACTIVITIES)]
        with pytest.raises(PermissionDeniedError):
            activity_service.delete_activities(employee_engine, ids)
        result = activity_service.delete_activities(engine, ids + ["missing"])
        assert result.processed == 1
        assert result.skipped == 1
        assert state.snapshot(ACTIVITIES) == []
