# Overview: Pytest coverage for digital root, serial numbers, sanitizing and snapshots.

from datetime import date, datetime
from types import MappingProxyType

import pytest

from numberflow.records import NumberSnapshot
from numberflow.services.numbering import (
    UNSET,
    contains_unset,
    digital_root,
    is_valid_mobile,
    next_sr_no,
    sanitize,
)
from numberflow.time_utils import is_today_or_past, parse_import_date


# =============================================================================
# DIGITAL ROOT
# =============================================================================


class TestDigitalRoot:

    @pytest.mark.parametrize("mobile,expected", [
        ("9876543210", 9),
        ("9999999999", 9),
        ("1000000000", 1),
        ("5555555555", 5),
        ("1234512345", 3),
    ])
    def test_known_values(self, mobile, expected):
        assert digital_root(mobile) == expected

    def test_all_nines_is_nine(self):
        for length in (1, 5, 10):
            assert digital_root("9" * length) == 9

    def test_deterministic(self):
        first = digital_root("9876543210")
        digital_root("1234567891")
        assert digital_root("9876543210") == first
        assert 1 <= first <= 9


# =============================================================================
# SERIAL NUMBERS
# =============================================================================


class TestNextSrNo:

    def test_empty_collection_starts_at_one(self):
        assert next_sr_no([]) == 1

    def test_max_plus_one(self):
        assert next_sr_no([{"sr_no": 3}, {"sr_no": 7}, {"sr_no": 1}]) == 8

    def test_missing_sr_no_counts_as_zero(self):
        assert next_sr_no([{"mobile": "9876543210"}]) == 1
        assert next_sr_no([{"sr_no": None}, {"sr_no": 2}]) == 3


# =============================================================================
# SANITIZER
# =============================================================================


class TestSanitize:

    def test_nested_unset_becomes_none(self):
        value = {"a": UNSET, "b": [1, UNSET, {"c": UNSET}], "d": (UNSET,)}
        assert sanitize(value) == {"a": None, "b": [1, None, {"c": None}], "d": [None]}

    def test_dates_pass_through(self):
        stamp = datetime(2024, 5, 1, 10, 30)
        day = date(2024, 5, 1)
        result = sanitize({"when": stamp, "day": day})
        assert result["when"] is stamp
        assert result["day"] is day

    def test_idempotent(self):
        value = {"x": UNSET, "y": {"z": [UNSET, 2]}, "w": "text"}
        once = sanitize(value)
        assert sanitize(once) == once
        assert not contains_unset(once)

    def test_read_only_mappings_become_dicts(self):
        result = sanitize(MappingProxyType({"a": MappingProxyType({"b": UNSET})}))
        assert result == {"a": {"b": None}}
        assert type(result["a"]) is dict

    def test_unset_is_falsy_singleton(self):
        assert not UNSET
        assert repr(UNSET) == "UNSET"
        assert type(UNSET)() is UNSET


class TestMobileFormat:

    @pytest.mark.parametrize("mobile", ["9876543210", "0000000000"])
    def test_valid(self, mobile):
        assert is_valid_mobile(mobile)

    @pytest.mark.parametrize("mobile", [
        "987654321", "98765432100", "98765x3210", "", None, 9876543210,
        "\u0669\u0668\u0667\u0666\u0665\u0664\u0663\u0662\u0661\u0660", "9876543210\n",
    ])
    def test_invalid(self, mobile):
        assert not is_valid_mobile(mobile)


# =============================================================================
# SNAPSHOTS
# =============================================================================


class TestNumberSnapshot:

    def test_snapshot_drops_id_and_freezes(self):
        record = {"id": "abc", "mobile": "9876543210", "notes": UNSET, "tags": ["a"]}
        snapshot = NumberSnapshot.from_record(record)

        assert "id" not in snapshot.data
        assert snapshot.get("notes") is None
        with pytest.raises(TypeError):
            snapshot.data["mobile"] = "1111111111"

    def test_snapshot_is_independent_of_source(self):
        record = {"mobile": "9876543210", "tags": ["a"]}
        snapshot = NumberSnapshot.from_record(record)
        record["tags"].append("b")
        record["mobile"] = "1234567890"

        assert snapshot.to_document() == {"mobile": "9876543210", "tags": ["a"]}

    def test_restore_applies_overrides(self):
        snapshot = NumberSnapshot.from_record({"mobile": "9876543210", "assigned_to": "Ravi"})
        restored = snapshot.restore(assigned_to="Unassigned", sr_no=4)
        assert restored == {"mobile": "9876543210", "assigned_to": "Unassigned", "sr_no": 4}
        assert snapshot.get("assigned_to") == "Ravi"

    def test_from_empty_document(self):
        assert NumberSnapshot.from_document(None) is None
        assert NumberSnapshot.from_document({}) is None


# =============================================================================
# DATES
# =============================================================================


class TestImportDates:

    @pytest.mark.parametrize("raw,expected", [
        ("05-01-2024", datetime(2024, 1, 5)),
        ("13-12-2024", datetime(2024, 12, 13)),
        ("12-31-2024", datetime(2024, 12, 31)),
        ("2024-02-29", datetime(2024, 2, 29)),
        ("03/15/2024", datetime(2024, 3, 15)),
        ("2024/03/15", datetime(2024, 3, 15)),
        ("1/5/24", datetime(2024, 1, 5)),
        ("1/5/2024", datetime(2024, 1, 5)),
    ])
    def test_formats(self, raw, expected):
        assert parse_import_date(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "not a date", "2024-13-45", None, 12])
    def test_unparseable(self, raw):
        assert parse_import_date(raw) is None

    def test_today_or_past_compares_days(self):
        now = datetime(2024, 6, 10, 8, 0)
        assert is_today_or_past(datetime(2024, 6, 10, 23, 59), now)
        assert is_today_or_past(datetime(2024, 6, 9), now)
        assert not is_today_or_past(datetime(2024, 6, 11), now)
        assert not is_today_or_past(None, now)
