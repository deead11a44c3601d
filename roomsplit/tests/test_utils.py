"""
Unit tests for identifier, money and payment helpers.
"""
import pytest
from decimal import Decimal

from roomsplit.utils.identifiers import dedupe_roommates, extract_id, peers_of, unique_ids
from roomsplit.utils.money import round_decimal, split_equally, to_decimal, to_minor_units
from roomsplit.utils.payment_utils import build_receipt_id, build_upi_payment_link


@pytest.mark.unit
class TestIdentifiers:

    @pytest.mark.parametrize("value,expected", [
        ("u1", "u1"),
        ({"_id": "u1", "name": "Asha"}, "u1"),
        ({"id": "u2"}, "u2"),
        ({"userId": {"_id": "u3"}}, "u3"),
        (None, ""),
        ({}, ""),
        (42, "42"),
    ])
    def test_extract_id(self, value, expected):
        assert extract_id(value) == expected

    def test_unique_ids_keeps_first_seen_order(self):
        assert unique_ids(["b", {"_id": "a"}, "b", None, "a", "c"]) == ["b", "a", "c"]

    def test_dedupe_roommates(self):
        tenants = [
            {"_id": "t1", "userId": "u1"},
            {"_id": "t2", "userId": {"_id": "u1"}},
            {"_id": "t3", "userId": "u2"},
            {"_id": "t4"},
        ]
        assert [t["_id"] for t in dedupe_roommates(tenants)] == ["t1", "t3"]

    def test_peers_excludes_viewer(self):
        people = [{"userId": "u1"}, {"userId": {"_id": "u2"}}, "u3"]
        assert peers_of(people, "u2") == [{"userId": "u1"}, "u3"]


@pytest.mark.unit
class TestMoney:

    def test_to_decimal_avoids_float_artefacts(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal("12.50") == Decimal("12.50")

    def test_round_half_up(self):
        assert round_decimal(Decimal("43.335")) == Decimal("43.34")
        assert round_decimal(Decimal("43.334")) == Decimal("43.33")

    @pytest.mark.parametrize("total,parts,share,remainder", [
        (Decimal("100"), 3, Decimal("33.33"), Decimal("0.01")),
        (Decimal("900"), 3, Decimal("300.00"), Decimal("0.00")),
        (Decimal("0.05"), 2, Decimal("0.02"), Decimal("0.01")),
        (Decimal("10"), 7, Decimal("1.42"), Decimal("0.06")),
    ])
    def test_split_equally(self, total, parts, share, remainder):
        assert split_equally(total, parts) == (share, remainder)
        assert share * parts + remainder == total

    def test_split_into_zero_parts(self):
        with pytest.raises(ValueError):
            split_equally(Decimal("10"), 0)

    def test_minor_units(self):
        assert to_minor_units(Decimal("300")) == 30000
        assert to_minor_units(Decimal("33.34")) == 3334


@pytest.mark.unit
class TestReceiptId:

    def test_short_id_kept_whole(self):
        assert build_receipt_id("abc123", 1717243200) == "exp_abc123_1717243200"

    def test_long_id_truncated_from_left(self):
        expense_id = "6650f1c2a9b8e4d3c2b1a0f9"
        receipt = build_receipt_id(expense_id * 2, 1717243200)

        assert len(receipt) == 40
        assert receipt.startswith("exp_")
        assert receipt.endswith("_1717243200")
        assert expense_id[-5:] in receipt

    def test_non_alphanumeric_removed(self):
        assert build_receipt_id("e-900", 1) == "exp_e900_1"

    def test_tiny_limit(self):
        assert len(build_receipt_id("abc", 1717243200, max_length=8)) <= 8


@pytest.mark.unit
class TestUpiLink:

    def test_link_format(self):
        link = build_upi_payment_link("asha@upi", "Asha", Decimal("300"), "e1", "Groceries")

        assert link == "upi://pay?pa=asha@upi&pn=Asha&tr=e1&tn=Groceries&am=300.00&cu=INR"

    def test_spaces_are_encoded(self):
        link = build_upi_payment_link("asha@upi", "Asha K", Decimal("10.5"), "e1", "Food delivery")

        assert "pn=Asha%20K" in link
        assert "tn=Food%20delivery" in link
        assert "am=10.50" in link

    def test_missing_name_falls_back(self):
        assert "pn=Roommate" in build_upi_payment_link("a@upi", "", Decimal("1"), "e1")
