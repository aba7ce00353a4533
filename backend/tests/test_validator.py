"""Tests for declaration consistency checks."""
from decimal import Decimal

from boekhouding.core.validator import validate_declaration


def _fields(**overrides):
    fields = {
        "box1a_base": Decimal("1000.00"),
        "box1a_vat": Decimal("210"),
        "box1b_base": Decimal("0"),
        "box1b_vat": Decimal("0"),
        "box1c_base": None,
        "box1c_vat": None,
        "box1d_vat": None,
        "box2a_base": Decimal("0"),
        "box2a_vat": Decimal("0"),
        "box4a_base": Decimal("0"),
        "box4a_vat": Decimal("0"),
        "box4b_base": Decimal("0"),
        "box4b_vat": Decimal("0"),
        "box4c_base": None,
        "box4c_vat": None,
        "box5a": Decimal("210"),
        "box5b": Decimal("40"),
        "box5d": Decimal("170"),
    }
    fields.update(overrides)
    return fields


def _codes(result):
    return [i.code for i in result.issues]


class TestValidateDeclaration:
    def test_consistent(self):
        result = validate_declaration(_fields())
        assert not result.has_errors
        assert result.issues == []

    def test_box5a_mismatch(self):
        result = validate_declaration(_fields(box5a=Decimal("211"), box5d=Decimal("171")))
        assert result.has_errors
        assert _codes(result) == ["BOX5A_MISMATCH"]

    def test_box5d_mismatch(self):
        result = validate_declaration(_fields(box5d=Decimal("100")))
        assert [i.code for i in result.errors] == ["BOX5D_MISMATCH"]

    def test_manual_boxes_count_towards_5a(self):
        result = validate_declaration(
            _fields(box1d_vat=Decimal("5"), box5a=Decimal("215"), box5d=Decimal("175"))
        )
        assert not result.has_errors

    def test_negative_base_warns(self):
        result = validate_declaration(_fields(box1b_base=Decimal("-20.00")))
        assert [i.code for i in result.warnings] == ["NEGATIVE_BASE"]
        assert result.warnings[0].field == "box1b_base"

    def test_empty_declaration(self):
        zeros = {k: (None if v is None else Decimal("0")) for k, v in _fields().items()}
        assert "EMPTY_DECLARATION" in _codes(validate_declaration(zeros))

    def test_late_invoices(self):
        result = validate_declaration(_fields(), late_invoice_count=2)
        assert [i.code for i in result.suggestions] == ["LATE_INVOICES"]

    def test_refund(self):
        result = validate_declaration(_fields(box5b=Decimal("300"), box5d=Decimal("-90")))
        assert "REFUND_DUE" in _codes(result)
        assert not result.has_errors

    def test_reverse_charge_without_deduction_right(self):
        fields = _fields(box4b_vat=Decimal("21"), box5a=Decimal("231"), box5d=Decimal("191"))
        assert "REVERSE_CHARGE_NOT_DEDUCTED" not in _codes(validate_declaration(fields))
        result = validate_declaration(fields, has_full_deduction_right=False)
        assert "REVERSE_CHARGE_NOT_DEDUCTED" in _codes(result)
