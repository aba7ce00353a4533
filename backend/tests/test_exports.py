"""Tests for PDF / XML export of a declaration."""
from datetime import date
from decimal import Decimal

import pytest
from lxml import etree

from boekhouding.utils.pdf_generator import format_euro, generate_declaration_pdf, visible_boxes
from boekhouding.utils.tax_constants import get_box_labels, load_tax_constants
from boekhouding.utils.xml_generator import generate_declaration_xml

REQUIRED = (
    "box1a_base", "box1a_vat", "box1b_base", "box1b_vat", "box1e_base",
    "box2a_base", "box2a_vat", "box3a_base", "box3b_base",
    "box4a_base", "box4a_vat", "box4b_base", "box4b_vat",
)


def _declaration(**overrides):
    data = {
        "id": 1,
        "period": "2025-Q1",
        "period_type": "QUARTERLY",
        "start_date": date(2025, 1, 1),
        "end_date": date(2025, 3, 31),
        "status": "FINAL",
        "notes": None,
        "box1c_base": None,
        "box1c_vat": None,
        "box1d_vat": None,
        "box3c_base": None,
        "box4c_base": None,
        "box4c_vat": None,
        "box5a": Decimal("210"),
        "box5b": Decimal("43"),
        "box5d": Decimal("167"),
    }
    data.update({name: Decimal("0") for name in REQUIRED})
    data.update(box1a_base=Decimal("1000.00"), box1a_vat=Decimal("210"))
    data.update(overrides)
    return data


class TestTaxConstants:
    def test_labels_loaded(self):
        labels = get_box_labels(2025)
        assert labels["1a"].startswith("Leveringen/diensten belast met hoog tarief")
        assert "5d" in labels

    def test_fallback_to_latest_year(self):
        assert load_tax_constants(2031)["year"] == 2025

    def test_no_earlier_year(self):
        with pytest.raises(FileNotFoundError):
            load_tax_constants(2019)


class TestVisibleBoxes:
    def test_optional_boxes_hidden_when_empty(self):
        ids = [box_id for _, box_id, _, _ in visible_boxes(_declaration())]
        assert "1c" not in ids
        assert "1d" not in ids
        assert "4c" not in ids
        assert "1a" in ids
        assert "3b" in ids

    def test_optional_box_shown_with_value(self):
        ids = [box_id for _, box_id, _, _ in visible_boxes(_declaration(box1d_vat=Decimal("5")))]
        assert "1d" in ids


class TestFormatEuro:
    def test_dutch_notation(self):
        assert format_euro(Decimal("1234.5"), 2) == "€ 1.234,50"
        assert format_euro(Decimal("1234")) == "€ 1.234"
        assert format_euro(None) == "€ 0"


class TestPdf:
    def test_generates_pdf(self):
        pdf = generate_declaration_pdf(_declaration(notes="Q1 aangifte"))
        assert pdf.startswith(b"%PDF")

    def test_refund(self):
        pdf = generate_declaration_pdf(_declaration(box5d=Decimal("-50")))
        assert pdf.startswith(b"%PDF")


class TestXml:
    def test_structure(self):
        root = etree.fromstring(generate_declaration_xml(_declaration()))
        assert root.get("tijdvak") == "2025-Q1"
        assert root.get("status") == "FINAL"
        codes = {el.get("code"): el.text for el in root.iter("{*}Vak")}
        assert codes["1a_OMZET"] == "1000.00"
        assert codes["1a_BTW"] == "210"
        assert codes["5d"] == "167"
        assert "1c_OMZET" not in codes
        assert "3b_BTW" not in codes

    def test_optional_box_exported_when_set(self):
        root = etree.fromstring(
            generate_declaration_xml(_declaration(box4c_base=Decimal("80.00"), box4c_vat=Decimal("16")))
        )
        codes = {el.get("code"): el.text for el in root.iter("{*}Vak")}
        assert codes["4c_OMZET"] == "80.00"
        assert codes["4c_BTW"] == "16"

    def test_notes(self):
        root = etree.fromstring(generate_declaration_xml(_declaration(notes="privégebruik")))
        assert root.findtext("{*}Opmerkingen") == "privégebruik"
