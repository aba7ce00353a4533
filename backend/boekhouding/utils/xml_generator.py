"""
XML export of a VAT declaration. One <Rubriek> per section, one <Vak>
per box; optional boxes are left out when they carry no value.
"""
from lxml import etree

from boekhouding.utils.pdf_generator import visible_boxes
from boekhouding.utils.tax_constants import get_box_labels

NS = "urn:boekhouding:btw:1.0"


def _q(tag: str) -> str:
    return f"{{{NS}}}{tag}"


def _add_field(parent: etree._Element, code: str, value, label: str = "") -> None:
    el = etree.SubElement(parent, _q("Vak"), code=code)
    if label:
        el.set("omschrijving", label)
    el.text = str(value) if value is not None else ""


def generate_declaration_xml(declaration: dict) -> bytes:
    labels = get_box_labels(declaration["start_date"].year)

    root = etree.Element(_q("BtwAangifte"), nsmap={None: NS})
    root.set("tijdvak", declaration["period"])
    root.set("status", str(getattr(declaration["status"], "value", declaration["status"])))
    root.set("generator", "boekhouding")

    period = etree.SubElement(root, _q("Tijdvak"))
    _add_field(period, "BEGIN", declaration["start_date"].isoformat(), "Begindatum")
    _add_field(period, "EIND", declaration["end_date"].isoformat(), "Einddatum")

    sections: dict[str, etree._Element] = {}
    for section, box_id, has_base, has_vat in visible_boxes(declaration):
        if section not in sections:
            sections[section] = etree.SubElement(root, _q("Rubriek"), id=section)
        parent = sections[section]
        label = labels.get(box_id, box_id)
        if has_base:
            _add_field(parent, f"{box_id}_OMZET", declaration.get(f"box{box_id}_base") or 0, label)
        if has_vat:
            _add_field(parent, f"{box_id}_BTW", declaration.get(f"box{box_id}_vat") or 0, label)

    totals = etree.SubElement(root, _q("Rubriek"), id="5")
    for box_id in ("5a", "5b", "5d"):
        _add_field(totals, box_id, declaration.get(f"box{box_id}") or 0, labels.get(box_id, box_id))

    if declaration.get("notes"):
        etree.SubElement(root, _q("Opmerkingen")).text = declaration["notes"]

    return etree.tostring(root, pretty_print=True, xml_declaration=True, encoding="UTF-8")
