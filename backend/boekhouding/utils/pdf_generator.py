"""
PDF export of a VAT declaration (BTW-aangifte) using ReportLab.
"""
import io
from datetime import date
from decimal import Decimal

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import (
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from boekhouding.utils.tax_constants import get_box_labels, get_section_titles

HEADER_COLOR = colors.HexColor("#154273")  # Rijksoverheid blue
LIGHT_GRAY = colors.HexColor("#f5f5f5")
DARK_GRAY = colors.HexColor("#333333")

# (section, box id, shows base, shows vat)
LAYOUT = [
    ("1", "1a", True, True),
    ("1", "1b", True, True),
    ("1", "1c", True, True),
    ("1", "1d", False, True),
    ("1", "1e", True, False),
    ("2", "2a", True, True),
    ("3", "3a", True, False),
    ("3", "3b", True, False),
    ("3", "3c", True, False),
    ("4", "4a", True, True),
    ("4", "4b", True, True),
    ("4", "4c", True, True),
]

OPTIONAL = {"1c", "1d", "3c", "4c"}


def format_euro(amount, decimals: int = 0) -> str:
    """Dutch notation: € 1.234 / € 1.234,56."""
    if amount is None:
        amount = Decimal("0")
    text = f"{Decimal(str(amount)):,.{decimals}f}"
    return "€ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name="FormTitle",
        fontSize=14,
        fontName="Helvetica-Bold",
        textColor=colors.white,
        spaceAfter=6,
    ))
    styles.add(ParagraphStyle(
        name="SectionTitle",
        fontSize=10,
        fontName="Helvetica-Bold",
        textColor=HEADER_COLOR,
        spaceBefore=8,
        spaceAfter=4,
    ))
    styles.add(ParagraphStyle(
        name="FieldLabel",
        fontSize=8,
        fontName="Helvetica",
        textColor=DARK_GRAY,
    ))
    styles.add(ParagraphStyle(
        name="Disclaimer",
        fontSize=7,
        fontName="Helvetica-Oblique",
        textColor=colors.gray,
    ))
    return styles


def _header_table(declaration: dict, styles) -> Table:
    data = [
        [
            Paragraph("<b>BTW-AANGIFTE</b>", styles["FormTitle"]),
            Paragraph(
                f"Periode {declaration['period']}<br/>Status: {declaration['status']}",
                styles["FieldLabel"],
            ),
        ]
    ]
    t = Table(data, colWidths=[10 * cm, 8 * cm])
    t.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("TOPPADDING", (0, 0), (-1, 0), 8),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
        ("LEFTPADDING", (0, 0), (-1, 0), 6),
    ]))
    return t


def _box_table(rows: list[tuple[str, str, str]], styles) -> Table:
    """Render (label, base, vat) rows as a three-column table."""
    data = [[Paragraph(label, styles["FieldLabel"]), base, vat] for label, base, vat in rows]
    t = Table(data, colWidths=[10 * cm, 4 * cm, 4 * cm])
    t.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
        ("ROWBACKGROUNDS", (0, 0), (-1, -1), [colors.white, LIGHT_GRAY]),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ("LEFTPADDING", (0, 0), (-1, -1), 4),
    ]))
    return t


def visible_boxes(declaration: dict) -> list[tuple[str, str, bool, bool]]:
    """Layout rows to print: optional boxes only when they carry a value."""
    rows = []
    for section, box_id, has_base, has_vat in LAYOUT:
        base = declaration.get(f"box{box_id}_base") if has_base else None
        vat = declaration.get(f"box{box_id}_vat") if has_vat else None
        if box_id in OPTIONAL and base is None and vat is None:
            continue
        rows.append((section, box_id, has_base, has_vat))
    return rows


def generate_declaration_pdf(declaration: dict) -> bytes:
    """`declaration` is the flat box1a_base ... box5d mapping."""
    year = declaration["start_date"].year
    labels = get_box_labels(year)
    sections = get_section_titles(year)
    styles = _styles()

    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4, rightMargin=1.5 * cm, leftMargin=1.5 * cm,
                            topMargin=2 * cm, bottomMargin=2 * cm)
    story = [
        _header_table(declaration, styles),
        Spacer(1, 0.3 * cm),
        Paragraph(
            f"Tijdvak {declaration['start_date'].strftime('%d-%m-%Y')} t/m "
            f"{declaration['end_date'].strftime('%d-%m-%Y')}",
            styles["FieldLabel"],
        ),
    ]

    by_section: dict[str, list] = {}
    for section, box_id, has_base, has_vat in visible_boxes(declaration):
        by_section.setdefault(section, []).append((
            f"{box_id}. {labels.get(box_id, box_id)}",
            format_euro(declaration.get(f"box{box_id}_base"), 2) if has_base else "",
            format_euro(declaration.get(f"box{box_id}_vat")) if has_vat else "",
        ))
    for section in ("1", "2", "3", "4"):
        if section not in by_section:
            continue
        story += [
            Paragraph(sections.get(section, section), styles["SectionTitle"]),
            _box_table([("", "Omzet", "Omzetbelasting")] + by_section[section], styles),
        ]

    box5d = Decimal(str(declaration.get("box5d") or 0))
    story += [
        Paragraph(sections.get("5", "5"), styles["SectionTitle"]),
        _box_table([
            (f"5a. {labels.get('5a', '5a')}", "", format_euro(declaration.get("box5a"))),
            (f"5b. {labels.get('5b', '5b')}", "", format_euro(declaration.get("box5b"))),
            ("5d. Te betalen" if box5d >= 0 else "5d. Terug te vragen", "", format_euro(abs(box5d))),
        ], styles),
    ]
    if declaration.get("notes"):
        story += [
            Paragraph("Opmerkingen", styles["SectionTitle"]),
            Paragraph(declaration["notes"], styles["FieldLabel"]),
        ]
    story += [
        Spacer(1, 0.5 * cm),
        Paragraph(
            f"Document gegenereerd op {date.today().strftime('%d-%m-%Y')}. "
            "Ter informatie, geen vervanging van de aangifte bij de Belastingdienst.",
            styles["Disclaimer"],
        ),
    ]
    doc.build(story)
    return buf.getvalue()
