"""
Dutch VAT return (BTW-aangifte) box aggregation and input-tax deduction.

Box structure (Belastingdienst):
  1a  Leveringen/diensten belast met hoog tarief
  1b  Leveringen/diensten belast met laag tarief
  1c  Leveringen/diensten belast met overige tarieven
  1d  Privégebruik (manual)
  1e  Leveringen/diensten belast met 0% of niet bij u belast
  2a  Leveringen/diensten waarbij de heffing naar u is verlegd
  3a  Leveringen naar landen buiten de EU
  3b  Leveringen naar of diensten in landen binnen de EU
  3c  Installatie/afstandsverkopen binnen de EU
  4a  Leveringen/diensten uit landen buiten de EU
  4b  Leveringen/diensten uit landen binnen de EU
  4c  Overige buitenlandse prestaties
  5a  Verschuldigde omzetbelasting
  5b  Voorbelasting
  5d  Te betalen / terug te vragen

Invoices and lines are read by attribute: an invoice has `lines`, a line has
`subtotal`, `vat_amount`, `vat_category`, `is_deductible` and
`deductibility_percentage`. ORM rows and plain objects both qualify.
"""
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, ROUND_UP, Decimal

from boekhouding.core.errors import InvalidInputError
from boekhouding.core.money import ZERO, round_cents, round_whole, to_decimal
from boekhouding.core.vat_lines import Direction, TaxCategory

BOX_CATEGORIES: dict[str, frozenset[TaxCategory]] = {
    "1a": frozenset({TaxCategory.DOMESTIC_HIGH}),
    "1b": frozenset({TaxCategory.DOMESTIC_LOW}),
    "1c": frozenset({TaxCategory.DOMESTIC_OTHER}),
    "1e": frozenset({TaxCategory.ZERO}),
    "2a": frozenset({TaxCategory.REVERSE_CHARGE_NL}),
    "3a": frozenset({TaxCategory.EXPORT_NON_EU}),
    "3b": frozenset({TaxCategory.IC_SUPPLY}),
    "3c": frozenset({TaxCategory.IC_DISTANCE_SALES}),
    "4a": frozenset({TaxCategory.IMPORT_NON_EU}),
    "4b": frozenset({TaxCategory.REVERSE_CHARGE_EU}),
    "4c": frozenset({TaxCategory.OTHER_FOREIGN}),
}

BOX_DIRECTIONS: dict[str, Direction] = {
    "1a": Direction.SALES,
    "1b": Direction.SALES,
    "1c": Direction.SALES,
    "1e": Direction.SALES,
    "3a": Direction.SALES,
    "3b": Direction.SALES,
    "3c": Direction.SALES,
    "2a": Direction.PURCHASE,
    "4a": Direction.PURCHASE,
    "4b": Direction.PURCHASE,
    "4c": Direction.PURCHASE,
}

BASE_ONLY_BOXES = frozenset({"1e", "3a", "3b", "3c"})

# Shown only when they carry a value.
OPTIONAL_BOXES = frozenset({"1c", "1d", "3c", "4c"})

# Boxes whose VAT adds up to 5a. 1d has no category: it is a manual entry.
OUTPUT_TAX_BOXES = ("1a", "1b", "1c", "1d", "2a", "4a", "4b", "4c")

# Whole-euro rounding per box. Output tax rounds down, input tax (5b) rounds up.
BOX_VAT_ROUNDING: dict[str, str] = {
    "1a": ROUND_DOWN,
    "1b": ROUND_DOWN,
    "1c": ROUND_DOWN,
    "2a": ROUND_DOWN,
    "4a": ROUND_DOWN,
    "4b": ROUND_DOWN,
    "4c": ROUND_DOWN,
    "5b": ROUND_UP,
}

REVERSE_CHARGE_CATEGORIES = frozenset(
    {
        TaxCategory.REVERSE_CHARGE_NL,
        TaxCategory.REVERSE_CHARGE_EU,
        TaxCategory.IMPORT_NON_EU,
    }
)


@dataclass
class BoxValue:
    """Base and VAT of one declaration box. None means 'not filled in'."""

    base: Decimal | None = None
    vat: Decimal | None = None
    line_count: int = 0

    @property
    def is_empty(self) -> bool:
        return self.base is None and self.vat is None


@dataclass
class DeclarationBoxes:
    boxes: dict[str, BoxValue] = field(default_factory=dict)
    box5a: Decimal = ZERO
    box5b: Decimal = ZERO
    box5d: Decimal = ZERO

    def get(self, box_id: str) -> BoxValue:
        return self.boxes.get(box_id, BoxValue())

    def as_fields(self) -> dict:
        """Flat box1a_base ... box5d mapping (the persisted/exposed shape)."""
        fields = {}
        for box_id in BOX_CATEGORIES:
            value = self.get(box_id)
            fields[f"box{box_id}_base"] = value.base
            if box_id not in BASE_ONLY_BOXES:
                fields[f"box{box_id}_vat"] = value.vat
        fields["box1d_vat"] = self.get("1d").vat
        fields["box5a"] = self.box5a
        fields["box5b"] = self.box5b
        fields["box5d"] = self.box5d
        return fields


def _category(line) -> TaxCategory:
    return TaxCategory(line.vat_category)


def box_direction(box_id: str) -> Direction:
    try:
        return BOX_DIRECTIONS[box_id]
    except KeyError:
        raise InvalidInputError(f"Invalid box: {box_id}") from None


def line_in_box(line, box_id: str) -> bool:
    """The one filter used both for aggregation and for box drill-down."""
    try:
        categories = BOX_CATEGORIES[box_id]
    except KeyError:
        raise InvalidInputError(f"Invalid box: {box_id}") from None
    return _category(line) in categories


def aggregate_box(invoices, box_id: str) -> BoxValue:
    """
    Sum subtotal and VAT of every line in the box's categories.
    Base is rounded to cents (half-up), VAT to whole euros using the box's
    rounding mode. Optional boxes without any line stay empty (None).
    """
    base = ZERO
    vat = ZERO
    count = 0
    for invoice in invoices:
        for line in invoice.lines:
            if line_in_box(line, box_id):
                base += to_decimal(line.subtotal)
                vat += to_decimal(line.vat_amount)
                count += 1

    if count == 0 and box_id in OPTIONAL_BOXES:
        return BoxValue()

    rounded_vat = None
    if box_id not in BASE_ONLY_BOXES:
        rounded_vat = round_whole(vat, BOX_VAT_ROUNDING[box_id])
    return BoxValue(base=round_cents(base), vat=rounded_vat, line_count=count)


def compute_box5a(boxes: dict[str, BoxValue]) -> Decimal:
    """Sum of the already rounded box VAT values, never a re-rounded total."""
    total = ZERO
    for box_id in OUTPUT_TAX_BOXES:
        value = boxes.get(box_id)
        if value is not None and value.vat is not None:
            total += value.vat
    return total


def aggregate_boxes(sales_invoices, purchase_invoices) -> DeclarationBoxes:
    """Fill boxes 1a-4c and 5a from invoices already filtered to the period scope."""
    sources = {
        Direction.SALES: list(sales_invoices),
        Direction.PURCHASE: list(purchase_invoices),
    }
    boxes = {
        box_id: aggregate_box(sources[direction], box_id)
        for box_id, direction in BOX_DIRECTIONS.items()
    }
    return DeclarationBoxes(boxes=boxes, box5a=compute_box5a(boxes))


def compute_deductible_vat(purchase_invoices, has_full_deduction_right: bool = True) -> Decimal:
    """
    Box 5b (voorbelasting).

    Accumulates vat_amount x deductibility% unrounded over deductible purchase
    lines and rounds the total up to whole euros once. Reverse-charge
    categories only count with a full deduction right.
    """
    total = ZERO
    for invoice in purchase_invoices:
        for line in invoice.lines:
            if not line.is_deductible:
                continue
            if _category(line) in REVERSE_CHARGE_CATEGORIES and not has_full_deduction_right:
                continue
            pct = line.deductibility_percentage
            pct = Decimal("100") if pct is None else to_decimal(pct)
            total += to_decimal(line.vat_amount) * pct / Decimal("100")
    return round_whole(total, BOX_VAT_ROUNDING["5b"])


def apply_totals(result: DeclarationBoxes, box5b: Decimal) -> DeclarationBoxes:
    """5a is already set; 5d = 5a - 5b (both whole euros)."""
    result.box5b = box5b
    result.box5d = result.box5a - box5b
    return result
