"""
VAT declaration assembly: turns the invoices in scope for a period into a
complete set of box values. Pure, no database access.
"""
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum

from boekhouding.core.errors import InvalidInputError
from boekhouding.core.money import to_decimal
from boekhouding.core.vat_boxes import (
    BoxValue,
    DeclarationBoxes,
    aggregate_boxes,
    apply_totals,
    compute_box5a,
    compute_deductible_vat,
)
from boekhouding.core.vat_lines import Direction


class PeriodType(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"


class DeclarationStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    FINAL = "FINAL"


# Boxes that can be entered by hand: field name -> (box id, part)
MANUAL_FIELDS = {
    "box1c_base": ("1c", "base"),
    "box1c_vat": ("1c", "vat"),
    "box1d_vat": ("1d", "vat"),
    "box3c_base": ("3c", "base"),
    "box4c_base": ("4c", "base"),
    "box4c_vat": ("4c", "vat"),
}


@dataclass
class DeclarationResult:
    period: str
    period_type: PeriodType
    start_date: date
    end_date: date
    boxes: DeclarationBoxes
    invoice_ids: list = field(default_factory=list)
    late_invoice_count: int = 0
    status: DeclarationStatus = DeclarationStatus.DRAFT

    def as_fields(self) -> dict:
        return {
            "period": self.period,
            "period_type": PeriodType(self.period_type).value,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "status": DeclarationStatus(self.status).value,
            **self.boxes.as_fields(),
        }


def generate_period_string(start_date: date, period_type: PeriodType | str) -> str:
    """'2025-03' for monthly periods, '2025-Q1' for quarterly ones."""
    if PeriodType(period_type) == PeriodType.MONTHLY:
        return f"{start_date.year}-{start_date.month:02d}"
    quarter = (start_date.month - 1) // 3 + 1
    return f"{start_date.year}-Q{quarter}"


def monthly_periods(first: date, last: date) -> list[dict]:
    """Every calendar month from `first` up to and including `last`."""
    periods = []
    year, month = first.year, first.month
    while (year, month) <= (last.year, last.month):
        start = date(year, month, 1)
        next_year, next_month = (year + 1, 1) if month == 12 else (year, month + 1)
        end = date.fromordinal(date(next_year, next_month, 1).toordinal() - 1)
        periods.append(
            {
                "period": generate_period_string(start, PeriodType.MONTHLY),
                "period_type": PeriodType.MONTHLY,
                "start_date": start,
                "end_date": end,
            }
        )
        year, month = next_year, next_month
    return periods


def split_by_direction(invoices) -> tuple[list, list]:
    sales, purchases = [], []
    for invoice in invoices:
        if Direction(invoice.direction) == Direction.SALES:
            sales.append(invoice)
        else:
            purchases.append(invoice)
    return sales, purchases


def build_declaration(
    invoices,
    start_date: date,
    end_date: date,
    period_type: PeriodType | str,
    period: str | None = None,
    has_full_deduction_right: bool = True,
    box1d_vat=None,
) -> DeclarationResult:
    """
    Classified, priced invoices in scope -> declaration boxes.

    `invoices` must already be filtered to posted, not yet attributed
    invoices (late invoices issued before start_date included).
    """
    if end_date < start_date:
        raise InvalidInputError("End date must not be before start date.")
    invoices = list(invoices)
    sales, purchases = split_by_direction(invoices)

    boxes = aggregate_boxes(sales, purchases)
    apply_totals(boxes, compute_deductible_vat(purchases, has_full_deduction_right))

    result = DeclarationResult(
        period=period or generate_period_string(start_date, period_type),
        period_type=PeriodType(period_type),
        start_date=start_date,
        end_date=end_date,
        boxes=boxes,
        invoice_ids=[inv.id for inv in invoices],
        late_invoice_count=sum(1 for inv in invoices if inv.issue_date < start_date),
    )
    if box1d_vat is not None:
        apply_manual_boxes(result, {"box1d_vat": box1d_vat})
    return result


def whole_euros(value, name: str) -> Decimal:
    """Box VAT is declared in whole euros; anything else is rejected."""
    amount = to_decimal(value)
    if not amount.is_finite() or amount != amount.to_integral_value():
        raise InvalidInputError(f"{name} must be a whole euro amount.")
    return amount


def apply_manual_boxes(result: DeclarationResult, manual: dict) -> DeclarationResult:
    """
    Overlay manually entered values (see MANUAL_FIELDS) on a calculated
    result and recompute 5a/5d. None leaves the calculated value in place.
    """
    boxes = result.boxes
    for name, value in manual.items():
        if value is None:
            continue
        box_id, part = MANUAL_FIELDS[name]
        amount = whole_euros(value, name) if part == "vat" else to_decimal(value)
        boxes.boxes[box_id] = replace(boxes.get(box_id), **{part: amount})
    boxes.box5a = compute_box5a(boxes.boxes)
    boxes.box5d = boxes.box5a - boxes.box5b
    return result


def recompute_totals(vat_by_box: dict, box5b) -> tuple[Decimal, Decimal]:
    """
    5a/5d after manual overrides. `vat_by_box` maps box id -> VAT (or None)
    for the output-tax boxes.
    """
    box5a = compute_box5a(
        {k: BoxValue(vat=None if v is None else to_decimal(v)) for k, v in vat_by_box.items()}
    )
    return box5a, box5a - to_decimal(box5b)
