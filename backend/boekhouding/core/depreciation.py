"""
Asset depreciation calculator: straight-line and declining-balance.
Elapsed time counts whole months only; amounts are Decimal throughout and
rounded to cents half-up when reported.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from boekhouding.core.money import ZERO, round_cents, to_decimal


class DepreciationMethod(str, Enum):
    STRAIGHT_LINE = "STRAIGHT_LINE"
    DECLINING_BALANCE = "DECLINING_BALANCE"


@dataclass(frozen=True)
class DepreciationAmount:
    annual: Decimal
    accumulated: Decimal


@dataclass(frozen=True)
class ScheduleEntry:
    year: int
    starting_book_value: Decimal
    depreciation_expense: Decimal
    accumulated_depreciation: Decimal
    ending_book_value: Decimal


@dataclass
class DepreciationSchedule:
    entries: list[ScheduleEntry] = field(default_factory=list)
    total_depreciation: Decimal = ZERO


def years_since_purchase(purchase_date: date, as_of: date) -> Decimal:
    """Complete months between the two dates, as fractional years (never negative)."""
    months = (as_of.year - purchase_date.year) * 12 + (as_of.month - purchase_date.month)
    return max(ZERO, Decimal(months) / Decimal("12"))


def calculate_depreciation(
    purchase_price,
    residual_value,
    method: DepreciationMethod | str,
    rate,
    useful_life: int,
    elapsed_years,
) -> DepreciationAmount:
    """
    Annual expense and accumulated depreciation after `elapsed_years`.

    Straight-line: (price - residual) / useful_life per year, pro rata.
    Declining balance: `rate`% of the previous year-end book value, applied for
    each complete year, stopping once book value reaches the residual value.
    Accumulated depreciation never exceeds price - residual.
    """
    price = to_decimal(purchase_price)
    residual = to_decimal(residual_value)
    elapsed = to_decimal(elapsed_years)
    depreciable_base = price - residual

    annual = ZERO
    accumulated = ZERO
    if DepreciationMethod(method) == DepreciationMethod.STRAIGHT_LINE:
        annual = depreciable_base / Decimal(useful_life)
        accumulated = annual * elapsed
    else:
        factor = to_decimal(rate) / Decimal("100")
        book_value = price
        for _ in range(int(elapsed)):
            year_expense = book_value * factor
            accumulated += year_expense
            book_value -= year_expense
            if book_value <= residual:
                break
        annual = book_value * factor

    accumulated = min(accumulated, depreciable_base)
    return DepreciationAmount(annual=round_cents(annual), accumulated=round_cents(accumulated))


def current_book_value(purchase_price, residual_value, accumulated) -> Decimal:
    residual = to_decimal(residual_value)
    return max(round_cents(to_decimal(purchase_price) - to_decimal(accumulated)), residual)


def annual_expense_for_year(
    purchase_price,
    residual_value,
    method: DepreciationMethod | str,
    rate,
    useful_life: int,
    starting_book_value,
) -> Decimal:
    """Expense of one schedule year, based on that year's starting book value."""
    residual = to_decimal(residual_value)
    if DepreciationMethod(method) == DepreciationMethod.STRAIGHT_LINE:
        return (to_decimal(purchase_price) - residual) / Decimal(useful_life)
    book_value = to_decimal(starting_book_value)
    expense = book_value * to_decimal(rate) / Decimal("100")
    return min(expense, book_value - residual)


def build_schedule(
    purchase_price,
    residual_value,
    method: DepreciationMethod | str,
    rate,
    useful_life: int,
) -> DepreciationSchedule:
    """
    Year-by-year plan for years 1..useful_life. The last year is clamped so the
    ending book value never drops below the residual value, and the plan stops
    as soon as the residual value is reached.
    """
    residual = to_decimal(residual_value)
    book_value = to_decimal(purchase_price)
    accumulated = ZERO
    schedule = DepreciationSchedule()

    for year in range(1, useful_life + 1):
        starting = book_value
        expense = annual_expense_for_year(
            purchase_price, residual, method, rate, useful_life, starting
        )
        accumulated += expense
        book_value -= expense

        if book_value < residual:
            adjustment = residual - book_value
            accumulated -= adjustment
            expense -= adjustment
            book_value = residual

        schedule.entries.append(
            ScheduleEntry(
                year=year,
                starting_book_value=round_cents(starting),
                depreciation_expense=round_cents(expense),
                accumulated_depreciation=round_cents(accumulated),
                ending_book_value=round_cents(book_value),
            )
        )
        if book_value == residual:
            break

    schedule.total_depreciation = round_cents(accumulated)
    return schedule
