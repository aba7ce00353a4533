"""
Invoice line VAT engine: tax category classification and line pricing.

Every invoice line is priced and classified once, when it is written. The
declaration only ever reads the stored subtotal / vat_amount / vat_category.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from boekhouding.core.errors import InvalidInputError
from boekhouding.core.money import ZERO, round_cents, to_decimal


class Direction(str, Enum):
    SALES = "SALES"
    PURCHASE = "PURCHASE"


class Jurisdiction(str, Enum):
    EU = "EU"
    NON_EU = "NON_EU"


class TaxCategory(str, Enum):
    DOMESTIC_HIGH = "DOMESTIC_HIGH"          # 21%
    DOMESTIC_LOW = "DOMESTIC_LOW"            # 9%
    DOMESTIC_OTHER = "DOMESTIC_OTHER"        # any other NL rate
    ZERO = "ZERO"                            # 0% / not taxed in NL
    REVERSE_CHARGE_NL = "REVERSE_CHARGE_NL"  # domestic reverse charge
    REVERSE_CHARGE_EU = "REVERSE_CHARGE_EU"  # acquisitions from EU countries
    IMPORT_NON_EU = "IMPORT_NON_EU"          # supplies from outside the EU
    IC_SUPPLY = "IC_SUPPLY"                  # intra-community supply
    IC_DISTANCE_SALES = "IC_DISTANCE_SALES"
    EXPORT_NON_EU = "EXPORT_NON_EU"
    OTHER_FOREIGN = "OTHER_FOREIGN"


HIGH_RATE = Decimal("0.21")
LOW_RATE = Decimal("0.09")


@dataclass(frozen=True)
class PricedLine:
    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal


def classify_line(
    vat_rate,
    reverse_charge: bool,
    jurisdiction: Jurisdiction | str | None,
    direction: Direction | str,
) -> TaxCategory:
    """
    Map a line to exactly one tax category.

    The jurisdiction is not validated here: a reverse-charge line without a
    valid jurisdiction must have been rejected by validate_line() already.
    """
    if not reverse_charge:
        rate = to_decimal(vat_rate)
        if rate == HIGH_RATE:
            return TaxCategory.DOMESTIC_HIGH
        if rate == LOW_RATE:
            return TaxCategory.DOMESTIC_LOW
        if rate == ZERO:
            return TaxCategory.ZERO
        return TaxCategory.DOMESTIC_OTHER

    is_eu = Jurisdiction(jurisdiction) == Jurisdiction.EU
    if Direction(direction) == Direction.PURCHASE:
        return TaxCategory.REVERSE_CHARGE_EU if is_eu else TaxCategory.IMPORT_NON_EU
    return TaxCategory.IC_SUPPLY if is_eu else TaxCategory.EXPORT_NON_EU


def price_line(quantity, unit_price, vat_rate, reverse_charge: bool) -> PricedLine:
    """
    subtotal = quantity x unit price, vat = subtotal x rate.
    Reverse-charge VAT is kept on the line (the declaration needs it) but is
    not part of the payable total.
    """
    subtotal = to_decimal(quantity) * to_decimal(unit_price)
    vat_amount = subtotal * to_decimal(vat_rate)
    total = subtotal if reverse_charge else subtotal + vat_amount
    return PricedLine(
        subtotal=round_cents(subtotal),
        vat_amount=round_cents(vat_amount),
        total=round_cents(total),
    )


def validate_line(
    quantity,
    unit_price,
    vat_rate,
    reverse_charge: bool,
    jurisdiction: Jurisdiction | str | None,
    deductibility_percentage=100,
) -> None:
    if to_decimal(quantity) < 0:
        raise InvalidInputError("Quantity cannot be negative.")
    if to_decimal(unit_price) < 0:
        raise InvalidInputError("Unit price cannot be negative.")
    if not ZERO <= to_decimal(vat_rate) <= 1:
        raise InvalidInputError("VAT rate must be between 0 and 1.")
    if not ZERO <= to_decimal(deductibility_percentage) <= 100:
        raise InvalidInputError("Deductibility percentage must be between 0 and 100.")
    if isinstance(jurisdiction, Jurisdiction):
        jurisdiction = jurisdiction.value
    if reverse_charge:
        if jurisdiction not in {j.value for j in Jurisdiction}:
            raise InvalidInputError(
                "A reverse-charge line needs a jurisdiction: 'EU' or 'NON_EU'."
            )
    elif jurisdiction is not None:
        raise InvalidInputError("Jurisdiction is only allowed on reverse-charge lines.")
