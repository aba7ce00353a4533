"""
Declaration consistency checks and hints.
Works on the flat declaration shape (box1a_base ... box5d).
"""
from dataclasses import dataclass, field
from decimal import Decimal

from boekhouding.core.money import ZERO, to_decimal
from boekhouding.core.vat_boxes import OUTPUT_TAX_BOXES


@dataclass
class ValidationIssue:
    level: str  # 'error' | 'warning' | 'info'
    code: str
    message: str
    field: str | None = None


@dataclass
class ValidationResult:
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(i.level == "error" for i in self.issues)

    @property
    def errors(self):
        return [i for i in self.issues if i.level == "error"]

    @property
    def warnings(self):
        return [i for i in self.issues if i.level == "warning"]

    @property
    def suggestions(self):
        return [i for i in self.issues if i.level == "info"]


def _value(fields: dict, name: str) -> Decimal:
    return to_decimal(fields.get(name))


def validate_declaration(
    fields: dict,
    late_invoice_count: int = 0,
    has_full_deduction_right: bool = True,
) -> ValidationResult:
    result = ValidationResult()

    # 1. 5a must equal the sum of the output-tax boxes
    expected_5a = sum(
        (_value(fields, f"box{box_id}_vat") for box_id in sorted(OUTPUT_TAX_BOXES)), ZERO
    )
    if _value(fields, "box5a") != expected_5a:
        result.issues.append(
            ValidationIssue(
                level="error",
                code="BOX5A_MISMATCH",
                message=f"Box 5a ({fields.get('box5a')}) differs from the sum of box VAT ({expected_5a}).",
                field="box5a",
            )
        )

    # 2. 5d = 5a - 5b
    expected_5d = _value(fields, "box5a") - _value(fields, "box5b")
    if _value(fields, "box5d") != expected_5d:
        result.issues.append(
            ValidationIssue(
                level="error",
                code="BOX5D_MISMATCH",
                message=f"Box 5d ({fields.get('box5d')}) should be 5a - 5b = {expected_5d}.",
                field="box5d",
            )
        )

    # 3. Negative bases (credit notes exceeding turnover)
    for name in sorted(k for k in fields if k.endswith("_base")):
        if fields[name] is not None and _value(fields, name) < 0:
            result.issues.append(
                ValidationIssue(
                    level="warning",
                    code="NEGATIVE_BASE",
                    message=f"{name} is negative ({fields[name]}). Check credit notes.",
                    field=name,
                )
            )

    # 4. Nothing to declare
    if all(
        _value(fields, k) == 0
        for k in fields
        if k.startswith("box") and fields[k] is not None
    ):
        result.issues.append(
            ValidationIssue(
                level="warning",
                code="EMPTY_DECLARATION",
                message="All boxes are zero. A nil return still has to be filed.",
            )
        )

    # 5. Late invoices pulled in from earlier periods
    if late_invoice_count:
        result.issues.append(
            ValidationIssue(
                level="info",
                code="LATE_INVOICES",
                message=(
                    f"{late_invoice_count} invoice(s) issued before this period are included "
                    "because they were never declared."
                ),
            )
        )

    # 6. Refund
    if _value(fields, "box5d") < 0:
        result.issues.append(
            ValidationIssue(
                level="info",
                code="REFUND_DUE",
                message=f"Refund of {abs(_value(fields, 'box5d'))} to be claimed.",
                field="box5d",
            )
        )

    # 7. Reverse-charge VAT owed but not deductible
    reverse_charged = sum((_value(fields, f"box{b}_vat") for b in ("2a", "4a", "4b")), ZERO)
    if not has_full_deduction_right and reverse_charged > 0:
        result.issues.append(
            ValidationIssue(
                level="info",
                code="REVERSE_CHARGE_NOT_DEDUCTED",
                message=(
                    f"Reverse-charged VAT of {reverse_charged} is declared but not deducted "
                    "because there is no full right of deduction."
                ),
                field="box5b",
            )
        )

    return result
