"""
VAT declaration lifecycle (BTW-aangifte).

    calculate  -> preview only, no writes, callable any number of times
    save_draft -> upserts a DRAFT row, never touches invoice attribution;
                  hand-entered boxes of the previous draft are kept
    finalize   -> one transaction: release draft invoices, upsert FINAL row
                  (hand-entered boxes included), attribute every invoice in
                  scope to it
    update     -> manual boxes / notes / SUBMITTED, only while DRAFT

A FINAL declaration is terminal: no recalculation, no update, no second
finalize for the same period. Every invoice is attributed to at most one
FINAL declaration.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from boekhouding.core.declaration import (
    MANUAL_FIELDS,
    DeclarationResult,
    DeclarationStatus,
    PeriodType,
    apply_manual_boxes,
    build_declaration,
    generate_period_string,
    monthly_periods,
    recompute_totals,
    whole_euros,
)
from boekhouding.core.errors import InvalidInputError, InvalidStateError, NotFoundError
from boekhouding.core.money import to_decimal
from boekhouding.core.validator import ValidationResult, validate_declaration
from boekhouding.core.vat_boxes import (
    BASE_ONLY_BOXES,
    BOX_CATEGORIES,
    OPTIONAL_BOXES,
    OUTPUT_TAX_BOXES,
    box_direction,
    line_in_box,
)
from boekhouding.db import stores
from boekhouding.models.invoice import Invoice, InvoiceLine
from boekhouding.models.vat_declaration import VatDeclaration

logger = logging.getLogger(__name__)

REQUIRED_BOX_COLUMNS = (
    "box1a_base", "box1a_vat", "box1b_base", "box1b_vat", "box1e_base",
    "box2a_base", "box2a_vat", "box3a_base", "box3b_base",
    "box4a_base", "box4a_vat", "box4b_base", "box4b_vat",
    "box5a", "box5b", "box5d",
)


@dataclass
class BoxInvoice:
    """An invoice with only the lines that fed one declaration box."""

    invoice: Invoice
    lines: list[InvoiceLine]


def _encode(value) -> str | None:
    return None if value is None else str(value)


def _optional_boxes_from(fields: dict, manual=()) -> dict:
    """
    Flat box1c_base/... values -> sparse JSON map, dropping empty boxes.
    Parts named in `manual` (field names) are flagged as entered by hand:
    {"1c": {"base": "100", "vat": "6", "manual": ["vat"]}}.
    """
    sparse: dict[str, dict] = {}
    for box_id in sorted(OPTIONAL_BOXES):
        base = fields.get(f"box{box_id}_base")
        vat = fields.get(f"box{box_id}_vat")
        if base is None and vat is None:
            continue
        entry = {}
        if box_id != "1d":
            entry["base"] = _encode(base)
        if box_id not in BASE_ONLY_BOXES:
            entry["vat"] = _encode(vat)
        entered = sorted(
            part for name, (b, part) in MANUAL_FIELDS.items()
            if b == box_id and name in manual and entry.get(part) is not None
        )
        if entered:
            entry["manual"] = entered
        sparse[box_id] = entry
    return sparse


def manual_overrides(declaration: VatDeclaration) -> dict:
    """The optional box values on a row that were entered by hand."""
    overrides = {}
    for name, (box_id, part) in MANUAL_FIELDS.items():
        entry = (declaration.optional_boxes or {}).get(box_id, {})
        if part in entry.get("manual", ()):
            overrides[name] = declaration.optional_value(box_id, part)
    return overrides


def declaration_fields(declaration: VatDeclaration) -> dict:
    """Persisted row -> flat declaration shape (box1a_base ... box5d)."""
    fields = {
        "id": declaration.id,
        "period": declaration.period,
        "period_type": declaration.period_type,
        "start_date": declaration.start_date,
        "end_date": declaration.end_date,
        "status": declaration.status,
        "notes": declaration.notes,
    }
    for column in REQUIRED_BOX_COLUMNS:
        fields[column] = to_decimal(getattr(declaration, column))
    for name, (box_id, part) in MANUAL_FIELDS.items():
        fields[name] = declaration.optional_value(box_id, part)
    return fields


def result_fields(result: DeclarationResult) -> dict:
    """Calculated preview -> the same flat shape, without id and notes."""
    return {"id": None, "notes": None, **result.as_fields()}


class VatDeclarationService:
    """Declaration lifecycle for one user, bound to a SQLAlchemy session."""

    def __init__(self, db: Session, user_id: str):
        self.db = db
        self.user_id = user_id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, declaration_id: int) -> VatDeclaration:
        declaration = stores.find_declaration(self.db, self.user_id, declaration_id)
        if declaration is None:
            raise NotFoundError("Declaration not found.")
        return declaration

    def get_by_period(self, period: str) -> VatDeclaration:
        declaration = stores.find_declaration_by_period(self.db, self.user_id, period)
        if declaration is None:
            raise NotFoundError(f"Declaration for period {period} not found.")
        return declaration

    def list_declarations(self) -> list[VatDeclaration]:
        return stores.list_declarations(self.db, self.user_id)

    def available_periods(self) -> list[dict]:
        first, last = stores.find_posted_issue_date_range(self.db, self.user_id)
        if first is None or last is None:
            return []
        return monthly_periods(first, last)

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def _ensure_not_final(self, period: str, for_update: bool = False) -> VatDeclaration | None:
        existing = stores.find_declaration_by_period(
            self.db, self.user_id, period, for_update=for_update
        )
        if existing is not None and existing.status == DeclarationStatus.FINAL.value:
            raise InvalidStateError(
                f"A finalized declaration already exists for period {period}."
            )
        return existing

    def _compute(
        self,
        start_date: date,
        end_date: date,
        period_type: PeriodType | str,
        period: str,
        manual: dict | None = None,
    ) -> DeclarationResult:
        invoices = stores.find_posted_unattributed_invoices(
            self.db, self.user_id, start_date, end_date
        )
        result = build_declaration(
            invoices,
            start_date=start_date,
            end_date=end_date,
            period_type=period_type,
            period=period,
            has_full_deduction_right=stores.has_full_deduction_right(self.db, self.user_id),
        )
        if manual:
            apply_manual_boxes(result, manual)
        return result

    def calculate(
        self,
        start_date: date,
        end_date: date,
        period_type: PeriodType | str,
        period: str | None = None,
    ) -> DeclarationResult:
        """Preview the declaration for a period. Writes nothing."""
        period = period or generate_period_string(start_date, period_type)
        self._ensure_not_final(period)
        result = self._compute(start_date, end_date, period_type, period)
        logger.info(
            "VAT declaration calculated user=%s period=%s invoices=%d late=%d",
            self.user_id, period, len(result.invoice_ids), result.late_invoice_count,
        )
        return result

    def _row_values(
        self, result: DeclarationResult, status: DeclarationStatus, notes, manual=()
    ) -> dict:
        fields = result.as_fields()
        values = {column: fields[column] for column in REQUIRED_BOX_COLUMNS}
        values.update(
            period=result.period,
            period_type=PeriodType(result.period_type).value,
            start_date=result.start_date,
            end_date=result.end_date,
            optional_boxes=_optional_boxes_from(fields, manual),
            status=status.value,
            notes=notes,
        )
        return values

    def save_draft(
        self,
        start_date: date,
        end_date: date,
        period_type: PeriodType | str,
        period: str | None = None,
        notes: str | None = None,
    ) -> VatDeclaration:
        """
        Persist the current calculation as a DRAFT (upsert per period).
        Manual boxes entered on an earlier draft are carried over.
        """
        period = period or generate_period_string(start_date, period_type)
        try:
            existing = self._ensure_not_final(period, for_update=True)
            if existing is not None and existing.status != DeclarationStatus.DRAFT.value:
                raise InvalidStateError(
                    f"Cannot recalculate a declaration with status {existing.status}."
                )
            manual = manual_overrides(existing) if existing is not None else {}
            result = self._compute(start_date, end_date, period_type, period, manual)
            if notes is None and existing is not None:
                notes = existing.notes
            declaration = stores.upsert_declaration(
                self.db, existing, self.user_id,
                self._row_values(result, DeclarationStatus.DRAFT, notes, manual),
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise InvalidStateError(
                f"Declaration for period {period} was modified concurrently."
            ) from None
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(declaration)
        logger.info("VAT declaration draft saved user=%s period=%s", self.user_id, period)
        return declaration

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------

    def finalize(self, snapshot: dict) -> VatDeclaration:
        """
        Persist the declaration for `snapshot["period"]` as FINAL and attribute
        every invoice in scope to it, all in one transaction.

        Box values are recomputed from the invoice store inside the
        transaction so that the stored boxes and the attributed invoices can
        never disagree. Manual boxes (1c, 1d, 3c, 4c) come from the existing
        draft, overridden by any given in the snapshot, and 5a/5d are
        recomputed with them.
        """
        start_date = snapshot["start_date"]
        end_date = snapshot["end_date"]
        period_type = snapshot["period_type"]
        period = snapshot.get("period") or generate_period_string(start_date, period_type)

        try:
            existing = self._ensure_not_final(period, for_update=True)
            released = 0
            manual = {}
            if existing is not None:
                released = stores.clear_attribution(self.db, existing.id)
                manual = manual_overrides(existing)
            manual.update(
                {name: snapshot[name] for name in MANUAL_FIELDS if snapshot.get(name) is not None}
            )

            result = self._compute(start_date, end_date, period_type, period, manual)
            notes = snapshot.get("notes")
            if notes is None and existing is not None:
                notes = existing.notes
            declaration = stores.upsert_declaration(
                self.db, existing, self.user_id,
                self._row_values(result, DeclarationStatus.FINAL, notes, manual),
            )
            attributed = stores.set_attribution(self.db, result.invoice_ids, declaration.id)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(
                "Concurrent finalize rejected user=%s period=%s", self.user_id, period
            )
            raise InvalidStateError(
                f"A finalized declaration already exists for period {period}."
            ) from None
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "VAT declaration finalize failed user=%s period=%s", self.user_id, period
            )
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(declaration)
        logger.info(
            "VAT declaration finalized user=%s period=%s id=%s invoices=%d released=%d",
            self.user_id, period, declaration.id, attributed, released,
        )
        return declaration

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, declaration_id: int, changes: dict) -> VatDeclaration:
        """Manual boxes, notes and DRAFT -> SUBMITTED, only while DRAFT."""
        declaration = self.get(declaration_id)
        if declaration.status != DeclarationStatus.DRAFT.value:
            logger.warning(
                "Update rejected user=%s id=%s status=%s",
                self.user_id, declaration_id, declaration.status,
            )
            raise InvalidStateError(
                f"Cannot modify a declaration with status {declaration.status}."
            )

        status = changes.get("status")
        if status is not None:
            status = DeclarationStatus(status)
            if status == DeclarationStatus.FINAL:
                raise InvalidStateError("Use finalize to make a declaration final.")

        manual = {name: changes[name] for name in MANUAL_FIELDS if name in changes}
        if manual:
            current = {
                name: declaration.optional_value(box_id, part)
                for name, (box_id, part) in MANUAL_FIELDS.items()
            }
            for name, value in manual.items():
                if value is None:
                    current[name] = None
                elif MANUAL_FIELDS[name][1] == "vat":
                    current[name] = whole_euros(value, name)
                else:
                    current[name] = to_decimal(value)
            entered = set(manual_overrides(declaration)) | set(manual)
            entered -= {name for name, value in manual.items() if value is None}
            declaration.optional_boxes = _optional_boxes_from(current, entered)

            if any(name.endswith("_vat") for name in manual):
                vat_by_box = {
                    box_id: self._box_vat(declaration, box_id) for box_id in OUTPUT_TAX_BOXES
                }
                declaration.box5a, declaration.box5d = recompute_totals(
                    vat_by_box, declaration.box5b
                )

        if "notes" in changes:
            declaration.notes = changes["notes"]
        if status is not None:
            declaration.status = status.value

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(declaration)
        return declaration

    @staticmethod
    def _box_vat(declaration: VatDeclaration, box_id: str) -> Decimal | None:
        if box_id in OPTIONAL_BOXES:
            return declaration.optional_value(box_id, "vat")
        return getattr(declaration, f"box{box_id}_vat")

    # ------------------------------------------------------------------
    # Box drill-down
    # ------------------------------------------------------------------

    def _box_invoices(self, box: str, **scope) -> list[BoxInvoice]:
        direction = box_direction(box)
        invoices = stores.find_invoices_with_categories(
            self.db, self.user_id, direction.value, BOX_CATEGORIES[box], **scope
        )
        return [
            BoxInvoice(invoice=inv, lines=[line for line in inv.lines if line_in_box(line, box)])
            for inv in invoices
        ]

    def invoices_for_box(self, declaration_id: int, box: str) -> list[BoxInvoice]:
        """Invoices (and lines) a persisted declaration counted in `box`."""
        if box not in BOX_CATEGORIES:
            raise InvalidInputError(f"Invalid box: {box}")
        declaration = self.get(declaration_id)
        return self._box_invoices(box, declaration_id=declaration.id)

    def invoices_for_box_by_period(
        self, start_date: date, end_date: date, box: str
    ) -> list[BoxInvoice]:
        """Invoices (and lines) a calculation for the period would count in `box`."""
        if box not in BOX_CATEGORIES:
            raise InvalidInputError(f"Invalid box: {box}")
        return self._box_invoices(box, start_date=start_date, end_date=end_date)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def validate(self, declaration_id: int) -> ValidationResult:
        """Consistency checks on a persisted declaration."""
        declaration = self.get(declaration_id)
        if declaration.status == DeclarationStatus.FINAL.value:
            invoices = stores.find_invoices_attributed_to(self.db, declaration.id)
        else:
            invoices = stores.find_posted_unattributed_invoices(
                self.db, self.user_id, declaration.start_date, declaration.end_date
            )
        late = sum(1 for inv in invoices if inv.issue_date < declaration.start_date)
        return validate_declaration(
            declaration_fields(declaration),
            late_invoice_count=late,
            has_full_deduction_right=stores.has_full_deduction_right(self.db, self.user_id),
        )
