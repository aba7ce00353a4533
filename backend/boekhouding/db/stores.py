"""
Query layer used by the VAT declaration service: invoice store, declaration
store and deduction-config store. Functions take the caller's session and
never commit; transaction boundaries belong to the service.
"""
from datetime import date

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session, selectinload

from boekhouding.models.invoice import Invoice, InvoiceLine
from boekhouding.models.vat_configuration import VatConfiguration
from boekhouding.models.vat_declaration import VatDeclaration

POSTED = "POSTED"


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------

def _in_scope(user_id: str, start_date: date, end_date: date):
    """Posted, unattributed, issued in the period or earlier (late invoices)."""
    return and_(
        Invoice.user_id == user_id,
        Invoice.status == POSTED,
        Invoice.attributed_declaration_id.is_(None),
        or_(
            and_(Invoice.issue_date >= start_date, Invoice.issue_date <= end_date),
            Invoice.issue_date < start_date,
        ),
    )


def find_posted_unattributed_invoices(
    db: Session, user_id: str, start_date: date, end_date: date
) -> list[Invoice]:
    stmt = (
        select(Invoice)
        .where(_in_scope(user_id, start_date, end_date))
        .options(selectinload(Invoice.lines))
        .order_by(Invoice.issue_date, Invoice.id)
    )
    return list(db.scalars(stmt))


def find_invoices_attributed_to(db: Session, declaration_id: int) -> list[Invoice]:
    stmt = (
        select(Invoice)
        .where(Invoice.attributed_declaration_id == declaration_id)
        .options(selectinload(Invoice.lines))
        .order_by(Invoice.issue_date, Invoice.id)
    )
    return list(db.scalars(stmt))


def set_attribution(db: Session, invoice_ids: list[int], declaration_id: int | None) -> int:
    if not invoice_ids:
        return 0
    result = db.execute(
        update(Invoice)
        .where(Invoice.id.in_(invoice_ids))
        .values(attributed_declaration_id=declaration_id)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount


def clear_attribution(db: Session, declaration_id: int) -> int:
    result = db.execute(
        update(Invoice)
        .where(Invoice.attributed_declaration_id == declaration_id)
        .values(attributed_declaration_id=None)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount


def find_invoices_with_categories(
    db: Session,
    user_id: str,
    direction: str,
    categories,
    *,
    declaration_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[Invoice]:
    """
    Invoices of one direction having at least one line in `categories`,
    either attributed to `declaration_id` or in scope for the given period.
    """
    category_values = [str(getattr(c, "value", c)) for c in categories]
    if declaration_id is not None:
        scope = Invoice.attributed_declaration_id == declaration_id
    else:
        scope = _in_scope(user_id, start_date, end_date)
    stmt = (
        select(Invoice)
        .where(
            Invoice.user_id == user_id,
            Invoice.direction == direction,
            scope,
            Invoice.lines.any(InvoiceLine.vat_category.in_(category_values)),
        )
        .options(selectinload(Invoice.lines))
        .order_by(Invoice.issue_date, Invoice.id)
    )
    return list(db.scalars(stmt))


def find_posted_issue_date_range(db: Session, user_id: str) -> tuple[date | None, date | None]:
    first = db.scalar(
        select(Invoice.issue_date)
        .where(Invoice.user_id == user_id, Invoice.status == POSTED)
        .order_by(Invoice.issue_date.asc())
        .limit(1)
    )
    last = db.scalar(
        select(Invoice.issue_date)
        .where(Invoice.user_id == user_id, Invoice.status == POSTED)
        .order_by(Invoice.issue_date.desc())
        .limit(1)
    )
    return first, last


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------

def find_declaration_by_period(
    db: Session, user_id: str, period: str, for_update: bool = False
) -> VatDeclaration | None:
    stmt = select(VatDeclaration).where(
        VatDeclaration.user_id == user_id, VatDeclaration.period == period
    )
    if for_update:
        stmt = stmt.with_for_update()
    return db.scalar(stmt)


def find_declaration(db: Session, user_id: str, declaration_id: int) -> VatDeclaration | None:
    return db.scalar(
        select(VatDeclaration).where(
            VatDeclaration.id == declaration_id, VatDeclaration.user_id == user_id
        )
    )


def list_declarations(db: Session, user_id: str) -> list[VatDeclaration]:
    return list(
        db.scalars(
            select(VatDeclaration)
            .where(VatDeclaration.user_id == user_id)
            .order_by(VatDeclaration.start_date.desc())
        )
    )


def upsert_declaration(
    db: Session, existing: VatDeclaration | None, user_id: str, values: dict
) -> VatDeclaration:
    """Update `existing` in place or add a new row; flushes so the id is known."""
    declaration = existing or VatDeclaration(user_id=user_id)
    for field, value in values.items():
        setattr(declaration, field, value)
    if existing is None:
        db.add(declaration)
    db.flush()
    return declaration


# ---------------------------------------------------------------------------
# Deduction configuration
# ---------------------------------------------------------------------------

def find_vat_configuration(db: Session, user_id: str) -> VatConfiguration | None:
    return db.scalar(select(VatConfiguration).where(VatConfiguration.user_id == user_id))


def has_full_deduction_right(db: Session, user_id: str) -> bool:
    config = find_vat_configuration(db, user_id)
    return True if config is None else bool(config.has_full_deduction_right)
