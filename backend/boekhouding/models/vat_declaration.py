from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, Date, DateTime, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from boekhouding.db.database import Base


class VatDeclaration(Base):
    """One BTW-aangifte per user and period. Immutable once status is FINAL."""

    __tablename__ = "vat_declarations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    period: Mapped[str] = mapped_column(String(10), nullable=False)  # '2025-Q1' / '2025-01'
    period_type: Mapped[str] = mapped_column(String(10), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    box1a_base: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    box1a_vat: Mapped[Decimal] = mapped_column(Numeric(12, 0), default=0)
    box1b_base: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    box1b_vat: Mapped[Decimal] = mapped_column(Numeric(12, 0), default=0)
    box1e_base: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    box2a_base: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    box2a_vat: Mapped[Decimal] = mapped_column(Numeric(12, 0), default=0)
    box3a_base: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    box3b_base: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    box4a_base: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    box4a_vat: Mapped[Decimal] = mapped_column(Numeric(12, 0), default=0)
    box4b_base: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    box4b_vat: Mapped[Decimal] = mapped_column(Numeric(12, 0), default=0)
    box5a: Mapped[Decimal] = mapped_column(Numeric(12, 0), default=0)
    box5b: Mapped[Decimal] = mapped_column(Numeric(12, 0), default=0)
    box5d: Mapped[Decimal] = mapped_column(Numeric(12, 0), default=0)

    # Sparse boxes 1c / 1d / 3c / 4c: {"1c": {"base": "12.50", "vat": "1", "manual": ["vat"]}}
    # "manual" lists the parts entered by hand; they survive recalculation.
    optional_boxes: Mapped[dict] = mapped_column(JSON, default=dict)

    # status: 'DRAFT' | 'SUBMITTED' | 'FINAL'
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (UniqueConstraint("user_id", "period", name="uq_user_period"),)

    invoices: Mapped[list["Invoice"]] = relationship(  # noqa: F821
        "Invoice", back_populates="declaration"
    )

    def optional_value(self, box_id: str, part: str) -> Decimal | None:
        value = (self.optional_boxes or {}).get(box_id, {}).get(part)
        return None if value is None else Decimal(str(value))
