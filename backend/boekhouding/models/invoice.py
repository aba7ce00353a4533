from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from boekhouding.db.database import Base


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # direction: 'SALES' | 'PURCHASE'
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    counterparty: Mapped[str] = mapped_column(String(200), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR")
    # status: 'DRAFT' | 'POSTED' | 'CANCELLED'
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    # payment_status: 'UNPAID' | 'PAID' | 'OVERDUE'
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="UNPAID")
    attachment_path: Mapped[str | None] = mapped_column(Text)
    # Set once a FINAL declaration has counted this invoice.
    attributed_declaration_id: Mapped[int | None] = mapped_column(
        ForeignKey("vat_declarations.id"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    lines: Mapped[list["InvoiceLine"]] = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.position",
    )
    declaration: Mapped["VatDeclaration"] = relationship(  # noqa: F821
        "VatDeclaration", back_populates="invoices"
    )

    @property
    def subtotal(self) -> Decimal:
        return sum((line.subtotal for line in self.lines), Decimal("0"))

    @property
    def vat_amount(self) -> Decimal:
        return sum((line.vat_amount for line in self.lines), Decimal("0"))

    @property
    def total(self) -> Decimal:
        return sum((line.total for line in self.lines), Decimal("0"))


class InvoiceLine(Base):
    __tablename__ = "invoice_lines"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    reverse_charge: Mapped[bool] = mapped_column(Boolean, default=False)
    # 'EU' | 'NON_EU', only on reverse-charge lines
    reverse_charge_jurisdiction: Mapped[str | None] = mapped_column(String(10))
    is_deductible: Mapped[bool] = mapped_column(Boolean, default=True)
    deductibility_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=100)

    # Derived by the line pricer / classifier, rewritten with the line.
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    vat_category: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="lines")
