from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from boekhouding.db.database import Base


class Asset(Base):
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    purchase_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # 'STRAIGHT_LINE' | 'DECLINING_BALANCE'
    depreciation_method: Mapped[str] = mapped_column(String(20), nullable=False)
    depreciation_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=0)
    useful_life: Mapped[int] = mapped_column(Integer, nullable=False)
    residual_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    current_book_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    accumulated_depreciation: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    # 'ACTIVE' | 'FULLY_DEPRECIATED' | 'DISPOSED' | 'SOLD'
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")
    disposal_date: Mapped[date | None] = mapped_column(Date)
    invoice_id: Mapped[int | None] = mapped_column(ForeignKey("invoices.id"))
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
