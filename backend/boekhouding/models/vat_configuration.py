from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from boekhouding.db.database import Base


class VatConfiguration(Base):
    __tablename__ = "vat_configurations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    # Without a full deduction right, reverse-charge VAT is not reclaimable (5b).
    has_full_deduction_right: Mapped[bool] = mapped_column(Boolean, default=True)
