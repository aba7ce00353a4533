from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.orm import Session

from boekhouding.api.deps import get_current_user_id, http_error
from boekhouding.core.errors import InvalidInputError
from boekhouding.core.vat_lines import Direction, Jurisdiction, classify_line, price_line, validate_line
from boekhouding.db.database import get_db
from boekhouding.models.invoice import Invoice, InvoiceLine

router = APIRouter()

INVOICE_STATUSES = ("DRAFT", "POSTED", "CANCELLED")
PAYMENT_STATUSES = ("UNPAID", "PAID", "OVERDUE")


class InvoiceLineIn(BaseModel):
    description: str
    quantity: float
    unit_price: float
    vat_rate: float
    reverse_charge: bool = False
    reverse_charge_jurisdiction: Jurisdiction | None = None
    is_deductible: bool = True
    deductibility_percentage: float = 100

    @field_validator("quantity", "unit_price")
    @classmethod
    def not_negative(cls, v):
        if v < 0:
            raise ValueError("Quantity and unit price cannot be negative.")
        return v

    @field_validator("vat_rate")
    @classmethod
    def rate_is_fraction(cls, v):
        if not 0 <= v <= 1:
            raise ValueError("VAT rate must be a fraction between 0 and 1 (0.21 for 21%).")
        return v

    @field_validator("deductibility_percentage")
    @classmethod
    def percentage_range(cls, v):
        if not 0 <= v <= 100:
            raise ValueError("Deductibility percentage must be between 0 and 100.")
        return v

    @model_validator(mode="after")
    def jurisdiction_matches_reverse_charge(self):
        if self.reverse_charge and self.reverse_charge_jurisdiction is None:
            raise ValueError("A reverse-charge line needs a jurisdiction: 'EU' or 'NON_EU'.")
        if not self.reverse_charge and self.reverse_charge_jurisdiction is not None:
            raise ValueError("Jurisdiction is only allowed on reverse-charge lines.")
        return self


class InvoiceCreate(BaseModel):
    direction: Direction
    counterparty: str
    invoice_number: str
    issue_date: date
    due_date: date
    currency: str = "EUR"
    status: str = "DRAFT"
    attachment_path: str | None = None
    lines: list[InvoiceLineIn]

    @field_validator("status")
    @classmethod
    def known_status(cls, v):
        if v not in INVOICE_STATUSES:
            raise ValueError(f"Status must be one of {', '.join(INVOICE_STATUSES)}.")
        return v

    @model_validator(mode="after")
    def due_after_issue(self):
        if self.due_date < self.issue_date:
            raise ValueError("Due date cannot be before the issue date.")
        return self


class InvoiceUpdate(BaseModel):
    counterparty: str | None = None
    invoice_number: str | None = None
    issue_date: date | None = None
    due_date: date | None = None
    attachment_path: str | None = None
    lines: list[InvoiceLineIn] | None = None


class InvoiceStatusUpdate(BaseModel):
    status: str | None = None
    payment_status: str | None = None

    @field_validator("status")
    @classmethod
    def known_status(cls, v):
        if v is not None and v not in INVOICE_STATUSES:
            raise ValueError(f"Status must be one of {', '.join(INVOICE_STATUSES)}.")
        return v

    @field_validator("payment_status")
    @classmethod
    def known_payment_status(cls, v):
        if v is not None and v not in PAYMENT_STATUSES:
            raise ValueError(f"Payment status must be one of {', '.join(PAYMENT_STATUSES)}.")
        return v


class InvoiceLineResponse(BaseModel):
    id: int
    position: int
    description: str
    quantity: float
    unit_price: float
    vat_rate: float
    reverse_charge: bool
    reverse_charge_jurisdiction: str | None
    is_deductible: bool
    deductibility_percentage: float
    subtotal: float
    vat_amount: float
    total: float
    vat_category: str

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    id: int
    direction: str
    counterparty: str
    invoice_number: str
    issue_date: date
    due_date: date
    currency: str
    status: str
    payment_status: str
    attachment_path: str | None
    attributed_declaration_id: int | None
    subtotal: float
    vat_amount: float
    total: float
    lines: list[InvoiceLineResponse]

    model_config = {"from_attributes": True}


def build_line(data: InvoiceLineIn, direction: Direction | str, position: int) -> InvoiceLine:
    """Validate, price and classify one line. Stored values are never recomputed on read."""
    validate_line(
        data.quantity,
        data.unit_price,
        data.vat_rate,
        data.reverse_charge,
        data.reverse_charge_jurisdiction,
        data.deductibility_percentage,
    )
    priced = price_line(data.quantity, data.unit_price, data.vat_rate, data.reverse_charge)
    category = classify_line(
        data.vat_rate, data.reverse_charge, data.reverse_charge_jurisdiction, direction
    )
    return InvoiceLine(
        position=position,
        description=data.description,
        quantity=data.quantity,
        unit_price=data.unit_price,
        vat_rate=data.vat_rate,
        reverse_charge=data.reverse_charge,
        reverse_charge_jurisdiction=(
            data.reverse_charge_jurisdiction.value if data.reverse_charge_jurisdiction else None
        ),
        is_deductible=data.is_deductible,
        deductibility_percentage=data.deductibility_percentage,
        subtotal=priced.subtotal,
        vat_amount=priced.vat_amount,
        total=priced.total,
        vat_category=category.value,
    )


def _get_invoice(db: Session, user_id: str, invoice_id: int) -> Invoice:
    invoice = (
        db.query(Invoice)
        .filter(Invoice.id == invoice_id, Invoice.user_id == user_id)
        .first()
    )
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found.")
    return invoice


def _ensure_editable(invoice: Invoice):
    if invoice.attributed_declaration_id is not None:
        raise HTTPException(
            status_code=409,
            detail="Invoice is part of a finalized VAT declaration and cannot be changed.",
        )


@router.get("/", response_model=list[InvoiceResponse])
def list_invoices(
    direction: Direction | None = None,
    invoice_status: str | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    q = db.query(Invoice).filter(Invoice.user_id == user_id)
    if direction:
        q = q.filter(Invoice.direction == direction.value)
    if invoice_status:
        q = q.filter(Invoice.status == invoice_status)
    return q.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).all()


@router.post("/", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
def create_invoice(
    data: InvoiceCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    invoice = Invoice(
        user_id=user_id,
        **data.model_dump(exclude={"lines", "direction"}),
        direction=data.direction.value,
    )
    try:
        invoice.lines = [build_line(line, data.direction, i) for i, line in enumerate(data.lines)]
    except InvalidInputError as e:
        raise http_error(e)
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.get("/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return _get_invoice(db, user_id, invoice_id)


@router.put("/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    invoice = _get_invoice(db, user_id, invoice_id)
    _ensure_editable(invoice)
    for field, value in data.model_dump(exclude_none=True, exclude={"lines"}).items():
        setattr(invoice, field, value)
    if data.lines is not None:
        try:
            invoice.lines = [
                build_line(line, invoice.direction, i) for i, line in enumerate(data.lines)
            ]
        except InvalidInputError as e:
            raise http_error(e)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.patch("/{invoice_id}/status", response_model=InvoiceResponse)
def update_invoice_status(
    invoice_id: int,
    data: InvoiceStatusUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    invoice = _get_invoice(db, user_id, invoice_id)
    # Payment status may change after declaration; the booking status may not.
    if data.status is not None and data.status != invoice.status:
        _ensure_editable(invoice)
        invoice.status = data.status
    if data.payment_status is not None:
        invoice.payment_status = data.payment_status
    db.commit()
    db.refresh(invoice)
    return invoice


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    invoice = _get_invoice(db, user_id, invoice_id)
    _ensure_editable(invoice)
    db.delete(invoice)
    db.commit()
