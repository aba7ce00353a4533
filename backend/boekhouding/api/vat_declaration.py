import math
from datetime import date

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.orm import Session

from boekhouding.api.deps import get_current_user_id, http_error
from boekhouding.api.invoices import InvoiceLineResponse
from boekhouding.core.declaration import DeclarationStatus, PeriodType
from boekhouding.core.errors import VatDeclarationError
from boekhouding.db.database import get_db
from boekhouding.services.vat_declaration import (
    VatDeclarationService,
    declaration_fields,
    result_fields,
)
from boekhouding.utils.pdf_generator import generate_declaration_pdf
from boekhouding.utils.xml_generator import generate_declaration_xml

router = APIRouter()


class PeriodRequest(BaseModel):
    start_date: date
    end_date: date
    period_type: PeriodType
    period: str | None = None

    @model_validator(mode="after")
    def end_not_before_start(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must not be before start date.")
        return self


class ManualBoxes(BaseModel):
    box1c_base: float | None = None
    box1c_vat: float | None = None
    box1d_vat: float | None = None
    box3c_base: float | None = None
    box4c_base: float | None = None
    box4c_vat: float | None = None

    @field_validator("box1c_vat", "box1d_vat", "box4c_vat")
    @classmethod
    def whole_euros(cls, v):
        if v is not None and not (math.isfinite(v) and float(v).is_integer()):
            raise ValueError("Box VAT is declared in whole euros.")
        return v


class DraftRequest(PeriodRequest):
    notes: str | None = None


class FinalizeRequest(PeriodRequest, ManualBoxes):
    notes: str | None = None


class BoxPeriodRequest(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def end_not_before_start(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must not be before start date.")
        return self


class DeclarationUpdate(ManualBoxes):
    notes: str | None = None
    status: DeclarationStatus | None = None


class DeclarationResponse(BaseModel):
    id: int | None
    period: str
    period_type: PeriodType
    start_date: date
    end_date: date
    status: DeclarationStatus
    notes: str | None
    box1a_base: float
    box1a_vat: float
    box1b_base: float
    box1b_vat: float
    box1c_base: float | None
    box1c_vat: float | None
    box1d_vat: float | None
    box1e_base: float
    box2a_base: float
    box2a_vat: float
    box3a_base: float
    box3b_base: float
    box3c_base: float | None
    box4a_base: float
    box4a_vat: float
    box4b_base: float
    box4b_vat: float
    box4c_base: float | None
    box4c_vat: float | None
    box5a: float
    box5b: float
    box5d: float


class CalculationResponse(DeclarationResponse):
    invoice_ids: list[int]
    late_invoice_count: int


class PeriodResponse(BaseModel):
    period: str
    period_type: PeriodType
    start_date: date
    end_date: date


class BoxInvoiceSummary(BaseModel):
    id: int
    invoice_number: str
    counterparty: str
    issue_date: date
    direction: str
    status: str

    model_config = {"from_attributes": True}


class BoxInvoiceResponse(BaseModel):
    invoice: BoxInvoiceSummary
    lines: list[InvoiceLineResponse]

    model_config = {"from_attributes": True}


class ValidationIssueResponse(BaseModel):
    level: str
    code: str
    message: str
    field: str | None = None

    model_config = {"from_attributes": True}


class ValidationResponse(BaseModel):
    has_errors: bool
    issues: list[ValidationIssueResponse]


def _service(
    db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)
) -> VatDeclarationService:
    return VatDeclarationService(db, user_id)


@router.post("/calculate", response_model=CalculationResponse)
def calculate(data: PeriodRequest, service: VatDeclarationService = Depends(_service)):
    """Preview the declaration for a period. Nothing is stored."""
    try:
        result = service.calculate(data.start_date, data.end_date, data.period_type, data.period)
    except VatDeclarationError as e:
        raise http_error(e)
    return {
        **result_fields(result),
        "invoice_ids": result.invoice_ids,
        "late_invoice_count": result.late_invoice_count,
    }


@router.post("/draft", response_model=DeclarationResponse)
def save_draft(data: DraftRequest, service: VatDeclarationService = Depends(_service)):
    try:
        declaration = service.save_draft(
            data.start_date, data.end_date, data.period_type, data.period, data.notes
        )
    except VatDeclarationError as e:
        raise http_error(e)
    return declaration_fields(declaration)


@router.post("/finalize", response_model=DeclarationResponse)
def finalize(data: FinalizeRequest, service: VatDeclarationService = Depends(_service)):
    """Store the declaration as FINAL and lock its invoices to it."""
    try:
        declaration = service.finalize(data.model_dump())
    except VatDeclarationError as e:
        raise http_error(e)
    return declaration_fields(declaration)


@router.get("/list", response_model=list[DeclarationResponse])
def list_declarations(service: VatDeclarationService = Depends(_service)):
    return [declaration_fields(d) for d in service.list_declarations()]


@router.get("/periods", response_model=list[PeriodResponse])
def available_periods(service: VatDeclarationService = Depends(_service)):
    return service.available_periods()


@router.get("/period/{period}", response_model=DeclarationResponse)
def get_by_period(period: str, service: VatDeclarationService = Depends(_service)):
    try:
        return declaration_fields(service.get_by_period(period))
    except VatDeclarationError as e:
        raise http_error(e)


@router.post("/invoices/{box}", response_model=list[BoxInvoiceResponse])
def invoices_for_box_by_period(
    box: str, data: BoxPeriodRequest, service: VatDeclarationService = Depends(_service)
):
    try:
        boxes = service.invoices_for_box_by_period(data.start_date, data.end_date, box)
    except VatDeclarationError as e:
        raise http_error(e)
    return [BoxInvoiceResponse.model_validate(b) for b in boxes]


@router.get("/{declaration_id}", response_model=DeclarationResponse)
def get_declaration(declaration_id: int, service: VatDeclarationService = Depends(_service)):
    try:
        return declaration_fields(service.get(declaration_id))
    except VatDeclarationError as e:
        raise http_error(e)


@router.put("/{declaration_id}", response_model=DeclarationResponse)
def update_declaration(
    declaration_id: int,
    data: DeclarationUpdate,
    service: VatDeclarationService = Depends(_service),
):
    try:
        declaration = service.update(declaration_id, data.model_dump(exclude_unset=True))
    except VatDeclarationError as e:
        raise http_error(e)
    return declaration_fields(declaration)


@router.get("/{declaration_id}/invoices/{box}", response_model=list[BoxInvoiceResponse])
def invoices_for_box(
    declaration_id: int, box: str, service: VatDeclarationService = Depends(_service)
):
    try:
        boxes = service.invoices_for_box(declaration_id, box)
    except VatDeclarationError as e:
        raise http_error(e)
    return [BoxInvoiceResponse.model_validate(b) for b in boxes]


@router.get("/{declaration_id}/validate", response_model=ValidationResponse)
def validate(declaration_id: int, service: VatDeclarationService = Depends(_service)):
    try:
        result = service.validate(declaration_id)
    except VatDeclarationError as e:
        raise http_error(e)
    return ValidationResponse(
        has_errors=result.has_errors,
        issues=[ValidationIssueResponse.model_validate(i) for i in result.issues],
    )


@router.get("/{declaration_id}/pdf")
def export_pdf(declaration_id: int, service: VatDeclarationService = Depends(_service)):
    try:
        fields = declaration_fields(service.get(declaration_id))
    except VatDeclarationError as e:
        raise http_error(e)
    return Response(
        content=generate_declaration_pdf(fields),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="BTW_{fields["period"]}.pdf"'},
    )


@router.get("/{declaration_id}/xml")
def export_xml(declaration_id: int, service: VatDeclarationService = Depends(_service)):
    try:
        fields = declaration_fields(service.get(declaration_id))
    except VatDeclarationError as e:
        raise http_error(e)
    return Response(
        content=generate_declaration_xml(fields),
        media_type="application/xml",
        headers={"Content-Disposition": f'attachment; filename="BTW_{fields["period"]}.xml"'},
    )
