import logging
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.orm import Session

from boekhouding.api.deps import get_current_user_id
from boekhouding.core.depreciation import (
    DepreciationMethod,
    build_schedule,
    calculate_depreciation,
    current_book_value,
    years_since_purchase,
)
from boekhouding.db.database import get_db
from boekhouding.models.asset import Asset

logger = logging.getLogger(__name__)

router = APIRouter()

ASSET_STATUSES = ("ACTIVE", "FULLY_DEPRECIATED", "DISPOSED", "SOLD")


class AssetCreate(BaseModel):
    name: str
    description: str | None = None
    category: str
    purchase_date: date
    purchase_price: float
    depreciation_method: DepreciationMethod
    depreciation_rate: float = 0
    useful_life: int
    residual_value: float = 0
    invoice_id: int | None = None
    notes: str | None = None

    @field_validator("purchase_price", "depreciation_rate", "residual_value")
    @classmethod
    def positive_values(cls, v):
        if v < 0:
            raise ValueError("Amounts and rates cannot be negative.")
        return v

    @field_validator("useful_life")
    @classmethod
    def at_least_one_year(cls, v):
        if v < 1:
            raise ValueError("Useful life must be at least one year.")
        return v

    @model_validator(mode="after")
    def residual_below_price(self):
        if self.residual_value > self.purchase_price:
            raise ValueError("Residual value cannot exceed the purchase price.")
        if self.depreciation_method == DepreciationMethod.DECLINING_BALANCE and not self.depreciation_rate:
            raise ValueError("Declining balance needs a depreciation rate.")
        return self


class AssetUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None
    status: str | None = None
    disposal_date: date | None = None
    notes: str | None = None

    @field_validator("status")
    @classmethod
    def known_status(cls, v):
        if v is not None and v not in ASSET_STATUSES:
            raise ValueError(f"Status must be one of {', '.join(ASSET_STATUSES)}.")
        return v


class AssetResponse(BaseModel):
    id: int
    name: str
    description: str | None
    category: str
    purchase_date: date
    purchase_price: float
    depreciation_method: str
    depreciation_rate: float
    useful_life: int
    residual_value: float
    current_book_value: float
    accumulated_depreciation: float
    status: str
    disposal_date: date | None
    invoice_id: int | None
    notes: str | None

    model_config = {"from_attributes": True}


class DepreciationResponse(BaseModel):
    asset_id: int
    as_of: date
    annual_depreciation: float
    accumulated_depreciation: float
    current_book_value: float
    fully_depreciated: bool


class ScheduleEntryResponse(BaseModel):
    year: int
    starting_book_value: float
    depreciation_expense: float
    accumulated_depreciation: float
    ending_book_value: float

    model_config = {"from_attributes": True}


class ScheduleResponse(BaseModel):
    asset_id: int
    asset_name: str
    purchase_price: float
    residual_value: float
    useful_life: int
    depreciation_method: str
    entries: list[ScheduleEntryResponse]
    total_depreciation: float


def _get_asset(db: Session, user_id: str, asset_id: int) -> Asset:
    asset = db.query(Asset).filter(Asset.id == asset_id, Asset.user_id == user_id).first()
    if not asset:
        raise HTTPException(status_code=404, detail="Asset not found.")
    return asset


def _depreciation(asset: Asset, as_of: date) -> dict:
    amount = calculate_depreciation(
        asset.purchase_price,
        asset.residual_value,
        asset.depreciation_method,
        asset.depreciation_rate,
        asset.useful_life,
        years_since_purchase(asset.purchase_date, as_of),
    )
    book_value = current_book_value(asset.purchase_price, asset.residual_value, amount.accumulated)
    return {
        "asset_id": asset.id,
        "as_of": as_of,
        "annual_depreciation": amount.annual,
        "accumulated_depreciation": amount.accumulated,
        "current_book_value": book_value,
        "fully_depreciated": book_value <= Decimal(str(asset.residual_value)),
    }


def _apply_depreciation(asset: Asset, as_of: date) -> dict:
    result = _depreciation(asset, as_of)
    asset.accumulated_depreciation = result["accumulated_depreciation"]
    asset.current_book_value = result["current_book_value"]
    if result["fully_depreciated"]:
        asset.status = "FULLY_DEPRECIATED"
    return result


@router.get("/", response_model=list[AssetResponse])
def list_assets(db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)):
    return db.query(Asset).filter(Asset.user_id == user_id).order_by(Asset.purchase_date.desc()).all()


@router.post("/", response_model=AssetResponse, status_code=status.HTTP_201_CREATED)
def create_asset(
    data: AssetCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    asset = Asset(
        user_id=user_id,
        **data.model_dump(exclude={"depreciation_method"}),
        depreciation_method=data.depreciation_method.value,
        current_book_value=data.purchase_price,
        accumulated_depreciation=0,
        status="ACTIVE",
    )
    db.add(asset)
    db.commit()
    db.refresh(asset)
    return asset


@router.post("/depreciation/update-all", response_model=list[DepreciationResponse])
def update_all_depreciation(
    as_of: date | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    as_of = as_of or date.today()
    assets = db.query(Asset).filter(Asset.user_id == user_id, Asset.status == "ACTIVE").all()
    results = [_apply_depreciation(asset, as_of) for asset in assets]
    db.commit()
    logger.info("Depreciation updated user=%s assets=%d as_of=%s", user_id, len(results), as_of)
    return results


@router.get("/{asset_id}", response_model=AssetResponse)
def get_asset(
    asset_id: int, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)
):
    return _get_asset(db, user_id, asset_id)


@router.put("/{asset_id}", response_model=AssetResponse)
def update_asset(
    asset_id: int,
    data: AssetUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    asset = _get_asset(db, user_id, asset_id)
    for field, value in data.model_dump(exclude_none=True).items():
        setattr(asset, field, value)
    db.commit()
    db.refresh(asset)
    return asset


@router.delete("/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_asset(
    asset_id: int, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)
):
    asset = _get_asset(db, user_id, asset_id)
    db.delete(asset)
    db.commit()


@router.get("/{asset_id}/depreciation", response_model=DepreciationResponse)
def get_depreciation(
    asset_id: int,
    as_of: date | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Depreciation to date without storing it."""
    return _depreciation(_get_asset(db, user_id, asset_id), as_of or date.today())


@router.post("/{asset_id}/depreciation", response_model=DepreciationResponse)
def update_depreciation(
    asset_id: int,
    as_of: date | None = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    asset = _get_asset(db, user_id, asset_id)
    if asset.status != "ACTIVE":
        raise HTTPException(
            status_code=409, detail=f"Depreciation only applies to active assets ({asset.status})."
        )
    result = _apply_depreciation(asset, as_of or date.today())
    db.commit()
    return result


@router.get("/{asset_id}/schedule", response_model=ScheduleResponse)
def get_schedule(
    asset_id: int, db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)
):
    asset = _get_asset(db, user_id, asset_id)
    schedule = build_schedule(
        asset.purchase_price,
        asset.residual_value,
        asset.depreciation_method,
        asset.depreciation_rate,
        asset.useful_life,
    )
    return {
        "asset_id": asset.id,
        "asset_name": asset.name,
        "purchase_price": asset.purchase_price,
        "residual_value": asset.residual_value,
        "useful_life": asset.useful_life,
        "depreciation_method": asset.depreciation_method,
        "entries": [ScheduleEntryResponse.model_validate(e) for e in schedule.entries],
        "total_depreciation": schedule.total_depreciation,
    }
