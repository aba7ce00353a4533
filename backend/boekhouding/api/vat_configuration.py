from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from boekhouding.api.deps import get_current_user_id
from boekhouding.db import stores
from boekhouding.db.database import get_db
from boekhouding.models.vat_configuration import VatConfiguration

router = APIRouter()


class VatConfigurationUpdate(BaseModel):
    has_full_deduction_right: bool


class VatConfigurationResponse(BaseModel):
    has_full_deduction_right: bool

    model_config = {"from_attributes": True}


@router.get("/", response_model=VatConfigurationResponse)
def get_configuration(
    db: Session = Depends(get_db), user_id: str = Depends(get_current_user_id)
):
    """Without a stored configuration the user has a full right of deduction."""
    return {"has_full_deduction_right": stores.has_full_deduction_right(db, user_id)}


@router.put("/", response_model=VatConfigurationResponse)
def update_configuration(
    data: VatConfigurationUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    config = stores.find_vat_configuration(db, user_id)
    if config is None:
        config = VatConfiguration(user_id=user_id)
        db.add(config)
    config.has_full_deduction_right = data.has_full_deduction_right
    db.commit()
    db.refresh(config)
    return config
