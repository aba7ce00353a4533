from fastapi import Header, HTTPException

from boekhouding.core.errors import (
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    VatDeclarationError,
)

ERROR_STATUS = {
    NotFoundError: 404,
    InvalidStateError: 409,
    InvalidInputError: 422,
}


def get_current_user_id(x_user_id: str = Header(..., min_length=1, max_length=64)) -> str:
    """The caller, as identified by the X-User-Id header."""
    return x_user_id


def http_error(exc: VatDeclarationError) -> HTTPException:
    return HTTPException(status_code=ERROR_STATUS.get(type(exc), 400), detail=exc.message)
