"""
Errors raised by the VAT declaration engine.
None of these are transient: the same input state always produces the same error.
"""


class VatDeclarationError(Exception):
    """Base exception for VAT declaration operations."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(VatDeclarationError):
    """Declaration, invoice or period does not exist for this user."""


class InvalidStateError(VatDeclarationError):
    """Operation not allowed in the declaration's current status (e.g. FINAL)."""


class InvalidInputError(VatDeclarationError):
    """Unknown box identifier, inconsistent reverse-charge data, etc."""
