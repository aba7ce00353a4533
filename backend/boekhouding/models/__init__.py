from boekhouding.models.asset import Asset
from boekhouding.models.invoice import Invoice, InvoiceLine
from boekhouding.models.vat_configuration import VatConfiguration
from boekhouding.models.vat_declaration import VatDeclaration

__all__ = ["Invoice", "InvoiceLine", "VatDeclaration", "VatConfiguration", "Asset"]
