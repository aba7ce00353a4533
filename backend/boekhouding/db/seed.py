"""
Seed script: loads sample_dataset.json into the database.
Usage: python -m boekhouding.db.seed
"""
import json
import logging
from datetime import date
from pathlib import Path

from boekhouding.api.invoices import InvoiceLineIn, build_line
from boekhouding.db.database import SessionLocal, init_db
from boekhouding.models.asset import Asset
from boekhouding.models.invoice import Invoice
from boekhouding.models.vat_configuration import VatConfiguration

logger = logging.getLogger(__name__)

DATASET_PATH = Path(__file__).parent.parent.parent / "tests" / "fixtures" / "sample_dataset.json"


def load_dataset(db, data: dict) -> tuple[int, int]:
    """Add the dataset's invoices, assets and VAT configuration to `db` and commit."""
    user_id = data["user_id"]
    db.add(VatConfiguration(
        user_id=user_id,
        has_full_deduction_right=data.get("has_full_deduction_right", True),
    ))

    for inv in data["invoices"]:
        invoice = Invoice(
            user_id=user_id,
            direction=inv["direction"],
            counterparty=inv["counterparty"],
            invoice_number=inv["invoice_number"],
            issue_date=date.fromisoformat(inv["issue_date"]),
            due_date=date.fromisoformat(inv["due_date"]),
            status=inv.get("status", "DRAFT"),
        )
        invoice.lines = [
            build_line(InvoiceLineIn(**line), inv["direction"], i)
            for i, line in enumerate(inv["lines"])
        ]
        db.add(invoice)

    for asset in data["assets"]:
        db.add(Asset(
            user_id=user_id,
            name=asset["name"],
            category=asset["category"],
            purchase_date=date.fromisoformat(asset["purchase_date"]),
            purchase_price=asset["purchase_price"],
            depreciation_method=asset["depreciation_method"],
            depreciation_rate=asset["depreciation_rate"],
            useful_life=asset["useful_life"],
            residual_value=asset["residual_value"],
            current_book_value=asset["purchase_price"],
            accumulated_depreciation=0,
            status="ACTIVE",
        ))

    db.commit()
    return len(data["invoices"]), len(data["assets"])


def seed():
    init_db()
    db = SessionLocal()
    try:
        with open(DATASET_PATH, encoding="utf-8") as f:
            data = json.load(f)
        invoices, assets = load_dataset(db, data)
    finally:
        db.close()
    logger.info(
        "Seed completed: user '%s' with %d invoices and %d assets.",
        data["user_id"], invoices, assets,
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed()
