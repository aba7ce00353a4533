"""The sample dataset loads and produces a sensible first-quarter declaration."""
import json
from datetime import date
from decimal import Decimal

from boekhouding.db.seed import DATASET_PATH, load_dataset
from boekhouding.models.asset import Asset
from boekhouding.models.invoice import Invoice
from boekhouding.services.vat_declaration import VatDeclarationService


def _load(db):
    with open(DATASET_PATH, encoding="utf-8") as f:
        data = json.load(f)
    load_dataset(db, data)
    return data


class TestSeed:
    def test_counts(self, db):
        data = _load(db)
        assert db.query(Invoice).count() == len(data["invoices"])
        assert db.query(Asset).count() == len(data["assets"])

    def test_q1_declaration(self, db):
        data = _load(db)
        service = VatDeclarationService(db, data["user_id"])
        result = service.calculate(date(2025, 1, 1), date(2025, 3, 31), "QUARTERLY")
        # 2025-003 is still a draft invoice
        assert len(result.invoice_ids) == 4
        assert result.boxes.get("1a").base == Decimal("950.00")
        assert result.boxes.get("1a").vat == Decimal("199")
        assert result.boxes.get("1b").vat == Decimal("4")
        assert result.boxes.get("3b").base == Decimal("1200.00")
        assert result.boxes.get("4a").vat == Decimal("25")
        # 73.29 (chair) + 25.20 (hosting) → 98.49 → 99; the lunch is 0% deductible
        assert result.boxes.box5b == Decimal("99")
        assert result.boxes.box5a == Decimal("228")
        assert result.boxes.box5d == Decimal("129")
