"""Integration tests for the FastAPI endpoints."""


def _line(**overrides):
    data = {"description": "Consultancy", "quantity": 1, "unit_price": 100, "vat_rate": 0.21}
    data.update(overrides)
    return data


def _create_invoice(client, **overrides):
    data = {
        "direction": "SALES",
        "counterparty": "Bakkerij de Vries",
        "invoice_number": "2025-001",
        "issue_date": "2025-01-15",
        "due_date": "2025-02-14",
        "status": "POSTED",
        "lines": [_line()],
    }
    data.update(overrides)
    return client.post("/api/invoices/", json=data)


Q1 = {"start_date": "2025-01-01", "end_date": "2025-03-31", "period_type": "QUARTERLY"}


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"


class TestInvoices:
    def test_create_prices_and_classifies(self, client):
        r = _create_invoice(client)
        assert r.status_code == 201
        data = r.json()
        assert data["subtotal"] == 100.0
        assert data["vat_amount"] == 21.0
        assert data["total"] == 121.0
        assert data["lines"][0]["vat_category"] == "DOMESTIC_HIGH"
        assert data["attributed_declaration_id"] is None

    def test_reverse_charge_purchase(self, client):
        r = _create_invoice(
            client,
            direction="PURCHASE",
            lines=[_line(reverse_charge=True, reverse_charge_jurisdiction="EU")],
        )
        assert r.status_code == 201
        line = r.json()["lines"][0]
        assert line["vat_category"] == "REVERSE_CHARGE_EU"
        assert line["vat_amount"] == 21.0
        assert line["total"] == 100.0

    def test_reject_reverse_charge_without_jurisdiction(self, client):
        r = _create_invoice(client, lines=[_line(reverse_charge=True)])
        assert r.status_code == 422

    def test_reject_jurisdiction_without_reverse_charge(self, client):
        r = _create_invoice(client, lines=[_line(reverse_charge_jurisdiction="NON_EU")])
        assert r.status_code == 422

    def test_reject_negative_quantity(self, client):
        r = _create_invoice(client, lines=[_line(quantity=-1)])
        assert r.status_code == 422

    def test_reject_rate_as_percentage(self, client):
        r = _create_invoice(client, lines=[_line(vat_rate=21)])
        assert r.status_code == 422

    def test_reject_unknown_direction(self, client):
        r = _create_invoice(client, direction="BARTER")
        assert r.status_code == 422

    def test_missing_user_header(self, client):
        r = client.get("/api/invoices/", headers={"X-User-Id": ""})
        assert r.status_code == 422

    def test_list_scoped_to_user(self, client):
        _create_invoice(client)
        r = client.get("/api/invoices/", headers={"X-User-Id": "someone-else"})
        assert r.status_code == 200
        assert r.json() == []

    def test_update_reprices_lines(self, client):
        created = _create_invoice(client).json()
        r = client.put(
            f"/api/invoices/{created['id']}",
            json={"lines": [_line(quantity=2, vat_rate=0.09)]},
        )
        assert r.status_code == 200
        line = r.json()["lines"][0]
        assert line["subtotal"] == 200.0
        assert line["vat_category"] == "DOMESTIC_LOW"

    def test_get_not_found(self, client):
        assert client.get("/api/invoices/9999").status_code == 404

    def test_attributed_invoice_is_read_only(self, client):
        created = _create_invoice(client).json()
        client.post("/api/vat-declaration/finalize", json=Q1)
        r = client.put(f"/api/invoices/{created['id']}", json={"counterparty": "Ander"})
        assert r.status_code == 409
        assert client.delete(f"/api/invoices/{created['id']}").status_code == 409
        r = client.patch(f"/api/invoices/{created['id']}/status", json={"status": "CANCELLED"})
        assert r.status_code == 409

    def test_payment_status_after_declaration(self, client):
        created = _create_invoice(client).json()
        client.post("/api/vat-declaration/finalize", json=Q1)
        r = client.patch(f"/api/invoices/{created['id']}/status", json={"payment_status": "PAID"})
        assert r.status_code == 200
        assert r.json()["payment_status"] == "PAID"

    def test_delete(self, client):
        created = _create_invoice(client).json()
        assert client.delete(f"/api/invoices/{created['id']}").status_code == 204
        assert client.get(f"/api/invoices/{created['id']}").status_code == 404


class TestVatDeclaration:
    def test_calculate(self, client):
        _create_invoice(client)
        _create_invoice(
            client,
            direction="PURCHASE",
            invoice_number="IN-1",
            lines=[_line(unit_price=50)],
        )
        r = client.post("/api/vat-declaration/calculate", json=Q1)
        assert r.status_code == 200
        data = r.json()
        assert data["period"] == "2025-Q1"
        assert data["id"] is None
        assert data["box1a_base"] == 100.0
        assert data["box1a_vat"] == 21.0
        assert data["box1c_base"] is None
        assert data["box5b"] == 11.0
        assert data["box5d"] == 10.0
        assert len(data["invoice_ids"]) == 2
        # preview only
        assert client.get("/api/vat-declaration/list").json() == []

    def test_calculate_rejects_inverted_dates(self, client):
        r = client.post(
            "/api/vat-declaration/calculate",
            json={**Q1, "start_date": "2025-04-01"},
        )
        assert r.status_code == 422

    def test_draft_then_finalize(self, client):
        invoice = _create_invoice(client).json()
        draft = client.post("/api/vat-declaration/draft", json={**Q1, "notes": "concept"})
        assert draft.status_code == 200
        assert draft.json()["status"] == "DRAFT"

        final = client.post("/api/vat-declaration/finalize", json=Q1)
        assert final.status_code == 200
        assert final.json()["status"] == "FINAL"
        assert final.json()["id"] == draft.json()["id"]
        assert final.json()["notes"] == "concept"

        r = client.get(f"/api/invoices/{invoice['id']}")
        assert r.json()["attributed_declaration_id"] == final.json()["id"]

    def test_finalize_twice_conflicts(self, client):
        _create_invoice(client)
        assert client.post("/api/vat-declaration/finalize", json=Q1).status_code == 200
        assert client.post("/api/vat-declaration/finalize", json=Q1).status_code == 409
        assert client.post("/api/vat-declaration/calculate", json=Q1).status_code == 409
        assert client.post("/api/vat-declaration/draft", json=Q1).status_code == 409

    def test_update_draft(self, client):
        _create_invoice(client)
        draft = client.post("/api/vat-declaration/draft", json=Q1).json()
        r = client.put(
            f"/api/vat-declaration/{draft['id']}",
            json={"box1d_vat": 5, "notes": "privégebruik auto"},
        )
        assert r.status_code == 200
        data = r.json()
        assert data["box1d_vat"] == 5.0
        assert data["box5a"] == 26.0
        assert data["box5d"] == 26.0
        assert data["notes"] == "privégebruik auto"

    def test_update_rejects_fractional_vat(self, client):
        draft = client.post("/api/vat-declaration/draft", json=Q1).json()
        r = client.put(f"/api/vat-declaration/{draft['id']}", json={"box1c_vat": 2.5})
        assert r.status_code == 422

    def test_update_rejects_infinite_vat(self, client):
        draft = client.post("/api/vat-declaration/draft", json=Q1).json()
        r = client.put(
            f"/api/vat-declaration/{draft['id']}",
            content='{"box1d_vat": Infinity}',
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 422

    def test_finalize_rejects_fractional_vat(self, client):
        _create_invoice(client)
        r = client.post("/api/vat-declaration/finalize", json={**Q1, "box1d_vat": 5.5})
        assert r.status_code == 422
        assert client.get("/api/vat-declaration/period/2025-Q1").status_code == 404

    def test_finalize_keeps_draft_overrides(self, client):
        _create_invoice(client)
        draft = client.post("/api/vat-declaration/draft", json=Q1).json()
        client.put(f"/api/vat-declaration/{draft['id']}", json={"box1c_vat": 6})
        r = client.post("/api/vat-declaration/finalize", json=Q1)
        assert r.status_code == 200
        assert r.json()["box1c_vat"] == 6.0
        assert r.json()["box5a"] == 27.0
        validation = client.get(f"/api/vat-declaration/{draft['id']}/validate").json()
        assert validation["has_errors"] is False

    def test_update_final_conflicts(self, client):
        final = client.post("/api/vat-declaration/finalize", json=Q1).json()
        r = client.put(f"/api/vat-declaration/{final['id']}", json={"notes": "x"})
        assert r.status_code == 409

    def test_update_to_final_conflicts(self, client):
        draft = client.post("/api/vat-declaration/draft", json=Q1).json()
        r = client.put(f"/api/vat-declaration/{draft['id']}", json={"status": "FINAL"})
        assert r.status_code == 409

    def test_get_and_by_period(self, client):
        draft = client.post("/api/vat-declaration/draft", json=Q1).json()
        assert client.get(f"/api/vat-declaration/{draft['id']}").status_code == 200
        r = client.get("/api/vat-declaration/period/2025-Q1")
        assert r.status_code == 200
        assert r.json()["id"] == draft["id"]
        assert client.get("/api/vat-declaration/period/2025-Q2").status_code == 404
        assert client.get("/api/vat-declaration/9999").status_code == 404

    def test_other_user_sees_nothing(self, client):
        draft = client.post("/api/vat-declaration/draft", json=Q1).json()
        r = client.get(f"/api/vat-declaration/{draft['id']}", headers={"X-User-Id": "someone-else"})
        assert r.status_code == 404

    def test_periods(self, client):
        _create_invoice(client)
        _create_invoice(client, invoice_number="2025-002", issue_date="2025-02-20", due_date="2025-03-20")
        r = client.get("/api/vat-declaration/periods")
        assert r.status_code == 200
        assert [p["period"] for p in r.json()] == ["2025-01", "2025-02"]

    def test_box_invoices_by_period(self, client):
        _create_invoice(client, lines=[_line(), _line(vat_rate=0.09)])
        r = client.post(
            "/api/vat-declaration/invoices/1b",
            json={"start_date": "2025-01-01", "end_date": "2025-03-31"},
        )
        assert r.status_code == 200
        data = r.json()
        assert len(data) == 1
        assert [line["vat_category"] for line in data[0]["lines"]] == ["DOMESTIC_LOW"]

    def test_box_invoices_unknown_box(self, client):
        r = client.post(
            "/api/vat-declaration/invoices/9z",
            json={"start_date": "2025-01-01", "end_date": "2025-03-31"},
        )
        assert r.status_code == 422

    def test_box_invoices_of_declaration(self, client):
        invoice = _create_invoice(client).json()
        final = client.post("/api/vat-declaration/finalize", json=Q1).json()
        r = client.get(f"/api/vat-declaration/{final['id']}/invoices/1a")
        assert r.status_code == 200
        assert [b["invoice"]["id"] for b in r.json()] == [invoice["id"]]

    def test_validate(self, client):
        _create_invoice(client)
        final = client.post("/api/vat-declaration/finalize", json=Q1).json()
        r = client.get(f"/api/vat-declaration/{final['id']}/validate")
        assert r.status_code == 200
        assert r.json()["has_errors"] is False

    def test_exports(self, client):
        _create_invoice(client)
        final = client.post("/api/vat-declaration/finalize", json=Q1).json()
        pdf = client.get(f"/api/vat-declaration/{final['id']}/pdf")
        assert pdf.status_code == 200
        assert pdf.headers["content-type"] == "application/pdf"
        assert "BTW_2025-Q1.pdf" in pdf.headers["content-disposition"]
        assert pdf.content.startswith(b"%PDF")
        xml = client.get(f"/api/vat-declaration/{final['id']}/xml")
        assert xml.status_code == 200
        assert b"BtwAangifte" in xml.content
        assert client.get("/api/vat-declaration/9999/pdf").status_code == 404


class TestVatConfiguration:
    def test_default_full_deduction(self, client):
        r = client.get("/api/vat-configuration/")
        assert r.status_code == 200
        assert r.json()["has_full_deduction_right"] is True

    def test_disable_reverse_charge_deduction(self, client):
        r = client.put("/api/vat-configuration/", json={"has_full_deduction_right": False})
        assert r.status_code == 200
        assert r.json()["has_full_deduction_right"] is False

        _create_invoice(
            client,
            direction="PURCHASE",
            lines=[_line(reverse_charge=True, reverse_charge_jurisdiction="NON_EU")],
        )
        data = client.post("/api/vat-declaration/calculate", json=Q1).json()
        assert data["box4a_vat"] == 21.0
        assert data["box5b"] == 0.0
        assert data["box5d"] == 21.0


class TestAssets:
    def _create_asset(self, client, **overrides):
        data = {
            "name": "Laptop",
            "category": "IT",
            "purchase_date": "2020-01-01",
            "purchase_price": 1200,
            "depreciation_method": "STRAIGHT_LINE",
            "useful_life": 5,
            "residual_value": 0,
        }
        data.update(overrides)
        return client.post("/api/assets/", json=data)

    def test_create_asset(self, client):
        r = self._create_asset(client)
        assert r.status_code == 201
        data = r.json()
        assert data["current_book_value"] == 1200.0
        assert data["status"] == "ACTIVE"

    def test_reject_residual_above_price(self, client):
        assert self._create_asset(client, residual_value=5000).status_code == 422

    def test_reject_declining_without_rate(self, client):
        r = self._create_asset(client, depreciation_method="DECLINING_BALANCE")
        assert r.status_code == 422

    def test_preview_depreciation(self, client):
        asset = self._create_asset(client).json()
        r = client.get(f"/api/assets/{asset['id']}/depreciation", params={"as_of": "2022-07-01"})
        assert r.status_code == 200
        data = r.json()
        assert data["annual_depreciation"] == 240.0
        assert data["accumulated_depreciation"] == 600.0
        assert data["current_book_value"] == 600.0
        assert data["fully_depreciated"] is False
        # nothing stored
        assert client.get(f"/api/assets/{asset['id']}").json()["accumulated_depreciation"] == 0.0

    def test_apply_depreciation(self, client):
        asset = self._create_asset(client).json()
        r = client.post(f"/api/assets/{asset['id']}/depreciation", params={"as_of": "2022-07-01"})
        assert r.status_code == 200
        stored = client.get(f"/api/assets/{asset['id']}").json()
        assert stored["accumulated_depreciation"] == 600.0
        assert stored["current_book_value"] == 600.0

    def test_fully_depreciated(self, client):
        asset = self._create_asset(client).json()
        r = client.post(f"/api/assets/{asset['id']}/depreciation", params={"as_of": "2026-01-01"})
        assert r.json()["fully_depreciated"] is True
        assert client.get(f"/api/assets/{asset['id']}").json()["status"] == "FULLY_DEPRECIATED"
        r = client.post(f"/api/assets/{asset['id']}/depreciation", params={"as_of": "2026-01-01"})
        assert r.status_code == 409

    def test_update_all(self, client):
        self._create_asset(client)
        self._create_asset(client, name="Bus", purchase_price=1000, depreciation_method="DECLINING_BALANCE",
                           depreciation_rate=20, useful_life=10, residual_value=100)
        r = client.post("/api/assets/depreciation/update-all", params={"as_of": "2022-01-01"})
        assert r.status_code == 200
        assert sorted(d["accumulated_depreciation"] for d in r.json()) == [360.0, 480.0]

    def test_schedule(self, client):
        asset = self._create_asset(
            client, purchase_price=1000, depreciation_method="DECLINING_BALANCE",
            depreciation_rate=20, useful_life=15, residual_value=100,
        ).json()
        r = client.get(f"/api/assets/{asset['id']}/schedule")
        assert r.status_code == 200
        data = r.json()
        assert data["entries"][0]["depreciation_expense"] == 200.0
        assert data["entries"][-1]["ending_book_value"] == 100.0
        assert data["total_depreciation"] == 900.0

    def test_update_and_delete(self, client):
        asset = self._create_asset(client).json()
        r = client.put(f"/api/assets/{asset['id']}", json={"status": "SOLD", "disposal_date": "2024-05-01"})
        assert r.status_code == 200
        assert r.json()["status"] == "SOLD"
        assert client.delete(f"/api/assets/{asset['id']}").status_code == 204
        assert client.get(f"/api/assets/{asset['id']}").status_code == 404
