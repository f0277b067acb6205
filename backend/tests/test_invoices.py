# Overview: Pytest coverage for the commission invoice generator.

from datetime import timedelta
from decimal import Decimal

import pytest

from lrsync.services.invoice_service import (
    InvoiceLine,
    compute_totals,
    parse_invoice,
    render_invoice_pdf,
)
from lrsync.models import ActivityLog, InvoiceRecord
from lrsync.validation import ValidationError


def _payload(**overrides):
    payload = {
        "invoice_number": "INV-0007",
        "invoice_date": "2024-03-31",
        "due_date": "2024-04-15",
        "currency": "AED",
        "company": {"name": "LR Consulting", "address": "Dubai", "email": "billing@lr.test"},
        "client": {"name": "Acme Trading", "address": "Cebu City"},
        "items": [
            {"description": "Commission March", "quantity": 1, "rate": "1,000.00"},
            {"description": "Handling", "quantity": 2, "rate": 125.5},
        ],
        "payment_details": {"bank_name": "Test Bank", "iban": "AE00 0000"},
        "notes": "Thank you",
        "terms": "Net 15",
    }
    payload.update(overrides)
    return payload


class TestTotals:
    def test_default_rate(self):
        lines = [InvoiceLine("A", Decimal("1"), Decimal("1000")), InvoiceLine("B", Decimal("2"), Decimal("125.50"))]
        totals = compute_totals(lines)
        assert totals.subtotal == Decimal("1251.00")
        assert totals.tax == Decimal("62.55")
        assert totals.total == Decimal("1313.55")

    def test_zero_rate(self):
        totals = compute_totals([InvoiceLine("A", Decimal("3"), Decimal("10"))], tax_rate=0)
        assert totals.tax == Decimal("0.00")
        assert totals.total == Decimal("30.00")

    def test_rounds_half_up(self):
        totals = compute_totals([InvoiceLine("A", Decimal("1"), Decimal("0.10"))])
        assert totals.tax == Decimal("0.01")


class TestParseInvoice:
    def test_parses_lines_and_dates(self):
        invoice = parse_invoice(_payload())
        assert invoice.number == "INV-0007"
        assert [line.amount for line in invoice.lines] == [Decimal("1000.00"), Decimal("251.00")]
        assert invoice.due_date.isoformat() == "2024-04-15"
        assert invoice.tax_rate == Decimal("5")
        assert invoice.client.name == "Acme Trading"

    def test_quantity_defaults_to_one(self):
        invoice = parse_invoice(_payload(items=[{"description": "Fee", "rate": 50}]))
        assert invoice.lines[0].quantity == Decimal("1")

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"items": []}, "At least one line item is required"),
            ({"items": [{"rate": 1}]}, "description is required"),
            ({"items": [{"description": "X"}]}, "rate is required"),
            ({"items": [{"description": "X", "rate": "abc"}]}, "must be a number"),
            ({"items": [{"description": "X", "rate": -1}]}, "must be >= 0"),
            ({"currency": "GBP"}, "currency must be one of"),
            ({"invoice_date": "31/03/2024"}, "invoice_date must be a date"),
        ],
    )
    def test_rejects_bad_input(self, overrides, message):
        with pytest.raises(ValidationError, match=message):
            parse_invoice(_payload(**overrides))

    def test_currency_is_case_insensitive(self):
        assert parse_invoice(_payload(currency="php")).currency == "PHP"

    def test_balance_due_after_payment(self):
        invoice = parse_invoice(_payload(amount_paid="500"))
        assert invoice.totals.total == Decimal("1313.55")
        assert invoice.balance_due == Decimal("813.55")

    def test_payment_cannot_exceed_total(self):
        with pytest.raises(ValidationError, match="amount_paid cannot exceed"):
            parse_invoice(_payload(amount_paid=2000))


class TestRender:
    def test_pdf_bytes(self):
        content = render_invoice_pdf(parse_invoice(_payload(notes="Line <one>\nLine two")))
        assert content.startswith(b"%PDF")

    def test_preview_endpoint(self, client, admin, headers_for):
        resp = client.post("/api/invoices/preview", json=_payload(tax_rate=10), headers=headers_for(admin))
        assert resp.status_code == 200
        assert resp.json["totals"] == {"subtotal": 1251.0, "tax": 125.1, "total": 1376.1}
        assert resp.json["lines"][1]["amount"] == 251.0

    def test_pdf_endpoint(self, client, admin, headers_for):
        resp = client.post("/api/invoices/pdf", json=_payload(), headers=headers_for(admin))
        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert resp.data.startswith(b"%PDF")
        assert "Invoice_INV-0007.pdf" in resp.headers["Content-Disposition"]

    def test_pdf_endpoint_validation(self, client, admin, headers_for):
        resp = client.post("/api/invoices/pdf", json=_payload(items=[]), headers=headers_for(admin))
        assert resp.status_code == 400

    def test_pdf_with_payment(self):
        content = render_invoice_pdf(parse_invoice(_payload(amount_paid=313.55)))
        assert content.startswith(b"%PDF")


class TestSavedInvoices:
    def test_save(self, client, db_session, admin, headers_for):
        resp = client.post("/api/invoices", json=_payload(amount_paid=313.55), headers=headers_for(admin))
        assert resp.status_code == 201
        body = resp.json
        assert body["invoice_number"] == "INV-0007"
        assert body["client_name"] == "Acme Trading"
        assert body["total"] == 1313.55
        assert body["amount_paid"] == 313.55
        assert body["balance_due"] == 1000.0
        assert body["created_by_name"] == admin.full_name

        entry = db_session.query(ActivityLog).filter_by(action="invoice_saved").one()
        assert entry.meta["invoice_id"] == body["id"]

    def test_save_validation(self, client, db_session, admin, headers_for):
        resp = client.post("/api/invoices", json=_payload(items=[]), headers=headers_for(admin))
        assert resp.status_code == 400
        assert db_session.query(InvoiceRecord).count() == 0

    def test_list_newest_first_and_search(self, client, db_session, admin, headers_for):
        headers = headers_for(admin)
        first = client.post("/api/invoices", json=_payload(invoice_number="INV-0001"), headers=headers).json
        client.post(
            "/api/invoices",
            json=_payload(invoice_number="INV-0002", client={"name": "Bayani Realty"}),
            headers=headers,
        )
        older = db_session.get(InvoiceRecord, first["id"])
        older.created_at = older.created_at - timedelta(days=1)
        db_session.commit()

        resp = client.get("/api/invoices", headers=headers)
        assert resp.status_code == 200
        assert [i["invoice_number"] for i in resp.json["items"]] == ["INV-0002", "INV-0001"]

        resp = client.get("/api/invoices?search=bayani", headers=headers)
        assert [i["invoice_number"] for i in resp.json["items"]] == ["INV-0002"]

        resp = client.get("/api/invoices?search=0001&page=1&per_page=10", headers=headers)
        assert resp.json["count"] == 1
        assert resp.json["pagination"]["total"] == 1

    def test_saved_pdf(self, client, admin, headers_for):
        headers = headers_for(admin)
        saved = client.post("/api/invoices", json=_payload(), headers=headers).json
        resp = client.get(f"/api/invoices/{saved['id']}/pdf", headers=headers)
        assert resp.status_code == 200
        assert resp.data.startswith(b"%PDF")
        assert "Invoice_INV-0007.pdf" in resp.headers["Content-Disposition"]

    def test_saved_pdf_unknown(self, client, admin, headers_for):
        resp = client.get("/api/invoices/does-not-exist/pdf", headers=headers_for(admin))
        assert resp.status_code == 404

    def test_secretary_denied(self, client, secretary_cebu, headers_for):
        headers = headers_for(secretary_cebu)
        assert client.get("/api/invoices", headers=headers).status_code == 403
        assert client.post("/api/invoices", json=_payload(), headers=headers).status_code == 403
