# Overview: Pytest coverage for TIN normalization and the taxpayer registry.

import pytest

from lrsync.models import TaxpayerListing, SalesRecord
from lrsync.services import purchase_service, sales_service, taxpayer_service
from lrsync.services.tin import format_tin, normalize_tin
from lrsync.validation import ConflictError, ValidationError


# =============================================================================
# TIN FORMAT
# =============================================================================


class TestTinFormat:
    @pytest.mark.parametrize(
        "raw,digits",
        [
            ("123-456-789-000", "123456789000"),
            ("123 456 789", "123456789"),
            (" 123.456.789 ", "123456789"),
            (None, ""),
            ("", ""),
            (123456789, "123456789"),
        ],
    )
    def test_normalize(self, raw, digits):
        assert normalize_tin(raw) == digits

    @pytest.mark.parametrize(
        "raw,display",
        [
            ("123456789", "123-456-789"),
            ("123456789000", "123-456-789-000"),
            ("1234", "123-4"),
            ("123", "123"),
            ("", ""),
        ],
    )
    def test_format(self, raw, display):
        assert format_tin(raw) == display

    def test_format_of_normalized_is_stable(self):
        assert format_tin(normalize_tin("123-456-789-000")) == "123-456-789-000"

    @pytest.mark.parametrize("length", range(0, 16))
    def test_normalize_undoes_format(self, length):
        digits = "9876543210123456"[:length]
        assert normalize_tin(format_tin(digits)) == digits


# =============================================================================
# GET OR CREATE
# =============================================================================


class TestGetOrCreate:
    def test_inserts_once(self, db_session, secretary_cebu, ctx_for):
        ctx = ctx_for(secretary_cebu)
        first = taxpayer_service.get_or_create_taxpayer(ctx, "123-456-789", "Acme", "Street", "City", "sales")
        second = taxpayer_service.get_or_create_taxpayer(ctx, "123456789", "Acme", "Street", "City", "sales")
        db_session.commit()
        assert first == second
        assert db_session.query(TaxpayerListing).count() == 1

    def test_existing_row_is_not_overwritten(self, db_session, secretary_cebu, ctx_for):
        ctx = ctx_for(secretary_cebu)
        taxpayer_service.get_or_create_taxpayer(ctx, "123456789", "Acme", None, None, "sales")
        taxpayer_service.get_or_create_taxpayer(ctx, "123456789", "Acme Renamed", "New St", None, "sales")
        db_session.commit()
        listing = db_session.query(TaxpayerListing).one()
        assert listing.registered_name == "Acme"
        assert listing.substreet_street_brgy is None

    def test_same_tin_different_type(self, db_session, secretary_cebu, ctx_for):
        ctx = ctx_for(secretary_cebu)
        a = taxpayer_service.get_or_create_taxpayer(ctx, "123456789", "Acme", None, None, "sales")
        b = taxpayer_service.get_or_create_taxpayer(ctx, "123456789", "Acme", None, None, "purchases")
        db_session.commit()
        assert a != b

    def test_rejects_empty_tin(self, db_session, secretary_cebu, ctx_for):
        with pytest.raises(ValidationError):
            taxpayer_service.get_or_create_taxpayer(ctx_for(secretary_cebu), "---", "Acme", None, None, "sales")

    def test_owner_recorded(self, db_session, secretary_cebu, ctx_for):
        tin_id = taxpayer_service.get_or_create_taxpayer(
            ctx_for(secretary_cebu), "123456789", "Acme", None, None, "sales",
        )
        db_session.commit()
        listing = db_session.get(TaxpayerListing, tin_id)
        assert listing.user_uuid == secretary_cebu.auth_user_id
        assert listing.user_full_name == "Carla Tester"

    def test_sale_and_purchase_share_nothing(self, db_session, secretary_cebu, ctx_for, sale_payload, purchase_payload):
        """One TIN used on both pages creates one row per type."""
        ctx = ctx_for(secretary_cebu)
        sales_service.create_sale(ctx, sale_payload(tin="555-555-555"))
        purchase_service.create_purchase(ctx, purchase_payload(tin="555555555"))
        types = sorted(t.type for t in db_session.query(TaxpayerListing).all())
        assert types == ["purchases", "sales"]

    def test_two_sales_same_tin_one_listing(self, db_session, secretary_cebu, ctx_for, sale_payload):
        ctx = ctx_for(secretary_cebu)
        s1, _ = sales_service.create_sale(ctx, sale_payload())
        s2, _ = sales_service.create_sale(ctx, sale_payload(name="Acme Trading Corp"))
        assert s1.tin_id == s2.tin_id
        assert db_session.query(TaxpayerListing).count() == 1


# =============================================================================
# SUGGESTIONS
# =============================================================================


class TestSuggestions:
    @pytest.fixture
    def registry(self, db_session, secretary_cebu, ctx_for):
        ctx = ctx_for(secretary_cebu)
        for tin, name, kind in (
            ("123456789", "Acme Trading", "sales"),
            ("123999000", "Acme Logistics", "sales"),
            ("123456000", "Bravo Foods", "purchases"),
            ("987654321", "Cebu Hardware", "sales"),
        ):
            taxpayer_service.get_or_create_taxpayer(ctx, tin, name, None, None, kind)
        db_session.commit()

    def test_tin_prefix(self, registry):
        items = taxpayer_service.suggest_by_tin("123", "sales")
        assert [i["tin"] for i in items] == ["123456789", "123999000"]

    def test_tin_prefix_uses_all_digits(self, registry):
        items = taxpayer_service.suggest_by_tin("123-45", "sales")
        assert [i["tin"] for i in items] == ["123456789"]

    def test_tin_suggestions_filtered_by_type(self, registry):
        items = taxpayer_service.suggest_by_tin("123", "purchases")
        assert [i["registered_name"] for i in items] == ["Bravo Foods"]

    @pytest.mark.parametrize("typed", ["", "1", "12", "1-2"])
    def test_too_short(self, registry, typed):
        assert taxpayer_service.suggest_by_tin(typed, "sales") == []

    def test_name_contains_case_insensitive(self, registry):
        items = taxpayer_service.suggest_by_name("acme", "sales")
        assert {i["registered_name"] for i in items} == {"Acme Trading", "Acme Logistics"}

    def test_name_too_short(self, registry):
        assert taxpayer_service.suggest_by_name("ac", "sales") == []

    def test_at_most_five(self, db_session, secretary_cebu, ctx_for):
        ctx = ctx_for(secretary_cebu)
        for i in range(8):
            taxpayer_service.get_or_create_taxpayer(ctx, f"44400000{i}", f"Vendor {i}", None, None, "sales")
        db_session.commit()
        assert len(taxpayer_service.suggest_by_tin("444", "sales")) == 5

    def test_suggest_endpoint(self, client, registry, secretary_cebu, headers_for):
        resp = client.get("/api/taxpayers/suggest?type=sales&name=acme", headers=headers_for(secretary_cebu))
        assert resp.status_code == 200
        assert resp.json["count"] == 2


# =============================================================================
# TIN LIBRARY CRUD
# =============================================================================


class TestTinLibrary:
    def test_create(self, client, secretary_cebu, headers_for):
        resp = client.post("/api/taxpayers", json={
            "tin": "123-456-789",
            "type": "sales",
            "registered_name": "Acme Trading",
        }, headers=headers_for(secretary_cebu))
        assert resp.status_code == 201
        assert resp.json["tin"] == "123456789"
        assert resp.json["tin_display"] == "123-456-789"

    def test_duplicate_rejected_before_insert(self, client, db_session, secretary_cebu, headers_for):
        headers = headers_for(secretary_cebu)
        body = {"tin": "123456789", "type": "sales", "registered_name": "Acme"}
        assert client.post("/api/taxpayers", json=body, headers=headers).status_code == 201
        resp = client.post("/api/taxpayers", json=dict(body, tin="123-456-789"), headers=headers)
        assert resp.status_code == 409
        assert resp.json["error"] == 'A sales taxpayer with TIN "123456789" already exists'
        assert db_session.query(TaxpayerListing).count() == 1

    @pytest.mark.parametrize(
        "body,message",
        [
            ({"type": "sales", "registered_name": "Acme"}, "TIN is required"),
            ({"tin": "123456789", "registered_name": "Acme"}, "Type is required"),
            ({"tin": "123456789", "type": "sales"}, "Registered name is required"),
        ],
    )
    def test_required_fields(self, client, secretary_cebu, headers_for, body, message):
        resp = client.post("/api/taxpayers", json=body, headers=headers_for(secretary_cebu))
        assert resp.status_code == 400
        assert resp.json["error"] == message

    def test_update_into_duplicate_conflicts(self, db_session, secretary_cebu, ctx_for):
        ctx = ctx_for(secretary_cebu)
        taxpayer_service.create_taxpayer(ctx, {"tin": "111111111", "type": "sales", "registered_name": "A"})
        b = taxpayer_service.create_taxpayer(ctx, {"tin": "222222222", "type": "sales", "registered_name": "B"})
        with pytest.raises(ConflictError):
            taxpayer_service.update_taxpayer(ctx, b.id, {"tin": "111-111-111"})

    def test_listing_scoped_by_owner_area(self, db_session, secretary_cebu, secretary_davao, ctx_for):
        taxpayer_service.create_taxpayer(ctx_for(secretary_cebu),
                                         {"tin": "111111111", "type": "sales", "registered_name": "Cebu Co"})
        taxpayer_service.create_taxpayer(ctx_for(secretary_davao),
                                         {"tin": "222222222", "type": "sales", "registered_name": "Davao Co"})
        names = [t.registered_name for t in taxpayer_service.list_taxpayers(ctx_for(secretary_davao)).records]
        assert names == ["Davao Co"]

    def test_admin_delete_detaches_records(self, client, db_session, admin, secretary_cebu, ctx_for,
                                           headers_for, sale_payload):
        sale, _ = sales_service.create_sale(ctx_for(secretary_cebu), sale_payload())
        resp = client.delete(f"/api/taxpayers/{sale.tin_id}", headers=headers_for(admin))
        assert resp.status_code == 200
        db_session.expire_all()
        kept = db_session.get(SalesRecord, sale.id)
        assert kept.tin_id is None
        assert kept.tin == "123456789000"
