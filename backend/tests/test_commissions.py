# Overview: Pytest coverage for commission reports, status history and commission math.

from datetime import datetime

import pytest

from lrsync.models import ActivityLog, CommissionAgentBreakdown, CommissionReport
from lrsync.services import commission_service, sales_service
from lrsync.services.attachment_service import commission_attachment_key
from lrsync.services.visibility import VisibilityError
from lrsync.validation import NotFoundError, ValidationError


@pytest.fixture
def cebu_sales(db_session, secretary_cebu, ctx_for, sale_payload):
    ctx = ctx_for(secretary_cebu)
    first, _ = sales_service.create_sale(ctx, sale_payload(tin="111111111", total_actual_amount="10,000"))
    second, _ = sales_service.create_sale(ctx, sale_payload(tin="222222222", total_actual_amount="5000"))
    return [first, second]


@pytest.fixture
def report(cebu_sales, admin, ctx_for):
    return commission_service.create_report(ctx_for(admin), [s.id for s in cebu_sales], "March batch")


# =============================================================================
# STATUS TOKENS
# =============================================================================


class TestStatusMapping:
    @pytest.mark.parametrize(
        "token,stored",
        [
            ("new", "new"),
            ("ongoing_verification", "ongoing verification"),
            ("for_approval", "for approval"),
            ("approved", "approved"),
            ("cancelled", "cancelled"),
            ("for_testing", "for testing"),
        ],
    )
    def test_token_to_storage(self, token, stored):
        assert commission_service.storage_status(token) == stored

    @pytest.mark.parametrize("token", ["ongoing verification", "done", "", None, "APPROVED"])
    def test_unknown_token(self, token):
        with pytest.raises(ValidationError, match="Unknown status"):
            commission_service.storage_status(token)


# =============================================================================
# REPORT LIFECYCLE
# =============================================================================


class TestCreateReport:
    def test_created_with_history(self, report, admin):
        assert report.report_number == 1
        assert report.status == "new"
        assert report.created_by == admin.id
        assert len(report.history) == 1
        assert report.history[0]["action"] == "created"
        assert report.history[0]["status"] == "new"

    def test_numbers_increase(self, report, cebu_sales, admin, ctx_for):
        second = commission_service.create_report(ctx_for(admin), [cebu_sales[0].id])
        assert second.report_number == report.report_number + 1

    def test_requires_sales(self, db_session, admin, ctx_for):
        with pytest.raises(ValidationError, match="Select at least one sale"):
            commission_service.create_report(ctx_for(admin), [])

    def test_unknown_sale(self, db_session, admin, ctx_for):
        with pytest.raises(ValidationError, match="Sales not found"):
            commission_service.create_report(ctx_for(admin), ["missing-id"])

    def test_deleted_sale_rejected(self, cebu_sales, admin, secretary_cebu, ctx_for):
        sales_service.soft_delete_sale(ctx_for(secretary_cebu), cebu_sales[0].id)
        with pytest.raises(ValidationError):
            commission_service.create_report(ctx_for(admin), [cebu_sales[0].id])

    def test_sale_links_back_to_report(self, report, cebu_sales):
        links = sales_service.commission_links([s.id for s in cebu_sales])
        assert links[cebu_sales[0].id]["report_number"] == report.report_number
        assert links[cebu_sales[1].id]["status"] == "new"

    def test_create_endpoint(self, client, cebu_sales, admin, headers_for):
        resp = client.post("/api/commission-reports", json={
            "sales_uuids": [s.id for s in cebu_sales],
            "remarks": "For checking",
        }, headers=headers_for(admin))
        assert resp.status_code == 201
        assert resp.json["created_by_name"] == "Andres Tester"
        assert resp.json["sales_uuids"] == [s.id for s in cebu_sales]


class TestStatusHistory:
    def test_status_update_appends(self, db_session, report, admin, ctx_for):
        ctx = ctx_for(admin)
        commission_service.update_status(ctx, report.uuid, "ongoing_verification", "Checking receipts")
        commission_service.update_status(ctx, report.uuid, "for_approval", None)

        db_session.expire_all()
        stored = db_session.get(CommissionReport, report.uuid)
        assert stored.status == "for approval"
        assert [h["status"] for h in stored.history] == ["new", "ongoing verification", "for approval"]
        assert stored.history[-1]["action"] == "status_update"
        assert stored.history[-1]["user_name"] == "Andres Tester"
        assert stored.history[1]["remarks"] == "Checking receipts"

    def test_history_prefix_is_preserved(self, db_session, report, admin, ctx_for):
        """Earlier entries are never rewritten by later updates."""
        ctx = ctx_for(admin)
        commission_service.update_status(ctx, report.uuid, "approved", "ok")
        before = [dict(h) for h in db_session.get(CommissionReport, report.uuid).history]
        commission_service.update_status(ctx, report.uuid, "cancelled", "client withdrew")
        after = db_session.get(CommissionReport, report.uuid).history
        assert after[:len(before)] == before
        assert len(after) == len(before) + 1

    def test_any_transition_allowed(self, report, admin, ctx_for):
        ctx = ctx_for(admin)
        commission_service.update_status(ctx, report.uuid, "approved", None)
        updated = commission_service.update_status(ctx, report.uuid, "new", "reopened")
        assert updated.status == "new"
        assert updated.remarks == "reopened"

    def test_bad_token_leaves_report_untouched(self, db_session, report, admin, ctx_for):
        with pytest.raises(ValidationError):
            commission_service.update_status(ctx_for(admin), report.uuid, "ongoing verification", None)
        assert len(db_session.get(CommissionReport, report.uuid).history) == 1

    def test_status_endpoint(self, client, report, admin, headers_for):
        resp = client.post(f"/api/commission-reports/{report.uuid}/status", json={
            "status": "for_testing", "remarks": "QA",
        }, headers=headers_for(admin))
        assert resp.status_code == 200
        assert resp.json["status"] == "for testing"
        assert resp.json["history"][-1]["status"] == "for testing"

    def test_listing_filter_accepts_token_or_stored(self, report, admin, ctx_for):
        ctx = ctx_for(admin)
        commission_service.update_status(ctx, report.uuid, "ongoing_verification", None)
        by_token = commission_service.list_reports(ctx, status="ongoing_verification").records
        by_value = commission_service.list_reports(ctx, status="ongoing verification").records
        assert [r.uuid for r in by_token] == [r.uuid for r in by_value] == [report.uuid]


class TestReportVisibility:
    def test_scoped_by_creator_area(self, cebu_sales, make_profile, secretary_davao, ctx_for):
        cebu_admin = make_profile("admin", area="Cebu", first_name="Cora")
        report = commission_service.create_report(ctx_for(cebu_admin), [cebu_sales[0].id])
        assert commission_service.list_reports(ctx_for(secretary_davao)).records == []
        with pytest.raises(VisibilityError):
            commission_service.get_visible_report(ctx_for(secretary_davao), report.uuid)

    def test_secretary_sees_same_area_report(self, cebu_sales, make_profile, secretary_cebu, ctx_for):
        cebu_admin = make_profile("admin", area="Cebu", first_name="Cora")
        report = commission_service.create_report(ctx_for(cebu_admin), [cebu_sales[0].id])
        visible = commission_service.list_reports(ctx_for(secretary_cebu))
        assert [r.uuid for r in visible.records] == [report.uuid]
        assert visible.items[0].owner_name == "Cora Tester"

    def test_get_report_includes_summary(self, report, admin, ctx_for):
        data = commission_service.get_report(ctx_for(admin), report.uuid)
        assert len(data["sales"]) == 2
        assert data["summary"]["total_actual_amount"] == 15000.0
        assert data["summary"]["total_commission"] == 750.0
        assert data["summary"]["by_owner"][0]["user_full_name"] == "Carla Tester"

    def test_soft_delete(self, report, admin, ctx_for):
        ctx = ctx_for(admin)
        commission_service.soft_delete_report(ctx, report.uuid)
        assert commission_service.list_reports(ctx).records == []
        with pytest.raises(NotFoundError):
            commission_service.get_report(ctx, report.uuid)


# =============================================================================
# ATTACHMENTS
# =============================================================================


class TestReportAttachments:
    def test_attachment_key(self):
        key = commission_attachment_key(
            42, "Cebu", "application/pdf", 1, datetime(2024, 3, 5, 14, 30, 0), "pdf", prefix="lrsync",
        )
        assert key == (
            "lrsync/commission_report_attachments/Cebu/CR_42/"
            "CR_42-Accounting_PDF_Attachment_1-20240305-143000.pdf"
        )

    def test_image_label(self):
        key = commission_attachment_key(7, None, "image/jpeg", 2, datetime(2024, 1, 1), "jpg", prefix="p")
        assert key == "p/commission_report_attachments/Unknown/CR_7/CR_7-Accounting_Image_Attachment_2-20240101-000000.jpg"

    def test_add_and_delete(self, report, admin, ctx_for, files, object_store):
        ctx = ctx_for(admin)
        updated, errors = commission_service.add_attachments(ctx, report.uuid, [files.pdf(), files.png()])
        assert errors == []
        names = [a["name"] for a in updated.accounting_pot]
        assert names[0].startswith("CR_1-Accounting_PDF_Attachment_1-")
        assert names[1].startswith("CR_1-Accounting_Image_Attachment_2-")
        assert all("uploadedAt" in a for a in updated.accounting_pot)

        url = updated.accounting_pot[0]["url"]
        updated = commission_service.delete_attachment(ctx, report.uuid, 0)
        assert len(updated.accounting_pot) == 1
        assert not object_store.exists(object_store.key_from_url(url))

    def test_batch_files_stamped_one_second_apart(self, report, admin, ctx_for, files):
        updated, _ = commission_service.add_attachments(ctx_for(admin), report.uuid, [files.pdf(), files.pdf()])
        stamps = [a["name"].rsplit("-", 1)[-1].split(".")[0] for a in updated.accounting_pot]
        assert stamps[0] != stamps[1]

    def test_no_files(self, report, admin, ctx_for):
        with pytest.raises(ValidationError, match="No files provided"):
            commission_service.add_attachments(ctx_for(admin), report.uuid, [])


# =============================================================================
# COMMISSION MATH
# =============================================================================


class TestComputeCommission:
    def test_vat_deduction(self):
        result = commission_service.compute_commission(11200, 5, "vat deduction")
        assert result["amount"] == 11200.0
        assert result["net_of_vat"] is None
        assert result["vat"] == 1200.0
        assert result["net_commission"] == 10000.0

    def test_nonvat_with_invoice(self):
        result = commission_service.compute_commission(10200, 2.5, "nonvat with invoice", ewt_rate=10)
        assert result["net_of_vat"] == 10000.0
        assert result["amount"] == 5000.0
        assert result["ewt"] == 500.0
        assert result["net_commission"] == 4500.0

    def test_nonvat_without_invoice(self):
        result = commission_service.compute_commission(10000, 2.5, "nonvat without invoice")
        assert result["amount"] is None
        assert result["net_commission"] == 5000.0
        assert result["vat"] is None

    def test_vat_with_invoice(self):
        result = commission_service.compute_commission(10200, 5, "vat with invoice")
        assert result["amount"] == 10000.0
        assert result["vat"] == 1200.0
        assert result["ewt"] == 500.0
        assert result["net_commission"] == 10700.0

    @pytest.mark.parametrize("rate", [None, "", 0])
    def test_missing_rate(self, rate):
        result = commission_service.compute_commission(10000, rate, "vat deduction")
        assert set(result.values()) == {None}

    def test_unknown_calculation_type(self):
        assert commission_service.compute_commission(10000, 5, "gross")["amount"] is None

    def test_breakdown_endpoint(self, client, db_session, report, admin, headers_for):
        db_session.add(CommissionAgentBreakdown(
            report_uuid=report.uuid, agent_name="Agent A", calculation_type="nonvat without invoice",
            comm=10000, agents_rate=5, developers_rate=5,
            um_name="Manager M", um_rate=1, um_calculation_type="nonvat without invoice",
        ))
        db_session.commit()
        resp = client.get(f"/api/commission-reports/{report.uuid}/breakdown", headers=headers_for(admin))
        assert resp.status_code == 200
        row = resp.json["items"][0]
        assert row["agent"]["net_commission"] == 10000.0
        assert row["um"]["net_commission"] == 2000.0
        assert row["tl"]["amount"] is None


class TestManagerCommission:
    def test_gross_base_when_agent_on_vat_deduction(self):
        result = commission_service.compute_manager_commission(
            10200, 1, "vat with invoice", "vat deduction", agents_rate=5, developers_rate=5,
        )
        assert result["amount"] == 2040.0
        assert result["net_of_vat"] is None
        assert result["vat"] == 244.8
        assert result["ewt"] == 102.0
        assert result["net_commission"] == 2182.8

    def test_net_of_vat_base_when_both_on_invoice(self):
        result = commission_service.compute_manager_commission(
            10200, 1, "nonvat with invoice", "vat with invoice", agents_rate=5, developers_rate=5,
        )
        assert result["net_of_vat"] == 10000.0
        assert result["amount"] == 2000.0
        assert result["ewt"] == 100.0
        assert result["net_commission"] == 1900.0

    def test_invoice_manager_needs_agent_net_of_vat(self):
        result = commission_service.compute_manager_commission(
            10200, 1, "vat with invoice", "nonvat with invoice", agents_rate=0,
        )
        assert set(result.values()) == {None}

    def test_vat_deduction_manager_on_invoice_agent(self):
        result = commission_service.compute_manager_commission(
            10200, 1, "vat deduction", "vat with invoice", agents_rate=5,
        )
        assert result["amount"] == 2040.0
        assert result["net_commission"] == 1821.43
        assert result["vat"] == 218.57
        assert result["ewt"] is None

    def test_own_developers_rate(self):
        result = commission_service.compute_manager_commission(
            10000, 1, "nonvat without invoice", "vat deduction", developers_rate=4,
        )
        assert result["amount"] == 2500.0
        assert result["net_commission"] == 2500.0

    def test_missing_calculation_type(self):
        result = commission_service.compute_manager_commission(10000, 1, None, "vat deduction")
        assert set(result.values()) == {None}

    def test_breakdown_uses_agent_type_and_manager_rates(self, client, db_session, report, admin, headers_for):
        db_session.add(CommissionAgentBreakdown(
            report_uuid=report.uuid, agent_name="Agent B", calculation_type="vat deduction",
            comm=10200, agents_rate=5, developers_rate=5,
            um_name="Manager U", um_rate=1, um_developers_rate=5, um_calculation_type="vat with invoice",
            tl_name="Leader T", tl_rate=1, tl_developers_rate=4, tl_calculation_type="nonvat without invoice",
        ))
        db_session.commit()
        row = client.get(f"/api/commission-reports/{report.uuid}/breakdown",
                         headers=headers_for(admin)).json["items"][0]
        assert row["um"]["amount"] == 2040.0
        assert row["tl"]["amount"] == 2550.0
        assert row["tl_developers_rate"] == 4.0


# =============================================================================
# BREAKDOWN EDITS
# =============================================================================


class TestUpdateBreakdown:
    @pytest.fixture
    def line(self, db_session, report):
        row = CommissionAgentBreakdown(
            report_uuid=report.uuid, agent_name="Agent A", calculation_type="nonvat without invoice",
            comm=10000, agents_rate=5, developers_rate=5,
        )
        db_session.add(row)
        db_session.commit()
        return row

    def test_edit_recomputes_figures(self, client, db_session, report, line, admin, headers_for):
        resp = client.patch(
            f"/api/commission-reports/{report.uuid}/breakdown/{line.id}",
            json={"comm": "10,200", "calculation_type": "Vat Deduction",
                  "um_name": "Manager U", "um_rate": "1", "um_developers_rate": "5",
                  "um_calculation_type": "vat with invoice"},
            headers=headers_for(admin),
        )
        assert resp.status_code == 200
        assert resp.json["calculation_type"] == "vat deduction"
        assert resp.json["comm"] == 10200.0
        assert resp.json["um"]["amount"] == 2040.0

        stored = db_session.get(CommissionAgentBreakdown, line.id)
        assert stored.um_name == "Manager U"
        entry = db_session.query(ActivityLog).filter_by(action="commission_breakdown_updated").one()
        assert entry.meta["breakdown_id"] == line.id

    def test_blank_clears_value(self, db_session, report, line, admin, ctx_for):
        row = commission_service.update_agent_breakdown(ctx_for(admin), report.uuid, line.id, {"agents_rate": ""})
        assert row["agents_rate"] is None
        assert row["agent"]["net_commission"] is None

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"calculation_type": "gross"}, "calculation_type must be one of"),
            ({"um_calculation_type": "flat"}, "um_calculation_type must be one of"),
            ({"agents_rate": "-1"}, "agents_rate must be >= 0"),
            ({"tl_rate": "150"}, "tl_rate must be <= 100"),
            ({"comm": "abc"}, "comm must be a number"),
            ({"developers_rate": "0"}, "developers_rate must be greater than 0"),
            ({"um_developers_rate": 0}, "um_developers_rate must be greater than 0"),
        ],
    )
    def test_validation(self, db_session, report, line, admin, ctx_for, payload, message):
        with pytest.raises(ValidationError, match=message):
            commission_service.update_agent_breakdown(ctx_for(admin), report.uuid, line.id, payload)
        assert db_session.get(CommissionAgentBreakdown, line.id).calculation_type == "nonvat without invoice"

    def test_unknown_row(self, client, report, line, admin, headers_for):
        resp = client.patch(f"/api/commission-reports/{report.uuid}/breakdown/{line.id + 999}",
                            json={"agents_rate": 1}, headers=headers_for(admin))
        assert resp.status_code == 404

    def test_secretary_denied(self, client, report, line, secretary_cebu, headers_for):
        resp = client.patch(f"/api/commission-reports/{report.uuid}/breakdown/{line.id}",
                            json={"agents_rate": 1}, headers=headers_for(secretary_cebu))
        assert resp.status_code == 403
