"""
Route-level tests: response contracts and the error envelope
"""

import json
from types import SimpleNamespace

import pytest
import stripe

from saleready.core.config import settings


@pytest.fixture
def queue_send(fake_db):
    fake_db.rpc_results["queue_send"] = 17
    return fake_db


@pytest.fixture
def auth_headers(make_token, monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", "test-secret")
    return {"Authorization": f"Bearer {make_token('user-1', email='owner@example.com')}"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestAnalysisRoutes:
    def test_sales_readiness_is_accepted(self, client, queue_send):
        response = client.post("/api/analyze-sales-readiness", json={"companyId": "c1", "valuationId": "v1"})

        assert response.status_code == 202
        assert response.json() == {
            "success": True,
            "message": "Analysis queued for processing",
            "status": "processing",
            "queueMessageId": 17,
        }
        (row,) = queue_send.rows("valuation_impact_analysis")
        assert row["status"] == "processing"

    def test_missing_company_is_400(self, client, queue_send):
        response = client.post("/api/analyze-sales-readiness", json={"valuationId": "v1"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "VALIDATION_ERROR"
        assert queue_send.rpc_calls == []

    def test_post_dd_carries_previous_analysis(self, client, queue_send):
        response = client.post(
            "/api/analyze-post-dd-readiness",
            json={"companyId": "c1", "valuationId": "v1", "previousAnalysisId": "a0"},
        )

        assert response.status_code == 202
        function, params = queue_send.rpc_calls[0]
        assert params["message"]["previousAnalysisId"] == "a0"

    def test_dcf_new_job_is_queued(self, client, queue_send, auth_headers):
        response = client.post(
            "/api/queue-dcf-analysis", json={"companyId": "c1", "valuationId": "v1"}, headers=auth_headers
        )

        assert response.status_code == 202
        assert response.json()["status"] == "queued"
        (row,) = queue_send.rows("dcf_scenario_analyses")
        assert row["user_id"] == "user-1"

    def test_dcf_existing_job_returns_200(self, client, queue_send):
        queue_send.seed("dcf_scenario_analyses", {"id": "d1", "company_id": "c1", "valuation_id": "v1", "status": "completed"})

        response = client.post("/api/queue-dcf-analysis", json={"companyId": "c1", "valuationId": "v1"})

        assert response.status_code == 200
        assert response.json()["analysis_id"] == "d1"
        assert queue_send.rpc_calls == []

    def test_queue_failure_is_500(self, client, fake_db):
        fake_db.rpc_results["queue_send"] = RuntimeError("pgmq unavailable")

        response = client.post("/api/analyze-sales-readiness", json={"companyId": "c1"})

        assert response.status_code == 500
        assert response.json()["error"] == "QUEUE_ERROR"

    def test_valuation_documents_are_accepted(self, client, queue_send, auth_headers):
        response = client.post(
            "/api/analyze-valuation-documents",
            json={
                "companyId": "c1",
                "companyName": "Acme Oy",
                "userId": "someone-else",
                "files": [{"id": "f1", "name": "tase.pdf", "mimeType": "application/pdf", "base64": "JVBERi0x"}],
            },
            headers=auth_headers,
        )

        assert response.status_code == 202
        body = response.json()
        (row,) = queue_send.rows("valuation_document_analysis")
        assert body["analysisId"] == row["id"]
        assert body["queueMessageId"] == 17
        assert body["status"] == "processing"
        assert row["user_id"] == "user-1"
        assert row["processed_files"][0]["base64Data"] == "JVBERi0x"

    def test_valuation_documents_without_files_is_400(self, client, queue_send):
        response = client.post(
            "/api/analyze-valuation-documents",
            json={"companyId": "c1", "companyName": "Acme Oy", "userId": "u1", "files": []},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert queue_send.rows("valuation_document_analysis") == []

    def test_generate_dd_tasks(self, client, fake_db, auth_headers, monkeypatch):
        from saleready.services.dd_task_service import dd_task_service
        from saleready.services.readiness_analysis import ReadinessAnalysisService

        class StubModel:
            async def complete_json(self, prompt, system=None, documents=None):
                return {"tasks": [{"title": "Collect customer contracts", "category": "asiakkaat"}]}

        monkeypatch.setattr(dd_task_service, "analysis", ReadinessAnalysisService(model=StubModel()))
        fake_db.seed("companies", {"id": "c1", "user_id": "user-1", "name": "Acme Oy"})

        response = client.post(
            "/api/generate-dd-tasks",
            json={"companyId": "c1", "ddRiskAnalysis": {"risks": [{"category": "customers"}]}},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Created 1 new tasks to address DD risks",
            "taskCount": 1,
        }
        (task,) = fake_db.rows("company_tasks")
        assert task["category"] == "customers"
        assert task["dd_related"] is True

    def test_generate_dd_tasks_requires_risk_analysis(self, client, fake_db):
        response = client.post("/api/generate-dd-tasks", json={"companyId": "c1"})

        assert response.status_code == 400
        assert fake_db.rows("company_tasks") == []


class TestSimulateValuation:
    def test_returns_range(self, client):
        response = client.post("/api/simulate-valuation", json={
            "currentFinancials": {
                "revenue": 1000000, "ebit": 100000, "ebitda": 150000, "equity": 200000,
                "netDebt": 50000, "depreciation": 50000, "currentValue": 300000,
            },
            "multipliers": {"revenue": 0.5, "ebit": 6, "ebitda": 5},
        })

        assert response.status_code == 200
        body = response.json()
        assert body["valuations"]["substanssi"] == 200000
        assert body["range"]["average"] == 475000

    def test_missing_multipliers_is_400(self, client):
        response = client.post("/api/simulate-valuation", json={"currentFinancials": {"revenue": 1}})

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"


class TestBillingRoutes:
    def test_checkout_uses_token_identity(self, client, fake_db, auth_headers, monkeypatch):
        monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_123")
        seen = {}

        def create(**params):
            seen.update(params)
            return SimpleNamespace(id="cs_1", url="https://checkout.stripe.com/c/cs_1")

        monkeypatch.setattr(stripe.checkout.Session, "create", create)

        response = client.post("/api/create-checkout", json={"priceId": "price_pro"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"checkoutUrl": "https://checkout.stripe.com/c/cs_1", "sessionId": "cs_1"}
        assert seen["metadata"] == {"user_id": "user-1"}
        assert seen["customer_email"] == "owner@example.com"

    def test_webhook_without_signature_is_400(self, client, monkeypatch):
        monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_123")

        response = client.post("/api/stripe-webhook", content=json.dumps({"type": "x"}))

        assert response.status_code == 400
        assert response.json()["message"] == "No signature"


class TestNDARoute:
    def test_accept(self, client, fake_db):
        fake_db.seed("company_sharing", {"id": "s1", "requires_nda": True, "nda_accepted_at": None})

        response = client.post(
            "/api/accept-nda",
            json={"shareId": "s1", "signerInfo": {"name": "Anna Virtanen", "email": "anna@example.fi"}},
            headers={"x-forwarded-for": "203.0.113.5, 10.0.0.1"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert fake_db.rows("nda_acceptances")[0]["accepted_by_ip"] == "203.0.113.5"

    def test_invalid_signer_lists_errors(self, client, fake_db):
        response = client.post(
            "/api/accept-nda",
            json={"shareId": "s1", "signerInfo": {"name": "Anna", "email": "nope"}},
        )

        assert response.status_code == 400
        assert response.json()["details"]["errors"]


class TestCompanyRoutes:
    def test_requires_token(self, client):
        response = client.get("/api/companies/")

        assert response.status_code == 401
        assert response.json()["error"] == "AUTH_ERROR"

    def test_lists_own_companies(self, client, fake_db, auth_headers):
        fake_db.seed(
            "companies",
            {"id": "c1", "user_id": "user-1", "name": "Oma Oy"},
            {"id": "c2", "user_id": "user-2", "name": "Muu Oy"},
        )

        response = client.get("/api/companies/", headers=auth_headers)

        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == ["c1"]

    def test_other_users_company_is_403(self, client, fake_db, auth_headers):
        fake_db.seed("companies", {"id": "c2", "user_id": "user-2", "name": "Muu Oy"})

        response = client.get("/api/companies/c2", headers=auth_headers)

        assert response.status_code == 403

    def test_create_and_fetch(self, client, fake_db, auth_headers):
        created = client.post("/api/companies/", json={"name": "Uusi Oy", "business_id": "0112038-9"}, headers=auth_headers)

        assert created.status_code == 201
        company_id = created.json()["id"]
        fetched = client.get(f"/api/companies/{company_id}", headers=auth_headers)
        assert fetched.json()["name"] == "Uusi Oy"

    def test_blank_name_is_400(self, client, fake_db, auth_headers):
        response = client.post("/api/companies/", json={"name": "  "}, headers=auth_headers)
        assert response.status_code == 400

    def test_lookup_rejects_invalid_business_id(self, client):
        response = client.get("/api/companies/lookup/1234567-8")
        assert response.status_code == 400

    def test_lookup_rejects_non_ascii_digits(self, client):
        response = client.get("/api/companies/lookup/011203²-9")
        assert response.status_code == 400


class TestTaskRoutes:
    def test_create_list_and_complete(self, client, fake_db, auth_headers):
        fake_db.seed("companies", {"id": "c1", "user_id": "user-1", "name": "Oma Oy"})

        created = client.post(
            "/api/tasks/",
            json={"company_id": "c1", "title": "Audit accounts", "category": "financial", "type": "checkbox"},
            headers=auth_headers,
        )
        assert created.status_code == 201
        task_id = created.json()["id"]

        updated = client.patch(f"/api/tasks/{task_id}", json={"completion_status": "completed"}, headers=auth_headers)
        assert updated.json()["completion_status"] == "completed"

        listed = client.get("/api/tasks/", params={"company_id": "c1", "completion_status": "completed"}, headers=auth_headers)
        assert [t["id"] for t in listed.json()] == [task_id]

    def test_unknown_category_is_400(self, client, fake_db, auth_headers):
        response = client.post(
            "/api/tasks/",
            json={"company_id": "c1", "title": "x", "category": "astrology", "type": "checkbox"},
            headers=auth_headers,
        )
        assert response.status_code == 400


class TestUpdateValidation:
    @pytest.fixture
    def owned(self, fake_db):
        fake_db.seed("companies", {"id": "c1", "user_id": "user-1", "name": "Oma Oy"})
        fake_db.seed("company_tasks", {
            "id": "t1", "company_id": "c1", "title": "Audit accounts",
            "category": "financial", "type": "checkbox", "completion_status": "not_started",
        })
        return fake_db

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_company_name_cannot_be_cleared(self, client, owned, auth_headers, name):
        response = client.patch("/api/companies/c1", json={"name": name}, headers=auth_headers)

        assert response.status_code == 400
        assert owned.rows("companies")[0]["name"] == "Oma Oy"
        assert owned.ops("companies", "update") == []

    def test_company_other_fields_update(self, client, owned, auth_headers):
        response = client.patch("/api/companies/c1", json={"industry": "Retail"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["name"] == "Oma Oy"

    @pytest.mark.parametrize("body", [{"title": ""}, {"title": None}, {"category": None}])
    def test_task_required_fields_cannot_be_cleared(self, client, owned, auth_headers, body):
        response = client.patch("/api/tasks/t1", json=body, headers=auth_headers)

        assert response.status_code == 400
        assert owned.rows("company_tasks")[0]["title"] == "Audit accounts"
        assert owned.ops("company_tasks", "update") == []
