import pytest

from saleready.core.exceptions import ExternalAPIError
from saleready.services.queue_processors import (
    DCFAnalysisProcessor,
    PostDDReadinessProcessor,
    SalesReadinessProcessor,
    ValuationDocumentsProcessor,
)
from saleready.services.readiness_analysis import ReadinessAnalysisService

IMPACT = "valuation_impact_analysis"


class FakeModel:
    """Returns queued JSON replies in order"""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []
        self.documents = []

    async def complete_json(self, prompt, system=None, documents=None):
        self.prompts.append(prompt)
        self.documents.append(documents)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return dict(reply)


def _tasks(completed, total, **extra):
    return [
        {
            "id": f"t{i}",
            "company_id": "c1",
            "title": f"Task {i}",
            "category": "financial",
            "completion_status": "completed" if i < completed else "in_progress",
            **extra,
        }
        for i in range(total)
    ]


@pytest.fixture
def queue(fake_db):
    archived = []
    fake_db.rpc_results["queue_archive"] = lambda params: archived.append(params) or True

    def push(message, msg_id=5):
        fake_db.rpc_results["queue_pop"] = [{"msg_id": msg_id, "message": message, "read_ct": 1}]

    push.archived = archived
    return push


@pytest.fixture
def company(fake_db):
    fake_db.seed("companies", {"id": "c1", "user_id": "u1", "name": "Example Oy", "industry": "Software"})
    fake_db.seed("valuations", {"id": "v1", "company_id": "c1", "created_at": "2024-05-01", "results": {}})


def _processor(cls, model):
    return cls(analysis=ReadinessAnalysisService(model=model))


@pytest.mark.asyncio
async def test_empty_queue_does_nothing(fake_db, queue):
    fake_db.rpc_results["queue_pop"] = []
    result = await _processor(SalesReadinessProcessor, FakeModel()).process_next()

    assert result["status"] == "empty"
    assert queue.archived == []


@pytest.mark.asyncio
async def test_sales_readiness_completes_tracking_row(fake_db, queue, company):
    fake_db.seed("company_tasks", *_tasks(4, 4))
    fake_db.seed(IMPACT, {"id": "a1", "company_id": "c1", "original_valuation_id": "v1", "status": "processing"})
    queue({"companyId": "c1", "valuationId": "v1"})
    model = FakeModel({"overall_score": 80}, {"overall_risk_level": "low"})

    result = await _processor(SalesReadinessProcessor, model).process_next()

    assert result["status"] == "completed"
    (row,) = fake_db.rows(IMPACT)
    assert row["status"] == "completed"
    assert row["sales_readiness_analysis"]["overall_score"] == 80
    assert row["dd_risk_analysis"]["overall_risk_level"] == "low"
    assert row["adjustment_factors"]["overall_multiple_factor"] == 1.0
    assert queue.archived == [{"queue_name": "sales_analysis_queue", "msg_id": 5}]
    assert "Example Oy" in model.prompts[0]


@pytest.mark.asyncio
async def test_sales_readiness_inserts_row_when_none_pending(fake_db, queue, company):
    fake_db.seed("company_tasks", *_tasks(4, 5))
    queue({"companyId": "c1", "valuationId": "v1"})
    model = FakeModel({"overall_score": 70}, ExternalAPIError("anthropic", "overloaded"))

    result = await _processor(SalesReadinessProcessor, model).process_next()

    assert result["status"] == "completed"
    (row,) = fake_db.rows(IMPACT)
    assert row["status"] == "completed"
    assert row["original_valuation_id"] == "v1"
    # DD risk failure is tolerated
    assert row["dd_risk_analysis"] is None


@pytest.mark.asyncio
async def test_completion_below_threshold_marks_row_failed(fake_db, queue, company):
    fake_db.seed("company_tasks", *_tasks(1, 4))
    fake_db.seed(IMPACT, {"id": "a1", "company_id": "c1", "original_valuation_id": "v1", "status": "processing"})
    queue({"companyId": "c1", "valuationId": "v1"})
    model = FakeModel()

    result = await _processor(SalesReadinessProcessor, model).process_next()

    assert result["success"] is False
    (row,) = fake_db.rows(IMPACT)
    assert row["status"] == "failed"
    assert "75%" in row["error_message"]
    assert model.prompts == []
    assert len(queue.archived) == 1


@pytest.mark.asyncio
async def test_finished_analysis_is_skipped_and_stale_rows_removed(fake_db, queue, company):
    fake_db.seed(
        IMPACT,
        {"id": "a0", "company_id": "c1", "original_valuation_id": "v1", "status": "completed"},
        {"id": "a1", "company_id": "c1", "original_valuation_id": "v1", "status": "processing"},
    )
    queue({"companyId": "c1", "valuationId": "v1"})
    model = FakeModel()

    result = await _processor(SalesReadinessProcessor, model).process_next()

    assert result["status"] == "skipped"
    assert [r["id"] for r in fake_db.rows(IMPACT)] == ["a0"]
    assert model.prompts == []
    assert len(queue.archived) == 1


@pytest.mark.asyncio
async def test_message_without_company_is_archived(fake_db, queue):
    queue({"valuationId": "v1"})

    result = await _processor(SalesReadinessProcessor, FakeModel()).process_next()

    assert result["status"] == "invalid"
    assert len(queue.archived) == 1


@pytest.mark.asyncio
async def test_post_dd_uses_previous_analysis(fake_db, queue, company):
    fake_db.seed("company_tasks", *_tasks(4, 4, dd_related=True), *_tasks(0, 4))
    fake_db.seed(
        IMPACT,
        {
            "id": "a0", "company_id": "c1", "original_valuation_id": "v1", "status": "completed",
            "sales_readiness_analysis": {"overall_score": 60}, "dd_risk_analysis": {"risks": []},
        },
        {
            "id": "a1", "company_id": "c1", "original_valuation_id": "v1", "status": "processing",
            "previous_analysis_id": "a0", "analysis_phase": "post_due_diligence",
        },
    )
    queue({"companyId": "c1", "valuationId": "v1", "previousAnalysisId": "a0"})
    model = FakeModel({"overall_score": 85, "risk_mitigation": [{"risk": "key person", "status": "mitigated"}]})

    result = await _processor(PostDDReadinessProcessor, model).process_next()

    assert result["status"] == "completed"
    rows = {r["id"]: r for r in fake_db.rows(IMPACT)}
    assert rows["a1"]["status"] == "post_dd_completed"
    assert rows["a1"]["post_dd_sales_readiness_analysis"]["overall_score"] == 85
    assert rows["a1"]["post_dd_risk_analysis"][0]["status"] == "mitigated"
    assert rows["a1"]["sales_readiness_analysis"] == {"overall_score": 60}
    assert rows["a0"]["status"] == "completed"
    assert '"overall_score": 60' in model.prompts[0]


@pytest.mark.asyncio
async def test_dcf_processor_stores_scenarios(fake_db, queue, company):
    fake_db.seed("dcf_scenario_analyses", {"id": "d1", "company_id": "c1", "valuation_id": "v1", "status": "processing"})
    queue({"companyId": "c1", "valuationId": "v1", "userId": "u1"}, msg_id=9)
    model = FakeModel({"industry_growth_rate": 0.06, "wacc": 0.12, "reasoning": "small software firm"})

    result = await _processor(DCFAnalysisProcessor, model).process_next()

    assert result["status"] == "completed"
    (row,) = fake_db.rows("dcf_scenario_analyses")
    assert row["status"] == "completed"
    assert row["variant_selected"] == "forward_looking_dcf"
    assert set(row["structured_data"]["valuations"]) == {"pessimistic", "base", "optimistic"}
    assert queue.archived == [{"queue_name": "dcf_analysis_queue", "msg_id": 9}]


@pytest.mark.asyncio
async def test_dcf_model_failure_marks_row_failed(fake_db, queue, company):
    fake_db.seed("dcf_scenario_analyses", {"id": "d1", "company_id": "c1", "valuation_id": "v1", "status": "processing"})
    queue({"companyId": "c1", "valuationId": "v1"})
    model = FakeModel(ExternalAPIError("anthropic", "timeout"))

    result = await _processor(DCFAnalysisProcessor, model).process_next()

    assert result["success"] is False
    (row,) = fake_db.rows("dcf_scenario_analyses")
    assert row["status"] == "failed"
    assert "timeout" in row["error_message"]


@pytest.mark.asyncio
async def test_malformed_weights_do_not_lose_the_analysis(fake_db, queue, company):
    fake_db.seed("company_tasks", *_tasks(4, 4))
    fake_db.seed(IMPACT, {"id": "a1", "company_id": "c1", "original_valuation_id": "v1", "status": "processing"})
    queue({"companyId": "c1", "valuationId": "v1"})
    analysis = {
        "overall_score": 75,
        "category_weights": {"financial": "0.3"},
        "quantitative_assessments": {"financial": {"value_impact": {"impact_percent": -10}}},
    }
    model = FakeModel(analysis, {"overall_risk_level": "medium"})

    result = await _processor(SalesReadinessProcessor, model).process_next()

    assert result["status"] == "completed"
    (row,) = fake_db.rows(IMPACT)
    assert row["status"] == "completed"
    assert row["sales_readiness_analysis"]["overall_score"] == 75
    assert row["adjustment_factors"]["overall_multiple_factor"] == 1.0


@pytest.mark.asyncio
async def test_store_failure_is_logged_and_message_archived(fake_db, queue, company):
    fake_db.seed("company_tasks", *_tasks(4, 4))
    fake_db.seed(IMPACT, {"id": "a1", "company_id": "c1", "original_valuation_id": "v1", "status": "processing"})
    fake_db.fail(IMPACT, "update")
    queue({"companyId": "c1", "valuationId": "v1"})
    model = FakeModel({"overall_score": 80}, {"overall_risk_level": "low"})

    result = await _processor(SalesReadinessProcessor, model).process_next()

    assert result["success"] is True
    assert result["stored"] is False
    assert len(queue.archived) == 1


DOCUMENTS = "valuation_document_analysis"


def _documents_message(**overrides):
    message = {
        "companyId": "c1",
        "companyName": "Example Oy",
        "companyType": "osakeyhtiö",
        "analysisId": "doc-1",
        "multiplierMethod": "custom",
        "customMultipliers": {"ebitda": 4.5},
    }
    message.update(overrides)
    return message


def _documents_row(files):
    return {"id": "doc-1", "company_id": "c1", "status": "processing", "processed_files": files}


@pytest.mark.asyncio
async def test_valuation_documents_complete_row_and_drop_file_data(fake_db, queue):
    fake_db.seed(DOCUMENTS, _documents_row([
        {"id": "f1", "name": "tase.pdf", "mimeType": "application/pdf", "base64Data": "JVBERi0x", "textData": None},
        {"id": "f2", "name": "notes.txt", "mimeType": "text/plain", "base64Data": None, "textData": "Revenue 120 000"},
    ]))
    queue(_documents_message())
    model = FakeModel({
        "questions": [{"id": "q1", "question": "Is the CEO salary at market level?"}],
        "initial_findings": {"summary": "Profitable"},
        "financial_analysis": {"financial_periods": [{"period": "2024"}]},
    })

    result = await _processor(ValuationDocumentsProcessor, model).process_next()

    assert result["status"] == "completed"
    (row,) = fake_db.rows(DOCUMENTS)
    assert row["status"] == "completed"
    assert row["questions"][0]["id"] == "q1"
    assert row["initial_findings"] == {"summary": "Profitable"}
    assert row["financial_analysis"]["financial_periods"] == [{"period": "2024"}]
    assert row["multiplier_method"] == "custom"
    assert row["custom_multipliers"] == {"ebitda": 4.5}
    assert row["processed_files"] is None
    assert row["completed_at"]
    assert model.documents == [["JVBERi0x"]]
    assert "Revenue 120 000" in model.prompts[0]
    assert queue.archived[0]["queue_name"] == "valuation_document_analysis_queue"


@pytest.mark.asyncio
async def test_valuation_documents_without_files_fail_the_row(fake_db, queue):
    fake_db.seed(DOCUMENTS, _documents_row(None))
    queue(_documents_message())
    model = FakeModel()

    result = await _processor(ValuationDocumentsProcessor, model).process_next()

    assert result["status"] == "failed"
    (row,) = fake_db.rows(DOCUMENTS)
    assert row["status"] == "failed"
    assert row["error_message"] == "No processed file data found in analysis record"
    assert row["completed_at"]
    assert model.prompts == []
    assert len(queue.archived) == 1


@pytest.mark.asyncio
async def test_valuation_documents_model_error_fails_the_row(fake_db, queue):
    fake_db.seed(DOCUMENTS, _documents_row([{"id": "f1", "textData": "Revenue 1"}]))
    queue(_documents_message())
    model = FakeModel(ExternalAPIError("anthropic", "overloaded"))

    result = await _processor(ValuationDocumentsProcessor, model).process_next()

    assert result["status"] == "failed"
    assert fake_db.rows(DOCUMENTS)[0]["status"] == "failed"
    assert "overloaded" in fake_db.rows(DOCUMENTS)[0]["error_message"]


@pytest.mark.asyncio
async def test_valuation_documents_completed_row_is_not_skipped(fake_db, queue):
    row = _documents_row([{"id": "f1", "textData": "Revenue 1"}])
    row["status"] = "completed"
    fake_db.seed(DOCUMENTS, row)
    queue(_documents_message())
    model = FakeModel({"questions": "none"})

    result = await _processor(ValuationDocumentsProcessor, model).process_next()

    assert result["status"] == "completed"
    assert fake_db.rows(DOCUMENTS)[0]["questions"] == []
    assert model.documents == [[]]


@pytest.mark.asyncio
async def test_valuation_documents_message_without_company_name(fake_db, queue):
    queue(_documents_message(companyName=None))

    result = await _processor(ValuationDocumentsProcessor, FakeModel()).process_next()

    assert result["status"] == "invalid"
    assert result["error"] == "Missing company data in message"
    assert len(queue.archived) == 1
