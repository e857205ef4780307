from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from saleready.core.auth import get_optional_user_id
from saleready.schemas.analysis import (
    AnalysisRequest,
    GenerateDDTasksRequest,
    PostDDAnalysisRequest,
    ValuationDocumentsRequest,
)
from saleready.services.analysis_queue_service import analysis_queue_service
from saleready.services.dd_task_service import dd_task_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/analyze-sales-readiness", status_code=202)
def analyze_sales_readiness(request: AnalysisRequest):
    """
    Queue a sales-readiness analysis. The result is written to the
    valuation_impact_analysis row the client polls.
    """
    result = analysis_queue_service.enqueue_sales_readiness(request.to_message())
    return JSONResponse(status_code=result.status_code, content=result.to_response())


@router.post("/analyze-post-dd-readiness", status_code=202)
def analyze_post_dd_readiness(request: PostDDAnalysisRequest):
    """
    Queue a post due-diligence re-analysis against a previous analysis.
    """
    result = analysis_queue_service.enqueue_post_dd_readiness(request.to_message())
    return JSONResponse(status_code=result.status_code, content=result.to_response())


@router.post("/queue-dcf-analysis", status_code=202)
def queue_dcf_analysis(
    request: AnalysisRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    """
    Queue a DCF scenario analysis. Returns 200 with the existing analysis
    when one is already completed or in progress.
    """
    result = analysis_queue_service.queue_dcf_analysis(request.to_message(), user_id=user_id)
    return JSONResponse(status_code=result.status_code, content=result.to_response())


@router.post("/analyze-valuation-documents", status_code=202)
def analyze_valuation_documents(
    request: ValuationDocumentsRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    """
    Queue the first valuation phase over uploaded financial statements.
    The client polls the valuation_document_analysis row named by analysisId.
    """
    payload = request.to_payload()
    payload["userId"] = user_id or payload.get("userId")
    result = analysis_queue_service.enqueue_valuation_documents(payload)
    return JSONResponse(status_code=result.status_code, content=result.to_response())


@router.post("/generate-dd-tasks")
async def generate_dd_tasks(
    request: GenerateDDTasksRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
):
    """Create DD-related tasks from a due diligence risk analysis."""
    return await dd_task_service.generate(request.company_id, request.dd_risk_analysis, user_id=user_id)
