"""
Analysis job producers

Each producer validates the request, puts one message on its queue and
writes a tracking row that the UI polls. Delivery is fire-and-forget: there
is no retry here, and a failed tracking insert does not fail the request.
The valuation-documents producer is the exception: its row holds the file
data, so the row is written before the send and a failed insert is fatal.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from saleready.core.config import settings
from saleready.core.database import supabase_service
from saleready.core.exceptions import DatabaseError, QueueError, ValidationError
from saleready.core.logging_config import log_event
from saleready.services.queue_service import QueueService, queue_service

logger = logging.getLogger(__name__)

IMPACT_TABLE = "valuation_impact_analysis"
DCF_TABLE = "dcf_scenario_analyses"
DOCUMENTS_TABLE = "valuation_document_analysis"


@dataclass
class EnqueueResult:
    """Outcome of a producer call, rendered as the HTTP response"""
    status_code: int
    success: bool
    message: str
    status: str
    queue_message_id: Any = None
    analysis_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "status": self.status,
        }
        if self.queue_message_id is not None:
            body["queueMessageId"] = self.queue_message_id
        if self.analysis_id is not None:
            body["analysis_id"] = self.analysis_id
        body.update(self.extra)
        return body


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AnalysisQueueService:
    """Enqueue-and-track producers for the asynchronous AI analyses"""

    def __init__(self, queues: Optional[QueueService] = None, client=None):
        self.queues = queues or queue_service
        self._client = client

    @property
    def client(self):
        return self._client or supabase_service.get_client()

    def _insert_tracking_row(self, table: str, row: Dict[str, Any], company_id: str) -> bool:
        log_event(logger, "DB", f"Creating tracking record in {table} for company: {company_id}")
        try:
            self.client.table(table).insert(row).execute()
            return True
        except Exception as e:
            log_event(logger, "Warning", "Failed to create tracking record", e, level=logging.WARNING)
            return False

    def enqueue_sales_readiness(self, payload: Dict[str, Any]) -> EnqueueResult:
        """Queue a sales-readiness analysis for companyId"""
        return self._enqueue_readiness(
            payload,
            queue_name=settings.SALES_ANALYSIS_QUEUE,
            message="Analysis queued for processing",
            extra_tracking={},
        )

    def enqueue_post_dd_readiness(self, payload: Dict[str, Any]) -> EnqueueResult:
        """Queue a post due-diligence re-analysis for companyId"""
        return self._enqueue_readiness(
            payload,
            queue_name=settings.POST_DD_ANALYSIS_QUEUE,
            message="Post-DD analysis queued for processing",
            extra_tracking={
                "previous_analysis_id": payload.get("previousAnalysisId"),
                "analysis_phase": "post_due_diligence",
            },
        )

    def _enqueue_readiness(
        self,
        payload: Dict[str, Any],
        queue_name: str,
        message: str,
        extra_tracking: Dict[str, Any],
    ) -> EnqueueResult:
        company_id = payload.get("companyId")
        valuation_id = payload.get("valuationId")
        log_event(logger, "Request", f"Received request for company ID: {company_id}")

        if not company_id:
            raise ValidationError("Company ID is missing", field="companyId")

        log_event(logger, "Queue", f"Adding request to {queue_name} for company: {company_id}")
        msg_id = self.queues.send(queue_name, payload)

        if valuation_id:
            started = _now()
            row = {
                "company_id": company_id,
                "original_valuation_id": valuation_id,
                "status": "processing",
                "calculation_date": started,
                "started_at": started,
            }
            row.update(extra_tracking)
            self._insert_tracking_row(IMPACT_TABLE, row, company_id)
        else:
            log_event(logger, "Warning", "No valuationId provided, skipping tracking record creation", level=logging.WARNING)

        log_event(logger, "Queue", f"Analysis request queued for company: {company_id}, queue message ID: {msg_id}")
        return EnqueueResult(
            status_code=202,
            success=True,
            message=message,
            status="processing",
            queue_message_id=msg_id,
        )

    def find_active_dcf(self, company_id: str, valuation_id: str) -> Optional[Dict[str, Any]]:
        """Latest completed or in-flight DCF analysis for the pair, if any"""
        response = (
            self.client.table(DCF_TABLE)
            .select("id, status")
            .eq("company_id", company_id)
            .eq("valuation_id", valuation_id)
            .in_("status", ["completed", "processing"])
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def queue_dcf_analysis(self, payload: Dict[str, Any], user_id: Optional[str] = None) -> EnqueueResult:
        """Queue a DCF scenario analysis unless one is already done or running"""
        company_id = payload.get("companyId")
        valuation_id = payload.get("valuationId")
        log_event(logger, "Request", f"Received DCF request for company ID: {company_id}, valuation ID: {valuation_id}")

        if not company_id or not valuation_id:
            raise ValidationError("Company ID or valuation ID is missing")

        try:
            existing = self.find_active_dcf(company_id, valuation_id)
        except Exception as e:
            log_event(logger, "Warning", "Could not check for an existing DCF analysis, queueing anyway", e,
                      level=logging.WARNING)
            existing = None
        if existing:
            state = existing.get("status")
            log_event(logger, "Info", f"DCF analysis already {state} (ID: {existing['id']})")
            return EnqueueResult(
                status_code=200,
                success=True,
                message="DCF analysis is already complete" if state == "completed" else "DCF analysis is already in progress",
                status=state,
                analysis_id=existing["id"],
            )

        tracking_user_id = user_id or payload.get("userId")
        message = dict(payload)
        message["userId"] = tracking_user_id

        log_event(logger, "Queue", f"Adding DCF request to {settings.DCF_ANALYSIS_QUEUE} for company: {company_id}")
        msg_id = self.queues.send(settings.DCF_ANALYSIS_QUEUE, message)

        now = _now()
        self._insert_tracking_row(
            DCF_TABLE,
            {
                "user_id": tracking_user_id,
                "company_id": company_id,
                "valuation_id": valuation_id,
                "status": "processing",
                "analysis_date": now,
                "created_at": now,
                "updated_at": now,
            },
            company_id,
        )

        return EnqueueResult(
            status_code=202,
            success=True,
            message="DCF analysis queued",
            status="queued",
            queue_message_id=msg_id,
        )

    def enqueue_valuation_documents(self, payload: Dict[str, Any]) -> EnqueueResult:
        """
        Queue a financial-statement analysis.

        The file contents are too large for a queue message, so they are
        stored on the tracking row first and the message carries only the
        row id. A failed send marks the row failed.
        """
        company_id = payload.get("companyId")
        company_name = payload.get("companyName")
        files = payload.get("files")
        user_id = payload.get("userId")
        log_event(logger, "Request", f"Received valuation documents for company ID: {company_id}")

        if not company_id or not company_name or not files or not user_id:
            raise ValidationError("Missing required fields")

        processed = [clean_document(f) for f in files]
        metadata = [{"id": f["id"], "name": f["name"], "mimeType": f["mimeType"]} for f in processed]

        try:
            response = self.client.table(DOCUMENTS_TABLE).insert({
                "user_id": user_id,
                "company_id": company_id,
                "company_name": company_name,
                "company_type": payload.get("companyType"),
                "files_metadata": metadata,
                "status": "processing",
            }).execute()
        except Exception as e:
            log_event(logger, "Error", "Failed to create analysis record", e, level=logging.ERROR)
            raise DatabaseError(f"Failed to create analysis record: {e}", operation="insert")
        if not response.data:
            raise DatabaseError("Failed to create analysis record", operation="insert")
        analysis_id = response.data[0]["id"]

        try:
            self.client.table(DOCUMENTS_TABLE).update({"processed_files": processed}).eq("id", analysis_id).execute()
        except Exception as e:
            log_event(logger, "Warning", "Failed to store processed file data", e, level=logging.WARNING)

        message = {
            "companyId": company_id,
            "companyName": company_name,
            "companyType": payload.get("companyType"),
            "userId": user_id,
            "analysisId": analysis_id,
            "multiplierMethod": payload.get("multiplierMethod"),
            "customMultipliers": payload.get("customMultipliers"),
        }
        log_event(logger, "Queue", f"Adding analysis {analysis_id} to {settings.VALUATION_DOCUMENTS_QUEUE}")
        try:
            msg_id = self.queues.send(settings.VALUATION_DOCUMENTS_QUEUE, message)
        except QueueError as e:
            log_event(logger, "Error", "Queue send failed, marking analysis as failed", e, level=logging.ERROR)
            try:
                self.client.table(DOCUMENTS_TABLE).update({
                    "status": "failed",
                    "error_message": e.message,
                    "completed_at": _now(),
                }).eq("id", analysis_id).execute()
            except Exception as update_error:
                log_event(logger, "Warning", "Error updating status to failed", update_error, level=logging.WARNING)
            raise

        return EnqueueResult(
            status_code=202,
            success=True,
            message="Valuation analysis queued for processing",
            status="processing",
            queue_message_id=msg_id,
            extra={"analysisId": analysis_id},
        )


def clean_document(file: Dict[str, Any]) -> Dict[str, Any]:
    """Text with NUL bytes removed and base64 without its data-URL prefix"""
    text = file.get("data")
    text = text.replace("\0", "") if isinstance(text, str) else None
    encoded = file.get("base64")
    if isinstance(encoded, str) and "," in encoded:
        encoded = encoded.split(",", 1)[1]
    elif not isinstance(encoded, str):
        encoded = None
    return {
        "id": file.get("id"),
        "name": file.get("name"),
        "mimeType": file.get("mimeType"),
        "textData": text,
        "base64Data": encoded,
        "hasData": bool(text),
        "hasBase64": bool(encoded),
    }


analysis_queue_service = AnalysisQueueService()
