"""
Queue consumers for the analysis queues

Each processor handles at most one message per run:
pop -> skip if already done -> analyse -> write tracking row -> archive.
The message is archived in every outcome, so a failing job is not retried.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from saleready.core.config import settings
from saleready.core.database import supabase_service
from saleready.core.exceptions import ResourceNotFoundError, ValidationError
from saleready.core.logging_config import log_event
from saleready.services.queue_service import QueueMessage, QueueService, queue_service
from saleready.services.readiness_analysis import ReadinessAnalysisService, readiness_analysis_service

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class QueueProcessor:
    """Base consumer; subclasses name the queue, table and analysis"""

    queue_name: str = ""
    table: str = "valuation_impact_analysis"
    finished_statuses: List[str] = ["completed"]
    completed_status: str = "completed"
    order_column: str = "calculation_date"

    def __init__(
        self,
        queues: Optional[QueueService] = None,
        analysis: Optional[ReadinessAnalysisService] = None,
        client=None,
    ):
        self.queues = queues or queue_service
        self.analysis = analysis or readiness_analysis_service
        self._client = client

    @property
    def client(self):
        return self._client or supabase_service.get_client()

    # hooks

    def validate(self, payload: Dict[str, Any]) -> None:
        if not payload.get("companyId"):
            raise ValidationError("Missing company ID in message", field="companyId")

    def row_filters(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Column filters identifying this job's tracking rows, None when the job is untracked."""
        raise NotImplementedError

    def new_row(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return dict(self.row_filters(payload) or {})

    def existing_filters(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self.row_filters(payload)

    async def analyse(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    # store helpers

    def _filtered(self, query, filters: Dict[str, Any]):
        for column, value in filters.items():
            query = query.eq(column, value)
        return query

    def find_finished(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        filters = self.existing_filters(payload)
        if not filters:
            return None
        query = self._filtered(self.client.table(self.table).select("id, status"), filters)
        response = query.in_("status", self.finished_statuses).order("created_at", desc=True).limit(1).execute()
        return response.data[0] if response.data else None

    def find_processing(self, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        query = self._filtered(self.client.table(self.table).select("id"), filters)
        response = query.eq("status", "processing").order(self.order_column, desc=True).limit(1).execute()
        return response.data[0] if response.data else None

    def delete_processing(self, filters: Dict[str, Any]) -> None:
        try:
            self._filtered(self.client.table(self.table).delete(), filters).eq("status", "processing").execute()
        except Exception as e:
            log_event(logger, "Warning", "Failed to cleanup processing records", e, level=logging.WARNING)

    def save_result(self, payload: Dict[str, Any], result: Dict[str, Any]) -> None:
        filters = self.row_filters(payload)
        if not filters:
            log_event(logger, "Update", "No tracking keys in message, result not stored")
            return
        values = dict(result)
        values["status"] = self.completed_status
        pending = self.find_processing(filters)
        if pending:
            self.client.table(self.table).update(values).eq("id", pending["id"]).execute()
            log_event(logger, "Update", f"Updated {self.table} row {pending['id']} to {self.completed_status}")
        else:
            row = self.new_row(payload)
            row.update(values)
            row.setdefault(self.order_column, _now())
            self.client.table(self.table).insert(row).execute()
            log_event(logger, "Update", f"Created new {self.table} row with status {self.completed_status}")

    def mark_failed(self, payload: Dict[str, Any], error: Exception) -> None:
        filters = self.row_filters(payload)
        if not filters:
            return
        message = getattr(error, "message", None) or str(error) or "Unknown error"
        try:
            pending = self.find_processing(filters)
            if pending:
                self.client.table(self.table).update(
                    {"status": "failed", "error_message": message}
                ).eq("id", pending["id"]).execute()
                log_event(logger, "Info", f"Marked {self.table} row {pending['id']} as failed")
        except Exception as e:
            log_event(logger, "Warning", "Error updating status to failed", e, level=logging.WARNING)

    def archive(self, msg_id: int) -> None:
        log_event(logger, "Queue", f"Archiving message {msg_id} from {self.queue_name}")
        try:
            self.queues.archive(self.queue_name, msg_id)
        except Exception as e:
            log_event(logger, "Archive", "Failed to archive message", e, level=logging.ERROR)

    # main loop step

    async def process_next(self) -> Dict[str, Any]:
        log_event(logger, "Queue", f"Popping message from {self.queue_name}")
        messages = self.queues.pop(self.queue_name, 1)
        if not messages:
            log_event(logger, "Queue", "No messages in queue to process")
            return {"success": True, "status": "empty", "message": "No messages in queue"}
        return await self.process_message(messages[0])

    async def process_message(self, message: QueueMessage) -> Dict[str, Any]:
        payload = message.message
        log_event(logger, "Queue", f"Processing message {message.msg_id}")
        try:
            self.validate(payload)

            finished = self.find_finished(payload)
            if finished:
                log_event(logger, "Info", f"Analysis already exists (ID: {finished['id']}), skipping")
                self.delete_processing(self.row_filters(payload) or {})
                return {"success": True, "status": "skipped", "message": "Already processed, skipped",
                        "messageId": message.msg_id}

            try:
                result = await self.analyse(payload)
            except Exception as e:
                log_event(logger, "Error", "Processing failed", e, level=logging.ERROR)
                self.mark_failed(payload, e)
                return {"success": False, "status": "failed", "error": getattr(e, "message", str(e)),
                        "messageId": message.msg_id}

            try:
                self.save_result(payload, result)
            except Exception as e:
                log_event(logger, "Warning", f"Failed to update {self.table} with the result", e,
                          level=logging.WARNING)
                return {"success": True, "status": "completed", "stored": False,
                        "message": "Analysis processed but the result was not stored",
                        "messageId": message.msg_id}
            return {"success": True, "status": "completed", "stored": True,
                    "message": "Analysis processed successfully", "messageId": message.msg_id}
        except ValidationError as e:
            log_event(logger, "Error", f"Invalid queue message: {e.message}", level=logging.ERROR)
            return {"success": False, "status": "invalid", "error": e.message, "messageId": message.msg_id}
        finally:
            self.archive(message.msg_id)


class SalesReadinessProcessor(QueueProcessor):
    queue_name = settings.SALES_ANALYSIS_QUEUE
    finished_statuses = ["completed", "post_dd_completed"]

    def row_filters(self, payload):
        if not payload.get("valuationId"):
            return None
        return {"company_id": payload["companyId"], "original_valuation_id": payload["valuationId"]}

    async def analyse(self, payload):
        return await self.analysis.run_sales_readiness(payload["companyId"], payload.get("valuationId"))


class PostDDReadinessProcessor(QueueProcessor):
    queue_name = settings.POST_DD_ANALYSIS_QUEUE
    finished_statuses = ["completed", "post_dd_completed"]
    completed_status = "post_dd_completed"

    def row_filters(self, payload):
        if not payload.get("valuationId"):
            return None
        return {"company_id": payload["companyId"], "original_valuation_id": payload["valuationId"]}

    def existing_filters(self, payload):
        if not payload.get("previousAnalysisId"):
            return None
        return {"company_id": payload["companyId"], "previous_analysis_id": payload["previousAnalysisId"]}

    def new_row(self, payload):
        row = super().new_row(payload)
        row["previous_analysis_id"] = payload.get("previousAnalysisId")
        row["analysis_phase"] = "post_due_diligence"
        return row

    async def analyse(self, payload):
        return await self.analysis.run_post_dd(
            payload["companyId"], payload.get("valuationId"), payload.get("previousAnalysisId")
        )


class DCFAnalysisProcessor(QueueProcessor):
    queue_name = settings.DCF_ANALYSIS_QUEUE
    table = "dcf_scenario_analyses"
    order_column = "created_at"

    def validate(self, payload):
        if not payload.get("companyId") or not payload.get("valuationId"):
            raise ValidationError("Missing valuationId or companyId in message")

    def row_filters(self, payload):
        return {"company_id": payload["companyId"], "valuation_id": payload["valuationId"]}

    def new_row(self, payload):
        row = super().new_row(payload)
        row["user_id"] = payload.get("userId")
        row["analysis_date"] = _now()
        return row

    async def analyse(self, payload):
        result = await self.analysis.run_dcf(payload["companyId"], payload["valuationId"])
        result["updated_at"] = _now()
        return result


class ValuationDocumentsProcessor(QueueProcessor):
    """
    First valuation phase over uploaded financial statements.

    The producer owns the tracking row and stores the file data on it, so
    every update goes to the row named by analysisId. A message is never
    skipped as already processed.
    """

    queue_name = settings.VALUATION_DOCUMENTS_QUEUE
    table = "valuation_document_analysis"

    def validate(self, payload):
        if not payload.get("companyId") or not payload.get("companyName"):
            raise ValidationError("Missing company data in message")
        if not payload.get("analysisId"):
            raise ValidationError("Missing analysis ID in message", field="analysisId")

    def row_filters(self, payload):
        return {"id": payload["analysisId"]}

    def existing_filters(self, payload):
        return None

    def fetch_files(self, analysis_id: str) -> List[Dict[str, Any]]:
        response = self.client.table(self.table).select("processed_files").eq("id", analysis_id).limit(1).execute()
        if not response.data:
            raise ResourceNotFoundError("Valuation document analysis", analysis_id)
        files = response.data[0].get("processed_files")
        if not isinstance(files, list) or not files:
            raise ValidationError("No processed file data found in analysis record")
        return files

    async def analyse(self, payload):
        files = self.fetch_files(payload["analysisId"])
        log_event(logger, "Data", f"Building analysis from {len(files)} processed files")
        return await self.analysis.run_valuation_documents(
            payload["companyName"],
            payload.get("companyType"),
            files,
            payload.get("multiplierMethod"),
            payload.get("customMultipliers"),
        )

    def save_result(self, payload, result):
        values = dict(result)
        values.update({
            "status": self.completed_status,
            "multiplier_method": payload.get("multiplierMethod"),
            "custom_multipliers": payload.get("customMultipliers"),
            "completed_at": _now(),
            # file data is only needed until the analysis has run
            "processed_files": None,
        })
        self.client.table(self.table).update(values).eq("id", payload["analysisId"]).execute()
        log_event(logger, "Update", f"Updated {self.table} row {payload['analysisId']} to {self.completed_status}")

    def mark_failed(self, payload, error):
        message = getattr(error, "message", None) or str(error) or "Unknown error"
        try:
            self.client.table(self.table).update(
                {"status": "failed", "error_message": message, "completed_at": _now()}
            ).eq("id", payload["analysisId"]).execute()
            log_event(logger, "Info", f"Marked {self.table} row {payload['analysisId']} as failed")
        except Exception as e:
            log_event(logger, "Warning", "Error updating status to failed", e, level=logging.WARNING)


sales_readiness_processor = SalesReadinessProcessor()
post_dd_readiness_processor = PostDDReadinessProcessor()
dcf_analysis_processor = DCFAnalysisProcessor()
valuation_documents_processor = ValuationDocumentsProcessor()
