"""
Celery background tasks
"""

import asyncio
import logging
from typing import Any, Dict

from celery import Task

from saleready.core.celery_app import celery_app
from saleready.services.queue_processors import (
    QueueProcessor,
    dcf_analysis_processor,
    post_dd_readiness_processor,
    sales_readiness_processor,
    valuation_documents_processor,
)

logger = logging.getLogger(__name__)


class CallbackTask(Task):
    """Task with callback support"""
    def on_success(self, retval, task_id, args, kwargs):
        logger.info(f"Task {task_id} finished with status: {retval.get('status') if isinstance(retval, dict) else retval}")

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"Task {task_id} failed with exception: {exc}")


def run_processor(processor: QueueProcessor) -> Dict[str, Any]:
    """Run one consumer step on a private event loop (Celery workers are sync)."""
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(processor.process_next())
    finally:
        asyncio.set_event_loop(None)
        loop.close()


@celery_app.task(bind=True, base=CallbackTask, name="saleready.tasks.queues.process_sales_analysis")
def process_sales_analysis_queue(self) -> Dict[str, Any]:
    """Process one sales-readiness message"""
    self.update_state(state="PROGRESS", meta={"status": "Processing sales analysis queue"})
    return run_processor(sales_readiness_processor)


@celery_app.task(bind=True, base=CallbackTask, name="saleready.tasks.queues.process_post_dd_analysis")
def process_post_dd_analysis_queue(self) -> Dict[str, Any]:
    """Process one post due-diligence message"""
    self.update_state(state="PROGRESS", meta={"status": "Processing post-DD analysis queue"})
    return run_processor(post_dd_readiness_processor)


@celery_app.task(bind=True, base=CallbackTask, name="saleready.tasks.queues.process_dcf_analysis")
def process_dcf_analysis_queue(self) -> Dict[str, Any]:
    """Process one DCF message"""
    self.update_state(state="PROGRESS", meta={"status": "Processing DCF analysis queue"})
    return run_processor(dcf_analysis_processor)


@celery_app.task(bind=True, base=CallbackTask, name="saleready.tasks.queues.process_valuation_documents")
def process_valuation_documents_queue(self) -> Dict[str, Any]:
    """Process one valuation-documents message"""
    self.update_state(state="PROGRESS", meta={"status": "Processing valuation documents queue"})
    return run_processor(valuation_documents_processor)
