"""
Celery configuration for the analysis queue consumers
"""

from celery import Celery
from saleready.core.config import settings
import logging

logger = logging.getLogger(__name__)

# Create Celery instance
celery_app = Celery(
    "saleready",
    broker=settings.REDIS_URL or "redis://localhost:6379/0",
    backend=settings.REDIS_URL or "redis://localhost:6379/0",
    include=["saleready.tasks"]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=15 * 60,  # 15 minutes
    task_soft_time_limit=12 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=200,
)

# Task routing
celery_app.conf.task_routes = {
    "saleready.tasks.queues.*": {"queue": "analysis"},
}

# Each consumer pops one message per run; a new run is scheduled every poll interval
celery_app.conf.beat_schedule = {
    "process-sales-analysis-queue": {
        "task": "saleready.tasks.queues.process_sales_analysis",
        "schedule": settings.QUEUE_POLL_SECONDS,
    },
    "process-post-dd-analysis-queue": {
        "task": "saleready.tasks.queues.process_post_dd_analysis",
        "schedule": settings.QUEUE_POLL_SECONDS,
    },
    "process-dcf-analysis-queue": {
        "task": "saleready.tasks.queues.process_dcf_analysis",
        "schedule": settings.QUEUE_POLL_SECONDS,
    },
    "process-valuation-documents-queue": {
        "task": "saleready.tasks.queues.process_valuation_documents",
        "schedule": settings.QUEUE_POLL_SECONDS,
    },
}
