from saleready.core.celery_app import celery_app
from saleready.tasks import run_processor


class StubProcessor:
    def __init__(self):
        self.runs = 0

    async def process_next(self):
        self.runs += 1
        return {"success": True, "status": "empty"}


def test_run_processor_drives_coroutine():
    processor = StubProcessor()

    assert run_processor(processor) == {"success": True, "status": "empty"}
    assert run_processor(processor)["status"] == "empty"
    assert processor.runs == 2


def test_beat_schedules_every_consumer():
    import saleready.tasks  # noqa: F401

    scheduled = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}

    assert scheduled == {
        "saleready.tasks.queues.process_sales_analysis",
        "saleready.tasks.queues.process_post_dd_analysis",
        "saleready.tasks.queues.process_dcf_analysis",
        "saleready.tasks.queues.process_valuation_documents",
    }
    assert scheduled <= set(celery_app.tasks)
