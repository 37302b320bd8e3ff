"""Unit tests for the arq worker configuration."""
import pytest

from crossmatch.services.matching import MatchingPipeline
from crossmatch.tasks import match_product_task, run_matching_task, scheduled_matching_task
from crossmatch.worker import WorkerSettings, startup


class TestWorkerSettings:

    def test_registers_tasks(self):
        assert run_matching_task in WorkerSettings.functions
        assert match_product_task in WorkerSettings.functions

    def test_queue_retries_disabled(self):
        """Retries happen inside the task with fixed delays."""
        assert WorkerSettings.max_tries == 1

    def test_scheduled_sweep(self):
        assert len(WorkerSettings.cron_jobs) == 1
        job = WorkerSettings.cron_jobs[0]
        assert job.coroutine is scheduled_matching_task
        assert job.minute == 0
        assert job.hour == {2, 14}


@pytest.mark.asyncio
async def test_startup_shares_pipeline():
    ctx = {}
    await startup(ctx)
    assert isinstance(ctx["pipeline"], MatchingPipeline)
