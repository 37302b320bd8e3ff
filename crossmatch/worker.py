"""arq worker configuration for matching tasks.

Run with: `arq crossmatch.worker.WorkerSettings`

Registered Tasks:
    - run_matching_task: Full exact + fuzzy sweep
    - match_product_task: Incremental match for one ingested product

Cron Jobs:
    - scheduled_matching_task: at MATCH_CRON_HOURS (UTC)
"""
from typing import Any, Dict

from arq import cron
from arq.connections import RedisSettings
import structlog

from crossmatch.config import settings
from crossmatch.services.matching import MatchingPipeline
from crossmatch.tasks import match_product_task, run_matching_task, scheduled_matching_task

logger = structlog.get_logger(__name__)


async def startup(ctx: Dict[str, Any]) -> None:
    """Share one pipeline between jobs of this worker."""
    ctx["pipeline"] = MatchingPipeline()
    logger.info("matching_worker_started", queue_name=settings.queue_name)


async def shutdown(ctx: Dict[str, Any]) -> None:
    logger.info("matching_worker_stopped")


class WorkerSettings:
    """arq worker configuration settings."""

    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = settings.queue_name
    max_jobs = settings.max_workers
    job_timeout = settings.job_timeout
    keep_result = 3600  # Keep results for 1 hour
    max_tries = 1  # Retries happen inside the task

    functions = [
        run_matching_task,
        match_product_task,
    ]

    on_startup = startup
    on_shutdown = shutdown

    cron_jobs = [
        cron(
            scheduled_matching_task,
            hour=set(settings.match_cron_hours),
            minute=0,
            unique=True,
            run_at_startup=False,
        ),
    ]
