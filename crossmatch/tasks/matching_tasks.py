"""Queue tasks that invoke the matching engine.

The engine itself never retries. These tasks are the invoking collaborator:
they wrap each call in a retry with fixed backoff delays (1s/2s/4s by
default) and emit metric events for monitoring.
"""
import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, TypeVar

import structlog
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_chain, wait_fixed

from crossmatch.config import retry_settings
from crossmatch.services.matching import MatchingPipeline

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def emit_metric(metric_name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
    """Emit a metric event for observability.

    Metrics are structured log lines that log aggregation systems can parse.
    """
    labels = labels or {}
    logger.info(
        "metric",
        metric_name=metric_name,
        metric_value=value,
        **labels,
    )


def _log_retry(label: str) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "matching_attempt_failed",
            label=label,
            attempt=state.attempt_number,
            next_wait_seconds=state.next_action.sleep if state.next_action else None,
            error=str(exc),
            error_type=type(exc).__name__ if exc else None,
        )
    return before_sleep


async def run_with_retry(
    fn: Callable[[], Awaitable[T]],
    label: str,
    delays: Optional[Sequence[float]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Await fn, retrying once per entry in delays, then re-raise.

    Args:
        fn: Zero-argument coroutine factory
        label: Name used in log events
        delays: Seconds to wait before each retry (defaults to RETRY_DELAYS)
        sleep: Sleep coroutine, replaceable in tests
    """
    delays = list(retry_settings.delays if delays is None else delays)
    retrying = AsyncRetrying(
        stop=stop_after_attempt(len(delays) + 1),
        wait=wait_chain(*[wait_fixed(d) for d in delays]) if delays else wait_fixed(0),
        before_sleep=_log_retry(label),
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await fn()
    raise AssertionError("unreachable")  # pragma: no cover


def _pipeline(ctx: Dict[str, Any]) -> MatchingPipeline:
    pipeline = ctx.get("pipeline")
    if pipeline is None:
        pipeline = MatchingPipeline()
        ctx["pipeline"] = pipeline
    return pipeline


async def run_matching_task(ctx: Dict[str, Any], task_id: str) -> Dict[str, Any]:
    """Run the full exact + fuzzy sweep over the unmatched pool.

    Returns:
        Run summary plus the number of review candidates and failed groups
    """
    log = logger.bind(task_id=task_id)
    log.info("run_matching_task_started")
    start = time.monotonic()

    run = await run_with_retry(lambda: _pipeline(ctx).run(), label="run_matching")

    emit_metric("matches_created_total", run.summary.exact_matches, {"match_type": "exact"})
    emit_metric("matches_created_total", run.summary.fuzzy_auto_matches, {"match_type": "fuzzy"})
    emit_metric("review_candidates_total", run.summary.fuzzy_review_matches)
    emit_metric("group_write_failures_total", run.summary.failed_groups)
    emit_metric("matching_duration_seconds", time.monotonic() - start, {"task_type": "run_matching"})

    log.info("run_matching_task_completed", **run.summary.model_dump())
    return {
        "task_id": task_id,
        "status": "partial" if run.failures else "success",
        **run.summary.model_dump(),
        "failed_record_ids": [f.record_ids for f in run.failures],
    }


async def scheduled_matching_task(ctx: Dict[str, Any]) -> Dict[str, Any]:
    """Cron entry point for the periodic sweep."""
    return await run_matching_task(ctx, task_id=f"scheduled-{int(time.time())}")


async def match_product_task(ctx: Dict[str, Any], product_id: int) -> Dict[str, Any]:
    """Match one freshly ingested product (exact first, then fuzzy)."""
    log = logger.bind(product_id=product_id)

    result = await run_with_retry(
        lambda: _pipeline(ctx).match_single_product(product_id),
        label="match_product",
    )

    if result.matched:
        emit_metric("matches_created_total", 1, {"match_type": result.match.match_type.value})
    log.info(
        "match_product_task_completed",
        matched=result.matched,
        review_candidates=len(result.review_candidates),
    )
    return {
        "product_id": product_id,
        "matched": result.matched,
        "match_group_id": result.match.match_group_id if result.match else None,
        "review_candidates": [c.model_dump() for c in result.review_candidates],
    }
