"""Task functions run by the arq worker."""
from crossmatch.tasks.matching_tasks import (
    emit_metric,
    run_with_retry,
    run_matching_task,
    scheduled_matching_task,
    match_product_task,
)

__all__ = [
    "emit_metric",
    "run_with_retry",
    "run_matching_task",
    "scheduled_matching_task",
    "match_product_task",
]
