"""Full matching pipeline: exact matching, then fuzzy matching on the rest."""
import time
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from crossmatch.config import MatchingSettings
from crossmatch.db.base import async_session_maker
from crossmatch.db.repository import ProductRepository
from crossmatch.models import MatchRunSummary, PipelineRun, SingleProductMatch
from crossmatch.services.matching.exact_matcher import ExactMatcher
from crossmatch.services.matching.fuzzy_matcher import FuzzyMatcher
from crossmatch.services.matching.groups import GroupAssigner

logger = structlog.get_logger(__name__)


class MatchingPipeline:
    """Runs both matchers over one shared write path."""

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker] = None,
        config: Optional[MatchingSettings] = None,
    ) -> None:
        self._session_maker = session_maker or async_session_maker
        assigner = GroupAssigner(self._session_maker)
        self.exact = ExactMatcher(self._session_maker, assigner)
        self.fuzzy = FuzzyMatcher(self._session_maker, assigner, config)

    async def run(self) -> PipelineRun:
        """Batch run over the whole unmatched pool."""
        start = time.monotonic()

        async with self._session_maker() as session:
            unmatched = await ProductRepository(session).count_unmatched()

        exact_run = await self.exact.run_exact_matching()
        fuzzy_run = await self.fuzzy.run_fuzzy_matching()

        failures = exact_run.failures + fuzzy_run.failures
        summary = MatchRunSummary(
            exact_matches=len(exact_run.matches),
            fuzzy_auto_matches=len(fuzzy_run.auto_matches),
            fuzzy_review_matches=len(fuzzy_run.review_candidates),
            failed_groups=len(failures),
            total_products_processed=unmatched,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        logger.info("matching_run_completed", **summary.model_dump())

        return PipelineRun(
            summary=summary,
            review_candidates=fuzzy_run.review_candidates,
            failures=failures,
        )

    async def match_single_product(self, product_id: int) -> SingleProductMatch:
        """Incremental path for one newly ingested product: exact first, then fuzzy."""
        exact = await self.exact.match_product_exact(product_id)
        if exact is not None:
            return SingleProductMatch(match=exact)

        fuzzy = await self.fuzzy.match_product_fuzzy(product_id)
        return SingleProductMatch(
            match=fuzzy.match,
            review_candidates=fuzzy.review_candidates,
        )
