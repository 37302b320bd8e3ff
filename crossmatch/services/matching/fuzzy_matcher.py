"""Fuzzy matching on name and dimension similarity.

Combined score = name_score * name_weight + dimension_score * dimension_weight.

    - score >= auto_threshold:   link automatically (confidence = score)
    - score >= review_threshold: report as a ReviewCandidate, write nothing
    - otherwise:                 no match

Batch assignment is greedy and order dependent: each record of the first
retailer takes its best remaining counterpart in query order, and both are
consumed for the rest of the run. It is not a globally optimal assignment.
"""
from dataclasses import dataclass
from typing import List, Optional, Set

from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from crossmatch.config import MatchingSettings, matching_settings
from crossmatch.db.base import async_session_maker
from crossmatch.db.models import Product
from crossmatch.db.repository import ProductRepository
from crossmatch.errors import GroupWriteError
from crossmatch.models import (
    FUZZY_MATCH_FIELD,
    FuzzyMatchRun,
    FuzzyProductMatch,
    GroupWriteFailure,
    MatchCandidate,
    MatchResult,
    MatchType,
    ReviewCandidate,
)
from crossmatch.services.matching.groups import GroupAssigner, new_group_id
from crossmatch.services.matching.similarity import (
    compute_dimension_similarity,
    compute_name_similarity,
)

logger = structlog.get_logger(__name__)


@dataclass
class PairScore:
    """Scores for one product compared with one candidate."""
    candidate: Product
    name_score: float
    dimension_score: float
    overall: float


class FuzzyMatcher:
    """Links unmatched products across retailers by name and dimensions.

    Args:
        session_maker: Factory for async sessions used for reads
        assigner: Group write path (defaults to one sharing session_maker)
        config: Thresholds, weights and batch cap
    """

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker] = None,
        assigner: Optional[GroupAssigner] = None,
        config: Optional[MatchingSettings] = None,
    ) -> None:
        self._session_maker = session_maker or async_session_maker
        self._assigner = assigner or GroupAssigner(self._session_maker)
        self.config = config or matching_settings
        self._log = logger.bind(matcher="fuzzy")

    def score_pair(self, product: Product, candidate: Product) -> Optional[PairScore]:
        """Score a pair, or None when the names are too different to bother.

        The dimension score is only computed once the name score passes the
        pre-filter cutoff (review_threshold * name_prefilter_factor).
        """
        name_score = compute_name_similarity(product.name, candidate.name)
        if name_score < self.config.name_prefilter_cutoff:
            return None

        dimension_score = compute_dimension_similarity(
            product, candidate, neutral_score=self.config.neutral_dimension_score
        )
        overall = min(
            1.0,
            name_score * self.config.name_weight
            + dimension_score * self.config.dimension_weight,
        )
        return PairScore(candidate, name_score, dimension_score, overall)

    async def run_fuzzy_matching(self) -> FuzzyMatchRun:
        """Compare unmatched, named products for every pair of retailers.

        Returns:
            All auto-matches written, review candidates found and failed
            group writes, accumulated over every retailer pair.
        """
        run = FuzzyMatchRun()

        async with self._session_maker() as session:
            retailers = await ProductRepository(session).retailers_with_unmatched_named()

        if len(retailers) < 2:
            self._log.info("fuzzy_matching_skipped", reason="fewer_than_two_retailers")
            return run

        for i, retailer_a in enumerate(retailers):
            for retailer_b in retailers[i + 1:]:
                await self._compare_retailer_pair(retailer_a, retailer_b, run)

        self._log.info(
            "fuzzy_matching_completed",
            retailers=len(retailers),
            auto_matches=len(run.auto_matches),
            review_candidates=len(run.review_candidates),
            failures=len(run.failures),
        )
        return run

    async def _compare_retailer_pair(
        self,
        retailer_a: str,
        retailer_b: str,
        run: FuzzyMatchRun,
    ) -> None:
        log = self._log.bind(retailer_a=retailer_a, retailer_b=retailer_b)
        limit = self.config.max_batch_size

        async with self._session_maker() as session:
            repo = ProductRepository(session)
            batch_a = await repo.find_unmatched_named(limit, retailer_slug=retailer_a)
            batch_b = await repo.find_unmatched_named(limit, retailer_slug=retailer_b)

        if not batch_a or not batch_b:
            return

        consumed: Set[int] = set()

        for a in batch_a:
            if a.id in consumed:
                continue

            best: Optional[PairScore] = None
            for b in batch_b:
                if b.id in consumed:
                    continue
                scored = self.score_pair(a, b)
                if scored is None or scored.overall < self.config.review_threshold:
                    continue
                if best is None or scored.overall > best.overall:
                    best = scored

            if best is None:
                continue

            if best.overall >= self.config.auto_threshold:
                # Records in a failed write are not retried within this run
                consumed.update((a.id, best.candidate.id))
                result = await self._write_pair(a, best, run)
                if result is not None:
                    run.auto_matches.append(result)
            else:
                run.review_candidates.append(self._review_candidate(a, best))
                log.debug(
                    "fuzzy_review_candidate",
                    product_a=a.id,
                    product_b=best.candidate.id,
                    overall=round(best.overall, 4),
                )

        log.debug(
            "retailer_pair_compared",
            products_a=len(batch_a),
            products_b=len(batch_b),
        )

    async def _write_pair(
        self,
        product: Product,
        best: PairScore,
        run: FuzzyMatchRun,
    ) -> Optional[MatchResult]:
        group_id = new_group_id()
        record_ids = [product.id, best.candidate.id]
        try:
            await self._assigner.assign(record_ids, group_id, best.overall)
        except GroupWriteError as e:
            self._log.warning(
                "fuzzy_group_write_failed",
                group_id=group_id,
                record_ids=record_ids,
                error=e.message,
            )
            run.failures.append(
                GroupWriteFailure(
                    match_field=FUZZY_MATCH_FIELD,
                    record_ids=record_ids,
                    group_id=group_id,
                    error=e.message,
                )
            )
            return None

        self._log.info(
            "fuzzy_auto_match_created",
            group_id=group_id,
            product_a=product.id,
            product_b=best.candidate.id,
            confidence=round(best.overall, 4),
        )
        return self._match_result(group_id, product, best)

    async def match_product_fuzzy(self, product_id: int) -> FuzzyProductMatch:
        """Fuzzy-match one product against unmatched products of other retailers.

        The best candidate at or above the auto threshold is linked (ties go
        to the first encountered); every candidate in the review band is
        reported. A product without a name never matches.

        Raises:
            GroupWriteError: The group write for the best candidate failed
        """
        async with self._session_maker() as session:
            repo = ProductRepository(session)
            product = await repo.get_by_id(product_id)
            if product is None or product.match_group_id is not None:
                return FuzzyProductMatch()
            candidates = await repo.find_unmatched_named(
                self.config.max_batch_size, exclude_retailer=product.retailer_slug
            )

        best_auto: Optional[PairScore] = None
        review: List[ReviewCandidate] = []

        for candidate in candidates:
            scored = self.score_pair(product, candidate)
            if scored is None:
                continue
            if scored.overall >= self.config.auto_threshold:
                if best_auto is None or scored.overall > best_auto.overall:
                    best_auto = scored
            elif scored.overall >= self.config.review_threshold:
                review.append(self._review_candidate(product, scored))

        if best_auto is None:
            return FuzzyProductMatch(review_candidates=review)

        group_id = new_group_id()
        await self._assigner.assign(
            [product.id, best_auto.candidate.id], group_id, best_auto.overall
        )
        self._log.info(
            "fuzzy_auto_match_created",
            group_id=group_id,
            product_a=product.id,
            product_b=best_auto.candidate.id,
            confidence=round(best_auto.overall, 4),
        )
        return FuzzyProductMatch(
            match=self._match_result(group_id, product, best_auto),
            review_candidates=review,
        )

    @staticmethod
    def _match_result(group_id: str, product: Product, best: PairScore) -> MatchResult:
        return MatchResult(
            match_group_id=group_id,
            match_type=MatchType.FUZZY,
            confidence=best.overall,
            match_field=FUZZY_MATCH_FIELD,
            products=[
                MatchCandidate.from_product(product),
                MatchCandidate.from_product(best.candidate),
            ],
        )

    @staticmethod
    def _review_candidate(product: Product, scored: PairScore) -> ReviewCandidate:
        return ReviewCandidate(
            product_a=MatchCandidate.from_product(product),
            product_b=MatchCandidate.from_product(scored.candidate),
            name_score=scored.name_score,
            dimension_score=scored.dimension_score,
            overall_score=scored.overall,
        )
