"""Exact matching on shared identifiers (manufacturer SKU, then UPC/EAN).

Records from different retailers holding the same non-empty identifier are
linked with confidence 1.0.

Note:
    The batch run always mints a fresh group id per cluster, while the
    incremental path joins an existing group when a counterpart already has
    one. Confidence already written on existing members is left as is.
"""
from typing import List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from crossmatch.db.base import async_session_maker
from crossmatch.db.models import IdentifierField, Product
from crossmatch.db.repository import ProductRepository
from crossmatch.errors import GroupWriteError
from crossmatch.models import (
    ExactMatchRun,
    GroupWriteFailure,
    MatchCandidate,
    MatchResult,
    MatchType,
)
from crossmatch.services.matching.groups import GroupAssigner, new_group_id

logger = structlog.get_logger(__name__)

EXACT_CONFIDENCE = 1.0

# Identifier fields in matching order; the first hit wins for single products
MATCH_FIELDS = (IdentifierField.MANUFACTURER_SKU, IdentifierField.UPC_EAN)


class ExactMatcher:
    """Links products across retailers by identical identifiers.

    Args:
        session_maker: Factory for async sessions used for reads
        assigner: Group write path (defaults to one sharing session_maker)
    """

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker] = None,
        assigner: Optional[GroupAssigner] = None,
    ) -> None:
        self._session_maker = session_maker or async_session_maker
        self._assigner = assigner or GroupAssigner(self._session_maker)
        self._log = logger.bind(matcher="exact")

    async def run_exact_matching(self) -> ExactMatchRun:
        """Group every unmatched cluster sharing an identifier across retailers.

        Fields are processed in MATCH_FIELDS order, so records linked by SKU
        are no longer candidates for the barcode pass. A failed group write is
        recorded in the run's failures and does not undo earlier groups.
        """
        run = ExactMatchRun()
        for field in MATCH_FIELDS:
            await self._match_by_field(field, run)

        self._log.info(
            "exact_matching_completed",
            matches=len(run.matches),
            failures=len(run.failures),
        )
        return run

    async def _match_by_field(self, field: IdentifierField, run: ExactMatchRun) -> None:
        async with self._session_maker() as session:
            values = await ProductRepository(session).duplicate_identifier_values(field)

        self._log.debug("shared_identifier_values", field=field.value, count=len(values))

        for value in values:
            async with self._session_maker() as session:
                products = await ProductRepository(session).find_unmatched_by_identifier(
                    field, value
                )

            # Re-check: an earlier write in this run may have claimed some rows
            if len(products) < 2 or len({p.retailer_slug for p in products}) < 2:
                continue

            group_id = new_group_id()
            record_ids = [p.id for p in products]
            try:
                await self._assigner.assign(record_ids, group_id, EXACT_CONFIDENCE)
            except GroupWriteError as e:
                self._log.warning(
                    "exact_group_write_failed",
                    field=field.value,
                    value=value,
                    group_id=group_id,
                    error=e.message,
                )
                run.failures.append(
                    GroupWriteFailure(
                        match_field=field.value,
                        value=value,
                        record_ids=record_ids,
                        group_id=group_id,
                        error=e.message,
                    )
                )
                continue

            run.matches.append(self._result(group_id, field, products))
            self._log.info(
                "exact_match_created",
                field=field.value,
                group_id=group_id,
                product_count=len(products),
            )

    async def match_product_exact(self, product_id: int) -> Optional[MatchResult]:
        """Match one newly ingested product by its identifiers.

        Returns None when the product is missing, already grouped, or no
        identifier is shared with another retailer.

        Raises:
            GroupWriteError: The group write for this product failed
        """
        log = self._log.bind(product_id=product_id)

        async with self._session_maker() as session:
            repo = ProductRepository(session)
            product = await repo.get_by_id(product_id)
            if product is None or product.match_group_id is not None:
                return None

            hit = None
            for field in MATCH_FIELDS:
                value = getattr(product, field.value)
                if not value:
                    continue
                counterparts = await repo.find_identifier_counterparts(
                    field, value, exclude_id=product.id, exclude_retailer=product.retailer_slug
                )
                if counterparts:
                    hit = (field, counterparts)
                    break

        if hit is None:
            log.debug("no_exact_match")
            return None

        field, counterparts = hit
        existing_group_id = next(
            (c.match_group_id for c in counterparts if c.match_group_id), None
        )

        if existing_group_id:
            group_id = existing_group_id
            record_ids = [product.id]
            # Unmatched counterparts are left for the next batch run
            members = [c for c in counterparts if c.match_group_id == existing_group_id]
        else:
            group_id = new_group_id()
            record_ids = [product.id] + [c.id for c in counterparts]
            members = counterparts

        await self._assigner.assign(record_ids, group_id, EXACT_CONFIDENCE)

        log.info(
            "exact_match_created",
            field=field.value,
            group_id=group_id,
            joined_existing_group=existing_group_id is not None,
            product_count=len(members) + 1,
        )
        return self._result(group_id, field, [product, *members])

    @staticmethod
    def _result(group_id: str, field: IdentifierField, products: List[Product]) -> MatchResult:
        return MatchResult(
            match_group_id=group_id,
            match_type=MatchType.EXACT,
            confidence=EXACT_CONFIDENCE,
            match_field=field.value,
            products=[MatchCandidate.from_product(p) for p in products],
        )
