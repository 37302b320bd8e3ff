"""Group assignment: the single write path for match groups.

Every write is one conditional UPDATE in its own transaction:

    UPDATE products SET match_group_id = :g, match_confidence = :c
    WHERE id IN (:ids) AND match_group_id IS NULL

If fewer rows change than were targeted, another writer grouped one of the
records after it was read; the transaction is rolled back and
GroupConflictError is raised, so a group is written completely or not at all.
"""
import uuid
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from crossmatch.db.base import async_session_maker
from crossmatch.db.repository import ProductRepository
from crossmatch.errors import (
    GroupConflictError,
    GroupWriteError,
    LinkRejectedError,
    RecordNotFoundError,
)
from crossmatch.models import MatchCandidate, MatchGroupPage, MatchGroupSummary

logger = structlog.get_logger(__name__)

MANUAL_LINK_CONFIDENCE = 1.0


def new_group_id() -> str:
    """Mint a fresh group identifier."""
    return str(uuid.uuid4())


class _ConflictDetected(Exception):
    def __init__(self, updated: int) -> None:
        super().__init__(updated)
        self.updated = updated


class GroupAssigner:
    """Writes group identifiers for matchers and admin actions.

    Args:
        session_maker: Factory for async sessions (defaults to the app factory)
    """

    def __init__(self, session_maker: Optional[async_sessionmaker] = None) -> None:
        self._session_maker = session_maker or async_session_maker
        self._log = logger.bind(component="group_assigner")

    async def assign(
        self,
        record_ids: Sequence[int],
        group_id: str,
        confidence: float,
    ) -> None:
        """Atomically tag every record with the group id and confidence.

        Raises:
            GroupConflictError: A record already had a group id at write time
            GroupWriteError: The write failed for any other database reason
        """
        ids = sorted(set(record_ids))
        if not ids:
            return

        try:
            async with self._session_maker() as session:
                async with session.begin():
                    updated = await ProductRepository(session).assign_group(
                        ids, group_id, confidence
                    )
                    if updated != len(ids):
                        # Raising inside begin() rolls the partial update back
                        raise _ConflictDetected(updated)
        except _ConflictDetected as conflict:
            self._log.warning(
                "group_write_conflict",
                group_id=group_id,
                record_ids=ids,
                updated=conflict.updated,
            )
            raise GroupConflictError(
                f"Group {group_id}: {len(ids) - conflict.updated} of {len(ids)} "
                "records were grouped by another writer",
                group_id=group_id,
                record_ids=ids,
            ) from None
        except SQLAlchemyError as e:
            self._log.error(
                "group_write_failed",
                group_id=group_id,
                record_ids=ids,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GroupWriteError(
                f"Failed to write group {group_id}: {e}",
                group_id=group_id,
                record_ids=ids,
            ) from e

        self._log.debug(
            "group_written",
            group_id=group_id,
            record_ids=ids,
            confidence=round(confidence, 4),
        )

    async def link_records(
        self,
        product_id_a: int,
        product_id_b: int,
        confidence: float = MANUAL_LINK_CONFIDENCE,
    ) -> str:
        """Manually link two products from different retailers.

        Reuses an existing group id when one side is already grouped; only
        the ungrouped side is written. Used both for manual links and for
        confirming a review candidate (with its combined score).

        Returns:
            The group identifier both products now share

        Raises:
            RecordNotFoundError: Either product does not exist
            LinkRejectedError: Same retailer, or the products are in different groups
        """
        async with self._session_maker() as session:
            repo = ProductRepository(session)
            product_a = await repo.get_by_id(product_id_a)
            product_b = await repo.get_by_id(product_id_b)

        if product_a is None or product_b is None:
            raise RecordNotFoundError(
                "One or both products not found",
                details={"product_ids": [product_id_a, product_id_b]},
            )
        if product_a.retailer_slug == product_b.retailer_slug:
            raise LinkRejectedError("Cannot link products from the same retailer")

        group_a, group_b = product_a.match_group_id, product_b.match_group_id
        if group_a and group_b:
            if group_a != group_b:
                raise LinkRejectedError(
                    "Cannot link: products belong to different match groups. Unlink one first."
                )
            return group_a

        group_id = group_a or group_b or new_group_id()
        to_write = [p.id for p in (product_a, product_b) if p.match_group_id is None]
        await self.assign(to_write, group_id, confidence)

        self._log.info(
            "products_linked",
            group_id=group_id,
            product_ids=[product_id_a, product_id_b],
            confidence=confidence,
        )
        return group_id

    async def unlink_record(self, product_id: int) -> None:
        """Remove a product from its group, clearing id and confidence.

        The remaining members keep their group id even if fewer than two
        retailers are left.
        """
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    updated = await ProductRepository(session).clear_group(product_id)
        except SQLAlchemyError as e:
            raise GroupWriteError(
                f"Failed to unlink product {product_id}: {e}",
                group_id="",
                record_ids=[product_id],
            ) from e

        if updated == 0:
            raise RecordNotFoundError(
                f"Product {product_id} not found",
                details={"product_id": product_id},
            )
        self._log.info("product_unlinked", product_id=product_id)

    async def list_groups(self, page: int = 1, limit: int = 20) -> MatchGroupPage:
        """Page through existing groups with their members."""
        page = max(page, 1)
        async with self._session_maker() as session:
            repo = ProductRepository(session)
            rows = await repo.list_groups(offset=(page - 1) * limit, limit=limit)
            total = await repo.count_groups()
            groups = []
            for row in rows:
                members = await repo.find_group_members(row["match_group_id"])
                groups.append(
                    MatchGroupSummary(
                        **row,
                        products=[MatchCandidate.from_product(p) for p in members],
                    )
                )

        return MatchGroupPage(groups=groups, total_groups=total, page=page, limit=limit)
