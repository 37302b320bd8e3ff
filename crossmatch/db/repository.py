"""Product repository: the persistence interface consumed by the matchers.

All queries are built with SQLAlchemy expressions. Identifier columns are
resolved from a fixed IdentifierField mapping and never from text.
"""
from typing import Dict, List, Optional, Sequence

from sqlalchemy import distinct, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute
import structlog

from crossmatch.db.models import IdentifierField, Product
from crossmatch.errors import DatabaseError

logger = structlog.get_logger(__name__)


_IDENTIFIER_COLUMNS: Dict[IdentifierField, InstrumentedAttribute] = {
    IdentifierField.MANUFACTURER_SKU: Product.manufacturer_sku,
    IdentifierField.UPC_EAN: Product.upc_ean,
}


def identifier_column(field: IdentifierField) -> InstrumentedAttribute:
    """Resolve an identifier field to its mapped column."""
    return _IDENTIFIER_COLUMNS[IdentifierField(field)]


class ProductRepository:
    """Data access for the products table.

    Args:
        session: SQLAlchemy async session; the caller owns its transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _execute(self, statement, operation: str):
        try:
            return await self._session.execute(statement)
        except SQLAlchemyError as e:
            logger.error(
                "product_query_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DatabaseError(f"Failed to {operation}: {e}") from e

    async def get_by_id(self, product_id: int) -> Optional[Product]:
        """Point lookup by id."""
        result = await self._execute(
            select(Product).where(Product.id == product_id),
            "load product",
        )
        return result.scalar_one_or_none()

    async def count_unmatched(self) -> int:
        result = await self._execute(
            select(func.count()).select_from(Product).where(Product.match_group_id.is_(None)),
            "count unmatched products",
        )
        return int(result.scalar_one())

    async def retailers_with_unmatched_named(self) -> List[str]:
        """Distinct retailer slugs holding at least one unmatched, named record."""
        result = await self._execute(
            select(Product.retailer_slug)
            .distinct()
            .where(Product.match_group_id.is_(None))
            .where(Product.name.is_not(None))
            .order_by(Product.retailer_slug),
            "list retailers with unmatched products",
        )
        return list(result.scalars().all())

    async def find_unmatched_named(
        self,
        limit: int,
        retailer_slug: Optional[str] = None,
        exclude_retailer: Optional[str] = None,
    ) -> List[Product]:
        """Unmatched records with a name, in id order, capped at limit.

        Args:
            limit: Maximum number of records returned
            retailer_slug: Only records from this retailer
            exclude_retailer: Only records from other retailers
        """
        query = (
            select(Product)
            .where(Product.match_group_id.is_(None))
            .where(Product.name.is_not(None))
        )
        if retailer_slug is not None:
            query = query.where(Product.retailer_slug == retailer_slug)
        if exclude_retailer is not None:
            query = query.where(Product.retailer_slug != exclude_retailer)

        result = await self._execute(
            query.order_by(Product.id).limit(limit),
            "load unmatched products",
        )
        return list(result.scalars().all())

    async def duplicate_identifier_values(self, field: IdentifierField) -> List[str]:
        """Non-empty values held by unmatched records of two or more retailers."""
        column = identifier_column(field)
        result = await self._execute(
            select(column)
            .where(column.is_not(None))
            .where(column != "")
            .where(Product.match_group_id.is_(None))
            .group_by(column)
            .having(func.count(distinct(Product.retailer_slug)) > 1)
            .order_by(column),
            "find shared identifier values",
        )
        return list(result.scalars().all())

    async def find_unmatched_by_identifier(
        self,
        field: IdentifierField,
        value: str,
    ) -> List[Product]:
        """Unmatched records holding the identifier value, in id order."""
        column = identifier_column(field)
        result = await self._execute(
            select(Product)
            .where(column == value)
            .where(Product.match_group_id.is_(None))
            .order_by(Product.id),
            "load products by identifier",
        )
        return list(result.scalars().all())

    async def find_identifier_counterparts(
        self,
        field: IdentifierField,
        value: str,
        exclude_id: int,
        exclude_retailer: str,
    ) -> List[Product]:
        """Records from other retailers holding the value, grouped or not."""
        column = identifier_column(field)
        result = await self._execute(
            select(Product)
            .where(column == value)
            .where(Product.id != exclude_id)
            .where(Product.retailer_slug != exclude_retailer)
            .order_by(Product.id),
            "load identifier counterparts",
        )
        return list(result.scalars().all())

    async def assign_group(
        self,
        record_ids: Sequence[int],
        group_id: str,
        confidence: float,
    ) -> int:
        """Conditionally tag records with a group id.

        Only rows whose match_group_id is still NULL are updated.

        Returns:
            Number of rows updated
        """
        result = await self._session.execute(
            update(Product)
            .where(Product.id.in_(list(record_ids)))
            .where(Product.match_group_id.is_(None))
            .values(match_group_id=group_id, match_confidence=confidence)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def clear_group(self, product_id: int) -> int:
        """Remove a record from its group. Returns rows updated."""
        result = await self._session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(match_group_id=None, match_confidence=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def list_groups(self, offset: int, limit: int) -> List[Dict[str, object]]:
        """Group summaries (id, member count, average confidence) ordered by id."""
        result = await self._execute(
            select(
                Product.match_group_id,
                func.count(Product.id),
                func.avg(Product.match_confidence),
            )
            .where(Product.match_group_id.is_not(None))
            .group_by(Product.match_group_id)
            .order_by(Product.match_group_id)
            .offset(offset)
            .limit(limit),
            "list match groups",
        )
        return [
            {
                "match_group_id": group_id,
                "product_count": int(count),
                "avg_confidence": float(avg) if avg is not None else None,
            }
            for group_id, count, avg in result.all()
        ]

    async def count_groups(self) -> int:
        result = await self._execute(
            select(func.count(distinct(Product.match_group_id)))
            .where(Product.match_group_id.is_not(None)),
            "count match groups",
        )
        return int(result.scalar_one())

    async def find_group_members(self, group_id: str) -> List[Product]:
        result = await self._execute(
            select(Product).where(Product.match_group_id == group_id).order_by(Product.id),
            "load group members",
        )
        return list(result.scalars().all())
