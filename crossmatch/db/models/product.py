"""Product ORM model with identifier, dimension and matching fields."""
from sqlalchemy import String, Float, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from crossmatch.db.base import Base, TimestampMixin
from enum import Enum as PyEnum
from typing import Optional, Tuple


class IdentifierField(str, PyEnum):
    """Identifier fields eligible for exact matching, in matching order."""
    MANUFACTURER_SKU = "manufacturer_sku"
    UPC_EAN = "upc_ean"


# Free-text dimension columns compared by the fuzzy matcher
DIMENSION_FIELDS: Tuple[str, ...] = ("width", "height", "depth", "length", "weight")


class Product(Base, TimestampMixin):
    """A single retailer's listing of an item.

    Attributes:
        article_number: Retailer-local identifier
        retailer_slug: Retailer that sourced the listing
        retailer_id: Retailer's own listing id (optional)
        name: Display name (nullable)
        manufacturer_sku: Manufacturer SKU (nullable)
        upc_ean: Barcode (nullable)
        width/height/depth/length/weight: Free text such as "120 cm"
        match_group_id: Shared group identifier; NULL means unmatched
        match_confidence: Score recorded when the group id was written (0-1)

    Records with a non-null match_group_id are never reconsidered by the
    automated matchers; only manual link/unlink changes them.
    """

    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint('retailer_slug', 'article_number', name='unique_retailer_article'),
        CheckConstraint(
            'match_confidence IS NULL OR (match_confidence >= 0 AND match_confidence <= 1)',
            name='check_match_confidence'
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    article_number: Mapped[str] = mapped_column(String(100), nullable=False)
    retailer_slug: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    retailer_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Exact matching inputs
    manufacturer_sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    upc_ean: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)

    # Fuzzy matching inputs
    width: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    height: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    depth: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    length: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    weight: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Matching outputs
    match_group_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
        index=True,
        doc="Shared group identifier (UUID string)"
    )
    match_confidence: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        doc="Confidence recorded at assignment time (0-1)"
    )

    def __repr__(self) -> str:
        return (
            f"<Product(id={self.id}, retailer='{self.retailer_slug}', "
            f"article='{self.article_number}', group={self.match_group_id})>"
        )
