"""Database models for the matching engine."""
from crossmatch.db.models.product import Product, IdentifierField, DIMENSION_FIELDS

__all__ = [
    "Product",
    "IdentifierField",
    "DIMENSION_FIELDS",
]
