"""Cross-retailer product matching engine."""

__version__ = "0.1.0"
