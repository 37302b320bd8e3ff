"""Cross-retailer product matching services.

Key Components:
    - ExactMatcher: links products sharing a manufacturer SKU or barcode
    - FuzzyMatcher: links products by Jaro-Winkler name and dimension similarity
    - GroupAssigner: the single conditional write path for match groups
    - MatchingPipeline: exact then fuzzy, batch or per product
"""
from crossmatch.services.matching.similarity import (
    compute_name_similarity,
    compute_dimension_similarity,
    jaro,
    jaro_winkler,
    normalize_name,
)
from crossmatch.services.matching.groups import GroupAssigner, new_group_id
from crossmatch.services.matching.exact_matcher import ExactMatcher
from crossmatch.services.matching.fuzzy_matcher import FuzzyMatcher
from crossmatch.services.matching.pipeline import MatchingPipeline

__all__ = [
    "compute_name_similarity",
    "compute_dimension_similarity",
    "jaro",
    "jaro_winkler",
    "normalize_name",
    "GroupAssigner",
    "new_group_id",
    "ExactMatcher",
    "FuzzyMatcher",
    "MatchingPipeline",
]
