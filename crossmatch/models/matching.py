"""Pydantic models for matching results.

These are plain values returned to collaborators; none of them carries a
database handle.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from enum import Enum

from crossmatch.db.models import Product

FUZZY_MATCH_FIELD = "name+dimensions"


class MatchType(str, Enum):
    """How a group was formed."""
    EXACT = "exact"
    FUZZY = "fuzzy"


class MatchCandidate(BaseModel):
    """A product that participated in a match."""

    product_id: int
    article_number: str
    product_name: Optional[str] = None
    retailer_slug: str
    retailer_id: Optional[str] = None

    @classmethod
    def from_product(cls, product: Product) -> "MatchCandidate":
        return cls(
            product_id=product.id,
            article_number=product.article_number,
            product_name=product.name,
            retailer_slug=product.retailer_slug,
            retailer_id=product.retailer_id,
        )


class MatchResult(BaseModel):
    """One successful link written to the store.

    Attributes:
        match_group_id: Group identifier shared by all products
        match_type: exact or fuzzy
        confidence: Score written with the group id (0-1)
        match_field: Identifier field name, or "name+dimensions" for fuzzy
        products: Every product in the resulting link
    """

    match_group_id: str
    match_type: MatchType
    confidence: float = Field(..., ge=0, le=1)
    match_field: str
    products: List[MatchCandidate] = Field(default_factory=list)


class ReviewCandidate(BaseModel):
    """A fuzzy comparison in the review band, awaiting a human decision."""

    product_a: MatchCandidate
    product_b: MatchCandidate
    name_score: float = Field(..., ge=0, le=1)
    dimension_score: float = Field(..., ge=0, le=1)
    overall_score: float = Field(..., ge=0, le=1)


class GroupWriteFailure(BaseModel):
    """A cluster whose group write failed during a batch run."""

    match_field: str
    record_ids: List[int]
    group_id: str
    error: str
    value: Optional[str] = None


class ExactMatchRun(BaseModel):
    """Outcome of a batch exact matching run."""

    matches: List[MatchResult] = Field(default_factory=list)
    failures: List[GroupWriteFailure] = Field(default_factory=list)


class FuzzyMatchRun(BaseModel):
    """Outcome of a batch fuzzy matching run."""

    auto_matches: List[MatchResult] = Field(default_factory=list)
    review_candidates: List[ReviewCandidate] = Field(default_factory=list)
    failures: List[GroupWriteFailure] = Field(default_factory=list)


class FuzzyProductMatch(BaseModel):
    """Outcome of fuzzy matching a single product."""

    match: Optional[MatchResult] = None
    review_candidates: List[ReviewCandidate] = Field(default_factory=list)


class MatchRunSummary(BaseModel):
    """Counts for a full exact + fuzzy pipeline run."""

    exact_matches: int = 0
    fuzzy_auto_matches: int = 0
    fuzzy_review_matches: int = 0
    failed_groups: int = 0
    total_products_processed: int = 0
    duration_ms: int = 0


class PipelineRun(BaseModel):
    """Full pipeline outcome returned to the scheduler."""

    summary: MatchRunSummary
    review_candidates: List[ReviewCandidate] = Field(default_factory=list)
    failures: List[GroupWriteFailure] = Field(default_factory=list)


class SingleProductMatch(BaseModel):
    """Outcome of matching one freshly ingested product (exact, then fuzzy)."""

    match: Optional[MatchResult] = None
    review_candidates: List[ReviewCandidate] = Field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.match is not None


class MatchGroupSummary(BaseModel):
    """Aggregate view of one group for admin listings."""

    match_group_id: str
    product_count: int
    avg_confidence: Optional[float] = None
    products: List[MatchCandidate] = Field(default_factory=list)


class MatchGroupPage(BaseModel):
    """A page of group summaries."""

    groups: List[MatchGroupSummary] = Field(default_factory=list)
    total_groups: int = 0
    page: int = 1
    limit: int = 20
