"""Result models for the matching engine."""
from crossmatch.models.matching import (
    FUZZY_MATCH_FIELD,
    MatchType,
    MatchCandidate,
    MatchResult,
    ReviewCandidate,
    GroupWriteFailure,
    ExactMatchRun,
    FuzzyMatchRun,
    FuzzyProductMatch,
    MatchRunSummary,
    PipelineRun,
    SingleProductMatch,
    MatchGroupSummary,
    MatchGroupPage,
)

__all__ = [
    "FUZZY_MATCH_FIELD",
    "MatchType",
    "MatchCandidate",
    "MatchResult",
    "ReviewCandidate",
    "GroupWriteFailure",
    "ExactMatchRun",
    "FuzzyMatchRun",
    "FuzzyProductMatch",
    "MatchRunSummary",
    "PipelineRun",
    "SingleProductMatch",
    "MatchGroupSummary",
    "MatchGroupPage",
]
