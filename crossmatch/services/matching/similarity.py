"""Name and dimension similarity scorers.

Both scorers return values in the 0-1 range and treat absent input as a
neutral or zero contribution rather than an error.
"""
import re
from typing import Optional, Protocol

from crossmatch.db.models import DIMENSION_FIELDS

# Winkler prefix scaling factor and maximum rewarded prefix length
WINKLER_SCALING = 0.1
WINKLER_MAX_PREFIX = 4

# Score returned when no dimension field is comparable on both sides
NEUTRAL_DIMENSION_SCORE = 0.5

# Anything but letters, digits and whitespace; "_" counts as punctuation
_PUNCTUATION_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


class Dimensioned(Protocol):
    """Anything carrying the five free-text dimension fields."""
    width: Optional[str]
    height: Optional[str]
    depth: Optional[str]
    length: Optional[str]
    weight: Optional[str]


def normalize_name(name: str) -> str:
    """Lowercase, replace punctuation with spaces, collapse whitespace."""
    text = _PUNCTUATION_RE.sub(" ", name.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def jaro(s1: str, s2: str) -> float:
    """Jaro similarity.

    Each character of s1 claims the first unclaimed identical character of
    s2 within ``max(len) // 2 - 1`` positions. Transpositions are the
    positions where the claimed characters, read in order, differ; they
    count half.
    """
    if s1 == s2:
        return 1.0

    len1, len2 = len(s1), len(s2)
    window = max(len1, len2) // 2 - 1
    if window < 0:
        return 0.0

    matched1 = [False] * len1
    matched2 = [False] * len2
    matches = 0

    for i, ch in enumerate(s1):
        for j in range(max(0, i - window), min(i + window + 1, len2)):
            if matched2[j] or s2[j] != ch:
                continue
            matched1[i] = matched2[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i in range(len1):
        if not matched1[i]:
            continue
        while not matched2[k]:
            k += 1
        if s1[i] != s2[k]:
            transpositions += 1
        k += 1

    return (
        matches / len1
        + matches / len2
        + (matches - transpositions / 2) / matches
    ) / 3


def jaro_winkler(s1: str, s2: str) -> float:
    """Jaro-Winkler similarity with the prefix boost applied unconditionally.

    The boost rewards up to four leading characters in common:
    ``jaro + p * 0.1 * (1 - jaro)``.
    """
    if s1 == s2:
        return 1.0

    score = jaro(s1, s2)

    prefix = 0
    for a, b in zip(s1[:WINKLER_MAX_PREFIX], s2[:WINKLER_MAX_PREFIX]):
        if a != b:
            break
        prefix += 1

    return score + prefix * WINKLER_SCALING * (1.0 - score)


def compute_name_similarity(name_a: Optional[str], name_b: Optional[str]) -> float:
    """Similarity of two display names; 0 if either is missing.

    >>> compute_name_similarity("KALLAX Shelf", "kallax shelf!!")
    1.0
    """
    if not name_a or not name_b:
        return 0.0

    a = normalize_name(name_a)
    b = normalize_name(name_b)

    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    return jaro_winkler(a, b)


def extract_numeric(value: Optional[str]) -> Optional[float]:
    """First decimal number in a dimension string ("120 cm" -> 120.0)."""
    if not value:
        return None
    match = _NUMBER_RE.search(value)
    return float(match.group(0)) if match else None


def compute_dimension_similarity(
    a: Dimensioned,
    b: Dimensioned,
    neutral_score: float = NEUTRAL_DIMENSION_SCORE,
) -> float:
    """Average ratio similarity over dimension fields parsed on both sides.

    Fields that fail to parse on either side are skipped, not scored as 0.
    Two zero values count as identical. With no comparable field the
    neutral score is returned.
    """
    total = 0.0
    comparisons = 0

    for field in DIMENSION_FIELDS:
        val_a = extract_numeric(getattr(a, field, None))
        val_b = extract_numeric(getattr(b, field, None))

        if val_a is None or val_b is None:
            continue

        if val_a == 0 and val_b == 0:
            total += 1.0
        else:
            total += min(val_a, val_b) / max(val_a, val_b)
        comparisons += 1

    if comparisons == 0:
        return neutral_score

    return total / comparisons
