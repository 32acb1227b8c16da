"""Near-duplicate detection for collected items."""

from .service import (
    DuplicateMatch,
    NearDuplicateDetector,
    headline_similarity,
    normalize_headline,
    normalize_url,
)

__all__ = [
    "DuplicateMatch",
    "NearDuplicateDetector",
    "headline_similarity",
    "normalize_headline",
    "normalize_url",
]
