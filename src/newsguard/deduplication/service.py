"""Near-duplicate detection for a batch of collected items."""

import re
from typing import Any, NamedTuple

from loguru import logger
from rapidfuzz.distance import Levenshtein

from ..config import settings
from ..models import item_field

_NON_ALNUM = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


class DuplicateMatch(NamedTuple):
    """Result of duplicate detection."""

    is_duplicate: bool
    original_url: str | None
    similarity_score: float
    match_type: str  # 'exact_url', 'similar_headline', 'none'


NO_MATCH = DuplicateMatch(
    is_duplicate=False, original_url=None, similarity_score=0.0, match_type="none"
)


def normalize_url(url: str | None) -> str:
    """Exact-match key for a URL (case-insensitive)."""
    return (url or "").strip().lower()


def normalize_headline(headline: str | None) -> str:
    """Lowercase, drop punctuation and collapse whitespace.

    >>> normalize_headline("  Fed raises   rates! ")
    'fed raises rates'
    """
    text = (headline or "").lower()
    text = _NON_ALNUM.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def headline_similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity in [0, 1]; two empty strings score 1."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - Levenshtein.distance(a, b)) / longest


class NearDuplicateDetector:
    """Collapse items that describe the same story.

    Combines two strategies:
    1. Exact URL matching (case-insensitive) across the whole batch
    2. Fuzzy headline matching against retained items from the same source

    Retained headlines are bucketed by source, so the pairwise comparison
    only ever runs within one source.
    """

    def __init__(self, similarity_threshold: float | None = None):
        """Initialize detector.

        Args:
            similarity_threshold: Minimum headline similarity for a duplicate
        """
        self.similarity_threshold = (
            similarity_threshold
            if similarity_threshold is not None
            else settings.dedup_similarity_threshold
        )

    def partition(
        self, items: list[Any]
    ) -> tuple[list[Any], list[tuple[Any, DuplicateMatch]]]:
        """Split a batch into retained items and discarded duplicates.

        Args:
            items: Items exposing url, headline and source

        Returns:
            (kept, duplicates) with kept in first-occurrence order
        """
        kept: list[Any] = []
        duplicates: list[tuple[Any, DuplicateMatch]] = []
        seen_urls: dict[str, str] = {}
        retained_by_source: dict[Any, list[tuple[str, str]]] = {}

        for item in items:
            url = item_field(item, "url")
            url_key = normalize_url(url)

            # Items without a URL have no exact key to share
            if url_key:
                if url_key in seen_urls:
                    duplicates.append(
                        (item, DuplicateMatch(True, seen_urls[url_key], 1.0, "exact_url"))
                    )
                    continue
                seen_urls[url_key] = url

            headline = normalize_headline(item_field(item, "headline"))
            bucket = retained_by_source.setdefault(item_field(item, "source"), [])
            match = self._match_headline(headline, bucket)
            if match.is_duplicate:
                duplicates.append((item, match))
                continue

            bucket.append((headline, url))
            kept.append(item)

        return kept, duplicates

    def _match_headline(
        self, headline: str, bucket: list[tuple[str, str]]
    ) -> DuplicateMatch:
        for existing_headline, existing_url in bucket:
            score = headline_similarity(headline, existing_headline)
            if score >= self.similarity_threshold:
                return DuplicateMatch(True, existing_url, score, "similar_headline")
        return NO_MATCH

    def deduplicate(self, items: list[Any]) -> list[Any]:
        """Return ``items`` without duplicates, preserving order."""
        kept, duplicates = self.partition(items)
        if duplicates:
            logger.info(f"Removed {len(duplicates)} duplicate items from {len(items)}")
        for item, match in duplicates:
            logger.debug(
                f"Dropped '{item_field(item, 'headline')}' ({match.match_type}, "
                f"score {match.similarity_score:.2f}) duplicate of {match.original_url}"
            )
        return kept
