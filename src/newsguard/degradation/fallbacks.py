"""Synthesized fallback content used when primary operations fail"""

import math
import re
import time
from datetime import UTC, datetime
from typing import Any

from ..config import settings
from ..models import (
    CollectedItem,
    FallbackKind,
    FallbackResult,
    UserPreferences,
    item_field,
)

_SENTENCE_SPLIT = re.compile(r"[.!?]+")

TONE_PREFIXES = {
    "formal": "We present the following news summary: ",
    "fun": "Hey there! Here's what's happening in the news: ",
    "casual": "Here's your news update: ",
}

EMPTY_STATE_SUGGESTIONS = [
    "Check your internet connection",
    "Refresh the page",
    "Try again later",
]


def default_articles() -> list[CollectedItem]:
    """Static articles shown when no source is reachable"""
    now = datetime.now(UTC)
    return [
        CollectedItem(
            url="#fallback-technology",
            headline="Technology News Update",
            source="newsguard",
            published_at=now,
            id="fallback-1",
            content=(
                "Stay informed with the latest technology developments. Our news "
                "collection service is temporarily unavailable, but we are working "
                "to restore full functionality."
            ),
            category="technology",
            tags=["technology", "update"],
        ),
        CollectedItem(
            url="#fallback-general",
            headline="General News Summary",
            source="newsguard",
            published_at=now,
            id="fallback-2",
            content=(
                "Important news updates from around the world. We apologize for the "
                "temporary service interruption and appreciate your patience."
            ),
            category="general",
            tags=["general", "news"],
        ),
    ]


def fallback_articles(category: str | None = None) -> list[CollectedItem]:
    """Default articles, optionally limited to a category or tag"""
    articles = default_articles()
    if not category:
        return articles
    category = category.lower()
    return [
        article
        for article in articles
        if item_field(article, "category") == category or category in item_field(article, "tags", [])
    ]


def general_feed(category: str | None = None) -> FallbackResult:
    return FallbackResult(
        kind=FallbackKind.DEFAULT_FEED,
        data={
            "articles": fallback_articles(category),
            "message": (
                "News collection service is temporarily unavailable. "
                "Showing general content."
            ),
        },
        message="Using default content due to service unavailability",
    )


def personalized_feed(user_id: str, preferences: UserPreferences) -> FallbackResult:
    """Default feed shaped by the user's first topic"""
    topic = preferences.topics[0] if preferences.topics else None
    articles = fallback_articles(topic) or fallback_articles()
    return FallbackResult(
        kind=FallbackKind.DEFAULT_FEED,
        data={
            "user_id": user_id,
            "articles": articles,
            "preferences": preferences,
            "message": (
                "Personalization service is temporarily unavailable. "
                "Showing general content."
            ),
        },
        message="Using default preferences due to service unavailability",
    )


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length].strip() + "..."


def _key_sentences(content: str, limit: int) -> list[str]:
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(content) if len(s.strip()) > 20]
    return sentences[:limit]


def extract_key_points(articles: list[Any]) -> list[str]:
    """First substantial sentence of up to three articles"""
    points = []
    for article in articles[:3]:
        sentences = _key_sentences(item_field(article, "content", "") or "", 1)
        points.append(f"{sentences[0]}." if sentences else item_field(article, "headline", ""))
    return points


def fallback_summary(articles: list[Any], tone: str = "casual", max_reading_time: int = 5) -> dict[str, Any]:
    """Template summary built from article text without a language model"""
    if not articles:
        raise ValueError("Cannot summarize an empty article list")

    prefix = TONE_PREFIXES.get(tone, TONE_PREFIXES["casual"])
    primary = articles[0]
    sentences = _key_sentences(
        item_field(primary, "content", "") or "", min(3, math.ceil(max_reading_time / 2))
    )
    body = f"Here's the latest from {item_field(primary, 'source')}: {item_field(primary, 'headline')}."
    if sentences:
        body = f"{body} {'. '.join(sentences)}."
    body = truncate(body, 400)

    content = f"{prefix}{body}"
    if len(articles) > 1:
        others = ", ".join(str(item_field(a, "source")) for a in articles[1:])
        content = f"{content} Additional coverage from {others} provides further insights."

    return {
        "id": f"fallback-{int(time.time() * 1000)}",
        "content": content,
        "key_points": extract_key_points(articles),
        "source_articles": [item_field(a, "id") or item_field(a, "url") for a in articles],
        "estimated_reading_time": min(max_reading_time, 3),
        "tone": tone,
    }


def summary_fallback(articles: list[Any], tone: str, max_reading_time: int) -> FallbackResult:
    return FallbackResult(
        kind=FallbackKind.EXCERPT,
        data={
            "summary": fallback_summary(articles, tone, max_reading_time),
            "message": (
                "AI summarization is temporarily unavailable. "
                "Showing simplified summary."
            ),
        },
        message="Using fallback summarization due to service unavailability",
    )


def article_excerpts(articles: list[Any], length: int | None = None) -> FallbackResult:
    """Articles with content cut to ``length`` characters"""
    length = length or settings.fallback_excerpt_length
    excerpts = []
    for article in articles:
        excerpts.append(
            {
                "id": item_field(article, "id"),
                "url": item_field(article, "url"),
                "headline": item_field(article, "headline"),
                "source": item_field(article, "source"),
                "content": truncate(item_field(article, "content", "") or "", length),
            }
        )
    return FallbackResult(
        kind=FallbackKind.EXCERPT,
        data={
            "articles": excerpts,
            "message": "Unable to generate summary. Showing article excerpts.",
        },
        message="Summary generation failed, showing excerpts",
    )


def empty_state(reason: str | None = None) -> FallbackResult:
    return FallbackResult(
        kind=FallbackKind.EMPTY_STATE,
        data={
            "message": (
                "We are experiencing technical difficulties. "
                "Please try again in a few minutes."
            ),
            "suggestions": list(EMPTY_STATE_SUGGESTIONS),
        },
        message=reason or "All fallback mechanisms failed",
    )
