"""
playinmo.constants — Shared Constants & Helpers
================================================

Single source of truth for presentation constants, the rating scale and
the slug helper.  Import from here instead of duplicating in services
and routes.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

# ---------------------------------------------------------------------------
# Rarity presentation (achievements + rewards)
# ---------------------------------------------------------------------------
RARITIES: tuple[str, ...] = ("common", "rare", "epic", "legendary")

RARITY_COLORS_HEX: dict[str, str] = {
    "common": "#9ca3af",
    "rare": "#3b82f6",
    "epic": "#a855f7",
    "legendary": "#f59e0b",
}

# ---------------------------------------------------------------------------
# Ads
# ---------------------------------------------------------------------------
AD_TYPES: tuple[str, ...] = ("image", "video", "audio")
AD_PLACEMENTS: tuple[str, ...] = (
    "banner",
    "sidebar",
    "popup",
    "interstitial",
    "pre-game",
    "post-game",
)
AD_EVENTS: tuple[str, ...] = ("view", "click")

# ---------------------------------------------------------------------------
# Website content
# ---------------------------------------------------------------------------
CONTENT_VALUE_TYPES: tuple[str, ...] = ("text", "image", "html")

DEFAULT_SITE_CONTENT: dict[str, dict[str, str]] = {
    "hero": {
        "title": "PlayinMO - Your Web Gaming Destination",
        "subtitle": "Play the best browser games online - free, instantly, and without downloads.",
        "ctaText": "Play Now",
    },
    "featured": {
        "title": "Featured Games",
        "subtitle": "Check out our most popular and exciting games",
    },
    "categories": {
        "title": "Game Categories",
        "subtitle": "Find your favorite type of games",
    },
    "about": {
        "title": "About PlayinMO",
        "content": (
            "PlayinMO is your web gaming destination for games that you can "
            "play right in your browser. No downloads, no waiting - just instant fun!"
        ),
    },
}


def infer_value_type(value: str) -> str:
    """Values that look like a URL or absolute path are stored as images."""
    if value.startswith("http") or value.startswith("/"):
        return "image"
    return "text"


# ---------------------------------------------------------------------------
# Ratings: reviews are 1..5 stars; games store the average on a 0..50 scale
# ---------------------------------------------------------------------------
MIN_REVIEW_RATING = 1
MAX_REVIEW_RATING = 5


def scaled_rating(average: float) -> int:
    """Convert a 0..5 average to the 0..50 integer stored on ``games.rating``."""
    return int(round(average * 10))


# ---------------------------------------------------------------------------
# Slugs
# ---------------------------------------------------------------------------
_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """``"Action & Arcade!"`` → ``"action-arcade"``."""
    return _SLUG_STRIP.sub("-", text.lower()).strip("-")


# ---------------------------------------------------------------------------
# Time: SQLite hands back naive datetimes; everything is stored as UTC
# ---------------------------------------------------------------------------
def as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def isoformat(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None
