"""
playinmo.engine.achievements — Achievement Check Pipeline
==========================================================

Handler-registry implementation for achievement trigger evaluation.
Each TriggerType maps to a pure handler function that receives the
achievement's ``condition`` JSON and an :class:`AchievementContext`.
Threshold-style triggers also report progress so the profile page can
show "7 / 25".

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol

from playinmo.database.models import PortalEvent, TriggerType

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Valid stat fields for stat_threshold triggers
# ---------------------------------------------------------------------------
VALID_STAT_FIELDS: set[str] = {
    "scores_submitted",
    "games_played",
    "wins",
    "reviews_written",
    "chat_messages",
    "rewards_purchased",
}

# Map PortalEvent → stat field counting occurrences of that event
EVENT_TO_STAT: dict[PortalEvent, str] = {
    PortalEvent.SCORE_SUBMITTED: "scores_submitted",
    PortalEvent.REVIEW_WRITTEN: "reviews_written",
    PortalEvent.CHAT_MESSAGE: "chat_messages",
    PortalEvent.REWARD_PURCHASED: "rewards_purchased",
}


class AchievementLike(Protocol):
    id: int
    name: str
    trigger_type: str
    condition: dict | None


# ---------------------------------------------------------------------------
# Achievement Context — passed to every trigger handler
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AchievementContext:
    """Snapshot of user state passed to trigger handlers.

    Parameters
    ----------
    lifetime_points : Points earned across the account's history.
    stats : Counter values, e.g. ``{"scores_submitted": 12, "wins": 3}``.
    best_scores : Mapping of game id → the user's best score on it.
    event : The event that triggered this check (or None for a re-scan).
    """

    lifetime_points: int = 0
    stats: dict[str, int] = field(default_factory=dict)
    best_scores: dict[int, int] = field(default_factory=dict)
    event: PortalEvent | None = None


@dataclass(slots=True)
class AchievementCheck:
    """Result of :func:`check_achievements`."""

    newly_completed: list[int] = field(default_factory=list)
    # achievement id → {"current": int, "target": int} for incomplete ones
    progress: dict[int, dict[str, int]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Measurement helpers — (config, ctx) → (current, target) or None
# ---------------------------------------------------------------------------
def _as_int(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _target(config: dict) -> int | None:
    return _as_int(config.get("value"))


def _measure_stat_threshold(config: dict, ctx: AchievementContext) -> tuple[int, int] | None:
    """Config: {"field": "scores_submitted", "value": 25}"""
    field_name = config.get("field")
    target = _target(config)
    if not isinstance(field_name, str) or field_name not in VALID_STAT_FIELDS or target is None:
        return None
    return ctx.stats.get(field_name, 0), target


def _measure_score_threshold(config: dict, ctx: AchievementContext) -> tuple[int, int] | None:
    """Config: {"value": 10000} or {"value": 10000, "game_id": 3}"""
    target = _target(config)
    if target is None:
        return None
    if config.get("game_id") is not None:
        game_id = _as_int(config["game_id"])
        if game_id is None:
            return None
        best = ctx.best_scores.get(game_id, 0)
    else:
        best = max(ctx.best_scores.values(), default=0)
    return best, target


def _measure_points_milestone(config: dict, ctx: AchievementContext) -> tuple[int, int] | None:
    """Config: {"value": 1000}"""
    target = _target(config)
    if target is None:
        return None
    return ctx.lifetime_points, target


MEASURES: dict[str, Callable[[dict, AchievementContext], tuple[int, int] | None]] = {
    TriggerType.STAT_THRESHOLD: _measure_stat_threshold,
    TriggerType.SCORE_THRESHOLD: _measure_score_threshold,
    TriggerType.POINTS_MILESTONE: _measure_points_milestone,
}


# ---------------------------------------------------------------------------
# Trigger handlers — pure functions (config, ctx) → bool
# ---------------------------------------------------------------------------
def _threshold_handler(
    measure: Callable[[dict, AchievementContext], tuple[int, int] | None],
) -> Callable[[dict, AchievementContext], bool]:
    def handler(config: dict, ctx: AchievementContext) -> bool:
        measured = measure(config, ctx)
        if measured is None:
            return False
        current, target = measured
        return current >= target
    return handler


def _check_first_event(config: dict, ctx: AchievementContext) -> bool:
    """Fires on the first occurrence of a specific event.

    Config: {"event": "review_written"}
    """
    try:
        event = PortalEvent(config.get("event", ""))
    except (TypeError, ValueError):
        return False
    return ctx.stats.get(EVENT_TO_STAT[event], 0) >= 1


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------
TRIGGER_HANDLERS: dict[str, Callable[[dict, AchievementContext], bool]] = {
    TriggerType.STAT_THRESHOLD: _threshold_handler(_measure_stat_threshold),
    TriggerType.SCORE_THRESHOLD: _threshold_handler(_measure_score_threshold),
    TriggerType.POINTS_MILESTONE: _threshold_handler(_measure_points_milestone),
    TriggerType.FIRST_EVENT: _check_first_event,
    # TriggerType.MANUAL is never auto-triggered
}


# ---------------------------------------------------------------------------
# Main check function
# ---------------------------------------------------------------------------
def check_achievements(
    achievements: Iterable[AchievementLike],
    ctx: AchievementContext,
    completed_ids: set[int],
) -> AchievementCheck:
    """Check which achievements the user has newly completed.

    Parameters
    ----------
    achievements : Active achievement definitions.
    ctx : AchievementContext with current user state.
    completed_ids : Achievement IDs the user has already completed.

    Returns
    -------
    AchievementCheck with newly completed IDs and progress for the
    incomplete threshold achievements.
    """
    result = AchievementCheck()

    for achievement in achievements:
        if achievement.id in completed_ids:
            continue

        handler = TRIGGER_HANDLERS.get(achievement.trigger_type)
        if handler is None:
            continue

        config = achievement.condition or {}
        if not isinstance(config, dict):
            logger.warning(
                "Achievement %d has a non-object condition; skipped", achievement.id,
            )
            continue
        if handler(config, ctx):
            result.newly_completed.append(achievement.id)
            logger.info(
                "Achievement triggered: %s (id=%d)", achievement.name, achievement.id,
            )
            continue

        measure = MEASURES.get(achievement.trigger_type)
        measured = measure(config, ctx) if measure else None
        if measured is not None:
            current, target = measured
            result.progress[achievement.id] = {"current": current, "target": target}

    return result
