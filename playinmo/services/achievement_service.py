"""
playinmo.services.achievement_service — Progress & Unlocks
============================================================

Bridges the pure trigger evaluation in :mod:`playinmo.engine.achievements`
and the database: builds the user's :class:`AchievementContext`, stores
progress rows, completes achievements (at most once each) and pays their
points into the ledger.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from playinmo.constants import RARITY_COLORS_HEX, isoformat
from playinmo.database.models import (
    Achievement,
    ChatMessage,
    GameReview,
    GameScore,
    PointsSource,
    PortalEvent,
    UserAchievement,
    UserPoints,
    UserReward,
)
from playinmo.engine.achievements import AchievementContext, check_achievements
from playinmo.services import points_service

logger = logging.getLogger(__name__)


def achievement_dict(a: Achievement) -> dict:
    return {
        "id": a.id,
        "name": a.name,
        "description": a.description,
        "icon_url": a.icon_url,
        "category": a.category,
        "trigger_type": a.trigger_type,
        "condition": a.condition or {},
        "points": a.points,
        "rarity": a.rarity,
        "rarity_color": RARITY_COLORS_HEX.get(a.rarity, RARITY_COLORS_HEX["common"]),
        "is_active": a.is_active,
        "created_at": isoformat(a.created_at),
    }


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

def _count(session: Session, stmt) -> int:
    return session.scalar(stmt) or 0


def build_context(
    session: Session, user_id: int, event: PortalEvent | None = None,
) -> AchievementContext:
    """Snapshot the user's counters, best scores and lifetime points."""
    stats = {
        "scores_submitted": _count(session, select(func.count()).select_from(GameScore)
                                   .where(GameScore.user_id == user_id)),
        "games_played": _count(session, select(func.count(distinct(GameScore.game_id)))
                               .where(GameScore.user_id == user_id)),
        "wins": _count(session, select(func.count()).select_from(GameScore)
                       .where(GameScore.user_id == user_id, GameScore.won.is_(True))),
        "reviews_written": _count(session, select(func.count()).select_from(GameReview)
                                  .where(GameReview.user_id == user_id)),
        "chat_messages": _count(session, select(func.count()).select_from(ChatMessage)
                                .where(ChatMessage.user_id == user_id)),
        "rewards_purchased": _count(session, select(func.count()).select_from(UserReward)
                                    .where(UserReward.user_id == user_id)),
    }
    best_scores = {
        row.game_id: row.best
        for row in session.execute(
            select(GameScore.game_id, func.max(GameScore.score).label("best"))
            .where(GameScore.user_id == user_id)
            .group_by(GameScore.game_id)
        )
    }
    lifetime = session.scalar(
        select(UserPoints.lifetime_points).where(UserPoints.user_id == user_id)
    ) or 0
    return AchievementContext(
        lifetime_points=lifetime, stats=stats, best_scores=best_scores, event=event,
    )


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------

def _get_user_achievement(
    session: Session, user_id: int, achievement_id: int,
) -> UserAchievement | None:
    return session.scalar(
        select(UserAchievement).where(
            UserAchievement.user_id == user_id,
            UserAchievement.achievement_id == achievement_id,
        )
    )


def complete_achievement(
    session: Session,
    user_id: int,
    achievement: Achievement,
    *,
    granted_by: int | None = None,
) -> bool:
    """Mark *achievement* completed and pay its points.

    Returns ``False`` when the user had already completed it.
    """
    ua = _get_user_achievement(session, user_id, achievement.id)
    if ua is not None and ua.is_completed:
        return False
    if ua is None:
        ua = UserAchievement(user_id=user_id, achievement_id=achievement.id, progress={})
        session.add(ua)
    ua.is_completed = True
    ua.unlocked_at = datetime.now(UTC)
    ua.granted_by = granted_by
    session.flush()

    if achievement.points:
        points_service.award_points(
            session, user_id, achievement.points,
            f"Achievement unlocked: {achievement.name}",
            PointsSource.ACHIEVEMENT,
            reference_id=achievement.id,
        )
    logger.info("User %d unlocked achievement %r", user_id, achievement.name)
    return True


def evaluate_user(
    session: Session, user_id: int, event: PortalEvent | None = None,
) -> list[Achievement]:
    """Re-check every active achievement for *user_id*.

    Stores progress for incomplete threshold achievements and completes
    the ones whose trigger now holds.  Points paid out by an unlock can
    satisfy a points milestone, so evaluation repeats until nothing new
    completes.  Does not commit.
    """
    achievements = session.scalars(
        select(Achievement).where(Achievement.is_active.is_(True)).order_by(Achievement.id)
    ).all()
    if not achievements:
        return []
    by_id = {a.id: a for a in achievements}
    unlocked: list[Achievement] = []

    for _ in range(len(achievements)):
        completed = set(session.scalars(
            select(UserAchievement.achievement_id).where(
                UserAchievement.user_id == user_id,
                UserAchievement.is_completed.is_(True),
            )
        ).all())
        ctx = build_context(session, user_id, event)
        result = check_achievements(achievements, ctx, completed)

        for ach_id, progress in result.progress.items():
            ua = _get_user_achievement(session, user_id, ach_id)
            if ua is None:
                session.add(UserAchievement(
                    user_id=user_id, achievement_id=ach_id, progress=progress,
                ))
            elif ua.progress != progress:
                ua.progress = progress

        if not result.newly_completed:
            break
        for ach_id in result.newly_completed:
            if complete_achievement(session, user_id, by_id[ach_id]):
                unlocked.append(by_id[ach_id])

    session.flush()
    return unlocked


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def list_achievements(session: Session) -> list[dict]:
    rows = session.scalars(
        select(Achievement)
        .where(Achievement.is_active.is_(True))
        .order_by(Achievement.category, Achievement.name)
    ).all()
    return [achievement_dict(a) for a in rows]


def list_user_achievements(session: Session, user_id: int) -> list[dict]:
    rows = session.execute(
        select(UserAchievement, Achievement)
        .join(Achievement, UserAchievement.achievement_id == Achievement.id)
        .where(UserAchievement.user_id == user_id)
        .order_by(UserAchievement.is_completed.desc(), Achievement.name)
    ).all()
    return [
        {
            "achievement": achievement_dict(ach),
            "progress": ua.progress or {},
            "is_completed": ua.is_completed,
            "unlocked_at": isoformat(ua.unlocked_at),
        }
        for ua, ach in rows
    ]
