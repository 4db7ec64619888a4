"""
playinmo.services.score_service — Scores & Leaderboards
=========================================================
"""

from __future__ import annotations

import logging

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from playinmo.constants import isoformat
from playinmo.database.models import Game, GameScore, PointsSource, PortalEvent, User
from playinmo.services import achievement_service, points_service
from playinmo.services.account_service import user_dict
from playinmo.services.settings_service import get_int_setting

logger = logging.getLogger(__name__)


def score_dict(s: GameScore, user: User | None = None) -> dict:
    data = {
        "id": s.id,
        "user_id": s.user_id,
        "game_id": s.game_id,
        "score": s.score,
        "won": s.won,
        "created_at": isoformat(s.created_at),
    }
    if user is not None:
        data["user"] = user_dict(user)
    return data


def submit_score(
    session: Session, user_id: int, game_id: int, score: int, won: bool = False,
) -> dict:
    """Record a score, pay ``points.per_score`` and re-check achievements.

    Raises
    ------
    LookupError
        Unknown game.
    ValueError
        Negative score.
    """
    if score < 0:
        raise ValueError("Score must be non-negative")
    if session.get(Game, game_id) is None:
        raise LookupError("Game not found")

    row = GameScore(user_id=user_id, game_id=game_id, score=score, won=won)
    session.add(row)
    session.flush()

    per_score = get_int_setting(session, "points.per_score", 5)
    if per_score:
        points_service.award_points(
            session, user_id, per_score, "Score submitted", PointsSource.SCORE,
            reference_id=row.id,
        )
    unlocked = achievement_service.evaluate_user(
        session, user_id, PortalEvent.SCORE_SUBMITTED,
    )
    session.commit()

    return {
        **score_dict(row),
        "points_awarded": per_score,
        "achievements_unlocked": [achievement_service.achievement_dict(a) for a in unlocked],
    }


def top_scores(session: Session, game_id: int, limit: int = 10) -> list[dict]:
    """Highest scores for *game_id*, each with the public user dict."""
    rows = session.execute(
        select(GameScore, User)
        .join(User, GameScore.user_id == User.id)
        .where(GameScore.game_id == game_id)
        .order_by(GameScore.score.desc(), GameScore.created_at, GameScore.id)
        .limit(limit)
    ).all()
    return [score_dict(s, u) for s, u in rows]


def top_players(session: Session, limit: int = 10) -> list[dict]:
    """Global leaderboard by summed score.

    ``win_rate`` is wins / plays × 100, rounded to one decimal.
    """
    total = func.sum(GameScore.score).label("total_score")
    played = func.count(GameScore.id).label("games_played")
    wins = func.sum(case((GameScore.won.is_(True), 1), else_=0)).label("wins")
    rows = session.execute(
        select(User, total, played, wins)
        .join(GameScore, GameScore.user_id == User.id)
        .group_by(User.id)
        .order_by(total.desc(), User.id)
        .limit(limit)
    ).all()

    leaderboard = []
    for rank, (user, total_score, games_played, win_count) in enumerate(rows, start=1):
        win_count = win_count or 0
        leaderboard.append({
            "rank": rank,
            "user": user_dict(user),
            "total_score": int(total_score or 0),
            "games_played": games_played,
            "win_rate": round(win_count / games_played * 100, 1) if win_count else 0,
        })
    return leaderboard
