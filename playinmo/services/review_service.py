"""
playinmo.services.review_service — Reviews & Game Rating
==========================================================

One review per user per game: a second submission edits the first.
After every write the game's ``rating`` column is refreshed to the
average on the 0..50 scale.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from playinmo.constants import (
    MAX_REVIEW_RATING,
    MIN_REVIEW_RATING,
    isoformat,
    scaled_rating,
)
from playinmo.database.models import (
    Game,
    GameReview,
    PointsSource,
    PointsTransaction,
    PortalEvent,
    User,
)
from playinmo.services import achievement_service, points_service
from playinmo.services.account_service import user_dict
from playinmo.services.settings_service import get_int_setting

logger = logging.getLogger(__name__)


def review_dict(r: GameReview, user: User | None = None) -> dict:
    data = {
        "id": r.id,
        "user_id": r.user_id,
        "game_id": r.game_id,
        "rating": r.rating,
        "comment": r.comment,
        "created_at": isoformat(r.created_at),
        "updated_at": isoformat(r.updated_at),
    }
    if user is not None:
        data["user"] = user_dict(user)
    return data


def average_rating(session: Session, game_id: int) -> float:
    """Average stars rounded to one decimal; 0 when there are no reviews."""
    avg = session.scalar(
        select(func.avg(GameReview.rating)).where(GameReview.game_id == game_id)
    )
    return round(float(avg), 1) if avg is not None else 0


def review_count(session: Session, game_id: int) -> int:
    return session.scalar(
        select(func.count()).select_from(GameReview).where(GameReview.game_id == game_id)
    ) or 0


def _refresh_game_rating(session: Session, game: Game) -> None:
    session.flush()
    game.rating = scaled_rating(average_rating(session, game.id))


def get_review(session: Session, user_id: int, game_id: int) -> GameReview | None:
    return session.scalar(
        select(GameReview).where(
            GameReview.user_id == user_id, GameReview.game_id == game_id,
        )
    )


def create_or_update_review(
    session: Session,
    user_id: int,
    game_id: int,
    rating: int,
    comment: str | None = None,
) -> tuple[GameReview, bool]:
    """Write the user's review of *game_id*.

    Returns ``(review, created)``.  Only the first review of a game pays
    ``points.per_review``, once ever per user.

    Raises
    ------
    LookupError
        Unknown game.
    ValueError
        Rating outside 1..5.
    """
    if not MIN_REVIEW_RATING <= rating <= MAX_REVIEW_RATING:
        raise ValueError(
            f"Rating must be between {MIN_REVIEW_RATING} and {MAX_REVIEW_RATING}"
        )
    game = session.get(Game, game_id)
    if game is None:
        raise LookupError("Game not found")

    review = get_review(session, user_id, game_id)
    created = review is None
    if created:
        review = GameReview(user_id=user_id, game_id=game_id, rating=rating, comment=comment)
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(review)
                session.flush()
        except IntegrityError:
            # Concurrent first review: fall back to editing it
            review = get_review(session, user_id, game_id)
            if review is None:
                raise
            created = False
    if not created:
        review.rating = rating
        review.comment = comment

    _refresh_game_rating(session, game)

    if created:
        per_review = get_int_setting(session, "points.per_review", 10)
        if per_review and not _review_already_paid(session, user_id, game_id):
            points_service.award_points(
                session, user_id, per_review, f"Reviewed {game.title}",
                PointsSource.REVIEW, reference_id=game_id,
            )
        achievement_service.evaluate_user(session, user_id, PortalEvent.REVIEW_WRITTEN)

    session.commit()
    return review, created


def _review_already_paid(session: Session, user_id: int, game_id: int) -> bool:
    """Review points are paid once per game, even across delete and re-review."""
    return session.scalar(
        select(PointsTransaction.id).where(
            PointsTransaction.user_id == user_id,
            PointsTransaction.source == PointsSource.REVIEW,
            PointsTransaction.reference_id == game_id,
        ).limit(1)
    ) is not None


def delete_review(session: Session, user_id: int, game_id: int) -> bool:
    review = get_review(session, user_id, game_id)
    if review is None:
        return False
    session.delete(review)
    game = session.get(Game, game_id)
    if game is not None:
        _refresh_game_rating(session, game)
    session.commit()
    return True


def list_game_reviews(session: Session, game_id: int) -> list[dict]:
    rows = session.execute(
        select(GameReview, User)
        .join(User, GameReview.user_id == User.id)
        .where(GameReview.game_id == game_id)
        .order_by(GameReview.created_at.desc(), GameReview.id.desc())
    ).all()
    return [review_dict(r, u) for r, u in rows]


def list_recent_reviews(session: Session, limit: int = 10) -> list[dict]:
    rows = session.execute(
        select(GameReview, User, Game.title)
        .join(User, GameReview.user_id == User.id)
        .join(Game, GameReview.game_id == Game.id)
        .order_by(GameReview.created_at.desc(), GameReview.id.desc())
        .limit(limit)
    ).all()
    return [{**review_dict(r, u), "game_title": title} for r, u, title in rows]
