"""
playinmo.api.routes.games — Catalog, play counter & reviews
=============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from playinmo.api.deps import get_current_user, get_session
from playinmo.constants import MAX_REVIEW_RATING, MIN_REVIEW_RATING
from playinmo.database.models import User
from playinmo.services import catalog_service, review_service
from playinmo.services.settings_service import get_int_setting

router = APIRouter(tags=["games"])


class ReviewBody(BaseModel):
    rating: int = Field(ge=MIN_REVIEW_RATING, le=MAX_REVIEW_RATING)
    comment: str | None = Field(default=None, max_length=2000)


def _require_game(session: Session, game_id: int):
    game = catalog_service.get_game(session, game_id)
    if game is None:
        raise HTTPException(404, "Game not found")
    return game


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------
@router.get("/games")
def list_games(session: Session = Depends(get_session)):
    return catalog_service.list_games(session)


@router.get("/games/featured")
def featured_games(session: Session = Depends(get_session)):
    return catalog_service.list_featured_games(session)


@router.get("/games/search")
def search_games(
    q: str = Query("", max_length=100),
    session: Session = Depends(get_session),
):
    return catalog_service.search_games(session, q)


@router.get("/games/category/{slug}")
def games_by_category(slug: str, session: Session = Depends(get_session)):
    return catalog_service.list_games_by_category(session, slug)


@router.get("/games/{game_id}")
def get_game(game_id: int, session: Session = Depends(get_session)):
    return catalog_service.game_dict(_require_game(session, game_id))


@router.post("/games/{game_id}/play")
def play_game(game_id: int, session: Session = Depends(get_session)):
    game = catalog_service.increment_plays(session, game_id)
    if game is None:
        raise HTTPException(404, "Game not found")
    return {"id": game.id, "plays": game.plays}


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
@router.get("/categories")
def list_categories(session: Session = Depends(get_session)):
    return catalog_service.list_categories(session)


@router.get("/categories/{slug}")
def get_category(slug: str, session: Session = Depends(get_session)):
    category = catalog_service.get_category_by_slug(session, slug)
    if category is None:
        raise HTTPException(404, "Category not found")
    return catalog_service.category_dict(category)


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------
@router.get("/games/{game_id}/reviews")
def game_reviews(game_id: int, session: Session = Depends(get_session)):
    _require_game(session, game_id)
    return review_service.list_game_reviews(session, game_id)


@router.get("/games/{game_id}/rating")
def game_rating(game_id: int, session: Session = Depends(get_session)):
    _require_game(session, game_id)
    return {
        "game_id": game_id,
        "average": review_service.average_rating(session, game_id),
        "count": review_service.review_count(session, game_id),
    }


@router.get("/games/{game_id}/reviews/user/{user_id}")
def user_review(game_id: int, user_id: int, session: Session = Depends(get_session)):
    review = review_service.get_review(session, user_id, game_id)
    if review is None:
        raise HTTPException(404, "Review not found")
    return review_service.review_dict(review)


@router.post("/games/{game_id}/reviews")
def post_review(
    game_id: int,
    body: ReviewBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Create the caller's review, or edit it if one already exists."""
    try:
        review, created = review_service.create_or_update_review(
            session, user.id, game_id, body.rating, body.comment,
        )
    except LookupError as exc:
        raise HTTPException(404, str(exc))
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return {**review_service.review_dict(review), "created": created}


@router.delete("/games/{game_id}/reviews")
def delete_review(
    game_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if not review_service.delete_review(session, user.id, game_id):
        raise HTTPException(404, "Review not found")
    return {"success": True}


@router.get("/reviews/recent")
def recent_reviews(
    limit: int | None = Query(None, ge=1, le=100),
    session: Session = Depends(get_session),
):
    limit = limit or get_int_setting(session, "reviews.recent_limit", 10)
    return review_service.list_recent_reviews(session, limit)
