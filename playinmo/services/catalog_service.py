"""
playinmo.services.catalog_service — Games & Categories
========================================================

Read side of the catalog plus the play counter.  Admin writes go through
:mod:`playinmo.services.admin_service` so they are audit-logged.
"""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from playinmo.constants import isoformat
from playinmo.database.models import Game, GameCategory


def category_dict(c: GameCategory) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "slug": c.slug,
        "description": c.description,
        "image_url": c.image_url,
    }


def game_dict(g: Game) -> dict:
    return {
        "id": g.id,
        "title": g.title,
        "description": g.description,
        "image_url": g.image_url,
        "thumbnail_url": g.thumbnail_url,
        "category_id": g.category_id,
        "game_url": g.game_url,
        "file_path": g.file_path,
        "developer": g.developer,
        "instructions": g.instructions,
        "release_date": isoformat(g.release_date),
        "is_featured": g.is_featured,
        "is_new": g.is_new,
        "is_hot": g.is_hot,
        "is_active": g.is_active,
        "plays": g.plays,
        "rating": g.rating,
        "created_at": isoformat(g.created_at),
        "updated_at": isoformat(g.updated_at),
    }


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------

def list_games(session: Session, *, active_only: bool = True) -> list[dict]:
    stmt = select(Game).order_by(Game.created_at.desc(), Game.id.desc())
    if active_only:
        stmt = stmt.where(Game.is_active.is_(True))
    return [game_dict(g) for g in session.scalars(stmt)]


def list_featured_games(session: Session) -> list[dict]:
    rows = session.scalars(
        select(Game)
        .where(Game.is_featured.is_(True), Game.is_active.is_(True))
        .order_by(Game.plays.desc(), Game.id)
    )
    return [game_dict(g) for g in rows]


def get_game(session: Session, game_id: int) -> Game | None:
    return session.get(Game, game_id)


def list_games_by_category(session: Session, slug: str) -> list[dict]:
    """Active games in the category; unknown slug → empty list."""
    rows = session.scalars(
        select(Game)
        .join(GameCategory, Game.category_id == GameCategory.id)
        .where(GameCategory.slug == slug, Game.is_active.is_(True))
        .order_by(Game.title)
    )
    return [game_dict(g) for g in rows]


def search_games(session: Session, query: str) -> list[dict]:
    """Case-insensitive substring match on the title."""
    needle = query.strip().lower()
    if not needle:
        return []
    rows = session.scalars(
        select(Game)
        .where(func.lower(Game.title).contains(needle, autoescape=True),
               Game.is_active.is_(True))
        .order_by(Game.title)
    )
    return [game_dict(g) for g in rows]


def increment_plays(session: Session, game_id: int) -> Game | None:
    """Atomically bump the play counter; ``None`` for an unknown game."""
    result = session.execute(
        update(Game)
        .where(Game.id == game_id)
        .values(plays=Game.plays + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    session.commit()
    game = session.get(Game, game_id)
    session.refresh(game)
    return game


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def list_categories(session: Session) -> list[dict]:
    rows = session.scalars(select(GameCategory).order_by(GameCategory.name))
    return [category_dict(c) for c in rows]


def get_category_by_slug(session: Session, slug: str) -> GameCategory | None:
    return session.scalar(select(GameCategory).where(GameCategory.slug == slug))


def count_games_in_category(session: Session, category_id: int) -> int:
    return session.scalar(
        select(func.count()).select_from(Game).where(Game.category_id == category_id)
    ) or 0
