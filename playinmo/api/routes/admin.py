"""
playinmo.api.routes.admin — CMS endpoints (JWT‑protected)
===========================================================
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from playinmo.api.deps import get_engine, get_image_chain, get_session
from playinmo.api.rate_limit import rate_limited_admin
from playinmo.database.engine import run_db
from playinmo.database.models import Achievement, Reward
from playinmo.services import (
    achievement_service,
    admin_service,
    catalog_service,
    content_service,
    email_service,
    reward_service,
    settings_service,
    upload_service,
)
from playinmo.services.errors import ConflictError
from playinmo.services.image_storage import ImageStorageChain

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class GameCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    image_url: str = ""
    thumbnail_url: str | None = None
    category_id: int | None = None
    game_url: str | None = None
    developer: str | None = None
    instructions: str | None = None
    release_date: datetime | None = None
    is_featured: bool = False
    is_new: bool = False
    is_hot: bool = False
    is_active: bool = True


class GameUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    image_url: str | None = None
    thumbnail_url: str | None = None
    category_id: int | None = None
    game_url: str | None = None
    developer: str | None = None
    instructions: str | None = None
    release_date: datetime | None = None
    is_featured: bool | None = None
    is_new: bool | None = None
    is_hot: bool | None = None
    is_active: bool | None = None


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    slug: str | None = Field(default=None, max_length=100)
    description: str | None = None
    image_url: str | None = None


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    slug: str | None = Field(default=None, max_length=100)
    description: str | None = None
    image_url: str | None = None


class ContentCreate(BaseModel):
    section: str = Field(min_length=1, max_length=100)
    key: str = Field(min_length=1, max_length=100)
    value: str = ""
    value_type: str = "text"


class ContentUpdate(BaseModel):
    section: str | None = Field(default=None, min_length=1, max_length=100)
    key: str | None = Field(default=None, min_length=1, max_length=100)
    value: str | None = None
    value_type: str | None = None


class AchievementCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    icon_url: str | None = None
    category: str = "general"
    trigger_type: str = "manual"
    condition: dict[str, Any] = Field(default_factory=dict)
    points: int = 0
    rarity: str = "common"
    is_active: bool = True


class AchievementUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    icon_url: str | None = None
    category: str | None = None
    trigger_type: str | None = None
    condition: dict[str, Any] | None = None
    points: int | None = None
    rarity: str | None = None
    is_active: bool | None = None


class RewardCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    type: str = Field(min_length=1, max_length=50)
    value: dict[str, Any] = Field(default_factory=dict)
    cost: int = Field(default=0, ge=0)
    category: str = "cosmetic"
    rarity: str = "common"
    is_active: bool = True


class RewardUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    type: str | None = Field(default=None, min_length=1, max_length=50)
    value: dict[str, Any] | None = None
    cost: int | None = Field(default=None, ge=0)
    category: str | None = None
    rarity: str | None = None
    is_active: bool | None = None


class PointsAward(BaseModel):
    user_id: int
    amount: int
    reason: str = ""


class AchievementGrant(BaseModel):
    user_id: int
    achievement_id: int


class SettingUpdate(BaseModel):
    key: str
    value: Any
    category: str | None = None
    description: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
@contextmanager
def service_errors() -> Iterator[None]:
    """Translate service exceptions into HTTP status codes."""
    try:
        yield
    except LookupError as exc:
        raise HTTPException(404, str(exc).strip("'\""))
    except ConflictError as exc:
        raise HTTPException(409, str(exc))
    except ValueError as exc:
        raise HTTPException(400, str(exc))


def _actor(admin: dict) -> int:
    return int(admin["sub"])


def _not_found(what: str):
    raise HTTPException(404, f"{what} not found")


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------
@router.get("/dashboard")
def dashboard(
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    return admin_service.dashboard_counts(session)


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------
@router.get("/games")
def list_games(
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    return catalog_service.list_games(session, active_only=False)


@router.post("/games", status_code=201)
def create_game(
    body: GameCreate,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        game = admin_service.create_game(engine, actor_id=_actor(admin), **body.model_dump())
    return catalog_service.game_dict(game)


@router.patch("/games/{game_id}")
def update_game(
    game_id: int,
    body: GameUpdate,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        game = admin_service.update_game(
            engine, game_id, actor_id=_actor(admin), **body.model_dump(exclude_unset=True),
        )
    if game is None:
        _not_found("Game")
    return catalog_service.game_dict(game)


@router.delete("/games/{game_id}")
def delete_game(
    game_id: int,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    if not admin_service.delete_game(engine, game_id, actor_id=_actor(admin)):
        _not_found("Game")
    return {"success": True}


@router.post("/upload-game", status_code=201)
async def upload_game(
    title: str = Form(..., min_length=1, max_length=200),
    description: str = Form(""),
    category_id: int | None = Form(None),
    developer: str | None = Form(None),
    instructions: str | None = Form(None),
    is_featured: bool = Form(False),
    game_file: UploadFile = File(...),
    image: UploadFile | None = File(None),
    engine=Depends(get_engine),
    chain: ImageStorageChain = Depends(get_image_chain),
    admin: dict = Depends(rate_limited_admin),
):
    """Upload an HTML5 game (single page or zip bundle) plus an optional cover."""
    with service_errors():
        stored_game = await upload_service.save_game(
            game_file.filename or "game.html", await game_file.read(),
        )
        image_url = ""
        if image is not None and image.filename:
            cover = await chain.store(
                image.filename, await image.read(), image.content_type,
            )
            image_url = cover.url
        game = await run_db(
            admin_service.create_game,
            engine,
            actor_id=_actor(admin),
            title=title,
            description=description,
            image_url=image_url,
            category_id=category_id,
            developer=developer,
            instructions=instructions,
            is_featured=is_featured,
            is_new=True,
            **stored_game,
        )
    return catalog_service.game_dict(game)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
@router.get("/categories")
def list_categories(
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    return catalog_service.list_categories(session)


@router.post("/categories", status_code=201)
def create_category(
    body: CategoryCreate,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        category = admin_service.create_category(
            engine, actor_id=_actor(admin), **body.model_dump(),
        )
    return catalog_service.category_dict(category)


@router.patch("/categories/{category_id}")
def update_category(
    category_id: int,
    body: CategoryUpdate,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        category = admin_service.update_category(
            engine, category_id, actor_id=_actor(admin), **body.model_dump(exclude_unset=True),
        )
    if category is None:
        _not_found("Category")
    return catalog_service.category_dict(category)


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: int,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        deleted = admin_service.delete_category(engine, category_id, actor_id=_actor(admin))
    if not deleted:
        _not_found("Category")
    return {"success": True}


# ---------------------------------------------------------------------------
# Website content
# ---------------------------------------------------------------------------
@router.get("/website-content")
def list_content(
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    return content_service.list_content(session)


@router.post("/website-content", status_code=201)
def create_content(
    body: ContentCreate,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        row = admin_service.create_content(engine, actor_id=_actor(admin), **body.model_dump())
    return content_service.content_dict(row)


@router.patch("/website-content/{content_id}")
def update_content(
    content_id: int,
    body: ContentUpdate,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        row = admin_service.update_content(
            engine, content_id, actor_id=_actor(admin), **body.model_dump(exclude_unset=True),
        )
    if row is None:
        _not_found("Content")
    return content_service.content_dict(row)


@router.delete("/website-content/{content_id}")
def delete_content(
    content_id: int,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    if not admin_service.delete_content(engine, content_id, actor_id=_actor(admin)):
        _not_found("Content")
    return {"success": True}


@router.put("/site-content")
def put_site_content(
    body: dict[str, dict[str, Any]],
    engine=Depends(get_engine),
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    """Replace values from a nested ``{section: {key: value}}`` document."""
    with service_errors():
        changed = admin_service.update_site_content(engine, body, actor_id=_actor(admin))
    return {"updated": changed, "content": content_service.get_site_content(session)}


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------
@router.get("/achievements")
def list_achievements(
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    rows = session.scalars(select(Achievement).order_by(Achievement.id)).all()
    return [achievement_service.achievement_dict(a) for a in rows]


@router.post("/achievements", status_code=201)
def create_achievement(
    body: AchievementCreate,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        row = admin_service.create_achievement(engine, actor_id=_actor(admin), **body.model_dump())
    return achievement_service.achievement_dict(row)


@router.patch("/achievements/{achievement_id}")
def update_achievement(
    achievement_id: int,
    body: AchievementUpdate,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        row = admin_service.update_achievement(
            engine, achievement_id, actor_id=_actor(admin),
            **body.model_dump(exclude_unset=True),
        )
    if row is None:
        _not_found("Achievement")
    return achievement_service.achievement_dict(row)


@router.delete("/achievements/{achievement_id}")
def delete_achievement(
    achievement_id: int,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    if not admin_service.delete_achievement(engine, achievement_id, actor_id=_actor(admin)):
        _not_found("Achievement")
    return {"success": True}


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------
@router.get("/rewards")
def list_rewards(
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    rows = session.scalars(select(Reward).order_by(Reward.id)).all()
    return [reward_service.reward_dict(r) for r in rows]


@router.post("/rewards", status_code=201)
def create_reward(
    body: RewardCreate,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        row = admin_service.create_reward(engine, actor_id=_actor(admin), **body.model_dump())
    return reward_service.reward_dict(row)


@router.patch("/rewards/{reward_id}")
def update_reward(
    reward_id: int,
    body: RewardUpdate,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        row = admin_service.update_reward(
            engine, reward_id, actor_id=_actor(admin), **body.model_dump(exclude_unset=True),
        )
    if row is None:
        _not_found("Reward")
    return reward_service.reward_dict(row)


@router.delete("/rewards/{reward_id}")
def delete_reward(
    reward_id: int,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    if not admin_service.delete_reward(engine, reward_id, actor_id=_actor(admin)):
        _not_found("Reward")
    return {"success": True}


# ---------------------------------------------------------------------------
# Manual awards
# ---------------------------------------------------------------------------
@router.post("/awards/points")
def award_points(
    body: PointsAward,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        points = admin_service.award_points(
            engine, actor_id=_actor(admin), user_id=body.user_id,
            amount=body.amount, reason=body.reason,
        )
    return {"user_id": body.user_id, **points}


@router.post("/awards/achievement")
def grant_achievement(
    body: AchievementGrant,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        granted = admin_service.grant_achievement(
            engine, actor_id=_actor(admin), user_id=body.user_id,
            achievement_id=body.achievement_id,
        )
    if not granted:
        raise HTTPException(409, "User already has this achievement")
    return {"success": True}


# ---------------------------------------------------------------------------
# Audit, settings, e-mail log
# ---------------------------------------------------------------------------
@router.get("/audit")
def audit_log(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    target_table: str | None = Query(None),
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    return admin_service.list_audit(
        session, limit=limit, offset=offset, target_table=target_table,
    )


@router.get("/settings")
def get_settings(
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    return settings_service.get_all_settings(engine)


@router.put("/settings")
def put_settings(
    body: list[SettingUpdate],
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    count = settings_service.bulk_upsert(
        engine, [s.model_dump(exclude_none=True) | {"value": s.value} for s in body],
        actor_id=_actor(admin),
    )
    return {"updated": count}


@router.get("/email-logs")
def email_logs(
    limit: int = Query(100, ge=1, le=500),
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    return email_service.list_email_logs(session, limit)
