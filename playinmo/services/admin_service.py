"""
playinmo.services.admin_service — Admin Mutation Service Layer
================================================================

Every CMS write follows the same pattern:
  1. Begin transaction
  2. Read "before" snapshot
  3. Apply change
  4. Write admin_log with before/after JSON
  5. Commit

Uniqueness collisions (duplicate category slug, reward name, content
key, …) surface as :class:`~playinmo.services.errors.ConflictError`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from playinmo.constants import (
    AD_PLACEMENTS,
    AD_TYPES,
    CONTENT_VALUE_TYPES,
    RARITIES,
    as_utc,
    isoformat,
    slugify,
)
from playinmo.database.models import (
    Achievement,
    AdminActionType,
    AdminLog,
    Advertisement,
    Game,
    GameCategory,
    GameReview,
    GameScore,
    MediaFile,
    PointsSource,
    PortalEvent,
    Reward,
    TriggerType,
    User,
    WebsiteContent,
)
from playinmo.engine.achievements import VALID_STAT_FIELDS
from playinmo.services import (
    achievement_service,
    catalog_service,
    content_service,
    points_service,
)
from playinmo.services.errors import ConflictError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generic audit helpers
# ---------------------------------------------------------------------------

def _row_to_dict(obj: Any) -> dict | None:
    """Convert a SQLAlchemy model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        val = getattr(obj, col.key, None)
        if isinstance(val, datetime):
            val = isoformat(val)
        result[col.name] = val
    return result


def _log_admin_action(
    session: Session,
    *,
    actor_id: int,
    action_type: AdminActionType,
    target_table: str,
    target_id: str | None,
    before: dict | None,
    after: dict | None,
    ip_address: str | None = None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the current transaction."""
    session.add(AdminLog(
        actor_id=actor_id,
        action_type=action_type.value,
        target_table=target_table,
        target_id=target_id,
        before_snapshot=before,
        after_snapshot=after,
        ip_address=ip_address,
        reason=reason,
    ))


def _flush_or_conflict(session: Session, table_name: str) -> None:
    try:
        session.flush()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError(f"Duplicate entry in {table_name}") from exc


def _audited_create(
    engine,
    row: Any,
    *,
    table_name: str,
    actor_id: int,
    ip_address: str | None = None,
) -> Any:
    """Generic audited CREATE: add -> flush -> log -> commit -> return."""
    with Session(engine, expire_on_commit=False) as session:
        session.add(row)
        _flush_or_conflict(session, table_name)
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.CREATE,
            target_table=table_name,
            target_id=str(row.id),
            before=None,
            after=_row_to_dict(row),
            ip_address=ip_address,
        )
        session.commit()
        session.refresh(row)
        session.expunge(row)
        return row


def _audited_update(
    engine,
    model_cls: type,
    pk: int,
    *,
    table_name: str,
    actor_id: int,
    frozen_keys: tuple[str, ...] = ("id", "created_at"),
    ip_address: str | None = None,
    **kwargs: Any,
) -> Any | None:
    """Generic audited UPDATE: get -> before -> apply kwargs -> log -> commit.

    Returns the updated (expunged) object, or ``None`` if not found.
    """
    with Session(engine, expire_on_commit=False) as session:
        obj = session.get(model_cls, pk)
        if obj is None:
            return None
        before = _row_to_dict(obj)
        for key, value in kwargs.items():
            if hasattr(obj, key) and key not in frozen_keys:
                setattr(obj, key, value)
        _flush_or_conflict(session, table_name)
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.UPDATE,
            target_table=table_name,
            target_id=str(obj.id),
            before=before,
            after=_row_to_dict(obj),
            ip_address=ip_address,
        )
        session.commit()
        session.refresh(obj)
        session.expunge(obj)
        return obj


def _audited_delete(
    engine,
    model_cls: type,
    pk: int,
    *,
    table_name: str,
    actor_id: int,
    ip_address: str | None = None,
) -> bool:
    """Generic audited DELETE: get -> log -> delete -> commit.

    Returns ``True`` if the row existed and was deleted.
    """
    with Session(engine) as session:
        obj = session.get(model_cls, pk)
        if obj is None:
            return False
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.DELETE,
            target_table=table_name,
            target_id=str(obj.id),
            before=_row_to_dict(obj),
            after=None,
            ip_address=ip_address,
        )
        session.delete(obj)
        session.commit()
        return True


def _require_choice(field: str, value: str | None, choices: tuple[str, ...] | set[str]) -> None:
    if value is not None and value not in choices:
        raise ValueError(f"Invalid {field} {value!r}; expected one of {sorted(choices)}")


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------

def _check_category(engine, category_id: int | None) -> None:
    if category_id is None:
        return
    with Session(engine) as session:
        if session.get(GameCategory, category_id) is None:
            raise LookupError("Category not found")


def create_game(engine, *, actor_id: int, **fields: Any) -> Game:
    _check_category(engine, fields.get("category_id"))
    return _audited_create(engine, Game(**fields), table_name="games", actor_id=actor_id)


def update_game(engine, game_id: int, *, actor_id: int, **fields: Any) -> Game | None:
    if "category_id" in fields:
        _check_category(engine, fields["category_id"])
    return _audited_update(
        engine, Game, game_id, table_name="games", actor_id=actor_id,
        frozen_keys=("id", "created_at", "plays"), **fields,
    )


def delete_game(engine, game_id: int, *, actor_id: int) -> bool:
    return _audited_delete(engine, Game, game_id, table_name="games", actor_id=actor_id)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def create_category(
    engine,
    *,
    actor_id: int,
    name: str,
    slug: str | None = None,
    description: str | None = None,
    image_url: str | None = None,
) -> GameCategory:
    slug = slugify(slug or name)
    if not slug:
        raise ValueError("Category name must contain letters or digits")
    row = GameCategory(name=name.strip(), slug=slug, description=description, image_url=image_url)
    return _audited_create(engine, row, table_name="game_categories", actor_id=actor_id)


def update_category(engine, category_id: int, *, actor_id: int, **fields: Any) -> GameCategory | None:
    if fields.get("slug"):
        fields["slug"] = slugify(fields["slug"])
    return _audited_update(
        engine, GameCategory, category_id, table_name="game_categories",
        actor_id=actor_id, **fields,
    )


def delete_category(engine, category_id: int, *, actor_id: int) -> bool:
    """Delete a category that no game references.

    Raises :class:`ConflictError` while games still point at it.
    """
    with Session(engine) as session:
        in_use = catalog_service.count_games_in_category(session, category_id)
    if in_use:
        raise ConflictError(f"Category is used by {in_use} game(s)")
    return _audited_delete(
        engine, GameCategory, category_id, table_name="game_categories", actor_id=actor_id,
    )


# ---------------------------------------------------------------------------
# Website content
# ---------------------------------------------------------------------------

def create_content(
    engine, *, actor_id: int, section: str, key: str, value: str, value_type: str = "text",
) -> WebsiteContent:
    _require_choice("value_type", value_type, CONTENT_VALUE_TYPES)
    row = WebsiteContent(section=section, key=key, value=value, value_type=value_type)
    return _audited_create(engine, row, table_name="website_content", actor_id=actor_id)


def update_content(engine, content_id: int, *, actor_id: int, **fields: Any) -> WebsiteContent | None:
    _require_choice("value_type", fields.get("value_type"), CONTENT_VALUE_TYPES)
    return _audited_update(
        engine, WebsiteContent, content_id, table_name="website_content",
        actor_id=actor_id, **fields,
    )


def delete_content(engine, content_id: int, *, actor_id: int) -> bool:
    return _audited_delete(
        engine, WebsiteContent, content_id, table_name="website_content", actor_id=actor_id,
    )


def update_site_content(engine, nested: dict, *, actor_id: int) -> int:
    """Upsert a nested ``{section: {key: value}}`` document; returns rows changed."""
    with Session(engine) as session:
        changed = content_service.upsert_site_content(session, nested)
        for before, row in changed:
            _log_admin_action(
                session,
                actor_id=actor_id,
                action_type=AdminActionType.UPDATE if before else AdminActionType.CREATE,
                target_table="website_content",
                target_id=f"{row.section}.{row.key}",
                before=before,
                after=_row_to_dict(row),
            )
        session.commit()
    return len(changed)


# ---------------------------------------------------------------------------
# Advertisements
# ---------------------------------------------------------------------------

def _validate_ad(fields: dict) -> None:
    _require_choice("type", fields.get("type"), AD_TYPES)
    _require_choice("placement", fields.get("placement"), AD_PLACEMENTS)
    for money in ("budget", "cost_per_click", "cost_per_view"):
        if fields.get(money) is not None and fields[money] < 0:
            raise ValueError(f"{money} must be non-negative")
    start, end = fields.get("start_date"), fields.get("end_date")
    if start and end and as_utc(end) < as_utc(start):
        raise ValueError("end_date must not be before start_date")


def create_ad(engine, *, actor_id: int, **fields: Any) -> Advertisement:
    _validate_ad(fields)
    return _audited_create(
        engine, Advertisement(**fields), table_name="advertisements", actor_id=actor_id,
    )


def update_ad(engine, ad_id: int, *, actor_id: int, **fields: Any) -> Advertisement | None:
    _validate_ad(fields)
    return _audited_update(
        engine, Advertisement, ad_id, table_name="advertisements", actor_id=actor_id,
        frozen_keys=("id", "created_at", "view_count", "click_count"), **fields,
    )


def delete_ad(engine, ad_id: int, *, actor_id: int) -> bool:
    return _audited_delete(engine, Advertisement, ad_id, table_name="advertisements",
                           actor_id=actor_id)


# ---------------------------------------------------------------------------
# Achievements & rewards
# ---------------------------------------------------------------------------

def _require_int(trigger: str, condition: dict, key: str, *, required: bool = True) -> None:
    value = condition.get(key)
    if value is None and not required:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{trigger} condition needs an integer {key!r}")
    if value < 0:
        raise ValueError(f"{trigger} condition {key!r} must be non-negative")


def _validate_condition(trigger_type: str, condition: dict) -> None:
    """Reject conditions the evaluator could not measure."""
    if trigger_type == TriggerType.STAT_THRESHOLD:
        if not isinstance(condition.get("field"), str):
            raise ValueError("stat_threshold condition needs a 'field'")
        _require_choice("condition field", condition["field"], VALID_STAT_FIELDS)
        _require_int(trigger_type, condition, "value")
    elif trigger_type == TriggerType.SCORE_THRESHOLD:
        _require_int(trigger_type, condition, "value")
        _require_int(trigger_type, condition, "game_id", required=False)
    elif trigger_type == TriggerType.POINTS_MILESTONE:
        _require_int(trigger_type, condition, "value")
    elif trigger_type == TriggerType.FIRST_EVENT:
        if not isinstance(condition.get("event"), str):
            raise ValueError("first_event condition needs an 'event'")
        _require_choice("condition event", condition["event"], {e.value for e in PortalEvent})


def _validate_achievement(fields: dict, existing: Achievement | None = None) -> None:
    _require_choice("trigger_type", fields.get("trigger_type"), {t.value for t in TriggerType})
    _require_choice("rarity", fields.get("rarity"), RARITIES)
    if fields.get("points") is not None and fields["points"] < 0:
        raise ValueError("points must be non-negative")
    if "trigger_type" not in fields and "condition" not in fields:
        return
    trigger_type = fields.get("trigger_type") or (
        existing.trigger_type if existing is not None else TriggerType.MANUAL
    )
    condition = fields.get("condition")
    if condition is None:
        condition = (existing.condition if existing is not None else None) or {}
    _validate_condition(trigger_type, condition)


def create_achievement(engine, *, actor_id: int, **fields: Any) -> Achievement:
    _validate_achievement(fields)
    return _audited_create(engine, Achievement(**fields), table_name="achievements",
                           actor_id=actor_id)


def update_achievement(engine, achievement_id: int, *, actor_id: int, **fields: Any):
    with Session(engine) as session:
        existing = session.get(Achievement, achievement_id)
    _validate_achievement(fields, existing)
    return _audited_update(engine, Achievement, achievement_id, table_name="achievements",
                           actor_id=actor_id, **fields)


def delete_achievement(engine, achievement_id: int, *, actor_id: int) -> bool:
    return _audited_delete(engine, Achievement, achievement_id, table_name="achievements",
                           actor_id=actor_id)


def _validate_reward(fields: dict) -> None:
    _require_choice("rarity", fields.get("rarity"), RARITIES)
    if fields.get("cost") is not None and fields["cost"] < 0:
        raise ValueError("cost must be non-negative")


def create_reward(engine, *, actor_id: int, **fields: Any) -> Reward:
    _validate_reward(fields)
    return _audited_create(engine, Reward(**fields), table_name="rewards", actor_id=actor_id)


def update_reward(engine, reward_id: int, *, actor_id: int, **fields: Any) -> Reward | None:
    _validate_reward(fields)
    return _audited_update(engine, Reward, reward_id, table_name="rewards",
                           actor_id=actor_id, **fields)


def delete_reward(engine, reward_id: int, *, actor_id: int) -> bool:
    return _audited_delete(engine, Reward, reward_id, table_name="rewards", actor_id=actor_id)


# ---------------------------------------------------------------------------
# Manual awards
# ---------------------------------------------------------------------------

def award_points(
    engine, *, actor_id: int, user_id: int, amount: int, reason: str,
) -> dict:
    """Grant (or, with a negative amount, deduct) points by hand."""
    if amount == 0:
        raise ValueError("amount must be non-zero")
    with Session(engine) as session:
        if session.get(User, user_id) is None:
            raise LookupError("User not found")
        before = points_service.get_user_points(session, user_id)
        row = points_service.award_points(
            session, user_id, amount, reason or "Manual award", PointsSource.ADMIN,
        )
        after = points_service.points_dict(row)
        _log_admin_action(
            session,
            actor_id=actor_id,
            action_type=AdminActionType.MANUAL_AWARD,
            target_table="user_points",
            target_id=str(user_id),
            before=before,
            after=after,
            reason=reason,
        )
        if amount > 0:
            achievement_service.evaluate_user(session, user_id)
            after = points_service.get_user_points(session, user_id)
        session.commit()
    logger.info("Admin %d awarded %+d points to user %d", actor_id, amount, user_id)
    return after


def grant_achievement(engine, *, actor_id: int, user_id: int, achievement_id: int) -> bool:
    """Complete an achievement by hand.  ``False`` if already completed."""
    with Session(engine) as session:
        if session.get(User, user_id) is None:
            raise LookupError("User not found")
        achievement = session.get(Achievement, achievement_id)
        if achievement is None:
            raise LookupError("Achievement not found")
        granted = achievement_service.complete_achievement(
            session, user_id, achievement, granted_by=actor_id,
        )
        if granted:
            _log_admin_action(
                session,
                actor_id=actor_id,
                action_type=AdminActionType.MANUAL_AWARD,
                target_table="user_achievements",
                target_id=f"{user_id}:{achievement_id}",
                before=None,
                after={"user_id": user_id, "achievement_id": achievement_id},
            )
        session.commit()
    return granted


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------

def record_media(
    engine, *, actor_id: int, original_name: str, url: str, backend: str,
    content_type: str | None, size_bytes: int,
) -> MediaFile:
    row = MediaFile(
        original_name=original_name,
        url=url,
        backend=backend,
        content_type=content_type,
        size_bytes=size_bytes,
        uploaded_by=actor_id,
    )
    return _audited_create(engine, row, table_name="media_files", actor_id=actor_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def dashboard_counts(session: Session) -> dict[str, int]:
    def count(model) -> int:
        return session.scalar(select(func.count()).select_from(model)) or 0

    return {
        "games": count(Game),
        "categories": count(GameCategory),
        "users": count(User),
        "reviews": count(GameReview),
        "scores": count(GameScore),
        "advertisements": count(Advertisement),
        "content": count(WebsiteContent),
    }


def list_audit(
    session: Session, *, limit: int = 50, offset: int = 0, target_table: str | None = None,
) -> dict:
    stmt = select(AdminLog)
    count_stmt = select(func.count()).select_from(AdminLog)
    if target_table:
        stmt = stmt.where(AdminLog.target_table == target_table)
        count_stmt = count_stmt.where(AdminLog.target_table == target_table)
    rows = session.scalars(
        stmt.order_by(desc(AdminLog.timestamp), desc(AdminLog.id)).offset(offset).limit(limit)
    ).all()
    return {
        "total": session.scalar(count_stmt) or 0,
        "entries": [
            {
                "id": r.id,
                "actor_id": r.actor_id,
                "action_type": r.action_type,
                "target_table": r.target_table,
                "target_id": r.target_id,
                "before": r.before_snapshot,
                "after": r.after_snapshot,
                "reason": r.reason,
                "timestamp": isoformat(r.timestamp),
            }
            for r in rows
        ],
    }
