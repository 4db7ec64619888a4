"""
playinmo.services.settings_service — Settings CRUD
====================================================

Typed read/write access to the ``settings`` table.  Values are stored as
JSON strings so a knob can hold an int, a bool or a short string.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from playinmo.database.models import AdminLog, AdminActionType, Setting

logger = logging.getLogger(__name__)


def _decode(row: Setting) -> Any:
    try:
        return json.loads(row.value_json)
    except (json.JSONDecodeError, TypeError):
        return row.value_json


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_setting_value(session: Session, key: str, default=None):
    """Read a single setting's parsed value from an existing session.

    Returns *default* when the key does not exist.
    """
    row = session.get(Setting, key)
    if row is None:
        return default
    return _decode(row)


def get_int_setting(session: Session, key: str, default: int) -> int:
    """Like :func:`get_setting_value` but coerced to ``int``."""
    value = get_setting_value(session, key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Setting %s has non-integer value %r; using %d", key, value, default)
        return default


def get_all_settings(engine) -> list[dict]:
    """Every setting, ordered by category then key, with decoded values."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Setting).order_by(Setting.category, Setting.key)
        ).all()
        return [
            {
                "key": r.key,
                "value": _decode(r),
                "category": r.category,
                "description": r.description,
            }
            for r in rows
        ]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def bulk_upsert(engine, settings: list[dict], *, actor_id: int | None = None) -> int:
    """Upsert many settings at once.

    Each dict should have at least ``key`` and ``value``.
    Optional: ``category``, ``description``.

    When *actor_id* is provided, each actual change is recorded in
    ``admin_log`` with before/after snapshots.

    Returns the number of rows touched.
    """
    count = 0
    with Session(engine) as session:
        for item in settings:
            key = item["key"]
            existing = session.get(Setting, key)

            before_snapshot: dict | None = None
            if existing is not None:
                before_snapshot = {
                    "key": existing.key,
                    "value": _decode(existing),
                    "category": existing.category,
                    "description": existing.description,
                }
                existing.value_json = json.dumps(item["value"])
                if item.get("category"):
                    existing.category = item["category"]
                if item.get("description") is not None:
                    existing.description = item["description"]
            else:
                existing = Setting(
                    key=key,
                    value_json=json.dumps(item["value"]),
                    category=item.get("category") or "general",
                    description=item.get("description"),
                )
                session.add(existing)

            after_snapshot = {
                "key": key,
                "value": item["value"],
                "category": existing.category,
                "description": existing.description,
            }
            if actor_id is not None and before_snapshot != after_snapshot:
                session.add(AdminLog(
                    actor_id=actor_id,
                    action_type=(
                        AdminActionType.UPDATE if before_snapshot else AdminActionType.CREATE
                    ).value,
                    target_table="settings",
                    target_id=key,
                    before_snapshot=before_snapshot,
                    after_snapshot=after_snapshot,
                ))

            count += 1
        session.commit()

    logger.info("Upserted %d settings (actor=%s).", count, actor_id)
    return count
