"""
playinmo.services.content_service — Website Content (CMS)
===========================================================

Content is stored as flat ``(section, key) → value`` rows and served to
the frontend as a nested ``{section: {key: value}}`` document.  Built-in
defaults fill any gap and are persisted the first time they are served.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from playinmo.constants import DEFAULT_SITE_CONTENT, infer_value_type, isoformat
from playinmo.database.models import WebsiteContent

logger = logging.getLogger(__name__)


def content_dict(c: WebsiteContent) -> dict:
    return {
        "id": c.id,
        "section": c.section,
        "key": c.key,
        "value": c.value,
        "value_type": c.value_type,
        "created_at": isoformat(c.created_at),
        "updated_at": isoformat(c.updated_at),
    }


def list_content(session: Session) -> list[dict]:
    rows = session.scalars(
        select(WebsiteContent).order_by(WebsiteContent.section, WebsiteContent.key)
    )
    return [content_dict(c) for c in rows]


def list_section(session: Session, section: str) -> list[dict]:
    rows = session.scalars(
        select(WebsiteContent)
        .where(WebsiteContent.section == section)
        .order_by(WebsiteContent.key)
    )
    return [content_dict(c) for c in rows]


def get_site_content(session: Session) -> dict[str, dict[str, str]]:
    """Nested content merged over the defaults; missing defaults are saved."""
    stored: dict[str, dict[str, str]] = {}
    for row in session.scalars(select(WebsiteContent)):
        stored.setdefault(row.section, {})[row.key] = row.value

    missing = 0
    for section, values in DEFAULT_SITE_CONTENT.items():
        for key, value in values.items():
            if key in stored.get(section, {}):
                continue
            try:
                with session.begin_nested():   # SAVEPOINT
                    session.add(WebsiteContent(
                        section=section, key=key, value=value,
                        value_type=infer_value_type(value),
                    ))
                    session.flush()
            except IntegrityError:
                # A concurrent request persisted it first
                row = _find(session, section, key)
                if row is None:
                    raise
                value = row.value
            else:
                missing += 1
            stored.setdefault(section, {})[key] = value
    if missing:
        session.commit()
        logger.info("Persisted %d default content entries.", missing)
    return stored


def _find(session: Session, section: str, key: str) -> WebsiteContent | None:
    return session.scalar(
        select(WebsiteContent).where(
            WebsiteContent.section == section, WebsiteContent.key == key,
        )
    )


def upsert_site_content(
    session: Session, nested: dict[str, dict[str, str]],
) -> list[tuple[dict | None, WebsiteContent]]:
    """Upsert every leaf of *nested*.

    Returns ``(before, row)`` pairs for the rows that changed so the caller
    can audit them.  Does not commit.
    """
    changed: list[tuple[dict | None, WebsiteContent]] = []
    for section, values in nested.items():
        if not isinstance(values, dict):
            raise ValueError(f"Section {section!r} must map keys to values")
        for key, value in values.items():
            value = "" if value is None else str(value)
            value_type = infer_value_type(value)
            row = _find(session, section, key)
            if row is None:
                row = WebsiteContent(section=section, key=key, value=value, value_type=value_type)
                session.add(row)
                changed.append((None, row))
            elif row.value != value or row.value_type != value_type:
                before = content_dict(row)
                row.value = value
                row.value_type = value_type
                changed.append((before, row))
    session.flush()
    return changed
