"""
playinmo.services.ad_service — Ad Serving & Analytics
=======================================================

An ad is servable when it is active, ``now`` falls inside its optional
``start_date``/``end_date`` window, and its spend has not reached the
budget::

    spend = view_count × cost_per_view + click_count × cost_per_click

Servable ads are ordered by ``priority`` (highest first), then ``id``.
View and click counters are bumped with a single ``UPDATE … SET n = n + 1``
and every event also lands in ``ad_analytics``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import UTC, datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from playinmo.constants import AD_EVENTS, as_utc, isoformat
from playinmo.database.models import AdAnalytics, Advertisement

logger = logging.getLogger(__name__)


def ad_dict(a: Advertisement) -> dict:
    return {
        "id": a.id,
        "title": a.title,
        "description": a.description,
        "type": a.type,
        "media_url": a.media_url,
        "click_url": a.click_url,
        "placement": a.placement,
        "priority": a.priority,
        "is_active": a.is_active,
        "start_date": isoformat(a.start_date),
        "end_date": isoformat(a.end_date),
        "budget": a.budget,
        "cost_per_click": a.cost_per_click,
        "cost_per_view": a.cost_per_view,
        "view_count": a.view_count,
        "click_count": a.click_count,
        "spend": round(ad_spend(a), 2),
        "created_at": isoformat(a.created_at),
        "updated_at": isoformat(a.updated_at),
    }


def ad_spend(a: Advertisement) -> float:
    return (a.view_count or 0) * (a.cost_per_view or 0) + (a.click_count or 0) * (
        a.cost_per_click or 0
    )


def is_servable(a: Advertisement, now: datetime) -> bool:
    if not a.is_active:
        return False
    start, end = as_utc(a.start_date), as_utc(a.end_date)
    if start is not None and now < start:
        return False
    if end is not None and now > end:
        return False
    if a.budget is not None and ad_spend(a) >= a.budget:
        return False
    return True


def servable_ads(
    session: Session, placement: str | None = None, now: datetime | None = None,
) -> list[Advertisement]:
    now = now or datetime.now(UTC)
    stmt = select(Advertisement).where(Advertisement.is_active.is_(True))
    if placement:
        stmt = stmt.where(Advertisement.placement == placement)
    stmt = stmt.order_by(Advertisement.priority.desc(), Advertisement.id)
    return [a for a in session.scalars(stmt) if is_servable(a, now)]


def list_ads(session: Session) -> list[dict]:
    rows = session.scalars(
        select(Advertisement).order_by(Advertisement.created_at.desc(), Advertisement.id.desc())
    )
    return [ad_dict(a) for a in rows]


def record_event(
    session: Session,
    ad_id: int,
    event_type: str,
    *,
    user_id: int | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> Advertisement:
    """Count a view or click.

    Raises ``ValueError`` for an unknown event type and ``LookupError`` for
    an unknown ad.
    """
    if event_type not in AD_EVENTS:
        raise ValueError(f"Unknown ad event: {event_type}")
    counter = Advertisement.view_count if event_type == "view" else Advertisement.click_count
    result = session.execute(
        update(Advertisement)
        .where(Advertisement.id == ad_id)
        .values({counter: counter + 1})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise LookupError("Advertisement not found")

    session.add(AdAnalytics(
        advertisement_id=ad_id,
        event_type=event_type,
        user_id=user_id,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
    ))
    session.commit()
    ad = session.get(Advertisement, ad_id)
    session.refresh(ad)
    return ad


def ad_stats(session: Session) -> dict:
    total = session.scalar(select(func.count()).select_from(Advertisement)) or 0
    active = session.scalar(
        select(func.count()).select_from(Advertisement)
        .where(Advertisement.is_active.is_(True))
    ) or 0
    views = session.scalar(select(func.coalesce(func.sum(Advertisement.view_count), 0))) or 0
    clicks = session.scalar(select(func.coalesce(func.sum(Advertisement.click_count), 0))) or 0
    return {
        "total": total,
        "active": active,
        "totalViews": int(views),
        "totalClicks": int(clicks),
        "ctr": round(clicks / views * 100, 2) if views else 0,
    }


def ad_analytics(session: Session, ad_id: int, days: int = 30) -> dict:
    """Daily view/click counts for the last *days* days."""
    ad = session.get(Advertisement, ad_id)
    if ad is None:
        raise LookupError("Advertisement not found")
    since = datetime.now(UTC) - timedelta(days=days)
    rows = session.scalars(
        select(AdAnalytics)
        .where(AdAnalytics.advertisement_id == ad_id, AdAnalytics.created_at >= since)
        .order_by(AdAnalytics.created_at)
    ).all()

    daily: dict[str, dict[str, int]] = defaultdict(lambda: {"views": 0, "clicks": 0})
    for event in rows:
        day = as_utc(event.created_at).date().isoformat()
        daily[day]["views" if event.event_type == "view" else "clicks"] += 1

    return {
        "advertisement": ad_dict(ad),
        "days": days,
        "daily": [{"date": d, **counts} for d, counts in sorted(daily.items())],
    }
