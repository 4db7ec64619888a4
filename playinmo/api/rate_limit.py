"""
playinmo.api.rate_limit — Per-Admin Mutation Rate Limiting
============================================================

CMS write endpoints are throttled to 30 mutations per minute per admin
(JWT ``sub``).  State lives in ``admin_rate_limit_events`` so limits
survive restarts and are shared by every API worker.

Exceeding the limit answers HTTP 429 with a ``Retry-After`` header.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import Session

from playinmo.api.deps import get_current_admin, get_engine
from playinmo.constants import as_utc
from playinmo.database.models import AdminRateLimitEvent

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = 30
DEFAULT_WINDOW_SECONDS = 60

_MUTATION_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class AdminRateLimiter:
    """Sliding-window limiter keyed by admin id, backed by the database."""

    def __init__(
        self,
        max_requests: int = DEFAULT_RATE_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        *,
        engine: Engine,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.engine = engine

    def _prune_and_load(self, session: Session, admin_id: str, now: datetime) -> list[datetime]:
        cutoff = now - timedelta(seconds=self.window_seconds)
        session.execute(
            delete(AdminRateLimitEvent).where(
                AdminRateLimitEvent.admin_id == admin_id,
                AdminRateLimitEvent.timestamp < cutoff,
            )
        )
        stamps = session.scalars(
            select(AdminRateLimitEvent.timestamp)
            .where(AdminRateLimitEvent.admin_id == admin_id)
            .order_by(AdminRateLimitEvent.timestamp.asc())
        ).all()
        return [as_utc(s) for s in stamps]

    def hit(self, admin_id: str) -> tuple[bool, dict[str, Any]]:
        """Count one mutation for *admin_id* if the window allows it.

        Returns (allowed, info) where info carries ``remaining``, ``reset``
        (seconds until a slot frees up) and ``limit``.  Rejected attempts
        are not recorded.
        """
        now = datetime.now(UTC)
        with Session(self.engine) as session:
            stamps = self._prune_and_load(session, admin_id, now)
            if len(stamps) >= self.max_requests:
                session.commit()
                frees_at = stamps[0] + timedelta(seconds=self.window_seconds)
                reset = max(1, int((frees_at - now).total_seconds()) + 1)
                return False, {"remaining": 0, "reset": reset, "limit": self.max_requests}

            session.add(AdminRateLimitEvent(admin_id=admin_id, timestamp=now))
            session.commit()

        return True, {
            "remaining": self.max_requests - len(stamps) - 1,
            "reset": self.window_seconds,
            "limit": self.max_requests,
        }

    def reset(self, admin_id: str | None = None) -> None:
        """Clear rate limit state. If admin_id is None, clear all."""
        stmt = delete(AdminRateLimitEvent)
        if admin_id is not None:
            stmt = stmt.where(AdminRateLimitEvent.admin_id == admin_id)
        with Session(self.engine) as session:
            session.execute(stmt)
            session.commit()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_limiter: AdminRateLimiter | None = None


def configure_rate_limiter(*, engine: Engine) -> AdminRateLimiter:
    """(Re)build the global limiter on *engine*."""
    global _limiter
    _limiter = AdminRateLimiter(
        max_requests=DEFAULT_RATE_LIMIT,
        window_seconds=DEFAULT_WINDOW_SECONDS,
        engine=engine,
    )
    return _limiter


def get_rate_limiter(engine: Engine) -> AdminRateLimiter:
    """The global limiter, rebuilt when the engine dependency changes."""
    if _limiter is None or _limiter.engine is not engine:
        return configure_rate_limiter(engine=engine)
    return _limiter


# ---------------------------------------------------------------------------
# FastAPI dependency — chains after get_current_admin
# ---------------------------------------------------------------------------
async def rate_limited_admin(
    request: Request,
    admin: dict = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    """Validate the admin JWT *and* enforce the mutation rate limit.

    GET/HEAD/OPTIONS pass straight through.  Raises HTTP 429 when the
    limit is exceeded.
    """
    if request.method not in _MUTATION_METHODS:
        return admin

    limiter = get_rate_limiter(engine)
    admin_id = str(admin["sub"])
    allowed, info = await asyncio.to_thread(limiter.hit, admin_id)

    if not allowed:
        logger.warning(
            "Rate limit exceeded for admin %s: %d requests per %ds",
            admin_id, limiter.max_requests, limiter.window_seconds,
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "rate_limit_exceeded",
                "message": f"Rate limit exceeded: {limiter.max_requests} mutations per minute.",
                "retry_after": info["reset"],
            },
            headers={"Retry-After": str(info["reset"])},
        )
    return admin
