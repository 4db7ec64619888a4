"""
playinmo.services.points_service — Points Ledger
==================================================

Every balance change goes through :func:`award_points` or
:func:`spend_points`.  Both operate inside the caller's session (the caller
commits) and append a :class:`PointsTransaction` carrying the resulting
spendable balance.

Counters on ``user_points``:

* ``available_points`` — spendable balance.
* ``total_points`` — net earned (admin deductions lower it, purchases don't).
* ``lifetime_points`` — everything ever earned; never decreases.

Spending locks the balance row (``SELECT … FOR UPDATE``) so two concurrent
purchases cannot both read the same balance.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from playinmo.constants import isoformat
from playinmo.database.models import PointsSource, PointsTransaction, UserPoints

logger = logging.getLogger(__name__)


def get_points_row(session: Session, user_id: int, *, lock: bool = False) -> UserPoints | None:
    stmt = select(UserPoints).where(UserPoints.user_id == user_id)
    if lock:
        stmt = stmt.with_for_update()
    return session.scalar(stmt)


def get_or_create_points(session: Session, user_id: int, *, lock: bool = False) -> UserPoints:
    """Fetch (optionally row-locked) or insert the user's points row."""
    row = get_points_row(session, user_id, lock=lock)
    if row is not None:
        return row
    try:
        with session.begin_nested():   # SAVEPOINT
            row = UserPoints(
                user_id=user_id, total_points=0, available_points=0, lifetime_points=0,
            )
            session.add(row)
            session.flush()
    except IntegrityError:
        # A concurrent request created it first
        row = get_points_row(session, user_id, lock=lock)
        if row is None:
            raise
    return row


def award_points(
    session: Session,
    user_id: int,
    amount: int,
    reason: str,
    source: PointsSource | str,
    *,
    reference_id: int | None = None,
) -> UserPoints:
    """Add (or, for admin adjustments, subtract) points.

    Positive amounts raise all three counters.  Negative amounts lower
    ``total_points`` and ``available_points`` (clamped at zero) and leave
    ``lifetime_points`` untouched.  Zero is a no-op.
    """
    row = get_or_create_points(session, user_id, lock=True)
    if amount == 0:
        return row

    if amount > 0:
        row.total_points += amount
        row.available_points += amount
        row.lifetime_points += amount
    else:
        row.total_points = max(0, row.total_points + amount)
        row.available_points = max(0, row.available_points + amount)

    session.add(PointsTransaction(
        user_id=user_id,
        delta=amount,
        reason=reason,
        source=str(source),
        reference_id=reference_id,
        balance_after=row.available_points,
    ))
    session.flush()
    logger.debug("Points %+d for user %d (%s)", amount, user_id, reason)
    return row


def spend_points(
    session: Session,
    user_id: int,
    amount: int,
    reason: str,
    *,
    source: PointsSource | str = PointsSource.PURCHASE,
    reference_id: int | None = None,
) -> UserPoints:
    """Deduct *amount* from the spendable balance.

    Raises
    ------
    ValueError
        If *amount* is negative or the balance is insufficient.
    """
    if amount < 0:
        raise ValueError("Amount must be non-negative")
    row = get_or_create_points(session, user_id, lock=True)
    if row.available_points < amount:
        raise ValueError("Insufficient points")

    row.available_points -= amount
    session.add(PointsTransaction(
        user_id=user_id,
        delta=-amount,
        reason=reason,
        source=str(source),
        reference_id=reference_id,
        balance_after=row.available_points,
    ))
    session.flush()
    return row


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def points_dict(row: UserPoints | None) -> dict:
    if row is None:
        return {"total_points": 0, "available_points": 0, "lifetime_points": 0}
    return {
        "total_points": row.total_points,
        "available_points": row.available_points,
        "lifetime_points": row.lifetime_points,
    }


def get_user_points(session: Session, user_id: int) -> dict:
    return points_dict(get_points_row(session, user_id))


def get_history(session: Session, user_id: int, limit: int = 50) -> list[dict]:
    rows = session.scalars(
        select(PointsTransaction)
        .where(PointsTransaction.user_id == user_id)
        .order_by(PointsTransaction.created_at.desc(), PointsTransaction.id.desc())
        .limit(limit)
    ).all()
    return [
        {
            "id": t.id,
            "delta": t.delta,
            "reason": t.reason,
            "source": t.source,
            "reference_id": t.reference_id,
            "balance_after": t.balance_after,
            "created_at": isoformat(t.created_at),
        }
        for t in rows
    ]
