"""
playinmo.services.reward_service — Rewards Shop
=================================================

Purchase is a single transaction: lock the buyer's balance row, check
ownership, deduct exactly ``cost``, insert the :class:`UserReward`.  The
unique ``(user_id, reward_id)`` constraint backs up the ownership check
when two purchases race.

Equipping is exclusive per reward ``type``: equipping a gold avatar frame
unequips the bronze one.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from playinmo.constants import RARITY_COLORS_HEX, isoformat
from playinmo.database.models import PortalEvent, Reward, UserReward
from playinmo.services import achievement_service, points_service
from playinmo.services.errors import ConflictError

logger = logging.getLogger(__name__)


def reward_dict(r: Reward) -> dict:
    return {
        "id": r.id,
        "name": r.name,
        "description": r.description,
        "type": r.type,
        "value": r.value or {},
        "cost": r.cost,
        "category": r.category,
        "rarity": r.rarity,
        "rarity_color": RARITY_COLORS_HEX.get(r.rarity, RARITY_COLORS_HEX["common"]),
        "is_active": r.is_active,
        "created_at": isoformat(r.created_at),
    }


def user_reward_dict(ur: UserReward, reward: Reward) -> dict:
    return {
        "id": ur.id,
        "reward_id": ur.reward_id,
        "unlocked_at": isoformat(ur.unlocked_at),
        "is_equipped": ur.is_equipped,
        "reward": reward_dict(reward),
    }


def list_rewards(session: Session) -> list[dict]:
    rows = session.scalars(
        select(Reward).where(Reward.is_active.is_(True)).order_by(Reward.cost, Reward.name)
    )
    return [reward_dict(r) for r in rows]


def list_user_rewards(session: Session, user_id: int) -> list[dict]:
    rows = session.execute(
        select(UserReward, Reward)
        .join(Reward, UserReward.reward_id == Reward.id)
        .where(UserReward.user_id == user_id)
        .order_by(UserReward.unlocked_at.desc(), UserReward.id.desc())
    ).all()
    return [user_reward_dict(ur, r) for ur, r in rows]


def _owned(session: Session, user_id: int, reward_id: int) -> UserReward | None:
    return session.scalar(
        select(UserReward).where(
            UserReward.user_id == user_id, UserReward.reward_id == reward_id,
        )
    )


def purchase_reward(session: Session, user_id: int, reward_id: int) -> dict:
    """Buy *reward_id* for *user_id*.

    Raises
    ------
    LookupError
        Unknown or inactive reward.
    ConflictError
        Already owned.
    ValueError
        Insufficient points.
    """
    reward = session.get(Reward, reward_id)
    if reward is None or not reward.is_active:
        raise LookupError("Reward not found")

    # Lock the balance first so concurrent purchases by the same user serialize
    points_service.get_or_create_points(session, user_id, lock=True)
    if _owned(session, user_id, reward_id) is not None:
        raise ConflictError("Reward already owned")

    points = points_service.spend_points(
        session, user_id, reward.cost, f"Purchased {reward.name}",
        reference_id=reward.id,
    )
    owned = UserReward(user_id=user_id, reward_id=reward_id, is_equipped=False)
    session.add(owned)
    try:
        session.flush()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("Reward already owned") from exc

    achievement_service.evaluate_user(session, user_id, PortalEvent.REWARD_PURCHASED)
    session.commit()
    logger.info("User %d purchased reward %r for %d", user_id, reward.name, reward.cost)
    return {
        **user_reward_dict(owned, reward),
        "points": points_service.points_dict(points),
    }


def equip_reward(session: Session, user_id: int, reward_id: int) -> dict:
    """Equip an owned reward, unequipping others of the same type."""
    owned = _owned(session, user_id, reward_id)
    if owned is None:
        raise LookupError("Reward not owned")
    reward = session.get(Reward, reward_id)

    same_type = select(Reward.id).where(Reward.type == reward.type)
    session.execute(
        update(UserReward)
        .where(
            UserReward.user_id == user_id,
            UserReward.reward_id.in_(same_type),
            UserReward.id != owned.id,
        )
        .values(is_equipped=False)
        .execution_options(synchronize_session=False)
    )
    owned.is_equipped = True
    session.commit()
    return user_reward_dict(owned, reward)


def unequip_reward(session: Session, user_id: int, reward_id: int) -> dict:
    owned = _owned(session, user_id, reward_id)
    if owned is None:
        raise LookupError("Reward not owned")
    owned.is_equipped = False
    session.commit()
    return user_reward_dict(owned, session.get(Reward, reward_id))
