"""
playinmo.api.routes.economy — Achievements, points & rewards shop
===================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from playinmo.api.deps import get_current_user, get_session
from playinmo.database.models import User
from playinmo.services import achievement_service, points_service, reward_service
from playinmo.services.errors import ConflictError

router = APIRouter(tags=["economy"])


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------
@router.get("/achievements")
def list_achievements(session: Session = Depends(get_session)):
    return achievement_service.list_achievements(session)


@router.get("/user/achievements")
def my_achievements(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return achievement_service.list_user_achievements(session, user.id)


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------
@router.get("/user/points")
def my_points(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return points_service.get_user_points(session, user.id)


@router.get("/user/points/history")
def my_points_history(
    limit: int = Query(50, ge=1, le=500),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return points_service.get_history(session, user.id, limit)


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------
@router.get("/rewards")
def list_rewards(session: Session = Depends(get_session)):
    return reward_service.list_rewards(session)


@router.get("/user/rewards")
def my_rewards(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return reward_service.list_user_rewards(session, user.id)


@router.post("/user/rewards/{reward_id}/purchase", status_code=201)
def purchase_reward(
    reward_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    try:
        return reward_service.purchase_reward(session, user.id, reward_id)
    except LookupError as exc:
        raise HTTPException(404, str(exc))
    except ConflictError as exc:
        raise HTTPException(409, str(exc))
    except ValueError as exc:
        raise HTTPException(400, str(exc))


@router.patch("/user/rewards/{reward_id}/equip")
def equip_reward(
    reward_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    try:
        return reward_service.equip_reward(session, user.id, reward_id)
    except LookupError as exc:
        raise HTTPException(404, str(exc))


@router.patch("/user/rewards/{reward_id}/unequip")
def unequip_reward(
    reward_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    try:
        return reward_service.unequip_reward(session, user.id, reward_id)
    except LookupError as exc:
        raise HTTPException(404, str(exc))
