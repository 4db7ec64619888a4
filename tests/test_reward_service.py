"""
tests/test_reward_service.py — Points ledger and rewards shop
===============================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from conftest import make_reward, make_user
from playinmo.database.models import PointsSource, PointsTransaction, UserReward
from playinmo.services import points_service, reward_service
from playinmo.services.errors import ConflictError


def _fund(session, user_id: int, amount: int) -> None:
    points_service.award_points(session, user_id, amount, "test funding", PointsSource.ADMIN)
    session.commit()


class TestPointsLedger:
    def test_award_raises_all_counters(self, db_session):
        user = make_user(db_session)
        _fund(db_session, user.id, 40)
        assert points_service.get_user_points(db_session, user.id) == {
            "total_points": 40, "available_points": 40, "lifetime_points": 40,
        }

    def test_negative_award_clamps_and_keeps_lifetime(self, db_session):
        user = make_user(db_session)
        _fund(db_session, user.id, 30)
        points_service.award_points(db_session, user.id, -50, "correction", PointsSource.ADMIN)
        db_session.commit()
        pts = points_service.get_user_points(db_session, user.id)
        assert pts["total_points"] == 0
        assert pts["available_points"] == 0
        assert pts["lifetime_points"] == 30

    def test_zero_award_writes_no_transaction(self, db_session):
        user = make_user(db_session)
        points_service.award_points(db_session, user.id, 0, "nothing", PointsSource.ADMIN)
        db_session.commit()
        assert points_service.get_history(db_session, user.id) == []

    def test_spend_lowers_only_available(self, db_session):
        user = make_user(db_session)
        _fund(db_session, user.id, 100)
        points_service.spend_points(db_session, user.id, 60, "shop")
        db_session.commit()
        pts = points_service.get_user_points(db_session, user.id)
        assert pts == {"total_points": 100, "available_points": 40, "lifetime_points": 100}

    def test_spend_more_than_balance_raises(self, db_session):
        user = make_user(db_session)
        _fund(db_session, user.id, 10)
        with pytest.raises(ValueError, match="Insufficient"):
            points_service.spend_points(db_session, user.id, 11, "shop")

    def test_history_records_balance_after(self, db_session):
        user = make_user(db_session)
        _fund(db_session, user.id, 20)
        points_service.spend_points(db_session, user.id, 5, "shop")
        db_session.commit()
        history = points_service.get_history(db_session, user.id)
        assert [h["delta"] for h in history] == [-5, 20]
        assert [h["balance_after"] for h in history] == [15, 20]

    def test_unknown_user_has_zero_points(self, db_session):
        assert points_service.get_user_points(db_session, 424242) == {
            "total_points": 0, "available_points": 0, "lifetime_points": 0,
        }


class TestPurchase:
    def test_purchase_deducts_exact_cost(self, db_session):
        user = make_user(db_session)
        reward = make_reward(db_session, cost=75)
        _fund(db_session, user.id, 100)

        result = reward_service.purchase_reward(db_session, user.id, reward.id)
        assert result["reward"]["name"] == "Bronze Frame"
        assert result["points"]["available_points"] == 25
        assert result["is_equipped"] is False

        owned = reward_service.list_user_rewards(db_session, user.id)
        assert [o["reward_id"] for o in owned] == [reward.id]

    def test_purchase_writes_ledger_entry(self, db_session):
        user = make_user(db_session)
        reward = make_reward(db_session, cost=30)
        _fund(db_session, user.id, 30)
        reward_service.purchase_reward(db_session, user.id, reward.id)

        tx = db_session.scalar(
            select(PointsTransaction).where(PointsTransaction.source == "purchase")
        )
        assert tx.delta == -30
        assert tx.reference_id == reward.id
        assert tx.balance_after == 0

    def test_insufficient_points(self, db_session):
        user = make_user(db_session)
        reward = make_reward(db_session, cost=500)
        _fund(db_session, user.id, 100)
        with pytest.raises(ValueError, match="Insufficient"):
            reward_service.purchase_reward(db_session, user.id, reward.id)
        db_session.rollback()
        assert reward_service.list_user_rewards(db_session, user.id) == []
        assert points_service.get_user_points(db_session, user.id)["available_points"] == 100

    def test_double_purchase_conflicts(self, db_session):
        user = make_user(db_session)
        reward = make_reward(db_session, cost=10)
        _fund(db_session, user.id, 100)
        reward_service.purchase_reward(db_session, user.id, reward.id)

        with pytest.raises(ConflictError):
            reward_service.purchase_reward(db_session, user.id, reward.id)
        db_session.rollback()
        assert points_service.get_user_points(db_session, user.id)["available_points"] == 90
        count = db_session.scalar(select(func.count()).select_from(UserReward))
        assert count == 1

    def test_unknown_or_inactive_reward(self, db_session):
        user = make_user(db_session)
        hidden = make_reward(db_session, name="Retired", is_active=False)
        with pytest.raises(LookupError):
            reward_service.purchase_reward(db_session, user.id, 999)
        with pytest.raises(LookupError):
            reward_service.purchase_reward(db_session, user.id, hidden.id)

    def test_free_reward_with_empty_wallet(self, db_session):
        user = make_user(db_session)
        reward = make_reward(db_session, name="Starter Badge", cost=0, type="badge")
        result = reward_service.purchase_reward(db_session, user.id, reward.id)
        assert result["points"]["available_points"] == 0


class TestEquip:
    def test_equip_is_exclusive_per_type(self, db_session):
        user = make_user(db_session)
        bronze = make_reward(db_session, name="Bronze Frame", cost=0)
        gold = make_reward(db_session, name="Gold Frame", cost=0)
        badge = make_reward(db_session, name="Badge", cost=0, type="badge")
        for r in (bronze, gold, badge):
            reward_service.purchase_reward(db_session, user.id, r.id)

        reward_service.equip_reward(db_session, user.id, bronze.id)
        reward_service.equip_reward(db_session, user.id, badge.id)
        reward_service.equip_reward(db_session, user.id, gold.id)

        equipped = {
            o["reward"]["name"]
            for o in reward_service.list_user_rewards(db_session, user.id)
            if o["is_equipped"]
        }
        assert equipped == {"Gold Frame", "Badge"}

    def test_unequip(self, db_session):
        user = make_user(db_session)
        reward = make_reward(db_session, cost=0)
        reward_service.purchase_reward(db_session, user.id, reward.id)
        reward_service.equip_reward(db_session, user.id, reward.id)
        result = reward_service.unequip_reward(db_session, user.id, reward.id)
        assert result["is_equipped"] is False

    def test_equip_unowned_reward(self, db_session):
        user = make_user(db_session)
        reward = make_reward(db_session, cost=0)
        with pytest.raises(LookupError):
            reward_service.equip_reward(db_session, user.id, reward.id)
