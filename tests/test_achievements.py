"""
tests/test_achievements.py — Unit Tests for the Achievement Check Pipeline
===========================================================================

Covers the pure trigger handlers in :mod:`playinmo.engine.achievements`
and the database-backed evaluation in the achievement service.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from conftest import make_game, make_user
from playinmo.database.models import (
    Achievement,
    GameScore,
    PortalEvent,
    TriggerType,
    UserAchievement,
)
from playinmo.engine.achievements import AchievementContext, check_achievements
from playinmo.services import achievement_service, points_service


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _ach(id: int, trigger_type: str, condition: dict | None = None) -> MagicMock:
    a = MagicMock()
    a.id = id
    a.name = f"achievement_{id}"
    a.trigger_type = trigger_type
    a.condition = condition or {}
    return a


@pytest.fixture
def catalog():
    return [
        _ach(1, TriggerType.STAT_THRESHOLD, {"field": "scores_submitted", "value": 10}),
        _ach(2, TriggerType.SCORE_THRESHOLD, {"value": 1000}),
        _ach(3, TriggerType.SCORE_THRESHOLD, {"value": 500, "game_id": 7}),
        _ach(4, TriggerType.POINTS_MILESTONE, {"value": 100}),
        _ach(5, TriggerType.FIRST_EVENT, {"event": "review_written"}),
        _ach(6, TriggerType.MANUAL),
    ]


# ---------------------------------------------------------------------------
# Tests — Individual trigger types
# ---------------------------------------------------------------------------
class TestTriggerTypes:
    def test_stat_threshold_earned(self, catalog):
        ctx = AchievementContext(stats={"scores_submitted": 10})
        assert 1 in check_achievements(catalog, ctx, set()).newly_completed

    def test_stat_threshold_reports_progress(self, catalog):
        ctx = AchievementContext(stats={"scores_submitted": 7})
        result = check_achievements(catalog, ctx, set())
        assert 1 not in result.newly_completed
        assert result.progress[1] == {"current": 7, "target": 10}

    def test_unknown_stat_field_never_fires(self):
        bogus = [_ach(1, TriggerType.STAT_THRESHOLD, {"field": "logins", "value": 1})]
        ctx = AchievementContext(stats={"logins": 50})
        result = check_achievements(bogus, ctx, set())
        assert result.newly_completed == []
        assert result.progress == {}

    def test_score_threshold_uses_best_score_anywhere(self, catalog):
        ctx = AchievementContext(best_scores={1: 200, 2: 1500})
        assert 2 in check_achievements(catalog, ctx, set()).newly_completed

    def test_score_threshold_scoped_to_game(self, catalog):
        ctx = AchievementContext(best_scores={1: 900, 7: 400})
        result = check_achievements(catalog, ctx, set())
        assert 3 not in result.newly_completed
        assert result.progress[3] == {"current": 400, "target": 500}

    def test_points_milestone_uses_lifetime_points(self, catalog):
        ctx = AchievementContext(lifetime_points=100)
        assert 4 in check_achievements(catalog, ctx, set()).newly_completed

    def test_first_event(self, catalog):
        ctx = AchievementContext(stats={"reviews_written": 1})
        assert 5 in check_achievements(catalog, ctx, set()).newly_completed

    def test_first_event_zero(self, catalog):
        result = check_achievements(catalog, AchievementContext(), set())
        assert 5 not in result.newly_completed
        assert 5 not in result.progress

    def test_manual_never_auto_triggered(self, catalog):
        ctx = AchievementContext(
            lifetime_points=10**6,
            stats={"scores_submitted": 10**6, "reviews_written": 10**6},
            best_scores={7: 10**6},
        )
        assert 6 not in check_achievements(catalog, ctx, set()).newly_completed

    def test_already_completed_skipped(self, catalog):
        ctx = AchievementContext(lifetime_points=500, stats={"scores_submitted": 50})
        result = check_achievements(catalog, ctx, {1, 4})
        assert 1 not in result.newly_completed
        assert 4 not in result.newly_completed
        assert 1 not in result.progress


class TestMalformedConditions:
    @pytest.mark.parametrize("condition", [
        {"value": 10, "game_id": "abc"},
        {"value": 10, "game_id": [7]},
        {"value": "ten"},
        {"value": True},
    ])
    def test_score_threshold_skipped(self, condition):
        bad = [_ach(1, TriggerType.SCORE_THRESHOLD, condition)]
        ctx = AchievementContext(best_scores={7: 10**6})
        result = check_achievements(bad, ctx, set())
        assert result.newly_completed == []
        assert result.progress == {}

    def test_unhashable_stat_field_skipped(self):
        bad = [_ach(1, TriggerType.STAT_THRESHOLD, {"field": ["wins"], "value": 1})]
        assert check_achievements(bad, AchievementContext(), set()).newly_completed == []

    def test_unhashable_event_skipped(self):
        bad = [_ach(1, TriggerType.FIRST_EVENT, {"event": ["chat_message"]})]
        ctx = AchievementContext(stats={"chat_messages": 3})
        assert check_achievements(bad, ctx, set()).newly_completed == []

    def test_non_object_condition_skipped(self):
        bad = _ach(1, TriggerType.POINTS_MILESTONE)
        bad.condition = [1, 2]
        good = _ach(2, TriggerType.POINTS_MILESTONE, {"value": 5})
        ctx = AchievementContext(lifetime_points=10)
        assert check_achievements([bad, good], ctx, set()).newly_completed == [2]


# ---------------------------------------------------------------------------
# Tests — Database evaluation
# ---------------------------------------------------------------------------
class TestEvaluateUser:
    def test_unlock_pays_points_once(self, db_session):
        user = make_user(db_session)
        game = make_game(db_session)
        db_session.add(Achievement(
            name="First Steps", trigger_type=TriggerType.STAT_THRESHOLD,
            condition={"field": "scores_submitted", "value": 1}, points=25,
        ))
        db_session.add(GameScore(user_id=user.id, game_id=game.id, score=10))
        db_session.commit()

        unlocked = achievement_service.evaluate_user(
            db_session, user.id, PortalEvent.SCORE_SUBMITTED,
        )
        db_session.commit()
        assert [a.name for a in unlocked] == ["First Steps"]
        assert points_service.get_user_points(db_session, user.id)["available_points"] == 25

        again = achievement_service.evaluate_user(db_session, user.id)
        db_session.commit()
        assert again == []
        assert points_service.get_user_points(db_session, user.id)["lifetime_points"] == 25

    def test_unlock_points_can_chain_into_milestone(self, db_session):
        user = make_user(db_session)
        game = make_game(db_session)
        db_session.add_all([
            Achievement(
                name="Scorer", trigger_type=TriggerType.STAT_THRESHOLD,
                condition={"field": "scores_submitted", "value": 1}, points=100,
            ),
            Achievement(
                name="Centurion", trigger_type=TriggerType.POINTS_MILESTONE,
                condition={"value": 100}, points=0,
            ),
        ])
        db_session.add(GameScore(user_id=user.id, game_id=game.id, score=1))
        db_session.commit()

        unlocked = achievement_service.evaluate_user(db_session, user.id)
        db_session.commit()
        assert {a.name for a in unlocked} == {"Scorer", "Centurion"}

    def test_progress_row_stored_for_incomplete(self, db_session):
        user = make_user(db_session)
        game = make_game(db_session)
        ach = Achievement(
            name="Grinder", trigger_type=TriggerType.STAT_THRESHOLD,
            condition={"field": "scores_submitted", "value": 5},
        )
        db_session.add(ach)
        db_session.add(GameScore(user_id=user.id, game_id=game.id, score=3))
        db_session.commit()

        achievement_service.evaluate_user(db_session, user.id)
        db_session.commit()
        ua = db_session.scalar(select(UserAchievement).where(
            UserAchievement.user_id == user.id, UserAchievement.achievement_id == ach.id,
        ))
        assert ua.is_completed is False
        assert ua.progress == {"current": 1, "target": 5}

    def test_inactive_achievement_ignored(self, db_session):
        user = make_user(db_session)
        db_session.add(Achievement(
            name="Retired", trigger_type=TriggerType.POINTS_MILESTONE,
            condition={"value": 0}, is_active=False,
        ))
        db_session.commit()
        assert achievement_service.evaluate_user(db_session, user.id) == []

    def test_bad_row_does_not_block_others(self, db_session):
        user = make_user(db_session)
        game = make_game(db_session)
        db_session.add_all([
            Achievement(
                name="Broken", trigger_type=TriggerType.SCORE_THRESHOLD,
                condition={"value": 10, "game_id": "abc"},
            ),
            Achievement(
                name="First Steps", trigger_type=TriggerType.STAT_THRESHOLD,
                condition={"field": "scores_submitted", "value": 1},
            ),
        ])
        db_session.add(GameScore(user_id=user.id, game_id=game.id, score=50))
        db_session.commit()

        unlocked = achievement_service.evaluate_user(db_session, user.id)
        db_session.commit()
        assert [a.name for a in unlocked] == ["First Steps"]
