"""
tests/test_admin_service.py — Audited CMS mutations and advertisements
========================================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from conftest import make_ad, make_category, make_game, make_user
from playinmo.database.models import Achievement, AdminLog, TriggerType
from playinmo.services import ad_service, admin_service, points_service, settings_service
from playinmo.services.errors import ConflictError

ADMIN = 99999


def _logs(session, table: str) -> list[AdminLog]:
    return session.scalars(
        select(AdminLog).where(AdminLog.target_table == table).order_by(AdminLog.id)
    ).all()


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------
class TestAuditedMutations:
    def test_game_lifecycle_is_audited(self, db_engine, db_session):
        game = admin_service.create_game(db_engine, actor_id=ADMIN, title="Rocket", plays=0)
        admin_service.update_game(db_engine, game.id, actor_id=ADMIN, title="Rocket 2")
        assert admin_service.delete_game(db_engine, game.id, actor_id=ADMIN) is True

        logs = _logs(db_session, "games")
        assert [log.action_type for log in logs] == ["CREATE", "UPDATE", "DELETE"]
        assert logs[0].before_snapshot is None
        assert logs[1].before_snapshot["title"] == "Rocket"
        assert logs[1].after_snapshot["title"] == "Rocket 2"
        assert logs[2].after_snapshot is None
        assert all(log.actor_id == ADMIN for log in logs)

    def test_update_cannot_touch_play_counter(self, db_engine):
        game = admin_service.create_game(db_engine, actor_id=ADMIN, title="Counter")
        updated = admin_service.update_game(db_engine, game.id, actor_id=ADMIN, plays=1_000_000)
        assert updated.plays == 0

    def test_update_missing_row(self, db_engine):
        assert admin_service.update_game(db_engine, 404, actor_id=ADMIN, title="x") is None
        assert admin_service.delete_game(db_engine, 404, actor_id=ADMIN) is False

    def test_game_with_unknown_category(self, db_engine):
        with pytest.raises(LookupError):
            admin_service.create_game(db_engine, actor_id=ADMIN, title="Lost", category_id=77)

    def test_category_slug_generated_and_unique(self, db_engine):
        cat = admin_service.create_category(db_engine, actor_id=ADMIN, name="Card Games")
        assert cat.slug == "card-games"
        with pytest.raises(ConflictError):
            admin_service.create_category(db_engine, actor_id=ADMIN, name="Card Games 2",
                                          slug="Card Games")

    def test_category_delete_refused_while_in_use(self, db_engine, db_session):
        cat = make_category(db_session)
        make_game(db_session, category_id=cat.id)
        with pytest.raises(ConflictError):
            admin_service.delete_category(db_engine, cat.id, actor_id=ADMIN)
        assert _logs(db_session, "game_categories") == []

    def test_invalid_rarity_rejected(self, db_engine):
        with pytest.raises(ValueError):
            admin_service.create_reward(db_engine, actor_id=ADMIN, name="Shiny", type="badge",
                                        cost=10, rarity="mythic")

    def test_site_content_update_logs_each_change(self, db_engine, db_session):
        changed = admin_service.update_site_content(
            db_engine, {"hero": {"title": "Welcome", "ctaText": "Go"}}, actor_id=ADMIN,
        )
        assert changed == 2
        again = admin_service.update_site_content(
            db_engine, {"hero": {"title": "Welcome", "ctaText": "Play"}}, actor_id=ADMIN,
        )
        assert again == 1
        logs = _logs(db_session, "website_content")
        assert [log.action_type for log in logs] == ["CREATE", "CREATE", "UPDATE"]
        assert logs[-1].target_id == "hero.ctaText"

    def test_settings_changes_audited(self, db_engine, db_session):
        settings_service.bulk_upsert(
            db_engine, [{"key": "points.per_review", "value": 25}], actor_id=ADMIN,
        )
        settings_service.bulk_upsert(
            db_engine, [{"key": "points.per_review", "value": 25}], actor_id=ADMIN,
        )
        logs = _logs(db_session, "settings")
        assert len(logs) == 1
        assert logs[0].before_snapshot["value"] == 10
        assert logs[0].after_snapshot["value"] == 25

    def test_list_audit_filters_and_pages(self, db_engine, db_session):
        for i in range(3):
            admin_service.create_game(db_engine, actor_id=ADMIN, title=f"G{i}")
        admin_service.create_category(db_engine, actor_id=ADMIN, name="Solo")
        page = admin_service.list_audit(db_session, limit=2, target_table="games")
        assert page["total"] == 3
        assert len(page["entries"]) == 2


# ---------------------------------------------------------------------------
# Manual awards
# ---------------------------------------------------------------------------
class TestAchievementConditions:
    @pytest.mark.parametrize("trigger_type, condition", [
        (TriggerType.SCORE_THRESHOLD, {"value": 10, "game_id": "abc"}),
        (TriggerType.SCORE_THRESHOLD, {}),
        (TriggerType.STAT_THRESHOLD, {"field": "logins", "value": 5}),
        (TriggerType.STAT_THRESHOLD, {"field": "wins", "value": "5"}),
        (TriggerType.STAT_THRESHOLD, {"value": 5}),
        (TriggerType.POINTS_MILESTONE, {"value": -1}),
        (TriggerType.FIRST_EVENT, {"event": "logged_in"}),
        (TriggerType.FIRST_EVENT, {"event": ["chat_message"]}),
    ])
    def test_unmeasurable_condition_rejected(self, db_engine, db_session, trigger_type, condition):
        with pytest.raises(ValueError):
            admin_service.create_achievement(
                db_engine, actor_id=ADMIN, name="Bad", trigger_type=trigger_type,
                condition=condition,
            )
        assert db_session.scalars(select(Achievement)).all() == []

    def test_valid_conditions_accepted(self, db_engine):
        for trigger_type, condition in [
            (TriggerType.SCORE_THRESHOLD, {"value": 500, "game_id": 3}),
            (TriggerType.STAT_THRESHOLD, {"field": "wins", "value": 5}),
            (TriggerType.POINTS_MILESTONE, {"value": 1000}),
            (TriggerType.FIRST_EVENT, {"event": "review_written"}),
            (TriggerType.MANUAL, {}),
        ]:
            ach = admin_service.create_achievement(
                db_engine, actor_id=ADMIN, name=f"ok-{trigger_type}",
                trigger_type=trigger_type, condition=condition,
            )
            assert ach.condition == condition

    def test_update_checks_condition_against_stored_trigger(self, db_engine):
        ach = admin_service.create_achievement(
            db_engine, actor_id=ADMIN, name="Scorer",
            trigger_type=TriggerType.SCORE_THRESHOLD, condition={"value": 100},
        )
        with pytest.raises(ValueError):
            admin_service.update_achievement(
                db_engine, ach.id, actor_id=ADMIN, condition={"value": 100, "game_id": "x"},
            )
        with pytest.raises(ValueError):
            admin_service.update_achievement(
                db_engine, ach.id, actor_id=ADMIN, trigger_type=TriggerType.FIRST_EVENT,
            )
        updated = admin_service.update_achievement(
            db_engine, ach.id, actor_id=ADMIN, condition={"value": 200, "game_id": 1},
        )
        assert updated.condition == {"value": 200, "game_id": 1}


class TestManualAwards:
    def test_award_points_logged_with_reason(self, db_engine, db_session):
        user = make_user(db_session)
        after = admin_service.award_points(
            db_engine, actor_id=ADMIN, user_id=user.id, amount=50, reason="Tournament win",
        )
        assert after["available_points"] == 50
        log = _logs(db_session, "user_points")[0]
        assert log.action_type == "MANUAL_AWARD"
        assert log.reason == "Tournament win"
        assert log.before_snapshot["available_points"] == 0

    def test_deduction_clamps_at_zero(self, db_engine, db_session):
        user = make_user(db_session)
        admin_service.award_points(db_engine, actor_id=ADMIN, user_id=user.id, amount=20,
                                   reason="bonus")
        after = admin_service.award_points(db_engine, actor_id=ADMIN, user_id=user.id,
                                           amount=-100, reason="cheating")
        assert after["available_points"] == 0
        assert after["lifetime_points"] == 20

    def test_award_to_unknown_user(self, db_engine):
        with pytest.raises(LookupError):
            admin_service.award_points(db_engine, actor_id=ADMIN, user_id=404, amount=5,
                                       reason="x")

    def test_grant_achievement_once(self, db_engine, db_session):
        user = make_user(db_session)
        ach = Achievement(name="Staff Pick", trigger_type=TriggerType.MANUAL, points=15)
        db_session.add(ach)
        db_session.commit()

        assert admin_service.grant_achievement(
            db_engine, actor_id=ADMIN, user_id=user.id, achievement_id=ach.id,
        ) is True
        assert admin_service.grant_achievement(
            db_engine, actor_id=ADMIN, user_id=user.id, achievement_id=ach.id,
        ) is False
        assert points_service.get_user_points(db_session, user.id)["available_points"] == 15


# ---------------------------------------------------------------------------
# Advertisements
# ---------------------------------------------------------------------------
class TestAdvertisements:
    def test_served_by_priority_then_id(self, db_session):
        low = make_ad(db_session, "low", priority=1)
        high = make_ad(db_session, "high", priority=9)
        also_low = make_ad(db_session, "also low", priority=1)
        ids = [a.id for a in ad_service.servable_ads(db_session)]
        assert ids == [high.id, low.id, also_low.id]

    def test_placement_filter(self, db_session):
        make_ad(db_session, "banner", placement="banner")
        side = make_ad(db_session, "side", placement="sidebar")
        assert [a.id for a in ad_service.servable_ads(db_session, "sidebar")] == [side.id]

    def test_date_window(self, db_session):
        now = datetime.now(UTC)
        make_ad(db_session, "future", start_date=now + timedelta(days=1))
        make_ad(db_session, "expired", end_date=now - timedelta(days=1))
        live = make_ad(db_session, "live", start_date=now - timedelta(days=1),
                       end_date=now + timedelta(days=1))
        assert [a.id for a in ad_service.servable_ads(db_session)] == [live.id]

    def test_exhausted_budget_not_served(self, db_session):
        spent = make_ad(db_session, "spent", budget=1.0, cost_per_view=0.5, view_count=2)
        fresh = make_ad(db_session, "fresh", budget=1.0, cost_per_view=0.5, view_count=1)
        served = [a.id for a in ad_service.servable_ads(db_session)]
        assert spent.id not in served
        assert fresh.id in served

    def test_inactive_not_served(self, db_session):
        make_ad(db_session, "off", is_active=False)
        assert ad_service.servable_ads(db_session) == []

    def test_events_bump_counters_and_stats(self, db_session):
        ad = make_ad(db_session)
        for _ in range(4):
            ad_service.record_event(db_session, ad.id, "view", ip_address="10.0.0.1")
        updated = ad_service.record_event(db_session, ad.id, "click")
        assert (updated.view_count, updated.click_count) == (4, 1)

        stats = ad_service.ad_stats(db_session)
        assert stats["totalViews"] == 4
        assert stats["totalClicks"] == 1
        assert stats["ctr"] == 25.0

        daily = ad_service.ad_analytics(db_session, ad.id, days=7)["daily"]
        assert sum(d["views"] for d in daily) == 4
        assert sum(d["clicks"] for d in daily) == 1

    def test_unknown_event_or_ad(self, db_session):
        ad = make_ad(db_session)
        with pytest.raises(ValueError):
            ad_service.record_event(db_session, ad.id, "hover")
        with pytest.raises(LookupError):
            ad_service.record_event(db_session, 404, "view")

    def test_create_validates_choices_and_dates(self, db_engine):
        with pytest.raises(ValueError):
            admin_service.create_ad(db_engine, actor_id=ADMIN, title="x", media_url="m",
                                    placement="popup")
        now = datetime.now(UTC)
        with pytest.raises(ValueError):
            admin_service.create_ad(db_engine, actor_id=ADMIN, title="x", media_url="m",
                                    start_date=now, end_date=now - timedelta(hours=1))

    def test_update_keeps_counters(self, db_engine, db_session):
        ad = make_ad(db_session, view_count=7)
        updated = admin_service.update_ad(db_engine, ad.id, actor_id=ADMIN, view_count=0,
                                          title="Renamed")
        assert updated.title == "Renamed"
        assert updated.view_count == 7
