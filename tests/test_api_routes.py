"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================

Exercises the public portal, player and CMS endpoints through the
TestClient against an in-memory SQLite database.
"""

from __future__ import annotations

import io
import zipfile

import httpx
import pytest
from sqlalchemy import select

from conftest import auth, make_ad, make_category, make_game, make_reward, make_token, make_user
from playinmo.api.deps import get_image_chain
from playinmo.api.main import app
from playinmo.database.models import AdAnalytics, Achievement, MediaFile, TriggerType
from playinmo.services import points_service
from playinmo.services.image_storage import CloudinaryImageStore, ImageStorageChain

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture
def player(db_session):
    user = make_user(db_session, "player1")
    return user, make_token(user.id, user.username, is_admin=False)


# ===========================================================================
# Health & accounts
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, app_client):
        resp = app_client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestAccounts:
    def test_register_login_me(self, app_client):
        resp = app_client.post(
            "/api/users/register",
            json={"username": "newbie", "password": "hunter22", "email": "New@Example.com"},
        )
        assert resp.status_code == 201
        assert resp.json()["user"]["email"] == "new@example.com"

        resp = app_client.post("/api/users/login", json={"username": "newbie", "password": "hunter22"})
        assert resp.status_code == 200
        token = resp.json()["token"]

        me = app_client.get("/api/users/me", headers=auth(token))
        assert me.status_code == 200
        assert me.json()["username"] == "newbie"
        assert me.json()["is_admin"] is False

    def test_duplicate_username(self, app_client):
        body = {"username": "twin", "password": "secret1"}
        assert app_client.post("/api/users/register", json=body).status_code == 201
        assert app_client.post("/api/users/register", json=body).status_code == 409

    def test_short_password(self, app_client):
        resp = app_client.post("/api/users/register", json={"username": "x", "password": "123"})
        assert resp.status_code == 400

    def test_wrong_password(self, app_client):
        app_client.post("/api/users/register", json={"username": "sam", "password": "right-one"})
        resp = app_client.post("/api/users/login", json={"username": "sam", "password": "wrong-one"})
        assert resp.status_code == 401

    def test_me_requires_token(self, app_client):
        assert app_client.get("/api/users/me").status_code == 401
        assert app_client.get("/api/users/me", headers=auth("garbage")).status_code == 401

    def test_public_profile_hides_email(self, app_client, db_session):
        user = make_user(db_session, "shy", email="shy@example.com")
        body = app_client.get(f"/api/users/{user.id}").json()
        assert body["username"] == "shy"
        assert "email" not in body


# ===========================================================================
# Catalog & reviews
# ===========================================================================
class TestCatalogRoutes:
    def test_games_and_categories(self, app_client, db_session):
        cat = make_category(db_session, "Racing", "racing")
        game = make_game(db_session, "Drift King", category_id=cat.id)
        make_game(db_session, "Chess")

        assert len(app_client.get("/api/games").json()) == 2
        assert app_client.get(f"/api/games/{game.id}").json()["title"] == "Drift King"
        assert app_client.get("/api/games/999").status_code == 404
        assert [g["title"] for g in app_client.get("/api/games/category/racing").json()] == [
            "Drift King"
        ]
        assert app_client.get("/api/categories/racing").json()["name"] == "Racing"
        assert app_client.get("/api/categories/nope").status_code == 404
        assert [g["title"] for g in app_client.get("/api/games/search?q=drift").json()] == [
            "Drift King"
        ]

    def test_play_counter(self, app_client, db_session):
        game = make_game(db_session)
        first = app_client.post(f"/api/games/{game.id}/play").json()["plays"]
        second = app_client.post(f"/api/games/{game.id}/play").json()["plays"]
        assert second == first + 1
        assert app_client.post("/api/games/999/play").status_code == 404

    def test_review_create_then_update(self, app_client, db_session, player):
        user, token = player
        game = make_game(db_session)
        url = f"/api/games/{game.id}/reviews"

        resp = app_client.post(url, json={"rating": 3, "comment": "fine"}, headers=auth(token))
        assert resp.status_code == 200
        assert resp.json()["created"] is True
        resp = app_client.post(url, json={"rating": 5}, headers=auth(token))
        assert resp.json()["created"] is False

        rating = app_client.get(f"/api/games/{game.id}/rating").json()
        assert rating == {"game_id": game.id, "average": 5.0, "count": 1}
        assert app_client.get(f"/api/games/{game.id}").json()["rating"] == 50

    def test_review_validation(self, app_client, db_session, player):
        _, token = player
        game = make_game(db_session)
        url = f"/api/games/{game.id}/reviews"
        assert app_client.post(url, json={"rating": 6}, headers=auth(token)).status_code == 422
        assert app_client.post(url, json={"rating": 3}).status_code == 401
        assert app_client.post("/api/games/999/reviews", json={"rating": 3},
                               headers=auth(token)).status_code == 404


# ===========================================================================
# Scores, chat, economy
# ===========================================================================
class TestPlayerRoutes:
    def test_submit_score_and_leaderboard(self, app_client, db_session, player):
        _, token = player
        game = make_game(db_session)
        resp = app_client.post(
            "/api/scores", json={"game_id": game.id, "score": 420, "won": True},
            headers=auth(token),
        )
        assert resp.status_code == 201
        assert resp.json()["points_awarded"] == 5

        top = app_client.get(f"/api/scores/game/{game.id}").json()
        assert top[0]["score"] == 420
        board = app_client.get("/api/leaderboard").json()
        assert board[0]["user"]["username"] == "player1"
        assert board[0]["win_rate"] == 100.0

        points = app_client.get("/api/user/points", headers=auth(token)).json()
        assert points["available_points"] == 5

    def test_malformed_achievement_does_not_block_scores(self, app_client, db_session, player):
        _, token = player
        game = make_game(db_session)
        db_session.add(Achievement(
            name="Broken", trigger_type=TriggerType.SCORE_THRESHOLD,
            condition={"value": 10, "game_id": "abc"},
        ))
        db_session.commit()
        resp = app_client.post(
            "/api/scores", json={"game_id": game.id, "score": 420}, headers=auth(token),
        )
        assert resp.status_code == 201

    def test_admin_cannot_save_unmeasurable_achievement(self, app_client, admin_token):
        resp = app_client.post("/api/admin/achievements", headers=auth(admin_token), json={
            "name": "Broken", "trigger_type": "score_threshold",
            "condition": {"value": 10, "game_id": "abc"},
        })
        assert resp.status_code == 400

    def test_score_requires_login(self, app_client, db_session):
        game = make_game(db_session)
        resp = app_client.post("/api/scores", json={"game_id": game.id, "score": 1})
        assert resp.status_code == 401

    def test_chat(self, app_client, player):
        _, token = player
        assert app_client.post("/api/chat", json={"message": "gg"}, headers=auth(token)).status_code == 201
        assert app_client.post("/api/chat", json={"message": "   "}, headers=auth(token)).status_code == 400
        assert [m["message"] for m in app_client.get("/api/chat").json()] == ["gg"]

    def test_purchase_flow(self, app_client, db_session, player):
        user, token = player
        frame = make_reward(db_session, cost=40)
        points_service.award_points(db_session, user.id, 50, "seed", "admin")
        db_session.commit()

        url = f"/api/user/rewards/{frame.id}/purchase"
        resp = app_client.post(url, headers=auth(token))
        assert resp.status_code == 201
        assert resp.json()["points"]["available_points"] == 10

        assert app_client.post(url, headers=auth(token)).status_code == 409
        pricey = make_reward(db_session, name="Diamond Frame", cost=1000)
        assert app_client.post(f"/api/user/rewards/{pricey.id}/purchase",
                               headers=auth(token)).status_code == 400
        assert app_client.post("/api/user/rewards/999/purchase",
                               headers=auth(token)).status_code == 404

        equip = app_client.patch(f"/api/user/rewards/{frame.id}/equip", headers=auth(token))
        assert equip.json()["is_equipped"] is True
        owned = app_client.get("/api/user/rewards", headers=auth(token)).json()
        assert [o["reward"]["name"] for o in owned] == ["Bronze Frame"]

        history = app_client.get("/api/user/points/history", headers=auth(token)).json()
        assert history[0]["delta"] == -40


# ===========================================================================
# Ads & content
# ===========================================================================
class TestPublicAdsAndContent:
    def test_ads_served_and_tracked(self, app_client, db_session):
        ad = make_ad(db_session, placement="sidebar", priority=3)
        make_ad(db_session, "banner one", placement="banner")

        served = app_client.get("/api/advertisements/placement/sidebar").json()
        assert [a["id"] for a in served] == [ad.id]
        assert len(app_client.get("/api/advertisements").json()) == 2

        resp = app_client.post(f"/api/advertisements/{ad.id}/view")
        assert resp.json()["view_count"] == 1
        resp = app_client.post(f"/api/advertisements/{ad.id}/click")
        assert resp.json()["click_count"] == 1
        assert app_client.post("/api/advertisements/999/view").status_code == 404
        assert len(db_session.scalars(select(AdAnalytics)).all()) == 2

    def test_ads_can_be_disabled(self, app_client, db_session, admin_token):
        make_ad(db_session)
        resp = app_client.put(
            "/api/admin/settings", json=[{"key": "ads.enabled", "value": False}],
            headers=auth(admin_token),
        )
        assert resp.status_code == 200
        assert app_client.get("/api/advertisements").json() == []

    def test_site_content_defaults(self, app_client):
        content = app_client.get("/api/site-content").json()
        assert set(content) >= {"hero", "featured", "categories", "about"}
        hero = app_client.get("/api/content/hero").json()
        assert {row["key"] for row in hero} >= {"title", "subtitle"}


# ===========================================================================
# CMS guard & mutations
# ===========================================================================
class TestAdminGuard:
    def test_no_token(self, app_client):
        assert app_client.get("/api/admin/dashboard").status_code == 401

    def test_non_admin_forbidden(self, app_client, player):
        _, token = player
        assert app_client.get("/api/admin/dashboard", headers=auth(token)).status_code == 403


class TestAdminRoutes:
    def test_dashboard_counts(self, app_client, db_session, admin_token):
        make_game(db_session)
        body = app_client.get("/api/admin/dashboard", headers=auth(admin_token)).json()
        assert body["games"] == 1
        assert body["users"] == 0

    def test_game_crud_and_audit(self, app_client, admin_token):
        headers = auth(admin_token)
        resp = app_client.post("/api/admin/games", json={"title": "Tetra"}, headers=headers)
        assert resp.status_code == 201
        game_id = resp.json()["id"]

        resp = app_client.patch(f"/api/admin/games/{game_id}", json={"is_hot": True},
                                headers=headers)
        assert resp.json()["is_hot"] is True
        assert app_client.delete(f"/api/admin/games/{game_id}", headers=headers).status_code == 200
        assert app_client.delete(f"/api/admin/games/{game_id}", headers=headers).status_code == 404

        audit = app_client.get("/api/admin/audit?target_table=games", headers=headers).json()
        assert audit["total"] == 3

    def test_category_in_use_conflict(self, app_client, db_session, admin_token):
        cat = make_category(db_session)
        make_game(db_session, category_id=cat.id)
        resp = app_client.delete(f"/api/admin/categories/{cat.id}", headers=auth(admin_token))
        assert resp.status_code == 409

    def test_site_content_put(self, app_client, admin_token):
        resp = app_client.put(
            "/api/admin/site-content", json={"hero": {"title": "Arcade Night"}},
            headers=auth(admin_token),
        )
        assert resp.status_code == 200
        assert app_client.get("/api/site-content").json()["hero"]["title"] == "Arcade Night"

    def test_manual_points_award(self, app_client, db_session, admin_token):
        user = make_user(db_session, "lucky")
        resp = app_client.post(
            "/api/admin/awards/points",
            json={"user_id": user.id, "amount": 75, "reason": "Event prize"},
            headers=auth(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json()["available_points"] == 75
        resp = app_client.post(
            "/api/admin/awards/points", json={"user_id": 404, "amount": 5},
            headers=auth(admin_token),
        )
        assert resp.status_code == 404

    def test_ad_management(self, app_client, admin_token):
        headers = auth(admin_token)
        resp = app_client.post(
            "/api/admin/advertisements",
            json={"title": "Spring Sale", "media_url": "https://cdn.example.com/s.png",
                  "placement": "sidebar", "budget": 10.0, "cost_per_view": 0.1},
            headers=headers,
        )
        assert resp.status_code == 201
        ad_id = resp.json()["id"]

        bad = app_client.post(
            "/api/admin/advertisements",
            json={"title": "Bad", "media_url": "m", "placement": "fullscreen"},
            headers=headers,
        )
        assert bad.status_code == 400

        app_client.post(f"/api/advertisements/{ad_id}/view")
        stats = app_client.get("/api/admin/advertisements/stats", headers=headers).json()
        assert stats["total"] == 1
        assert stats["totalViews"] == 1

        analytics = app_client.get(f"/api/admin/advertisements/{ad_id}/analytics",
                                   headers=headers).json()
        assert analytics["advertisement"]["id"] == ad_id
        assert app_client.get("/api/admin/advertisements/999/analytics",
                              headers=headers).status_code == 404

    def test_image_upload_uses_chain(self, app_client, db_session, admin_token):

        transport = httpx.MockTransport(
            lambda r: httpx.Response(200, json={"secure_url": "https://res.cloudinary.com/x.png"})
        )
        app.dependency_overrides[get_image_chain] = lambda: ImageStorageChain(
            [CloudinaryImageStore("demo", "preset", transport=transport)]
        )
        resp = app_client.post(
            "/api/admin/images",
            files={"file": ("cover.png", PNG, "image/png")},
            headers=auth(admin_token),
        )
        assert resp.status_code == 201
        assert resp.json()["backend"] == "cloudinary"
        assert db_session.scalar(select(MediaFile)).url == "https://res.cloudinary.com/x.png"

        listed = app_client.get("/api/admin/images", headers=auth(admin_token)).json()
        assert listed[0]["backend"] == "cloudinary"

        bad = app_client.post(
            "/api/admin/images",
            files={"file": ("notes.txt", b"hi", "text/plain")},
            headers=auth(admin_token),
        )
        assert bad.status_code == 400

    def test_upload_game_bundle(self, app_client, admin_token, tmp_path):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("index.html", "<html></html>")
        resp = app_client.post(
            "/api/admin/upload-game",
            data={"title": "Zip Quest", "description": "bundle"},
            files={"game_file": ("quest.zip", buf.getvalue(), "application/zip")},
            headers=auth(admin_token),
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["game_url"].endswith("/index.html")
        assert body["is_new"] is True
        assert (tmp_path / body["file_path"]).exists()

    def test_settings_roundtrip(self, app_client, admin_token):
        headers = auth(admin_token)
        app_client.put("/api/admin/settings",
                       json=[{"key": "points.per_score", "value": 9}], headers=headers)
        settings = {s["key"]: s["value"]
                    for s in app_client.get("/api/admin/settings", headers=headers).json()}
        assert settings["points.per_score"] == 9
        assert settings["chat.max_message_length"] == 500
