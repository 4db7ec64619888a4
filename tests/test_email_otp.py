"""
tests/test_email_otp.py — SendGrid delivery log and CMS one-time codes
========================================================================
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import httpx
import pytest
from sqlalchemy import select

from conftest import ADMIN_EMAIL, auth
from playinmo.database.models import EmailLog, User
from playinmo.services import account_service, email_service
from playinmo.services.errors import ConflictError


def _send(engine, transport=None) -> str:
    return email_service.send_otp_email(
        engine, to="ops@playinmo.test", code="123456", site_name="PlayinMO",
        sender="noreply@playinmo.test", ttl_minutes=10, transport=transport,
    )


class TestSendGrid:
    def test_skipped_without_api_key(self, db_engine, db_session, monkeypatch):
        monkeypatch.delenv("SENDGRID_API_KEY", raising=False)
        assert _send(db_engine) == "skipped"
        log = db_session.scalar(select(EmailLog))
        assert log.status == "skipped"
        assert log.email_type == "otp"

    def test_sent(self, db_engine, db_session, monkeypatch):
        monkeypatch.setenv("SENDGRID_API_KEY", "SG.test")
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(202)

        assert _send(db_engine, httpx.MockTransport(handler)) == "sent"
        assert captured["auth"] == "Bearer SG.test"
        assert captured["body"]["personalizations"][0]["to"][0]["email"] == "ops@playinmo.test"
        assert "123456" in captured["body"]["content"][0]["value"]
        assert db_session.scalar(select(EmailLog)).status == "sent"

    def test_failed_response_logged(self, db_engine, db_session, monkeypatch):
        monkeypatch.setenv("SENDGRID_API_KEY", "SG.test")
        transport = httpx.MockTransport(lambda r: httpx.Response(401, text="bad key"))
        assert _send(db_engine, transport) == "failed"
        log = db_session.scalar(select(EmailLog))
        assert log.status == "failed"
        assert "401" in log.error

    def test_transport_error_does_not_raise(self, db_engine, monkeypatch):
        monkeypatch.setenv("SENDGRID_API_KEY", "SG.test")

        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        assert _send(db_engine, httpx.MockTransport(handler)) == "failed"


class TestAdminOtp:
    def test_issue_then_verify_grants_admin_once(self, db_session):
        user, code = account_service.issue_admin_otp(db_session, ADMIN_EMAIL, 10)
        assert not user.is_admin
        assert len(code) == 6 and code.isdigit()
        assert user.otp_hash != code

        verified = account_service.verify_admin_otp(db_session, ADMIN_EMAIL, code)
        assert verified is not None and verified.is_admin
        assert account_service.verify_admin_otp(db_session, ADMIN_EMAIL, code) is None

    def test_wrong_code_leaves_account_unprivileged(self, db_session):
        user, _ = account_service.issue_admin_otp(db_session, ADMIN_EMAIL, 10)
        assert account_service.verify_admin_otp(db_session, ADMIN_EMAIL, "999999x") is None
        db_session.refresh(user)
        assert not user.is_admin

    def test_refuses_player_password_account(self, db_session):
        player = account_service.register(
            db_session, "mallory", "hunter22", email=ADMIN_EMAIL,
        )
        with pytest.raises(ConflictError):
            account_service.issue_admin_otp(db_session, ADMIN_EMAIL, 10)
        db_session.refresh(player)
        assert not player.is_admin
        assert player.otp_hash is None

    def test_existing_admin_password_account_reused(self, db_session):
        admin = account_service.register(db_session, "ops", "hunter22", email=ADMIN_EMAIL)
        admin.is_admin = True
        db_session.commit()
        user, _ = account_service.issue_admin_otp(db_session, ADMIN_EMAIL, 10)
        assert user.id == admin.id

    def test_wrong_code(self, db_session):
        account_service.issue_admin_otp(db_session, ADMIN_EMAIL, 10)
        assert account_service.verify_admin_otp(db_session, ADMIN_EMAIL, "000000x") is None

    def test_expired_code(self, db_session):
        user, code = account_service.issue_admin_otp(db_session, ADMIN_EMAIL, 10)
        user.otp_expiry = datetime.now(UTC) - timedelta(seconds=1)
        db_session.commit()
        assert account_service.verify_admin_otp(db_session, ADMIN_EMAIL, code) is None

    def test_reissue_reuses_account(self, db_session):
        first, _ = account_service.issue_admin_otp(db_session, ADMIN_EMAIL, 10)
        second, _ = account_service.issue_admin_otp(db_session, ADMIN_EMAIL.upper(), 10)
        assert first.id == second.id
        assert len(db_session.scalars(select(User)).all()) == 1


class TestOtpRoutes:
    @pytest.fixture
    def captured_codes(self, monkeypatch):
        codes: list[str] = []

        def fake_send(engine, *, to, code, **kwargs):
            codes.append(code)
            return "sent"

        monkeypatch.setattr(email_service, "send_otp_email", fake_send)
        return codes

    def test_login_flow(self, app_client, captured_codes):
        resp = app_client.post("/api/admin/request-otp", json={"email": ADMIN_EMAIL})
        assert resp.status_code == 200
        assert resp.json()["email_status"] == "sent"

        resp = app_client.post(
            "/api/admin/verify-otp", json={"email": ADMIN_EMAIL, "otp": captured_codes[0]},
        )
        assert resp.status_code == 200
        token = resp.json()["token"]
        assert resp.json()["user"]["is_admin"] is True

        me = app_client.get("/api/admin/user", headers=auth(token))
        assert me.status_code == 200
        assert me.json()["email"] == ADMIN_EMAIL

        dashboard = app_client.get("/api/admin/dashboard", headers=auth(token))
        assert dashboard.status_code == 200

    def test_code_is_single_use(self, app_client, captured_codes):
        app_client.post("/api/admin/request-otp", json={"email": ADMIN_EMAIL})
        body = {"email": ADMIN_EMAIL, "otp": captured_codes[0]}
        assert app_client.post("/api/admin/verify-otp", json=body).status_code == 200
        assert app_client.post("/api/admin/verify-otp", json=body).status_code == 401

    def test_unlisted_email_forbidden(self, app_client, captured_codes):
        resp = app_client.post("/api/admin/request-otp", json={"email": "someone@else.test"})
        assert resp.status_code == 403
        assert captured_codes == []

    def test_bad_code_unauthorized(self, app_client, captured_codes):
        app_client.post("/api/admin/request-otp", json={"email": ADMIN_EMAIL})
        resp = app_client.post("/api/admin/verify-otp", json={"email": ADMIN_EMAIL, "otp": "x"})
        assert resp.status_code == 401

    def test_registered_player_with_admin_email_cannot_reach_cms(
        self, app_client, captured_codes,
    ):
        resp = app_client.post("/api/users/register", json={
            "username": "mallory", "password": "hunter22", "email": ADMIN_EMAIL,
        })
        assert resp.status_code == 201

        resp = app_client.post("/api/admin/request-otp", json={"email": ADMIN_EMAIL})
        assert resp.status_code == 409
        assert captured_codes == []

        login = app_client.post(
            "/api/users/login", json={"username": "mallory", "password": "hunter22"},
        )
        assert login.status_code == 200
        assert login.json()["user"]["is_admin"] is False
        token = login.json()["token"]
        assert app_client.get("/api/admin/dashboard", headers=auth(token)).status_code == 403

    def test_requesting_a_code_grants_nothing(self, app_client, captured_codes, db_session):
        app_client.post("/api/admin/request-otp", json={"email": ADMIN_EMAIL})
        user = db_session.scalar(select(User).where(User.email == ADMIN_EMAIL))
        assert user is not None and not user.is_admin


class TestGoogleLinking:
    def _profile(self, **fields) -> dict:
        profile = {"sub": "g-123", "email": ADMIN_EMAIL, "name": "Jane Doe"}
        profile.update(fields)
        return profile

    def test_verified_email_links_existing_account(self, db_session):
        existing = account_service.register(db_session, "jane", "hunter22", email=ADMIN_EMAIL)
        user = account_service.find_or_create_google_user(
            db_session, self._profile(email_verified=True),
        )
        assert user.id == existing.id
        assert user.google_id == "g-123"

    def test_unverified_email_does_not_link(self, db_session):
        existing = account_service.register(db_session, "jane", "hunter22", email=ADMIN_EMAIL)
        user = account_service.find_or_create_google_user(
            db_session, self._profile(email_verified=False),
        )
        assert user.id != existing.id
        assert user.email is None
        db_session.refresh(existing)
        assert existing.google_id is None

    def test_unverified_email_is_not_stored(self, db_session):
        user = account_service.find_or_create_google_user(db_session, self._profile())
        assert user.email is None
        assert user.username == "Jane_Doe"

    def test_string_flag_accepted(self, db_session):
        user = account_service.find_or_create_google_user(
            db_session, self._profile(email_verified="true"),
        )
        assert user.email == ADMIN_EMAIL
