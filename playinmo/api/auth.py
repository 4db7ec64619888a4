"""
playinmo.api.auth — Password login, Google OAuth2, CMS one-time codes → JWT
=============================================================================
"""

from __future__ import annotations

import logging
import os
import secrets
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field
from sqlalchemy import delete
from sqlalchemy.orm import Session

from playinmo.api.deps import (
    get_config,
    get_current_admin,
    get_current_user,
    get_engine,
    get_session,
    issue_token,
)
from playinmo.config import PortalConfig
from playinmo.database.engine import get_session as session_scope
from playinmo.database.engine import run_db
from playinmo.database.models import OAuthState, User
from playinmo.services import account_service, email_service
from playinmo.services.account_service import user_dict
from playinmo.services.errors import ConflictError

logger = logging.getLogger(__name__)
router = APIRouter(tags=["auth"])

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"

OAUTH_STATE_TTL_SECONDS = 600


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class RegisterBody(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=500)


class LoginBody(BaseModel):
    username: str
    password: str


class OtpRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)


class OtpVerify(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    otp: str = Field(min_length=1, max_length=12)


def _token_response(user: User, cfg: PortalConfig) -> dict:
    return {
        "token": issue_token(user, cfg.jwt_ttl_hours),
        "token_type": "bearer",
        "user": user_dict(user, private=True),
    }


# ---------------------------------------------------------------------------
# Password accounts
# ---------------------------------------------------------------------------
@router.post("/users/register", status_code=201)
def register(
    body: RegisterBody,
    session: Session = Depends(get_session),
    cfg: PortalConfig = Depends(get_config),
):
    try:
        user = account_service.register(
            session, body.username, body.password,
            email=body.email, avatar_url=body.avatar_url,
        )
    except ConflictError as exc:
        raise HTTPException(409, str(exc))
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return _token_response(user, cfg)


@router.post("/users/login")
def login(
    body: LoginBody,
    session: Session = Depends(get_session),
    cfg: PortalConfig = Depends(get_config),
):
    user = account_service.authenticate(session, body.username, body.password)
    if user is None:
        raise HTTPException(401, "Invalid username or password")
    return _token_response(user, cfg)


@router.get("/users/me")
def me(user: User = Depends(get_current_user)):
    return user_dict(user, private=True)


@router.get("/users/{user_id}")
def get_user(user_id: int, session: Session = Depends(get_session)):
    user = account_service.get_user(session, user_id)
    if user is None:
        raise HTTPException(404, "User not found")
    return user_dict(user)


@router.get("/auth/user")
def auth_user(user: User = Depends(get_current_user)):
    return user_dict(user, private=True)


@router.post("/auth/logout")
def logout():
    """Tokens are stateless; the client simply discards its copy."""
    return {"success": True}


# ---------------------------------------------------------------------------
# Google OAuth2
# ---------------------------------------------------------------------------
def _oauth_env() -> tuple[str, str, str, str]:
    """Return required OAuth env vars or raise a clear 500."""
    values = {
        name: os.getenv(name, "").strip()
        for name in (
            "GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_REDIRECT_URI", "FRONTEND_URL",
        )
    }
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise HTTPException(
            status_code=500,
            detail="Google OAuth is not configured: missing " + ", ".join(missing),
        )
    return tuple(values.values())  # type: ignore[return-value]


def _store_oauth_state(engine, state: str) -> None:
    """Persist an OAuth state token and prune stale entries."""
    cutoff = datetime.now(UTC) - timedelta(seconds=OAUTH_STATE_TTL_SECONDS)
    with session_scope(engine) as session:
        session.execute(delete(OAuthState).where(OAuthState.created_at < cutoff))
        session.add(OAuthState(state=state))


def _consume_oauth_state(engine, state: str) -> bool:
    """Consume a one-time OAuth state token if valid and unexpired."""
    cutoff = datetime.now(UTC) - timedelta(seconds=OAUTH_STATE_TTL_SECONDS)
    with session_scope(engine) as session:
        session.execute(delete(OAuthState).where(OAuthState.created_at < cutoff))
        row = session.get(OAuthState, state)
        if row is None:
            return False
        session.delete(row)
        return True


def _google_login(engine, profile: dict, ttl_hours: int) -> str:
    with Session(engine) as session:
        user = account_service.find_or_create_google_user(session, profile)
        return issue_token(user, ttl_hours)


@router.get("/auth/google")
async def google_login(engine=Depends(get_engine)):
    """Redirect to the Google consent screen."""
    client_id, _, redirect_uri, _ = _oauth_env()

    state = secrets.token_urlsafe(32)
    await run_db(_store_oauth_state, engine, state)

    query = urlencode({
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
        "prompt": "select_account",
    })
    return RedirectResponse(f"{GOOGLE_AUTH_URL}?{query}")


@router.get("/auth/google/callback")
async def google_callback(
    code: str,
    state: str,
    cfg: PortalConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    """Exchange the authorization code, sign the user in, hand a JWT to the frontend."""
    client_id, client_secret, redirect_uri, frontend_url = _oauth_env()

    if not await run_db(_consume_oauth_state, engine, state):
        raise HTTPException(400, "Invalid or expired OAuth state")

    transport = httpx.AsyncHTTPTransport(retries=1)
    async with httpx.AsyncClient(timeout=10, transport=transport) as client:
        token_resp = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": client_id,
                "client_secret": client_secret,
            },
        )
        if token_resp.status_code != 200:
            logger.warning("Google token exchange failed: %s", token_resp.status_code)
            raise HTTPException(400, "OAuth token exchange failed")

        access_token = token_resp.json().get("access_token")
        if not access_token:
            raise HTTPException(400, "No access token returned")

        profile_resp = await client.get(
            GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"},
        )

    if profile_resp.status_code != 200:
        raise HTTPException(400, "Failed to fetch Google profile")
    profile = profile_resp.json()
    if not profile.get("sub"):
        raise HTTPException(400, "Google profile has no subject id")

    token = await run_db(_google_login, engine, profile, cfg.jwt_ttl_hours)
    return RedirectResponse(f"{frontend_url.rstrip('/')}/auth/callback?token={token}")


# ---------------------------------------------------------------------------
# CMS one-time codes
# ---------------------------------------------------------------------------
@router.post("/admin/request-otp")
def request_otp(
    body: OtpRequest,
    session: Session = Depends(get_session),
    engine=Depends(get_engine),
    cfg: PortalConfig = Depends(get_config),
):
    """Mail a login code to an address listed in ``admin_emails``."""
    email = body.email.strip().lower()
    if not cfg.is_admin_email(email):
        logger.warning("OTP requested for non-admin address %s", email)
        raise HTTPException(403, "This e-mail is not authorized for CMS access")

    try:
        _, code = account_service.issue_admin_otp(session, email, cfg.otp_ttl_minutes)
    except ConflictError as exc:
        raise HTTPException(409, str(exc))
    status = email_service.send_otp_email(
        engine,
        to=email,
        code=code,
        site_name=cfg.site_name,
        sender=cfg.email_from,
        ttl_minutes=cfg.otp_ttl_minutes,
    )
    logger.info("OTP issued for %s (email %s)", email, status)
    return {"message": "Verification code sent", "email_status": status}


@router.post("/admin/verify-otp")
def verify_otp(
    body: OtpVerify,
    session: Session = Depends(get_session),
    cfg: PortalConfig = Depends(get_config),
):
    if not cfg.is_admin_email(body.email):
        raise HTTPException(403, "This e-mail is not authorized for CMS access")
    user = account_service.verify_admin_otp(session, body.email, body.otp)
    if user is None:
        raise HTTPException(401, "Invalid or expired code")
    return _token_response(user, cfg)


@router.get("/admin/user")
def admin_user(
    admin: dict = Depends(get_current_admin),
    session: Session = Depends(get_session),
):
    user = account_service.get_user(session, int(admin["sub"]))
    if user is None:
        raise HTTPException(404, "User not found")
    return user_dict(user, private=True)
