"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# A valid JWT_SECRET must exist before playinmo.api.deps is imported;
# the module validates it at load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "pytest-only-portal-secret-" + "k" * 40
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)
os.environ.pop("SENDGRID_API_KEY", None)

import pytest  # noqa: E402
from sqlalchemy import BigInteger, Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# SQLite has no JSONB; render it as TEXT.  BigInteger becomes INTEGER so
# autoincrement primary keys keep working.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.ext.compiler import compiles  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from playinmo.config import PortalConfig  # noqa: E402
from playinmo.database.models import (  # noqa: E402
    Advertisement,
    Game,
    GameCategory,
    Reward,
    User,
)
from playinmo.database.seed import seed_default_settings  # noqa: E402


@compiles(PG_JSONB, "sqlite")
def _compile_jsonb_as_text(type_, compiler, **kw):
    return "TEXT"


@compiles(BigInteger, "sqlite")
def _compile_bigint_as_integer(type_, compiler, **kw):
    return "INTEGER"


ADMIN_EMAIL = "admin@playinmo.test"


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with every table and the default settings.

    StaticPool keeps one shared connection so worker threads
    (``asyncio.to_thread`` in the rate limiter and ``run_db``) see the
    same database.
    """
    from playinmo.database.models import Base

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    seed_default_settings(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def portal_config() -> PortalConfig:
    return PortalConfig(
        site_name="PlayinMO Test",
        site_url="http://testserver",
        api_port=8000,
        admin_emails=(ADMIN_EMAIL,),
        email_from="noreply@playinmo.test",
    )


@pytest.fixture
def app_client(db_engine, portal_config, tmp_path, monkeypatch):
    """TestClient wired to the SQLite engine and a throwaway upload dir."""
    from fastapi.testclient import TestClient

    from playinmo.api.deps import get_config, get_engine
    from playinmo.api.main import app
    from playinmo.services import upload_service

    monkeypatch.setattr(upload_service, "UPLOAD_DIR", tmp_path)
    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: portal_config
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def make_token(
    sub: int | str = 99999, username: str = "FixtureAdmin", *, is_admin: bool = True,
) -> str:
    """Sign a JWT the way the login endpoints do."""
    import jwt

    from playinmo.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": str(sub), "username": username, "is_admin": is_admin},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_user(session: Session, username: str = "player1", **fields) -> User:
    user = User(username=username, **fields)
    session.add(user)
    session.commit()
    return user


def make_category(session: Session, name: str = "Arcade", slug: str = "arcade") -> GameCategory:
    category = GameCategory(name=name, slug=slug)
    session.add(category)
    session.commit()
    return category


def make_game(session: Session, title: str = "Star Jumper", **fields) -> Game:
    game = Game(title=title, **fields)
    session.add(game)
    session.commit()
    return game


def make_reward(
    session: Session, name: str = "Bronze Frame", cost: int = 50, type: str = "avatar_frame",
    **fields,
) -> Reward:
    reward = Reward(name=name, cost=cost, type=type, **fields)
    session.add(reward)
    session.commit()
    return reward


def make_ad(session: Session, title: str = "Ad", **fields) -> Advertisement:
    fields.setdefault("media_url", "https://cdn.example.com/ad.png")
    ad = Advertisement(title=title, **fields)
    session.add(ad)
    session.commit()
    return ad


@pytest.fixture
def admin_token() -> str:
    return make_token()
