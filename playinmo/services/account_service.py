"""
playinmo.services.account_service — Users, Passwords & One-Time Codes
=======================================================================

Three ways in:

* **Password** — ``register`` / ``authenticate`` with pbkdf2-sha256 hashes.
* **Google** — ``find_or_create_google_user`` links a Google profile to an
  existing account by verified e-mail, or creates one with a unique username.
* **CMS one-time code** — ``issue_admin_otp`` / ``verify_admin_otp`` for
  addresses listed in ``config.yaml``.  Codes are 6 digits, stored hashed,
  expire after ``otp_ttl_minutes`` and work once.
"""

from __future__ import annotations

import logging
import re
import secrets
from datetime import UTC, datetime, timedelta

from passlib.hash import pbkdf2_sha256
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from playinmo.constants import as_utc, isoformat
from playinmo.database.models import User
from playinmo.services.errors import ConflictError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
OTP_DIGITS = 6
_USERNAME_STRIP = re.compile(r"[^A-Za-z0-9_]+")


def user_dict(u: User, *, private: bool = False) -> dict:
    """Public profile; ``private=True`` adds the fields only the owner sees."""
    data = {
        "id": u.id,
        "username": u.username,
        "avatar_url": u.avatar_url,
        "created_at": isoformat(u.created_at),
    }
    if private:
        data["email"] = u.email
        data["is_admin"] = u.is_admin
    return data


def hash_password(password: str) -> str:
    return pbkdf2_sha256.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return pbkdf2_sha256.verify(password, password_hash)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_user(session: Session, user_id: int) -> User | None:
    return session.get(User, user_id)


def get_user_by_username(session: Session, username: str) -> User | None:
    return session.scalar(select(User).where(User.username == username))


def get_user_by_email(session: Session, email: str) -> User | None:
    return session.scalar(
        select(User).where(func.lower(User.email) == email.strip().lower())
    )


def _unique_username(session: Session, wanted: str) -> str:
    """``"Jane Doe"`` → ``"Jane_Doe"``, or ``"Jane_Doe2"`` when taken."""
    base = _USERNAME_STRIP.sub("_", wanted).strip("_")[:40] or "player"
    candidate, n = base, 1
    while get_user_by_username(session, candidate) is not None:
        n += 1
        candidate = f"{base}{n}"
    return candidate


# ---------------------------------------------------------------------------
# Password accounts
# ---------------------------------------------------------------------------

def register(
    session: Session,
    username: str,
    password: str,
    *,
    email: str | None = None,
    avatar_url: str | None = None,
) -> User:
    """Create a password account.

    Raises
    ------
    ValueError
        Username blank or password too short.
    ConflictError
        Username or e-mail already taken.
    """
    username = username.strip()
    if not username:
        raise ValueError("Username is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if get_user_by_username(session, username) is not None:
        raise ConflictError("Username already exists")
    email = email.strip().lower() if email else None
    if email and get_user_by_email(session, email) is not None:
        raise ConflictError("Email already registered")

    user = User(
        username=username,
        password_hash=hash_password(password),
        email=email,
        avatar_url=avatar_url,
    )
    session.add(user)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("Username already exists") from exc
    logger.info("Registered user %r (id=%d)", user.username, user.id)
    return user


def authenticate(session: Session, username: str, password: str) -> User | None:
    user = get_user_by_username(session, username.strip())
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


# ---------------------------------------------------------------------------
# Google accounts
# ---------------------------------------------------------------------------

def _email_verified(profile: dict) -> bool:
    # userinfo v3 sends a bool; older payloads send "true"
    return profile.get("email_verified") in (True, "true")


def find_or_create_google_user(session: Session, profile: dict) -> User:
    """Resolve a Google userinfo payload (``sub``, ``email``, ``email_verified``,
    ``name``, ``picture``) to a local user, creating one if needed.

    Only a verified address links to an existing account or is stored on a
    new one.
    """
    google_id = str(profile["sub"])
    email = (profile.get("email") or "").strip().lower() or None
    if not _email_verified(profile):
        email = None
    picture = profile.get("picture")

    user = session.scalar(select(User).where(User.google_id == google_id))
    if user is None and email:
        user = get_user_by_email(session, email)
        if user is not None:
            user.google_id = google_id
    if user is None:
        wanted = profile.get("name") or (email.split("@")[0] if email else "player")
        user = User(
            username=_unique_username(session, wanted),
            email=email,
            google_id=google_id,
            avatar_url=picture,
        )
        session.add(user)
        logger.info("Created Google user %r", user.username)
    elif picture and not user.avatar_url:
        user.avatar_url = picture
    session.commit()
    return user


# ---------------------------------------------------------------------------
# CMS one-time codes
# ---------------------------------------------------------------------------

def issue_admin_otp(session: Session, email: str, ttl_minutes: int) -> tuple[User, str]:
    """Create (or reuse) the CMS account for *email* and store a fresh code.

    The caller is responsible for checking that *email* is allowed.  Admin
    rights are granted by :func:`verify_admin_otp`, never here.  Returns the
    user and the plaintext code to be mailed.

    Raises
    ------
    ConflictError
        A non-admin password account already holds *email*.
    """
    email = email.strip().lower()
    user = get_user_by_email(session, email)
    if user is None:
        user = User(
            username=_unique_username(session, email.split("@")[0]),
            email=email,
        )
        session.add(user)
    elif user.password_hash and not user.is_admin:
        # e-mail on a password account was never verified
        logger.warning("OTP refused: %s belongs to password account %d", email, user.id)
        raise ConflictError("This e-mail belongs to a player account")

    code = f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"
    user.otp_hash = pbkdf2_sha256.hash(code)
    user.otp_expiry = datetime.now(UTC) + timedelta(minutes=ttl_minutes)
    session.commit()
    return user, code


def verify_admin_otp(session: Session, email: str, code: str) -> User | None:
    """Check *code* for *email*; consumes it and grants admin on success."""
    user = get_user_by_email(session, email)
    if user is None or not user.otp_hash:
        return None
    expiry = as_utc(user.otp_expiry)
    if expiry is None or expiry < datetime.now(UTC):
        return None
    if not pbkdf2_sha256.verify(code.strip(), user.otp_hash):
        return None

    user.otp_hash = None
    user.otp_expiry = None
    user.is_admin = True
    session.commit()
    return user
