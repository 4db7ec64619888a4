"""
playinmo.services.chat_service — Lobby Chat
=============================================
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from playinmo.constants import isoformat
from playinmo.database.models import ChatMessage, PointsSource, PortalEvent, User
from playinmo.services import achievement_service, points_service
from playinmo.services.account_service import user_dict
from playinmo.services.settings_service import get_int_setting


def message_dict(m: ChatMessage, user: User) -> dict:
    return {
        "id": m.id,
        "user_id": m.user_id,
        "message": m.message,
        "created_at": isoformat(m.created_at),
        "user": user_dict(user),
    }


def list_messages(session: Session, limit: int = 20) -> list[dict]:
    """Newest first."""
    rows = session.execute(
        select(ChatMessage, User)
        .join(User, ChatMessage.user_id == User.id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(limit)
    ).all()
    return [message_dict(m, u) for m, u in rows]


def post_message(session: Session, user_id: int, message: str) -> dict:
    """Store a trimmed message.

    Raises ``ValueError`` for an empty message or one longer than
    ``chat.max_message_length``.
    """
    text = message.strip()
    if not text:
        raise ValueError("Message cannot be empty")
    max_len = get_int_setting(session, "chat.max_message_length", 500)
    if len(text) > max_len:
        raise ValueError(f"Message exceeds {max_len} characters")

    user = session.get(User, user_id)
    if user is None:
        raise LookupError("User not found")

    row = ChatMessage(user_id=user_id, message=text)
    session.add(row)
    session.flush()

    per_message = get_int_setting(session, "points.per_chat_message", 0)
    if per_message:
        points_service.award_points(
            session, user_id, per_message, "Chat message", PointsSource.CHAT,
            reference_id=row.id,
        )
    achievement_service.evaluate_user(session, user_id, PortalEvent.CHAT_MESSAGE)
    session.commit()
    return message_dict(row, user)
