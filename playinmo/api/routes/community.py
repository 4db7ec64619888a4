"""
playinmo.api.routes.community — Scores, leaderboards & chat
=============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from playinmo.api.deps import get_current_user, get_session
from playinmo.database.models import User
from playinmo.services import chat_service, score_service
from playinmo.services.settings_service import get_int_setting

router = APIRouter(tags=["community"])


class ScoreBody(BaseModel):
    game_id: int
    score: int = Field(ge=0)
    won: bool = False


class ChatBody(BaseModel):
    message: str = Field(min_length=1, max_length=5000)


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------
@router.get("/scores/game/{game_id}")
def game_scores(
    game_id: int,
    limit: int | None = Query(None, ge=1, le=100),
    session: Session = Depends(get_session),
):
    limit = limit or get_int_setting(session, "leaderboard.default_limit", 10)
    return score_service.top_scores(session, game_id, limit)


@router.post("/scores", status_code=201)
def submit_score(
    body: ScoreBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    try:
        return score_service.submit_score(session, user.id, body.game_id, body.score, body.won)
    except LookupError as exc:
        raise HTTPException(404, str(exc))
    except ValueError as exc:
        raise HTTPException(400, str(exc))


@router.get("/leaderboard")
def leaderboard(
    limit: int | None = Query(None, ge=1, le=100),
    session: Session = Depends(get_session),
):
    limit = limit or get_int_setting(session, "leaderboard.default_limit", 10)
    return score_service.top_players(session, limit)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------
@router.get("/chat")
def chat_messages(
    limit: int | None = Query(None, ge=1, le=100),
    session: Session = Depends(get_session),
):
    limit = limit or get_int_setting(session, "chat.default_limit", 20)
    return chat_service.list_messages(session, limit)


@router.post("/chat", status_code=201)
def post_chat(
    body: ChatBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    try:
        return chat_service.post_message(session, user.id, body.message)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
