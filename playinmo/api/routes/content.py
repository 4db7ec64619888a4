"""
playinmo.api.routes.content — Public website content
======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from playinmo.api.deps import get_session
from playinmo.services import content_service

router = APIRouter(tags=["content"])


@router.get("/site-content")
def site_content(session: Session = Depends(get_session)):
    """Nested ``{section: {key: value}}`` document for the frontend."""
    return content_service.get_site_content(session)


@router.get("/content/{section}")
def section_content(section: str, session: Session = Depends(get_session)):
    return content_service.list_section(session, section)
