"""
playinmo.api.routes.ads — Public ad serving & event tracking
==============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from playinmo.api.deps import get_optional_user, get_session
from playinmo.database.models import User
from playinmo.services import ad_service
from playinmo.services.settings_service import get_setting_value

router = APIRouter(prefix="/advertisements", tags=["ads"])


def _serve(session: Session, placement: str | None) -> list[dict]:
    if not get_setting_value(session, "ads.enabled", True):
        return []
    return [ad_service.ad_dict(a) for a in ad_service.servable_ads(session, placement)]


@router.get("")
def list_servable(
    placement: str | None = Query(None, max_length=30),
    session: Session = Depends(get_session),
):
    return _serve(session, placement)


@router.get("/placement/{placement}")
def by_placement(placement: str, session: Session = Depends(get_session)):
    return _serve(session, placement)


def _track(event_type: str, ad_id: int, request: Request, user: User | None, session: Session):
    try:
        ad = ad_service.record_event(
            session,
            ad_id,
            event_type,
            user_id=user.id if user else None,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
    except LookupError as exc:
        raise HTTPException(404, str(exc))
    return {"id": ad.id, "view_count": ad.view_count, "click_count": ad.click_count}


@router.post("/{ad_id}/view")
def record_view(
    ad_id: int,
    request: Request,
    user: User | None = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    return _track("view", ad_id, request, user, session)


@router.post("/{ad_id}/click")
def record_click(
    ad_id: int,
    request: Request,
    user: User | None = Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    return _track("click", ad_id, request, user, session)
