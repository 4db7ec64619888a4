"""
playinmo.api.routes.admin_ads — Advertisement management (JWT‑protected)
==========================================================================
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from playinmo.api.deps import get_engine, get_session
from playinmo.api.rate_limit import rate_limited_admin
from playinmo.api.routes.admin import service_errors
from playinmo.database.models import Advertisement
from playinmo.services import ad_service, admin_service

router = APIRouter(prefix="/admin/advertisements", tags=["admin"])


class AdCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    type: str = "image"
    media_url: str = Field(min_length=1, max_length=1000)
    click_url: str | None = None
    placement: str = "banner"
    priority: int = 0
    is_active: bool = True
    start_date: datetime | None = None
    end_date: datetime | None = None
    budget: float | None = None
    cost_per_click: float | None = None
    cost_per_view: float | None = None


class AdUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    type: str | None = None
    media_url: str | None = Field(default=None, min_length=1, max_length=1000)
    click_url: str | None = None
    placement: str | None = None
    priority: int | None = None
    is_active: bool | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    budget: float | None = None
    cost_per_click: float | None = None
    cost_per_view: float | None = None


@router.get("")
def list_ads(
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    return ad_service.list_ads(session)


@router.get("/stats")
def ad_stats(
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    return ad_service.ad_stats(session)


@router.post("", status_code=201)
def create_ad(
    body: AdCreate,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        ad = admin_service.create_ad(engine, actor_id=int(admin["sub"]), **body.model_dump())
    return ad_service.ad_dict(ad)


@router.get("/{ad_id}")
def get_ad(
    ad_id: int,
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    ad = session.get(Advertisement, ad_id)
    if ad is None:
        raise HTTPException(404, "Advertisement not found")
    return ad_service.ad_dict(ad)


@router.patch("/{ad_id}")
def update_ad(
    ad_id: int,
    body: AdUpdate,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        ad = admin_service.update_ad(
            engine, ad_id, actor_id=int(admin["sub"]), **body.model_dump(exclude_unset=True),
        )
    if ad is None:
        raise HTTPException(404, "Advertisement not found")
    return ad_service.ad_dict(ad)


@router.delete("/{ad_id}")
def delete_ad(
    ad_id: int,
    engine=Depends(get_engine),
    admin: dict = Depends(rate_limited_admin),
):
    if not admin_service.delete_ad(engine, ad_id, actor_id=int(admin["sub"])):
        raise HTTPException(404, "Advertisement not found")
    return {"success": True}


@router.get("/{ad_id}/analytics")
def ad_analytics(
    ad_id: int,
    days: int = Query(30, ge=1, le=365),
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    with service_errors():
        return ad_service.ad_analytics(session, ad_id, days)
