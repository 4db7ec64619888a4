"""
playinmo.api.routes.media — Image uploads through the storage chain
=====================================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, UploadFile
from sqlalchemy import select
from sqlalchemy.orm import Session

from playinmo.api.deps import get_engine, get_image_chain, get_session
from playinmo.api.rate_limit import rate_limited_admin
from playinmo.constants import isoformat
from playinmo.database.engine import run_db
from playinmo.database.models import MediaFile
from playinmo.services import admin_service
from playinmo.services.image_storage import ImageStorageChain

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/images")
def list_images(
    session: Session = Depends(get_session),
    admin: dict = Depends(rate_limited_admin),
):
    """List stored images, newest first."""
    files = session.scalars(
        select(MediaFile).order_by(MediaFile.uploaded_at.desc(), MediaFile.id.desc())
    ).all()
    return [
        {
            "id": f.id,
            "url": f.url,
            "backend": f.backend,
            "original_name": f.original_name,
            "content_type": f.content_type,
            "size_bytes": f.size_bytes,
            "uploaded_at": isoformat(f.uploaded_at),
        }
        for f in files
    ]


@router.post("/images", status_code=201)
async def upload_image(
    file: UploadFile,
    engine: Any = Depends(get_engine),
    chain: ImageStorageChain = Depends(get_image_chain),
    admin: dict = Depends(rate_limited_admin),
):
    """Store an image with the first backend that accepts it."""
    content = await file.read()
    filename = file.filename or "upload.png"
    try:
        stored = await chain.store(filename, content, file.content_type)
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc

    media = await run_db(
        admin_service.record_media,
        engine,
        actor_id=int(admin["sub"]),
        original_name=filename,
        url=stored.url,
        backend=stored.backend,
        content_type=file.content_type,
        size_bytes=len(content),
    )
    return {"id": media.id, "url": stored.url, "backend": stored.backend}
