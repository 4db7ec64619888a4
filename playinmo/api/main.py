"""
playinmo.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn playinmo.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

load_dotenv()

from playinmo import __version__  # noqa: E402
from playinmo.api.auth import router as auth_router  # noqa: E402
from playinmo.api.deps import get_engine  # noqa: E402
from playinmo.api.rate_limit import configure_rate_limiter  # noqa: E402
from playinmo.api.routes.admin import router as admin_router  # noqa: E402
from playinmo.api.routes.admin_ads import router as admin_ads_router  # noqa: E402
from playinmo.api.routes.ads import router as ads_router  # noqa: E402
from playinmo.api.routes.community import router as community_router  # noqa: E402
from playinmo.api.routes.content import router as content_router  # noqa: E402
from playinmo.api.routes.economy import router as economy_router  # noqa: E402
from playinmo.api.routes.games import router as games_router  # noqa: E402
from playinmo.api.routes.media import router as media_router  # noqa: E402
from playinmo.database.engine import init_db  # noqa: E402
from playinmo.services.upload_service import UPLOAD_DIR, ensure_upload_dir  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, seed default settings and prepare the upload directory."""
    ensure_upload_dir()

    engine = get_engine()
    init_db(engine)
    configure_rate_limiter(engine=engine)
    logger.info("PlayinMO API started (%s)", engine.url.database)
    yield
    logger.info("PlayinMO API shutting down")


app = FastAPI(
    title="PlayinMO Portal API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/api")
app.include_router(admin_ads_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(media_router, prefix="/api")
app.include_router(games_router, prefix="/api")
app.include_router(community_router, prefix="/api")
app.include_router(economy_router, prefix="/api")
app.include_router(ads_router, prefix="/api")
app.include_router(content_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


# Uploaded images and game bundles; the directory is created at startup.
app.mount(
    "/api/uploads",
    StaticFiles(directory=str(UPLOAD_DIR), check_dir=False, html=True),
    name="uploads",
)
