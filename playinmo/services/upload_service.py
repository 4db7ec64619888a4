"""
playinmo.services.upload_service — File upload handling
=========================================================

Validates images and game bundles and stores them in a configurable
``uploads/`` directory served at ``/api/uploads``.

Games arrive either as a single ``.html`` file or as a ``.zip`` bundle
that must contain an ``index.html``; bundles are unpacked into their own
directory.
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import uuid
import zipfile
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(os.getenv("PLAYINMO_UPLOAD_DIR", "uploads"))
UPLOAD_URL_PREFIX = "/api/uploads/"
MAX_FILE_SIZE = 25 * 1024 * 1024  # 25 MB
MAX_GAME_SIZE = 100 * 1024 * 1024  # 100 MB
MAX_UNPACKED_GAME_SIZE = 250 * 1024 * 1024  # 250 MB across all bundle members
# no SVG: uploads are served same-origin
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
ALLOWED_MIME_TYPES = {
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
}
GAME_EXTENSIONS = {".html", ".htm", ".zip"}


def ensure_upload_dir() -> None:
    """Create the upload directories if they don't exist."""
    (UPLOAD_DIR / "games").mkdir(parents=True, exist_ok=True)


def validate_image(filename: str, content: bytes, content_type: str | None = None) -> str:
    """Check size, extension and MIME type; return the lower-cased extension.

    Raises
    ------
    ValueError
        If validation fails (wrong type, too large, etc.).
    """
    if not content:
        raise ValueError("Empty file")
    if len(content) > MAX_FILE_SIZE:
        raise ValueError(
            f"File too large: {len(content)} bytes (max {MAX_FILE_SIZE // 1024 // 1024}MB)"
        )

    ext = Path(filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValueError(
            f"File type not allowed: {ext!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    if content_type and content_type not in ALLOWED_MIME_TYPES:
        raise ValueError(
            f"MIME type not allowed: {content_type!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_MIME_TYPES))}"
        )
    return ext


def _write(dest: Path, content: bytes) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(content)


# ---------------------------------------------------------------------------
# Game bundles
# ---------------------------------------------------------------------------

def _extract_bundle(content: bytes, dest: Path) -> None:
    """Unpack a zip bundle into *dest*, refusing unsafe member paths and
    bundles whose members add up to more than ``MAX_UNPACKED_GAME_SIZE``."""
    try:
        archive = zipfile.ZipFile(io.BytesIO(content))
    except zipfile.BadZipFile as exc:
        raise ValueError("Game bundle is not a valid zip archive") from exc

    with archive:
        members = archive.infolist()
        names = [info.filename for info in members]
        for name in names:
            member = PurePosixPath(name)
            if member.is_absolute() or ".." in member.parts:
                raise ValueError(f"Unsafe path in game bundle: {name!r}")
        # extraction never inflates a member past its declared file_size
        unpacked = sum(info.file_size for info in members)
        if unpacked > MAX_UNPACKED_GAME_SIZE:
            raise ValueError(
                f"Game bundle unpacks to {unpacked} bytes "
                f"(max {MAX_UNPACKED_GAME_SIZE // 1024 // 1024}MB)"
            )
        if "index.html" not in names:
            raise ValueError("Game bundle must contain index.html at its root")
        dest.mkdir(parents=True, exist_ok=True)
        archive.extractall(dest)


async def save_game(filename: str, content: bytes) -> dict:
    """Persist an uploaded game.

    Returns ``{"game_url": ..., "file_path": ...}`` where ``game_url`` is
    the entry page to embed.
    """
    if not content:
        raise ValueError("Empty file")
    if len(content) > MAX_GAME_SIZE:
        raise ValueError(
            f"Game too large: {len(content)} bytes (max {MAX_GAME_SIZE // 1024 // 1024}MB)"
        )
    ext = Path(filename).suffix.lower()
    if ext not in GAME_EXTENSIONS:
        raise ValueError(
            f"Game file type not allowed: {ext!r}. "
            f"Allowed: {', '.join(sorted(GAME_EXTENSIONS))}"
        )

    game_key = uuid.uuid4().hex
    if ext == ".zip":
        dest = UPLOAD_DIR / "games" / game_key
        await asyncio.to_thread(_extract_bundle, content, dest)
        rel = f"games/{game_key}/index.html"
    else:
        rel = f"games/{game_key}{ext}"
        await asyncio.to_thread(_write, UPLOAD_DIR / rel, content)

    logger.info("Stored game upload %r as %s", filename, rel)
    return {"game_url": f"{UPLOAD_URL_PREFIX}{rel}", "file_path": rel}

