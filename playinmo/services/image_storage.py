"""
playinmo.services.image_storage — Image Hosting Chain
=======================================================

Uploaded images are offered to each configured backend in turn; the first
one that succeeds wins:

    1. ``GitHubImageStore``     — contents API, enabled by GITHUB_TOKEN + GITHUB_REPO
    2. ``CloudinaryImageStore`` — unsigned upload, enabled by
                                  CLOUDINARY_CLOUD_NAME + CLOUDINARY_UPLOAD_PRESET
    3. ``LocalImageStore``      — the uploads directory (always enabled)
    4. base64 ``data:`` URI     — last resort, stored inline in the row

A failing backend is logged at WARNING and the next one is tried.

Usage::

    chain = build_default_chain()
    stored = await chain.store("cover.png", content, "image/png")
    stored.url, stored.backend
"""

from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx

from playinmo.services import upload_service

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
CLOUDINARY_API = "https://api.cloudinary.com/v1_1"


class StorageError(RuntimeError):
    """A backend rejected or failed to store the image."""


@dataclass(frozen=True, slots=True)
class StoredImage:
    url: str
    backend: str


class ImageStore(Protocol):
    name: str

    async def store(self, filename: str, content: bytes, content_type: str) -> str: ...


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------
class GitHubImageStore:
    """Commit images into ``images/`` of a GitHub repository."""

    name = "github"

    def __init__(
        self,
        token: str,
        repo: str,
        branch: str = "main",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.repo = repo
        self.branch = branch
        self.transport = transport

    @classmethod
    def from_env(cls, transport: httpx.AsyncBaseTransport | None = None) -> GitHubImageStore | None:
        token = os.getenv("GITHUB_TOKEN", "").strip()
        repo = os.getenv("GITHUB_REPO", "").strip()
        if not token or not repo:
            return None
        branch = os.getenv("GITHUB_BRANCH", "").strip() or "main"
        return cls(token, repo, branch, transport=transport)

    async def store(self, filename: str, content: bytes, content_type: str) -> str:
        path = f"images/{filename}"
        url = f"{GITHUB_API}/repos/{self.repo}/contents/{path}"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
        }
        body = {
            "message": f"Upload image {filename}",
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.branch,
        }
        async with httpx.AsyncClient(timeout=30, transport=self.transport) as client:
            existing = await client.get(url, headers=headers, params={"ref": self.branch})
            if existing.status_code == 200:
                body["sha"] = existing.json().get("sha")
            resp = await client.put(url, headers=headers, json=body)
        if resp.status_code not in (200, 201):
            raise StorageError(f"GitHub returned {resp.status_code}")
        return f"https://raw.githubusercontent.com/{self.repo}/{self.branch}/{path}"


class CloudinaryImageStore:
    """Unsigned upload to a Cloudinary preset."""

    name = "cloudinary"

    def __init__(
        self,
        cloud_name: str,
        upload_preset: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cloud_name = cloud_name
        self.upload_preset = upload_preset
        self.transport = transport

    @classmethod
    def from_env(
        cls, transport: httpx.AsyncBaseTransport | None = None,
    ) -> CloudinaryImageStore | None:
        cloud = os.getenv("CLOUDINARY_CLOUD_NAME", "").strip()
        preset = os.getenv("CLOUDINARY_UPLOAD_PRESET", "").strip()
        if not cloud or not preset:
            return None
        return cls(cloud, preset, transport=transport)

    async def store(self, filename: str, content: bytes, content_type: str) -> str:
        async with httpx.AsyncClient(timeout=30, transport=self.transport) as client:
            resp = await client.post(
                f"{CLOUDINARY_API}/{self.cloud_name}/image/upload",
                data={"upload_preset": self.upload_preset},
                files={"file": (filename, content, content_type)},
            )
        if resp.status_code != 200:
            raise StorageError(f"Cloudinary returned {resp.status_code}")
        secure_url = resp.json().get("secure_url")
        if not secure_url:
            raise StorageError("Cloudinary response had no secure_url")
        return secure_url


class LocalImageStore:
    """Write into the uploads directory served at ``/api/uploads``."""

    name = "local"

    def __init__(self, directory: Path | None = None) -> None:
        self.directory = directory

    async def store(self, filename: str, content: bytes, content_type: str) -> str:
        directory = self.directory or upload_service.UPLOAD_DIR
        dest = directory / filename
        try:
            await _write_async(dest, content)
        except OSError as exc:
            raise StorageError(f"Local write failed: {exc}") from exc
        return f"{upload_service.UPLOAD_URL_PREFIX}{filename}"


async def _write_async(dest: Path, content: bytes) -> None:
    await asyncio.to_thread(upload_service._write, dest, content)


def to_data_uri(content: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(content).decode('ascii')}"


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------
class ImageStorageChain:
    """Try each backend in order, falling back to a data URI."""

    def __init__(self, stores: list[ImageStore]) -> None:
        self.stores = stores

    @property
    def backends(self) -> list[str]:
        return [s.name for s in self.stores] + ["base64"]

    async def store(
        self, filename: str, content: bytes, content_type: str | None = None,
    ) -> StoredImage:
        """Validate, then store with the first backend that succeeds.

        Raises ``ValueError`` when the image fails validation.
        """
        ext = upload_service.validate_image(filename, content, content_type)
        content_type = content_type or mimetypes.types_map.get(ext, "application/octet-stream")
        unique_name = f"{uuid.uuid4().hex}{ext}"

        for backend in self.stores:
            try:
                url = await backend.store(unique_name, content, content_type)
            except (httpx.HTTPError, StorageError, ValueError) as exc:
                logger.warning(
                    "Image backend %s failed for %s: %s; trying next",
                    backend.name, filename, exc,
                )
                continue
            logger.info("Stored %s via %s", filename, backend.name)
            return StoredImage(url=url, backend=backend.name)

        logger.warning("All image backends failed for %s; embedding as base64", filename)
        return StoredImage(url=to_data_uri(content, content_type), backend="base64")


def build_default_chain(
    transport: httpx.AsyncBaseTransport | None = None,
) -> ImageStorageChain:
    """Chain of every backend configured in the environment, plus local."""
    stores: list[ImageStore] = []
    github = GitHubImageStore.from_env(transport)
    if github is not None:
        stores.append(github)
    cloudinary = CloudinaryImageStore.from_env(transport)
    if cloudinary is not None:
        stores.append(cloudinary)
    stores.append(LocalImageStore())
    return ImageStorageChain(stores)
