"""
playinmo.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for **infrastructure-only** settings (site identity,
API port, CMS admin e-mails, token lifetimes).  Economy tuning (points per
score, chat limits, leaderboard sizes) lives in the ``settings`` database
table, editable from the admin API.

Usage::

    from playinmo.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.site_name)         # "PlayinMO"
    print(cfg.admin_emails)      # ("admin@playinmo.com",)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure/identity only.
# Economy tuning lives in the DB ``settings`` table.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PortalConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    site_name: str
    site_url: str

    # API
    api_port: int

    # CMS access: only these addresses may request a login code
    admin_emails: tuple[str, ...] = field(default_factory=tuple)

    # Email
    email_from: str = "noreply@playinmo.com"

    # Token lifetimes
    otp_ttl_minutes: int = 10
    jwt_ttl_hours: int = 12

    def is_admin_email(self, email: str) -> bool:
        return email.strip().lower() in {e.lower() for e in self.admin_emails}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> PortalConfig:
    """Read *path* and return a :class:`PortalConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return PortalConfig(
        site_name=raw["site_name"],
        site_url=str(raw["site_url"]).rstrip("/"),
        api_port=int(raw["api_port"]),
        admin_emails=tuple(
            str(e).strip() for e in raw.get("admin_emails") or [] if str(e).strip()
        ),
        email_from=raw.get("email_from") or "noreply@playinmo.com",
        otp_ttl_minutes=int(raw.get("otp_ttl_minutes", 10)),
        jwt_ttl_hours=int(raw.get("jwt_ttl_hours", 12)),
    )
