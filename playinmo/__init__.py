"""
PlayinMO — Browser Gaming Portal API
=====================================
Catalog of embeddable web games, player accounts, leaderboards, chat,
reviews, an achievements/points/rewards economy, advertisement serving,
and an admin content-management API.

Package layout::

    playinmo/
    ├── __main__.py        # python -m playinmo (seed + serve)
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Rarity tables, rating scale, slug helper
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default settings + demo catalog
    ├── engine/
    │   └── achievements.py  # Pure achievement trigger evaluation
    ├── services/
    │   ├── catalog_service.py   # Games + categories
    │   ├── account_service.py   # Users, passwords, OTP
    │   ├── score_service.py     # Scores + leaderboard
    │   ├── chat_service.py      # Chat messages
    │   ├── review_service.py    # Reviews + game rating
    │   ├── points_service.py    # Points ledger
    │   ├── achievement_service.py  # Progress + unlocks
    │   ├── reward_service.py    # Rewards shop
    │   ├── ad_service.py        # Ad serving + analytics
    │   ├── content_service.py   # CMS website content
    │   ├── email_service.py     # SendGrid OTP mail
    │   ├── image_storage.py     # GitHub → Cloudinary → local → base64
    │   ├── upload_service.py    # Local file uploads
    │   ├── settings_service.py  # Settings table CRUD
    │   ├── admin_service.py     # Audit-logged admin mutations
    │   └── errors.py            # ConflictError
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine, config, JWT dependencies
        ├── rate_limit.py  # Per-admin mutation throttle
        ├── auth.py        # Password login, Google OAuth2, admin OTP → JWT
        └── routes/
            ├── games.py, community.py, economy.py, ads.py, content.py
            └── admin.py, admin_ads.py, media.py   # CMS (admin JWT)
"""

__version__ = "0.1.0"
