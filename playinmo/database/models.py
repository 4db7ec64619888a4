"""
playinmo.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- users              — Player accounts (password, Google, CMS admin OTP)
- game_categories    — Catalog taxonomy (unique name + slug)
- games              — Catalog entries pointing at embeddable web games
- game_scores        — Submitted scores (feeds leaderboards)
- chat_messages      — Lobby chat
- game_reviews       — One review per user per game
- website_content    — CMS text/image blocks keyed by (section, key)
- achievements       — Admin-defined achievements with typed triggers
- user_achievements  — Per-user progress / unlocks
- user_points        — One points balance row per user
- points_transactions — Append-only points ledger
- rewards            — Cosmetic shop items
- user_rewards       — Purchased rewards (+ equipped flag)
- advertisements     — Ad creatives per placement
- ad_analytics       — View / click events per ad
- email_logs         — Outbound e-mail attempts
- admin_log          — Append-only CMS audit trail
- settings           — Key/value economy tuning
- oauth_states       — One-time Google OAuth CSRF tokens
- media_files        — Images stored through the storage chain
- admin_rate_limit_events — Durable admin mutation throttle state
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all PlayinMO ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class TriggerType(enum.StrEnum):
    """Defines what condition unlocks an achievement."""
    STAT_THRESHOLD = "stat_threshold"
    SCORE_THRESHOLD = "score_threshold"
    POINTS_MILESTONE = "points_milestone"
    FIRST_EVENT = "first_event"
    MANUAL = "manual"


class PortalEvent(enum.StrEnum):
    """User actions that trigger achievement evaluation."""
    SCORE_SUBMITTED = "score_submitted"
    REVIEW_WRITTEN = "review_written"
    CHAT_MESSAGE = "chat_message"
    REWARD_PURCHASED = "reward_purchased"


class PointsSource(enum.StrEnum):
    """Where a points ledger entry came from."""
    SCORE = "score"
    REVIEW = "review"
    CHAT = "chat"
    ACHIEVEMENT = "achievement"
    PURCHASE = "purchase"
    ADMIN = "admin"


class AdminActionType(enum.StrEnum):
    """Categories of admin mutations recorded in admin_log."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    MANUAL_AWARD = "MANUAL_AWARD"
    LOGIN = "LOGIN"


class EmailStatus(enum.StrEnum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), default=None)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, default=None)
    google_id: Mapped[str | None] = mapped_column(String(64), unique=True, default=None)
    avatar_url: Mapped[str | None] = mapped_column(String(500), default=None)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    otp_hash: Mapped[str | None] = mapped_column(String(255), default=None)
    otp_expiry: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    scores: Mapped[list[GameScore]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    reviews: Mapped[list[GameReview]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    points: Mapped[UserPoints | None] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
class GameCategory(Base):
    __tablename__ = "game_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    image_url: Mapped[str | None] = mapped_column(String(500), default=None)

    games: Mapped[list[Game]] = relationship(back_populates="category")

    def __repr__(self) -> str:
        return f"<GameCategory id={self.id} slug={self.slug!r}>"


class Game(Base):
    __tablename__ = "games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    thumbnail_url: Mapped[str | None] = mapped_column(String(1000), default=None)
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("game_categories.id", ondelete="RESTRICT"), nullable=True
    )
    game_url: Mapped[str | None] = mapped_column(String(1000), default=None)
    file_path: Mapped[str | None] = mapped_column(String(500), default=None)
    developer: Mapped[str | None] = mapped_column(String(200), default=None)
    instructions: Mapped[str | None] = mapped_column(Text, default=None)
    release_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)
    is_new: Mapped[bool] = mapped_column(Boolean, default=False)
    is_hot: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    plays: Mapped[int] = mapped_column(Integer, default=0)
    # Average review rating × 10 (0..50)
    rating: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    category: Mapped[GameCategory | None] = relationship(back_populates="games")
    scores: Mapped[list[GameScore]] = relationship(
        back_populates="game", cascade="all, delete-orphan"
    )
    reviews: Mapped[list[GameReview]] = relationship(
        back_populates="game", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_games_category", "category_id"),
        Index("ix_games_featured", "is_featured"),
    )

    def __repr__(self) -> str:
        return f"<Game id={self.id} title={self.title!r}>"


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------
class GameScore(Base):
    __tablename__ = "game_scores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    game_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    won: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="scores")
    game: Mapped[Game] = relationship(back_populates="scores")

    __table_args__ = (
        Index("ix_game_scores_game_score", "game_id", "score"),
        Index("ix_game_scores_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<GameScore user={self.user_id} game={self.game_id} score={self.score}>"


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------
class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship()

    __table_args__ = (
        Index("ix_chat_messages_created", "created_at"),
    )


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------
class GameReview(Base):
    __tablename__ = "game_reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    game_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped[User] = relationship(back_populates="reviews")
    game: Mapped[Game] = relationship(back_populates="reviews")

    __table_args__ = (
        UniqueConstraint("user_id", "game_id", name="uq_game_reviews_user_game"),
    )

    def __repr__(self) -> str:
        return f"<GameReview user={self.user_id} game={self.game_id} rating={self.rating}>"


# ---------------------------------------------------------------------------
# Website content (CMS)
# ---------------------------------------------------------------------------
class WebsiteContent(Base):
    __tablename__ = "website_content"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    section: Mapped[str] = mapped_column(String(100), nullable=False)
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    value_type: Mapped[str] = mapped_column(String(20), nullable=False, default="text")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("section", "key", name="uq_website_content_section_key"),
    )

    def __repr__(self) -> str:
        return f"<WebsiteContent {self.section}.{self.key}>"


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------
class Achievement(Base):
    __tablename__ = "achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    icon_url: Mapped[str | None] = mapped_column(String(500), default=None)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    trigger_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default=TriggerType.MANUAL.value
    )
    condition: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    points: Mapped[int] = mapped_column(Integer, default=0)
    rarity: Mapped[str] = mapped_column(String(20), nullable=False, default="common")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    earned_by: Mapped[list[UserAchievement]] = relationship(
        back_populates="achievement", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Achievement id={self.id} name={self.name!r}>"


class UserAchievement(Base):
    __tablename__ = "user_achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False
    )
    progress: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    unlocked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    granted_by: Mapped[int | None] = mapped_column(Integer, default=None)

    achievement: Mapped[Achievement] = relationship(back_populates="earned_by")

    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="uq_user_achievements_user_ach"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserAchievement user={self.user_id} "
            f"achievement={self.achievement_id} done={self.is_completed}>"
        )


# ---------------------------------------------------------------------------
# Points ledger
# ---------------------------------------------------------------------------
class UserPoints(Base):
    __tablename__ = "user_points"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    # Net earned points (admin deductions lower it)
    total_points: Mapped[int] = mapped_column(Integer, default=0)
    # Spendable balance
    available_points: Mapped[int] = mapped_column(Integer, default=0)
    # Everything ever earned; never decreases
    lifetime_points: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped[User] = relationship(back_populates="points")

    def __repr__(self) -> str:
        return f"<UserPoints user={self.user_id} available={self.available_points}>"


class PointsTransaction(Base):
    __tablename__ = "points_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(200), nullable=False)
    source: Mapped[str] = mapped_column(String(30), nullable=False)
    reference_id: Mapped[int | None] = mapped_column(Integer, default=None)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_points_transactions_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<PointsTransaction user={self.user_id} delta={self.delta} src={self.source}>"


# ---------------------------------------------------------------------------
# Rewards shop
# ---------------------------------------------------------------------------
class Reward(Base):
    __tablename__ = "rewards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # avatar_frame, badge, title, theme, …
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    value: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    cost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="cosmetic")
    rarity: Mapped[str] = mapped_column(String(20), nullable=False, default="common")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Reward id={self.id} name={self.name!r} cost={self.cost}>"


class UserReward(Base):
    __tablename__ = "user_rewards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reward_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("rewards.id", ondelete="CASCADE"), nullable=False
    )
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    is_equipped: Mapped[bool] = mapped_column(Boolean, default=False)

    reward: Mapped[Reward] = relationship()

    __table_args__ = (
        UniqueConstraint("user_id", "reward_id", name="uq_user_rewards_user_reward"),
    )

    def __repr__(self) -> str:
        return f"<UserReward user={self.user_id} reward={self.reward_id}>"


# ---------------------------------------------------------------------------
# Advertisements
# ---------------------------------------------------------------------------
class Advertisement(Base):
    __tablename__ = "advertisements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="image")
    media_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    click_url: Mapped[str | None] = mapped_column(String(1000), default=None)
    placement: Mapped[str] = mapped_column(String(30), nullable=False, default="banner")
    priority: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    budget: Mapped[float | None] = mapped_column(Float, default=None)
    cost_per_click: Mapped[float | None] = mapped_column(Float, default=None)
    cost_per_view: Mapped[float | None] = mapped_column(Float, default=None)
    view_count: Mapped[int] = mapped_column(Integer, default=0)
    click_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    analytics: Mapped[list[AdAnalytics]] = relationship(
        back_populates="advertisement", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_advertisements_placement", "placement", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Advertisement id={self.id} placement={self.placement!r}>"


class AdAnalytics(Base):
    __tablename__ = "ad_analytics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    advertisement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("advertisements.id", ondelete="CASCADE"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(10), nullable=False)
    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    ip_address: Mapped[str | None] = mapped_column(String(45), default=None)
    user_agent: Mapped[str | None] = mapped_column(String(500), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    advertisement: Mapped[Advertisement] = relationship(back_populates="analytics")

    __table_args__ = (
        Index("ix_ad_analytics_ad_time", "advertisement_id", "created_at"),
    )


# ---------------------------------------------------------------------------
# EmailLog — every outbound mail attempt
# ---------------------------------------------------------------------------
class EmailLog(Base):
    __tablename__ = "email_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    email_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    error: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_email_logs_created", "created_at"),
    )


# ---------------------------------------------------------------------------
# AdminLog — append-only audit trail
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id} action={self.action_type}>"


# ---------------------------------------------------------------------------
# Setting — admin-configurable key-value store
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Economy knobs (points per score, per review, chat limits) live here so
    admins can adjust values without redeploying.  Values are stored as
    JSON strings.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_settings_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"


# ---------------------------------------------------------------------------
# OAuthState — one-time CSRF tokens for the Google callback
# ---------------------------------------------------------------------------
class OAuthState(Base):
    __tablename__ = "oauth_states"

    state: Mapped[str] = mapped_column(String(128), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_oauth_states_created_at", "created_at"),
    )


# ---------------------------------------------------------------------------
# MediaFile — images stored through the storage chain
# ---------------------------------------------------------------------------
class MediaFile(Base):
    __tablename__ = "media_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    backend: Mapped[str] = mapped_column(String(20), nullable=False)
    content_type: Mapped[str | None] = mapped_column(String(100), default=None)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    uploaded_by: Mapped[int | None] = mapped_column(Integer, default=None)

    def __repr__(self) -> str:
        return f"<MediaFile id={self.id} backend={self.backend!r}>"


# ---------------------------------------------------------------------------
# AdminRateLimitEvent — durable mutation events for admin throttling
# ---------------------------------------------------------------------------
class AdminRateLimitEvent(Base):
    __tablename__ = "admin_rate_limit_events"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    admin_id: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_admin_rate_limit_admin_ts", "admin_id", timestamp.desc()),
        Index("ix_admin_rate_limit_ts", "timestamp"),
    )
