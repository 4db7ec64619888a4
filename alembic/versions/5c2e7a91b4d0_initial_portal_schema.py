"""Initial portal schema

Revision ID: 5c2e7a91b4d0
Revises:
Create Date: 2026-10-19 09:12:44.518203

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c2e7a91b4d0'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at(name: str = "created_at", **kw) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), **kw)


def upgrade() -> None:
    """Create every portal table."""

    # --- accounts ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("google_id", sa.String(64), nullable=True, unique=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("is_admin", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("otp_hash", sa.String(255), nullable=True),
        sa.Column("otp_expiry", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )

    # --- catalog ---
    op.create_table(
        "game_categories",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
    )
    op.create_table(
        "games",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("image_url", sa.String(1000), nullable=False, server_default=""),
        sa.Column("thumbnail_url", sa.String(1000), nullable=True),
        sa.Column(
            "category_id", sa.Integer,
            sa.ForeignKey("game_categories.id", ondelete="RESTRICT"), nullable=True,
        ),
        sa.Column("game_url", sa.String(1000), nullable=True),
        sa.Column("file_path", sa.String(500), nullable=True),
        sa.Column("developer", sa.String(200), nullable=True),
        sa.Column("instructions", sa.Text, nullable=True),
        sa.Column("release_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_featured", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_new", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_hot", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("plays", sa.Integer, nullable=False, server_default="0"),
        sa.Column("rating", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
        _created_at("updated_at"),
    )
    op.create_index("ix_games_category", "games", ["category_id"])
    op.create_index("ix_games_featured", "games", ["is_featured"])

    # --- community ---
    op.create_table(
        "game_scores",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("game_id", sa.Integer, sa.ForeignKey("games.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("won", sa.Boolean, nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index("ix_game_scores_game_score", "game_scores", ["game_id", "score"])
    op.create_index("ix_game_scores_user", "game_scores", ["user_id"])

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        _created_at(),
    )
    op.create_index("ix_chat_messages_created", "chat_messages", ["created_at"])

    op.create_table(
        "game_reviews",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("game_id", sa.Integer, sa.ForeignKey("games.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("comment", sa.Text, nullable=True),
        _created_at(),
        _created_at("updated_at"),
        sa.UniqueConstraint("user_id", "game_id", name="uq_game_reviews_user_game"),
    )

    # --- CMS ---
    op.create_table(
        "website_content",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("section", sa.String(100), nullable=False),
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("value", sa.Text, nullable=False, server_default=""),
        sa.Column("value_type", sa.String(20), nullable=False, server_default="text"),
        _created_at(),
        _created_at("updated_at"),
        sa.UniqueConstraint("section", "key", name="uq_website_content_section_key"),
    )

    # --- achievements & points ---
    op.create_table(
        "achievements",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("icon_url", sa.String(500), nullable=True),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("trigger_type", sa.String(30), nullable=False, server_default="manual"),
        sa.Column("condition", postgresql.JSONB, nullable=True, server_default="{}"),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("rarity", sa.String(20), nullable=False, server_default="common"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_table(
        "user_achievements",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("achievement_id", sa.Integer,
                  sa.ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False),
        sa.Column("progress", postgresql.JSONB, nullable=True, server_default="{}"),
        sa.Column("is_completed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("granted_by", sa.Integer, nullable=True),
        sa.UniqueConstraint("user_id", "achievement_id", name="uq_user_achievements_user_ach"),
    )
    op.create_table(
        "user_points",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"),
                  nullable=False, unique=True),
        sa.Column("total_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("available_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("lifetime_points", sa.Integer, nullable=False, server_default="0"),
        _created_at("updated_at"),
    )
    op.create_table(
        "points_transactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("delta", sa.Integer, nullable=False),
        sa.Column("reason", sa.String(200), nullable=False),
        sa.Column("source", sa.String(30), nullable=False),
        sa.Column("reference_id", sa.Integer, nullable=True),
        sa.Column("balance_after", sa.Integer, nullable=False),
        _created_at(),
    )
    op.create_index(
        "ix_points_transactions_user_time", "points_transactions", ["user_id", "created_at"],
    )

    # --- rewards shop ---
    op.create_table(
        "rewards",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("value", postgresql.JSONB, nullable=True, server_default="{}"),
        sa.Column("cost", sa.Integer, nullable=False, server_default="0"),
        sa.Column("category", sa.String(50), nullable=False, server_default="cosmetic"),
        sa.Column("rarity", sa.String(20), nullable=False, server_default="common"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_table(
        "user_rewards",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("reward_id", sa.Integer, sa.ForeignKey("rewards.id", ondelete="CASCADE"),
                  nullable=False),
        _created_at("unlocked_at"),
        sa.Column("is_equipped", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("user_id", "reward_id", name="uq_user_rewards_user_reward"),
    )

    # --- advertising ---
    op.create_table(
        "advertisements",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default="image"),
        sa.Column("media_url", sa.String(1000), nullable=False),
        sa.Column("click_url", sa.String(1000), nullable=True),
        sa.Column("placement", sa.String(30), nullable=False, server_default="banner"),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("budget", sa.Float, nullable=True),
        sa.Column("cost_per_click", sa.Float, nullable=True),
        sa.Column("cost_per_view", sa.Float, nullable=True),
        sa.Column("view_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("click_count", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
        _created_at("updated_at"),
    )
    op.create_index(
        "ix_advertisements_placement", "advertisements", ["placement", "is_active"],
    )
    op.create_table(
        "ad_analytics",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("advertisement_id", sa.Integer,
                  sa.ForeignKey("advertisements.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_type", sa.String(10), nullable=False),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"),
                  nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_ad_analytics_ad_time", "ad_analytics", ["advertisement_id", "created_at"],
    )

    # --- operations ---
    op.create_table(
        "email_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("recipient", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("email_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("error", sa.Text, nullable=True),
        _created_at(),
    )
    op.create_index("ix_email_logs_created", "email_logs", ["created_at"])

    op.create_table(
        "admin_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.Integer, nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("target_table", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("before_snapshot", postgresql.JSONB, nullable=True),
        sa.Column("after_snapshot", postgresql.JSONB, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        _created_at("timestamp"),
    )
    op.create_index("ix_admin_log_actor_time", "admin_log", ["actor_id", "timestamp"])
    op.create_index(
        "ix_admin_log_target", "admin_log", ["target_table", "target_id", "timestamp"],
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text, nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.Text, nullable=True),
        _created_at("updated_at"),
    )
    op.create_index("ix_settings_category", "settings", ["category"])

    op.create_table(
        "oauth_states",
        sa.Column("state", sa.String(128), primary_key=True),
        _created_at(nullable=False),
    )
    op.create_index("ix_oauth_states_created_at", "oauth_states", ["created_at"])

    op.create_table(
        "media_files",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("original_name", sa.String(255), nullable=False),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("backend", sa.String(20), nullable=False),
        sa.Column("content_type", sa.String(100), nullable=True),
        sa.Column("size_bytes", sa.Integer, nullable=False),
        _created_at("uploaded_at", nullable=False),
        sa.Column("uploaded_by", sa.Integer, nullable=True),
    )

    op.create_table(
        "admin_rate_limit_events",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("admin_id", sa.String(64), nullable=False),
        _created_at("timestamp", nullable=False),
    )
    op.create_index(
        "ix_admin_rate_limit_admin_ts", "admin_rate_limit_events",
        ["admin_id", sa.text("timestamp DESC")],
    )
    op.create_index("ix_admin_rate_limit_ts", "admin_rate_limit_events", ["timestamp"])


def downgrade() -> None:
    """Drop every portal table, children first."""
    for table in (
        "admin_rate_limit_events",
        "media_files",
        "oauth_states",
        "settings",
        "admin_log",
        "email_logs",
        "ad_analytics",
        "advertisements",
        "user_rewards",
        "rewards",
        "points_transactions",
        "user_points",
        "user_achievements",
        "achievements",
        "website_content",
        "game_reviews",
        "chat_messages",
        "game_scores",
        "games",
        "game_categories",
        "users",
    ):
        op.drop_table(table)
