"""Initial schema: users, sessions, recipes, community, audit, notifications, views

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str, nullable: bool = True, server_default: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.func.now() if server_default else None,
    )


def _json_list(name: str) -> sa.Column:
    return sa.Column(name, postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb"))


def _flag(name: str, default: bool) -> sa.Column:
    return sa.Column(name, sa.Boolean, nullable=False, server_default=sa.true() if default else sa.false())


def upgrade() -> None:
    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(10), nullable=False, server_default="USER"),
        _flag("terms_accepted", False),
        sa.Column("avatar_url", sa.Text, nullable=True),
        _flag("is_email_verified", False),
        sa.Column("email_verification_token", sa.String(64), nullable=True),
        _ts("email_verification_expires_at", server_default=False),
        sa.Column("reset_token", sa.String(64), nullable=True),
        _ts("reset_token_expires_at", server_default=False),
        sa.Column("failed_login_attempts", sa.Integer, nullable=False, server_default="0"),
        _ts("last_failed_login_at", server_default=False),
        _ts("blocked_until", server_default=False),
        _flag("is_banned", False),
        _ts("banned_at", server_default=False),
        sa.Column("banned_by", sa.String(36), nullable=True),
        sa.Column("ban_reason", sa.Text, nullable=True),
        sa.Column("google_id", sa.String(255), unique=True, nullable=True),
        sa.Column("oauth_provider", sa.String(20), nullable=True),
        _ts("last_login_at", server_default=False),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_created_at", "users", ["created_at"])
    op.create_index("ix_users_email_verification_token", "users", ["email_verification_token"])
    op.create_index("ix_users_reset_token", "users", ["reset_token"])

    # Sessions
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token_hash", sa.String(64), unique=True, nullable=False),
        _ts("expires_at", nullable=False, server_default=False),
        sa.Column("user_agent", sa.Text, nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])
    op.create_index("ix_sessions_expires_at", "sessions", ["expires_at"])

    # Recipes
    op.create_table(
        "recipes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("author_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("main_ingredient", sa.String(100), nullable=False),
        _json_list("ingredients"),
        _json_list("instructions"),
        sa.Column("prep_time", sa.Integer, nullable=False, server_default="0"),
        sa.Column("cooking_time", sa.Integer, nullable=False, server_default="0"),
        sa.Column("servings", sa.Integer, nullable=False, server_default="1"),
        sa.Column("difficulty", sa.String(10), nullable=False, server_default="MEDIUM"),
        _json_list("meal_type"),
        _json_list("diet_type"),
        sa.Column("cuisine_type", sa.String(100), nullable=True),
        _json_list("allergies"),
        _json_list("image_urls"),
        sa.Column("calories", sa.Float, nullable=True),
        sa.Column("protein", sa.Float, nullable=True),
        sa.Column("carbs", sa.Float, nullable=True),
        sa.Column("fat", sa.Float, nullable=True),
        sa.Column("fiber", sa.Float, nullable=True),
        sa.Column("sodium", sa.Float, nullable=True),
        sa.Column("status", sa.String(10), nullable=False, server_default="PENDING"),
        _ts("approved_at", server_default=False),
        sa.Column("approved_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("admin_note", sa.Text, nullable=True),
        _ts("rejected_at", server_default=False),
        sa.Column("rejected_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("average_rating", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_ratings", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_comments", sa.Integer, nullable=False, server_default="0"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_recipes_author_id", "recipes", ["author_id"])
    op.create_index("ix_recipes_status_created_at", "recipes", ["status", "created_at"])
    op.create_index("ix_recipes_main_ingredient", "recipes", ["main_ingredient"])

    # Comments (threaded)
    op.create_table(
        "comments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("parent_id", sa.String(36), sa.ForeignKey("comments.id", ondelete="CASCADE"), nullable=True),
        sa.Column("content", sa.Text, nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_comments_recipe_id_created_at", "comments", ["recipe_id", "created_at"])
    op.create_index("ix_comments_user_id", "comments", ["user_id"])
    op.create_index("ix_comments_parent_id", "comments", ["parent_id"])

    # Ratings
    op.create_table(
        "ratings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rating", sa.Integer, nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("recipe_id", "user_id", name="uq_rating_recipe_user"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_rating_range"),
    )
    op.create_index("ix_ratings_recipe_id", "ratings", ["recipe_id"])

    # Saved recipes
    op.create_table(
        "saved_recipes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        _ts("saved_at"),
        sa.UniqueConstraint("user_id", "recipe_id", name="uq_saved_user_recipe"),
    )
    op.create_index("ix_saved_recipes_user_id_saved_at", "saved_recipes", ["user_id", "saved_at"])

    # Audit log (admin_id is not a FK so rows outlive deleted admins)
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("admin_id", sa.String(36), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("target_type", sa.String(20), nullable=False),
        sa.Column("target_id", sa.String(36), nullable=False),
        sa.Column("target_name", sa.String(255), nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("details", postgresql.JSONB, nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        _ts("timestamp"),
    )
    op.create_index("ix_audit_logs_admin_id", "audit_logs", ["admin_id"])
    op.create_index("ix_audit_logs_target", "audit_logs", ["target_type", "target_id"])
    op.create_index("ix_audit_logs_timestamp", "audit_logs", ["timestamp"])

    # Notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("priority", sa.String(10), nullable=False, server_default="MEDIUM"),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id", ondelete="SET NULL"), nullable=True),
        sa.Column("comment_id", sa.String(36), sa.ForeignKey("comments.id", ondelete="SET NULL"), nullable=True),
        sa.Column("rating_id", sa.String(36), sa.ForeignKey("ratings.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action_type", sa.String(30), nullable=True),
        sa.Column("action_url", sa.Text, nullable=True),
        _flag("is_read", False),
        _ts("read_at", server_default=False),
        _flag("is_deleted", False),
        _ts("created_at"),
    )
    op.create_index("ix_notifications_user_id_created_at", "notifications", ["user_id", "created_at"])
    op.create_index("ix_notifications_user_unread", "notifications", ["user_id", "is_read", "is_deleted"])

    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False),
        _flag("web_enabled", True),
        _flag("push_enabled", True),
        _flag("email_enabled", True),
        _flag("push_recipe_approved", True),
        _flag("push_recipe_rejected", True),
        _flag("push_new_comment", True),
        _flag("push_high_rating", True),
        _flag("push_new_submission", True),
        _flag("email_recipe_approved", True),
        _flag("email_recipe_rejected", True),
        _flag("email_new_comment", False),
        _flag("email_high_rating", False),
        _flag("email_new_submission", True),
        _ts("created_at"),
        _ts("updated_at"),
    )

    op.create_table(
        "push_tokens",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(512), unique=True, nullable=False),
        sa.Column("browser", sa.String(50), nullable=True),
        sa.Column("os", sa.String(50), nullable=True),
        _flag("is_active", True),
        _ts("last_used_at"),
        _ts("created_at"),
    )
    op.create_index("ix_push_tokens_user_id_active", "push_tokens", ["user_id", "is_active"])

    # Recipe views
    op.create_table(
        "recipe_views",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        _ts("viewed_at"),
    )
    op.create_index("ix_recipe_views_recipe_id_viewed_at", "recipe_views", ["recipe_id", "viewed_at"])
    op.create_index("ix_recipe_views_user_id", "recipe_views", ["user_id"])


def downgrade() -> None:
    op.drop_table("recipe_views")
    op.drop_table("push_tokens")
    op.drop_table("notification_preferences")
    op.drop_table("notifications")
    op.drop_table("audit_logs")
    op.drop_table("saved_recipes")
    op.drop_table("ratings")
    op.drop_table("comments")
    op.drop_table("recipes")
    op.drop_table("sessions")
    op.drop_table("users")
