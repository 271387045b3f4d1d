"""SQLAlchemy ORM models for RecipeHub.

Tables:
- users / sessions: accounts, ban and lockout state, server-side JWT sessions
- recipes: chef submissions moving through PENDING -> APPROVED/REJECTED
- comments / ratings / saved_recipes: community activity on approved recipes
- audit_logs: one row per admin action
- notifications / notification_preferences / push_tokens: in-app, push and email delivery
- recipe_views: daily-deduplicated view tracking for analytics
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Text,
    Integer,
    Boolean,
    Float,
    ForeignKey,
    Index,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func, false, true

from .core.clock import utcnow
from .db import Base
from .orm_types import JSONDocument, JSONList


def generate_uuid() -> str:
    return str(uuid.uuid4())


class Role:
    USER = "USER"
    CHEF = "CHEF"
    ADMIN = "ADMIN"
    ALL = (USER, CHEF, ADMIN)


class RecipeStatus:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ALL = (PENDING, APPROVED, REJECTED)


class Difficulty:
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"
    ALL = (EASY, MEDIUM, HARD)


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_role", "role"),
        Index("ix_users_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    # Null for accounts that only ever signed in through OAuth
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(10), nullable=False, default=Role.USER)
    terms_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    email_verification_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    email_verification_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reset_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    reset_token_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    failed_login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_failed_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    blocked_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    is_banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    banned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    banned_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    ban_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    google_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    oauth_provider: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    sessions: Mapped[list["Session"]] = relationship(
        "Session", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    recipes: Mapped[list["Recipe"]] = relationship(
        "Recipe", back_populates="author", foreign_keys="Recipe.author_id",
        cascade="all, delete-orphan", passive_deletes=True
    )
    comments: Mapped[list["Comment"]] = relationship(
        "Comment", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    ratings: Mapped[list["Rating"]] = relationship(
        "Rating", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    saved_recipes: Mapped[list["SavedRecipe"]] = relationship(
        "SavedRecipe", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Session(Base):
    """Server-side record backing a JWT. Deleting the row revokes the token."""
    __tablename__ = "sessions"
    __table_args__ = (
        Index("ix_sessions_user_id", "user_id"),
        Index("ix_sessions_expires_at", "expires_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    user: Mapped["User"] = relationship("User", back_populates="sessions")


class Recipe(Base):
    __tablename__ = "recipes"
    __table_args__ = (
        Index("ix_recipes_author_id", "author_id"),
        Index("ix_recipes_status_created_at", "status", "created_at"),
        Index("ix_recipes_main_ingredient", "main_ingredient"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    author_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    main_ingredient: Mapped[str] = mapped_column(String(100), nullable=False)
    # [{"name": "...", "amount": "...", "unit": "..."}]
    ingredients: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    instructions: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    prep_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cooking_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    servings: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    difficulty: Mapped[str] = mapped_column(String(10), nullable=False, default=Difficulty.MEDIUM)
    meal_type: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    diet_type: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    cuisine_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    allergies: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)
    image_urls: Mapped[list] = mapped_column(JSONList, nullable=False, default=list)

    calories: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    protein: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    carbs: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fiber: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sodium: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    status: Mapped[str] = mapped_column(String(10), nullable=False, default=RecipeStatus.PENDING)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    admin_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    average_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")
    total_ratings: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    author: Mapped["User"] = relationship("User", back_populates="recipes", foreign_keys=[author_id])
    comments: Mapped[list["Comment"]] = relationship(
        "Comment", back_populates="recipe", cascade="all, delete-orphan", passive_deletes=True
    )
    ratings: Mapped[list["Rating"]] = relationship(
        "Rating", back_populates="recipe", cascade="all, delete-orphan", passive_deletes=True
    )
    saved_by: Mapped[list["SavedRecipe"]] = relationship(
        "SavedRecipe", back_populates="recipe", cascade="all, delete-orphan", passive_deletes=True
    )
    views: Mapped[list["RecipeView"]] = relationship(
        "RecipeView", back_populates="recipe", cascade="all, delete-orphan", passive_deletes=True
    )


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (
        Index("ix_comments_recipe_id_created_at", "recipe_id", "created_at"),
        Index("ix_comments_user_id", "user_id"),
        Index("ix_comments_parent_id", "parent_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    recipe_id: Mapped[str] = mapped_column(String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("comments.id", ondelete="CASCADE"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="comments")
    user: Mapped["User"] = relationship("User", back_populates="comments")
    replies: Mapped[list["Comment"]] = relationship(
        "Comment", back_populates="parent", cascade="all, delete-orphan",
        passive_deletes=True, order_by="Comment.created_at"
    )
    parent: Mapped[Optional["Comment"]] = relationship("Comment", back_populates="replies", remote_side=[id])


class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("recipe_id", "user_id", name="uq_rating_recipe_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_rating_range"),
        Index("ix_ratings_recipe_id", "recipe_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    recipe_id: Mapped[str] = mapped_column(String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="ratings")
    user: Mapped["User"] = relationship("User", back_populates="ratings")


class SavedRecipe(Base):
    __tablename__ = "saved_recipes"
    __table_args__ = (
        UniqueConstraint("user_id", "recipe_id", name="uq_saved_user_recipe"),
        Index("ix_saved_recipes_user_id_saved_at", "user_id", "saved_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    recipe_id: Mapped[str] = mapped_column(String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    saved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    user: Mapped["User"] = relationship("User", back_populates="saved_recipes")
    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="saved_by")


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_admin_id", "admin_id"),
        Index("ix_audit_logs_target", "target_type", "target_id"),
        Index("ix_audit_logs_timestamp", "timestamp"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    # Plain column: the log survives deletion of the admin account
    admin_id: Mapped[str] = mapped_column(String(36), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    target_type: Mapped[str] = mapped_column(String(20), nullable=False)  # user | recipe | comment
    target_id: Mapped[str] = mapped_column(String(36), nullable=False)
    target_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_id_created_at", "user_id", "created_at"),
        Index("ix_notifications_user_unread", "user_id", "is_read", "is_deleted"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False)  # SUCCESS | ERROR | WARNING | INFO
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="MEDIUM")  # LOW | MEDIUM | HIGH
    recipe_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("recipes.id", ondelete="SET NULL"), nullable=True)
    comment_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("comments.id", ondelete="SET NULL"), nullable=True)
    rating_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("ratings.id", ondelete="SET NULL"), nullable=True)
    actor_user_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    action_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    web_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    push_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    email_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    push_recipe_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    push_recipe_rejected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    push_new_comment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    push_high_rating: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    push_new_submission: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    email_recipe_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    email_recipe_rejected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    email_new_comment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    email_high_rating: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    email_new_submission: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )


class PushToken(Base):
    __tablename__ = "push_tokens"
    __table_args__ = (
        Index("ix_push_tokens_user_id_active", "user_id", "is_active"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    browser: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    os: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    last_used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class RecipeView(Base):
    __tablename__ = "recipe_views"
    __table_args__ = (
        Index("ix_recipe_views_recipe_id_viewed_at", "recipe_id", "viewed_at"),
        Index("ix_recipe_views_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    recipe_id: Mapped[str] = mapped_column(String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    viewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="views")
