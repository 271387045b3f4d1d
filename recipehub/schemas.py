"""Pydantic schemas for RecipeHub API.

Request/response models for:
- Auth and user profiles
- Recipes (create/update/moderation)
- Ratings and comments
- Admin actions
- Notifications, preferences, push tokens
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# --- Users / Auth ---

class UserOut(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_email_verified: bool
    avatar_url: Optional[str] = None
    oauth_provider: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AdminUserOut(UserOut):
    is_banned: bool
    banned_at: Optional[datetime] = None
    banned_by: Optional[str] = None
    ban_reason: Optional[str] = None
    failed_login_attempts: int = 0
    blocked_until: Optional[datetime] = None


class AuthorOut(BaseModel):
    id: str
    first_name: str
    last_name: str
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


class RegisterIn(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)
    agree_to_terms: bool = False

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()


class LoginIn(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()


class EmailIn(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()


class ResetPasswordIn(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1, max_length=128)


class GoogleMobileIn(BaseModel):
    access_token: str = Field(..., min_length=1)


class AuthOut(BaseModel):
    user: UserOut
    token: str


# --- Recipes ---

class IngredientIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    amount: str = Field(..., min_length=1, max_length=50)
    unit: Optional[str] = Field(None, max_length=30)


class RecipeCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    main_ingredient: str = Field(..., min_length=1, max_length=100)
    ingredients: list[IngredientIn] = Field(..., min_length=1)
    instructions: list[str] = Field(..., min_length=1)
    prep_time: int = Field(..., ge=0, le=1440)
    cooking_time: int = Field(..., ge=0, le=1440)
    servings: int = Field(..., ge=1, le=100)
    difficulty: Literal["EASY", "MEDIUM", "HARD"]
    meal_type: list[str] = Field(default_factory=list)
    diet_type: list[str] = Field(default_factory=list)
    cuisine_type: Optional[str] = Field(None, max_length=100)
    allergies: list[str] = Field(default_factory=list)
    image_urls: list[str] = Field(default_factory=list, max_length=3)
    calories: Optional[float] = Field(None, ge=0)
    protein: Optional[float] = Field(None, ge=0)
    carbs: Optional[float] = Field(None, ge=0)
    fat: Optional[float] = Field(None, ge=0)
    fiber: Optional[float] = Field(None, ge=0)
    sodium: Optional[float] = Field(None, ge=0)

    @field_validator("instructions")
    @classmethod
    def _non_empty_steps(cls, v: list[str]) -> list[str]:
        steps = [s.strip() for s in v]
        if any(not s for s in steps):
            raise ValueError("Instructions cannot contain empty steps")
        return steps


class RecipeUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    main_ingredient: Optional[str] = Field(None, min_length=1, max_length=100)
    ingredients: Optional[list[IngredientIn]] = Field(None, min_length=1)
    instructions: Optional[list[str]] = Field(None, min_length=1)
    prep_time: Optional[int] = Field(None, ge=0, le=1440)
    cooking_time: Optional[int] = Field(None, ge=0, le=1440)
    servings: Optional[int] = Field(None, ge=1, le=100)
    difficulty: Optional[Literal["EASY", "MEDIUM", "HARD"]] = None
    meal_type: Optional[list[str]] = None
    diet_type: Optional[list[str]] = None
    cuisine_type: Optional[str] = Field(None, max_length=100)
    allergies: Optional[list[str]] = None
    image_urls: Optional[list[str]] = Field(None, max_length=3)
    calories: Optional[float] = Field(None, ge=0)
    protein: Optional[float] = Field(None, ge=0)
    carbs: Optional[float] = Field(None, ge=0)
    fat: Optional[float] = Field(None, ge=0)
    fiber: Optional[float] = Field(None, ge=0)
    sodium: Optional[float] = Field(None, ge=0)


class RecipeOut(BaseModel):
    id: str
    author_id: str
    author: Optional[AuthorOut] = None
    title: str
    description: Optional[str]
    main_ingredient: str
    ingredients: list[dict]
    instructions: list[str]
    prep_time: int
    cooking_time: int
    servings: int
    difficulty: str
    meal_type: list[str]
    diet_type: list[str]
    cuisine_type: Optional[str]
    allergies: list[str]
    image_urls: list[str]
    calories: Optional[float]
    protein: Optional[float]
    carbs: Optional[float]
    fat: Optional[float]
    fiber: Optional[float]
    sodium: Optional[float]
    status: str
    approved_at: Optional[datetime]
    approved_by_id: Optional[str]
    admin_note: Optional[str]
    rejected_at: Optional[datetime]
    rejected_by_id: Optional[str]
    rejection_reason: Optional[str]
    average_rating: float
    total_ratings: int
    total_comments: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ApproveIn(BaseModel):
    admin_note: Optional[str] = Field(None, max_length=1000)


class RejectIn(BaseModel):
    reason: str = Field(..., max_length=1000)


class ImageUploadOut(BaseModel):
    url: str
    key: str
    width: int
    height: int
    size: int
    content_type: str


# --- Community ---

class RatingIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)


class RatingOut(BaseModel):
    id: str
    recipe_id: str
    user_id: str
    rating: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CommentIn(BaseModel):
    content: str = Field(..., max_length=2000)
    parent_id: Optional[str] = None


class CommentUpdate(BaseModel):
    content: str = Field(..., max_length=2000)


class CommentOut(BaseModel):
    id: str
    recipe_id: str
    user_id: str
    parent_id: Optional[str]
    content: str
    user: Optional[AuthorOut] = None
    created_at: datetime
    updated_at: datetime
    replies: list["CommentOut"] = Field(default_factory=list)

    class Config:
        from_attributes = True


# --- Saved recipes ---

class BulkCheckIn(BaseModel):
    recipe_ids: list[str] = Field(..., min_length=1, max_length=100)


# --- Admin ---

class BanIn(BaseModel):
    reason: str = Field(..., max_length=500)


class RoleIn(BaseModel):
    role: Literal["USER", "CHEF", "ADMIN"]


class ReasonIn(BaseModel):
    reason: str = Field(..., max_length=500)


class BulkDeleteRecipesIn(BaseModel):
    recipe_ids: list[str] = Field(..., min_length=1, max_length=50)
    reason: str = Field(..., max_length=500)


class BulkDeleteCommentsIn(BaseModel):
    comment_ids: list[str] = Field(..., min_length=1, max_length=100)
    reason: str = Field(..., max_length=500)


class AuditLogOut(BaseModel):
    id: str
    admin_id: str
    action: str
    target_type: str
    target_id: str
    target_name: Optional[str]
    reason: Optional[str]
    details: Optional[dict]
    ip_address: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True


# --- Notifications ---

class NotificationOut(BaseModel):
    id: str
    type: str
    title: str
    description: str
    priority: str
    recipe_id: Optional[str]
    comment_id: Optional[str]
    rating_id: Optional[str]
    actor_user_id: Optional[str]
    action_type: Optional[str]
    action_url: Optional[str]
    is_read: bool
    read_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class PreferencesOut(BaseModel):
    web_enabled: bool
    push_enabled: bool
    email_enabled: bool
    push_recipe_approved: bool
    push_recipe_rejected: bool
    push_new_comment: bool
    push_high_rating: bool
    push_new_submission: bool
    email_recipe_approved: bool
    email_recipe_rejected: bool
    email_new_comment: bool
    email_high_rating: bool
    email_new_submission: bool

    class Config:
        from_attributes = True


class PreferencesUpdate(BaseModel):
    web_enabled: Optional[bool] = None
    push_enabled: Optional[bool] = None
    email_enabled: Optional[bool] = None
    push_recipe_approved: Optional[bool] = None
    push_recipe_rejected: Optional[bool] = None
    push_new_comment: Optional[bool] = None
    push_high_rating: Optional[bool] = None
    push_new_submission: Optional[bool] = None
    email_recipe_approved: Optional[bool] = None
    email_recipe_rejected: Optional[bool] = None
    email_new_comment: Optional[bool] = None
    email_high_rating: Optional[bool] = None
    email_new_submission: Optional[bool] = None


class PushTokenIn(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)
    browser: Optional[str] = Field(None, max_length=50)
    os: Optional[str] = Field(None, max_length=50)


class PushTokenUnregisterIn(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)
