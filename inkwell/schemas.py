"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


# ──────────────────────────── Auth / Users ────────────────────────────────

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_]+$")
    name: Optional[str] = Field(None, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_]+$")
    name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=2000)
    avatar_url: Optional[str] = Field(None, max_length=500)
    twitter_handle: Optional[str] = Field(None, max_length=50)
    github_handle: Optional[str] = Field(None, max_length=50)
    website_url: Optional[str] = Field(None, max_length=500)


class PublicUserResponse(BaseModel):
    """Profile as shown to other users; no email, never the credential hash."""
    id: int
    username: Optional[str]
    name: Optional[str]
    bio: Optional[str]
    avatar_url: Optional[str]
    twitter_handle: Optional[str]
    github_handle: Optional[str]
    website_url: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class UserResponse(PublicUserResponse):
    email: str


class FollowStatus(BaseModel):
    user_id: int
    following: bool


# ──────────────────────────── Taxonomy ────────────────────────────────────

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]

    class Config:
        from_attributes = True


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class TagResponse(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


# ──────────────────────────── Posts ───────────────────────────────────────

class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    subtitle: Optional[str] = Field(None, max_length=255)
    content: str = Field(..., min_length=1)
    cover_image_url: Optional[str] = Field(None, max_length=500)
    excerpt: Optional[str] = None
    published: bool = False
    category_id: Optional[int] = None
    tag_ids: list[int] = []
    # True stamps featured_at, False clears it, None leaves it alone.
    featured: Optional[bool] = None

    @field_validator("title", "content")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class PostUpdate(PostCreate):
    # None keeps the current tags; a list (even empty) replaces them.
    tag_ids: Optional[list[int]] = None


class PostResponse(BaseModel):
    id: int
    title: str
    subtitle: Optional[str]
    content: str
    cover_image_url: Optional[str]
    excerpt: Optional[str]
    reading_time: int
    published: bool
    featured_at: Optional[datetime]
    category_id: Optional[int]
    author_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PostDetail(PostResponse):
    tags: list[TagResponse]
    clap_count: int


# ──────────────────────────── Engagement ──────────────────────────────────

class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class CommentResponse(BaseModel):
    id: int
    post_id: int
    author_id: int
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class ClapRequest(BaseModel):
    count: int = Field(1, ge=1, le=50)


class ClapResponse(BaseModel):
    post_id: int
    user_id: int
    count: int
    total: int
    updated_at: datetime


class UploadResponse(BaseModel):
    url: str


class MessageResponse(BaseModel):
    message: str
