"""
Pydantic request / response schemas.
Kept separate from ORM models to avoid coupling transport to storage;
the core returns these so callers never hold live ORM rows.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


# ──────────────────────────── Accounts ────────────────────────────────────

class AccountCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.]+$")
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    display_name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = None


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = None


class AccountSummary(BaseModel):
    account_id: str
    username: str
    display_name: Optional[str]

    class Config:
        from_attributes = True


class AccountResponse(BaseModel):
    account_id: str
    username: str
    display_name: Optional[str]
    bio: Optional[str]
    post_count: int
    follower_count: int
    following_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class Profile(AccountResponse):
    """Public profile with counters, as seen by a particular viewer."""
    is_following: bool = False


class AccountPage(BaseModel):
    items: list[AccountSummary]
    page: int
    page_size: int


# ──────────────────────────── Graph ───────────────────────────────────────

class FollowEdgeResponse(BaseModel):
    follower_id: str
    followee_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class FollowStatus(BaseModel):
    follower_id: str
    followee_id: str
    following: bool


# ──────────────────────────── Posts ───────────────────────────────────────

class PostCreate(BaseModel):
    caption: Optional[str] = None
    # Reference to media held by the media collaborator; never fetched here.
    media_url: Optional[str] = Field(None, max_length=500)


class PostResponse(BaseModel):
    post_id: str
    user_id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    caption: Optional[str]
    media_url: Optional[str]
    like_count: int
    comment_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PostPage(BaseModel):
    items: list[PostResponse]
    page: int
    page_size: int


class FeedResponse(PostPage):
    viewer_id: str
    # Size of {viewer} ∪ followees the page was drawn from
    candidate_authors: int


# ──────────────────────────── Engagement ──────────────────────────────────

class LikeResponse(BaseModel):
    user_id: str
    post_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class LikeStats(BaseModel):
    post_id: str
    like_count: int
    liked: bool


class Liker(BaseModel):
    user_id: str
    username: str
    display_name: Optional[str]
    liked_at: datetime


class LikerPage(BaseModel):
    items: list[Liker]
    page: int
    page_size: int


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    comment_id: str
    post_id: str
    user_id: str
    content: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CommentPage(BaseModel):
    items: list[CommentResponse]
    page: int
    page_size: int
