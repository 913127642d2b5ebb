"""Schemas for posts, likes and comments."""

from datetime import datetime

from .base import CamelModel


class PostUser(CamelModel):
    id: int
    first_name: str
    last_name: str
    profile_picture: str = ""


class MediaRead(CamelModel):
    type: str
    url: str
    public_id: str


class TagRead(CamelModel):
    id: str
    name: str


class LikeRead(CamelModel):
    user: PostUser
    created_at: datetime


class CommentCreate(CamelModel):
    text: str = ""


class CommentRead(CamelModel):
    id: int
    user: PostUser
    text: str
    created_at: datetime


class PostRead(CamelModel):
    id: int
    author: PostUser
    caption: str
    media: list[MediaRead]
    tags: list[TagRead]
    family_code: str
    is_private: bool
    likes: list[LikeRead]
    comments: list[CommentRead]
    created_at: datetime


class PostResponse(CamelModel):
    message: str
    post: PostRead


class PostListResponse(CamelModel):
    posts: list[PostRead]
    total_pages: int
    current_page: int
    total: int


class LikeResponse(CamelModel):
    message: str
    likes: list[LikeRead]
    like_count: int


class CommentResponse(CamelModel):
    message: str
    comment: CommentRead
