"""Family feed endpoints: list, create, like, comment on and delete posts."""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app import post_lifecycle
from app.auth import get_current_user
from app.config import AppConfig, get_config
from app.database import get_session
from app.media_store import MediaStore, get_media_store
from app.models import Post, PostComment, PostLike, User
from app.schemas import (
    CommentCreate,
    CommentRead,
    CommentResponse,
    LikeRead,
    LikeResponse,
    MediaRead,
    PostListResponse,
    PostRead,
    PostResponse,
    PostUser,
    TagRead,
)

router = APIRouter(prefix="/posts", tags=["posts"])


def _post_user(user: User) -> PostUser:
    return PostUser(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        profile_picture=user.profile_picture,
    )


def _like_read(like: PostLike) -> LikeRead:
    return LikeRead(user=_post_user(like.user), created_at=like.created_at)


def _comment_read(comment: PostComment) -> CommentRead:
    return CommentRead(
        id=comment.id,
        user=_post_user(comment.user),
        text=comment.text,
        created_at=comment.created_at,
    )


def post_read(post: Post) -> PostRead:
    return PostRead(
        id=post.id,
        author=_post_user(post.author),
        caption=post.caption,
        media=[
            MediaRead(type=m["type"], url=m["url"], public_id=m["public_id"])
            for m in post.media or []
        ],
        tags=[TagRead(id=t["id"], name=t["name"]) for t in post.tags or []],
        family_code=post.family_code,
        is_private=post.is_private,
        likes=[_like_read(like) for like in post.likes],
        comments=[_comment_read(c) for c in post.comments],
        created_at=post.created_at,
    )


@router.get("", response_model=PostListResponse)
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Newest first posts shared with the current user's family."""
    result = await post_lifecycle.list_family_posts(db, current_user, page, limit)
    return PostListResponse(
        posts=[post_read(p) for p in result.posts],
        total_pages=result.total_pages,
        current_page=result.current_page,
        total=result.total,
    )


@router.post("", response_model=PostResponse, status_code=201)
async def create_post_route(
    media: Optional[List[UploadFile]] = File(None),
    caption: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_private: bool = Form(False, alias="isPrivate"),
    db: AsyncSession = Depends(get_session),
    media_store: MediaStore = Depends(get_media_store),
    config: AppConfig = Depends(get_config),
    current_user: User = Depends(get_current_user),
):
    """Upload up to ten photos or videos as a new family post."""
    post = await post_lifecycle.create_post(
        db,
        media_store,
        current_user,
        media or [],
        caption=caption,
        tags=tags,
        is_private=is_private,
        max_upload_bytes=config.max_upload_bytes,
    )
    return PostResponse(message="Post created successfully", post=post_read(post))


@router.post("/{post_id}/like", response_model=LikeResponse)
async def like_post_route(
    post_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    result = await post_lifecycle.like_post(db, current_user, post_id)
    return LikeResponse(
        message="Post liked" if result.liked else "Post unliked",
        likes=[_like_read(like) for like in result.likes],
        like_count=result.like_count,
    )


@router.post("/{post_id}/comments", response_model=CommentResponse, status_code=201)
async def add_comment_route(
    post_id: int,
    data: CommentCreate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    comment = await post_lifecycle.add_comment(db, current_user, post_id, data.text)
    return CommentResponse(
        message="Comment added successfully", comment=_comment_read(comment)
    )


@router.delete("/{post_id}")
async def delete_post_route(
    post_id: int,
    db: AsyncSession = Depends(get_session),
    media_store: MediaStore = Depends(get_media_store),
    current_user: User = Depends(get_current_user),
):
    """Delete a post and its media; only the author may do this."""
    await post_lifecycle.delete_post(db, media_store, current_user, post_id)
    return {"message": "Post deleted successfully"}
