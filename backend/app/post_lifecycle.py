"""Create, like, comment on and delete family posts.

Creating and deleting a post touches two independent systems: the object
store holding the media and the database holding the post.  There is no
transaction spanning both, so each operation runs its steps in a fixed
order and undoes the completed ones when a later step fails:

* create: upload every file, then insert the post.  If an upload or the
  insert fails, every object uploaded for this post is deleted again
  before the error propagates.  No post row ever references a missing
  object and no uploaded object outlives a failed create.
* delete: remove every object (each independently, failures are only
  logged) and then the post row.
"""

import json
import logging
import math
import os
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app import crud
from app.errors import AccessDenied, NoFamily, NoMedia, NotFound, ValidationError
from app.family import can_access_family_resource
from app.media_store import MediaStore, media_kind_for
from app.models import Post, PostComment, PostLike, User

logger = logging.getLogger(__name__)

MAX_FILES_PER_POST = 10
MAX_COMMENT_LENGTH = 500
IMAGE_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".mkv"}


@dataclass
class LikeResult:
    liked: bool
    likes: list[PostLike]

    @property
    def like_count(self) -> int:
        return len(self.likes)


@dataclass
class FamilyPage:
    posts: list[Post]
    total: int
    total_pages: int
    current_page: int


def _file_size(upload) -> int:
    size = getattr(upload, "size", None)
    if size is not None:
        return size
    fileobj = upload.file
    position = fileobj.tell()
    fileobj.seek(0, os.SEEK_END)
    size = fileobj.tell()
    fileobj.seek(position)
    return size


def validate_media_file(upload, max_bytes: int) -> None:
    """Only image and video uploads with a known extension are accepted."""
    content_type = upload.content_type or ""
    ext = os.path.splitext(upload.filename or "")[1].lower()
    if not content_type.startswith(("image/", "video/")) or ext not in (
        IMAGE_EXTENSIONS | VIDEO_EXTENSIONS
    ):
        raise ValidationError(
            f"Only image and video files are allowed ({upload.filename})"
        )
    if _file_size(upload) > max_bytes:
        raise ValidationError(f"{upload.filename} exceeds the upload size limit")


async def parse_tags(db: AsyncSession, author: User, raw_tags) -> list[dict]:
    """Turn the submitted tags into ``{"id", "name"}`` entries.

    ``raw_tags`` is the JSON string sent in the multipart form (or an
    already decoded list).  Items are dependent ids or objects with an
    ``id`` and optional ``name``; missing names are filled in from the
    dependents the author can see.
    """
    if raw_tags in (None, ""):
        return []
    if isinstance(raw_tags, str):
        try:
            raw_tags = json.loads(raw_tags)
        except json.JSONDecodeError as exc:
            raise ValidationError("Tags must be a JSON list") from exc
    if not isinstance(raw_tags, list):
        raise ValidationError("Tags must be a JSON list")

    known = None
    tags = []
    for item in raw_tags:
        if isinstance(item, str):
            item = {"id": item}
        if not isinstance(item, dict) or not item.get("id"):
            raise ValidationError("Each tag needs an id")
        tag_id = str(item["id"])
        name = item.get("name")
        if not name:
            if known is None:
                known = await _visible_dependent_names(db, author)
            if tag_id not in known:
                raise ValidationError(f"Unknown tag {tag_id}")
            name = known[tag_id]
        tags.append({"id": tag_id, "name": str(name)})
    return tags


async def _visible_dependent_names(db: AsyncSession, author: User) -> dict[str, str]:
    members = await crud.get_family_members(db, author.id)
    grouped = await crud.get_dependents_for_users(
        db, [author.id] + [m.id for m in members]
    )
    return {d.id: d.name for deps in grouped.values() for d in deps}


async def _discard_uploads(media_store: MediaStore, media: list[dict]) -> None:
    for item in media:
        try:
            await media_store.delete(item["public_id"], item["type"])
        except Exception:
            logger.exception(
                "Could not delete uploaded media %s", item["public_id"]
            )


async def create_post(
    db: AsyncSession,
    media_store: MediaStore,
    author: User,
    files: list,
    caption: str | None = None,
    tags=None,
    is_private: bool = False,
    max_upload_bytes: int = 100 * 1024 * 1024,
) -> Post:
    """Upload ``files`` and persist a post for ``author``'s family."""
    try:
        if not author.family_code:
            raise NoFamily()
        if not files:
            raise NoMedia()
        if len(files) > MAX_FILES_PER_POST:
            raise ValidationError(
                f"A post can contain at most {MAX_FILES_PER_POST} files"
            )
        for upload in files:
            validate_media_file(upload, max_upload_bytes)
        parsed_tags = await parse_tags(db, author, tags)

        uploaded: list[dict] = []
        try:
            for upload in files:
                kind = media_kind_for(upload.content_type)
                stored = await media_store.upload(
                    upload.file,
                    kind,
                    content_type=upload.content_type,
                    filename=upload.filename,
                )
                uploaded.append(
                    {"type": kind, "url": stored.url, "public_id": stored.public_id}
                )

            post = Post(
                author_id=author.id,
                caption=(caption or "").strip(),
                media=uploaded,
                tags=parsed_tags,
                family_code=author.family_code,
                is_private=is_private,
            )
            post = await crud.create_post(db, post)
        except Exception:
            logger.warning(
                "Creating post for user %s failed; discarding %d uploads",
                author.id,
                len(uploaded),
            )
            await _discard_uploads(media_store, uploaded)
            raise
    finally:
        for upload in files or []:
            await upload.close()

    logger.info(
        "User %s created post %s with %d media", author.id, post.id, len(uploaded)
    )
    return await crud.get_post_with_details(db, post.id)


async def _get_accessible_post(db: AsyncSession, user: User, post_id: int) -> Post:
    post = await crud.get_post(db, post_id)
    if post is None:
        raise NotFound("Post not found", code="post_not_found")
    if not await can_access_family_resource(db, user, post.family_code):
        logger.warning("User %s denied access to post %s", user.id, post_id)
        raise AccessDenied()
    return post


async def like_post(db: AsyncSession, user: User, post_id: int) -> LikeResult:
    """Toggle ``user``'s like on a post."""
    user_id = user.id
    await _get_accessible_post(db, user, post_id)
    existing = await crud.get_like(db, post_id, user_id)
    if existing:
        await crud.remove_like(db, existing)
    else:
        await crud.add_like(db, post_id, user_id)
    post = await crud.get_post_with_details(db, post_id)
    return LikeResult(liked=existing is None, likes=list(post.likes))


async def add_comment(
    db: AsyncSession, user: User, post_id: int, text: str | None
) -> PostComment:
    """Append a comment and return only the new entry."""
    text = (text or "").strip()
    if not text:
        raise ValidationError("Comment text is required")
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValidationError(
            f"Comment must be at most {MAX_COMMENT_LENGTH} characters"
        )
    post = await _get_accessible_post(db, user, post_id)
    return await crud.create_comment(
        db, PostComment(post_id=post.id, user_id=user.id, text=text)
    )


async def delete_post(
    db: AsyncSession, media_store: MediaStore, user: User, post_id: int
) -> None:
    """Delete a post and its media; only the author may do this."""
    post = await crud.get_post(db, post_id)
    if post is None:
        raise NotFound("Post not found", code="post_not_found")
    if post.author_id != user.id:
        logger.warning("User %s may not delete post %s", user.id, post_id)
        raise AccessDenied()
    await _discard_uploads(media_store, post.media or [])
    await crud.delete_post(db, post)
    logger.info("User %s deleted post %s", user.id, post_id)


async def list_family_posts(
    db: AsyncSession, user: User, page: int = 1, page_size: int = 20
) -> FamilyPage:
    """Newest first page of the posts shared under the user's family code."""
    if not user.family_code:
        raise NoFamily()
    total = await crud.count_family_posts(db, user.family_code)
    posts = await crud.get_family_posts(
        db, user.family_code, offset=(page - 1) * page_size, limit=page_size
    )
    return FamilyPage(
        posts=posts,
        total=total,
        total_pages=math.ceil(total / page_size),
        current_page=page,
    )
