"""Asynchronous CRUD helpers for the application's data models.

Each function in this module encapsulates a specific database operation
using SQLModel and SQLAlchemy.  Centralizing the logic keeps route
handlers and the post lifecycle light and makes behavior easier to test.
"""

import logging
import secrets
import string
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from sqlalchemy.orm import selectinload, aliased
from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError

from app.models import (
    User,
    FamilyMemberLink,
    Dependent,
    Post,
    PostLike,
    PostComment,
)

logger = logging.getLogger(__name__)

FAMILY_CODE_ALPHABET = string.digits + string.ascii_uppercase
FAMILY_CODE_LENGTH = 6
FAMILY_CODE_ATTEMPTS = 20


# --- users -----------------------------------------------------------------


async def family_code_exists(db: AsyncSession, code: str) -> bool:
    result = await db.execute(
        select(func.count()).select_from(User).where(User.family_code == code)
    )
    return result.scalar() > 0


async def generate_family_code(db: AsyncSession) -> str:
    """Return a new family code not held by any user."""
    for _ in range(FAMILY_CODE_ATTEMPTS):
        code = "".join(
            secrets.choice(FAMILY_CODE_ALPHABET) for _ in range(FAMILY_CODE_LENGTH)
        )
        if not await family_code_exists(db, code):
            return code
    raise RuntimeError("Could not generate a unique family code")


async def create_user(db: AsyncSession, user: User, with_family: bool = True):
    """Create a new user, assigning a fresh family code when requested.

    ``user.password_hash`` must already be hashed.  Another registration
    can claim the same generated code between the check and the insert;
    the unique owner index rejects it and a new code is drawn.
    """

    for _ in range(FAMILY_CODE_ATTEMPTS):
        if with_family:
            user.family_code = await generate_family_code(db)
            user.owns_family = True
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            if not with_family or await get_user_by_email(db, user.email):
                raise
            logger.warning("Family code %s was taken, retrying", user.family_code)
            continue
        await db.refresh(user)
        return user
    raise RuntimeError("Could not generate a unique family code")


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Return a user by (normalized) email or ``None`` if not found."""
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    """Load a user by primary key."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def save_user(db: AsyncSession, user: User) -> User:
    """Persist changes to an existing user."""

    user.updated_at = datetime.utcnow()
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def get_family_owner(db: AsyncSession, code: str) -> User | None:
    """Return the user ``code`` was generated for."""
    result = await db.execute(
        select(User)
        .where(User.family_code == code, User.owns_family.is_(True))
        .order_by(User.id)
        .limit(1)
    )
    return result.scalars().first()


# --- family links ----------------------------------------------------------


async def get_family_members(db: AsyncSession, user_id: int) -> list[User]:
    """Return the users linked to ``user_id`` in join order."""
    result = await db.execute(
        select(User)
        .join(FamilyMemberLink, FamilyMemberLink.member_id == User.id)
        .where(FamilyMemberLink.user_id == user_id)
        .order_by(FamilyMemberLink.created_at, User.id)
    )
    return result.scalars().all()


async def get_member_family_codes(db: AsyncSession, user_id: int) -> set[str]:
    """Family codes held by any of the user's linked members."""
    result = await db.execute(
        select(User.family_code)
        .join(FamilyMemberLink, FamilyMemberLink.member_id == User.id)
        .where(
            FamilyMemberLink.user_id == user_id,
            User.family_code.is_not(None),
        )
    )
    return set(result.scalars().all())


async def has_family_link(db: AsyncSession, user_id: int, member_id: int) -> bool:
    result = await db.execute(
        select(FamilyMemberLink).where(
            FamilyMemberLink.user_id == user_id,
            FamilyMemberLink.member_id == member_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def has_any_family_link(db: AsyncSession, user_id: int) -> bool:
    result = await db.execute(
        select(func.count())
        .select_from(FamilyMemberLink)
        .where(FamilyMemberLink.user_id == user_id)
    )
    return result.scalar() > 0


async def add_family_link(
    db: AsyncSession, user_id: int, member_id: int
) -> FamilyMemberLink:
    """Append ``member_id`` to ``user_id``'s membership list and commit."""
    link = FamilyMemberLink(user_id=user_id, member_id=member_id)
    db.add(link)
    await db.commit()
    return link


async def reconcile_family_links(db: AsyncSession) -> int:
    """Insert the missing mirror row for every one-sided membership link."""
    mirror = aliased(FamilyMemberLink)
    result = await db.execute(
        select(FamilyMemberLink.user_id, FamilyMemberLink.member_id)
        .outerjoin(
            mirror,
            (mirror.user_id == FamilyMemberLink.member_id)
            & (mirror.member_id == FamilyMemberLink.user_id),
        )
        .where(mirror.user_id.is_(None))
    )
    missing = result.all()
    for user_id, member_id in missing:
        logger.warning(
            "Repairing one-sided family link %s -> %s", user_id, member_id
        )
        db.add(FamilyMemberLink(user_id=member_id, member_id=user_id))
    if missing:
        await db.commit()
    return len(missing)


# --- dependents ------------------------------------------------------------


async def get_dependents_by_user(db: AsyncSession, user_id: int) -> list[Dependent]:
    """Return a user's children and pets in the order they were added."""
    result = await db.execute(
        select(Dependent)
        .where(Dependent.user_id == user_id)
        .order_by(Dependent.created_at)
    )
    return result.scalars().all()


async def get_dependents_for_users(
    db: AsyncSession, user_ids: list[int]
) -> dict[int, list[Dependent]]:
    """Group the dependents of several users by owner id."""
    grouped: dict[int, list[Dependent]] = {uid: [] for uid in user_ids}
    if not user_ids:
        return grouped
    result = await db.execute(
        select(Dependent)
        .where(Dependent.user_id.in_(user_ids))
        .order_by(Dependent.created_at)
    )
    for dependent in result.scalars().all():
        grouped[dependent.user_id].append(dependent)
    return grouped


async def get_dependent(
    db: AsyncSession, user_id: int, dependent_id: str
) -> Dependent | None:
    """Fetch a dependent only if it belongs to ``user_id``."""
    result = await db.execute(
        select(Dependent).where(
            Dependent.id == dependent_id, Dependent.user_id == user_id
        )
    )
    return result.scalar_one_or_none()


async def save_dependent(db: AsyncSession, dependent: Dependent) -> Dependent:
    """Persist a new or changed dependent."""

    db.add(dependent)
    await db.commit()
    await db.refresh(dependent)
    return dependent


async def delete_dependent(db: AsyncSession, dependent: Dependent) -> None:
    await db.delete(dependent)
    await db.commit()


# --- posts -----------------------------------------------------------------


def _post_details():
    return (
        selectinload(Post.author),
        selectinload(Post.likes).selectinload(PostLike.user),
        selectinload(Post.comments).selectinload(PostComment.user),
    )


async def create_post(db: AsyncSession, post: Post) -> Post:
    """Insert a post; the session is rolled back if the commit fails."""
    db.add(post)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return post


async def get_post(db: AsyncSession, post_id: int) -> Post | None:
    result = await db.execute(select(Post).where(Post.id == post_id))
    return result.scalar_one_or_none()


async def get_post_with_details(db: AsyncSession, post_id: int) -> Post | None:
    """Load a post with author, likes and comments (and their users)."""
    result = await db.execute(
        select(Post)
        .where(Post.id == post_id)
        .options(*_post_details())
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_family_posts(
    db: AsyncSession, family_code: str, offset: int, limit: int
) -> list[Post]:
    """Newest first page of posts tagged with ``family_code``."""
    result = await db.execute(
        select(Post)
        .where(Post.family_code == family_code)
        .options(*_post_details())
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return result.scalars().all()


async def count_family_posts(db: AsyncSession, family_code: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(Post).where(Post.family_code == family_code)
    )
    return result.scalar()


async def get_like(db: AsyncSession, post_id: int, user_id: int) -> PostLike | None:
    result = await db.execute(
        select(PostLike).where(
            PostLike.post_id == post_id, PostLike.user_id == user_id
        )
    )
    return result.scalar_one_or_none()


async def add_like(db: AsyncSession, post_id: int, user_id: int) -> PostLike:
    """Insert a like; a concurrent duplicate returns the stored one."""
    like = PostLike(post_id=post_id, user_id=user_id)
    db.add(like)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await get_like(db, post_id, user_id)
        if existing is None:
            raise
        return existing
    return like


async def remove_like(db: AsyncSession, like: PostLike) -> None:
    await db.delete(like)
    await db.commit()


async def create_comment(db: AsyncSession, comment: PostComment) -> PostComment:
    """Insert a comment and return it with its author loaded."""
    db.add(comment)
    await db.commit()
    result = await db.execute(
        select(PostComment)
        .where(PostComment.id == comment.id)
        .options(selectinload(PostComment.user))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def delete_post(db: AsyncSession, post: Post) -> None:
    """Remove a post together with its likes and comments."""
    await db.execute(delete(PostLike).where(PostLike.post_id == post.id))
    await db.execute(delete(PostComment).where(PostComment.post_id == post.id))
    await db.execute(delete(Post).where(Post.id == post.id))
    await db.commit()
