"""Family membership rules.

A family is identified by its code.  The code is generated for the user
who creates the family (a ``parent`` at registration) and shared out of
band; other users join by presenting it.  Joining links the two users in
both directions.  The links are not transitive: joining the owner does
not link the newcomer with the owner's other members.

Family scoped resources (posts) carry the family code they were created
under.  A user may act on such a resource when it carries the user's own
code or the code of any user they are linked with.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.crud import (
    add_family_link,
    count_family_posts,
    get_family_owner,
    get_member_family_codes,
    has_any_family_link,
    has_family_link,
    save_user,
)
from app.errors import AlreadyMember, NotFound
from app.models import User

logger = logging.getLogger(__name__)

ROLE_PARENT = "parent"


def grants_family_access(
    own_code: str | None, member_codes: set[str], resource_code: str | None
) -> bool:
    if not resource_code:
        return False
    return own_code == resource_code or resource_code in member_codes


async def can_access_family_resource(
    db: AsyncSession, user: User, resource_family_code: str | None
) -> bool:
    """Return ``True`` if ``user`` may act on a resource of that family."""
    if resource_family_code and user.family_code == resource_family_code:
        return True
    member_codes = await get_member_family_codes(db, user.id)
    return grants_family_access(user.family_code, member_codes, resource_family_code)


async def _has_active_family(db: AsyncSession, user: User) -> bool:
    """A family is active once someone is linked to it or posted under it."""
    if not user.family_code:
        return False
    if await has_any_family_link(db, user.id):
        return True
    return await count_family_posts(db, user.family_code) > 0


async def join_family(db: AsyncSession, user: User, code: str) -> User:
    """Link ``user`` with the owner of ``code`` and return the owner.

    The owner's side is written first, then the joining user's side, as
    two separate commits.  A crash between them leaves a one-sided link
    which :func:`app.crud.reconcile_family_links` repairs on startup.

    A joining user without an active family of their own gives up any
    unused code and takes over the joined family's code, so the family
    feed shows that family's posts.
    """
    code = code.strip().upper()
    owner = await get_family_owner(db, code) if code else None
    if owner is None:
        raise NotFound("Family not found", code="family_not_found")
    if owner.id == user.id or await has_family_link(db, owner.id, user.id):
        raise AlreadyMember()

    adopt = not await _has_active_family(db, user)
    await add_family_link(db, owner.id, user.id)
    await add_family_link(db, user.id, owner.id)
    if adopt:
        user.family_code = owner.family_code
        user.owns_family = False
        await save_user(db, user)
    logger.info("User %s joined family %s (owner %s)", user.id, code, owner.id)
    return owner
