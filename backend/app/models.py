"""Database models used by Family Moments.

The models are defined with SQLModel (built on SQLAlchemy and Pydantic)
and represent users, their family links and dependents, and the posts
shared within a family.  Comments are kept concise to avoid distracting
from the field definitions.
"""

from typing import Optional, List
from datetime import datetime, date
from uuid import uuid4
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, Index, JSON, UniqueConstraint, text


class User(SQLModel, table=True):
    """Adult account (parent or guardian)."""

    # one owner per family code; members that adopted it are not owners
    __table_args__ = (
        Index(
            "ix_user_owned_family_code",
            "family_code",
            unique=True,
            sqlite_where=text("owns_family"),
            postgresql_where=text("owns_family"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)  # stored lower-cased
    password_hash: str
    first_name: str
    last_name: str
    profile_picture: str = ""
    role: str = "parent"  # 'parent' or 'guardian'
    # Shared by the family owner and any member that adopted it on join
    family_code: Optional[str] = Field(default=None, index=True)
    owns_family: bool = False  # set for the user the code was generated for
    is_email_verified: bool = False
    last_login: datetime = Field(default_factory=datetime.utcnow)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class FamilyMemberLink(SQLModel, table=True):
    """Directed membership edge; a join writes one row for each side."""

    user_id: int = Field(foreign_key="user.id", primary_key=True)
    member_id: int = Field(foreign_key="user.id", primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Dependent(SQLModel, table=True):
    """Child or pet profile owned by a single user."""
    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    name: str
    birth_date: Optional[date] = None
    profile_picture: str = ""
    relationship: str = "child"  # 'child' or 'pet'
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Post(SQLModel, table=True):
    """Media post shared with the author's family."""
    id: Optional[int] = Field(default=None, primary_key=True)
    author_id: int = Field(foreign_key="user.id", index=True)
    caption: str = ""
    # [{"type": "image"|"video", "url": ..., "public_id": ...}]
    media: List[dict] = Field(sa_column=Column(JSON), default_factory=list)
    # [{"id": <dependent id>, "name": ...}]
    tags: List[dict] = Field(sa_column=Column(JSON), default_factory=list)
    family_code: str = Field(index=True)  # snapshot of the author's code
    is_private: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    author: User = Relationship()
    likes: List["PostLike"] = Relationship(
        back_populates="post",
        sa_relationship_kwargs={"order_by": "PostLike.id"},
    )
    comments: List["PostComment"] = Relationship(
        back_populates="post",
        sa_relationship_kwargs={"order_by": "PostComment.id"},
    )


class PostLike(SQLModel, table=True):
    """A single user's like on a post."""

    __table_args__ = (UniqueConstraint("post_id", "user_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    post_id: int = Field(foreign_key="post.id", index=True)
    user_id: int = Field(foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    post: Post = Relationship(back_populates="likes")
    user: User = Relationship()


class PostComment(SQLModel, table=True):
    """Comment left on a post by a family member."""

    id: Optional[int] = Field(default=None, primary_key=True)
    post_id: int = Field(foreign_key="post.id", index=True)
    user_id: int = Field(foreign_key="user.id")
    text: str = Field(max_length=500)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    post: Post = Relationship(back_populates="comments")
    user: User = Relationship()
