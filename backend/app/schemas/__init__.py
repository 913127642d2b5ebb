"""Convenience imports for all schema classes used by the API."""

from .base import CamelModel
from .user import (
    UserCreate,
    UserLogin,
    UserResponse,
    UserWithChildren,
    AuthResponse,
    FamilyMemberSummary,
    ProfileRead,
    ProfileResponse,
    ProfileUpdate,
    ProfileUpdateResponse,
)
from .dependent import (
    DependentCreate,
    DependentUpdate,
    DependentRead,
    DependentResponse,
    DependentList,
)
from .family import JoinFamilyRequest, FamilyChild, FamilyMemberRead, FamilyRead
from .post import (
    PostUser,
    MediaRead,
    TagRead,
    LikeRead,
    CommentCreate,
    CommentRead,
    PostRead,
    PostResponse,
    PostListResponse,
    LikeResponse,
    CommentResponse,
)

__all__ = [
    "CamelModel",
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "UserWithChildren",
    "AuthResponse",
    "FamilyMemberSummary",
    "ProfileRead",
    "ProfileResponse",
    "ProfileUpdate",
    "ProfileUpdateResponse",
    "DependentCreate",
    "DependentUpdate",
    "DependentRead",
    "DependentResponse",
    "DependentList",
    "JoinFamilyRequest",
    "FamilyChild",
    "FamilyMemberRead",
    "FamilyRead",
    "PostUser",
    "MediaRead",
    "TagRead",
    "LikeRead",
    "CommentCreate",
    "CommentRead",
    "PostRead",
    "PostResponse",
    "PostListResponse",
    "LikeResponse",
    "CommentResponse",
]
