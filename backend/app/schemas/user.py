# app/schemas/user.py

from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import BeforeValidator, EmailStr, Field

from .base import CamelModel
from .dependent import DependentRead


def _strip(value):
    return value.strip() if isinstance(value, str) else value


Email = Annotated[EmailStr, BeforeValidator(_strip)]
Name = Annotated[str, BeforeValidator(_strip), Field(min_length=1)]


class UserCreate(CamelModel):
    email: Email
    password: str = Field(min_length=6)
    first_name: Name
    last_name: Name
    role: Literal["parent", "guardian"] = "parent"


class UserLogin(CamelModel):
    email: Email
    password: str = Field(min_length=1)


class UserResponse(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    family_code: Optional[str] = None
    role: str
    profile_picture: str = ""


class UserWithChildren(UserResponse):
    children: list[DependentRead] = []


class AuthResponse(CamelModel):
    message: str
    token: str
    user: UserWithChildren


class FamilyMemberSummary(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str


class ProfileRead(UserResponse):
    is_email_verified: bool
    last_login: datetime
    created_at: datetime
    family_members: list[FamilyMemberSummary] = []
    children: list[DependentRead] = []


class ProfileResponse(CamelModel):
    user: ProfileRead


class ProfileUpdate(CamelModel):
    first_name: Optional[Name] = None
    last_name: Optional[Name] = None
    profile_picture: Optional[str] = None


class ProfileUpdateResponse(CamelModel):
    message: str
    user: UserResponse
