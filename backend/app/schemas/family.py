"""Schemas for joining and viewing a family."""

from typing import Optional

from pydantic import Field

from .base import CamelModel
from .dependent import DependentRead


class JoinFamilyRequest(CamelModel):
    family_code: str = Field(min_length=1)


class FamilyChild(DependentRead):
    parent_name: str


class FamilyMemberRead(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    profile_picture: str = ""
    children: list[DependentRead] = []


class FamilyRead(CamelModel):
    family_code: Optional[str] = None
    family_members: list[FamilyMemberRead]
    all_children: list[FamilyChild]
