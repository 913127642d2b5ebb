"""Schemas for children and pets attached to a user."""

from datetime import date
from typing import Literal, Optional

from pydantic import Field, field_validator

from .base import CamelModel


class DependentCreate(CamelModel):
    name: str = Field(min_length=1)
    birth_date: Optional[date] = None
    relationship: Literal["child", "pet"] = "child"

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class DependentUpdate(CamelModel):
    name: Optional[str] = None
    birth_date: Optional[date] = None
    profile_picture: Optional[str] = None


class DependentRead(CamelModel):
    id: str
    name: str
    birth_date: Optional[date] = None
    profile_picture: str = ""
    relationship: str


class DependentResponse(CamelModel):
    message: str
    child: DependentRead


class DependentList(CamelModel):
    children: list[DependentRead]
