"""Routes for managing a user's profile, children and pets."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.crud import (
    delete_dependent,
    get_dependent,
    get_dependents_by_user,
    get_dependents_for_users,
    get_family_members,
    save_dependent,
    save_user,
)
from app.database import get_session
from app.errors import NotFound, ValidationError
from app.models import Dependent, User
from app.schemas import (
    DependentCreate,
    DependentList,
    DependentRead,
    DependentResponse,
    DependentUpdate,
    FamilyChild,
    FamilyMemberRead,
    FamilyRead,
    ProfileUpdate,
    ProfileUpdateResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/profile", tags=["profile"])


def dependent_read(dependent: Dependent) -> DependentRead:
    return DependentRead(
        id=dependent.id,
        name=dependent.name,
        birth_date=dependent.birth_date,
        profile_picture=dependent.profile_picture,
        relationship=dependent.relationship,
    )


def _family_child(dependent: Dependent, parent: User) -> FamilyChild:
    return FamilyChild(
        **dependent_read(dependent).model_dump(), parent_name=parent.full_name
    )


async def _get_own_dependent(db: AsyncSession, user: User, dependent_id: str):
    dependent = await get_dependent(db, user.id, dependent_id)
    if not dependent:
        raise NotFound("Child not found", code="child_not_found")
    return dependent


@router.get("/children", response_model=DependentList)
async def list_children(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    children = await get_dependents_by_user(db, current_user.id)
    return DependentList(children=[dependent_read(c) for c in children])


@router.post("/children", response_model=DependentResponse, status_code=201)
async def add_child(
    data: DependentCreate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Add a child or pet to the current user's profile."""
    dependent = await save_dependent(
        db,
        Dependent(
            user_id=current_user.id,
            name=data.name,
            birth_date=data.birth_date,
            relationship=data.relationship,
        ),
    )
    label = "Pet" if dependent.relationship == "pet" else "Child"
    return DependentResponse(
        message=f"{label} added successfully", child=dependent_read(dependent)
    )


@router.put("/children/{child_id}", response_model=DependentResponse)
async def update_child(
    child_id: str,
    data: DependentUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    dependent = await _get_own_dependent(db, current_user, child_id)
    if data.name is not None:
        if not data.name.strip():
            raise ValidationError("Name must not be empty")
        dependent.name = data.name.strip()
    if data.birth_date is not None:
        dependent.birth_date = data.birth_date
    if data.profile_picture is not None:
        dependent.profile_picture = data.profile_picture
    dependent = await save_dependent(db, dependent)
    return DependentResponse(
        message="Profile updated successfully", child=dependent_read(dependent)
    )


@router.delete("/children/{child_id}")
async def remove_child(
    child_id: str,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    dependent = await _get_own_dependent(db, current_user, child_id)
    await delete_dependent(db, dependent)
    return {"message": "Profile removed successfully"}


@router.get("/family", response_model=FamilyRead)
async def read_family(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Family code, linked members and every child visible to the user."""
    members = await get_family_members(db, current_user.id)
    grouped = await get_dependents_for_users(
        db, [current_user.id] + [m.id for m in members]
    )
    all_children = [_family_child(d, current_user) for d in grouped[current_user.id]]
    family_members = []
    for member in members:
        all_children.extend(_family_child(d, member) for d in grouped[member.id])
        family_members.append(
            FamilyMemberRead(
                id=member.id,
                first_name=member.first_name,
                last_name=member.last_name,
                email=member.email,
                profile_picture=member.profile_picture,
                children=[dependent_read(d) for d in grouped[member.id]],
            )
        )
    return FamilyRead(
        family_code=current_user.family_code,
        family_members=family_members,
        all_children=all_children,
    )


@router.put("/update", response_model=ProfileUpdateResponse)
async def update_profile(
    data: ProfileUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Update the current user's name or profile picture."""
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(current_user, field, value)
    user = await save_user(db, current_user)
    return ProfileUpdateResponse(
        message="Profile updated successfully",
        user=UserResponse(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            family_code=user.family_code,
            role=user.role,
            profile_picture=user.profile_picture,
        ),
    )
