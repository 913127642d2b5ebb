# app/routes/auth.py
"""Authentication endpoints: registration, login, family join and profile."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import (
    authenticate_user,
    get_password_hash,
    create_user_token,
    get_current_user,
    normalize_email,
)
from app.config import AppConfig, get_config
from app.crud import (
    create_user,
    get_dependents_by_user,
    get_family_members,
    get_user_by_email,
    save_user,
)
from app.database import get_session
from app.family import ROLE_PARENT, join_family
from app.models import User
from app.routes.profile import dependent_read
from app.schemas import (
    AuthResponse,
    FamilyMemberSummary,
    JoinFamilyRequest,
    ProfileRead,
    ProfileResponse,
    UserCreate,
    UserLogin,
    UserWithChildren,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


def user_with_children(user: User, children=()) -> UserWithChildren:
    return UserWithChildren(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        family_code=user.family_code,
        role=user.role,
        profile_picture=user.profile_picture,
        children=[dependent_read(c) for c in children],
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    user_in: UserCreate,
    db: AsyncSession = Depends(get_session),
    config: AppConfig = Depends(get_config),
):
    """Register a new account; parents start their own family."""

    email = normalize_email(user_in.email)
    if await get_user_by_email(db, email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "auth_email_registered",
                "message": "User already exists",
            },
        )

    new_user = User(
        email=email,
        password_hash=get_password_hash(user_in.password),
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        role=user_in.role,
    )
    new_user = await create_user(db, new_user, with_family=new_user.role == ROLE_PARENT)
    logger.info(
        "User %s registered%s",
        new_user.email,
        f" with family {new_user.family_code}" if new_user.family_code else "",
    )
    return AuthResponse(
        message="User created successfully",
        token=create_user_token(new_user, config),
        user=user_with_children(new_user),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    user_in: UserLogin,
    db: AsyncSession = Depends(get_session),
    config: AppConfig = Depends(get_config),
):
    """JSON-based login used by the frontend."""

    user = await authenticate_user(db=db, email=user_in.email, password=user_in.password)
    if not user:
        logger.warning("Failed login for %s", user_in.email)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "auth_invalid_credentials",
                "message": "Invalid credentials",
            },
        )
    user.last_login = datetime.utcnow()
    user = await save_user(db, user)
    logger.info("User %s logged in", user.email)
    children = await get_dependents_by_user(db, user.id)
    return AuthResponse(
        message="Login successful",
        token=create_user_token(user, config),
        user=user_with_children(user, children),
    )


@router.post("/join-family")
async def join_family_route(
    data: JoinFamilyRequest,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Join the family identified by an invite code."""

    await join_family(db, current_user, data.family_code)
    return {"message": "Successfully joined family"}


@router.get("/profile", response_model=ProfileResponse)
async def read_profile(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Return the authenticated user with their family members."""

    members = await get_family_members(db, current_user.id)
    children = await get_dependents_by_user(db, current_user.id)
    return ProfileResponse(
        user=ProfileRead(
            id=current_user.id,
            email=current_user.email,
            first_name=current_user.first_name,
            last_name=current_user.last_name,
            family_code=current_user.family_code,
            role=current_user.role,
            profile_picture=current_user.profile_picture,
            is_email_verified=current_user.is_email_verified,
            last_login=current_user.last_login,
            created_at=current_user.created_at,
            family_members=[
                FamilyMemberSummary(
                    id=m.id, first_name=m.first_name, last_name=m.last_name, email=m.email
                )
                for m in members
            ],
            children=[dependent_read(c) for c in children],
        )
    )
