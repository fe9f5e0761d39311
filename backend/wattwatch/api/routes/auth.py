"""Auth routes — local accounts with bearer tokens."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.api.deps import get_current_user
from wattwatch.database import get_db
from wattwatch.models.user import User
from wattwatch.schemas.auth import (
    LoginRequest,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    TokenResponse,
    UserInfo,
)
from wattwatch.schemas.common import Envelope, ok
from wattwatch.services import get_auth_service
from wattwatch.services.auth_service import user_to_dict

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/register", response_model=Envelope[TokenResponse], status_code=201)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    user, token = await get_auth_service().register(db, body.model_dump())
    return ok({"access_token": token, "user": user_to_dict(user)}, "Registration successful")


@router.post("/login", response_model=Envelope[TokenResponse])
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    user, token = await get_auth_service().login(db, body.email, body.password)
    logger.info("Login: %s", user.email)
    return ok({"access_token": token, "user": user_to_dict(user)})


@router.post("/logout")
async def logout(user: User = Depends(get_current_user)):
    """Tokens are stateless; clients drop theirs."""
    logger.info("Logout: %s", user.email)
    return ok(message="Logged out")


@router.get("/me", response_model=Envelope[UserInfo])
async def me(user: User = Depends(get_current_user)):
    return ok(user_to_dict(user))


@router.put("/profile", response_model=Envelope[UserInfo])
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await get_auth_service().update_profile(db, user, body.model_dump(exclude_unset=True))
    return ok(user_to_dict(user), "Profile updated")


@router.put("/password", response_model=Envelope[TokenResponse])
async def change_password(
    body: PasswordChange,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    token = await get_auth_service().change_password(
        db, user, body.current_password, body.new_password
    )
    return ok({"access_token": token, "user": user_to_dict(user)}, "Password updated")
