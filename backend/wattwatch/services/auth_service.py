"""Local accounts — registration, login, JWT issuing and admin user management."""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Any

from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wattwatch.config import settings
from wattwatch.exceptions import AuthError, ConflictError, NotFoundError
from wattwatch.models.user import User
from wattwatch.utils.clock import utcnow
from wattwatch.utils.hashing import hash_password, verify_password

logger = logging.getLogger(__name__)


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "is_active": bool(user.is_active),
        "last_login": user.last_login,
        "created_at": user.created_at,
    }


class AuthService:
    """Owns password hashes and bearer tokens."""

    def create_token(self, user: User) -> str:
        expire = utcnow() + timedelta(minutes=settings.token_expire_minutes)
        payload = {"sub": user.id, "role": user.role, "exp": expire}
        return jwt.encode(payload, settings.secret_key, algorithm=settings.token_algorithm)

    def decode_token(self, token: str) -> str:
        """Return the user id carried by ``token``; raises AuthError."""
        try:
            payload = jwt.decode(
                token, settings.secret_key, algorithms=[settings.token_algorithm]
            )
        except JWTError:
            raise AuthError("Invalid or expired token")
        user_id = payload.get("sub")
        if not user_id:
            raise AuthError("Invalid token: no subject claim")
        return user_id

    async def _by_email(self, db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def register(self, db: AsyncSession, data: dict[str, Any]) -> tuple[User, str]:
        email = data["email"].lower()
        if await self._by_email(db, email):
            raise ConflictError("An account with this email already exists")
        user = User(
            id=str(uuid.uuid4()),
            name=data["name"],
            email=email,
            password_hash=hash_password(data["password"], settings.password_hash_rounds),
            role="user",
            is_active=1,
            last_login=utcnow(),
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info("User registered: %s (%s)", user.email, user.role)
        return user, self.create_token(user)

    async def login(self, db: AsyncSession, email: str, password: str) -> tuple[User, str]:
        user = await self._by_email(db, email)
        if user is None or not verify_password(password, user.password_hash):
            raise AuthError("Invalid email or password")
        if not user.is_active:
            raise AuthError("Account is deactivated")
        user.last_login = utcnow()
        await db.commit()
        await db.refresh(user)
        return user, self.create_token(user)

    async def update_profile(self, db: AsyncSession, user: User, data: dict[str, Any]) -> User:
        if data.get("email") and data["email"].lower() != user.email:
            if await self._by_email(db, data["email"]):
                raise ConflictError("An account with this email already exists")
            user.email = data["email"].lower()
        if data.get("name"):
            user.name = data["name"]
        if data.get("password"):
            user.password_hash = hash_password(data["password"], settings.password_hash_rounds)
        await db.commit()
        await db.refresh(user)
        return user

    async def change_password(
        self, db: AsyncSession, user: User, current_password: str, new_password: str
    ) -> str:
        """Replace the password after checking the current one; returns a fresh token."""
        if not verify_password(current_password, user.password_hash):
            raise AuthError("Current password is incorrect")
        user.password_hash = hash_password(new_password, settings.password_hash_rounds)
        await db.commit()
        await db.refresh(user)
        logger.info("Password changed: %s", user.email)
        return self.create_token(user)

    # --- admin ----------------------------------------------------------

    async def list_users(self, db: AsyncSession) -> list[dict]:
        result = await db.execute(select(User).order_by(User.created_at.desc()))
        return [user_to_dict(u) for u in result.scalars().all()]

    async def update_user(self, db: AsyncSession, user_id: str, data: dict[str, Any]) -> dict:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if data.get("name"):
            user.name = data["name"]
        if data.get("role"):
            user.role = data["role"]
        if data.get("is_active") is not None:
            user.is_active = 1 if data["is_active"] else 0
        await db.commit()
        await db.refresh(user)
        return user_to_dict(user)

    async def deactivate_user(self, db: AsyncSession, user_id: str) -> dict:
        return await self.update_user(db, user_id, {"is_active": False})
