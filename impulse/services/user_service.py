"""
UserService - Profiles

Account credentials are managed by the external auth collaborator; this
service only creates the profile record and edits its display fields.
"""

import logging
from typing import Any, Dict, Optional

import psycopg
import pydantic

from impulse.db.store import HabitStore
from impulse.exceptions import RecordNotFoundError, ValidationError
from impulse.gamification.xp_system import calculate_level_from_xp
from impulse.models.user import User
from impulse.services.unit_of_work import to_validation_error, unit_of_work
from impulse.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


class UserService:
    """Service for user profiles"""

    def __init__(self, store: HabitStore):
        self.store = store

    async def create_user(self, username: str, email: str) -> User:
        """Register a profile; username and email must be unique"""
        try:
            user = User(username=username, email=email)
        except pydantic.ValidationError as e:
            raise to_validation_error(e) from e

        if await self.store.find_user(email=user.email) is not None:
            raise ValidationError(
                "User with this email already exists",
                field="email",
                value=user.email,
                user_message="User with this email already exists"
            )
        if await self.store.find_user(username=user.username) is not None:
            raise ValidationError(
                "Username already taken",
                field="username",
                value=user.username,
                user_message="Username already taken"
            )

        async with unit_of_work(self.store, "create_user", user_id=user.id) as session:
            try:
                await session.create_user(user)
            except psycopg.errors.UniqueViolation as e:
                raise _duplicate_user_error(e, user) from e

        logger.info(f"Created user {user.id} ({user.username})")
        return user

    async def get_user(self, user_id: str) -> User:
        user = await self.store.load_user(user_id)
        if user is None:
            raise RecordNotFoundError(
                f"User {user_id} not found",
                record_type="User",
                record_id=user_id,
                operation="get_user"
            )
        return user

    async def get_profile(self, user_id: str) -> Dict[str, Any]:
        """Public profile plus level progress"""
        user = await self.get_user(user_id)
        return {**user.public_dict(), "progress": calculate_level_from_xp(user.xp)}

    async def update_profile(
        self,
        user_id: str,
        username: Optional[str] = None,
        current_theme: Optional[str] = None,
        current_badge: Optional[str] = None
    ) -> Dict[str, Any]:
        """Update display fields; omitted fields are left unchanged"""
        if username is not None:
            existing = await self.store.find_user(username=username.strip())
            if existing is not None and existing.id != user_id:
                raise ValidationError(
                    "Username already taken",
                    field="username",
                    value=username,
                    user_id=user_id,
                    user_message="Username already taken"
                )

        async with unit_of_work(self.store, "update_profile", user_id=user_id) as session:
            user = await session.load_user(user_id, for_update=True)
            if user is None:
                raise RecordNotFoundError(
                    f"User {user_id} not found",
                    record_type="User",
                    record_id=user_id,
                    operation="update_profile"
                )

            updates: Dict[str, Any] = {}
            if username is not None:
                updates["username"] = username
            if current_theme is not None:
                updates["current_theme"] = current_theme
            if current_badge is not None:
                updates["current_badge"] = current_badge

            try:
                user = User.model_validate({**user.model_dump(), **updates, "updated_at": now_utc()})
            except pydantic.ValidationError as e:
                raise to_validation_error(e, user_id) from e

            try:
                await session.save_user(user)
            except psycopg.errors.UniqueViolation as e:
                raise _duplicate_user_error(e, user) from e

        logger.info(f"Updated profile of user {user_id}: {sorted(updates)}")
        return {**user.public_dict(), "progress": calculate_level_from_xp(user.xp)}


def _duplicate_user_error(error: psycopg.errors.UniqueViolation, user: User) -> ValidationError:
    """Map a unique-key race lost to a concurrent registration onto the usual messages"""
    constraint = error.diag.constraint_name or str(error)
    if "email" in constraint:
        message, field, value = "User with this email already exists", "email", user.email
    else:
        message, field, value = "Username already taken", "username", user.username
    return ValidationError(message, field=field, value=value, user_id=user.id, user_message=message, cause=error)
