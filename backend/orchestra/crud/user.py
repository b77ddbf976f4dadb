"""CRUD operations for users."""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from orchestra.core.security import hash_password
from orchestra.models.user import User, UserAuthorityRelation
from orchestra.utils.logging_utils import redact_email

logger = logging.getLogger(__name__)


class ConflictError(Exception):
    """A concurrent writer got there first; re-read and retry."""


class StaleVersionError(ConflictError):
    """Conditional update matched no row: the stored version moved on."""


class EntityAlreadyExistsError(ConflictError):
    """Insert violated a unique constraint (e.g. two first logins for one email)."""


class UserCRUD:
    """CRUD operations for User model."""

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
        """Get user by email, always reflecting the row as currently stored."""
        result = await db.execute(
            select(User).where(User.email == email).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
        """Get user by ID."""
        result = await db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_authorities(db: AsyncSession, user_id: int) -> set[str]:
        """Get the authorities granted to a user."""
        result = await db.execute(
            select(UserAuthorityRelation.authority).where(UserAuthorityRelation.user_id == user_id)
        )
        return set(result.scalars().all())

    @staticmethod
    async def get_authorities_by_user_ids(db: AsyncSession, user_ids: list[int]) -> dict[int, set[str]]:
        """Get the authorities of several users in one query."""
        authorities: dict[int, set[str]] = {user_id: set() for user_id in user_ids}
        if not user_ids:
            return authorities
        result = await db.execute(
            select(UserAuthorityRelation.user_id, UserAuthorityRelation.authority).where(
                UserAuthorityRelation.user_id.in_(user_ids)
            )
        )
        for user_id, authority in result.all():
            authorities[user_id].add(authority)
        return authorities

    @staticmethod
    async def count(db: AsyncSession) -> int:
        result = await db.execute(select(func.count(User.id)))
        return result.scalar_one()

    async def list_users(self, db: AsyncSession, limit: int = 50, offset: int = 0) -> list[User]:
        """Page through users in id order, with ``authorities`` populated."""
        result = await db.execute(
            select(User)
            .order_by(User.id)
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        users = list(result.scalars().all())
        authorities = await self.get_authorities_by_user_ids(db, [user.id for user in users])
        for user in users:
            user.authorities = frozenset(authorities[user.id])
        return users

    async def get_by_email_with_authorities(self, db: AsyncSession, email: str) -> Optional[User]:
        """Get user by email with ``authorities`` populated."""
        user = await self.get_by_email(db, email)
        if user is not None:
            user.authorities = frozenset(await self.get_authorities(db, user.id))
        return user

    @staticmethod
    async def create(
        db: AsyncSession,
        email: str,
        full_name: Optional[str] = None,
        image_url: Optional[str] = None,
        password: Optional[str] = None,
        enabled: bool = True,
        email_confirmed: bool = True,
    ) -> User:
        """
        Create a new user at version 0.

        Raises:
            EntityAlreadyExistsError: If a user with the same email already exists
        """
        user = User(
            email=email,
            full_name=full_name,
            image_url=image_url,
            password_hash=hash_password(password) if password else None,
            enabled=enabled,
            email_confirmed=email_confirmed,
            version=0,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise EntityAlreadyExistsError(
                f"User with email {redact_email(email)} already exists"
            ) from exc
        await db.refresh(user)
        logger.debug("User with id %s is created", user.id)
        return user

    @staticmethod
    async def save(db: AsyncSession, user: User) -> User:
        """
        Persist pending changes of a user in a single conditional write.

        The caller sets ``user.version`` to the next value; the update only
        applies if the stored version still equals the one last read.

        Raises:
            StaleVersionError: If another writer has already advanced the version
        """
        # Rollback expires attributes; lazy loads are not allowed under asyncio
        user_id = user.id
        try:
            await db.commit()
        except StaleDataError as exc:
            await db.rollback()
            raise StaleVersionError(
                f"User with id {user_id} was modified concurrently"
            ) from exc
        return user

    @staticmethod
    async def add_authority(db: AsyncSession, user_id: int, authority: str) -> None:
        """Grant an authority to a user."""
        db.add(UserAuthorityRelation(user_id=user_id, authority=authority))
        await db.commit()


# Create singleton instances
user_crud = UserCRUD()
