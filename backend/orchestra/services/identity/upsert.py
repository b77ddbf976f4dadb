"""Find-or-create local users from OAuth2 identities."""

import logging
from typing import Union

from sqlalchemy.ext.asyncio import AsyncSession

from orchestra.crud.user import user_crud
from orchestra.models.user import EMPTY_USER, User, _EmptyUser
from orchestra.services.oauth2.user import OAuth2Identity
from orchestra.utils.logging_utils import redact_email

logger = logging.getLogger(__name__)


class IdentityUpsertService:
    """Reconciles an OAuth2 identity with the local user record.

    The email is the natural key. A first login creates the user; later logins
    only write when the provider reports a different name or picture, and then
    bump the version by exactly one with a conditional update.

    Conflicts surface as ``ConflictError`` subclasses from the CRUD layer;
    callers retry with a fresh read.
    """

    def __init__(self, crud=user_crud) -> None:
        self.crud = crud

    async def reconcile(
        self, db: AsyncSession, identity: OAuth2Identity
    ) -> Union[User, _EmptyUser]:
        email = identity.email
        if not email:
            logger.info("OAuth2 identity from %s has no email", identity.provider)
            return EMPTY_USER

        full_name = identity.full_name
        image_url = identity.picture

        user = await self.crud.get_by_email(db, email)
        if user is None:
            user = await self.crud.create(
                db,
                email=email,
                full_name=full_name,
                image_url=image_url,
                enabled=True,
                email_confirmed=True,
            )
            logger.info(
                "Created user %s from %s login", redact_email(email), identity.provider
            )
            return user

        if user.full_name == full_name and user.image_url == image_url:
            return user

        user.full_name = full_name
        user.image_url = image_url
        user.version = user.version + 1
        user = await self.crud.save(db, user)
        logger.info(
            "Updated profile of user %s from %s login (version %s)",
            user.id,
            identity.provider,
            user.version,
        )
        return user


identity_upsert_service = IdentityUpsertService()
