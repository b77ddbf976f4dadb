"""Email/password authentication against the local user table."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from orchestra.core.security import generate_random_token, hash_password, verify_password
from orchestra.crud.user import user_crud
from orchestra.models.user import User
from orchestra.utils.logging_utils import redact_email

logger = logging.getLogger(__name__)

# Verified against when the user has no password so that response time
# does not reveal whether the email is registered
DUMMY_PASSWORD_HASH = hash_password(generate_random_token())


async def authenticate_local_user(
    db: AsyncSession, email: str, password: str
) -> Optional[User]:
    """
    Return the user when the credentials are valid, ``None`` otherwise.

    Users without a password (OAuth2-only) and disabled users never match.
    The returned user has its ``authorities`` loaded.
    """
    user = await user_crud.get_by_email_with_authorities(db, email)
    if user is None or not user.password_hash:
        verify_password(password, DUMMY_PASSWORD_HASH)
        logger.info("Login failed for %s: no local credentials", redact_email(email))
        return None

    if not verify_password(password, user.password_hash):
        logger.info("Login failed for %s: wrong password", redact_email(email))
        return None

    if not user.enabled:
        logger.info("Login failed for %s: user is disabled", redact_email(email))
        return None

    return user
