"""JWT access tokens signed with the application's HMAC key."""

import base64
import logging
from typing import Any, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from orchestra.config import settings
from orchestra.services.accesstoken.base import (
    AccessToken,
    AccessTokenService,
    InvalidAccessTokenError,
)
from orchestra.utils.datetime_utils import epoch_seconds_now

logger = logging.getLogger(__name__)


class JwtService(AccessTokenService):
    """Issues compact JWS tokens carrying ``sub, email, name, picture, admin, iat, exp``.

    ``iat`` and ``exp`` are integer seconds since the epoch (UTC). Only the
    configured algorithm is accepted when parsing.
    """

    def __init__(
        self,
        signing_key: bytes,
        algorithm: str = "HS512",
        validity_seconds: int = 300,
        admin_authority: str = "ADMIN",
    ) -> None:
        if validity_seconds <= 0:
            raise ValueError("validity_seconds must be positive")
        self._signing_key = signing_key
        self._algorithm = algorithm
        self._validity_seconds = validity_seconds
        self._admin_authority = admin_authority

    @classmethod
    def from_settings(cls) -> "JwtService":
        return cls(
            signing_key=base64.b64decode(settings.ACCESS_TOKEN_SIGNING_KEY),
            algorithm=settings.ACCESS_TOKEN_ALGORITHM,
            validity_seconds=settings.ACCESS_TOKEN_VALIDITY_SECONDS,
            admin_authority=settings.ADMIN_AUTHORITY,
        )

    def create_access_token(self, user, now: Optional[int] = None) -> AccessToken:
        issued_at = epoch_seconds_now() if now is None else now
        claims: dict[str, Any] = {
            "sub": str(user.id) if user.id is not None else user.email,
            "email": user.email,
            "name": user.full_name,
            "picture": user.image_url,
            "admin": self._admin_authority in (user.authorities or ()),
            "iat": issued_at,
            "exp": issued_at + self._validity_seconds,
        }
        token_value = jwt.encode(claims, self._signing_key, algorithm=self._algorithm)
        return AccessToken(token_value=token_value, claims=claims)

    def parse_access_token(self, token_value: str) -> AccessToken:
        if not token_value:
            raise InvalidAccessTokenError("Access token is empty")

        try:
            claims = jwt.decode(
                token_value,
                self._signing_key,
                algorithms=[self._algorithm],
                options={"verify_aud": False},
            )
        except ExpiredSignatureError as e:
            raise InvalidAccessTokenError("Access token has expired") from e
        except JWTClaimsError as e:
            raise InvalidAccessTokenError("Access token claims are invalid") from e
        except JWTError as e:
            raise InvalidAccessTokenError("Access token can not be verified") from e

        iat, exp = claims.get("iat"), claims.get("exp")
        if not isinstance(iat, int) or not isinstance(exp, int):
            raise InvalidAccessTokenError("Access token lacks iat/exp claims")
        if exp <= iat:
            raise InvalidAccessTokenError("Access token expires before it is issued")

        return AccessToken(token_value=token_value, claims=claims)


# Module-level singleton (built lazily on first request)
_service: Optional[JwtService] = None


def get_access_token_service() -> AccessTokenService:
    """Return the process-wide token service, built from settings on first use."""
    global _service
    if _service is None:
        _service = JwtService.from_settings()
        logger.info(
            "Access token service: %s, validity %ss",
            settings.ACCESS_TOKEN_ALGORITHM,
            settings.ACCESS_TOKEN_VALIDITY_SECONDS,
        )
    return _service
