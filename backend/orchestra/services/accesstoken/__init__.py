"""Access token package: signed bearer tokens and their HTTP carriers."""

from orchestra.services.accesstoken.base import (
    AccessToken,
    AccessTokenService,
    InvalidAccessTokenError,
)
from orchestra.services.accesstoken.jwt import JwtService, get_access_token_service
from orchestra.services.accesstoken.repository import (
    AccessTokenRepository,
    CookieAccessTokenRepository,
    Exchange,
    HeaderAccessTokenRepository,
    get_access_token_repository,
)

__all__ = [
    "AccessToken",
    "AccessTokenService",
    "InvalidAccessTokenError",
    "JwtService",
    "get_access_token_service",
    "AccessTokenRepository",
    "CookieAccessTokenRepository",
    "Exchange",
    "HeaderAccessTokenRepository",
    "get_access_token_repository",
]
