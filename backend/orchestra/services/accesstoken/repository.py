"""Load, save and remove access tokens on a single HTTP exchange.

Nothing is kept between requests: the token only ever lives on the
request/response pair it was found on or written to.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from fastapi import Request, Response

from orchestra.config import settings
from orchestra.services.accesstoken.base import AccessToken

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Exchange:
    """One HTTP request and the response being built for it."""

    request: Request
    response: Response


class AccessTokenRepository(ABC):
    """Carrier of the access token string on an exchange."""

    # Whether a token saved on a redirect response reaches the client that
    # follows the redirect
    delivered_on_redirect: bool = True

    @abstractmethod
    def load_access_token(self, exchange: Exchange) -> Optional[AccessToken]:
        """Token found on the request (not verified), ``None`` when absent."""

    @abstractmethod
    def save_access_token(self, token: AccessToken, exchange: Exchange) -> AccessToken:
        """Write the token to the response and return it unchanged."""

    @abstractmethod
    def remove_access_token(self, exchange: Exchange) -> Optional[AccessToken]:
        """Clear the token and return the one that was present, if any."""


class HeaderAccessTokenRepository(AccessTokenRepository):
    """``Authorization: Bearer <token>``.

    The client owns header state, so removal cannot clear anything on its side.
    """

    delivered_on_redirect = False

    def load_access_token(self, exchange: Exchange) -> Optional[AccessToken]:
        authorization = exchange.request.headers.get("Authorization")
        if not authorization:
            return None
        # Auth scheme names are case-insensitive
        scheme, _, token_value = authorization.partition(" ")
        if scheme.lower() != BEARER_PREFIX.strip().lower():
            return None
        token_value = token_value.strip()
        return AccessToken(token_value=token_value) if token_value else None

    def save_access_token(self, token: AccessToken, exchange: Exchange) -> AccessToken:
        exchange.response.headers["Authorization"] = BEARER_PREFIX + token.token_value
        return token

    def remove_access_token(self, exchange: Exchange) -> Optional[AccessToken]:
        return self.load_access_token(exchange)


class CookieAccessTokenRepository(AccessTokenRepository):
    """HTTP-only cookie scoped to the application domain."""

    def __init__(self, cookie_name: str = "access_token", domain: Optional[str] = None) -> None:
        self.cookie_name = cookie_name
        self.domain = f".{domain.lstrip('.')}" if domain else None

    def _set_cookie(self, response: Response, value: str, max_age: int) -> None:
        response.set_cookie(
            key=self.cookie_name,
            value=value,
            max_age=max_age,
            path="/",
            domain=self.domain,
            httponly=True,
            samesite="lax",
        )

    def load_access_token(self, exchange: Exchange) -> Optional[AccessToken]:
        token_value = exchange.request.cookies.get(self.cookie_name)
        return AccessToken(token_value=token_value) if token_value else None

    def save_access_token(self, token: AccessToken, exchange: Exchange) -> AccessToken:
        self._set_cookie(exchange.response, token.token_value, token.max_age)
        return token

    def remove_access_token(self, exchange: Exchange) -> Optional[AccessToken]:
        token = self.load_access_token(exchange)
        self._set_cookie(exchange.response, "", 0)
        return token


def get_access_token_repository() -> AccessTokenRepository:
    """Carrier configured for this deployment (``ACCESS_TOKEN_CARRIER``)."""
    if settings.ACCESS_TOKEN_CARRIER == "cookie":
        return CookieAccessTokenRepository(
            cookie_name=settings.ACCESS_TOKEN_COOKIE_NAME,
            domain=settings.APPLICATION_DOMAIN,
        )
    return HeaderAccessTokenRepository()
