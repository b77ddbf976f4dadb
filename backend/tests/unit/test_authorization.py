"""Unit tests for authentication states and authorization dependencies."""

import pytest
from unittest.mock import Mock

from fastapi import HTTPException, Request, Response

from orchestra.dependencies import (
    get_authentication,
    get_current_admin,
    get_current_authentication,
    require_unauthenticated,
)
from orchestra.security.authorization import (
    ANONYMOUS,
    AccessTokenAuthentication,
    AnonymousAuthentication,
    is_unauthenticated,
)
from orchestra.services.accesstoken.base import AccessToken, InvalidAccessTokenError
from orchestra.services.accesstoken.repository import Exchange, HeaderAccessTokenRepository


def _authentication(admin: bool = False) -> AccessTokenAuthentication:
    return AccessTokenAuthentication(
        token=AccessToken(token_value="a.b.c", claims={"sub": "7", "admin": admin})
    )


def _exchange(authorization: str | None = None) -> Exchange:
    headers = [(b"authorization", authorization.encode())] if authorization else []
    request = Request({"type": "http", "method": "GET", "path": "/", "query_string": b"", "headers": headers})
    return Exchange(request=request, response=Response())


@pytest.mark.unit
class TestIsUnauthenticated:
    def test_grants_without_authentication(self):
        assert is_unauthenticated(None) is True

    def test_grants_for_anonymous(self):
        assert is_unauthenticated(ANONYMOUS) is True
        assert is_unauthenticated(AnonymousAuthentication()) is True

    def test_denies_authenticated(self):
        assert is_unauthenticated(_authentication()) is False

    def test_grants_for_unauthenticated_token(self):
        authentication = AccessTokenAuthentication(
            token=AccessToken(token_value="a.b.c"), authenticated=False
        )

        assert is_unauthenticated(authentication) is True


@pytest.mark.unit
class TestRequireUnauthenticated:
    @pytest.mark.asyncio
    async def test_anonymous_passes(self):
        assert await require_unauthenticated(ANONYMOUS) is None

    @pytest.mark.asyncio
    async def test_authenticated_is_forbidden(self):
        with pytest.raises(HTTPException) as exc_info:
            await require_unauthenticated(_authentication())

        assert exc_info.value.status_code == 403


@pytest.mark.unit
class TestGetAuthentication:
    @pytest.mark.asyncio
    async def test_no_token_is_anonymous(self, jwt_service):
        authentication = await get_authentication(
            _exchange(), HeaderAccessTokenRepository(), jwt_service
        )

        assert authentication is ANONYMOUS

    @pytest.mark.asyncio
    async def test_valid_token(self, jwt_service):
        user = Mock(id=7, email="u@example.com", full_name=None, image_url=None, authorities=frozenset())
        token = jwt_service.create_access_token(user)

        authentication = await get_authentication(
            _exchange(f"Bearer {token.token_value}"), HeaderAccessTokenRepository(), jwt_service
        )

        assert isinstance(authentication, AccessTokenAuthentication)
        assert authentication.principal == "7"
        assert authentication.token.email == "u@example.com"

    @pytest.mark.asyncio
    async def test_invalid_token_is_rejected(self, jwt_service):
        with pytest.raises(InvalidAccessTokenError):
            await get_authentication(
                _exchange("Bearer not-a-token"), HeaderAccessTokenRepository(), jwt_service
            )


@pytest.mark.unit
class TestCurrentAuthentication:
    @pytest.mark.asyncio
    async def test_anonymous_is_unauthorized(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_authentication(ANONYMOUS)

        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @pytest.mark.asyncio
    async def test_admin_required(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_admin(_authentication(admin=False))

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_passes(self):
        authentication = _authentication(admin=True)

        assert await get_current_admin(authentication) is authentication
