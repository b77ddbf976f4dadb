"""Unit tests for loading, saving and removing access tokens on an exchange."""

from http.cookies import SimpleCookie

import pytest
from fastapi import Request, Response
from unittest.mock import patch

from orchestra.services.accesstoken.base import AccessToken
from orchestra.services.accesstoken.repository import (
    CookieAccessTokenRepository,
    Exchange,
    HeaderAccessTokenRepository,
    get_access_token_repository,
)

TOKEN = AccessToken(token_value="aaa.bbb.ccc", claims={"sub": "1", "iat": 1000, "exp": 1300})


def _exchange(headers: dict | None = None) -> Exchange:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    request = Request({"type": "http", "method": "GET", "path": "/", "query_string": b"", "headers": raw_headers})
    return Exchange(request=request, response=Response())


def _set_cookie(response: Response, name: str):
    cookies = SimpleCookie()
    for header, value in response.raw_headers:
        if header == b"set-cookie":
            cookies.load(value.decode())
    return cookies.get(name)


@pytest.mark.unit
class TestHeaderAccessTokenRepository:
    @pytest.fixture
    def repository(self):
        return HeaderAccessTokenRepository()

    def test_load_bearer_token(self, repository):
        token = repository.load_access_token(_exchange({"Authorization": "Bearer aaa.bbb.ccc"}))

        assert token.token_value == "aaa.bbb.ccc"
        assert token.claims == {}

    @pytest.mark.parametrize("scheme", ["bearer", "BEARER", "BeArEr"])
    def test_scheme_is_case_insensitive(self, repository, scheme):
        token = repository.load_access_token(_exchange({"Authorization": f"{scheme} aaa.bbb.ccc"}))

        assert token.token_value == "aaa.bbb.ccc"

    def test_not_delivered_on_redirect(self, repository):
        assert repository.delivered_on_redirect is False

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Authorization": "Basic dXNlcjpwYXNz"},
            {"Authorization": "Bearer "},
            {"Authorization": "Beareraaa.bbb.ccc"},
        ],
    )
    def test_load_without_bearer_token(self, repository, headers):
        assert repository.load_access_token(_exchange(headers)) is None

    def test_save_sets_response_header(self, repository):
        exchange = _exchange()

        saved = repository.save_access_token(TOKEN, exchange)

        assert saved is TOKEN
        assert exchange.response.headers["Authorization"] == "Bearer aaa.bbb.ccc"

    def test_remove_returns_token_and_leaves_response_alone(self, repository):
        exchange = _exchange({"Authorization": "Bearer aaa.bbb.ccc"})

        removed = repository.remove_access_token(exchange)

        assert removed.token_value == "aaa.bbb.ccc"
        assert "authorization" not in exchange.response.headers
        assert "set-cookie" not in exchange.response.headers

    def test_remove_without_token(self, repository):
        assert repository.remove_access_token(_exchange()) is None


@pytest.mark.unit
class TestCookieAccessTokenRepository:
    @pytest.fixture
    def repository(self):
        return CookieAccessTokenRepository(cookie_name="access_token", domain="orchestra.app")

    def test_delivered_on_redirect(self, repository):
        assert repository.delivered_on_redirect is True

    def test_load_from_cookie(self, repository):
        token = repository.load_access_token(_exchange({"Cookie": "access_token=aaa.bbb.ccc"}))

        assert token.token_value == "aaa.bbb.ccc"

    def test_load_without_cookie(self, repository):
        assert repository.load_access_token(_exchange({"Cookie": "other=1"})) is None

    def test_save_sets_http_only_cookie(self, repository):
        exchange = _exchange()

        saved = repository.save_access_token(TOKEN, exchange)

        assert saved is TOKEN
        morsel = _set_cookie(exchange.response, "access_token")
        assert morsel.value == "aaa.bbb.ccc"
        assert morsel["httponly"]
        assert morsel["path"] == "/"
        assert morsel["max-age"] == "300"
        assert morsel["domain"] == ".orchestra.app"

    def test_remove_expires_cookie(self, repository):
        exchange = _exchange({"Cookie": "access_token=aaa.bbb.ccc"})

        removed = repository.remove_access_token(exchange)

        assert removed.token_value == "aaa.bbb.ccc"
        morsel = _set_cookie(exchange.response, "access_token")
        assert morsel.value == ""
        assert morsel["max-age"] == "0"

    def test_remove_without_cookie_still_expires(self, repository):
        exchange = _exchange()

        assert repository.remove_access_token(exchange) is None
        assert _set_cookie(exchange.response, "access_token")["max-age"] == "0"

    def test_no_domain_when_not_configured(self):
        exchange = _exchange()

        CookieAccessTokenRepository().save_access_token(TOKEN, exchange)

        assert _set_cookie(exchange.response, "access_token")["domain"] == ""


@pytest.mark.unit
class TestCarrierSelection:
    def test_header_by_default(self):
        with patch("orchestra.services.accesstoken.repository.settings") as mock_settings:
            mock_settings.ACCESS_TOKEN_CARRIER = "header"
            assert isinstance(get_access_token_repository(), HeaderAccessTokenRepository)

    def test_cookie(self):
        with patch("orchestra.services.accesstoken.repository.settings") as mock_settings:
            mock_settings.ACCESS_TOKEN_CARRIER = "cookie"
            mock_settings.ACCESS_TOKEN_COOKIE_NAME = "at"
            mock_settings.APPLICATION_DOMAIN = None

            repository = get_access_token_repository()

        assert isinstance(repository, CookieAccessTokenRepository)
        assert repository.cookie_name == "at"
        assert repository.domain is None
