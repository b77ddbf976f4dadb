"""OAuth2 client registrations and the HTTP client talking to providers."""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import httpx

from orchestra.config import settings
from orchestra.services.oauth2.exceptions import (
    INVALID_TOKEN_RESPONSE,
    INVALID_USER_INFO_RESPONSE,
    MISSING_USER_INFO_URI,
    MISSING_USER_NAME_ATTRIBUTE,
    SERVER_ERROR,
    OAuth2AuthenticationError,
)

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/v1/auth/oauth2/code/{registration_id}"

# VK API parameters sent with every users.get call
VK_USER_FIELDS = "photo_100"
VK_API_VERSION = "5.103"


@dataclass(frozen=True)
class ClientRegistration:
    """This application's registration with one OAuth2 provider."""

    registration_id: str
    client_id: str
    client_secret: Optional[str]
    authorization_uri: str
    token_uri: str
    user_info_uri: Optional[str]
    user_name_attribute: Optional[str]
    scopes: tuple[str, ...] = ()
    redirect_uri: str = ""


@dataclass(frozen=True)
class TokenResponse:
    """Provider response to the authorization-code exchange."""

    access_token: str
    token_type: str = "Bearer"
    scopes: frozenset = frozenset()
    # Everything else the provider returned (VK puts the user's email here)
    additional_parameters: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OAuth2UserRequest:
    registration: ClientRegistration
    token_response: TokenResponse


# Provider endpoints; client credentials come from settings
_PROVIDERS: dict[str, dict[str, Any]] = {
    "google": {
        "authorization_uri": "https://accounts.google.com/o/oauth2/v2/auth",
        "token_uri": "https://oauth2.googleapis.com/token",
        "user_info_uri": "https://openidconnect.googleapis.com/v1/userinfo",
        "user_name_attribute": "sub",
        "scopes": ("openid", "profile", "email"),
    },
    "facebook": {
        "authorization_uri": "https://www.facebook.com/v2.8/dialog/oauth",
        "token_uri": "https://graph.facebook.com/v2.8/oauth/access_token",
        "user_info_uri": "https://graph.facebook.com/me?fields=id,name,email",
        "user_name_attribute": "id",
        "scopes": ("public_profile", "email"),
    },
    "github": {
        "authorization_uri": "https://github.com/login/oauth/authorize",
        "token_uri": "https://github.com/login/oauth/access_token",
        "user_info_uri": "https://api.github.com/user",
        "user_name_attribute": "id",
        "scopes": ("read:user", "user:email"),
    },
    "vk": {
        "authorization_uri": "https://oauth.vk.com/authorize",
        "token_uri": "https://oauth.vk.com/access_token",
        "user_info_uri": "https://api.vk.com/method/users.get",
        "user_name_attribute": "id",
        "scopes": ("email",),
    },
}

# Module-level registry (built lazily on first request)
_registrations: Optional[dict[str, ClientRegistration]] = None


def build_registrations() -> dict[str, ClientRegistration]:
    """Register every provider whose client id is configured."""
    registrations: dict[str, ClientRegistration] = {}
    base_url = settings.OAUTH2_REDIRECT_BASE_URL.rstrip("/")

    for registration_id, provider in _PROVIDERS.items():
        prefix = f"OAUTH2_{registration_id.upper()}"
        client_id = getattr(settings, f"{prefix}_CLIENT_ID", None)
        if not client_id:
            continue
        registrations[registration_id] = ClientRegistration(
            registration_id=registration_id,
            client_id=client_id,
            client_secret=getattr(settings, f"{prefix}_CLIENT_SECRET", None),
            redirect_uri=base_url + CALLBACK_PATH.format(registration_id=registration_id),
            **provider,
        )
        logger.info("OAuth2: registered client for %s", registration_id)

    if not registrations:
        logger.warning("OAuth2: no provider client ids configured, OAuth2 login is disabled")
    return registrations


def get_registrations() -> dict[str, ClientRegistration]:
    global _registrations
    if _registrations is None:
        _registrations = build_registrations()
    return _registrations


def reset_registrations() -> None:
    """Drop the cached registry (tests, settings reload)."""
    global _registrations
    _registrations = None


def _error_description(response: httpx.Response) -> str:
    www_authenticate = response.headers.get("WWW-Authenticate")
    if www_authenticate:
        return www_authenticate
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, Mapping):
        error = body.get("error")
        if isinstance(error, Mapping):
            # Facebook and VK wrap errors in an object
            return str(error.get("message") or error.get("error_msg") or error)
        return str(body.get("error_description") or error or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"


def _parse_scopes(value: Any) -> frozenset:
    if not value:
        return frozenset()
    if isinstance(value, str):
        return frozenset(s for s in value.replace(",", " ").split() if s)
    return frozenset(str(s) for s in value)


class OAuth2ProviderClient:
    """Performs the provider side of the authorization-code flow over HTTP.

    Pass ``http_client`` to reuse a connection pool (or a mock transport in
    tests); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else settings.OAUTH2_HTTP_TIMEOUT_SECONDS
        self._http_client = http_client

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, url, **kwargs)

    @staticmethod
    def build_authorization_uri(registration: ClientRegistration, state: str) -> str:
        """Provider URI the user agent is redirected to for consent."""
        params = {
            "response_type": "code",
            "client_id": registration.client_id,
            "redirect_uri": registration.redirect_uri,
            "state": state,
        }
        if registration.scopes:
            params["scope"] = " ".join(registration.scopes)
        return str(httpx.URL(registration.authorization_uri).copy_merge_params(params))

    async def exchange_code(self, registration: ClientRegistration, code: str) -> TokenResponse:
        """Trade an authorization code for an access token.

        Raises:
            OAuth2AuthenticationError: ``invalid_token_response`` or ``server_error``
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": registration.redirect_uri,
            "client_id": registration.client_id,
        }
        if registration.client_secret:
            data["client_secret"] = registration.client_secret

        try:
            response = await self._send(
                "POST",
                registration.token_uri,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.warning("OAuth2 token request to %s failed: %s", registration.registration_id, exc)
            raise OAuth2AuthenticationError(
                SERVER_ERROR, f"Unable to access the token endpoint {registration.token_uri}"
            ) from exc

        if response.status_code != 200:
            raise OAuth2AuthenticationError(INVALID_TOKEN_RESPONSE, _error_description(response))

        try:
            body = response.json()
        except ValueError as exc:
            raise OAuth2AuthenticationError(
                INVALID_TOKEN_RESPONSE, "Token response is not valid JSON"
            ) from exc

        if not isinstance(body, Mapping) or not body.get("access_token"):
            # GitHub answers 200 with an error body for a bad code
            description = body.get("error_description") if isinstance(body, Mapping) else None
            raise OAuth2AuthenticationError(
                INVALID_TOKEN_RESPONSE, description or "Access token is missing"
            )

        additional = {
            key: value
            for key, value in body.items()
            if key not in ("access_token", "token_type", "scope")
        }
        return TokenResponse(
            access_token=body["access_token"],
            # VK omits token_type
            token_type=body.get("token_type") or "Bearer",
            scopes=_parse_scopes(body.get("scope")),
            additional_parameters=additional,
        )

    async def fetch_user_attributes(self, user_request: OAuth2UserRequest) -> dict[str, Any]:
        """Read the user's attributes from the provider's UserInfo endpoint.

        Raises:
            OAuth2AuthenticationError: ``missing_user_info_uri``,
                ``missing_user_name_attribute``, ``invalid_user_info_response``
                or ``server_error``
        """
        registration = user_request.registration
        if not registration.user_info_uri:
            raise OAuth2AuthenticationError(
                MISSING_USER_INFO_URI,
                f"Missing user info URI for client registration {registration.registration_id}",
            )
        if not registration.user_name_attribute:
            raise OAuth2AuthenticationError(
                MISSING_USER_NAME_ATTRIBUTE,
                f"Missing user name attribute for client registration {registration.registration_id}",
            )

        access_token = user_request.token_response.access_token
        try:
            if registration.registration_id == "vk":
                response = await self._send(
                    "POST",
                    registration.user_info_uri,
                    data={
                        "access_token": access_token,
                        "fields": VK_USER_FIELDS,
                        "v": VK_API_VERSION,
                    },
                    headers={"Accept": "application/json"},
                )
            else:
                response = await self._send(
                    "GET",
                    registration.user_info_uri,
                    headers={
                        "Accept": "application/json",
                        "Authorization": f"Bearer {access_token}",
                    },
                )
        except httpx.HTTPError as exc:
            logger.warning(
                "OAuth2 user info request to %s failed: %s", registration.registration_id, exc
            )
            raise OAuth2AuthenticationError(
                SERVER_ERROR, f"Unable to access the user info endpoint {registration.user_info_uri}"
            ) from exc

        if response.status_code != 200:
            raise OAuth2AuthenticationError(INVALID_USER_INFO_RESPONSE, _error_description(response))

        try:
            body = response.json()
        except ValueError as exc:
            raise OAuth2AuthenticationError(
                INVALID_USER_INFO_RESPONSE, "User info response is not valid JSON"
            ) from exc

        if registration.registration_id == "vk":
            return self._unwrap_vk_response(body, user_request.token_response)

        if not isinstance(body, Mapping):
            raise OAuth2AuthenticationError(
                INVALID_USER_INFO_RESPONSE, "User info response is not a JSON object"
            )
        return dict(body)

    @staticmethod
    def _unwrap_vk_response(body: Any, token_response: TokenResponse) -> dict[str, Any]:
        """VK returns ``{"response": [{...}]}``; the email only comes with the token."""
        users = body.get("response") if isinstance(body, Mapping) else None
        if users is None:
            raise OAuth2AuthenticationError(INVALID_USER_INFO_RESPONSE, "Response attribute is missing")
        if not isinstance(users, list) or not users:
            raise OAuth2AuthenticationError(
                INVALID_USER_INFO_RESPONSE, "Response attribute does not have any value"
            )
        if len(users) != 1:
            raise OAuth2AuthenticationError(
                INVALID_USER_INFO_RESPONSE, "Response attribute has more than one value"
            )

        attributes = dict(users[0])
        if attributes.get("email") is None:
            attributes["email"] = token_response.additional_parameters.get("email")
        return attributes
