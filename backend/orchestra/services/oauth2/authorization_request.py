"""Pending OAuth2 authorization requests, kept in a short-lived cookie.

Between the redirect to the provider and the provider's callback the
authorization request (state, redirect URI and the client's own redirect URI)
travels with the user agent as a base64url-encoded JSON cookie.
"""

import base64
import binascii
import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from fastapi import Request, Response

from orchestra.config import settings
from orchestra.services.oauth2.exceptions import INVALID_GRANT, OAuth2AuthenticationError

logger = logging.getLogger(__name__)

AUTHORIZATION_CODE = "authorization_code"
IMPLICIT = "implicit"
SUPPORTED_GRANT_TYPES = (AUTHORIZATION_CODE, IMPLICIT)


@dataclass
class OAuth2AuthorizationRequest:
    authorization_uri: str
    client_id: str
    redirect_uri: str
    state: str
    grant_type: str = AUTHORIZATION_CODE
    scopes: list[str] = field(default_factory=list)
    additional_parameters: dict[str, Any] = field(default_factory=dict)
    authorization_request_uri: Optional[str] = None
    attributes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OAuth2AuthorizationRequest":
        """
        Rebuild a request from its serialized form.

        Raises:
            OAuth2AuthenticationError: ``invalid_grant`` for an unsupported grant type
        """
        grant_type = data.get("grant_type")
        if grant_type not in SUPPORTED_GRANT_TYPES:
            raise OAuth2AuthenticationError(INVALID_GRANT, f"Unsupported grant type: {grant_type}")
        return cls(
            authorization_uri=data["authorization_uri"],
            client_id=data["client_id"],
            redirect_uri=data["redirect_uri"],
            state=data["state"],
            grant_type=grant_type,
            scopes=list(data.get("scopes") or []),
            additional_parameters=dict(data.get("additional_parameters") or {}),
            authorization_request_uri=data.get("authorization_request_uri"),
            attributes=dict(data.get("attributes") or {}),
        )


class CookieAuthorizationRequestRepository:
    """Stores the authorization request in an HTTP-only cookie.

    The client must pass its redirect URI as a query parameter when starting
    the flow; it is kept in ``additional_parameters`` under the same name.
    """

    def __init__(
        self,
        client_redirect_uri_parameter_name: str = "client-redirect-uri",
        cookie_name: str = "oauth2-authorization-request",
        cookie_max_age: int = 180,
    ) -> None:
        if not client_redirect_uri_parameter_name:
            raise ValueError("Client redirect URI parameter name must not be empty")
        self.client_redirect_uri_parameter_name = client_redirect_uri_parameter_name
        self.cookie_name = cookie_name
        self.cookie_max_age = cookie_max_age

    @classmethod
    def from_settings(cls) -> "CookieAuthorizationRequestRepository":
        return cls(
            client_redirect_uri_parameter_name=settings.CLIENT_REDIRECT_URI_PARAMETER_NAME,
            cookie_name=settings.AUTHORIZATION_REQUEST_COOKIE_NAME,
            cookie_max_age=settings.AUTHORIZATION_REQUEST_COOKIE_MAX_AGE,
        )

    def client_redirect_uri(self, authorization_request: OAuth2AuthorizationRequest) -> Optional[str]:
        value = authorization_request.additional_parameters.get(
            self.client_redirect_uri_parameter_name
        )
        return str(value) if value else None

    def save_authorization_request(
        self,
        authorization_request: OAuth2AuthorizationRequest,
        request: Request,
        response: Response,
    ) -> None:
        client_redirect_uri = request.query_params.get(self.client_redirect_uri_parameter_name)
        if not client_redirect_uri:
            raise ValueError("Client redirect URI must be specified")

        authorization_request.additional_parameters[
            self.client_redirect_uri_parameter_name
        ] = client_redirect_uri
        response.set_cookie(
            key=self.cookie_name,
            value=self._serialize(authorization_request),
            max_age=self.cookie_max_age,
            path="/",
            httponly=True,
            samesite="lax",
        )

    def load_authorization_request(self, request: Request) -> Optional[OAuth2AuthorizationRequest]:
        value = request.cookies.get(self.cookie_name)
        if not value:
            return None
        return self._deserialize(value)

    def remove_authorization_request(
        self, request: Request, response: Response
    ) -> Optional[OAuth2AuthorizationRequest]:
        value = request.cookies.get(self.cookie_name)
        if not value:
            return None
        authorization_request = self._deserialize(value)
        response.set_cookie(
            key=self.cookie_name,
            value="",
            max_age=0,
            path="/",
            httponly=True,
            samesite="lax",
        )
        return authorization_request

    @staticmethod
    def _serialize(authorization_request: OAuth2AuthorizationRequest) -> str:
        payload = json.dumps(authorization_request.to_dict(), separators=(",", ":"))
        return base64.urlsafe_b64encode(payload.encode()).decode()

    @staticmethod
    def _deserialize(value: str) -> Optional[OAuth2AuthorizationRequest]:
        try:
            data = json.loads(base64.urlsafe_b64decode(value.encode()))
        except (binascii.Error, ValueError) as exc:
            logger.error("Failed to deserialize OAuth2 authorization request: %s", exc)
            return None
        if not isinstance(data, dict):
            logger.error("Failed to deserialize OAuth2 authorization request: not an object")
            return None
        try:
            return OAuth2AuthorizationRequest.from_dict(data)
        except KeyError as exc:
            logger.error("OAuth2 authorization request is missing %s", exc)
            return None
        except (TypeError, ValueError) as exc:
            # Cookie contents are client controlled
            logger.error("OAuth2 authorization request is malformed: %s", exc)
            return None
