"""OAuth2 login: authorization redirect and provider callback handling."""

import base64
import json
import logging
from fnmatch import fnmatchcase
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from orchestra.config import settings
from orchestra.core.security import generate_random_token
from orchestra.crud.user import ConflictError, user_crud
from orchestra.models.user import EMPTY_USER
from orchestra.services.accesstoken.base import AccessToken, AccessTokenService
from orchestra.services.accesstoken.repository import AccessTokenRepository, Exchange
from orchestra.services.identity.upsert import IdentityUpsertService, identity_upsert_service
from orchestra.services.oauth2.authorization_request import (
    CookieAuthorizationRequestRepository,
    OAuth2AuthorizationRequest,
)
from orchestra.services.oauth2.client import (
    ClientRegistration,
    OAuth2ProviderClient,
    OAuth2UserRequest,
)
from orchestra.services.oauth2.exceptions import (
    INVALID_REQUEST,
    INVALID_STATE_PARAMETER,
    MISSING_EMAIL,
    OAuth2AuthenticationError,
)
from orchestra.services.oauth2.loader import OAuth2UserLoader, OAuth2UserLoaderManager
from orchestra.utils.logging_utils import redact_email

logger = logging.getLogger(__name__)

ACCESS_DENIED = "access_denied"
ACCESS_TOKEN_CLAIMS_PARAMETER = "access_token_claims"
ACCESS_TOKEN_PARAMETER = "access_token"
REGISTRATION_ID_ATTRIBUTE = "registration_id"


def encode_claims(claims: Mapping[str, Any]) -> str:
    """Claims as base64url JSON, readable by the client without the signing key."""
    payload = json.dumps(dict(claims), separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode()).decode()


def with_query_parameter(uri: str, name: str, value: str) -> str:
    return str(httpx.URL(uri).copy_add_param(name, value))


def with_fragment_parameter(uri: str, name: str, value: str) -> str:
    return str(httpx.URL(uri).copy_with(fragment=urlencode({name: value})))


class OAuth2LoginService:
    """Drives the authorization-code flow for all registered providers.

    ``start_authorization`` sends the user agent to the provider;
    ``complete_authorization`` handles the callback and returns the client
    location to redirect to, with either the token claims or an error code.
    When the token carrier cannot survive a redirect (the header carrier) the
    token value travels in the location fragment as ``access_token``.
    """

    def __init__(
        self,
        registrations: Mapping[str, ClientRegistration],
        client: OAuth2ProviderClient,
        token_service: AccessTokenService,
        token_repository: AccessTokenRepository,
        request_repository: Optional[CookieAuthorizationRequestRepository] = None,
        loader_manager: Optional[OAuth2UserLoaderManager] = None,
        upsert_service: IdentityUpsertService = identity_upsert_service,
        crud=user_crud,
        client_redirect_uri_template: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ) -> None:
        self.registrations = registrations
        self.client = client
        self.token_service = token_service
        self.token_repository = token_repository
        self.request_repository = request_repository or CookieAuthorizationRequestRepository.from_settings()
        self.loader_manager = loader_manager or OAuth2UserLoaderManager(OAuth2UserLoader(client))
        self.upsert_service = upsert_service
        self.crud = crud
        self.client_redirect_uri_template = (
            client_redirect_uri_template or settings.CLIENT_REDIRECT_URI_TEMPLATE
        )
        self.max_attempts = max(1, max_attempts or settings.OAUTH2_RECONCILE_MAX_ATTEMPTS)

    def get_registration(self, registration_id: str) -> Optional[ClientRegistration]:
        return self.registrations.get(registration_id)

    def is_authorized_client_redirect_uri(self, uri: str) -> bool:
        return fnmatchcase(uri, self.client_redirect_uri_template)

    def start_authorization(self, registration: ClientRegistration, exchange: Exchange) -> str:
        """
        Store a new authorization request on the exchange and return the provider URI.

        Raises:
            OAuth2AuthenticationError: ``invalid_request`` when the client redirect
                URI is missing or not allowed
        """
        parameter_name = self.request_repository.client_redirect_uri_parameter_name
        client_redirect_uri = exchange.request.query_params.get(parameter_name)
        if not client_redirect_uri:
            raise OAuth2AuthenticationError(INVALID_REQUEST, "Client redirect URI must be specified")
        if not self.is_authorized_client_redirect_uri(client_redirect_uri):
            raise OAuth2AuthenticationError(INVALID_REQUEST, "Client redirect URI is not authorized")

        state = generate_random_token()
        authorization_request_uri = self.client.build_authorization_uri(registration, state)
        authorization_request = OAuth2AuthorizationRequest(
            authorization_uri=registration.authorization_uri,
            client_id=registration.client_id,
            redirect_uri=registration.redirect_uri,
            state=state,
            scopes=list(registration.scopes),
            authorization_request_uri=authorization_request_uri,
            attributes={REGISTRATION_ID_ATTRIBUTE: registration.registration_id},
        )
        self.request_repository.save_authorization_request(
            authorization_request, exchange.request, exchange.response
        )
        return authorization_request_uri

    async def complete_authorization(
        self, db: AsyncSession, registration_id: str, exchange: Exchange
    ) -> str:
        """
        Handle the provider callback and return the client location to redirect to.

        Failures before a trusted client redirect URI is known are raised;
        later ones are reported to the client as ``error=<code>``.

        Raises:
            OAuth2AuthenticationError: Stored request missing or client URI not allowed
            ConflictError: Concurrent profile updates kept winning on every attempt
        """
        authorization_request = self.request_repository.remove_authorization_request(
            exchange.request, exchange.response
        )
        if authorization_request is None:
            raise OAuth2AuthenticationError(INVALID_REQUEST, "Failed to load authorization request")

        client_redirect_uri = self.request_repository.client_redirect_uri(authorization_request)
        if not client_redirect_uri:
            raise OAuth2AuthenticationError(INVALID_REQUEST, "Failed to determine client redirect URI")
        if not self.is_authorized_client_redirect_uri(client_redirect_uri):
            raise OAuth2AuthenticationError(INVALID_REQUEST, "Client redirect URI is not authorized")

        try:
            token = await self._authenticate(db, registration_id, authorization_request, exchange)
        except OAuth2AuthenticationError as exc:
            logger.info("OAuth2 login via %s failed: %s", registration_id, exc)
            if exc.error_code == ACCESS_DENIED:
                # User declined consent; just send them back
                return client_redirect_uri
            return with_query_parameter(client_redirect_uri, "error", exc.error_code)

        location = with_query_parameter(
            client_redirect_uri, ACCESS_TOKEN_CLAIMS_PARAMETER, encode_claims(token.claims)
        )
        if not self.token_repository.delivered_on_redirect:
            # A header on the redirect never reaches the client page; the
            # fragment stays in the browser and out of server logs
            location = with_fragment_parameter(location, ACCESS_TOKEN_PARAMETER, token.token_value)
        return location

    async def _authenticate(
        self,
        db: AsyncSession,
        registration_id: str,
        authorization_request: OAuth2AuthorizationRequest,
        exchange: Exchange,
    ) -> AccessToken:
        params = exchange.request.query_params
        # Facebook reports errors as error_code/error_message
        error = params.get("error") or params.get("error_code")
        if error:
            description = params.get("error_description") or params.get("error_message")
            raise OAuth2AuthenticationError(error, description)

        if params.get("state") != authorization_request.state:
            raise OAuth2AuthenticationError(INVALID_STATE_PARAMETER, "State parameter does not match")

        expected_registration_id = authorization_request.attributes.get(REGISTRATION_ID_ATTRIBUTE)
        registration = self.get_registration(registration_id)
        if registration is None or expected_registration_id != registration_id:
            raise OAuth2AuthenticationError(
                INVALID_REQUEST, f"Unexpected client registration {registration_id}"
            )

        code = params.get("code")
        if not code:
            raise OAuth2AuthenticationError(INVALID_REQUEST, "Authorization code is missing")

        token_response = await self.client.exchange_code(registration, code)
        user_request = OAuth2UserRequest(registration=registration, token_response=token_response)
        identity = await self.loader_manager.load_user(user_request)

        user = await self._reconcile_with_retry(db, identity)
        if user is EMPTY_USER:
            raise OAuth2AuthenticationError(
                MISSING_EMAIL, f"{registration_id} did not provide an email address"
            )

        user.authorities = frozenset(await self.crud.get_authorities(db, user.id))
        token = self.token_service.create_access_token(user)
        self.token_repository.save_access_token(token, exchange)
        logger.info("User %s logged in via %s", redact_email(user.email), registration_id)
        return token

    async def _reconcile_with_retry(self, db: AsyncSession, identity):
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self.upsert_service.reconcile(db, identity)
            except ConflictError as exc:
                logger.warning(
                    "Conflict reconciling %s user (attempt %s/%s): %s",
                    identity.provider,
                    attempt,
                    self.max_attempts,
                    exc,
                )
                if attempt == self.max_attempts:
                    raise
