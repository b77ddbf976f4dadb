"""FastAPI dependencies for authentication and authorization."""

from fastapi import Depends, HTTPException, Request, Response, status

from orchestra.security.authorization import (
    ANONYMOUS,
    AccessTokenAuthentication,
    Authentication,
    is_unauthenticated,
)
from orchestra.services.accesstoken import (
    AccessTokenRepository,
    AccessTokenService,
    Exchange,
    get_access_token_repository,
    get_access_token_service,
)
from orchestra.services.oauth2.client import OAuth2ProviderClient, get_registrations
from orchestra.services.oauth2.login import OAuth2LoginService


def get_token_service() -> AccessTokenService:
    return get_access_token_service()


def get_token_repository() -> AccessTokenRepository:
    return get_access_token_repository()


def get_exchange(request: Request, response: Response) -> Exchange:
    """The current request paired with the response FastAPI will send."""
    return Exchange(request=request, response=response)


async def get_authentication(
    exchange: Exchange = Depends(get_exchange),
    token_repository: AccessTokenRepository = Depends(get_token_repository),
    token_service: AccessTokenService = Depends(get_token_service),
) -> Authentication:
    """
    Resolve who is calling.

    No token means anonymous. A token that fails verification raises
    ``InvalidAccessTokenError`` (401), it is never downgraded to anonymous.
    """
    token = token_repository.load_access_token(exchange)
    if token is None:
        return ANONYMOUS
    return AccessTokenAuthentication(token=token_service.parse_access_token(token.token_value))


async def get_current_authentication(
    authentication: Authentication = Depends(get_authentication),
) -> AccessTokenAuthentication:
    """
    Require a verified access token.

    Raises:
        HTTPException: 401 if the caller is anonymous
    """
    if not isinstance(authentication, AccessTokenAuthentication):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return authentication


async def get_current_admin(
    authentication: AccessTokenAuthentication = Depends(get_current_authentication),
) -> AccessTokenAuthentication:
    """
    Require the admin claim.

    Raises:
        HTTPException: 403 if the token does not carry ``admin: true``
    """
    if not authentication.token.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin authority required",
        )
    return authentication


async def require_unauthenticated(
    authentication: Authentication = Depends(get_authentication),
) -> None:
    """
    Gate endpoints (login) that only make sense for callers not yet logged in.

    Raises:
        HTTPException: 403 if the caller is already authenticated
    """
    if not is_unauthenticated(authentication):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Already authenticated",
        )


def get_oauth2_client() -> OAuth2ProviderClient:
    return OAuth2ProviderClient()


def get_oauth2_login_service(
    client: OAuth2ProviderClient = Depends(get_oauth2_client),
    token_service: AccessTokenService = Depends(get_token_service),
    token_repository: AccessTokenRepository = Depends(get_token_repository),
) -> OAuth2LoginService:
    return OAuth2LoginService(
        registrations=get_registrations(),
        client=client,
        token_service=token_service,
        token_repository=token_repository,
    )
