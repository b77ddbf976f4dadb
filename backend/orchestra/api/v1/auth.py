"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from orchestra.core.database import get_db
from orchestra.dependencies import (
    get_exchange,
    get_oauth2_login_service,
    get_token_repository,
    get_token_service,
    require_unauthenticated,
)
from orchestra.schemas.auth import AccessTokenClaims, AccessTokenResponse, OAuth2ErrorResponse
from orchestra.services.accesstoken import AccessTokenRepository, AccessTokenService, Exchange
from orchestra.services.identity.local import authenticate_local_user
from orchestra.services.oauth2.login import OAuth2LoginService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/login",
    response_model=AccessTokenResponse,
    dependencies=[Depends(require_unauthenticated)],
)
async def login(
    username: str = Form(...),
    password: str = Form(...),
    db: AsyncSession = Depends(get_db),
    exchange: Exchange = Depends(get_exchange),
    token_service: AccessTokenService = Depends(get_token_service),
    token_repository: AccessTokenRepository = Depends(get_token_repository),
):
    """
    Log in with email and password.

    The token is attached to the response by the configured carrier and also
    returned in the body together with its claims.
    """
    user = await authenticate_local_user(db, username, password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    token = token_service.create_access_token(user)
    token_repository.save_access_token(token, exchange)
    logger.info("User %s logged in with password", user.id)
    return AccessTokenResponse(
        access_token=token.token_value,
        claims=AccessTokenClaims(**token.claims),
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def logout(
    exchange: Exchange = Depends(get_exchange),
    token_repository: AccessTokenRepository = Depends(get_token_repository),
):
    """Clear the access token carrier. Tokens stay valid until they expire."""
    token_repository.remove_access_token(exchange)


@router.get(
    "/oauth2/authorization/{provider}",
    dependencies=[Depends(require_unauthenticated)],
    responses={401: {"model": OAuth2ErrorResponse}},
)
async def oauth2_authorization(
    provider: str,
    request: Request,
    login_service: OAuth2LoginService = Depends(get_oauth2_login_service),
):
    """Redirect the user agent to the provider's consent page."""
    registration = login_service.get_registration(provider)
    if registration is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown OAuth2 provider: {provider}",
        )

    # Cookies must be written to the response actually sent
    response = RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)
    location = login_service.start_authorization(registration, Exchange(request, response))
    response.headers["location"] = location
    return response


@router.get("/oauth2/code/{provider}", responses={401: {"model": OAuth2ErrorResponse}})
async def oauth2_callback(
    provider: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    login_service: OAuth2LoginService = Depends(get_oauth2_login_service),
):
    """Provider callback: finish the login and send the user agent back to the client."""
    response = RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)
    location = await login_service.complete_authorization(db, provider, Exchange(request, response))
    response.headers["location"] = location
    return response
