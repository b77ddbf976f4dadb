"""Authentication Pydantic schemas."""

from typing import Optional

from pydantic import BaseModel


class AccessTokenClaims(BaseModel):
    """Claims of an issued access token, readable by the client."""

    sub: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    admin: bool = False
    iat: int
    exp: int


class AccessTokenResponse(BaseModel):
    """Schema for a successful login."""

    access_token: str
    token_type: str = "bearer"
    claims: AccessTokenClaims


class OAuth2ErrorResponse(BaseModel):
    error: str
