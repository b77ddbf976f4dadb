"""User API endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orchestra.config import settings
from orchestra.core.database import get_db
from orchestra.crud.user import user_crud
from orchestra.dependencies import get_current_admin, get_current_authentication
from orchestra.schemas.user import CurrentUser, UserResponse
from orchestra.security.authorization import AccessTokenAuthentication

router = APIRouter()


@router.get("", response_model=list[UserResponse])
async def list_users(
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    admin: AccessTokenAuthentication = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Page through all users. Admin only."""
    users = await user_crud.list_users(db, limit=limit, offset=offset)
    return [
        UserResponse(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            image_url=user.image_url,
            enabled=user.enabled,
            admin=settings.ADMIN_AUTHORITY in user.authorities,
            created_at=user.created_at,
        )
        for user in users
    ]


@router.get("/count", response_model=int)
async def count_users(
    admin: AccessTokenAuthentication = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Total number of users. Admin only."""
    return await user_crud.count(db)


@router.get("/current", response_model=CurrentUser)
async def get_current_user(
    authentication: AccessTokenAuthentication = Depends(get_current_authentication),
):
    """Current user, read from the access token claims without a database lookup."""
    token = authentication.token
    return CurrentUser(
        id=token.subject,
        email=token.email,
        full_name=token.full_name,
        image_url=token.profile_picture_url,
        admin=token.is_admin,
    )
