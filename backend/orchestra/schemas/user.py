"""User Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """The caller as described by their access token."""

    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    image_url: Optional[str] = None
    admin: bool = False


class UserResponse(BaseModel):
    """Stored user as listed to administrators."""

    id: int
    email: str
    full_name: Optional[str] = None
    image_url: Optional[str] = None
    enabled: bool
    admin: bool = False
    created_at: datetime

    class Config:
        from_attributes = True
