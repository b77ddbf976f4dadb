"""Authentication states and the unauthenticated-only authorization check."""

from dataclasses import dataclass
from typing import Optional, Union

from orchestra.services.accesstoken.base import AccessToken


@dataclass(frozen=True)
class AnonymousAuthentication:
    """Caller presented no credentials."""

    authenticated: bool = True
    anonymous: bool = True


@dataclass(frozen=True)
class AccessTokenAuthentication:
    """Caller presented a verified access token."""

    token: AccessToken
    authenticated: bool = True
    anonymous: bool = False

    @property
    def principal(self) -> Optional[str]:
        return self.token.subject


ANONYMOUS = AnonymousAuthentication()

Authentication = Union[AnonymousAuthentication, AccessTokenAuthentication]


def is_unauthenticated(authentication: Optional[Authentication]) -> bool:
    """Grant when nobody is logged in: no authentication, or an anonymous one."""
    if authentication is None:
        return True
    return authentication.anonymous or not authentication.authenticated
