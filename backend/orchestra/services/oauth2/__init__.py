"""OAuth2 login package: provider clients, user loading and identities.

The login flow itself lives in ``orchestra.services.oauth2.login`` and is
imported from there; it depends on the identity services, which in turn use
the identities defined here.
"""

from orchestra.services.oauth2.client import (
    ClientRegistration,
    OAuth2ProviderClient,
    OAuth2UserRequest,
    TokenResponse,
    get_registrations,
    reset_registrations,
)
from orchestra.services.oauth2.exceptions import OAuth2AuthenticationError, OAuth2Error
from orchestra.services.oauth2.loader import OAuth2UserLoader, OAuth2UserLoaderManager
from orchestra.services.oauth2.user import OAuth2Identity

__all__ = [
    "ClientRegistration",
    "OAuth2ProviderClient",
    "OAuth2UserRequest",
    "TokenResponse",
    "get_registrations",
    "reset_registrations",
    "OAuth2AuthenticationError",
    "OAuth2Error",
    "OAuth2UserLoader",
    "OAuth2UserLoaderManager",
    "OAuth2Identity",
]
