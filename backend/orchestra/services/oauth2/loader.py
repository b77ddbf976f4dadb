"""OAuth2 user loading with provider-specific enrichment.

The base loader turns the provider's UserInfo response into an
``OAuth2Identity``. The manager then walks an ordered list of
``(predicate, enrich)`` pairs; the first pair whose predicate accepts the
registration id post-processes the identity. When none matches the base
identity is returned as is.
"""

import logging
from dataclasses import replace
from typing import Callable, Optional, Sequence

from orchestra.services.oauth2.client import OAuth2ProviderClient, OAuth2UserRequest
from orchestra.services.oauth2.user import OAuth2Identity

logger = logging.getLogger(__name__)

FACEBOOK_PICTURE_URI_TEMPLATE = "http://graph.facebook.com/{user_id}/picture?type=normal"

Predicate = Callable[[str], bool]
Enricher = Callable[[OAuth2Identity, OAuth2UserRequest], OAuth2Identity]


def registration_id_is(registration_id: str) -> Predicate:
    def predicate(candidate: str) -> bool:
        return candidate == registration_id

    return predicate


def enrich_facebook(identity: OAuth2Identity, user_request: OAuth2UserRequest) -> OAuth2Identity:
    """Fill in the Graph API picture URL when the profile came without one."""
    if identity.attributes.get("picture") is not None:
        return identity
    attributes = dict(identity.attributes)
    attributes["picture"] = FACEBOOK_PICTURE_URI_TEMPLATE.format(user_id=identity.name)
    return replace(identity, attributes=attributes)


def enrich_github(identity: OAuth2Identity, user_request: OAuth2UserRequest) -> OAuth2Identity:
    return OAuth2Identity(
        provider="github",
        attributes=identity.attributes,
        name_attribute_key=user_request.registration.user_name_attribute,
    )


DEFAULT_ENRICHERS: tuple[tuple[Predicate, Enricher], ...] = (
    (registration_id_is("facebook"), enrich_facebook),
    (registration_id_is("github"), enrich_github),
)


class OAuth2UserLoader:
    """Fetches the raw attributes and tags them with the registration id."""

    def __init__(self, client: OAuth2ProviderClient) -> None:
        self.client = client

    async def load_user(self, user_request: OAuth2UserRequest) -> OAuth2Identity:
        attributes = await self.client.fetch_user_attributes(user_request)
        registration = user_request.registration
        return OAuth2Identity(
            provider=registration.registration_id,
            attributes=attributes,
            name_attribute_key=registration.user_name_attribute,
        )


class OAuth2UserLoaderManager:
    """Dispatches a user request to the first matching enrichment step."""

    def __init__(
        self,
        loader: OAuth2UserLoader,
        enrichers: Optional[Sequence[tuple[Predicate, Enricher]]] = None,
    ) -> None:
        self.loader = loader
        self.enrichers = tuple(DEFAULT_ENRICHERS if enrichers is None else enrichers)

    async def load_user(self, user_request: OAuth2UserRequest) -> OAuth2Identity:
        identity = await self.loader.load_user(user_request)
        registration_id = user_request.registration.registration_id
        for predicate, enrich in self.enrichers:
            if predicate(registration_id):
                logger.debug("Enriching %s user", registration_id)
                return enrich(identity, user_request)
        return identity
