"""OAuth2 user identity and per-provider attribute accessors.

Every provider describes its users with a different attribute shape. An
``OAuth2Identity`` keeps the raw attributes tagged with the provider id and
reads the canonical ``email`` / ``full_name`` / ``picture`` through a
provider-keyed table of pure extraction functions.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, NamedTuple, Optional

Attributes = Mapping[str, Any]
Extractor = Callable[[Attributes], Optional[str]]


def _as_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def attribute(key: str) -> Extractor:
    """Extractor returning ``attributes[key]`` as a string, ``None`` when missing."""

    def extract(attributes: Attributes) -> Optional[str]:
        return _as_string(attributes.get(key))

    return extract


def vk_full_name(attributes: Attributes) -> Optional[str]:
    """Join trimmed ``first_name`` and ``last_name``; ``None`` when both are blank."""
    parts = [
        (_as_string(attributes.get(key)) or "").strip()
        for key in ("first_name", "last_name")
    ]
    full_name = " ".join(part for part in parts if part)
    return full_name or None


def facebook_picture(attributes: Attributes) -> Optional[str]:
    """Plain URL, or the Graph API ``{"data": {"url": ...}}`` form."""
    picture = attributes.get("picture")
    if isinstance(picture, Mapping):
        data = picture.get("data")
        return _as_string(data.get("url")) if isinstance(data, Mapping) else None
    return _as_string(picture)


class AttributeAccessor(NamedTuple):
    email: Extractor
    full_name: Extractor
    picture: Extractor


# OpenID Connect standard claims; Google needs nothing beyond these
STANDARD_CLAIMS = AttributeAccessor(
    email=attribute("email"),
    full_name=attribute("name"),
    picture=attribute("picture"),
)

ATTRIBUTE_ACCESSORS: dict[str, AttributeAccessor] = {
    "google": STANDARD_CLAIMS,
    "github": AttributeAccessor(
        email=attribute("email"),
        full_name=attribute("name"),
        picture=attribute("avatar_url"),
    ),
    "facebook": AttributeAccessor(
        email=attribute("email"),
        full_name=attribute("name"),
        picture=facebook_picture,
    ),
    "vk": AttributeAccessor(
        email=attribute("email"),
        full_name=vk_full_name,
        picture=attribute("photo_100"),
    ),
}


@dataclass(frozen=True)
class OAuth2Identity:
    """User attributes obtained from an OAuth2 provider for one login attempt."""

    provider: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    name_attribute_key: str = "sub"

    @property
    def accessor(self) -> AttributeAccessor:
        return ATTRIBUTE_ACCESSORS.get(self.provider, STANDARD_CLAIMS)

    @property
    def name(self) -> Optional[str]:
        """Provider-assigned user identifier."""
        return _as_string(self.attributes.get(self.name_attribute_key))

    @property
    def email(self) -> Optional[str]:
        return self.accessor.email(self.attributes)

    @property
    def full_name(self) -> Optional[str]:
        return self.accessor.full_name(self.attributes)

    @property
    def picture(self) -> Optional[str]:
        return self.accessor.picture(self.attributes)
