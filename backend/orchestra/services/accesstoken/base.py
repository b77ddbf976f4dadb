"""Base classes for access tokens."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from orchestra.utils.datetime_utils import from_epoch_seconds


class InvalidAccessTokenError(Exception):
    """Access token failed verification (malformed, bad signature, expired...).

    The underlying cause is chained as ``__cause__`` and never shown to clients.
    """


@dataclass(frozen=True)
class AccessToken:
    """Signed, self-contained bearer token.

    ``claims`` is empty for a token loaded from a carrier but not yet parsed.
    """

    token_value: str
    claims: Mapping[str, Any] = field(default_factory=dict)

    def _segment(self, index: int) -> Optional[str]:
        segments = self.token_value.split(".")
        return segments[index] if len(segments) == 3 else None

    @property
    def header(self) -> Optional[str]:
        return self._segment(0)

    @property
    def payload(self) -> Optional[str]:
        return self._segment(1)

    @property
    def signature(self) -> Optional[str]:
        return self._segment(2)

    @property
    def subject(self) -> Optional[str]:
        return self.claims.get("sub")

    @property
    def email(self) -> Optional[str]:
        return self.claims.get("email")

    @property
    def full_name(self) -> Optional[str]:
        return self.claims.get("name")

    @property
    def profile_picture_url(self) -> Optional[str]:
        return self.claims.get("picture")

    @property
    def is_admin(self) -> bool:
        return bool(self.claims.get("admin", False))

    @property
    def issued_at(self) -> Optional[datetime]:
        iat = self.claims.get("iat")
        return from_epoch_seconds(iat) if iat is not None else None

    @property
    def expiration(self) -> Optional[datetime]:
        exp = self.claims.get("exp")
        return from_epoch_seconds(exp) if exp is not None else None

    @property
    def max_age(self) -> int:
        """Lifetime in seconds (``exp - iat``), 0 when unknown."""
        iat, exp = self.claims.get("iat"), self.claims.get("exp")
        if iat is None or exp is None:
            return 0
        return max(int(exp) - int(iat), 0)

    def __repr__(self) -> str:
        # Never leak the token value into logs
        return f"<AccessToken sub={self.subject!r}>"


class AccessTokenService(ABC):
    """Creates and verifies access tokens."""

    @abstractmethod
    def create_access_token(self, user) -> AccessToken:
        """Mint a token for ``user`` (its ``authorities`` must be loaded)."""

    @abstractmethod
    def parse_access_token(self, token_value: str) -> AccessToken:
        """Verify ``token_value`` and return the token with its claims.

        Raises:
            InvalidAccessTokenError: If the token can not be trusted
        """
