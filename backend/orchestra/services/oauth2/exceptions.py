"""OAuth2 protocol errors."""

from dataclasses import dataclass
from typing import Optional

# Standard codes (RFC 6749) plus the ones used by the login flow
INVALID_GRANT = "invalid_grant"
INVALID_REQUEST = "invalid_request"
SERVER_ERROR = "server_error"
INVALID_STATE_PARAMETER = "invalid_state_parameter"
INVALID_TOKEN_RESPONSE = "invalid_token_response"
INVALID_USER_INFO_RESPONSE = "invalid_user_info_response"
MISSING_USER_INFO_URI = "missing_user_info_uri"
MISSING_USER_NAME_ATTRIBUTE = "missing_user_name_attribute"
MISSING_EMAIL = "missing_email"


@dataclass(frozen=True)
class OAuth2Error:
    """Error code plus optional human-readable description."""

    error_code: str
    description: Optional[str] = None

    def __str__(self) -> str:
        if self.description:
            return f"[{self.error_code}] {self.description}"
        return f"[{self.error_code}]"


class OAuth2AuthenticationError(Exception):
    """OAuth2 login attempt failed.

    Only ``error_code`` is ever shown to clients; the description is for logs.
    """

    def __init__(self, error: OAuth2Error | str, description: Optional[str] = None) -> None:
        if isinstance(error, str):
            error = OAuth2Error(error, description)
        self.error = error
        super().__init__(str(error))

    @property
    def error_code(self) -> str:
        return self.error.error_code
