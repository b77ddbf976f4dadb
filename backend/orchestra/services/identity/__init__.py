"""Identity package: local credentials and OAuth2 identity reconciliation."""

from orchestra.services.identity.local import authenticate_local_user
from orchestra.services.identity.upsert import IdentityUpsertService, identity_upsert_service

__all__ = [
    "authenticate_local_user",
    "IdentityUpsertService",
    "identity_upsert_service",
]
