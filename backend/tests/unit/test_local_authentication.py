"""Unit tests for email/password authentication."""

import pytest

from orchestra.crud.user import user_crud
from orchestra.services.identity.local import authenticate_local_user


@pytest.mark.unit
class TestAuthenticateLocalUser:
    @pytest.mark.asyncio
    async def test_valid_credentials(self, db_session, test_user, test_password):
        await user_crud.add_authority(db_session, test_user.id, "ADMIN")

        user = await authenticate_local_user(db_session, "test@example.com", test_password)

        assert user.id == test_user.id
        assert user.authorities == frozenset({"ADMIN"})

    @pytest.mark.asyncio
    async def test_wrong_password(self, db_session, test_user):
        assert await authenticate_local_user(db_session, "test@example.com", "wrong") is None

    @pytest.mark.asyncio
    async def test_unknown_email(self, db_session, test_password):
        assert await authenticate_local_user(db_session, "ghost@example.com", test_password) is None

    @pytest.mark.asyncio
    async def test_oauth2_only_user_has_no_password(self, db_session):
        await user_crud.create(db_session, email="oauth@example.com")

        assert await authenticate_local_user(db_session, "oauth@example.com", "") is None

    @pytest.mark.asyncio
    async def test_disabled_user(self, db_session, test_password):
        await user_crud.create(db_session, email="off@example.com", password=test_password, enabled=False)

        assert await authenticate_local_user(db_session, "off@example.com", test_password) is None
