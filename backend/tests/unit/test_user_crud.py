"""Unit tests for user persistence with optimistic locking (in-memory SQLite)."""

import pytest

from orchestra.crud.user import (
    ConflictError,
    EntityAlreadyExistsError,
    StaleVersionError,
    user_crud,
)
from orchestra.models.user import EMPTY_USER, User


@pytest.mark.unit
class TestUserCrud:
    @pytest.mark.asyncio
    async def test_create_starts_at_version_zero(self, db_session):
        user = await user_crud.create(db_session, email="new@example.com", full_name="New")

        assert user.id is not None
        assert user.version == 0
        assert user.enabled is True
        assert user.email_confirmed is True
        assert user.password_hash is None

    @pytest.mark.asyncio
    async def test_create_hashes_password(self, db_session):
        user = await user_crud.create(db_session, email="pw@example.com", password="s3cret-pass")

        assert user.password_hash is not None
        assert user.password_hash != "s3cret-pass"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, db_session, test_user):
        with pytest.raises(EntityAlreadyExistsError) as exc_info:
            await user_crud.create(db_session, email=test_user.email)

        assert isinstance(exc_info.value, ConflictError)

    @pytest.mark.asyncio
    async def test_save_increments_version(self, db_session, test_user):
        test_user.full_name = "Renamed"
        test_user.version = test_user.version + 1

        await user_crud.save(db_session, test_user)
        stored = await user_crud.get_by_email(db_session, test_user.email)

        assert stored.full_name == "Renamed"
        assert stored.version == 1

    @pytest.mark.asyncio
    async def test_concurrent_writers_one_wins(self, session_factory, test_user):
        """Two writers read version 0; the second conditional update matches no row."""
        async with session_factory() as first, session_factory() as second:
            mine = await user_crud.get_by_id(first, test_user.id)
            theirs = await user_crud.get_by_id(second, test_user.id)
            assert mine.version == theirs.version == 0

            mine.full_name = "First Writer"
            mine.version = 1
            await user_crud.save(first, mine)

            theirs.full_name = "Second Writer"
            theirs.version = 1
            with pytest.raises(StaleVersionError):
                await user_crud.save(second, theirs)

        async with session_factory() as reader:
            stored = await user_crud.get_by_id(reader, test_user.id)

        assert stored.version == 1
        assert stored.full_name == "First Writer"

    @pytest.mark.asyncio
    async def test_authorities(self, db_session, test_user):
        await user_crud.add_authority(db_session, test_user.id, "ADMIN")
        await user_crud.add_authority(db_session, test_user.id, "USER")

        user = await user_crud.get_by_email_with_authorities(db_session, test_user.email)

        assert user.authorities == frozenset({"ADMIN", "USER"})

    @pytest.mark.asyncio
    async def test_missing_user(self, db_session):
        assert await user_crud.get_by_email(db_session, "nobody@example.com") is None
        assert await user_crud.get_by_email_with_authorities(db_session, "nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_count(self, db_session, test_user):
        assert await user_crud.count(db_session) == 1

        await user_crud.create(db_session, email="second@example.com")

        assert await user_crud.count(db_session) == 2

    @pytest.mark.asyncio
    async def test_list_users_pages_in_id_order(self, db_session, test_user):
        second = await user_crud.create(db_session, email="second@example.com")
        await user_crud.add_authority(db_session, second.id, "ADMIN")

        first_page = await user_crud.list_users(db_session, limit=1)
        second_page = await user_crud.list_users(db_session, limit=1, offset=1)

        assert [user.email for user in first_page] == ["test@example.com"]
        assert first_page[0].authorities == frozenset()
        assert [user.email for user in second_page] == ["second@example.com"]
        assert second_page[0].authorities == frozenset({"ADMIN"})
        assert await user_crud.list_users(db_session, offset=2) == []

    @pytest.mark.asyncio
    async def test_authorities_by_user_ids(self, db_session, test_user):
        await user_crud.add_authority(db_session, test_user.id, "ADMIN")

        authorities = await user_crud.get_authorities_by_user_ids(db_session, [test_user.id, 999])

        assert authorities == {test_user.id: {"ADMIN"}, 999: set()}
        assert await user_crud.get_authorities_by_user_ids(db_session, []) == {}


@pytest.mark.unit
class TestEmptyUser:
    def test_attributes_are_absent(self):
        assert EMPTY_USER.id is None
        assert EMPTY_USER.email is None
        assert EMPTY_USER.full_name is None
        assert EMPTY_USER.version == 0
        assert EMPTY_USER.authorities == frozenset()

    def test_assignment_is_ignored(self):
        EMPTY_USER.email = "someone@example.com"
        EMPTY_USER.version = 5

        assert EMPTY_USER.email is None
        assert EMPTY_USER.version == 0

    def test_only_equal_to_itself(self):
        assert EMPTY_USER == EMPTY_USER
        assert EMPTY_USER != User(email=None)
        assert hash(EMPTY_USER) == 1
