"""Integration tests for the singleton policy row."""

import pytest
from sqlalchemy import delete, update

from fileshare.core.errors import ValidationError
from fileshare.models.system_policy import SystemPolicy
from fileshare.services.policy import DEFAULT_POLICY, PolicyStore


class TestPolicyStore:
    async def test_seeded_with_defaults(self, session):
        assert await PolicyStore(session).get() == DEFAULT_POLICY

    async def test_missing_row_falls_back_to_defaults(self, session):
        await session.execute(delete(SystemPolicy))
        await session.commit()

        assert await PolicyStore(session).get() == DEFAULT_POLICY

    async def test_partial_update(self, session):
        updated = await PolicyStore(session).update({"max_file_size_mb": 100, "min_validity_hours": None})

        assert updated.max_file_size_mb == 100
        assert updated.min_validity_hours == 1
        assert (await PolicyStore(session).get()).max_file_size_mb == 100

    async def test_update_creates_missing_row(self, session):
        await session.execute(delete(SystemPolicy))
        await session.commit()

        await PolicyStore(session).update({"default_validity_days": 3})

        assert (await PolicyStore(session).get()).default_validity_days == 3

    async def test_invalid_update_not_persisted(self, session):
        store = PolicyStore(session)
        with pytest.raises(ValidationError):
            await store.update({"max_validity_days": 1, "min_validity_hours": 48})

        assert await store.get() == DEFAULT_POLICY

    async def test_unknown_field_rejected(self, session):
        with pytest.raises(ValidationError):
            await PolicyStore(session).update({"max_downloads": 3})

    async def test_corrupt_row_is_repaired_on_read(self, session):
        await session.execute(update(SystemPolicy).values(max_file_size_mb=0, require_password_min_length=1))
        await session.commit()

        policy = await PolicyStore(session).get()

        assert policy.max_file_size_mb == 50
        assert policy.require_password_min_length == 8
