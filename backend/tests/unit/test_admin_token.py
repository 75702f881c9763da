"""Unit tests for the rotating admin token."""

import asyncio

import pytest

from fileshare.core.admin_token import AdminTokenStore, rotate_admin_token_forever


class TestAdminTokenStore:
    def test_initial_token_is_random_hex(self):
        store = AdminTokenStore()
        assert len(store.current()) == 32
        int(store.current(), 16)

    def test_rotate_invalidates_previous(self):
        store = AdminTokenStore(token="initial")
        new = store.rotate()
        assert new != "initial"
        assert store.verify(new)
        assert not store.verify("initial")

    @pytest.mark.parametrize("candidate", [None, "", "nope"])
    def test_verify_rejects(self, candidate):
        assert not AdminTokenStore(token="expected").verify(candidate)


async def test_rotation_task_rotates_and_cancels():
    store = AdminTokenStore(token="start")
    task = asyncio.create_task(rotate_admin_token_forever(store, 0.01))
    await asyncio.sleep(0.05)
    assert store.current() != "start"

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
