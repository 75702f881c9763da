"""
Integration tests for the file registry against a real SQLite database.
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from fileshare.core.database import utcnow
from fileshare.core.errors import Conflict, NotFound, ValidationError
from fileshare.models.download_history import DownloadHistory
from fileshare.models.file import File
from fileshare.models.file_statistics import FileStatistics
from fileshare.models.shared_with import SharedWith
from fileshare.services import registry as registry_module
from fileshare.services.registry import FileRegistry


async def count(session, model, *criteria) -> int:
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return (await session.execute(stmt)).scalar_one()


class TestCreate:
    """Tests for atomic file creation."""

    async def test_owned_file_gets_zeroed_statistics(self, session, make_file, alice):
        f = await make_file(owner=alice)

        assert len(f.share_token) == 32
        assert f.statistics is not None
        assert f.statistics.download_count == 0
        assert f.statistics.unique_downloaders == 0
        assert f.owner.username == "alice"

    async def test_anonymous_file_has_no_statistics(self, session, make_file):
        f = await make_file()

        assert f.statistics is None
        assert not f.has_statistics
        assert await count(session, FileStatistics) == 0

    async def test_whitelist_rows_are_normalized_and_linked(self, session, make_file, alice, bob):
        f = await make_file(owner=alice, shared_with=["BOB@example.com", "bob@example.com ", "carol@example.com"])

        assert f.shared_with == ["bob@example.com", "carol@example.com"]
        rows = (await session.execute(select(SharedWith).order_by(SharedWith.email))).scalars().all()
        assert [(r.email, r.user_id) for r in rows] == [
            ("bob@example.com", bob.user_id),
            ("carol@example.com", None),
        ]

    async def test_share_token_collision_is_retried(self, session, make_file, alice, monkeypatch):
        taken = (await make_file(owner=alice)).share_token
        monkeypatch.setattr(registry_module, "generate_share_token", lambda: "b" * 32)

        second = await make_file(owner=alice, share_token=taken)

        assert second.share_token == "b" * 32
        assert await count(session, File) == 2
        assert await count(session, FileStatistics) == 2

    async def test_persistent_collision_raises_conflict(self, session, make_file, alice, monkeypatch):
        taken = (await make_file(owner=alice)).share_token
        monkeypatch.setattr(registry_module, "generate_share_token", lambda: taken)

        with pytest.raises(Conflict):
            await make_file(owner=alice)

        assert await count(session, File) == 1
        assert await count(session, FileStatistics) == 1


class TestLookups:
    async def test_get_by_id_and_token(self, session, make_file, alice):
        f = await make_file(owner=alice)
        registry = FileRegistry(session)

        assert (await registry.get_by_id(f.id)).share_token == f.share_token
        assert (await registry.get_by_share_token(f.share_token)).id == f.id

    async def test_unknown_file(self, session):
        registry = FileRegistry(session)
        with pytest.raises(NotFound):
            await registry.get_by_id("00000000-0000-0000-0000-000000000000")
        with pytest.raises(NotFound):
            await registry.get_by_share_token("f" * 32)


class TestOwnerListing:
    """Tests for get_by_owner paging, sorting and status filtering."""

    async def _seed(self, make_file, owner):
        now = utcnow()
        await make_file(owner=owner, file_name="beta.txt")
        await make_file(owner=owner, file_name="Alpha.txt", available_from=now + timedelta(hours=3))
        await make_file(owner=owner, file_name="gamma.txt", available_to=now - timedelta(hours=1),
                        available_from=now - timedelta(days=2))

    async def test_sort_by_name_case_insensitive(self, session, make_file, alice, bob):
        await self._seed(make_file, alice)
        await make_file(owner=bob, file_name="other.txt")

        files, total = await FileRegistry(session).get_by_owner(alice.user_id, sort_by="file_name", order="asc")

        assert total == 3
        assert [f.file_name for f in files] == ["Alpha.txt", "beta.txt", "gamma.txt"]

    async def test_paging(self, session, make_file, alice):
        await self._seed(make_file, alice)

        files, total = await FileRegistry(session).get_by_owner(
            alice.user_id, limit=2, offset=2, sort_by="file_name", order="asc"
        )

        assert total == 3
        assert [f.file_name for f in files] == ["gamma.txt"]

    @pytest.mark.parametrize("status,expected", [("active", "beta.txt"), ("pending", "Alpha.txt"), ("expired", "gamma.txt")])
    async def test_status_filter(self, session, make_file, alice, status, expected):
        await self._seed(make_file, alice)

        files, total = await FileRegistry(session).get_by_owner(alice.user_id, status=status)

        assert total == 1
        assert files[0].file_name == expected

    async def test_count_by_status(self, session, make_file, alice):
        await self._seed(make_file, alice)
        await make_file(owner=alice, available_from=None, available_to=None)

        assert await FileRegistry(session).count_by_status(alice.user_id) == {
            "active": 2,
            "pending": 1,
            "expired": 1,
        }

    async def test_rejects_unknown_sort_and_status(self, session, alice):
        registry = FileRegistry(session)
        with pytest.raises(ValidationError):
            await registry.get_by_owner(alice.user_id, sort_by="size")
        with pytest.raises(ValidationError):
            await registry.get_by_owner(alice.user_id, status="deleted")


class TestDeleteAndExpiry:
    async def test_delete_cascades(self, session, make_file, alice, bob):
        f = await make_file(owner=alice, shared_with=["bob@example.com"])
        session.add(DownloadHistory(file_id=f.id, downloader_id=bob.user_id, download_completed=True))
        await session.commit()

        assert await FileRegistry(session).delete(f.id) is True

        assert await count(session, File) == 0
        assert await count(session, FileStatistics) == 0
        assert await count(session, SharedWith) == 0
        assert await count(session, DownloadHistory) == 0

    async def test_delete_missing_returns_false(self, session):
        assert await FileRegistry(session).delete("00000000-0000-0000-0000-000000000000") is False

    async def test_list_expired(self, session, make_file, alice):
        now = utcnow()
        expired = await make_file(owner=alice, available_from=now - timedelta(days=3), available_to=now - timedelta(days=1))
        await make_file(owner=alice)
        await make_file(owner=alice, available_from=None, available_to=None)

        found = await FileRegistry(session).list_expired(now)

        assert [f.id for f in found] == [expired.id]
