"""
Integration tests for the expired-file sweeper.
"""

import io
import uuid
from datetime import timedelta
from unittest.mock import Mock

from fileshare.core.database import utcnow
from fileshare.core.errors import InternalError
from fileshare.services.registry import FileRegistry
from fileshare.storage.base import BlobObject, BlobStoreError, Container
from fileshare.tasks.cleanup import sweep_expired_files


def expired_window():
    now = utcnow()
    return {"available_from": now - timedelta(days=3), "available_to": now - timedelta(days=1)}


async def make_stored_file(make_file, blob_store, owner=None, is_public=True, **fields):
    container = Container.for_visibility(is_public)
    loc = blob_store.upload(
        BlobObject(name=f"{uuid.uuid4()}.bin", container=container, content_type=None,
                   size=10, stream=io.BytesIO(b"0123456789"))
    )
    return await make_file(owner=owner, is_public=is_public, file_path=loc.path, **fields), loc


class TestSweepExpiredFiles:
    async def test_removes_expired_blob_and_row(self, session, blob_store, make_file, alice):
        expired, expired_loc = await make_stored_file(make_file, blob_store, alice, is_public=False, **expired_window())
        active, active_loc = await make_stored_file(make_file, blob_store, alice)

        report = await sweep_expired_files(session, blob_store)

        assert report.to_dict() == {"found": 1, "deleted": 1, "failed": 0}
        assert report.deleted_ids == [expired.id]
        assert not (blob_store.base_path / expired_loc.path).exists()
        assert (blob_store.base_path / active_loc.path).exists()
        assert [f.id for f in await FileRegistry(session).list_expired()] == []

    async def test_second_run_finds_nothing(self, session, blob_store, make_file, alice):
        await make_stored_file(make_file, blob_store, alice, **expired_window())
        await make_stored_file(make_file, blob_store, None, **expired_window())

        first = await sweep_expired_files(session, blob_store)
        second = await sweep_expired_files(session, blob_store)

        assert first.deleted == 2
        assert second.to_dict() == {"found": 0, "deleted": 0, "failed": 0}

    async def test_missing_blob_counts_as_deleted(self, session, blob_store, make_file):
        await make_file(**expired_window())

        report = await sweep_expired_files(session, blob_store)

        assert report.deleted == 1
        assert report.failed == 0

    async def test_blob_failure_keeps_row_and_continues(self, session, make_file, alice):
        first = await make_file(owner=alice, **expired_window())
        second = await make_file(owner=alice, **expired_window())
        store = Mock()
        store.delete.side_effect = [BlobStoreError("timeout"), None]

        report = await sweep_expired_files(session, store)

        assert report.found == 2
        assert report.deleted == 1
        assert report.failed == 1
        remaining = [f.id for f in await FileRegistry(session).list_expired()]
        assert len(remaining) == 1
        assert remaining[0] in {first.id, second.id}
        assert remaining[0] not in report.deleted_ids

    async def test_row_delete_failure_counted_and_continues(self, session, blob_store, make_file, alice, monkeypatch):
        await make_file(owner=alice, **expired_window())
        await make_file(owner=alice, **expired_window())
        original_delete = FileRegistry.delete
        calls = []

        async def flaky_delete(self, file_id):
            calls.append(file_id)
            if len(calls) == 1:
                raise InternalError("database is locked")
            return await original_delete(self, file_id)

        monkeypatch.setattr(FileRegistry, "delete", flaky_delete)

        report = await sweep_expired_files(session, blob_store)

        assert len(calls) == 2
        assert report.to_dict() == {"found": 2, "deleted": 1, "failed": 1}
        assert report.deleted_ids == [calls[1]]
        assert [f.id for f in await FileRegistry(session).list_expired()] == [calls[0]]
