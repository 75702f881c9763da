"""
Tests for the download body generator and its statistics hand-off.
"""

import asyncio
import io
from unittest.mock import Mock

import pytest
from starlette.requests import ClientDisconnect

from fileshare.core.security import Identity
from fileshare.models.file import File
from fileshare.routes.download import RecordedDownload, RecordedDownloadResponse, _content_disposition
from fileshare.storage.base import DownloadResult
from fileshare.storage.local import CHUNK_SIZE


def make_result(size: int) -> DownloadResult:
    return DownloadResult(stream=io.BytesIO(b"x" * size), content_type="text/plain", size=size)


def make_download(size: int, identity=None, recorder=None) -> RecordedDownload:
    return RecordedDownload(File(id="f1", file_size=size), make_result(size), identity, recorder or Mock())


class TestRecordedDownload:
    """Tests for streaming a blob and handing off exactly one download event."""

    async def test_full_stream_recorded_completed(self):
        size = CHUNK_SIZE + 10
        identity = Identity(user_id="u1", email="u1@example.com", role="user")
        download = make_download(size, identity)

        body = b"".join([chunk async for chunk in download.chunks()])
        download.finish()

        assert len(body) == size
        download.recorder.submit.assert_called_once()
        event = download.recorder.submit.call_args.args[0]
        assert event.file_id == "f1"
        assert event.downloader_id == "u1"
        assert event.completed
        assert download.result.stream.closed

    async def test_aborted_stream_recorded_incomplete(self):
        download = make_download(CHUNK_SIZE + 10)

        gen = download.chunks()
        first = await gen.__anext__()
        await gen.aclose()

        assert len(first) == CHUNK_SIZE
        event = download.recorder.submit.call_args.args[0]
        assert event.bytes_sent == CHUNK_SIZE
        assert event.error == "client disconnected"
        assert not event.completed
        assert download.result.stream.closed

    async def test_never_started_body_still_recorded_once(self):
        download = make_download(10)

        await download.chunks().aclose()
        download.finish()
        download.finish()

        download.recorder.submit.assert_called_once()
        event = download.recorder.submit.call_args.args[0]
        assert event.bytes_sent == 0
        assert event.error == "client disconnected"
        assert download.result.stream.closed

    async def test_read_error_recorded_and_raised(self):
        download = make_download(10)
        download.result.stream = Mock()
        download.result.stream.read.side_effect = OSError("connection reset")

        with pytest.raises(OSError):
            async for _ in download.chunks():
                pass

        event = download.recorder.submit.call_args.args[0]
        assert event.error == "connection reset"
        assert not event.completed
        download.result.stream.close.assert_called_once()

    async def test_empty_file_counts_as_completed(self):
        download = make_download(0)

        assert [chunk async for chunk in download.chunks()] == []

        assert download.recorder.submit.call_args.args[0].completed


class TestRecordedDownloadResponse:
    async def test_disconnect_before_first_chunk_is_recorded(self):
        download = make_download(10)
        response = RecordedDownloadResponse(download, media_type="text/plain")
        scope = {"type": "http", "asgi": {"version": "3.0", "spec_version": "2.4"}}

        async def receive():
            await asyncio.Event().wait()

        async def send(message):
            raise OSError("client went away")

        with pytest.raises((OSError, ClientDisconnect)):
            await response(scope, receive, send)

        download.recorder.submit.assert_called_once()
        event = download.recorder.submit.call_args.args[0]
        assert event.bytes_sent == 0
        assert not event.completed
        assert download.result.stream.closed

    async def test_streamed_response_records_once(self):
        download = make_download(10)
        response = RecordedDownloadResponse(download, media_type="text/plain")
        scope = {"type": "http", "asgi": {"version": "3.0", "spec_version": "2.4"}}
        messages = []

        async def receive():
            await asyncio.Event().wait()

        async def send(message):
            messages.append(message)

        await response(scope, receive, send)

        assert b"".join(m.get("body", b"") for m in messages if m["type"] == "http.response.body") == b"x" * 10
        download.recorder.submit.assert_called_once()
        assert download.recorder.submit.call_args.args[0].completed


@pytest.mark.parametrize(
    "name,expected",
    [
        ("report.pdf", "attachment; filename=\"report.pdf\"; filename*=UTF-8''report.pdf"),
        ('say "hi".txt', "attachment; filename=\"say hi.txt\"; filename*=UTF-8''say%20%22hi%22.txt"),
    ],
)
def test_content_disposition(name, expected):
    assert _content_disposition(name) == expected


def test_content_disposition_non_latin_name():
    header = _content_disposition("отчёт.pdf")

    assert "filename*=UTF-8''%D0%BE%D1%82%D1%87%D1%91%D1%82.pdf" in header
    header.encode("latin-1")
