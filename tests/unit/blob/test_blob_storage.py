"""Tests for blob file storage and the blob service."""

import asyncio
import threading
import time
from uuid import UUID

import pytest

from marginalia.core.modules.blob import service as blob_service
from marginalia.core.modules.blob.storage import (
    delete_blob_file,
    get_blob_file_path,
    live_key,
    read_blob_file,
    snapshot_key,
    write_blob_file,
)
from marginalia.errors import NotFoundError, StorageUnavailableError

DOCUMENT_ID = UUID("12345678-1234-5678-1234-567812345678")


class TestKeys:
    """Tests for blob key helpers."""

    def test_live_key(self):
        assert live_key(DOCUMENT_ID) == "12345678-1234-5678-1234-567812345678"

    def test_snapshot_key(self):
        assert snapshot_key(DOCUMENT_ID, 3) == "12345678-1234-5678-1234-567812345678_v3"

    def test_live_and_snapshot_keys_differ(self):
        assert live_key(DOCUMENT_ID) != snapshot_key(DOCUMENT_ID, 1)


class TestGetBlobFilePath:
    """Tests for get_blob_file_path function."""

    def test_inside_content_path(self, tmp_path):
        assert get_blob_file_path(str(tmp_path), "abc") == tmp_path / "abc"

    @pytest.mark.parametrize("key", ["", "../escape", "a/b", "a\\b", ".hidden"])
    def test_rejects_unsafe_keys(self, tmp_path, key):
        with pytest.raises(ValueError, match="Invalid blob key"):
            get_blob_file_path(str(tmp_path), key)


class TestBlobFiles:
    """Tests for blob file read/write/delete functions."""

    def test_write_creates_directory(self, tmp_path):
        content_path = str(tmp_path / "nested" / "content")
        path = write_blob_file(content_path, "doc", b"hello")
        assert path.read_bytes() == b"hello"

    def test_overwrite_leaves_no_temporary_files(self, tmp_path):
        write_blob_file(str(tmp_path), "doc", b"one")
        write_blob_file(str(tmp_path), "doc", b"two")
        assert read_blob_file(str(tmp_path), "doc") == b"two"
        assert [p.name for p in tmp_path.iterdir()] == ["doc"]

    def test_read_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_blob_file(str(tmp_path), "missing")

    def test_delete(self, tmp_path):
        write_blob_file(str(tmp_path), "doc", b"x")
        assert delete_blob_file(str(tmp_path), "doc") is True
        assert delete_blob_file(str(tmp_path), "doc") is False


class TestBlobService:
    """Tests for BlobService."""

    @pytest.mark.asyncio
    async def test_put_get_delete(self, services):
        await services.blob.put("key", b"content")
        assert await services.blob.get("key") == b"content"
        assert await services.blob.delete("key") is True

    @pytest.mark.asyncio
    async def test_get_missing_is_not_found(self, services):
        with pytest.raises(NotFoundError):
            await services.blob.get("missing")

    @pytest.mark.asyncio
    async def test_os_error_is_unavailable(self, services, tmp_path):
        """Test that a content path that is not a directory surfaces as storage unavailable."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        services.blob.core.config.content_path = str(blocker)
        with pytest.raises(StorageUnavailableError):
            await services.blob.put("key", b"content")

    @pytest.mark.asyncio
    async def test_timeout_waits_for_write_to_finish(self, services, tmp_path, monkeypatch):
        """Test that a timed-out put does not return while its write is still running."""
        finished = threading.Event()

        def slow_write(content_path: str, key: str, content: bytes):
            time.sleep(0.3)
            path = write_blob_file(content_path, key, content)
            finished.set()
            return path

        monkeypatch.setattr(blob_service, "write_blob_file", slow_write)
        services.blob.core.config.store_timeout_ms = 50

        with pytest.raises(StorageUnavailableError):
            await services.blob.put("key", b"late")
        assert finished.is_set()
        assert (tmp_path / "content" / "key").read_bytes() == b"late"

    @pytest.mark.asyncio
    async def test_cancel_waits_for_write_to_finish(self, services, monkeypatch):
        started = threading.Event()
        finished = threading.Event()

        def slow_write(content_path: str, key: str, content: bytes):
            started.set()
            time.sleep(0.2)
            path = write_blob_file(content_path, key, content)
            finished.set()
            return path

        monkeypatch.setattr(blob_service, "write_blob_file", slow_write)

        task = asyncio.create_task(services.blob.put("key", b"late"))
        assert await asyncio.to_thread(started.wait, 5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert finished.is_set()
