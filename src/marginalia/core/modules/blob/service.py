import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

import structlog

from marginalia.core.core import Service
from marginalia.core.modules.blob.storage import delete_blob_file, read_blob_file, write_blob_file
from marginalia.errors import NotFoundError, StorageUnavailableError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class BlobService(Service):
    """Stores live and archived document content as files, each call bounded by the store timeout."""

    async def put(self, key: str, content: bytes) -> None:
        await self._run("put", key, write_blob_file, key, content)

    async def get(self, key: str) -> bytes:
        """Read blob content. Raises NotFoundError if nothing is stored under the key."""
        try:
            return await self._run("get", key, read_blob_file, key)
        except FileNotFoundError as e:
            raise NotFoundError(f"Content not found: {key}") from e

    async def delete(self, key: str) -> bool:
        return await self._run("delete", key, delete_blob_file, key)

    async def _run(self, operation: str, key: str, func: Callable[..., T], *args: Any) -> T:
        """Run a file operation in a worker thread.

        Threads cannot be interrupted, so a call that times out or is cancelled
        waits for its thread to finish before returning. No file operation
        outlives the call that started it.
        """
        config = self.core.config
        worker = asyncio.ensure_future(asyncio.to_thread(func, config.content_path, *args))
        try:
            return await asyncio.wait_for(asyncio.shield(worker), config.store_timeout_ms / 1000)
        except FileNotFoundError:
            raise
        except TimeoutError as e:
            await _settle(worker)
            logger.warning("storage_unavailable", store="blob", operation=operation, key=key, error="timeout")
            raise StorageUnavailableError from e
        except OSError as e:
            logger.warning("storage_unavailable", store="blob", operation=operation, key=key, error=str(e))
            raise StorageUnavailableError from e
        except asyncio.CancelledError:
            await _settle(worker)
            raise


async def _settle(worker: asyncio.Future[Any]) -> None:
    """Wait until a worker thread is done, whatever its outcome."""
    await asyncio.shield(asyncio.gather(worker, return_exceptions=True))
