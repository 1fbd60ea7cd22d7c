"""Blob store: uploaded bytes on the local filesystem, keyed by storage name."""
import asyncio
import logging
import random
import time
from pathlib import Path
from typing import AsyncIterator, BinaryIO

import aiofiles
import aiofiles.os
from fastapi import Request

from filedrop.errors import StorageFailure
from filedrop.services.upload_policy import fit_name

logger = logging.getLogger(__name__)

PART_SUFFIX = ".part"
MAX_STORAGE_NAME_LENGTH = 255


class BlobTooLarge(Exception):
    """Raised by BlobStore.write_stream when the byte cap is crossed."""

    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes
        super().__init__(f"Blob exceeds {max_bytes} bytes")


class BlobStore:
    """Handles blob write/read/delete under a single directory.

    Writes go to ``<name>.part`` and are renamed into place only once every
    byte has landed, so a storage name never points at a truncated blob.
    """

    def __init__(self, base_path: str | Path, chunk_size: int = 1024 * 1024):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.chunk_size = chunk_size

    @staticmethod
    def make_storage_name(safe_name: str) -> str:
        """Build a collision-resistant name: ``<stem>-<millis>-<random><ext>``.

        The stem is shortened so the name plus ``.part`` stays within the
        filesystem limit of MAX_STORAGE_NAME_LENGTH bytes.
        """
        suffix = f"-{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
        return fit_name(safe_name, MAX_STORAGE_NAME_LENGTH - len(PART_SUFFIX), reserved=suffix)

    def path_for(self, storage_name: str) -> Path:
        """Resolve a storage name to its path, refusing anything outside base_path."""
        path = (self.base_path / storage_name).resolve()
        if path.parent != self.base_path.resolve():
            raise StorageFailure(f"Invalid storage name: {storage_name!r}")
        return path

    async def write_stream(self, storage_name: str, source: BinaryIO, max_bytes: int) -> int:
        """Copy ``source`` into the store in chunks. Returns the byte count.

        ``source`` is a (possibly spooled) file object; reads are pushed to a
        worker thread. Raises BlobTooLarge as soon as more than ``max_bytes``
        have been read. On any failure, including cancellation, the partial
        file is removed and nothing is left under ``storage_name``.
        """
        final_path = self.path_for(storage_name)
        part_path = final_path.with_name(final_path.name + PART_SUFFIX)
        written = 0
        try:
            # "xb" refuses to clobber a concurrent upload that drew the same name
            async with aiofiles.open(part_path, "xb") as out:
                while True:
                    chunk = await asyncio.to_thread(source.read, self.chunk_size)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > max_bytes:
                        raise BlobTooLarge(max_bytes)
                    await out.write(chunk)
                await out.flush()
            await aiofiles.os.replace(part_path, final_path)
        except FileExistsError:
            # The .part belongs to whoever created it
            raise
        except BaseException:
            await self._discard(part_path)
            raise
        return written

    async def exists(self, storage_name: str) -> bool:
        return await aiofiles.os.path.isfile(self.path_for(storage_name))

    async def size_of(self, storage_name: str) -> int:
        stat = await aiofiles.os.stat(self.path_for(storage_name))
        return stat.st_size

    async def iter_chunks(self, storage_name: str) -> AsyncIterator[bytes]:
        """Yield the blob's bytes chunk by chunk."""
        async with aiofiles.open(self.path_for(storage_name), "rb") as f:
            while True:
                chunk = await f.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk

    async def delete(self, storage_name: str) -> bool:
        """Delete a blob. Returns False if it was already absent."""
        try:
            await aiofiles.os.remove(self.path_for(storage_name))
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Failed to delete blob %s: %s", storage_name, e)
            raise StorageFailure("Failed to delete file from storage.") from e
        return True

    async def _discard(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Could not remove partial upload %s: %s", path.name, e)


def get_blob_store(request: Request) -> BlobStore:
    """FastAPI dependency returning the app's blob store."""
    return request.app.state.blob_store
