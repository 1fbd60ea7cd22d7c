"""Resolve a public id to a servable blob, enforcing lazy expiration."""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Optional
from urllib.parse import quote

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.errors import (
    FileGone,
    FileNotFound,
    PersistenceFailure,
    StorageFailure,
    StorageIntegrityFault,
)
from filedrop.models.file_record import FileRecord
from filedrop.services.file_storage import BlobStore

logger = logging.getLogger(__name__)

# Anything outside printable ASCII is replaced in the plain filename parameter
_NON_HEADER_SAFE = re.compile(r"[^\x20-\x7e]")


@dataclass
class Download:
    public_id: str
    storage_name: str
    original_name: str
    mime_type: str
    size_bytes: int


async def find_record(db: AsyncSession, public_id: str) -> Optional[FileRecord]:
    try:
        result = await db.execute(select(FileRecord).where(FileRecord.public_id == public_id))
    except SQLAlchemyError as e:
        logger.error("Error fetching file %s from DB: %s", public_id, e)
        raise PersistenceFailure("Error retrieving file information.") from e
    return result.scalar_one_or_none()


async def resolve_download(
    db: AsyncSession,
    store: BlobStore,
    public_id: str,
    now: Optional[datetime] = None,
) -> Download:
    """Look up, check expiry, then confirm the blob is really on disk."""
    record = await find_record(db, public_id)
    if record is None:
        raise FileNotFound()

    # Expired files are never served, whether or not the blob still exists
    if record.is_expired(now):
        raise FileGone()

    try:
        size = await store.size_of(record.storage_name)
    except FileNotFoundError:
        raise _integrity_fault(record.storage_name, public_id)

    return Download(
        public_id=record.public_id,
        storage_name=record.storage_name,
        original_name=record.original_name,
        mime_type=record.mime_type,
        size_bytes=size,
    )


def _integrity_fault(storage_name: str, public_id: str) -> StorageIntegrityFault:
    logger.error(
        "Storage integrity fault: blob %s for file %s is missing on disk",
        storage_name, public_id,
    )
    return StorageIntegrityFault()


async def open_blob_stream(store: BlobStore, download: Download) -> AsyncIterator[bytes]:
    """Open the blob and return a body iterator for a streaming response.

    The first chunk is read before returning so an unreadable blob still
    surfaces as an error response instead of a half-sent one.
    """
    chunks = store.iter_chunks(download.storage_name)
    try:
        first = await chunks.__anext__()
    except StopAsyncIteration:
        first = b""
    except FileNotFoundError:
        # Deleted between the lookup and the first read
        raise _integrity_fault(download.storage_name, download.public_id)
    except OSError as e:
        logger.error("Error opening blob %s for %s: %s", download.storage_name, download.public_id, e)
        raise StorageFailure("Error sending file.") from e

    async def body() -> AsyncIterator[bytes]:
        try:
            if first:
                yield first
            async for chunk in chunks:
                yield chunk
        except OSError as e:
            # Headers are already on the wire, so the transfer is just abandoned
            logger.error("Error streaming %s mid-transfer: %s", download.public_id, e)
        finally:
            await chunks.aclose()

    return body()


def content_disposition(filename: str) -> str:
    """Attachment header carrying the original name.

    ``filename`` always holds an ASCII rendition of the name. Names that do
    not survive that rendition intact also get an RFC 5987 ``filename*``.
    """
    fallback = _NON_HEADER_SAFE.sub("_", filename)
    escaped = fallback.replace("\\", "\\\\").replace('"', '\\"')
    header = f'attachment; filename="{escaped}"'
    if fallback != filename:
        header += f"; filename*=utf-8''{quote(filename, safe='')}"
    return header
