"""Upload ingestion: validate, stream into the blob store, then record metadata.

Order matters here. Every policy check runs before any byte is written,
and the metadata row is only committed after the blob has been fully
written and renamed into place.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import FormData, UploadFile

from filedrop.errors import (
    FileCountExceeded,
    ForbiddenContent,
    MetadataWriteFailed,
    NoFileUploaded,
    PayloadTooLarge,
    StorageFailure,
)
from filedrop.models.file_record import FileRecord
from filedrop.services.file_storage import BlobStore, BlobTooLarge
from filedrop.services.settings_store import BYTES_PER_MB
from filedrop.services.upload_policy import (
    check_extension,
    check_mime_type,
    normalize_mime_type,
    sanitize_filename,
)

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "file"
SUCCESS_MESSAGE = "File uploaded successfully!"
# Room for multipart boundaries and part headers on top of the file itself
MULTIPART_OVERHEAD_BYTES = 64 * 1024
MAX_ORIGINAL_NAME_LENGTH = 500


@dataclass
class UploadResult:
    record: FileRecord
    file_url: str
    message: str = SUCCESS_MESSAGE


def file_url_for(public_id: str) -> str:
    return f"/api/files/{public_id}"


def check_declared_length(content_length: Optional[str], limit_mb: int) -> None:
    """Refuse a request up front when its Content-Length is already too big."""
    if not content_length:
        return
    try:
        declared = int(content_length)
    except ValueError:
        return
    if declared > limit_mb * BYTES_PER_MB + MULTIPART_OVERHEAD_BYTES:
        logger.warning("Rejected upload: Content-Length %d over %dMB limit", declared, limit_mb)
        raise PayloadTooLarge(limit_mb)


def pick_single_upload(form: FormData) -> UploadFile:
    """Return the one uploaded file in ``form``."""
    uploads = [value for _, value in form.multi_items() if isinstance(value, UploadFile)]
    if len(uploads) > 1:
        logger.warning("Rejected upload: %d files in one request", len(uploads))
        raise FileCountExceeded()

    upload = form.get(UPLOAD_FIELD)
    if not isinstance(upload, UploadFile) or not upload.filename:
        raise NoFileUploaded()
    return upload


async def ingest_upload(
    db: AsyncSession,
    store: BlobStore,
    upload: UploadFile,
    limit_mb: int,
) -> UploadResult:
    """Run one upload through policy checks, the blob store and the files table."""
    safe_name = sanitize_filename(upload.filename)
    mime_type = normalize_mime_type(upload.content_type)
    try:
        check_extension(safe_name)
        check_mime_type(mime_type)
    except ForbiddenContent as e:
        logger.warning("Rejected upload %r (%s): %s", upload.filename, mime_type, e)
        raise

    storage_name = store.make_storage_name(safe_name)
    await upload.seek(0)
    try:
        size = await store.write_stream(storage_name, upload.file, limit_mb * BYTES_PER_MB)
    except BlobTooLarge:
        logger.warning("Rejected upload %r: over %dMB limit", upload.filename, limit_mb)
        raise PayloadTooLarge(limit_mb)
    except OSError as e:
        logger.error("Failed to write blob %s: %s", storage_name, e)
        raise StorageFailure("Failed to store file.") from e

    record = FileRecord(
        public_id=str(uuid.uuid4()),
        original_name=(upload.filename or safe_name)[:MAX_ORIGINAL_NAME_LENGTH],
        storage_name=storage_name,
        mime_type=mime_type,
        size_bytes=size,
    )
    db.add(record)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        logger.error("Error saving file metadata for %s: %s", storage_name, e)
        await db.rollback()
        await _discard_orphan(store, storage_name)
        raise MetadataWriteFailed() from e
    except asyncio.CancelledError:
        await _discard_orphan(store, storage_name)
        raise

    logger.info(
        "Stored upload %s (%d bytes, %s) as %s",
        record.public_id, size, mime_type, storage_name,
    )
    return UploadResult(record=record, file_url=file_url_for(record.public_id))


async def _discard_orphan(store: BlobStore, storage_name: str) -> None:
    """Best-effort removal of a blob whose metadata never made it."""
    try:
        await store.delete(storage_name)
    except Exception as e:
        logger.error("Error deleting orphaned blob %s: %s", storage_name, e)
