"""Admin operations over the files table and blob store."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.errors import FileNotFound, InvalidInput, PersistenceFailure
from filedrop.models.base import as_utc, utcnow
from filedrop.models.file_record import FileRecord
from filedrop.services.file_storage import BlobStore
from filedrop.services.retrieval import find_record

logger = logging.getLogger(__name__)


async def list_files(db: AsyncSession, now: Optional[datetime] = None) -> list[dict]:
    """All files, newest first, without internal id or storage name."""
    try:
        result = await db.execute(
            select(FileRecord).order_by(desc(FileRecord.uploaded_at), desc(FileRecord.id))
        )
    except SQLAlchemyError as e:
        logger.error("Error fetching files for admin: %s", e)
        raise PersistenceFailure("Failed to retrieve files.") from e
    return [_to_listing(r, now) for r in result.scalars().all()]


async def delete_file(db: AsyncSession, store: BlobStore, public_id: str) -> None:
    """Remove the blob first, then the row.

    A crash between the two leaves a row pointing at nothing, which a
    repeated delete cleans up. A missing blob is not an error.
    """
    record = await find_record(db, public_id)
    if record is None:
        raise FileNotFound()

    removed = await store.delete(record.storage_name)
    if not removed:
        logger.info("Blob %s for %s was already absent", record.storage_name, public_id)

    try:
        result = await db.execute(delete(FileRecord).where(FileRecord.public_id == public_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error deleting file record %s from DB: %s", public_id, e)
        raise PersistenceFailure("Failed to delete file record.") from e

    if result.rowcount == 0:
        # Lost a race with another delete of the same file
        raise FileNotFound()
    logger.info("Deleted file %s", public_id)


async def set_expiry(
    db: AsyncSession,
    public_id: str,
    days,
    now: Optional[datetime] = None,
) -> datetime:
    """Expire ``public_id`` ``days`` whole days from now. Returns the new expiry."""
    if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
        raise InvalidInput("Invalid input: expiresInDays must be a positive whole number.")

    expires_at = (as_utc(now) or utcnow()) + timedelta(days=days)
    try:
        result = await db.execute(
            update(FileRecord)
            .where(FileRecord.public_id == public_id)
            .values(expires_at=expires_at)
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error updating expiration for %s: %s", public_id, e)
        raise PersistenceFailure("Failed to update file expiration.") from e

    if result.rowcount == 0:
        raise FileNotFound("File not found for updating expiration.")
    logger.info("File %s expires at %s", public_id, expires_at.isoformat())
    return expires_at


async def file_stats(db: AsyncSession) -> dict:
    """Aggregate size numbers. Every value is zero for an empty table."""
    try:
        result = await db.execute(
            select(
                func.count(FileRecord.id),
                func.coalesce(func.sum(FileRecord.size_bytes), 0),
                func.coalesce(func.avg(FileRecord.size_bytes), 0),
                func.coalesce(func.max(FileRecord.size_bytes), 0),
                func.coalesce(func.min(FileRecord.size_bytes), 0),
            )
        )
    except SQLAlchemyError as e:
        logger.error("Error computing file stats: %s", e)
        raise PersistenceFailure("Failed to retrieve statistics.") from e

    count, total, average, largest, smallest = result.one()
    return {
        "total_files": int(count or 0),
        "total_size_bytes": int(total or 0),
        "average_size_bytes": round(float(average or 0), 2),
        "max_size_bytes": int(largest or 0),
        "min_size_bytes": int(smallest or 0),
    }


def _to_listing(record: FileRecord, now: Optional[datetime] = None) -> dict:
    """Convert SQLAlchemy model to the admin projection."""
    return {
        "public_id": record.public_id,
        "original_name": record.original_name,
        "mime_type": record.mime_type,
        "size_bytes": record.size_bytes,
        "uploaded_at": as_utc(record.uploaded_at),
        "expires_at": as_utc(record.expires_at),
        "expired": record.is_expired(now),
    }
