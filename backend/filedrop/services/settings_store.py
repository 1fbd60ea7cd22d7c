"""Read and write the global upload limit kept in the settings table.

The limit is read per request so an admin change applies to the very next
upload. If the row is missing or unreadable the configured default is used.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.errors import InvalidInput, PersistenceFailure
from filedrop.models.base import utcnow
from filedrop.models.setting import MAX_FILE_SIZE_KEY, Setting

logger = logging.getLogger(__name__)

MIN_LIMIT_MB = 1
MAX_LIMIT_MB = 1000
BYTES_PER_MB = 1024 * 1024

_UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def validate_limit_mb(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput("Invalid input: maxFileSizeMB must be a whole number.")
    if not MIN_LIMIT_MB <= value <= MAX_LIMIT_MB:
        raise InvalidInput(
            f"Invalid input: maxFileSizeMB must be between {MIN_LIMIT_MB} and {MAX_LIMIT_MB}."
        )
    return value


async def get_max_file_size_mb(db: AsyncSession, default_mb: int) -> int:
    """Effective upload limit in MB, falling back to ``default_mb``."""
    try:
        result = await db.execute(select(Setting.value).where(Setting.key == MAX_FILE_SIZE_KEY))
        raw = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.warning("Could not read %s, using default %dMB: %s", MAX_FILE_SIZE_KEY, default_mb, e)
        return default_mb

    if raw is None:
        return default_mb
    try:
        return validate_limit_mb(int(raw))
    except (ValueError, InvalidInput):
        logger.warning("Stored %s=%r is invalid, using default %dMB", MAX_FILE_SIZE_KEY, raw, default_mb)
        return default_mb


async def set_max_file_size_mb(db: AsyncSession, limit_mb) -> int:
    """Validate and upsert the upload limit. Returns the stored value."""
    limit_mb = validate_limit_mb(limit_mb)
    try:
        await _upsert(db, MAX_FILE_SIZE_KEY, str(limit_mb))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to update %s: %s", MAX_FILE_SIZE_KEY, e)
        raise PersistenceFailure("Failed to update settings.") from e

    logger.info("Max upload size set to %dMB", limit_mb)
    return limit_mb


async def seed_default_limit(db: AsyncSession, default_mb: int) -> None:
    """Insert the default limit if no row exists yet (never overwrites)."""
    result = await db.execute(select(Setting.id).where(Setting.key == MAX_FILE_SIZE_KEY))
    if result.scalar_one_or_none() is not None:
        return
    db.add(Setting(key=MAX_FILE_SIZE_KEY, value=str(default_mb)))
    await db.commit()
    logger.info("Seeded %s=%d", MAX_FILE_SIZE_KEY, default_mb)


async def _upsert(db: AsyncSession, key: str, value: str) -> None:
    insert = _UPSERT_DIALECTS.get(db.get_bind().dialect.name)
    if insert is not None:
        stmt = insert(Setting).values(key=key, value=value, updated_at=utcnow())
        stmt = stmt.on_conflict_do_update(
            index_elements=[Setting.key],
            set_={"value": value, "updated_at": utcnow()},
        )
        await db.execute(stmt)
        return

    result = await db.execute(
        update(Setting).where(Setting.key == key).values(value=value, updated_at=utcnow())
    )
    if result.rowcount == 0:
        db.add(Setting(key=key, value=value))
