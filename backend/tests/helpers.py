"""Small helpers shared by the test modules."""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.models import FileRecord
from filedrop.services.file_storage import BlobStore

ADMIN_AUTH = ("admin", "password")
MB = 1024 * 1024


async def count_records(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(FileRecord.id)))
    return result.scalar_one()


def stored_blobs(store: BlobStore) -> list[str]:
    return sorted(p.name for p in store.base_path.iterdir())
