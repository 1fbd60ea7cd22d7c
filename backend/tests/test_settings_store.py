"""Tests for the upload-limit setting."""
import pytest
from sqlalchemy import delete, select, update

from filedrop.errors import InvalidInput
from filedrop.models import Setting
from filedrop.models.setting import MAX_FILE_SIZE_KEY
from filedrop.services.settings_store import (
    get_max_file_size_mb,
    seed_default_limit,
    set_max_file_size_mb,
)


async def test_seeded_value_is_read(db_session) -> None:
    assert await get_max_file_size_mb(db_session, default_mb=7) == 20


async def test_missing_row_falls_back(db_session) -> None:
    await db_session.execute(delete(Setting))
    await db_session.commit()
    assert await get_max_file_size_mb(db_session, default_mb=7) == 7


@pytest.mark.parametrize("raw", ["abc", "0", "5000"])
async def test_unreadable_value_falls_back(db_session, raw: str) -> None:
    await db_session.execute(update(Setting).where(Setting.key == MAX_FILE_SIZE_KEY).values(value=raw))
    await db_session.commit()
    assert await get_max_file_size_mb(db_session, default_mb=7) == 7


async def test_upsert_updates_single_row(db_session) -> None:
    assert await set_max_file_size_mb(db_session, 50) == 50
    assert await set_max_file_size_mb(db_session, 60) == 60

    rows = (await db_session.execute(select(Setting))).scalars().all()
    assert [(r.key, r.value) for r in rows] == [(MAX_FILE_SIZE_KEY, "60")]


async def test_upsert_inserts_when_missing(db_session) -> None:
    await db_session.execute(delete(Setting))
    await db_session.commit()

    await set_max_file_size_mb(db_session, 1)
    assert await get_max_file_size_mb(db_session, default_mb=7) == 1


@pytest.mark.parametrize("value", [0, 1001, -5, True, "10", 3.0])
async def test_bounds_enforced(db_session, value) -> None:
    with pytest.raises(InvalidInput):
        await set_max_file_size_mb(db_session, value)


async def test_seed_never_overwrites(db_session) -> None:
    await set_max_file_size_mb(db_session, 99)
    await seed_default_limit(db_session, 20)
    assert await get_max_file_size_mb(db_session, default_mb=7) == 99
