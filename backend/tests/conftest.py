"""Shared pytest fixtures for filedrop tests."""
from collections.abc import AsyncGenerator, Awaitable, Callable

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.config import Settings
from filedrop.main import create_app, prepare_storage
from filedrop.services.file_storage import BlobStore
from tests.helpers import ADMIN_AUTH

UploadFn = Callable[..., Awaitable[httpx.Response]]


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file and blob directory."""
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'filedrop.db'}",
        FILE_STORAGE_PATH=str(tmp_path / "uploads"),
        DEFAULT_MAX_FILE_SIZE_MB=20,
        UPLOAD_CHUNK_SIZE=64 * 1024,
        UPLOAD_RATE_LIMIT=0,
        ADMIN_USERNAME=ADMIN_AUTH[0],
        ADMIN_PASSWORD=ADMIN_AUTH[1],
    )


@pytest.fixture
async def app(app_settings: Settings) -> AsyncGenerator[FastAPI, None]:
    """A fresh app with tables created and the default limit seeded.

    ASGITransport does not run the lifespan, so startup work is done here.
    """
    application = create_app(app_settings)
    await prepare_storage(application)
    yield application
    await application.state.engine.dispose()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
async def db_session(app: FastAPI) -> AsyncGenerator[AsyncSession, None]:
    async with app.state.session_factory() as session:
        yield session


@pytest.fixture
def blob_store(app: FastAPI) -> BlobStore:
    return app.state.blob_store


@pytest.fixture
def upload(client: AsyncClient) -> UploadFn:
    """Factory fixture posting one file to /api/upload."""

    async def _upload(
        name: str = "report.pdf",
        data: bytes = b"%PDF-1.4 test document",
        mime: str = "application/pdf",
    ) -> httpx.Response:
        return await client.post("/api/upload", files={"file": (name, data, mime)})

    return _upload
