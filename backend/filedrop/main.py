"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop import __version__
from filedrop.auth import StaticCredentialVerifier
from filedrop.config import Settings, settings
from filedrop.database import build_engine, build_sessionmaker, get_db
from filedrop.errors import register_error_handlers
from filedrop.models import Base
from filedrop.routes.admin import router as admin_router
from filedrop.routes.files import router as files_router
from filedrop.services.file_storage import BlobStore
from filedrop.services.rate_limit import UploadRateLimiter
from filedrop.services.settings_store import seed_default_limit

logger = logging.getLogger(__name__)


async def prepare_storage(app: FastAPI) -> None:
    """Create tables and seed the default upload limit."""
    async with app.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with app.state.session_factory() as session:
        await seed_default_limit(session, app.state.settings.DEFAULT_MAX_FILE_SIZE_MB)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, dispose the engine on shutdown."""
    configure_logging(app.state.settings.LOG_LEVEL)
    await prepare_storage(app)
    logger.info("Blob store at %s", app.state.blob_store.base_path.resolve())

    yield

    await app.state.engine.dispose()


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    app_settings = app_settings or settings

    app = FastAPI(
        title="File Drop API",
        version=__version__,
        description="Upload files, share links, manage retention.",
        lifespan=lifespan,
    )

    engine = build_engine(app_settings.DATABASE_URL)
    app.state.settings = app_settings
    app.state.engine = engine
    app.state.session_factory = build_sessionmaker(engine)
    app.state.blob_store = BlobStore(app_settings.FILE_STORAGE_PATH, app_settings.UPLOAD_CHUNK_SIZE)
    app.state.upload_rate_limiter = UploadRateLimiter(
        app_settings.UPLOAD_RATE_LIMIT, app_settings.UPLOAD_RATE_WINDOW_SECONDS
    )
    app.state.admin_verifier = StaticCredentialVerifier(
        app_settings.ADMIN_USERNAME, app_settings.ADMIN_PASSWORD
    )

    # CORS
    origins = [o.strip() for o in app_settings.CORS_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    @app.get("/api/health")
    async def health_check(db: AsyncSession = Depends(get_db)):
        """Verify API and database connectivity."""
        try:
            await db.execute(text("SELECT 1"))
            return {"status": "ok", "database": "connected"}
        except Exception as e:
            logger.error("Health check failed: %s", e)
            return {"status": "error", "database": str(e)}

    app.include_router(files_router)
    app.include_router(admin_router)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run(app, host="0.0.0.0", port=settings.API_PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
