"""Admin API routes. Every route requires admin credentials."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.auth import require_admin
from filedrop.database import get_db
from filedrop.schemas.file import (
    DeleteResponse,
    ExpiryResponse,
    ExpiryUpdate,
    FileListItem,
    StatsResponse,
)
from filedrop.schemas.setting import UploadLimitResponse, UploadLimitUpdate
from filedrop.services import admin
from filedrop.services.file_storage import BlobStore, get_blob_store
from filedrop.services.settings_store import get_max_file_size_mb, set_max_file_size_mb

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/files", response_model=list[FileListItem])
async def list_files(db: AsyncSession = Depends(get_db)):
    """List all files, newest first."""
    return await admin.list_files(db)


@router.delete("/files/{public_id}", response_model=DeleteResponse)
async def delete_file(
    public_id: str,
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    """Delete a file from storage and the database."""
    await admin.delete_file(db, store, public_id)
    return {"message": "File deleted successfully.", "public_id": public_id}


@router.put("/files/{public_id}/expire", response_model=ExpiryResponse)
async def set_file_expiry(
    public_id: str,
    body: ExpiryUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Set or replace a file's expiration, counted in days from now."""
    expires_at = await admin.set_expiry(db, public_id, body.expires_in_days)
    return {
        "message": f"File expiration set to {expires_at.strftime('%Y-%m-%d %H:%M:%S UTC')}.",
        "public_id": public_id,
        "expires_at": expires_at,
    }


@router.get("/settings", response_model=UploadLimitResponse)
async def get_settings(request: Request, db: AsyncSession = Depends(get_db)):
    limit_mb = await get_max_file_size_mb(db, request.app.state.settings.DEFAULT_MAX_FILE_SIZE_MB)
    return {"max_file_size_mb": limit_mb}


@router.put("/settings", response_model=UploadLimitResponse)
async def update_settings(body: UploadLimitUpdate, db: AsyncSession = Depends(get_db)):
    """Change the global upload limit (1-1000 MB)."""
    limit_mb = await set_max_file_size_mb(db, body.max_file_size_mb)
    return {"max_file_size_mb": limit_mb, "message": f"Max file size updated to {limit_mb}MB."}


@router.get("/stats", response_model=StatsResponse)
async def get_stats(db: AsyncSession = Depends(get_db)):
    """Count and size aggregates over all stored files."""
    return await admin.file_stats(db)
