"""Public file routes: upload, download, upload config."""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.database import get_db
from filedrop.schemas.file import UploadResponse
from filedrop.schemas.setting import UploadConfig
from filedrop.services.file_storage import BlobStore, get_blob_store
from filedrop.services.ingestion import check_declared_length, ingest_upload, pick_single_upload
from filedrop.services.rate_limit import enforce_upload_rate_limit
from filedrop.services.retrieval import content_disposition, open_blob_stream, resolve_download
from filedrop.services.settings_store import get_max_file_size_mb

router = APIRouter(prefix="/api", tags=["files"])


@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=201,
    dependencies=[Depends(enforce_upload_rate_limit)],
)
async def upload_file(
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    """Upload a single file from the multipart field ``file``."""
    limit_mb = await get_max_file_size_mb(db, request.app.state.settings.DEFAULT_MAX_FILE_SIZE_MB)
    check_declared_length(request.headers.get("content-length"), limit_mb)

    form = await request.form()
    try:
        upload = pick_single_upload(form)
        result = await ingest_upload(db, store, upload, limit_mb)
    finally:
        await form.close()

    record = result.record
    return {
        "message": result.message,
        "file_id": record.public_id,
        "public_id": record.public_id,
        "file_name": record.original_name,
        "file_url": result.file_url,
    }


@router.get("/files/{public_id}")
async def download_file(
    public_id: str,
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    """Stream a file back under its original name."""
    download = await resolve_download(db, store, public_id)
    body = await open_blob_stream(store, download)
    return StreamingResponse(
        body,
        media_type=download.mime_type,
        headers={
            "Content-Disposition": content_disposition(download.original_name),
            "Content-Length": str(download.size_bytes),
        },
    )


@router.get("/config", response_model=UploadConfig)
async def get_upload_config(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Current upload limit, for the upload form."""
    limit_mb = await get_max_file_size_mb(db, request.app.state.settings.DEFAULT_MAX_FILE_SIZE_MB)
    return {"max_file_size_mb": limit_mb}
