"""File request/response schemas."""
from datetime import datetime
from typing import Annotated, Optional

from pydantic import Field, StrictInt

from filedrop.schemas.base import CamelModel, CamelORMModel


class UploadResponse(CamelModel):
    message: str
    file_id: str
    public_id: str
    file_name: str
    file_url: str


class FileListItem(CamelORMModel):
    """Admin projection of a FileRecord. No internal id, no storage name."""
    public_id: str
    original_name: str
    mime_type: str
    size_bytes: int
    uploaded_at: datetime
    expires_at: Optional[datetime] = None
    expired: bool = False


class ExpiryUpdate(CamelModel):
    expires_in_days: Annotated[StrictInt, Field(gt=0)]


class ExpiryResponse(CamelModel):
    message: str
    public_id: str
    expires_at: datetime


class DeleteResponse(CamelModel):
    message: str
    deleted: bool = True
    public_id: str


class StatsResponse(CamelModel):
    total_files: int = 0
    total_size_bytes: int = 0
    average_size_bytes: float = 0.0
    max_size_bytes: int = 0
    min_size_bytes: int = 0
