"""Setting request/response schemas."""
from typing import Annotated, Optional

from pydantic import BaseModel, Field, StrictInt

from filedrop.services.settings_store import MAX_LIMIT_MB, MIN_LIMIT_MB


class UploadConfig(BaseModel):
    """Public view of the upload configuration."""
    model_config = {"populate_by_name": True}

    max_file_size_mb: int = Field(alias="maxFileSizeMB")


class UploadLimitUpdate(BaseModel):
    model_config = {"populate_by_name": True}

    max_file_size_mb: Annotated[
        StrictInt, Field(ge=MIN_LIMIT_MB, le=MAX_LIMIT_MB, alias="maxFileSizeMB")
    ]


class UploadLimitResponse(UploadConfig):
    message: Optional[str] = None
