from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from app.schemas.base import BaseSchema, PaginationMeta


class FileUploadComplete(BaseSchema):
    """Sent by the client after it has put the object into storage."""
    file_key: str = Field(..., max_length=512)
    file_name: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., max_length=100)
    file_size: int = Field(..., ge=0)
    file_type: str = Field("general", max_length=50)

    @field_validator("mime_type")
    @classmethod
    def normalize_mime_type(cls, v: str) -> str:
        return v.strip().lower()


class FileSummary(BaseSchema):
    """File as embedded in a post."""
    id: int
    file_key: str
    original_name: str
    mime_type: str
    file_type: str


class FileResponse(FileSummary):
    """Full file record."""
    user_id: int
    file_name: str
    file_url: str
    file_size: int
    created_at: datetime
    access_url: Optional[str] = None


class FileListResponse(PaginationMeta):
    files: List[FileResponse]


class FileTypeStats(BaseSchema):
    file_type: str
    count: int
    total_size: int


class FileStatsResponse(BaseSchema):
    total_files: int
    total_size: int
    total_size_display: str
    by_type: List[FileTypeStats]
