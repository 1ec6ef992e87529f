"""Pydantic schemas for request and response validation."""

from app.schemas.auth import TokenPayload, UserSummary
from app.schemas.comment import CommentCreate, CommentResponse, CommentThread, CommentUpdate
from app.schemas.file import (
    FileListResponse, FileResponse, FileStatsResponse, FileSummary, FileTypeStats, FileUploadComplete,
)
from app.schemas.post import (
    LikeResponse, PostCreate, PostListItem, PostListResponse, PostResponse, PostUpdate, SlugBackfillResponse,
)

__all__ = [
    "TokenPayload",
    "UserSummary",
    "CommentCreate",
    "CommentUpdate",
    "CommentResponse",
    "CommentThread",
    "FileUploadComplete",
    "FileSummary",
    "FileResponse",
    "FileListResponse",
    "FileTypeStats",
    "FileStatsResponse",
    "PostCreate",
    "PostUpdate",
    "PostResponse",
    "PostListItem",
    "PostListResponse",
    "LikeResponse",
    "SlugBackfillResponse",
]
