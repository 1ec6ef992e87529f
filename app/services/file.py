import math
import uuid
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.file import File
from app.schemas.file import (
    FileListResponse, FileResponse, FileStatsResponse, FileTypeStats, FileUploadComplete,
)
from app.services.supabase_storage import StorageError, SupabaseStorageService
from app.utils.logger import file_logger
from app.utils.post_content import STORAGE_KEY_PREFIX

MIME_TO_EXTENSION = {
    'image/jpeg': '.jpg',
    'image/jpg': '.jpg',
    'image/png': '.png',
    'image/gif': '.gif',
    'image/webp': '.webp',
    'image/svg+xml': '.svg',
    'application/pdf': '.pdf',
    'text/plain': '.txt',
    'application/msword': '.doc',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document': '.docx',
    'application/vnd.ms-excel': '.xls',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet': '.xlsx',
}

SIZE_UNITS = ['Bytes', 'KB', 'MB', 'GB', 'TB']


def format_file_size(size: int) -> str:
    """Human readable file size, e.g. 1536 -> '1.5 KB'."""
    if size <= 0:
        return "0 Bytes"
    exponent = 0
    while size >= 1024 ** (exponent + 1) and exponent < len(SIZE_UNITS) - 1:
        exponent += 1
    value = round(size / (1024 ** exponent), 2)
    return f"{value:g} {SIZE_UNITS[exponent]}"


def is_image_mime_type(mime_type: str) -> bool:
    return (mime_type or "").lower().startswith("image/")


class FileService:
    @staticmethod
    def build_storage_key(
        original_name: str,
        mime_type: str,
        file_type: str = "general",
        now: Optional[datetime] = None,
    ) -> str:
        """Storage key for a new upload: uploads/<type>/<YYYY>/<MM>/<uuid><ext>."""
        now = now or datetime.utcnow()
        extension = Path(original_name or "").suffix.lower() or MIME_TO_EXTENSION.get(mime_type.lower(), '.bin')
        return f"{STORAGE_KEY_PREFIX}{file_type}/{now:%Y}/{now:%m}/{uuid.uuid4()}{extension}"

    @staticmethod
    def register_upload(db: Session, user_id: int, upload: FileUploadComplete) -> FileResponse:
        """Record a file the client has finished uploading to storage."""
        if not upload.file_key.startswith(STORAGE_KEY_PREFIX):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid storage key format"
            )

        if is_image_mime_type(upload.mime_type) and upload.mime_type not in settings.ALLOWED_IMAGE_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported image type: {upload.mime_type}"
            )

        max_size_bytes = settings.MAX_FILE_SIZE_MB * 1024 * 1024
        if upload.file_size > max_size_bytes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(f"File size exceeds limit: {format_file_size(upload.file_size)} > "
                        f"{format_file_size(max_size_bytes)}")
            )

        db_file = File(
            user_id=user_id,
            original_name=upload.file_name,
            file_name=upload.file_key.rsplit("/", 1)[-1],
            file_key=upload.file_key,
            file_url=upload.file_key,
            mime_type=upload.mime_type,
            file_size=upload.file_size,
            file_type=upload.file_type or "general",
        )
        db.add(db_file)
        db.commit()
        db.refresh(db_file)

        file_logger.success("Upload registered", "UPLOAD",
                            file_id=db_file.id, user_id=user_id, key=db_file.file_key)

        response = FileResponse.model_validate(db_file)
        response.access_url = SupabaseStorageService.create_signed_url(db_file.file_key)
        return response

    @staticmethod
    def get_user_files(
        db: Session,
        user_id: int,
        file_type: Optional[str] = None,
        page: int = 1,
        limit: int = 20
    ) -> FileListResponse:
        """Get a user's files, newest first."""
        query = db.query(File).filter(File.user_id == user_id)
        if file_type:
            query = query.filter(File.file_type == file_type)

        total = query.count()
        files = (
            query.order_by(File.created_at.desc(), File.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        items = []
        for db_file in files:
            item = FileResponse.model_validate(db_file)
            if is_image_mime_type(db_file.mime_type):
                item.access_url = SupabaseStorageService.create_signed_url(db_file.file_key)
            items.append(item)

        return FileListResponse(
            files=items,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total > 0 else 1,
        )

    @staticmethod
    def get_file_by_id(db: Session, file_id: int, user_id: Optional[int] = None) -> File:
        """Get a file, checking ownership when a user id is given."""
        db_file = db.query(File).filter(File.id == file_id).first()
        if not db_file:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="File not found"
            )

        if user_id is not None and db_file.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied to this file"
            )

        return db_file

    @staticmethod
    def get_file_by_key(db: Session, file_key: str) -> Optional[File]:
        return db.query(File).filter(File.file_key == file_key).first()

    @staticmethod
    def delete_file(db: Session, file_id: int, user_id: int) -> None:
        """
        Delete a file from storage and then its record.

        Raises:
            HTTPException: If the file doesn't exist or isn't owned by the user
            StorageError: If the object store delete fails (the record is kept)
        """
        db_file = FileService.get_file_by_id(db, file_id, user_id)
        file_key = db_file.file_key

        SupabaseStorageService.delete_object(file_key)

        try:
            db.delete(db_file)
            db.commit()
        except Exception:
            db.rollback()
            file_logger.error("Object deleted but record removal failed", "DELETE",
                              file_id=file_id, key=file_key)
            raise

        file_logger.success("File deleted", "DELETE", file_id=file_id, key=file_key)

    @staticmethod
    def get_file_stats(db: Session, user_id: int) -> FileStatsResponse:
        """Count and total size of a user's files, overall and per file type."""
        rows = (
            db.query(
                File.file_type,
                func.count(File.id),
                func.coalesce(func.sum(File.file_size), 0),
            )
            .filter(File.user_id == user_id)
            .group_by(File.file_type)
            .order_by(File.file_type)
            .all()
        )

        by_type = [
            FileTypeStats(file_type=file_type, count=count, total_size=int(total_size))
            for file_type, count, total_size in rows
        ]
        total_size = sum(item.total_size for item in by_type)

        return FileStatsResponse(
            total_files=sum(item.count for item in by_type),
            total_size=total_size,
            total_size_display=format_file_size(total_size),
            by_type=by_type,
        )


class OwnedFileLookup:
    """
    File store access bound to a single owner.

    Every lookup and delete goes through the owner filter, so a file that
    belongs to someone else is never returned, even when its key matches.
    """

    def __init__(self, db: Session, owner_id: int):
        self.db = db
        self.owner_id = owner_id

    def _query(self):
        return self.db.query(File).filter(File.user_id == self.owner_id)

    def find_by_key(self, file_key: str) -> Optional[File]:
        return self._query().filter(File.file_key == file_key).first()

    def find_by_keys(self, file_keys: Iterable[str]) -> List[File]:
        file_keys = list(file_keys)
        if not file_keys:
            return []
        return self._query().filter(File.file_key.in_(file_keys)).all()

    def find_by_ids(self, file_ids: Iterable[int]) -> List[File]:
        file_ids = list(file_ids)
        if not file_ids:
            return []
        return self._query().filter(File.id.in_(file_ids)).all()

    def delete(self, file_id: int) -> None:
        """Delete from storage and database. Errors propagate to the caller."""
        FileService.delete_file(self.db, file_id, self.owner_id)


__all__ = [
    "FileService",
    "OwnedFileLookup",
    "StorageError",
    "format_file_size",
    "is_image_mime_type",
]
