from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_active_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.file import FileListResponse, FileResponse, FileStatsResponse, FileUploadComplete
from app.services.file import FileService
from app.services.supabase_storage import StorageError, SupabaseStorageService
from app.utils.logger import api_logger

router = APIRouter()


@router.post("/upload-complete", response_model=FileResponse, status_code=status.HTTP_201_CREATED)
def upload_complete(
    upload: FileUploadComplete,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Record a file after the client has uploaded it to storage."""
    return FileService.register_upload(db=db, user_id=current_user.id, upload=upload)


@router.get("/", response_model=FileListResponse)
def list_my_files(
    file_type: Optional[str] = Query(None, description="Filter by file type"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return FileService.get_user_files(db=db, user_id=current_user.id, file_type=file_type, page=page, limit=limit)


@router.get("/stats", response_model=FileStatsResponse)
def get_file_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return FileService.get_file_stats(db=db, user_id=current_user.id)


@router.get("/proxy/{file_key:path}")
def proxy_file(file_key: str, db: Session = Depends(get_db)):
    """Stream a stored file so clients never see storage URLs."""
    db_file = FileService.get_file_by_key(db, file_key)
    if not db_file:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found"
        )

    try:
        data = SupabaseStorageService.download_object(db_file.file_key)
    except StorageError as e:
        api_logger.error("Proxy download failed", "FILES", key=file_key, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not fetch file from storage"
        )

    return Response(
        content=data,
        media_type=db_file.mime_type,
        headers={"Cache-Control": "public, max-age=31536000"},
    )


@router.get("/{file_id}", response_model=FileResponse)
def get_file(
    file_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    db_file = FileService.get_file_by_id(db, file_id, current_user.id)
    response = FileResponse.model_validate(db_file)
    response.access_url = SupabaseStorageService.create_signed_url(db_file.file_key)
    return response


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    try:
        FileService.delete_file(db=db, file_id=file_id, user_id=current_user.id)
    except StorageError as e:
        api_logger.error("File delete failed", "FILES", file_id=file_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not delete file from storage"
        )
