from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_active_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.comment import CommentCreate, CommentResponse, CommentThread, CommentUpdate
from app.services.comment import CommentService

router = APIRouter()


@router.post("/", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def create_comment(
    comment_data: CommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Comment on a post, or reply to a comment."""
    return CommentService.create_comment(db=db, comment_data=comment_data, user=current_user)


@router.get("/", response_model=List[CommentResponse])
def list_comments(db: Session = Depends(get_db)):
    return CommentService.list_comments(db)


@router.get("/post/{post_id}", response_model=List[CommentThread])
def get_comments_for_post(post_id: int, db: Session = Depends(get_db)):
    """Comment threads of a post, oldest first."""
    return CommentService.get_comments_for_post(db, post_id)


@router.patch("/{comment_id}", response_model=CommentResponse)
def update_comment(
    comment_id: int,
    comment_data: CommentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return CommentService.update_comment(db=db, comment_id=comment_id, comment_data=comment_data, user=current_user)


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    CommentService.delete_comment(db=db, comment_id=comment_id, user=current_user)
