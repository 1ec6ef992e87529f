from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.schemas.auth import UserSummary
from app.schemas.base import BaseSchema


class CommentCreate(BaseSchema):
    post_id: int
    content: str = Field(..., min_length=1)
    parent_comment_id: Optional[int] = None


class CommentUpdate(BaseSchema):
    content: str = Field(..., min_length=1)


class CommentResponse(BaseSchema):
    id: int
    post_id: int
    parent_comment_id: Optional[int] = None
    content: str
    author: UserSummary
    created_at: datetime
    updated_at: datetime


class CommentThread(CommentResponse):
    """Top-level comment with its replies."""
    replies: List[CommentResponse] = []
