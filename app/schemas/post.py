from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from app.schemas.auth import UserSummary
from app.schemas.base import BaseSchema, PaginationMeta
from app.schemas.file import FileSummary


class PostBase(BaseSchema):
    """Fields shared by create and update payloads."""
    excerpt: Optional[str] = Field(None, max_length=255)
    tags: Optional[List[str]] = None
    category: Optional[str] = Field(None, max_length=100)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [tag.strip() for tag in v if tag and tag.strip()]


class PostCreate(PostBase):
    """Schema for creating a post. The thumbnail is always derived from content."""
    title: str = Field(..., min_length=1, max_length=255)
    content: str
    attached_file_ids: Optional[List[int]] = None


class PostUpdate(PostBase):
    """Schema for updating a post. Unset fields are left unchanged."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = None
    is_published: Optional[bool] = None
    attached_file_ids: Optional[List[int]] = None


class PostResponse(BaseSchema):
    id: int
    title: str
    slug: Optional[str] = None
    content: str
    excerpt: Optional[str] = None
    thumbnail: Optional[str] = None
    is_published: bool
    view_count: int
    like_count: int
    tags: Optional[List[str]] = None
    category: Optional[str] = None
    author: UserSummary
    attached_files: List[FileSummary] = []
    created_at: datetime
    updated_at: datetime
    published_at: Optional[datetime] = None


class PostListItem(BaseSchema):
    id: int
    title: str
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    thumbnail: Optional[str] = None
    tags: Optional[List[str]] = None
    category: Optional[str] = None
    view_count: int
    like_count: int
    author: UserSummary
    images: List[FileSummary] = []
    created_at: datetime
    published_at: Optional[datetime] = None


class PostListResponse(PaginationMeta):
    posts: List[PostListItem]


class LikeResponse(BaseSchema):
    liked: bool
    like_count: int


class SlugBackfillResponse(BaseSchema):
    updated_count: int
