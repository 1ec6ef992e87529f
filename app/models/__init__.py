"""Database models."""

# Import all models here to ensure they're recognized by SQLAlchemy
from app.models.comment import Comment
from app.models.file import File
from app.models.post import Post, post_files, post_likes
from app.models.user import User

__all__ = [
    "User",
    "Post",
    "File",
    "Comment",
    "post_files",
    "post_likes",
]
