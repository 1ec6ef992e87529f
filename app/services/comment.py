from typing import List

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.models.comment import Comment
from app.models.post import Post
from app.models.user import User
from app.schemas.comment import CommentCreate, CommentResponse, CommentThread, CommentUpdate
from app.utils.logger import comment_logger


class CommentService:
    @staticmethod
    def _get_comment(db: Session, comment_id: int) -> Comment:
        comment = (
            db.query(Comment)
            .filter(Comment.id == comment_id, Comment.is_deleted.is_(False))
            .first()
        )
        if not comment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Comment not found"
            )
        return comment

    @staticmethod
    def _check_author(comment: Comment, user: User, action: str) -> None:
        if comment.user_id != user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You can only {action} your own comments"
            )

    @staticmethod
    def create_comment(db: Session, comment_data: CommentCreate, user: User) -> Comment:
        """Create a comment, or a reply when a parent comment is given."""
        post = db.query(Post.id).filter(Post.id == comment_data.post_id).first()
        if not post:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Post not found"
            )

        if comment_data.parent_comment_id is not None:
            parent = CommentService._get_comment(db, comment_data.parent_comment_id)
            if parent.post_id != comment_data.post_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Parent comment belongs to a different post"
                )

        comment = Comment(
            post_id=comment_data.post_id,
            user_id=user.id,
            parent_comment_id=comment_data.parent_comment_id,
            content=comment_data.content,
        )
        db.add(comment)
        db.commit()
        db.refresh(comment)

        comment_logger.info("Comment created", "CREATE",
                            comment_id=comment.id, post_id=comment.post_id, user_id=user.id)
        return comment

    @staticmethod
    def get_comments_for_post(db: Session, post_id: int) -> List[CommentThread]:
        """Top-level comments of a post, oldest first, each with its replies."""
        comments = (
            db.query(Comment)
            .options(
                selectinload(Comment.author),
                selectinload(Comment.replies).selectinload(Comment.author),
            )
            .filter(
                Comment.post_id == post_id,
                Comment.parent_comment_id.is_(None),
                Comment.is_deleted.is_(False),
            )
            .order_by(Comment.created_at, Comment.id)
            .all()
        )

        threads = []
        for comment in comments:
            thread = CommentThread.model_validate(comment)
            thread.replies = [
                CommentResponse.model_validate(reply) for reply in comment.replies if not reply.is_deleted
            ]
            threads.append(thread)
        return threads

    @staticmethod
    def list_comments(db: Session) -> List[Comment]:
        """All visible comments, newest first."""
        return (
            db.query(Comment)
            .options(selectinload(Comment.author))
            .filter(Comment.is_deleted.is_(False))
            .order_by(Comment.created_at.desc(), Comment.id.desc())
            .all()
        )

    @staticmethod
    def update_comment(db: Session, comment_id: int, comment_data: CommentUpdate, user: User) -> Comment:
        comment = CommentService._get_comment(db, comment_id)
        CommentService._check_author(comment, user, "update")

        comment.content = comment_data.content
        db.commit()
        db.refresh(comment)
        return comment

    @staticmethod
    def delete_comment(db: Session, comment_id: int, user: User) -> None:
        """Soft delete: the row stays so replies keep their parent."""
        comment = CommentService._get_comment(db, comment_id)
        CommentService._check_author(comment, user, "delete")

        comment.is_deleted = True
        db.commit()
        comment_logger.info("Comment deleted", "DELETE", comment_id=comment_id, user_id=user.id)
