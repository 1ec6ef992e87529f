import math
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import String, cast, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.models.post import Post
from app.models.user import User
from app.schemas.file import FileSummary
from app.schemas.post import (
    LikeResponse, PostCreate, PostListItem, PostListResponse, PostUpdate,
)
from app.services.file import OwnedFileLookup
from app.services.post_reconciler import PostFileReconciler
from app.utils.logger import post_logger
from app.utils.post_content import derive_thumbnail, generate_excerpt
from app.utils.slug import ensure_unique_slug


class PostService:
    @staticmethod
    def slug_exists(db: Session, slug: str) -> bool:
        return db.query(Post.id).filter(Post.slug == slug).first() is not None

    @staticmethod
    def apply_derived_fields(post: Post, regenerate_excerpt: bool = False) -> None:
        """
        Fill in the fields computed from title and content before a save.

        The thumbnail always follows the content. The excerpt is only
        generated when missing, or when the caller asks for a fresh one.
        """
        post.thumbnail = derive_thumbnail(post.content)
        if regenerate_excerpt or not post.excerpt:
            post.excerpt = generate_excerpt(post.content, settings.EXCERPT_LENGTH)

    @staticmethod
    def _assign_unique_slug(db: Session, post: Post) -> None:
        post.slug = ensure_unique_slug(
            post.title,
            post.created_at,
            lambda candidate: PostService.slug_exists(db, candidate),
        )

    @staticmethod
    def _save_new_post(db: Session, post: Post) -> None:
        """
        Insert a post, picking a new slug if another insert took ours first.

        The unique constraint on slug is the real guard; the existence probe
        only keeps the common case free of failed inserts.
        """
        for attempt in range(1, settings.SLUG_SAVE_RETRIES + 1):
            PostService._assign_unique_slug(db, post)
            db.add(post)
            try:
                db.commit()
                return
            except IntegrityError:
                db.rollback()
                if attempt == settings.SLUG_SAVE_RETRIES:
                    raise
                post_logger.warning("Slug taken at insert time, regenerating", "CREATE",
                                    slug=post.slug, attempt=attempt)

    @staticmethod
    def _load_post(db: Session, post_id: int) -> Post:
        post = (
            db.query(Post)
            .options(selectinload(Post.author), selectinload(Post.attached_files))
            .filter(Post.id == post_id)
            .first()
        )
        if not post:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Post not found"
            )
        return post

    @staticmethod
    def _check_can_modify(post: Post, user: User, action: str) -> None:
        if post.user_id != user.id and not user.is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You can only {action} your own posts"
            )

    @staticmethod
    def create_post(db: Session, post_data: PostCreate, user: User) -> Post:
        """Create a post, then attach requested files and files found in its content."""
        now = datetime.utcnow()
        post = Post(
            title=post_data.title,
            content=post_data.content,
            excerpt=post_data.excerpt,
            tags=post_data.tags,
            category=post_data.category,
            user_id=user.id,
            is_published=user.is_admin,
            published_at=now if user.is_admin else None,
            created_at=now,
            updated_at=now,
        )
        PostService.apply_derived_fields(post)
        PostService._save_new_post(db, post)

        post_logger.success("Post created", "CREATE", post_id=post.id, slug=post.slug, user_id=user.id)

        lookup = OwnedFileLookup(db, user.id)
        if post_data.attached_file_ids:
            PostFileReconciler.attach_files(db, post, post_data.attached_file_ids, lookup)
        PostFileReconciler.link_files_from_content(db, post, lookup)

        return PostService._load_post(db, post.id)

    @staticmethod
    def get_post(db: Session, post_id: int) -> Post:
        """Get a post by id and count the view."""
        post = PostService._load_post(db, post_id)
        PostService.increment_view_count(db, post)
        return post

    @staticmethod
    def get_post_by_slug(db: Session, slug: str) -> Post:
        """Get a published post by slug and count the view."""
        post = (
            db.query(Post)
            .options(selectinload(Post.author), selectinload(Post.attached_files))
            .filter(Post.slug == slug, Post.is_published.is_(True))
            .first()
        )
        if not post:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Post not found"
            )
        PostService.increment_view_count(db, post)
        return post

    @staticmethod
    def increment_view_count(db: Session, post: Post) -> None:
        db.query(Post).filter(Post.id == post.id).update(
            {Post.view_count: Post.view_count + 1}, synchronize_session=False
        )
        db.commit()
        db.refresh(post)

    @staticmethod
    def _to_list_response(posts: List[Post], total: int, page: int, limit: int) -> PostListResponse:
        items = []
        for post in posts:
            item = PostListItem.model_validate(post)
            item.images = [
                FileSummary.model_validate(f) for f in post.attached_files if f.file_type == "image"
            ]
            items.append(item)

        return PostListResponse(
            posts=items,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total > 0 else 1,
        )

    @staticmethod
    def list_posts(db: Session, page: int = 1, limit: int = 10, search: Optional[str] = None) -> PostListResponse:
        """Published posts, most recently published first."""
        query = (
            db.query(Post)
            .options(selectinload(Post.author), selectinload(Post.attached_files))
            .filter(Post.is_published.is_(True))
        )

        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Post.title.ilike(pattern),
                Post.content.ilike(pattern),
                cast(Post.tags, String).ilike(pattern),
            ))

        total = query.count()
        posts = (
            query.order_by(Post.published_at.desc(), Post.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        post_logger.debug(f"Listed {len(posts)} posts", "LIST", page=page, total=total, search=search)
        return PostService._to_list_response(posts, total, page, limit)

    @staticmethod
    def update_post(db: Session, post_id: int, post_data: PostUpdate, user: User) -> Post:
        """
        Update a post and reconcile its files.

        When the content changes, files whose images were removed are deleted
        first (best effort). After the save, an explicit attached_file_ids
        list replaces the attachments, and files embedded in the new content
        are linked.
        """
        post = PostService._load_post(db, post_id)
        PostService._check_can_modify(post, user, "update")

        changes = post_data.model_dump(exclude_unset=True)
        # null on a required column means "leave it alone"
        for field in ("title", "content", "is_published"):
            if field in changes and changes[field] is None:
                del changes[field]
        attached_file_ids = changes.pop("attached_file_ids", None)
        editor_lookup = OwnedFileLookup(db, user.id)

        content_changed = "content" in changes and changes["content"] != post.content
        if content_changed:
            PostFileReconciler.cleanup_removed_images(db, post, post.content, changes["content"], editor_lookup)

        was_published = post.is_published
        for field, value in changes.items():
            setattr(post, field, value)

        if post.is_published and not was_published and post.published_at is None:
            post.published_at = datetime.utcnow()

        PostService.apply_derived_fields(post, regenerate_excerpt=content_changed and "excerpt" not in changes)
        post.updated_at = datetime.utcnow()
        db.commit()

        post_logger.success("Post updated", "UPDATE", post_id=post.id, fields=sorted(changes))

        if attached_file_ids is not None:
            PostFileReconciler.replace_attached_files(db, post, attached_file_ids, editor_lookup)
        PostFileReconciler.link_files_from_content(db, post, OwnedFileLookup(db, post.user_id))

        return PostService._load_post(db, post.id)

    @staticmethod
    def delete_post(db: Session, post_id: int, user: User) -> None:
        post = PostService._load_post(db, post_id)
        PostService._check_can_modify(post, user, "delete")

        db.delete(post)
        db.commit()
        post_logger.info("Post deleted", "DELETE", post_id=post_id, user_id=user.id)

    @staticmethod
    def toggle_like(db: Session, post_id: int, user: User) -> LikeResponse:
        """Like the post, or take the like back if the user already liked it."""
        post = PostService._load_post(db, post_id)

        liked = any(u.id == user.id for u in post.liked_by)
        if liked:
            post.liked_by = [u for u in post.liked_by if u.id != user.id]
            post.like_count = max((post.like_count or 0) - 1, 0)
        else:
            post.liked_by.append(user)
            post.like_count = (post.like_count or 0) + 1

        db.commit()
        return LikeResponse(liked=not liked, like_count=post.like_count)

    @staticmethod
    def get_categories(db: Session) -> List[str]:
        rows = (
            db.query(Post.category)
            .filter(Post.is_published.is_(True), Post.category.isnot(None))
            .distinct()
            .order_by(Post.category)
            .all()
        )
        return [category for (category,) in rows]

    @staticmethod
    def get_posts_by_category(db: Session, category: str, page: int = 1, limit: int = 10) -> PostListResponse:
        query = (
            db.query(Post)
            .options(selectinload(Post.author), selectinload(Post.attached_files))
            .filter(Post.is_published.is_(True), Post.category == category)
        )

        total = query.count()
        posts = (
            query.order_by(Post.published_at.desc(), Post.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return PostService._to_list_response(posts, total, page, limit)

    @staticmethod
    def generate_missing_slugs(db: Session) -> int:
        """Give every post without a slug one. Returns how many were updated."""
        posts = db.query(Post).filter(Post.slug.is_(None)).order_by(Post.id).all()

        for post in posts:
            PostService._assign_unique_slug(db, post)
            # flush so the next probe sees this slug
            db.flush()

        db.commit()
        if posts:
            post_logger.success(f"Backfilled {len(posts)} slug(s)", "SLUGS")
        return len(posts)
