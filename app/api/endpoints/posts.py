from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_active_user, get_current_admin_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.post import (
    LikeResponse, PostCreate, PostListResponse, PostResponse, PostUpdate, SlugBackfillResponse,
)
from app.services.post import PostService
from app.utils.logger import api_logger
from app.utils.slug import SlugGenerationError

router = APIRouter()


@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
def create_post(
    post_data: PostCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Create a new post. Images embedded in the content are attached automatically."""
    try:
        return PostService.create_post(db=db, post_data=post_data, user=current_user)
    except SlugGenerationError as e:
        api_logger.error(str(e), "POSTS", user_id=current_user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not generate a unique slug for this post"
        )


@router.get("/", response_model=PostListResponse)
def list_posts(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Items per page"),
    search: Optional[str] = Query(None, description="Search in title, content and tags"),
    db: Session = Depends(get_db)
):
    """List published posts."""
    return PostService.list_posts(db=db, page=page, limit=limit, search=search)


@router.get("/categories", response_model=List[str])
def get_categories(db: Session = Depends(get_db)):
    """Categories used by published posts."""
    return PostService.get_categories(db)


@router.get("/category/{category}", response_model=PostListResponse)
def get_posts_by_category(
    category: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db)
):
    return PostService.get_posts_by_category(db=db, category=category, page=page, limit=limit)


@router.get("/slug/{slug}", response_model=PostResponse)
def get_post_by_slug(slug: str, db: Session = Depends(get_db)):
    """Get a published post by its slug."""
    return PostService.get_post_by_slug(db, slug)


@router.post("/generate-slugs", response_model=SlugBackfillResponse)
def generate_missing_slugs(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """Assign slugs to posts created before slugs existed."""
    return SlugBackfillResponse(updated_count=PostService.generate_missing_slugs(db))


@router.get("/{post_id}", response_model=PostResponse)
def get_post(post_id: int, db: Session = Depends(get_db)):
    return PostService.get_post(db, post_id)


@router.patch("/{post_id}", response_model=PostResponse)
def update_post(
    post_id: int,
    post_data: PostUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Update a post.

    Images removed from the content have their files deleted; new images are
    attached. Passing attached_file_ids replaces the attachment list.
    """
    return PostService.update_post(db=db, post_id=post_id, post_data=post_data, user=current_user)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    PostService.delete_post(db=db, post_id=post_id, user=current_user)


@router.post("/{post_id}/like", response_model=LikeResponse)
def toggle_like(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Like a post, or remove an existing like."""
    return PostService.toggle_like(db=db, post_id=post_id, user=current_user)
