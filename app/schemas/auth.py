from typing import Optional

from pydantic import BaseModel

from app.schemas.base import BaseSchema


class TokenPayload(BaseModel):
    """Claims we read from an access token issued by the auth service."""
    sub: str
    exp: Optional[int] = None


class UserSummary(BaseSchema):
    """Public view of a user, embedded in posts and comments."""
    id: int
    username: str
    full_name: Optional[str] = None
