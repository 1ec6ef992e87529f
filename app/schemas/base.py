from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema for all models."""
    model_config = ConfigDict(from_attributes=True)


class PaginationMeta(BaseSchema):
    """Common pagination fields for list responses."""
    total: int
    page: int
    limit: int
    total_pages: int
