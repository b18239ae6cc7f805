from datetime import datetime, UTC
from typing import List, Optional, TypeVar, Generic

from pydantic import BaseModel, Field

T = TypeVar("T")


class MessageResponse(BaseModel):
    """Simple message response without data"""

    success: bool = Field(True)
    message: str = Field(...)
    data: None = Field(None)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, data=None, **kwargs)


class DataResponse(BaseModel, Generic[T]):
    """Response with data payload"""

    success: bool = Field(True)
    message: str = Field(...)
    data: T = Field(...)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def __init__(
        self, data: T, message: str = "Operation completed successfully", **kwargs
    ):
        super().__init__(message=message, data=data, **kwargs)


class PaginationMeta(BaseModel):
    """Pagination metadata"""

    page: int = Field(..., ge=1)
    size: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    pages: int = Field(..., ge=0)
    has_next: bool = Field(...)
    has_prev: bool = Field(...)

    @classmethod
    def create(cls, page: int, size: int, total: int) -> "PaginationMeta":
        pages = (total + size - 1) // size if total > 0 else 0
        return cls(
            page=page,
            size=size,
            total=total,
            pages=pages,
            has_next=page < pages,
            has_prev=page > 1,
        )


class ListResponse(BaseModel, Generic[T]):
    """List response; pagination is set when the list is paged"""

    success: bool = Field(True)
    message: str = Field("Data retrieved successfully")
    data: List[T] = Field(...)
    total: int = Field(..., ge=0)
    pagination: Optional[PaginationMeta] = Field(None)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


__all__ = [
    "MessageResponse",
    "DataResponse",
    "ListResponse",
    "PaginationMeta",
]
