"""
Common API response schemas
"""

from typing import Generic, TypeVar, Optional
from pydantic import BaseModel

T = TypeVar("T")


class ErrorDetail(BaseModel):
    """Error detail information"""
    code: str
    message: str
    field: Optional[str] = None
    details: Optional[dict] = None


class ErrorResponse(BaseModel):
    """Standard error response"""
    success: bool = False
    error: ErrorDetail


class MessageResponse(BaseModel):
    """Simple message response"""
    success: bool = True
    message: str


class Pagination(BaseModel):
    """Pagination block the frontend slices store verbatim"""
    current: int
    pages: int
    total: int
    limit: int


class SingleResponse(BaseModel, Generic[T]):
    """Single item response"""
    success: bool = True
    data: T
    message: Optional[str] = None


class ListResponse(BaseModel, Generic[T]):
    """Non-paginated list response"""
    success: bool = True
    data: list[T]
    count: int


def create_pagination(total: int, page: int, limit: int) -> Pagination:
    """Create pagination metadata"""
    pages = (total + limit - 1) // limit if limit > 0 else 0
    return Pagination(current=page, pages=pages, total=total, limit=limit)
