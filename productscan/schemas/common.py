"""
==============================================================================
Common Schemas Module
==============================================================================

Envelopes shared by several endpoints.

==============================================================================
"""

from math import ceil
from typing import Dict, Generic, List, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class MessageResponse(BaseModel):
    success: bool = Field(default=True)
    message: str


class PaginatedResponse(BaseModel, Generic[T]):
    """
    One page of a listing.

    Attributes:
        items: Rows on this page
        total: Rows across all pages
        pages: Page count; 0 for an empty listing
    """
    success: bool = Field(default=True)
    items: List[T]
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    page_size: int = Field(ge=1, le=100)
    pages: int = Field(ge=0)

    @classmethod
    def from_pagination(cls, items: List[T], total: int, pagination: Dict[str, int]):
        """Build a page from the get_pagination() dependency values."""
        page_size = pagination["page_size"]
        return cls(
            items=items,
            total=total,
            page=pagination["page"],
            page_size=page_size,
            pages=ceil(total / page_size),
        )
