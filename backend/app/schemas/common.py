"""Shared response wrappers."""

from typing import Generic, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Offset page of results, e.g. ``PaginatedResponse[JobOut]``.

    ``total`` counts every row matching the filters, not just this page.
    """
    items: list[T]
    total: int
    limit: int
    offset: int
