"""Shared schema base classes and pagination envelope."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """
    Base for API payloads.

    JSON uses camelCase (``referenceNumber``); Python attributes stay
    snake_case. Either spelling is accepted on input.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PaginationMeta(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class Page(CamelModel, Generic[T]):
    """List envelope: ``{items, pagination}``."""
    items: list[T]
    pagination: PaginationMeta


class MessageResponse(CamelModel):
    message: str
