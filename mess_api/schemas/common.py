from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """API schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


class Page(CamelModel, Generic[T]):
    """One page of query results with pagination metadata."""
    results: List[T]
    page: int
    limit: int
    total_pages: int
    total_results: int
