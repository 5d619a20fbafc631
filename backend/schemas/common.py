"""
Shared schema building blocks.

JSON field names are camelCase on the wire; request bodies also accept the
snake_case field names. Identifiers are accepted as numbers or decimal
strings and always returned as strings.
"""

from decimal import Decimal
from typing import Annotated, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend.utils.serialization import parse_id


class ApiModel(BaseModel):
    """Base model for every request and response body."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Integer identifier sent as a JSON number or a decimal string
Identifier = Annotated[Optional[int], BeforeValidator(parse_id)]

# Raw amount; validated by the service, which reports the field by name
RawAmount = Optional[Union[Decimal, str]]


class Pagination(ApiModel):
    total: int = Field(..., description="Number of matching records")
    page: int = Field(..., description="Current page (1-based)")
    limit: int = Field(..., description="Page size")
    pages: int = Field(..., description="Total number of pages")

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        return cls(total=total, page=page, limit=limit, pages=-(-total // limit) if limit else 0)


class UserSummary(ApiModel):
    id: str
    name: Optional[str] = None


class DeleteResponse(ApiModel):
    status: str = Field("DELETED", description="Always DELETED on success")
    message: str
