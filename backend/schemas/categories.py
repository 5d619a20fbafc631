"""
Pydantic models for category endpoints.

Categories label transactions and are either INCOME or EXPENSE. A
transaction can only reference a category of its own type.
"""

from typing import List, Optional

from pydantic import Field

from backend.schemas.common import ApiModel, Identifier


class CategoryResponse(ApiModel):
    """
    Fields:
        id: Category id (decimal string)
        name: Unique display name
        type: INCOME or EXPENSE
        user_id: Creator, if any
        transaction_count: Number of transactions using the category
    """
    id: str
    name: str
    type: str
    user_id: Optional[str] = None
    transaction_count: int = 0
    created_at: str
    updated_at: Optional[str] = None


class CategoryListResponse(ApiModel):
    categories: List[CategoryResponse]
    count: int


class CategoryWriteRequest(ApiModel):
    name: Optional[str] = Field(None, max_length=255, examples=["Office Supplies"])
    type: Optional[str] = Field(None, description="income or expense (any case)")
    user_id: Identifier = None
