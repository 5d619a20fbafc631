"""Pydantic models for user endpoints. Password hashes never appear here."""

from typing import List, Optional

from pydantic import Field

from backend.schemas.common import ApiModel, Pagination


class UserResponse(ApiModel):
    id: str
    username: str
    name: Optional[str] = None
    role: str
    is_active: bool
    created_at: str
    updated_at: Optional[str] = None


class UserListResponse(ApiModel):
    users: List[UserResponse]
    pagination: Pagination


class UserCreateRequest(ApiModel):
    username: Optional[str] = Field(None, max_length=100)
    password: Optional[str] = Field(None, description="Stored as a bcrypt hash")
    name: Optional[str] = Field(None, max_length=255)
    role: Optional[str] = Field(None, description="admin or user (default user)")
