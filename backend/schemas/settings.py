"""Pydantic models for the key/value settings endpoints."""

from typing import Optional

from pydantic import Field

from backend.schemas.common import ApiModel, Identifier


class SettingResponse(ApiModel):
    key: str
    value: Optional[str] = None


class SettingWriteRequest(ApiModel):
    key: Optional[str] = Field(None, max_length=100, examples=["company_name"])
    value: Optional[str] = None
    user_id: Identifier = None


class LogoUploadResponse(ApiModel):
    key: str = Field(..., description="Setting that now holds the logo path")
    value: str = Field(..., description="Storage path, e.g. logos/{uuid}.png")
