"""Shared Pydantic models for the Cardiva web API.

Usage:
    from cardiva.web.models import MatchActionRequest

    @router.post("/api/rfps/{job_id}/items/{item_id}/accept")
    async def accept(job_id: UUID, item_id: UUID, body: MatchActionRequest):
        ...
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from cardiva.models import ExportColumn, InventoryArticle, InventoryColumn


# ============================================================================
# Authentication Models
# ============================================================================


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: UUID
    email: str
    role: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    confirm_password: str
    full_name: str | None = None

    @model_validator(mode="after")
    def passwords_match(self) -> RegisterRequest:
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class PasswordUpdateRequest(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self) -> PasswordUpdateRequest:
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


# ============================================================================
# Review Models
# ============================================================================


class MatchActionRequest(BaseModel):
    """Body of accept/reject/unselect requests."""

    match_id: UUID


class ManualMatchRequest(BaseModel):
    """Inventory article chosen by the reviewer."""

    article: InventoryArticle


class ActionResponse(BaseModel):
    success: bool
    error: str | None = None
    data: dict[str, Any] | None = None


class AutoAcceptResponse(BaseModel):
    success: bool
    accepted_count: int = 0


class ReviewProgressResponse(BaseModel):
    total: int
    por_rever: int
    matched: int
    no_match: int
    reviewed: int
    percent_reviewed: int


# ============================================================================
# Upload Models
# ============================================================================


class UploadResponse(BaseModel):
    success: bool
    job_id: UUID | None = None
    warning: str | None = None


class FileUrlResponse(BaseModel):
    url: str
    file_name: str


# ============================================================================
# Export & Settings Models
# ============================================================================


class EmailExportRequest(BaseModel):
    recipient_email: str
    confirmed_only: bool = False


class ExportColumnsRequest(BaseModel):
    columns: list[ExportColumn] = Field(default_factory=list)


class InventoryColumnsRequest(BaseModel):
    columns: list[InventoryColumn] = Field(default_factory=list)
