"""Plan document schemas and API request/response models.

This module defines:
1. The plan type enumeration (implementation | research | custom)
2. Stored plan records (PlanMetadata, Plan, PlanSummary)
3. Request/response schemas for the /api/plans endpoints

All models serialize with camelCase keys (sessionId, workingDir, filePath,
createdAt, ...) and accept either camelCase or snake_case on input.
"""

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_CONTROL_CHARACTERS = re.compile(r"[\x00-\x1f\x7f\u2028\u2029]")


def _reject_control_characters(value: str, field: str) -> None:
    if _CONTROL_CHARACTERS.search(value):
        raise ValueError(f"{field} must not contain newlines or control characters")


def _require_non_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("content must not be blank")
    return value


class PlanType(str, Enum):
    """Kind of plan document."""

    IMPLEMENTATION = "implementation"
    RESEARCH = "research"
    CUSTOM = "custom"


class CamelModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlanMetadata(CamelModel):
    """
    Metadata stored in a plan file's frontmatter block.

    Timestamps are timezone-aware (UTC) to avoid serialization mismatches.
    """

    id: str = Field(..., description="Stable plan identifier, assigned at creation")
    title: str = Field(..., description="Human-readable plan title")
    type: PlanType = Field(default=PlanType.IMPLEMENTATION, description="Plan type")
    created_at: datetime = Field(..., description="Timestamp when plan was created (UTC)")
    updated_at: datetime = Field(..., description="Timestamp when plan was last written (UTC)")
    session_id: str | None = Field(default=None, description="Associated session identifier")
    tags: list[str] = Field(default_factory=list, description="Free-text labels, in order")

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def ensure_timezone_aware(cls, v: Any) -> datetime:
        """Ensure timestamps are timezone-aware (UTC)."""
        if isinstance(v, datetime):
            if v.tzinfo is None:
                return v.replace(tzinfo=UTC)
            return v
        return v


class Plan(PlanMetadata):
    """Full plan record including the document body."""

    content: str = Field(..., description="Markdown body of the plan")
    file_path: str = Field(..., description="Filename relative to the plans directory")


class PlanSummary(PlanMetadata):
    """Plan listing entry: metadata plus a short content preview."""

    file_path: str = Field(..., description="Filename relative to the plans directory")
    preview: str = Field(..., description="First 200 characters of the content")


class PlanCreateRequest(CamelModel):
    """
    Request body for creating a plan.

    Title and type are detected from the content when omitted. Session ids,
    tags and titles are stored as single frontmatter lines, so control
    characters are rejected, and tags may not contain commas or be blank.
    """

    content: str = Field(..., min_length=1, description="Markdown body of the plan")
    working_dir: str | None = Field(default=None, description="Directory to store the plan in")
    title: str | None = Field(default=None, description="Plan title")
    type: PlanType | None = Field(default=None, description="Plan type")
    session_id: str | None = Field(default=None, description="Associated session identifier")
    tags: list[str] | None = Field(default=None, description="Free-text labels")

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        """Reject content that is only whitespace."""
        return _require_non_blank(v)

    @field_validator("title")
    @classmethod
    def title_single_line(cls, v: str | None) -> str | None:
        """Reject titles containing control characters."""
        if v is not None:
            _reject_control_characters(v, "title")
        return v

    @field_validator("session_id")
    @classmethod
    def normalize_session_id(cls, v: str | None) -> str | None:
        """Treat blank session ids as absent and reject control characters."""
        if v is None or not v.strip():
            return None
        _reject_control_characters(v, "sessionId")
        return v.strip()

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str] | None) -> list[str] | None:
        """Ensure every tag fits in the comma-separated frontmatter list."""
        if v is None:
            return v
        cleaned = []
        for tag in v:
            if not tag.strip():
                raise ValueError("Tags must not be empty")
            if "," in tag:
                raise ValueError(f"Tags must not contain commas: {tag!r}")
            _reject_control_characters(tag, "tags")
            cleaned.append(tag.strip())
        return cleaned


class PlanUpdateRequest(CamelModel):
    """Request body for updating an existing plan's title and content."""

    content: str = Field(..., min_length=1, description="New markdown body")
    working_dir: str | None = Field(default=None, description="Directory holding the plan")
    title: str | None = Field(default=None, description="New title (keeps existing if omitted)")

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        """Reject content that is only whitespace."""
        return _require_non_blank(v)

    @field_validator("title")
    @classmethod
    def title_single_line(cls, v: str | None) -> str | None:
        """Reject titles containing control characters."""
        if v is not None:
            _reject_control_characters(v, "title")
        return v


class PlanListResponse(CamelModel):
    """Response model for listing plans."""

    plans: list[PlanSummary]
    count: int = Field(..., ge=0)
    working_dir: str


class PlanMutationResponse(CamelModel):
    """Response model for plan create/update."""

    success: bool = True
    plan: Plan


class PlanDeleteResponse(CamelModel):
    """Response model for plan deletion."""

    success: bool = True


class ErrorResponse(BaseModel):
    """Error body returned for 4xx/5xx plan responses."""

    error: str
