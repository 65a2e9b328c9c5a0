"""Pydantic schemas for cross-lab analysis requests and object access grants."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .common import PageMeta, Priority

ObjectType = Literal["project", "sample", "derived_sample", "batch", "analysis"]
AccessLevel = Literal["read", "write", "admin"]


class AnalysisRequestCreate(BaseModel):
    to_workspace_id: UUID
    sample_id: UUID
    analysis_type_id: UUID
    description: str = Field(min_length=1, max_length=2000)
    methodology_requirements: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    priority: Priority = "medium"
    due_date: date | None = None
    estimated_duration: str | None = None
    notes: str | None = None


class AnalysisRequestAccept(BaseModel):
    assigned_to: UUID | None = None


class AnalysisRequestReject(BaseModel):
    notes: str | None = None


class AnalysisRequestStatusUpdate(BaseModel):
    status: Literal["in_progress", "completed"]
    notes: str | None = None


class AnalysisRequestOut(BaseModel):
    id: UUID
    from_workspace_id: UUID
    from_workspace_name: str | None = None
    to_workspace_id: UUID
    to_workspace_name: str | None = None
    sample_id: UUID
    sample_identifier: str | None = None
    analysis_type_id: UUID
    analysis_type_name: str | None = None
    description: str
    methodology_requirements: str | None = None
    parameters: dict[str, Any] | None = None
    priority: str
    due_date: date | None = None
    estimated_duration: str | None = None
    notes: str | None = None
    status: str
    assigned_to: UUID | None = None
    accepted_at: datetime | None = None
    completed_at: datetime | None = None
    created_by: UUID
    created_at: datetime
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class AnalysisRequestPage(PageMeta):
    items: list[AnalysisRequestOut]


class AccessGrantCreate(BaseModel):
    user_id: UUID
    object_type: ObjectType
    object_id: UUID
    access_level: AccessLevel = "read"


class AccessGrantUpdate(BaseModel):
    access_level: AccessLevel


class AccessGrantOut(BaseModel):
    id: UUID
    user_id: UUID
    object_type: str
    object_id: UUID
    access_level: str
    granted_by: UUID | None = None
    created_at: datetime
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class AccessLookupOut(BaseModel):
    object_type: str
    object_id: UUID
    access_level: str | None = None
