"""Pydantic schemas for the analysis catalog and provenance-tracked results."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .common import ExecutionMode, PageMeta, PartialUpdate, UTCDateTime

AnalysisStatus = Literal["pending", "in_progress", "completed", "failed"]


class AnalysisTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    category: str | None = Field(default=None, max_length=50)
    methods: list[str] = Field(default_factory=list)
    typical_duration: str | None = None
    equipment_required: list[str] = Field(default_factory=list)
    is_active: bool = True


class AnalysisTypeUpdate(PartialUpdate):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    category: str | None = Field(default=None, max_length=50)
    methods: list[str] | None = None
    typical_duration: str | None = None
    equipment_required: list[str] | None = None
    is_active: bool | None = None


class AnalysisTypeOut(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    category: str | None = None
    methods: list[str] = Field(default_factory=list)
    typical_duration: str | None = None
    equipment_required: list[str] = Field(default_factory=list)
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class AnalysisCreate(BaseModel):
    """Upload of analysis results against a batch."""

    batch_id: UUID
    analysis_type_id: UUID
    results: dict[str, Any] = Field(default_factory=dict)
    file_path: str | None = Field(default=None, max_length=500)
    file_checksum: str | None = Field(default=None, max_length=64)
    file_size_bytes: int | None = Field(default=None, ge=0)
    status: AnalysisStatus = "pending"
    execution_mode: ExecutionMode = "platform"
    executed_by_org_id: UUID | None = None
    source_org_id: UUID | None = None
    external_reference: str | None = None
    performed_at: UTCDateTime | None = None
    is_authoritative: bool = True


class AnalysisUpdate(BaseModel):
    """Lifecycle update; any other key is inspected and rejected by the service."""

    status: AnalysisStatus | None = None
    performed_at: UTCDateTime | None = None
    external_reference: str | None = None
    model_config = ConfigDict(extra="allow")


class AnalysisRevise(BaseModel):
    results: dict[str, Any] = Field(default_factory=dict)
    file_path: str | None = Field(default=None, max_length=500)
    file_checksum: str | None = Field(default=None, max_length=64)
    file_size_bytes: int | None = Field(default=None, ge=0)
    performed_at: UTCDateTime | None = None
    revision_reason: str | None = None


class AnalysisAuthorityUpdate(BaseModel):
    is_authoritative: bool


class AnalysisOut(BaseModel):
    id: UUID
    workspace_id: UUID
    batch_id: UUID
    analysis_type_id: UUID
    analysis_type_name: str | None = None
    status: str
    results: dict[str, Any] = Field(default_factory=dict)
    file_path: str | None = None
    file_checksum: str | None = None
    file_size_bytes: int | None = None
    execution_mode: str
    executed_by_org_id: UUID
    source_org_id: UUID
    external_reference: str | None = None
    performed_at: datetime | None = None
    uploaded_by: UUID
    uploaded_at: datetime | None = None
    is_authoritative: bool
    supersedes_id: UUID | None = None
    revision_reason: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class AnalysisPage(PageMeta):
    items: list[AnalysisOut]
