"""Pydantic schemas for derived sample lineage and batch assembly."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .common import ExecutionMode, PageMeta, PartialUpdate, UTCDateTime

BatchStatus = Literal["created", "ready", "sent", "in_progress", "completed"]


class DerivedSampleCreate(BaseModel):
    """Payload for deriving a portion from a sample or another derived sample."""

    derived_id: str | None = Field(default=None, max_length=100)
    name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    derivation_method: str | None = Field(default=None, max_length=100)
    parent_derived_id: UUID | None = None
    stage_id: UUID | None = None
    execution_mode: ExecutionMode = "platform"
    executed_by_org_id: UUID | None = None
    external_reference: str | None = None
    performed_at: UTCDateTime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class DerivedSampleOut(BaseModel):
    id: UUID
    owner_workspace_id: UUID
    root_sample_id: UUID
    parent_id: UUID | None = None
    stage_id: UUID | None = None
    derived_id: str
    description: str | None = Field(default=None, validation_alias="process_notes")
    derivation_method: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    depth: int
    status: str
    execution_mode: str
    executed_by_org_id: UUID
    external_reference: str | None = None
    performed_at: datetime | None = None
    created_by: UUID | None = None
    created_at: datetime
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class DerivedSamplePage(PageMeta):
    items: list[DerivedSampleOut]


class LineageOut(BaseModel):
    """Ancestry of a derived sample; ``parent_chain`` lists nearest parent first."""

    id: UUID
    derived_id: str
    root_sample_id: UUID
    depth: int
    parent_chain: list[UUID] = Field(default_factory=list)


class BatchCreate(BaseModel):
    batch_id: str | None = Field(default=None, max_length=100)
    description: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    status: BatchStatus = "created"
    execution_mode: ExecutionMode = "platform"
    executed_by_org_id: UUID | None = None
    external_reference: str | None = None
    performed_at: UTCDateTime | None = None
    sample_ids: list[UUID] = Field(default_factory=list)


class BatchUpdate(PartialUpdate):
    description: str | None = None
    parameters: dict[str, Any] | None = None
    status: BatchStatus | None = None
    execution_mode: ExecutionMode | None = None
    executed_by_org_id: UUID | None = None
    external_reference: str | None = None
    performed_at: UTCDateTime | None = None


class BatchOut(BaseModel):
    id: UUID
    workspace_id: UUID
    original_workspace_id: UUID | None = None
    batch_id: str
    description: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    status: str
    execution_mode: str
    executed_by_org_id: UUID
    external_reference: str | None = None
    performed_at: datetime | None = None
    sent_at: datetime | None = None
    completed_at: datetime | None = None
    sample_count: int = 0
    created_by: UUID | None = None
    created_at: datetime
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class BatchPage(PageMeta):
    items: list[BatchOut]


class BatchItemsAdd(BaseModel):
    sample_ids: list[UUID] = Field(min_length=1)


class BatchItemOut(BaseModel):
    id: UUID
    batch_id: UUID
    derived_id: UUID
    sequence: int
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
