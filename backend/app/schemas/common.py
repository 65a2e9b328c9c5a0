"""Shared schema primitives for paginated envelopes and timestamp handling."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, model_validator

ExecutionMode = Literal["platform", "external"]
Priority = Literal["low", "medium", "high", "urgent"]


def _to_utc(value: datetime | None) -> datetime | None:
    # naive values are taken to already be UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


UTCDateTime = Annotated[datetime, AfterValidator(_to_utc)]


class PageMeta(BaseModel):
    """Envelope fields shared by every list endpoint."""

    total: int
    limit: int
    offset: int


class PartialUpdate(BaseModel):
    """Base for PATCH/PUT payloads that must carry at least one field."""

    @model_validator(mode="after")
    def _require_changes(self) -> "PartialUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self
