"""Pydantic schemas for A5 usage endpoints."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UsageEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scheme_id: UUID
    scheme_installation_item_id: UUID
    period_start: date
    period_end: date | None
    litres_used: float | None
    distance_km_each_way: float | None
    one_way: bool
    auto_generated: bool
    created_at: datetime


class ManualUsageItem(BaseModel):
    """Values for one installation item; ``distance`` is in the scheme's unit."""

    item_id: UUID
    litres_used: float | None = None
    distance: float | None = None
    one_way: bool = False


class ManualUsageCreate(BaseModel):
    period_start: date | None = None
    period_end: date | None = None
    entries: list[ManualUsageItem] = Field(default_factory=list)


class UsageUpdate(BaseModel):
    period_start: date | None = None
    period_end: date | None = None
    litres_used: float | None = None
    distance: float | None = None
    one_way: bool | None = None


class AutoTransportRequest(BaseModel):
    distance: float | None = Field(
        default=None,
        description="Return-trip distance in the scheme's unit; looked up when omitted",
    )
