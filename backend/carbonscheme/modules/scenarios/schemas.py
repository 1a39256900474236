"""Pydantic schemas for scenario endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ScenarioResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scheme_id: UUID
    label: str | None
    label_locked: bool
    revision: int
    is_active: bool = False
    created_at: datetime
    updated_at: datetime


class ScenarioDetailResponse(ScenarioResponse):
    snapshot: dict[str, Any]


class ScenarioLabelUpdate(BaseModel):
    label: str | None = None
