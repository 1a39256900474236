"""Pydantic schemas for scheme editing endpoints."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from carbonscheme.db.models import (
    CalculationMode,
    DeliveryType,
    DistanceUnit,
    InstallationCategory,
)


class SchemeCreate(BaseModel):
    name: str
    area_m2: float | None = None
    site_postcode: str | None = None
    base_postcode: str | None = None
    distance_unit: DistanceUnit | None = None
    plant_id: UUID | None = None


class SchemeUpdate(BaseModel):
    """Partial update; only fields that are sent are applied."""

    name: str | None = None
    area_m2: float | None = None
    site_postcode: str | None = None
    base_postcode: str | None = None
    distance_unit: DistanceUnit | None = None
    plant_id: UUID | None = None


class SchemeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    area_m2: float | None
    site_postcode: str | None
    base_postcode: str | None
    plant_id: UUID | None
    distance_unit: DistanceUnit
    installation_mode: CalculationMode
    materials_mode: CalculationMode
    a5_fuel_mode: CalculationMode
    is_locked: bool
    locked_at: datetime | None
    active_scenario_id: UUID | None
    created_at: datetime
    updated_at: datetime


class SchemeProductCreate(BaseModel):
    """A material line. ``distance`` is optional; without it the site-to-plant
    distance is looked up from postcodes."""

    product_id: UUID | None = None
    plant_id: UUID | None = None
    mix_type_id: UUID | None = None
    tonnage: float | None = None
    delivery_type: DeliveryType = DeliveryType.DELIVERY
    distance: float | None = None
    distance_unit: DistanceUnit | None = None
    transport_mode_id: UUID | None = None


class SchemeProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scheme_id: UUID
    product_id: UUID | None
    plant_id: UUID | None
    mix_type_id: UUID | None
    plant_postcode: str | None
    transport_mode_id: UUID | None
    delivery_type: DeliveryType
    tonnage: float
    distance_km: float | None
    distance_unit: DistanceUnit
    created_at: datetime


class InstallationItemCreate(BaseModel):
    setup_id: UUID
    quantity: float = 1
    fuel_setup_id: UUID | None = None


class InstallationItemBulkEntry(BaseModel):
    setup_id: UUID
    quantity: float | None = Field(default=None, description="Blank means 1 for materials")
    fuel_setup_id: UUID | None = None


class InstallationItemBulkCreate(BaseModel):
    items: list[InstallationItemBulkEntry]


class InstallationItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scheme_id: UUID
    installation_setup_id: UUID | None
    plant_name: str
    category: InstallationCategory
    spread_rate_t_per_m2: float | None
    kgco2_per_t: float | None
    kgco2_per_ltr: float | None
    kgco2e_per_km: float | None
    litres_per_t: float | None
    litres_na: bool
    kgco2e: float | None
    kgco2e_na: bool
    one_way: bool
    fuel_type_id: UUID | None
    fuel_kgco2_per_ltr: float | None
    quantity: float
    material_tonnage_override: float | None


class MaterialTonnageUpdate(BaseModel):
    tonnage: float | None = Field(default=None, description="Tonnes; null clears the override")


class ModeUpdate(BaseModel):
    mode: CalculationMode
