"""Versioned scenario snapshot document.

The document embeds copies of a scheme's editable rows and of its last
computed results. Readers dispatch on ``version`` so older documents can be
upgraded explicitly when the shape changes.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import date
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from carbonscheme.core.errors import ValidationError
from carbonscheme.core.logging import get_logger
from carbonscheme.db.models import DeliveryType, DistanceUnit, InstallationCategory

logger = get_logger(__name__)

CURRENT_SNAPSHOT_VERSION = 1


class _SnapshotRow(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")


class SnapshotProduct(_SnapshotRow):
    id: UUID | None = None
    product_id: UUID | None = None
    plant_id: UUID | None = None
    plant_postcode: str | None = None
    transport_mode_id: UUID | None = None
    mix_type_id: UUID | None = None
    delivery_type: DeliveryType = DeliveryType.DELIVERY
    tonnage: float
    distance_km: float | None = None
    distance_unit: DistanceUnit = DistanceUnit.KM


class SnapshotInstallationItem(_SnapshotRow):
    id: UUID | None = None
    installation_setup_id: UUID | None = None
    plant_name: str
    category: InstallationCategory
    spread_rate_t_per_m2: float | None = None
    kgco2_per_t: float | None = None
    kgco2_per_ltr: float | None = None
    kgco2e_per_km: float | None = None
    litres_per_t: float | None = None
    litres_na: bool = False
    kgco2e: float | None = None
    kgco2e_na: bool = False
    one_way: bool = False
    fuel_type_id: UUID | None = None
    fuel_kgco2_per_ltr: float | None = None
    quantity: float = 1
    material_tonnage_override: float | None = None


class SnapshotUsageEntry(_SnapshotRow):
    id: UUID | None = None
    scheme_installation_item_id: UUID
    period_start: date
    period_end: date | None = None
    litres_used: float | None = None
    distance_km_each_way: float | None = None
    one_way: bool = False
    auto_generated: bool = False


class SnapshotCarbonResult(_SnapshotRow):
    lifecycle_stage: str
    product_id: UUID | None = None
    mix_type_id: UUID | None = None
    detail_label: str | None = None
    total_kgco2e: float | None = None
    kgco2e_per_tonne: float | None = None


class SnapshotCarbonSummary(_SnapshotRow):
    total_kgco2e: float | None = None
    kgco2e_per_tonne: float | None = None


class ScenarioSnapshotV1(BaseModel):
    """Snapshot document, version 1."""

    version: Literal[1] = 1
    scheme_products: list[SnapshotProduct] = []
    scheme_installation_items: list[SnapshotInstallationItem] = []
    scheme_a5_usage_entries: list[SnapshotUsageEntry] = []
    scheme_carbon_results: list[SnapshotCarbonResult] = []
    scheme_carbon_summary: SnapshotCarbonSummary | None = None

    @classmethod
    def capture(
        cls,
        *,
        products: Iterable[Any],
        installation_items: Iterable[Any],
        usage_entries: Iterable[Any],
        results: Iterable[Any],
        summary: Any | None,
    ) -> ScenarioSnapshotV1:
        """Copy live ORM rows verbatim into a document."""
        return cls(
            scheme_products=[SnapshotProduct.model_validate(row) for row in products],
            scheme_installation_items=[
                SnapshotInstallationItem.model_validate(row) for row in installation_items
            ],
            scheme_a5_usage_entries=[
                SnapshotUsageEntry.model_validate(row) for row in usage_entries
            ],
            scheme_carbon_results=[SnapshotCarbonResult.model_validate(row) for row in results],
            scheme_carbon_summary=(
                SnapshotCarbonSummary.model_validate(summary) if summary is not None else None
            ),
        )

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


ScenarioSnapshot = ScenarioSnapshotV1

# version -> parser returning the current document shape
_READERS: dict[int, Callable[[Mapping[str, Any]], ScenarioSnapshot]] = {
    1: ScenarioSnapshotV1.model_validate,
}


class SnapshotFormatError(ValidationError):
    """A stored snapshot document cannot be read."""


def parse_snapshot(document: Mapping[str, Any] | None) -> ScenarioSnapshot:
    """Read a stored document into the current snapshot shape.

    Documents written before versioning carry no ``version`` and are read
    as version 1.
    """
    if not isinstance(document, Mapping):
        raise SnapshotFormatError("Scenario snapshot is missing")
    version = document.get("version", CURRENT_SNAPSHOT_VERSION)
    reader = _READERS.get(version) if isinstance(version, int) else None
    if reader is None:
        raise SnapshotFormatError(f"Unsupported scenario snapshot version: {version!r}")
    payload = {**document, "version": version}
    try:
        return reader(payload)
    except PydanticValidationError as exc:
        logger.warning("snapshot_parse_failed", version=version, errors=exc.error_count())
        raise SnapshotFormatError(f"Scenario snapshot is malformed: {exc}") from exc


def build_scenario_label(
    mix_names: Iterable[str | None],
    fallback: str,
    max_length: int = 72,
) -> str:
    """Distinct mix names joined by ", ", truncated with "..." when too long."""
    seen: list[str] = []
    for name in mix_names:
        clean = (name or "").strip()
        if clean and clean not in seen:
            seen.append(clean)
    label = ", ".join(seen)
    if not label:
        return fallback
    if len(label) > max_length:
        return label[: max_length - 3] + "..."
    return label
