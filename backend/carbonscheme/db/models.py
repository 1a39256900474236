"""
SQLAlchemy ORM models for the scheme-carbon engine.

Column types stay portable (``Uuid``, JSON with a JSONB variant) so the same
models back PostgreSQL in production and SQLite in tests. Primary keys are
generated client-side.
"""

from datetime import UTC, date, datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        dict[str, Any]: JSON().with_variant(JSONB(), "postgresql"),
    }


def utcnow() -> datetime:
    return datetime.now(UTC)


def _enum_values(enum_cls: type[PyEnum]) -> list[str]:
    return [member.value for member in enum_cls]


# =============================================================================
# Enums
# =============================================================================


class DistanceUnit(str, PyEnum):
    """Unit a distance was entered or is displayed in. Storage is always km."""

    KM = "km"
    MI = "mi"


class CalculationMode(str, PyEnum):
    """Whether a scheme section is derived automatically or entered by hand."""

    AUTO = "auto"
    MANUAL = "manual"


class DeliveryType(str, PyEnum):
    """Classification of a material line."""

    DELIVERY = "delivery"
    RETURN = "return"
    TIP = "tip"


class InstallationCategory(str, PyEnum):
    """Closed set of installation item categories."""

    PLANT = "plant"
    TRANSPORT = "transport"
    MATERIAL = "material"
    FUEL = "fuel"

    @classmethod
    def parse(cls, raw: str | None) -> "InstallationCategory | None":
        """Normalize a free-text category ("Plant ", "PLANT fuel", "Materials").

        Exact values win; otherwise the first category whose value occurs in
        the text, checked in declaration order.
        """
        if raw is None:
            return None
        text = raw.strip().lower()
        if not text:
            return None
        for member in cls:
            if text == member.value:
                return member
        for member in cls:
            if member.value in text:
                return member
        return None


# =============================================================================
# Reference Data
# =============================================================================


class Plant(Base):
    """Manufacturing plant supplying materials."""

    __tablename__ = "plants"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(
        String(32),
        comment="Plant postcode used for haulage distances",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )


class MixType(Base):
    """Material recipe or grade keying emission factors."""

    __tablename__ = "mix_types"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Product(Base):
    """Deliverable product."""

    __tablename__ = "products"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class TransportMode(Base):
    """Haulage vehicle class for material deliveries."""

    __tablename__ = "transport_modes"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kgco2e_per_km: Mapped[float | None] = mapped_column(Float)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class InstallationSetup(Base):
    """
    Reference rates for installation plant, transport, materials and fuels.

    ``category`` is free text maintained by administrators; it is normalized
    into :class:`InstallationCategory` when copied onto a scheme.
    """

    __tablename__ = "installation_setups"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    plant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    spread_rate_t_per_m2: Mapped[float | None] = mapped_column(Float)
    kgco2_per_t: Mapped[float | None] = mapped_column(Float)
    kgco2_per_ltr: Mapped[float | None] = mapped_column(Float)
    kgco2e_per_km: Mapped[float | None] = mapped_column(Float)
    litres_per_t: Mapped[float | None] = mapped_column(Float)
    litres_na: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    kgco2e: Mapped[float | None] = mapped_column(Float)
    kgco2e_na: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    one_way: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (Index("ix_installation_setups_category", "category"),)


class PlantMixFactor(Base):
    """
    Emission factor for a (plant, mix, product) combination.

    ``product_id`` is null for mix-level rows. At most one row per plant is
    flagged ``is_default``; the flag is maintained by the factor service.
    """

    __tablename__ = "plant_mix_factors"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    plant_id: Mapped[UUID] = mapped_column(
        ForeignKey("plants.id", ondelete="CASCADE"),
        nullable=False,
    )
    mix_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("mix_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
    )
    kgco2e_per_tonne: Mapped[float | None] = mapped_column(Float)
    recycled_materials_pct: Mapped[float | None] = mapped_column(Float)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    valid_from: Mapped[date | None] = mapped_column(Date)
    valid_to: Mapped[date | None] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_plant_mix_factors_plant_id", "plant_id"),
        Index("ix_plant_mix_factors_lookup", "plant_id", "mix_type_id", "product_id"),
    )


class ReportMetric(Base):
    """
    Reference metric used by reports.

    Equivalency metrics (``kind == "equivalency"``) hold the CO2e cost of one
    relatable unit, optionally adjusted by ``calc_op``/``calc_factor``.
    """

    __tablename__ = "report_metrics"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    kind: Mapped[str] = mapped_column(String(32), default="equivalency", nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(32))
    value: Mapped[float | None] = mapped_column(Float)
    source: Mapped[str | None] = mapped_column(Text)
    calc_op: Mapped[str | None] = mapped_column(String(8))
    calc_factor: Mapped[float | None] = mapped_column(Float)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (Index("ix_report_metrics_kind_active", "kind", "is_active"),)


# =============================================================================
# Scheme Models
# =============================================================================


class Scheme(Base):
    """A construction material-delivery scheme."""

    __tablename__ = "schemes"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    area_m2: Mapped[float | None] = mapped_column(Float)
    site_postcode: Mapped[str | None] = mapped_column(String(32))
    base_postcode: Mapped[str | None] = mapped_column(String(32))
    plant_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("plants.id", ondelete="SET NULL"),
        comment="Plant assumed for lines that do not name one",
    )
    distance_unit: Mapped[DistanceUnit] = mapped_column(
        Enum(DistanceUnit, values_callable=_enum_values),
        default=DistanceUnit.KM,
        nullable=False,
    )
    installation_mode: Mapped[CalculationMode] = mapped_column(
        Enum(CalculationMode, name="calculationmode", values_callable=_enum_values),
        default=CalculationMode.AUTO,
        nullable=False,
    )
    materials_mode: Mapped[CalculationMode] = mapped_column(
        Enum(CalculationMode, name="calculationmode", values_callable=_enum_values),
        default=CalculationMode.AUTO,
        nullable=False,
    )
    a5_fuel_mode: Mapped[CalculationMode] = mapped_column(
        Enum(CalculationMode, name="calculationmode", values_callable=_enum_values),
        default=CalculationMode.AUTO,
        nullable=False,
    )
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # Plain column: scenarios reference schemes, and this points back.
    active_scenario_id: Mapped[UUID | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )


class SchemeProduct(Base):
    """A material line delivered to, returned from or tipped off a scheme."""

    __tablename__ = "scheme_products"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    scheme_id: Mapped[UUID] = mapped_column(
        ForeignKey("schemes.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id: Mapped[UUID | None] = mapped_column(ForeignKey("products.id"))
    plant_id: Mapped[UUID | None] = mapped_column(ForeignKey("plants.id"))
    mix_type_id: Mapped[UUID | None] = mapped_column(ForeignKey("mix_types.id"))
    plant_postcode: Mapped[str | None] = mapped_column(
        String(32),
        comment="Plant location at the time the line was added",
    )
    transport_mode_id: Mapped[UUID | None] = mapped_column(ForeignKey("transport_modes.id"))
    delivery_type: Mapped[DeliveryType] = mapped_column(
        Enum(DeliveryType, values_callable=_enum_values),
        default=DeliveryType.DELIVERY,
        nullable=False,
    )
    tonnage: Mapped[float] = mapped_column(Float, nullable=False)
    distance_km: Mapped[float | None] = mapped_column(Float)
    distance_unit: Mapped[DistanceUnit] = mapped_column(
        Enum(DistanceUnit, values_callable=_enum_values),
        default=DistanceUnit.KM,
        nullable=False,
        comment="Unit the distance was entered in",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (Index("ix_scheme_products_scheme_id", "scheme_id"),)


class SchemeInstallationItem(Base):
    """
    Installation plant, transport, material or fuel on a scheme.

    Rates are copied from the installation setup on insert so later edits to
    reference data do not change historical schemes.
    """

    __tablename__ = "scheme_installation_items"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    scheme_id: Mapped[UUID] = mapped_column(
        ForeignKey("schemes.id", ondelete="CASCADE"),
        nullable=False,
    )
    installation_setup_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("installation_setups.id", ondelete="SET NULL"),
    )
    plant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[InstallationCategory] = mapped_column(
        Enum(InstallationCategory, values_callable=_enum_values),
        nullable=False,
    )
    spread_rate_t_per_m2: Mapped[float | None] = mapped_column(Float)
    kgco2_per_t: Mapped[float | None] = mapped_column(Float)
    kgco2_per_ltr: Mapped[float | None] = mapped_column(Float)
    kgco2e_per_km: Mapped[float | None] = mapped_column(Float)
    litres_per_t: Mapped[float | None] = mapped_column(Float)
    litres_na: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    kgco2e: Mapped[float | None] = mapped_column(Float)
    kgco2e_na: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    one_way: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    fuel_type_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("installation_setups.id", ondelete="SET NULL"),
    )
    fuel_kgco2_per_ltr: Mapped[float | None] = mapped_column(Float)
    quantity: Mapped[float] = mapped_column(Float, default=1, nullable=False)
    material_tonnage_override: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (Index("ix_scheme_installation_items_scheme_id", "scheme_id"),)


class SchemeA5UsageEntry(Base):
    """Fuel litres (plant) or haulage distance (transport) for an installation item."""

    __tablename__ = "scheme_a5_usage_entries"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    scheme_id: Mapped[UUID] = mapped_column(
        ForeignKey("schemes.id", ondelete="CASCADE"),
        nullable=False,
    )
    scheme_installation_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("scheme_installation_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date | None] = mapped_column(Date)
    litres_used: Mapped[float | None] = mapped_column(Float)
    distance_km_each_way: Mapped[float | None] = mapped_column(Float)
    one_way: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_generated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_scheme_a5_usage_entries_scheme_id", "scheme_id"),
        Index("ix_scheme_a5_usage_entries_item_id", "scheme_installation_item_id"),
    )


class SchemeScenario(Base):
    """
    Saved scenario: a labelled snapshot document of a scheme's editable state.

    ``revision`` increases every time the snapshot is re-captured; the
    document's own ``version`` field tags its schema.
    """

    __tablename__ = "scheme_scenarios"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    scheme_id: Mapped[UUID] = mapped_column(
        ForeignKey("schemes.id", ondelete="CASCADE"),
        nullable=False,
    )
    label: Mapped[str | None] = mapped_column(String(255))
    label_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    revision: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    snapshot: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    __table_args__ = (Index("ix_scheme_scenarios_scheme_id", "scheme_id"),)


# =============================================================================
# Roll-up Output
# =============================================================================


class SchemeCarbonResult(Base):
    """Stage-tagged result row written by the carbon roll-up procedure."""

    __tablename__ = "scheme_carbon_results"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    scheme_id: Mapped[UUID] = mapped_column(
        ForeignKey("schemes.id", ondelete="CASCADE"),
        nullable=False,
    )
    lifecycle_stage: Mapped[str] = mapped_column(String(8), nullable=False)
    product_id: Mapped[UUID | None] = mapped_column()
    mix_type_id: Mapped[UUID | None] = mapped_column()
    detail_label: Mapped[str | None] = mapped_column(String(255))
    total_kgco2e: Mapped[float | None] = mapped_column(Float)
    kgco2e_per_tonne: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (Index("ix_scheme_carbon_results_scheme_id", "scheme_id"),)


class SchemeCarbonSummary(Base):
    """Scheme-wide totals written by the carbon roll-up procedure."""

    __tablename__ = "scheme_carbon_summaries"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    scheme_id: Mapped[UUID] = mapped_column(
        ForeignKey("schemes.id", ondelete="CASCADE"),
        nullable=False,
    )
    total_kgco2e: Mapped[float | None] = mapped_column(Float)
    kgco2e_per_tonne: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (UniqueConstraint("scheme_id", name="uq_scheme_carbon_summaries_scheme"),)
