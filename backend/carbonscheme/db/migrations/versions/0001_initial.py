"""Initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

The carbon roll-up function named by ``CARBON_ROLLUP_FUNCTION`` is owned by
the reporting database team and deployed separately.
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

distance_unit = postgresql.ENUM("km", "mi", name="distanceunit", create_type=False)
calculation_mode = postgresql.ENUM("auto", "manual", name="calculationmode", create_type=False)
delivery_type = postgresql.ENUM("delivery", "return", "tip", name="deliverytype", create_type=False)
installation_category = postgresql.ENUM(
    "plant", "transport", "material", "fuel", name="installationcategory", create_type=False
)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in (distance_unit, calculation_mode, delivery_type, installation_category):
        enum_type.create(bind, checkfirst=True)

    # Reference data
    op.create_table(
        "plants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("location", sa.String(32), comment="Plant postcode used for haulage distances"),
        _created_at(),
    )
    op.create_table(
        "mix_types",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
    )
    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
    )
    op.create_table(
        "transport_modes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("kgco2e_per_km", sa.Float()),
        sa.Column("is_default", sa.Boolean(), server_default=sa.false(), nullable=False),
    )
    op.create_table(
        "installation_setups",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("plant_name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("spread_rate_t_per_m2", sa.Float()),
        sa.Column("kgco2_per_t", sa.Float()),
        sa.Column("kgco2_per_ltr", sa.Float()),
        sa.Column("kgco2e_per_km", sa.Float()),
        sa.Column("litres_per_t", sa.Float()),
        sa.Column("litres_na", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("kgco2e", sa.Float()),
        sa.Column("kgco2e_na", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("one_way", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("is_default", sa.Boolean(), server_default=sa.false(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_installation_setups_category", "installation_setups", ["category"])
    op.create_table(
        "plant_mix_factors",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "plant_id",
            sa.Uuid(),
            sa.ForeignKey("plants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "mix_type_id",
            sa.Uuid(),
            sa.ForeignKey("mix_types.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.Uuid(), sa.ForeignKey("products.id", ondelete="CASCADE")),
        sa.Column("kgco2e_per_tonne", sa.Float()),
        sa.Column("recycled_materials_pct", sa.Float()),
        sa.Column("is_default", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("valid_from", sa.Date()),
        sa.Column("valid_to", sa.Date()),
        _created_at(),
    )
    op.create_index("ix_plant_mix_factors_plant_id", "plant_mix_factors", ["plant_id"])
    op.create_index(
        "ix_plant_mix_factors_lookup",
        "plant_mix_factors",
        ["plant_id", "mix_type_id", "product_id"],
    )
    op.create_table(
        "report_metrics",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("kind", sa.String(32), server_default="equivalency", nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("unit", sa.String(32)),
        sa.Column("value", sa.Float()),
        sa.Column("source", sa.Text()),
        sa.Column("calc_op", sa.String(8)),
        sa.Column("calc_factor", sa.Float()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
    )
    op.create_index("ix_report_metrics_kind_active", "report_metrics", ["kind", "is_active"])

    # Schemes
    op.create_table(
        "schemes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("area_m2", sa.Float()),
        sa.Column("site_postcode", sa.String(32)),
        sa.Column("base_postcode", sa.String(32)),
        sa.Column(
            "plant_id",
            sa.Uuid(),
            sa.ForeignKey("plants.id", ondelete="SET NULL"),
            comment="Plant assumed for lines that do not name one",
        ),
        sa.Column("distance_unit", distance_unit, server_default="km", nullable=False),
        sa.Column("installation_mode", calculation_mode, server_default="auto", nullable=False),
        sa.Column("materials_mode", calculation_mode, server_default="auto", nullable=False),
        sa.Column("a5_fuel_mode", calculation_mode, server_default="auto", nullable=False),
        sa.Column("is_locked", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True)),
        sa.Column("active_scenario_id", sa.Uuid()),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )
    op.create_table(
        "scheme_products",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "scheme_id",
            sa.Uuid(),
            sa.ForeignKey("schemes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.Uuid(), sa.ForeignKey("products.id")),
        sa.Column("plant_id", sa.Uuid(), sa.ForeignKey("plants.id")),
        sa.Column("mix_type_id", sa.Uuid(), sa.ForeignKey("mix_types.id")),
        sa.Column(
            "plant_postcode",
            sa.String(32),
            comment="Plant location at the time the line was added",
        ),
        sa.Column("transport_mode_id", sa.Uuid(), sa.ForeignKey("transport_modes.id")),
        sa.Column("delivery_type", delivery_type, server_default="delivery", nullable=False),
        sa.Column("tonnage", sa.Float(), nullable=False),
        sa.Column("distance_km", sa.Float()),
        sa.Column(
            "distance_unit",
            distance_unit,
            server_default="km",
            nullable=False,
            comment="Unit the distance was entered in",
        ),
        _created_at(),
    )
    op.create_index("ix_scheme_products_scheme_id", "scheme_products", ["scheme_id"])
    op.create_table(
        "scheme_installation_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "scheme_id",
            sa.Uuid(),
            sa.ForeignKey("schemes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "installation_setup_id",
            sa.Uuid(),
            sa.ForeignKey("installation_setups.id", ondelete="SET NULL"),
        ),
        sa.Column("plant_name", sa.String(255), nullable=False),
        sa.Column("category", installation_category, nullable=False),
        sa.Column("spread_rate_t_per_m2", sa.Float()),
        sa.Column("kgco2_per_t", sa.Float()),
        sa.Column("kgco2_per_ltr", sa.Float()),
        sa.Column("kgco2e_per_km", sa.Float()),
        sa.Column("litres_per_t", sa.Float()),
        sa.Column("litres_na", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("kgco2e", sa.Float()),
        sa.Column("kgco2e_na", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("one_way", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "fuel_type_id",
            sa.Uuid(),
            sa.ForeignKey("installation_setups.id", ondelete="SET NULL"),
        ),
        sa.Column("fuel_kgco2_per_ltr", sa.Float()),
        sa.Column("quantity", sa.Float(), server_default="1", nullable=False),
        sa.Column("material_tonnage_override", sa.Float()),
        _created_at(),
    )
    op.create_index(
        "ix_scheme_installation_items_scheme_id", "scheme_installation_items", ["scheme_id"]
    )
    op.create_table(
        "scheme_a5_usage_entries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "scheme_id",
            sa.Uuid(),
            sa.ForeignKey("schemes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "scheme_installation_item_id",
            sa.Uuid(),
            sa.ForeignKey("scheme_installation_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date()),
        sa.Column("litres_used", sa.Float()),
        sa.Column("distance_km_each_way", sa.Float()),
        sa.Column("one_way", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("auto_generated", sa.Boolean(), server_default=sa.false(), nullable=False),
        _created_at(),
    )
    op.create_index(
        "ix_scheme_a5_usage_entries_scheme_id", "scheme_a5_usage_entries", ["scheme_id"]
    )
    op.create_index(
        "ix_scheme_a5_usage_entries_item_id",
        "scheme_a5_usage_entries",
        ["scheme_installation_item_id"],
    )
    op.create_table(
        "scheme_scenarios",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "scheme_id",
            sa.Uuid(),
            sa.ForeignKey("schemes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("label", sa.String(255)),
        sa.Column("label_locked", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("revision", sa.Integer(), server_default="1", nullable=False),
        sa.Column("snapshot", postgresql.JSONB(), nullable=False),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )
    op.create_index("ix_scheme_scenarios_scheme_id", "scheme_scenarios", ["scheme_id"])

    # Roll-up output
    op.create_table(
        "scheme_carbon_results",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "scheme_id",
            sa.Uuid(),
            sa.ForeignKey("schemes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("lifecycle_stage", sa.String(8), nullable=False),
        sa.Column("product_id", sa.Uuid()),
        sa.Column("mix_type_id", sa.Uuid()),
        sa.Column("detail_label", sa.String(255)),
        sa.Column("total_kgco2e", sa.Float()),
        sa.Column("kgco2e_per_tonne", sa.Float()),
        _created_at(),
    )
    op.create_index(
        "ix_scheme_carbon_results_scheme_id", "scheme_carbon_results", ["scheme_id"]
    )
    op.create_table(
        "scheme_carbon_summaries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "scheme_id",
            sa.Uuid(),
            sa.ForeignKey("schemes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("total_kgco2e", sa.Float()),
        sa.Column("kgco2e_per_tonne", sa.Float()),
        _created_at(),
        sa.UniqueConstraint("scheme_id", name="uq_scheme_carbon_summaries_scheme"),
    )


def downgrade() -> None:
    for table in (
        "scheme_carbon_summaries",
        "scheme_carbon_results",
        "scheme_scenarios",
        "scheme_a5_usage_entries",
        "scheme_installation_items",
        "scheme_products",
        "schemes",
        "report_metrics",
        "plant_mix_factors",
        "installation_setups",
        "transport_modes",
        "products",
        "mix_types",
        "plants",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (installation_category, delivery_type, calculation_mode, distance_unit):
        enum_type.drop(bind, checkfirst=True)
