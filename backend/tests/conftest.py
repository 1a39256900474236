"""
Pytest fixtures for backend testing.
Provides an in-memory database, fake collaborators, and reference data factories.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from carbonscheme.core.config import get_settings
from carbonscheme.db.models import (
    Base,
    InstallationSetup,
    MixType,
    Plant,
    PlantMixFactor,
    Product,
    ReportMetric,
    SchemeCarbonResult,
    SchemeCarbonSummary,
)
from carbonscheme.db.session import build_session_factory
from carbonscheme.modules.distance.geocoding import Coordinates, UnresolvedLocationError
from carbonscheme.modules.distance.resolver import DistanceResolver
from carbonscheme.modules.lca.rollup import clear_results

TEST_DATABASE_URL = "sqlite+aiosqlite://"

# Approximate postcode centroids used by the fake geocoder.
POSTCODES: dict[str, Coordinates] = {
    "SW1A1AA": Coordinates(latitude=51.501009, longitude=-0.141588),
    "M11AE": Coordinates(latitude=53.480759, longitude=-2.242631),
    "LS11UR": Coordinates(latitude=53.796170, longitude=-1.547920),
}


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for each test."""
    session_factory = build_session_factory(test_engine)
    async with session_factory() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


@dataclass
class FakeRollup:
    """Stands in for the database roll-up function.

    ``writer`` may add result rows to the session to simulate a calculation.
    """

    session: AsyncSession | None = None
    writer: Callable[[AsyncSession, UUID], Awaitable[None]] | None = None
    fail_with: Exception | None = None
    calls: list[UUID] = field(default_factory=list)

    async def recalculate(self, scheme_id: UUID) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append(scheme_id)
        if self.writer is not None and self.session is not None:
            await self.writer(self.session, scheme_id)
            await self.session.flush()


class FakeGeocoder:
    """In-memory geocoder over :data:`POSTCODES`."""

    def __init__(self, postcodes: dict[str, Coordinates] | None = None) -> None:
        self._postcodes = postcodes if postcodes is not None else POSTCODES
        self.lookups: list[str] = []

    async def geocode(self, postcode: str) -> Coordinates:
        self.lookups.append(postcode)
        coords = self._postcodes.get(postcode)
        if coords is None:
            raise UnresolvedLocationError(f"Unable to geocode postcode: {postcode}")
        return coords

    async def aclose(self) -> None:
        return None


@pytest.fixture
def rollup(db_session: AsyncSession) -> FakeRollup:
    return FakeRollup(session=db_session)


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def distance_resolver(geocoder: FakeGeocoder) -> DistanceResolver:
    return DistanceResolver(geocoder)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Reference data factories
# ---------------------------------------------------------------------------


@dataclass
class ReferenceData:
    plant: Plant
    mixes: dict[str, MixType]
    products: dict[str, Product]
    setups: dict[str, InstallationSetup]


@pytest_asyncio.fixture
async def reference_data(db_session: AsyncSession) -> ReferenceData:
    """A plant in Manchester with two mixes, two products and default setups."""
    plant = Plant(name="Manchester Asphalt", location="M1 1AE")
    mixes = {"AC10": MixType(name="AC10 Surface"), "AC20": MixType(name="AC20 Binder")}
    products = {"surface": Product(name="Surface course"), "binder": Product(name="Binder course")}
    setups = {
        "paver": InstallationSetup(
            plant_name="Paver", category="Plant", litres_per_t=0.5, is_default=True
        ),
        "roller": InstallationSetup(
            plant_name="Roller", category="plant ", litres_per_t=0.25, is_default=False
        ),
        "lorry": InstallationSetup(
            plant_name="Lorry", category="TRANSPORT", kgco2e_per_km=0.9, is_default=True
        ),
        "diesel": InstallationSetup(
            plant_name="Diesel", category="Fuel", kgco2_per_ltr=2.68, is_default=True
        ),
        "tack": InstallationSetup(
            plant_name="Tack coat",
            category="Materials",
            spread_rate_t_per_m2=0.3,
            kgco2_per_t=150.0,
            is_default=True,
        ),
    }
    db_session.add(plant)
    db_session.add_all([*mixes.values(), *products.values(), *setups.values()])
    await db_session.flush()

    db_session.add_all(
        [
            PlantMixFactor(
                plant_id=plant.id,
                mix_type_id=mixes["AC10"].id,
                kgco2e_per_tonne=50.0,
                recycled_materials_pct=20.0,
            ),
            PlantMixFactor(
                plant_id=plant.id,
                mix_type_id=mixes["AC20"].id,
                product_id=products["binder"].id,
                kgco2e_per_tonne=70.0,
                recycled_materials_pct=40.0,
            ),
        ]
    )
    await db_session.flush()
    return ReferenceData(plant=plant, mixes=mixes, products=products, setups=setups)


ResultsWriter = Callable[[AsyncSession, UUID], Awaitable[None]]


@pytest.fixture
def results_writer() -> Callable[..., ResultsWriter]:
    """Build a roll-up writer that replaces results with one summary row per stage."""

    def _make(stages: dict[str, float], per_tonne: float | None = None) -> ResultsWriter:
        async def _write(session: AsyncSession, scheme_id: UUID) -> None:
            await clear_results(session, scheme_id)
            for stage, total in stages.items():
                session.add(
                    SchemeCarbonResult(
                        scheme_id=scheme_id, lifecycle_stage=stage, total_kgco2e=total
                    )
                )
            session.add(
                SchemeCarbonSummary(
                    scheme_id=scheme_id,
                    total_kgco2e=sum(stages.values()),
                    kgco2e_per_tonne=per_tonne,
                )
            )

        return _write

    return _make


@pytest.fixture
def metric() -> Callable[..., ReportMetric]:
    def _make(label: str, value: float, unit: str = "kg", **kwargs: Any) -> ReportMetric:
        return ReportMetric(kind="equivalency", label=label, value=value, unit=unit, **kwargs)

    return _make
