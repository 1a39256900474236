"""Unit tests for distance, postcode and mass normalization."""

from __future__ import annotations

import pytest

from carbonscheme.db.models import DistanceUnit, InstallationCategory
from carbonscheme.modules.units import (
    MILES_TO_KM,
    from_km,
    normalize_distance_unit,
    normalize_postcode,
    to_km,
    to_tonnes,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("mi", DistanceUnit.MI),
        (" MI ", DistanceUnit.MI),
        ("km", DistanceUnit.KM),
        ("miles", DistanceUnit.KM),
        ("", DistanceUnit.KM),
        (None, DistanceUnit.KM),
        (DistanceUnit.MI, DistanceUnit.MI),
    ],
)
def test_normalize_distance_unit(raw: str | None, expected: DistanceUnit) -> None:
    assert normalize_distance_unit(raw) is expected


def test_miles_are_converted_with_fixed_factor() -> None:
    assert to_km(10, "mi") == pytest.approx(16.0934)
    assert to_km(10, "km") == 10
    assert from_km(MILES_TO_KM, DistanceUnit.MI) == pytest.approx(1.0)


def test_normalize_postcode_strips_all_whitespace() -> None:
    assert normalize_postcode(" sw1a  1aa ") == "SW1A1AA"
    assert normalize_postcode("   ") is None
    assert normalize_postcode(None) is None


def test_to_tonnes_handles_known_and_unknown_units() -> None:
    assert to_tonnes(250, "kg") == pytest.approx(0.25)
    assert to_tonnes(5_000_000, "g") == pytest.approx(5.0)
    assert to_tonnes(3, "tonnes") == 3
    assert to_tonnes(3, "barrels") == 3


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Plant", InstallationCategory.PLANT),
        ("plant ", InstallationCategory.PLANT),
        ("PLANT fuel", InstallationCategory.PLANT),
        ("Materials", InstallationCategory.MATERIAL),
        ("transport", InstallationCategory.TRANSPORT),
        ("Fuel", InstallationCategory.FUEL),
        ("labour", None),
        ("", None),
        (None, None),
    ],
)
def test_installation_category_parse(
    raw: str | None, expected: InstallationCategory | None
) -> None:
    assert InstallationCategory.parse(raw) is expected
