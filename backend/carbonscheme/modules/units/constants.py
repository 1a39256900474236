"""Unit conversion constants."""

from __future__ import annotations

MILES_TO_KM = 1.60934

# Earth radius used for great-circle distances.
EARTH_RADIUS_KM = 6371.0

# Mass units accepted on reference metrics, expressed in tonnes.
TONNES_PER_MASS_UNIT = {
    "g": 1e-6,
    "kg": 1e-3,
    "t": 1.0,
    "tonne": 1.0,
    "tonnes": 1.0,
}
