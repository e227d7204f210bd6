"""Shared service constants — single source of truth.

Centralises endpoint URLs, collection identifiers, sizing bounds, and the
curated fallback date tables that would otherwise be duplicated across the
geometry, resolver, and rendering modules.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Remote endpoints
# ---------------------------------------------------------------------------

DEFAULT_TOKEN_URL: str = (
    "https://services.sentinel-hub.com/auth/realms/main/protocol/openid-connect/token"
)
"""Client-credentials token endpoint."""

DEFAULT_PROCESS_URL: str = "https://services.sentinel-hub.com/api/v1/process"
"""Process API endpoint (render and raw raster requests)."""

DEFAULT_CATALOG_URL: str = "https://services.sentinel-hub.com/api/v1/catalog/1.0.0"
"""STAC catalog root."""

# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

SENTINEL2_L2A: str = "sentinel-2-l2a"
SENTINEL1_GRD: str = "sentinel-1-grd"

# ---------------------------------------------------------------------------
# Geometry and sizing
# ---------------------------------------------------------------------------

EARTH_RADIUS_M: float = 6_371_000.0
"""Mean Earth radius used by the spherical-rectangle area approximation."""

MIN_PIXELS: int = 128
MAX_PIXELS: int = 2048

SQ_METRES_PER_KM2: float = 1_000_000.0

# ---------------------------------------------------------------------------
# Radar conversion
# ---------------------------------------------------------------------------

DB_EPSILON: float = 1e-6
"""Linear-power floor applied before the decibel transform (-60 dB)."""

CLASS_BYTE_SCALE: int = 50
"""Land-cover class label multiplier for the single-byte visual encoding."""

# ---------------------------------------------------------------------------
# Curated fallback dates
# ---------------------------------------------------------------------------

CURATED_REGIONS: dict[str, tuple[float, float, float, float]] = {
    "northern_chile": (-71.5, -27.5, -68.0, -17.5),
    "central_chile": (-73.0, -36.0, -69.5, -27.5),
    "southern_chile": (-75.8, -46.0, -71.0, -36.0),
}
"""Region name → ``(min_lon, min_lat, max_lon, max_lat)``; first match wins."""

CURATED_DATES: dict[str, tuple[str, ...]] = {
    "northern_chile": ("2023-04-10", "2023-06-09", "2023-08-18", "2022-11-20"),
    "central_chile": ("2023-01-15", "2023-02-14", "2023-03-16", "2022-12-16", "2022-11-26"),
    "southern_chile": ("2023-02-04", "2023-01-10", "2022-12-21", "2023-03-01"),
    "default": ("2023-01-15", "2023-04-15", "2023-07-15", "2023-10-15"),
}
"""Historically reliable acquisition dates per region (``default`` elsewhere)."""

MAX_SUGGESTED_DATES: int = 5
