"""Geometry value objects for request sizing.

- ``BoundingBox``: axis-aligned lon/lat rectangle derived from a polygon ring
- ``AreaEstimate``: spherical-rectangle area and aspect ratio of a bbox
- ``PixelDimensions``: output raster size, clamped to the service limits
- ``GeometryAnalysis``: everything the pipeline needs from one polygon

All coordinates are WGS 84 (EPSG:4326) degrees.  Areas are square metres.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from sentinel_scene.core.constants import MAX_PIXELS, MIN_PIXELS
from sentinel_scene.models.validation import ModelValidationError, check_min, check_range

Polygon = list[tuple[float, float]]
"""Outer ring as ordered ``(lon, lat)`` pairs."""


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Bounding rectangle ``(min_lon, min_lat, max_lon, max_lat)``.

    Invariant: ``min_lon <= max_lon`` and ``min_lat <= max_lat``.
    """

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def __post_init__(self) -> None:
        if self.min_lon > self.max_lon:
            raise ModelValidationError(
                "BoundingBox", "min_lon", self.min_lon, f"must be <= max_lon ({self.max_lon})"
            )
        if self.min_lat > self.max_lat:
            raise ModelValidationError(
                "BoundingBox", "min_lat", self.min_lat, f"must be <= max_lat ({self.max_lat})"
            )

    @property
    def centre(self) -> tuple[float, float]:
        """Centre point as ``(lon, lat)``."""
        return ((self.min_lon + self.max_lon) / 2, (self.min_lat + self.max_lat) / 2)

    def contains(self, lon: float, lat: float) -> bool:
        """Return True if the point lies inside or on the edge of the box."""
        return self.min_lon <= lon <= self.max_lon and self.min_lat <= lat <= self.max_lat

    def to_list(self) -> list[float]:
        return [self.min_lon, self.min_lat, self.max_lon, self.max_lat]

    @classmethod
    def from_sequence(cls, values: object) -> BoundingBox:
        """Build from a 4-element ``[min_lon, min_lat, max_lon, max_lat]`` sequence.

        Raises:
            ModelValidationError: If the sequence has the wrong length, or a
                member is not a finite number within WGS 84 bounds.
        """
        if not isinstance(values, list | tuple) or len(values) != 4:
            raise ModelValidationError("BoundingBox", "values", values, "must have 4 members")
        if any(isinstance(v, bool) or not isinstance(v, int | float) for v in values):
            raise ModelValidationError("BoundingBox", "values", values, "members must be numbers")

        min_lon, min_lat, max_lon, max_lat = (float(v) for v in values)
        for name, value, limit in (
            ("min_lon", min_lon, 180.0),
            ("min_lat", min_lat, 90.0),
            ("max_lon", max_lon, 180.0),
            ("max_lat", max_lat, 90.0),
        ):
            if not math.isfinite(value):
                raise ModelValidationError("BoundingBox", name, value, "must be finite")
            check_range("BoundingBox", name, value, -limit, limit)
        return cls(min_lon, min_lat, max_lon, max_lat)


@dataclass(frozen=True, slots=True)
class AreaEstimate:
    """Sizing approximation of a bounding box.

    Attributes:
        area_m2: Spherical-rectangle area in square metres (>= 0).
        aspect_ratio: Unsigned Δlon / Δlat ratio in radians (> 0).
    """

    area_m2: float
    aspect_ratio: float

    def __post_init__(self) -> None:
        check_min("AreaEstimate", "area_m2", self.area_m2, 0)
        if self.aspect_ratio <= 0:
            raise ModelValidationError(
                "AreaEstimate", "aspect_ratio", self.aspect_ratio, "must be > 0"
            )


@dataclass(frozen=True, slots=True)
class PixelDimensions:
    """Output raster size in pixels, both sides within the service limits."""

    width: int
    height: int

    def __post_init__(self) -> None:
        check_range("PixelDimensions", "width", self.width, MIN_PIXELS, MAX_PIXELS)
        check_range("PixelDimensions", "height", self.height, MIN_PIXELS, MAX_PIXELS)


@dataclass(frozen=True, slots=True)
class GeometryAnalysis:
    """Result of analysing one polygon for a render request.

    Attributes:
        polygon: The validated outer ring.
        bbox: Tight bounding box of the ring.
        estimate: Area and aspect ratio of ``bbox``.
        dimensions: Output raster size for the target resolution.
        resolution_m: Target resolution the dimensions were derived for.
        warnings: Non-fatal sizing notes (clamping, oversize area).
    """

    polygon: Polygon
    bbox: BoundingBox
    estimate: AreaEstimate
    dimensions: PixelDimensions
    resolution_m: float
    warnings: list[str] = field(default_factory=list)
