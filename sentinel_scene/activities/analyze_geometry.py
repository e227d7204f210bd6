"""Geometry analysis for render request sizing.

Derives everything the imagery service needs to size a request from a
user polygon: the bounding box of the outer ring, a spherical-rectangle
area and aspect ratio, and output pixel dimensions for a target ground
resolution.

The area is a sizing approximation over the bbox, not the exact
geodesic area of the polygon:

    area = R² · Δλ · (sin φ2 − sin φ1),  R = 6 371 000 m, angles in radians

All functions are pure and deterministic; there is no I/O here.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from sentinel_scene.core.constants import (
    EARTH_RADIUS_M,
    MAX_PIXELS,
    MIN_PIXELS,
    SQ_METRES_PER_KM2,
)
from sentinel_scene.core.exceptions import ValidationError
from sentinel_scene.models.geometry import (
    AreaEstimate,
    BoundingBox,
    GeometryAnalysis,
    PixelDimensions,
    Polygon,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger("sentinel_scene.activities.analyze_geometry")


class InvalidGeometry(ValidationError):
    """Raised when a polygon ring is empty, malformed, or degenerate."""

    default_stage = "analyze_geometry"
    default_code = "INVALID_GEOMETRY"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def analyze_polygon(
    polygon: Polygon,
    *,
    resolution_m: float,
    max_area_km2: float | None = None,
) -> GeometryAnalysis:
    """Validate a polygon ring and derive bbox, area, and pixel size.

    Args:
        polygon: Outer ring as ``(lon, lat)`` pairs.
        resolution_m: Target ground resolution in metres per pixel.
        max_area_km2: Optional threshold above which a warning is attached.

    Returns:
        A ``GeometryAnalysis`` bundling the derived values.

    Raises:
        InvalidGeometry: If the ring is empty, malformed, or has zero extent.
    """
    bbox = bbox_of(polygon)
    return analyze_bbox(
        bbox,
        resolution_m=resolution_m,
        max_area_km2=max_area_km2,
        polygon=[(float(lon), float(lat)) for lon, lat in polygon],
    )


def analyze_bbox(
    bbox: BoundingBox,
    *,
    resolution_m: float,
    max_area_km2: float | None = None,
    polygon: Polygon | None = None,
) -> GeometryAnalysis:
    """Derive area and pixel size for an explicit bbox.

    When no polygon is given, the bbox corners form the ring.
    """
    if resolution_m <= 0:
        msg = f"Resolution must be > 0 metres, got {resolution_m}"
        raise InvalidGeometry(msg)

    estimate = estimate_area(bbox)
    dimensions = optimal_pixel_size(estimate.area_m2, resolution_m, estimate.aspect_ratio)

    warnings: list[str] = []
    side = math.sqrt(estimate.area_m2) / resolution_m
    if side > MAX_PIXELS:
        warnings.append(
            f"Area needs {side:.0f} px per side at {resolution_m:g} m; "
            f"output capped at {MAX_PIXELS} px (coarser effective resolution)"
        )
    elif side < MIN_PIXELS:
        warnings.append(
            f"Area needs only {side:.0f} px per side at {resolution_m:g} m; "
            f"output raised to {MIN_PIXELS} px"
        )

    area_km2 = estimate.area_m2 / SQ_METRES_PER_KM2
    if max_area_km2 is not None and area_km2 > max_area_km2:
        warning = f"Area {area_km2:.1f} km² exceeds threshold of {max_area_km2:.0f} km²"
        logger.warning(warning)
        warnings.append(warning)

    logger.info(
        "Geometry analysed | bbox=[%.4f, %.4f, %.4f, %.4f] | area=%.2f km² | "
        "aspect=%.3f | size=%dx%d | resolution=%.1f m",
        *bbox.to_list(),
        area_km2,
        estimate.aspect_ratio,
        dimensions.width,
        dimensions.height,
        resolution_m,
    )

    ring = polygon if polygon is not None else _bbox_ring(bbox)
    return GeometryAnalysis(
        polygon=ring,
        bbox=bbox,
        estimate=estimate,
        dimensions=dimensions,
        resolution_m=resolution_m,
        warnings=warnings,
    )


def bbox_of(polygon: Polygon) -> BoundingBox:
    """Return the min/max lon/lat over the outer ring.

    Raises:
        InvalidGeometry: If the ring is empty or any point is not a
            well-formed ``(lon, lat)`` pair within WGS 84 bounds.
    """
    if not isinstance(polygon, list | tuple) or not polygon:
        msg = "Empty polygon: the outer ring has no coordinates"
        raise InvalidGeometry(msg)

    lons: list[float] = []
    lats: list[float] = []
    for index, point in enumerate(polygon):
        lon, lat = _coerce_point(point, index)
        lons.append(lon)
        lats.append(lat)

    return BoundingBox(min(lons), min(lats), max(lons), max(lats))


def compute_area(bbox: BoundingBox) -> float:
    """Spherical-rectangle area of *bbox* in square metres (never negative)."""
    delta_lambda = math.radians(bbox.max_lon - bbox.min_lon)
    phi1 = math.radians(bbox.min_lat)
    phi2 = math.radians(bbox.max_lat)
    return abs(EARTH_RADIUS_M**2 * delta_lambda * (math.sin(phi2) - math.sin(phi1)))


def aspect_ratio(bbox: BoundingBox | Sequence[float]) -> float:
    """Return Δlon / Δlat, both in radians.

    A raw ``[west, south, east, north]`` sequence keeps its sign, so a
    reversed axis yields a negative ratio; a ``BoundingBox`` is always
    normalised and yields a positive one.

    Raises:
        InvalidGeometry: If the bbox has zero latitude extent.
    """
    west, south, east, north = bbox.to_list() if isinstance(bbox, BoundingBox) else bbox
    delta_lat = math.radians(north - south)
    if delta_lat == 0:
        msg = f"Degenerate bbox {[west, south, east, north]}: zero latitude extent"
        raise InvalidGeometry(msg)
    return math.radians(east - west) / delta_lat


def estimate_area(bbox: BoundingBox) -> AreaEstimate:
    """Bundle area and unsigned aspect ratio for *bbox*.

    Raises:
        InvalidGeometry: If the bbox has zero extent on either axis.
    """
    ratio = abs(aspect_ratio(bbox))
    if ratio == 0:
        msg = f"Degenerate bbox {bbox.to_list()}: zero longitude extent"
        raise InvalidGeometry(msg)
    return AreaEstimate(area_m2=compute_area(bbox), aspect_ratio=ratio)


def optimal_pixel_size(area_m2: float, resolution_m: float, ratio: float) -> PixelDimensions:
    """Derive output width and height for a target resolution.

    ``side = √area / resolution`` is clamped to [128, 2048]; width and
    height split ``side²`` according to *ratio* and are each clamped to
    the same bounds independently.

    Raises:
        InvalidGeometry: If *resolution_m* or *ratio* is not positive.
    """
    if resolution_m <= 0:
        msg = f"Resolution must be > 0 metres, got {resolution_m}"
        raise InvalidGeometry(msg)
    if ratio <= 0 or not math.isfinite(ratio):
        msg = f"Aspect ratio must be a positive finite number, got {ratio}"
        raise InvalidGeometry(msg)

    side = _clamp(math.sqrt(max(area_m2, 0.0)) / resolution_m)
    scale = math.sqrt(ratio)
    width = _clamp(round(side * scale))
    height = _clamp(round(side / scale))
    return PixelDimensions(width=int(width), height=int(height))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _clamp(value: float) -> float:
    return max(MIN_PIXELS, min(MAX_PIXELS, value))


def _coerce_point(point: object, index: int) -> tuple[float, float]:
    """Validate one ring vertex and return it as floats."""
    if not isinstance(point, list | tuple) or len(point) != 2:
        msg = f"Point {index} is not a (lon, lat) pair: {point!r}"
        raise InvalidGeometry(msg)

    lon, lat = point
    for name, value in (("lon", lon), ("lat", lat)):
        if isinstance(value, bool) or not isinstance(value, int | float):
            msg = f"Point {index} has a non-numeric {name}: {value!r}"
            raise InvalidGeometry(msg)
        if not math.isfinite(value):
            msg = f"Point {index} has a non-finite {name}: {value!r}"
            raise InvalidGeometry(msg)

    if not -180.0 <= lon <= 180.0:
        msg = f"Point {index} longitude {lon} outside [-180, 180]"
        raise InvalidGeometry(msg)
    if not -90.0 <= lat <= 90.0:
        msg = f"Point {index} latitude {lat} outside [-90, 90]"
        raise InvalidGeometry(msg)

    return float(lon), float(lat)


def _bbox_ring(bbox: BoundingBox) -> Polygon:
    return [
        (bbox.min_lon, bbox.min_lat),
        (bbox.max_lon, bbox.min_lat),
        (bbox.max_lon, bbox.max_lat),
        (bbox.min_lon, bbox.max_lat),
        (bbox.min_lon, bbox.min_lat),
    ]
