"""Process API request builder.

One builder for every ``RenderVariant``: bounds (polygon or bbox), one
data-source descriptor (collection, time window, quality filter,
polarisation / mode), an output descriptor, and the evalscript.

Example payload (true colour)::

    {
      "input": {
        "bounds": {"bbox": [...], "properties": {"crs": ".../EPSG/0/4326"}},
        "data": [{"type": "sentinel-2-l2a",
                  "dataFilter": {"timeRange": {...}, "maxCloudCoverage": 20,
                                 "mosaickingOrder": "leastCC"}}]
      },
      "output": {"width": 1016, "height": 1016,
                 "responses": [{"identifier": "default",
                                "format": {"type": "image/png"}}]},
      "evalscript": "//VERSION=3 ..."
    }
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sentinel_scene.models.geometry import BoundingBox, PixelDimensions, Polygon
    from sentinel_scene.rendering.variants import RenderVariant

WGS84_CRS_URI = "http://www.opengis.net/def/crs/EPSG/0/4326"


def day_window(date: str) -> tuple[str, str]:
    """Return the full-day UTC time range for a ``YYYY-MM-DD`` date."""
    return (f"{date}T00:00:00Z", f"{date}T23:59:59Z")


def build_process_request(
    bbox: BoundingBox,
    variant: RenderVariant,
    time_range: tuple[str, str],
    dimensions: PixelDimensions,
    *,
    polygon: Polygon | None = None,
    max_cloud_cover_pct: float | None = None,
    instrument_mode: str = "IW",
) -> dict[str, Any]:
    """Build the Process API payload for *variant*.

    Args:
        bbox: Request bounding box (always sent).
        variant: What to render and how.
        time_range: ``(from, to)`` ISO 8601 timestamps.
        dimensions: Output width and height in pixels.
        polygon: Optional outer ring; when given, pixels outside it are
            left empty by the service.
        max_cloud_cover_pct: Cloud ceiling for optical variants.
        instrument_mode: Radar acquisition mode filter.

    Returns:
        A JSON-serialisable dict.
    """
    bounds: dict[str, Any] = {
        "bbox": bbox.to_list(),
        "properties": {"crs": WGS84_CRS_URI},
    }
    if polygon is not None:
        bounds["geometry"] = {
            "type": "Polygon",
            "coordinates": [[list(point) for point in polygon]],
        }

    return {
        "input": {
            "bounds": bounds,
            "data": [_data_source(variant, time_range, max_cloud_cover_pct, instrument_mode)],
        },
        "output": {
            "width": dimensions.width,
            "height": dimensions.height,
            "responses": [
                {"identifier": "default", "format": {"type": variant.response_format}},
            ],
        },
        "evalscript": variant.evalscript,
    }


def _data_source(
    variant: RenderVariant,
    time_range: tuple[str, str],
    max_cloud_cover_pct: float | None,
    instrument_mode: str,
) -> dict[str, Any]:
    """Data-source descriptor for the variant's collection."""
    data_filter: dict[str, Any] = {
        "timeRange": {"from": time_range[0], "to": time_range[1]},
    }

    if variant.is_radar:
        data_filter["acquisitionMode"] = instrument_mode
        data_filter["resolution"] = "HIGH"
        if variant.polarization:
            data_filter["polarization"] = variant.polarization
        return {
            "type": variant.collection,
            "dataFilter": data_filter,
            "processing": {"backCoeff": "SIGMA0_ELLIPSOID", "orthorectify": True},
        }

    if variant.uses_cloud_filter and max_cloud_cover_pct is not None:
        data_filter["maxCloudCoverage"] = round(max_cloud_cover_pct)
    data_filter["mosaickingOrder"] = "leastCC"
    return {"type": variant.collection, "dataFilter": data_filter}
