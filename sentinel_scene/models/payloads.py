"""Inbound request contract for the HTTP endpoints.

The HTTP layer receives a JSON dict.  ``SceneRequest`` makes the
accepted keys explicit so that pyright catches mismatches at analysis
time, ``validate_payload`` catches missing keys at runtime, and
``parse_scene_request`` turns the dict into a typed ``SceneQuery``.

Usage::

    from sentinel_scene.models.payloads import parse_scene_request

    query = parse_scene_request(req.get_json(), endpoint="sentinel2")
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, NotRequired, TypedDict

from sentinel_scene.core.exceptions import ContractError
from sentinel_scene.models.geometry import BoundingBox, Polygon


class SceneRequest(TypedDict):
    """Client → scene endpoint.

    Exactly one of ``coordinates`` (outer ring of ``[lon, lat]`` pairs,
    optionally wrapped GeoJSON-style in an extra list) or ``bbox`` is
    expected alongside ``date``.
    """

    date: str
    coordinates: NotRequired[list[Any]]
    bbox: NotRequired[list[float]]
    compareDate: NotRequired[str]
    seasonal: NotRequired[bool]
    variant: NotRequired[str]
    resolution: NotRequired[float]


_REQUIRED_KEYS: dict[type, frozenset[str]] = {
    SceneRequest: frozenset({"date"}),
}


@dataclass(frozen=True, slots=True)
class SceneQuery:
    """Typed form of a ``SceneRequest``.

    Attributes:
        requested_date: Target acquisition date (``YYYY-MM-DD``).
        polygon: Outer ring, or ``None`` when only a bbox was sent.
        bbox: Explicit bbox, or ``None`` when a polygon was sent.
        compare_date: Optional second date for statistics comparison.
        seasonal: Select classification thresholds by season.
        variant: Render variant name (endpoint default when empty).
        resolution_m: Target resolution override in metres, or ``None``.
    """

    requested_date: str
    polygon: Polygon | None = None
    bbox: BoundingBox | None = None
    compare_date: str | None = None
    seasonal: bool = False
    variant: str = ""
    resolution_m: float | None = None


def validate_payload(
    raw: dict[str, Any],
    schema: type,
    *,
    endpoint: str,
) -> None:
    """Validate that *raw* contains the required keys for *schema*.

    Raises:
        ContractError: If required keys are missing from the payload.
    """
    required = _REQUIRED_KEYS.get(schema)
    if required is None:
        return

    missing = required - raw.keys()
    if missing:
        msg = f"{endpoint}: missing required payload key(s): {', '.join(sorted(missing))}"
        raise ContractError(msg, stage=endpoint, code="PAYLOAD_MISSING_KEYS")


def parse_scene_request(raw: object, *, endpoint: str) -> SceneQuery:
    """Validate and convert an inbound JSON body into a ``SceneQuery``.

    Geometry contents are not validated here; ``analyze_geometry`` owns
    that and raises ``InvalidGeometry``.

    Raises:
        ContractError: If the body is not an object, lacks ``date`` or a
            geometry, or carries values of the wrong shape.
    """
    if not isinstance(raw, dict):
        msg = f"{endpoint}: request body must be a JSON object"
        raise ContractError(msg, stage=endpoint, code="PAYLOAD_NOT_OBJECT")

    validate_payload(raw, SceneRequest, endpoint=endpoint)

    requested_date = _parse_date(raw["date"], "date", endpoint)
    compare_date = None
    if raw.get("compareDate"):
        compare_date = _parse_date(raw["compareDate"], "compareDate", endpoint)

    polygon: Polygon | None = None
    bbox: BoundingBox | None = None
    if raw.get("coordinates") is not None:
        polygon = _unwrap_ring(raw["coordinates"], endpoint)
    elif raw.get("bbox") is not None:
        try:
            bbox = BoundingBox.from_sequence(raw["bbox"])
        except ValueError as exc:
            raise ContractError(
                f"{endpoint}: invalid bbox: {exc}", stage=endpoint, code="PAYLOAD_INVALID_BBOX"
            ) from exc
    else:
        msg = f"{endpoint}: one of 'coordinates' or 'bbox' is required"
        raise ContractError(msg, stage=endpoint, code="PAYLOAD_MISSING_KEYS")

    resolution = raw.get("resolution")
    resolution_m: float | None = None
    if resolution is not None:
        if isinstance(resolution, bool) or not isinstance(resolution, int | float):
            msg = f"{endpoint}: resolution must be a number, got {resolution!r}"
            raise ContractError(msg, stage=endpoint, code="PAYLOAD_INVALID_VALUE")
        if resolution <= 0:
            msg = f"{endpoint}: resolution must be > 0, got {resolution!r}"
            raise ContractError(msg, stage=endpoint, code="PAYLOAD_INVALID_VALUE")
        resolution_m = float(resolution)

    return SceneQuery(
        requested_date=requested_date,
        polygon=polygon,
        bbox=bbox,
        compare_date=compare_date,
        seasonal=bool(raw.get("seasonal", False)),
        variant=str(raw.get("variant", "") or ""),
        resolution_m=resolution_m,
    )


def _parse_date(value: object, key: str, endpoint: str) -> str:
    """Normalise a ``YYYY-MM-DD`` value, rejecting anything else."""
    try:
        return date.fromisoformat(str(value)[:10]).isoformat()
    except ValueError as exc:
        msg = f"{endpoint}: {key} must be an ISO date (YYYY-MM-DD), got {value!r}"
        raise ContractError(msg, stage=endpoint, code="PAYLOAD_INVALID_DATE") from exc


def _unwrap_ring(coordinates: object, endpoint: str) -> Polygon:
    """Accept a bare ring or a GeoJSON ``[ring, *holes]`` list; keep the ring."""
    if not isinstance(coordinates, list):
        msg = f"{endpoint}: coordinates must be a list, got {type(coordinates).__name__}"
        raise ContractError(msg, stage=endpoint, code="PAYLOAD_INVALID_VALUE")
    if coordinates and isinstance(coordinates[0], list) and coordinates[0]:
        first = coordinates[0][0]
        if isinstance(first, list | tuple):
            coordinates = coordinates[0]
    return list(coordinates)  # type: ignore[arg-type]
