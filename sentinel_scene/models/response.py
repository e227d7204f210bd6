"""Pydantic response document returned by the scene endpoints.

One schema covers every outcome:

- **rendered**: ``image`` data URL plus the resolved date and raster size
- **statistics**: ``statistics`` (and ``comparison`` / ``deltaDb`` when a
  second date was requested)
- **no coverage**: ``hasCoverage: false`` with ``suggestedDates``; an
  expected outcome, not an error

Keys are serialised in camelCase; ``None`` fields are omitted.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class DateStatistics(BaseModel):
    """Statistics for one resolved date."""

    requested_date: str = Field(alias="requestedDate")
    resolved_date: str = Field(alias="resolvedDate")
    tier: str = "exact"
    statistics: dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class SceneResponse(BaseModel):
    """Top-level response body.

    Attributes:
        has_coverage: ``False`` when every fallback tier was exhausted.
        image: ``data:<content-type>;base64,...`` payload for renders.
        requested_date: The date the caller asked for.
        resolved_date: The date actually used.
        tier: Fallback tier that produced ``resolved_date``.
        used_bbox: Bounding box sent to the imagery service.
        width: Output raster width in pixels.
        height: Output raster height in pixels.
        variant: Render variant name.
        acquisition_mode: Decoded radar mode when the scene id is known.
        statistics: Backscatter statistics for ``resolved_date``.
        comparison: Statistics for the comparison date.
        delta_db: ``comparison.mean - statistics.mean`` when both exist.
        suggested_dates: Alternatives offered when there is no coverage.
        attempted_dates: Every date the resolver tried.
        warnings: Non-fatal notes (fallbacks, clamping, mode mismatches).
    """

    has_coverage: bool = Field(default=True, alias="hasCoverage")
    image: str | None = None
    requested_date: str = Field(default="", alias="requestedDate")
    resolved_date: str | None = Field(default=None, alias="resolvedDate")
    tier: str | None = None
    used_bbox: list[float] = Field(default_factory=list, alias="usedBbox")
    width: int | None = None
    height: int | None = None
    variant: str | None = None
    acquisition_mode: dict[str, Any] | None = Field(default=None, alias="acquisitionMode")
    statistics: dict[str, Any] | None = None
    comparison: DateStatistics | None = None
    delta_db: float | None = Field(default=None, alias="deltaDb")
    suggested_dates: list[str] | None = Field(default=None, alias="suggestedDates")
    attempted_dates: list[dict[str, str]] = Field(default_factory=list, alias="attemptedDates")
    warnings: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    def to_json(self) -> str:
        """Serialise to a JSON string using camelCase keys."""
        return self.model_dump_json(by_alias=True, exclude_none=True)

    def to_dict(self) -> dict[str, object]:
        """Serialise to a plain dict using camelCase keys."""
        return self.model_dump(by_alias=True, exclude_none=True)  # type: ignore[return-value]
