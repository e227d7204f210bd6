"""Typed models for catalog search and scene resolution.

- ``SceneCandidate``: a catalog descriptor, transient per request
- ``CatalogResult``: the capped outcome of one catalog search
- ``AcquisitionMode``: polarisation / instrument mode of a radar scene
- ``FallbackTier`` / ``FallbackPolicy``: ordered date-selection strategies
- ``RenderedPayload``: bytes returned by the imagery service for one date
- ``AttemptedDate`` / ``ResolvedScene``: outcome of the fallback cascade

Design notes:
- All models are frozen dataclasses; nothing here outlives a request.
- Dates are ISO ``YYYY-MM-DD`` strings, the unit the fallback tiers
  reason in; timestamps are kept on ``SceneCandidate`` only.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sentinel_scene.models.validation import (
    ModelValidationError,
    check_min,
    check_non_empty,
    check_range,
)

if TYPE_CHECKING:
    from datetime import datetime


# ---------------------------------------------------------------------------
# Catalog models
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SceneCandidate:
    """A single scene descriptor returned by a catalog search.

    Attributes:
        scene_id: Catalog item identifier (product name for Sentinel-1).
        acquisition_date: Acquisition timestamp (timezone-aware).
        polarization_mode: Polarisation code such as ``"DV"`` or ``"SH"``;
            empty for optical collections.
        quality_metric: Cloud cover percentage (0-100) for optical scenes,
            ``0.0`` when the collection carries no quality metric.
        extra: Collection-specific properties kept for diagnostics.
    """

    scene_id: str
    acquisition_date: datetime
    polarization_mode: str = ""
    quality_metric: float = 0.0
    extra: dict[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        check_non_empty("SceneCandidate", "scene_id", self.scene_id)
        check_range("SceneCandidate", "quality_metric", self.quality_metric, 0, 100)

    @property
    def date(self) -> str:
        """Acquisition date as ``YYYY-MM-DD``."""
        return self.acquisition_date.date().isoformat()


@dataclass(frozen=True, slots=True)
class CatalogResult:
    """Descriptors aggregated from one paginated catalog search.

    ``truncated`` is set when the item cap stopped pagination before the
    catalog was exhausted.
    """

    candidates: list[SceneCandidate] = field(default_factory=list)
    truncated: bool = False


@dataclass(frozen=True, slots=True)
class AcquisitionMode:
    """Polarisation and instrument mode decoded from a scene identifier.

    Attributes:
        primary_polarization: Co-polarised channel (``"VV"`` or ``"HH"``).
        polarizations: All recorded channels, co-polarised first.
        instrument_mode: Acquisition mode (``"IW"``, ``"EW"``, ``"SM"``, ``"WV"``).
        band_count: Number of recorded channels.
    """

    primary_polarization: str
    polarizations: tuple[str, ...]
    instrument_mode: str
    band_count: int

    def __post_init__(self) -> None:
        if self.band_count != len(self.polarizations):
            raise ModelValidationError(
                "AcquisitionMode",
                "band_count",
                self.band_count,
                f"must equal the number of polarizations ({len(self.polarizations)})",
            )

    @property
    def is_dual(self) -> bool:
        return self.band_count == 2

    @property
    def polarization_code(self) -> str:
        """Catalog filter code: ``D``/``S`` followed by ``V``/``H``."""
        return ("D" if self.is_dual else "S") + self.primary_polarization[0]

    def to_dict(self) -> dict[str, object]:
        return {
            "primaryPolarization": self.primary_polarization,
            "polarizations": list(self.polarizations),
            "instrumentMode": self.instrument_mode,
            "bandCount": self.band_count,
        }


# ---------------------------------------------------------------------------
# Fallback policy
# ---------------------------------------------------------------------------


class FallbackTier(enum.Enum):
    """Date-selection strategies, in the order the resolver tries them.

    Values:
        EXACT:         The requested date itself.
        CURATED:       Historically reliable dates for the target region.
        NEIGHBOURHOOD: Catalog dates within ±N days, nearest first.
        RELAXED:       Same window with a relaxed cloud cover ceiling.
    """

    EXACT = "exact"
    CURATED = "curated"
    NEIGHBOURHOOD = "neighbourhood"
    RELAXED = "relaxed"


DEFAULT_TIERS: tuple[FallbackTier, ...] = (
    FallbackTier.EXACT,
    FallbackTier.CURATED,
    FallbackTier.NEIGHBOURHOOD,
    FallbackTier.RELAXED,
)


@dataclass(frozen=True, slots=True)
class FallbackPolicy:
    """Ordered fallback strategies and their parameters.

    Attributes:
        tiers: Strategies to try; the resolver always evaluates them in
            the canonical ``DEFAULT_TIERS`` order, skipping absent ones.
        neighbourhood_days: Half-width of the neighbourhood window.
        max_cloud_cover_pct: Cloud cover ceiling for the strict tiers.
        relaxed_max_cloud_cover_pct: Cloud cover ceiling for ``RELAXED``.
        min_payload_bytes: Payloads at or below this size are rejected.
    """

    tiers: tuple[FallbackTier, ...] = DEFAULT_TIERS
    neighbourhood_days: int = 15
    max_cloud_cover_pct: float = 20.0
    relaxed_max_cloud_cover_pct: float = 60.0
    min_payload_bytes: int = 1024

    def __post_init__(self) -> None:
        check_min("FallbackPolicy", "neighbourhood_days", self.neighbourhood_days, 0)
        check_range("FallbackPolicy", "max_cloud_cover_pct", self.max_cloud_cover_pct, 0, 100)
        check_range(
            "FallbackPolicy",
            "relaxed_max_cloud_cover_pct",
            self.relaxed_max_cloud_cover_pct,
            0,
            100,
        )
        check_min("FallbackPolicy", "min_payload_bytes", self.min_payload_bytes, 0)

    def ordered_tiers(self) -> list[FallbackTier]:
        """Return the enabled tiers in fixed priority order."""
        return [tier for tier in DEFAULT_TIERS if tier in self.tiers]


# ---------------------------------------------------------------------------
# Resolution outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RenderedPayload:
    """Bytes returned by the imagery service for one render call."""

    content: bytes
    content_type: str = "image/png"

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass(frozen=True, slots=True)
class AttemptedDate:
    """One date the resolver tried, and the tier that proposed it."""

    date: str
    tier: FallbackTier

    def to_dict(self) -> dict[str, str]:
        return {"date": self.date, "tier": self.tier.value}


@dataclass(frozen=True, slots=True)
class ResolvedScene:
    """Successful outcome of the fallback cascade.

    Attributes:
        requested_date: The date the caller asked for.
        used_date: The date whose payload was accepted.
        tier: The tier that produced ``used_date``.
        payload: The accepted rendered payload.
        scene_id: Catalog identifier for ``used_date`` when the tier
            consulted the catalog, else empty.
        attempted: Every date tried, in order, including the accepted one.
        warnings: Human-readable notes about fallbacks taken.
    """

    requested_date: str
    used_date: str
    tier: FallbackTier
    payload: RenderedPayload
    scene_id: str = ""
    attempted: list[AttemptedDate] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        return self.tier is not FallbackTier.EXACT
