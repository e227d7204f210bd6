"""Catalog scene resolution with a tiered date fallback.

Finds a date whose render is usable for a bounding box, trying the
tiers of a ``FallbackPolicy`` strictly in order and stopping at the
first success:

1. ``EXACT``: the requested date (no catalog call).
2. ``CURATED``: historically reliable dates for the region containing
   the bbox centre (``core.constants.CURATED_DATES``).
3. ``NEIGHBOURHOOD``: catalog dates within ±N days, nearest first; ties
   go to the earlier date.
4. ``RELAXED``: the requested date, then catalog dates in the same
   window, re-queried and re-rendered with the relaxed cloud ceiling.

A render is accepted when its payload is larger than
``min_payload_bytes``; smaller payloads are the service's way of saying
"nothing here".  ``EmptyResult`` is treated the same way.  Any
``UpstreamServiceError`` propagates at once; there is no retry here.

When every tier is exhausted, ``NoCoverageFound`` carries each attempted
date and up to five suggested alternatives.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import TYPE_CHECKING

from sentinel_scene.core.constants import (
    CURATED_DATES,
    CURATED_REGIONS,
    MAX_SUGGESTED_DATES,
    SENTINEL2_L2A,
)
from sentinel_scene.core.exceptions import PermanentError
from sentinel_scene.models.geometry import BoundingBox
from sentinel_scene.models.scene import (
    AttemptedDate,
    FallbackPolicy,
    FallbackTier,
    ResolvedScene,
    SceneCandidate,
)
from sentinel_scene.providers.base import EmptyResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sentinel_scene.core.config import ServiceConfig
    from sentinel_scene.models.scene import RenderedPayload
    from sentinel_scene.providers.base import ImageryService

    RenderFn = Callable[[str, float], Awaitable[RenderedPayload]]
    CandidateFilter = Callable[[SceneCandidate], bool]

logger = logging.getLogger("sentinel_scene.activities.resolve_scene")


class NoCoverageFound(PermanentError):
    """Every fallback tier was exhausted without a usable render.

    Attributes:
        requested_date: The date the caller asked for.
        attempted: Every date tried, in order, with its tier.
        suggested_dates: Alternatives worth offering to the caller.
    """

    default_stage = "resolve_scene"
    default_code = "NO_COVERAGE"

    def __init__(
        self,
        requested_date: str,
        attempted: list[AttemptedDate],
        suggested_dates: list[str] | None = None,
    ) -> None:
        self.requested_date = requested_date
        self.attempted = list(attempted)
        self.suggested_dates = list(suggested_dates or [])
        tried = ", ".join(a.date for a in self.attempted) or "none"
        super().__init__(f"No usable imagery for {requested_date} (attempted: {tried})")

    @property
    def attempted_dates(self) -> list[str]:
        return [a.date for a in self.attempted]


class SceneResolver:
    """Resolve a usable acquisition date for one collection.

    Args:
        provider: Imagery service used for catalog searches.
        config: Service configuration (policy defaults, catalog cap).
        collection: Catalog collection to search.
        filter_predicate: Optional filter applied to every catalog
            candidate (e.g. "dual polarisation only").
    """

    def __init__(
        self,
        provider: ImageryService,
        config: ServiceConfig,
        *,
        collection: str = SENTINEL2_L2A,
        filter_predicate: CandidateFilter | None = None,
    ) -> None:
        self._provider = provider
        self._config = config
        self._collection = collection
        self._filter = filter_predicate

    def default_policy(self) -> FallbackPolicy:
        """Policy built from configuration, with all four tiers enabled."""
        return FallbackPolicy(
            neighbourhood_days=self._config.fallback_window_days,
            max_cloud_cover_pct=self._config.max_cloud_cover_pct,
            relaxed_max_cloud_cover_pct=self._config.relaxed_max_cloud_cover_pct,
            min_payload_bytes=self._config.min_payload_bytes,
        )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def find_dates(
        self,
        bbox: BoundingBox,
        time_window: tuple[str, str],
        filter_predicate: CandidateFilter | None = None,
        max_cloud_cover_pct: float | None = None,
    ) -> list[SceneCandidate]:
        """Search the catalog and return one candidate per date, newest first.

        Pagination stops at ``CATALOG_MAX_ITEMS`` aggregated descriptors.
        When several scenes share a date, the one with the lowest quality
        metric (cloud cover) represents it.
        """
        result = await self._provider.search_catalog(
            bbox,
            time_window,
            collection=self._collection,
            max_cloud_cover_pct=max_cloud_cover_pct,
            limit=self._config.catalog_max_items,
        )
        if result.truncated:
            logger.warning(
                "Catalog results capped | window=%s/%s | cap=%d",
                time_window[0],
                time_window[1],
                self._config.catalog_max_items,
            )

        predicate = filter_predicate or self._filter
        by_date: dict[str, SceneCandidate] = {}
        for candidate in result.candidates:
            if predicate is not None and not predicate(candidate):
                continue
            current = by_date.get(candidate.date)
            if current is None or candidate.quality_metric < current.quality_metric:
                by_date[candidate.date] = candidate

        return sorted(by_date.values(), key=lambda c: c.date, reverse=True)

    # ------------------------------------------------------------------
    # Fallback cascade
    # ------------------------------------------------------------------

    async def resolve_scene(
        self,
        bbox: BoundingBox,
        requested_date: str,
        render: RenderFn,
        policy: FallbackPolicy | None = None,
        *,
        region: str | None = None,
    ) -> ResolvedScene:
        """Try each enabled tier in order until a render is accepted.

        Args:
            bbox: Area to resolve.
            requested_date: Target date (``YYYY-MM-DD``).
            render: ``render(date, max_cloud_cover_pct)`` coroutine
                returning the service payload for one date.
            policy: Fallback policy; ``default_policy()`` when ``None``.
            region: Curated region override; derived from the bbox
                centre when ``None``.

        Raises:
            NoCoverageFound: If every tier is exhausted.
            UpstreamServiceError: If any remote call fails.
        """
        policy = policy or self.default_policy()
        attempted: list[AttemptedDate] = []
        strict_tried: set[str] = set()
        scene_ids: dict[str, str] = {}
        catalog_dates: list[str] = []
        curated = self.curated_dates_for(bbox, region=region)
        window = _window(requested_date, policy.neighbourhood_days)

        for tier in policy.ordered_tiers():
            cloud = policy.max_cloud_cover_pct
            if tier is FallbackTier.EXACT:
                dates = [requested_date]
            elif tier is FallbackTier.CURATED:
                dates = [d for d in curated if d not in strict_tried]
            elif tier is FallbackTier.NEIGHBOURHOOD:
                found = await self.find_dates(bbox, window, max_cloud_cover_pct=cloud)
                scene_ids.update({c.date: c.scene_id for c in found})
                nearest = _nearest_first([c.date for c in found], requested_date)
                catalog_dates.extend(nearest)
                dates = [d for d in nearest if d not in strict_tried]
            else:
                cloud = policy.relaxed_max_cloud_cover_pct
                found = await self.find_dates(bbox, window, max_cloud_cover_pct=cloud)
                for c in found:
                    scene_ids.setdefault(c.date, c.scene_id)
                nearest = _nearest_first([c.date for c in found], requested_date)
                catalog_dates.extend(nearest)
                dates = [requested_date, *(d for d in nearest if d != requested_date)]

            for candidate_date in dates:
                attempted.append(AttemptedDate(candidate_date, tier))
                if tier is not FallbackTier.RELAXED:
                    strict_tried.add(candidate_date)

                payload = await self._try_render(render, candidate_date, cloud, tier)
                if payload is None or payload.size_bytes <= policy.min_payload_bytes:
                    if payload is not None:
                        logger.info(
                            "Payload below threshold | date=%s | tier=%s | bytes=%d",
                            candidate_date,
                            tier.value,
                            payload.size_bytes,
                        )
                    continue

                return self._resolved(
                    requested_date,
                    candidate_date,
                    tier,
                    payload,
                    scene_ids.get(candidate_date, ""),
                    attempted,
                )

        suggested = self.suggest_dates(catalog_dates, curated)
        logger.warning(
            "No coverage | requested=%s | attempted=%d | suggested=%s",
            requested_date,
            len(attempted),
            ",".join(suggested) or "none",
        )
        raise NoCoverageFound(requested_date, attempted, suggested)

    async def _try_render(
        self,
        render: RenderFn,
        candidate_date: str,
        cloud: float,
        tier: FallbackTier,
    ) -> RenderedPayload | None:
        try:
            return await render(candidate_date, cloud)
        except EmptyResult:
            logger.info("Empty render | date=%s | tier=%s", candidate_date, tier.value)
            return None

    def _resolved(
        self,
        requested_date: str,
        used_date: str,
        tier: FallbackTier,
        payload: RenderedPayload,
        scene_id: str,
        attempted: list[AttemptedDate],
    ) -> ResolvedScene:
        warnings: list[str] = []
        if used_date != requested_date or tier is not FallbackTier.EXACT:
            warnings.append(
                f"No usable imagery for {requested_date}; "
                f"using {used_date} ({tier.value} fallback)"
            )
            logger.warning(
                "Fallback used | requested=%s | used=%s | tier=%s",
                requested_date,
                used_date,
                tier.value,
            )
        else:
            logger.info("Exact date resolved | date=%s", used_date)

        return ResolvedScene(
            requested_date=requested_date,
            used_date=used_date,
            tier=tier,
            payload=payload,
            scene_id=scene_id,
            attempted=attempted,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Curated dates and suggestions
    # ------------------------------------------------------------------

    @staticmethod
    def curated_dates_for(bbox: BoundingBox, *, region: str | None = None) -> list[str]:
        """Curated dates for *region*, or for the region containing the bbox centre."""
        if region is None:
            lon, lat = bbox.centre
            region = next(
                (
                    name
                    for name, box in CURATED_REGIONS.items()
                    if BoundingBox(*box).contains(lon, lat)
                ),
                "default",
            )
        return list(CURATED_DATES.get(region, CURATED_DATES["default"]))

    @staticmethod
    def suggest_dates(
        catalog_dates: list[str],
        curated_dates: list[str],
        limit: int = MAX_SUGGESTED_DATES,
    ) -> list[str]:
        """Catalog dates first, then curated dates, without duplicates."""
        suggested: list[str] = []
        for candidate in (*catalog_dates, *curated_dates):
            if candidate not in suggested:
                suggested.append(candidate)
            if len(suggested) == limit:
                break
        return suggested


def _window(requested_date: str, days: int) -> tuple[str, str]:
    centre = date.fromisoformat(requested_date)
    delta = timedelta(days=days)
    return ((centre - delta).isoformat(), (centre + delta).isoformat())


def _nearest_first(dates: list[str], requested_date: str) -> list[str]:
    """Order *dates* by distance from *requested_date*; ties go to the earlier date."""
    target = date.fromisoformat(requested_date)

    def distance(value: str) -> tuple[int, str]:
        return (abs((date.fromisoformat(value) - target).days), value)

    return sorted(dict.fromkeys(dates), key=distance)
