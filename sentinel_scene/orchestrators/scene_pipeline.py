"""Per-request scene pipeline.

Coordinates the steps behind each HTTP endpoint:

1. Analyse geometry: bbox, area, output pixel size
2. Resolve a usable date through the fallback cascade, rendering each
   candidate date through the single request builder
3. For images: encode the accepted payload as a data URL
4. For statistics: decode the raw raster and aggregate backscatter in dB

With a comparison date, the two resolutions run as sibling tasks in an
``asyncio.TaskGroup``; the first hard failure cancels the other.

Expected outcomes are responses, not errors: ``NoCoverageFound`` becomes
``hasCoverage: false`` with suggested dates.
"""

from __future__ import annotations

import asyncio
import base64
import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from sentinel_scene.activities.aggregate_raster import decode_payload, summarise_raster
from sentinel_scene.activities.analyze_geometry import analyze_bbox, analyze_polygon
from sentinel_scene.activities.classify_mode import classify_mode
from sentinel_scene.activities.resolve_scene import NoCoverageFound, SceneResolver
from sentinel_scene.core.exceptions import ValidationError
from sentinel_scene.models.response import DateStatistics, SceneResponse
from sentinel_scene.models.scene import FallbackTier
from sentinel_scene.rendering.classification import (
    Season,
    build_rules,
    class_distribution,
    classify_raster,
    season_for_month,
    thresholds_for,
)
from sentinel_scene.rendering.request_builder import build_process_request, day_window
from sentinel_scene.rendering.variants import (
    RADAR_CLASSIFICATION,
    RADAR_STATS,
    TRUE_COLOR,
    get_variant,
)

if TYPE_CHECKING:
    from sentinel_scene.activities.resolve_scene import CandidateFilter, RenderFn
    from sentinel_scene.core.config import ServiceConfig
    from sentinel_scene.models.geometry import GeometryAnalysis
    from sentinel_scene.models.payloads import SceneQuery
    from sentinel_scene.models.raster import RasterStatistics
    from sentinel_scene.models.scene import (
        AcquisitionMode,
        FallbackPolicy,
        RenderedPayload,
        ResolvedScene,
        SceneCandidate,
    )
    from sentinel_scene.providers.base import ImageryService
    from sentinel_scene.rendering.classification import ClassificationThresholds
    from sentinel_scene.rendering.variants import RenderVariant

logger = logging.getLogger("sentinel_scene.orchestrators.scene_pipeline")

# Radar renders ignore cloud cover, so the relaxed tier would repeat them.
RADAR_TIERS: tuple[FallbackTier, ...] = (
    FallbackTier.EXACT,
    FallbackTier.CURATED,
    FallbackTier.NEIGHBOURHOOD,
)


class UnsupportedVariantError(ValidationError):
    """Raised when an endpoint is asked for a variant it cannot serve."""

    default_stage = "scene_pipeline"
    default_code = "UNSUPPORTED_VARIANT"


@dataclass
class _DateResult:
    """Resolution and statistics for one date of a statistics request."""

    resolved: ResolvedScene
    vv: RasterStatistics
    vh: RasterStatistics
    land_cover: dict[str, float] = field(default_factory=dict)

    def statistics(self) -> dict[str, object]:
        return {
            "vv": self.vv.to_dict(),
            "vh": self.vh.to_dict(),
            "landCover": self.land_cover,
        }


class ScenePipeline:
    """Runs scene requests against one imagery service.

    Args:
        provider: Imagery service adapter.
        config: Service configuration.
    """

    def __init__(self, provider: ImageryService, config: ServiceConfig) -> None:
        self._provider = provider
        self._config = config

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def render_scene(
        self,
        query: SceneQuery,
        *,
        default_variant: str = TRUE_COLOR,
    ) -> SceneResponse:
        """Render an image variant for the resolved date."""
        analysis = self.analyze(query)
        thresholds = self.thresholds_for_query(query, analysis)
        variant = get_variant(query.variant or default_variant, thresholds=thresholds)
        if variant.is_raw:
            msg = f"Variant {variant.name!r} returns a raw raster, not an image"
            raise UnsupportedVariantError(msg)

        resolver = self._resolver_for(variant)
        try:
            resolved = await resolver.resolve_scene(
                analysis.bbox,
                query.requested_date,
                self._renderer(analysis, variant, query),
                self._policy_for(resolver, variant),
            )
        except NoCoverageFound as exc:
            return self._no_coverage(exc, analysis, variant)

        warnings = [*analysis.warnings, *resolved.warnings]
        mode = None
        if variant.is_radar:
            mode = await self._acquisition_mode(resolver, analysis, resolved)
            if mode is not None and variant.polarization == "DV" and not mode.is_dual:
                warnings.append(
                    f"Scene for {resolved.used_date} is single-polarisation "
                    f"({mode.polarization_code}); dual-polarisation classes may be unreliable"
                )

        logger.info(
            "Scene rendered | variant=%s | requested=%s | used=%s | tier=%s | bytes=%d",
            variant.name,
            query.requested_date,
            resolved.used_date,
            resolved.tier.value,
            resolved.payload.size_bytes,
        )
        return SceneResponse(
            image=_data_url(resolved.payload),
            requested_date=query.requested_date,
            resolved_date=resolved.used_date,
            tier=resolved.tier.value,
            used_bbox=analysis.bbox.to_list(),
            width=analysis.dimensions.width,
            height=analysis.dimensions.height,
            variant=variant.name,
            acquisition_mode=mode.to_dict() if mode is not None else None,
            attempted_dates=[a.to_dict() for a in resolved.attempted],
            warnings=warnings,
        )

    async def classify_scene(self, query: SceneQuery) -> SceneResponse:
        """Render the radar land-cover classification for the resolved date."""
        return await self.render_scene(dataclasses.replace(query, variant=RADAR_CLASSIFICATION))

    async def radar_statistics(self, query: SceneQuery) -> SceneResponse:
        """Backscatter statistics for the resolved date, optionally compared."""
        variant = get_variant(RADAR_STATS)
        analysis = self.analyze(query)
        thresholds = self.thresholds_for_query(query, analysis)

        try:
            if query.compare_date is None:
                primary = await self._statistics_for(
                    analysis, variant, query, query.requested_date, thresholds
                )
                comparison = None
            else:
                primary, comparison = await self._compare(analysis, variant, query, thresholds)
        except NoCoverageFound as exc:
            return self._no_coverage(exc, analysis, variant)

        warnings = [*analysis.warnings, *primary.resolved.warnings]
        comparison_doc = None
        delta_db = None
        if comparison is not None:
            warnings.extend(comparison.resolved.warnings)
            comparison_doc = DateStatistics(
                requested_date=comparison.resolved.requested_date,
                resolved_date=comparison.resolved.used_date,
                tier=comparison.resolved.tier.value,
                statistics=comparison.statistics(),
            )
            if primary.vv.mean is not None and comparison.vv.mean is not None:
                delta_db = comparison.vv.mean - primary.vv.mean
        elif query.compare_date is not None:
            warnings.append(f"No usable imagery for comparison date {query.compare_date}")

        return SceneResponse(
            requested_date=query.requested_date,
            resolved_date=primary.resolved.used_date,
            tier=primary.resolved.tier.value,
            used_bbox=analysis.bbox.to_list(),
            width=analysis.dimensions.width,
            height=analysis.dimensions.height,
            variant=variant.name,
            statistics=primary.statistics(),
            comparison=comparison_doc,
            delta_db=delta_db,
            attempted_dates=[a.to_dict() for a in primary.resolved.attempted],
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def analyze(self, query: SceneQuery) -> GeometryAnalysis:
        """Geometry analysis for the query's polygon or bbox."""
        resolution = query.resolution_m or self._config.target_resolution_m
        if query.polygon is not None:
            return analyze_polygon(
                query.polygon,
                resolution_m=resolution,
                max_area_km2=self._config.max_area_km2,
            )
        if query.bbox is None:
            msg = "A polygon or bbox is required"
            raise ValidationError(msg, stage="scene_pipeline", code="MISSING_GEOMETRY")
        return analyze_bbox(
            query.bbox,
            resolution_m=resolution,
            max_area_km2=self._config.max_area_km2,
        )

    @staticmethod
    def thresholds_for_query(
        query: SceneQuery, analysis: GeometryAnalysis
    ) -> ClassificationThresholds:
        """Seasonal thresholds when requested, otherwise the annual profile.

        The hemisphere comes from the centre of the analysed bbox, so the
        geometry must already be validated.
        """
        if not query.seasonal:
            return thresholds_for(Season.ANNUAL)

        month = date.fromisoformat(query.requested_date).month
        latitude = analysis.bbox.centre[1]
        return thresholds_for(season_for_month(month, southern_hemisphere=latitude < 0))

    def _resolver_for(self, variant: RenderVariant) -> SceneResolver:
        predicate = None
        if variant.polarization:
            predicate = _has_polarization(variant.polarization)
        return SceneResolver(
            self._provider,
            self._config,
            collection=variant.collection,
            filter_predicate=predicate,
        )

    @staticmethod
    def _policy_for(resolver: SceneResolver, variant: RenderVariant) -> FallbackPolicy:
        policy = resolver.default_policy()
        if not variant.is_radar:
            return policy
        return dataclasses.replace(policy, tiers=RADAR_TIERS)

    def _renderer(
        self,
        analysis: GeometryAnalysis,
        variant: RenderVariant,
        query: SceneQuery,
    ) -> RenderFn:
        """Bind everything but the date into a render coroutine for the resolver."""
        polygon = analysis.polygon if query.polygon is not None else None

        async def render(candidate_date: str, max_cloud_cover_pct: float) -> RenderedPayload:
            payload = build_process_request(
                analysis.bbox,
                variant,
                day_window(candidate_date),
                analysis.dimensions,
                polygon=polygon,
                max_cloud_cover_pct=max_cloud_cover_pct,
            )
            return await self._provider.render(payload)

        return render

    async def _acquisition_mode(
        self,
        resolver: SceneResolver,
        analysis: GeometryAnalysis,
        resolved: ResolvedScene,
    ) -> AcquisitionMode | None:
        """Decode the radar mode of the accepted scene, looking its id up if needed."""
        scene_id = resolved.scene_id
        if not scene_id:
            found = await resolver.find_dates(
                analysis.bbox,
                (resolved.used_date, resolved.used_date),
                filter_predicate=_accept_all,
            )
            if not found:
                return None
            scene_id = found[0].scene_id
        return classify_mode(scene_id)

    async def _statistics_for(
        self,
        analysis: GeometryAnalysis,
        variant: RenderVariant,
        query: SceneQuery,
        requested_date: str,
        thresholds: ClassificationThresholds,
    ) -> _DateResult:
        resolver = self._resolver_for(variant)
        resolved = await resolver.resolve_scene(
            analysis.bbox,
            requested_date,
            self._renderer(analysis, variant, query),
            self._policy_for(resolver, variant),
        )
        raster = decode_payload(
            resolved.payload.content,
            resolved.payload.content_type,
            band_count=variant.output_bands,
            sample_type=variant.sample_type,
            width=analysis.dimensions.width,
            height=analysis.dimensions.height,
        )
        labels = classify_raster(raster, build_rules(thresholds))
        return _DateResult(
            resolved=resolved,
            vv=summarise_raster(raster, value_band=0, mask_band=2),
            vh=summarise_raster(raster, value_band=1, mask_band=2),
            land_cover=class_distribution(labels),
        )

    async def _compare(
        self,
        analysis: GeometryAnalysis,
        variant: RenderVariant,
        query: SceneQuery,
        thresholds: ClassificationThresholds,
    ) -> tuple[_DateResult, _DateResult | None]:
        """Resolve both dates concurrently; a missing comparison date is not fatal."""
        compare_date = query.compare_date or query.requested_date

        async def optional_comparison() -> _DateResult | None:
            try:
                return await self._statistics_for(
                    analysis, variant, query, compare_date, thresholds
                )
            except NoCoverageFound:
                logger.warning("No coverage for comparison date %s", compare_date)
                return None

        try:
            async with asyncio.TaskGroup() as group:
                primary_task = group.create_task(
                    self._statistics_for(
                        analysis, variant, query, query.requested_date, thresholds
                    )
                )
                comparison_task = group.create_task(optional_comparison())
        except ExceptionGroup as errors:
            raise errors.exceptions[0] from None

        return primary_task.result(), comparison_task.result()

    def _no_coverage(
        self,
        exc: NoCoverageFound,
        analysis: GeometryAnalysis,
        variant: RenderVariant,
    ) -> SceneResponse:
        return SceneResponse(
            has_coverage=False,
            requested_date=exc.requested_date,
            used_bbox=analysis.bbox.to_list(),
            width=analysis.dimensions.width,
            height=analysis.dimensions.height,
            variant=variant.name,
            suggested_dates=exc.suggested_dates,
            attempted_dates=[a.to_dict() for a in exc.attempted],
            warnings=[*analysis.warnings, exc.message],
        )


def _data_url(payload: RenderedPayload) -> str:
    media_type = payload.content_type.split(";")[0].strip() or "application/octet-stream"
    encoded = base64.b64encode(payload.content).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


def _has_polarization(code: str) -> CandidateFilter:
    def predicate(candidate: SceneCandidate) -> bool:
        return candidate.polarization_mode == code

    return predicate


def _accept_all(candidate: SceneCandidate) -> bool:  # noqa: ARG001
    return True
