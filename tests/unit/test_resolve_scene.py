"""Unit tests for catalog scene resolution and the fallback cascade.

The imagery service is replaced by an in-memory fake; renders are an
``AsyncMock`` whose payload depends on the date asked for.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest

from sentinel_scene.activities.resolve_scene import NoCoverageFound, SceneResolver
from sentinel_scene.core.config import ServiceConfig
from sentinel_scene.core.exceptions import PermanentError
from sentinel_scene.models.geometry import BoundingBox
from sentinel_scene.models.scene import (
    CatalogResult,
    FallbackPolicy,
    FallbackTier,
    RenderedPayload,
    SceneCandidate,
)
from sentinel_scene.providers.base import EmptyResult, ImageryService, UpstreamServiceError

CENTRAL_CHILE_BBOX = BoundingBox(-70.6, -33.5, -70.5, -33.4)
OCEAN_BBOX = BoundingBox(-140.0, -10.0, -139.9, -9.9)

GOOD = RenderedPayload(content=b"\x89PNG" + b"x" * 4096)
TINY = RenderedPayload(content=b"\x89PNG" + b"x" * 10)


def _candidate(day: str, cloud: float = 5.0, scene_id: str = "", pol: str = "") -> SceneCandidate:
    return SceneCandidate(
        scene_id=scene_id or f"S2_{day}",
        acquisition_date=datetime.fromisoformat(f"{day}T14:30:00+00:00").astimezone(UTC),
        polarization_mode=pol,
        quality_metric=cloud,
    )


class FakeImageryService(ImageryService):
    """Catalog returns canned candidates; records every search."""

    name = "fake"

    def __init__(
        self,
        candidates: list[SceneCandidate] | None = None,
        *,
        relaxed_candidates: list[SceneCandidate] | None = None,
        truncated: bool = False,
    ) -> None:
        self.candidates = candidates or []
        self.relaxed_candidates = relaxed_candidates
        self.truncated = truncated
        self.searches: list[dict[str, Any]] = []

    async def search_catalog(
        self,
        bbox: BoundingBox,
        time_window: tuple[str, str],
        *,
        collection: str,
        max_cloud_cover_pct: float | None = None,
        limit: int | None = None,
    ) -> CatalogResult:
        self.searches.append(
            {
                "bbox": bbox,
                "window": time_window,
                "collection": collection,
                "cloud": max_cloud_cover_pct,
                "limit": limit,
            }
        )
        pool = self.candidates
        if self.relaxed_candidates is not None and (max_cloud_cover_pct or 0) > 20:
            pool = self.relaxed_candidates
        return CatalogResult(candidates=list(pool), truncated=self.truncated)

    async def render(self, payload: dict[str, Any]) -> RenderedPayload:  # pragma: no cover
        raise NotImplementedError


def _renderer(payloads: dict[str, RenderedPayload | Exception]) -> AsyncMock:
    """AsyncMock render(date, cloud) returning per-date payloads (TINY by default)."""

    async def render(day: str, cloud: float) -> RenderedPayload:
        result = payloads.get(day, TINY)
        if isinstance(result, Exception):
            raise result
        return result

    return AsyncMock(side_effect=render)


def _resolver(service: FakeImageryService, **config: Any) -> SceneResolver:
    return SceneResolver(service, ServiceConfig(**config))


class TestExactTier:
    """Coverage on the requested date short-circuits the cascade."""

    @pytest.mark.asyncio()
    async def test_exact_date_used_without_catalog(self) -> None:
        service = FakeImageryService([_candidate("2023-07-03")])
        render = _renderer({"2023-07-01": GOOD})

        resolved = await _resolver(service).resolve_scene(CENTRAL_CHILE_BBOX, "2023-07-01", render)

        assert resolved.used_date == "2023-07-01"
        assert resolved.tier is FallbackTier.EXACT
        assert resolved.used_fallback is False
        assert resolved.warnings == []
        assert service.searches == []
        render.assert_awaited_once_with("2023-07-01", 20.0)

    @pytest.mark.asyncio()
    async def test_payload_must_exceed_minimum(self) -> None:
        """A payload exactly at the threshold is rejected."""
        at_threshold = RenderedPayload(content=b"x" * 1024)
        service = FakeImageryService()
        render = _renderer({"2023-07-01": at_threshold, "2023-01-15": GOOD})

        resolved = await _resolver(service).resolve_scene(CENTRAL_CHILE_BBOX, "2023-07-01", render)

        assert resolved.used_date == "2023-01-15"


class TestCuratedTier:
    """Curated regional dates are tried after the exact date."""

    @pytest.mark.asyncio()
    async def test_curated_fallback_with_warning(self) -> None:
        """2023-07-01 has nothing; curated 2023-01-15 does."""
        service = FakeImageryService()
        render = _renderer({"2023-01-15": GOOD})

        resolved = await _resolver(service).resolve_scene(CENTRAL_CHILE_BBOX, "2023-07-01", render)

        assert resolved.used_date == "2023-01-15"
        assert resolved.tier is FallbackTier.CURATED
        assert any("2023-07-01" in w for w in resolved.warnings)
        assert [a.date for a in resolved.attempted] == ["2023-07-01", "2023-01-15"]
        assert service.searches == []

    def test_region_from_bbox_centre(self) -> None:
        dates = SceneResolver.curated_dates_for(CENTRAL_CHILE_BBOX)
        assert dates[0] == "2023-01-15"
        assert "2023-02-14" in dates

    def test_default_region_elsewhere(self) -> None:
        dates = SceneResolver.curated_dates_for(OCEAN_BBOX)
        assert dates == ["2023-01-15", "2023-04-15", "2023-07-15", "2023-10-15"]

    def test_shared_region_edge_goes_to_first_match(self) -> None:
        on_edge = BoundingBox(-70.25, -27.75, -69.75, -27.25)
        assert on_edge.contains(*on_edge.centre)
        assert SceneResolver.curated_dates_for(on_edge)[0] == "2023-04-10"

    def test_region_override(self) -> None:
        dates = SceneResolver.curated_dates_for(OCEAN_BBOX, region="southern_chile")
        assert dates[0] == "2023-02-04"

    @pytest.mark.asyncio()
    async def test_curated_skips_already_attempted(self) -> None:
        """Requesting a curated date does not try it twice."""
        service = FakeImageryService()
        render = _renderer({})
        policy = FallbackPolicy(tiers=(FallbackTier.EXACT, FallbackTier.CURATED))

        with pytest.raises(NoCoverageFound) as exc_info:
            await _resolver(service).resolve_scene(
                CENTRAL_CHILE_BBOX, "2023-01-15", render, policy
            )

        dates = exc_info.value.attempted_dates
        assert dates.count("2023-01-15") == 1


class TestNeighbourhoodTier:
    """Catalog dates within ±N days, nearest first."""

    @pytest.mark.asyncio()
    async def test_nearest_first_tie_goes_earlier(self) -> None:
        service = FakeImageryService(
            [_candidate("2023-07-04"), _candidate("2023-06-28"), _candidate("2023-07-10")]
        )
        render = _renderer({"2023-06-28": GOOD, "2023-07-04": GOOD})
        policy = FallbackPolicy(tiers=(FallbackTier.NEIGHBOURHOOD,))

        resolved = await _resolver(service).resolve_scene(
            OCEAN_BBOX, "2023-07-01", render, policy
        )

        # 06-28 and 07-04 are both 3 days away; the earlier wins.
        assert resolved.used_date == "2023-06-28"
        assert resolved.tier is FallbackTier.NEIGHBOURHOOD
        assert resolved.scene_id == "S2_2023-06-28"

    @pytest.mark.asyncio()
    async def test_window_uses_configured_days(self) -> None:
        service = FakeImageryService()
        policy = FallbackPolicy(tiers=(FallbackTier.NEIGHBOURHOOD,), neighbourhood_days=10)

        with pytest.raises(NoCoverageFound):
            await _resolver(service).resolve_scene(
                OCEAN_BBOX, "2023-07-01", _renderer({}), policy
            )

        assert service.searches[0]["window"] == ("2023-06-21", "2023-07-11")
        assert service.searches[0]["cloud"] == 20.0
        assert service.searches[0]["limit"] == 500


class TestRelaxedTier:
    """Relaxed cloud ceiling re-queries and re-renders."""

    @pytest.mark.asyncio()
    async def test_relaxed_retries_requested_date_first(self) -> None:
        calls: list[tuple[str, float]] = []

        async def render(day: str, cloud: float) -> RenderedPayload:
            calls.append((day, cloud))
            return GOOD if cloud == 60.0 else TINY

        service = FakeImageryService()
        resolved = await _resolver(service).resolve_scene(
            OCEAN_BBOX, "2023-07-01", AsyncMock(side_effect=render)
        )

        assert resolved.tier is FallbackTier.RELAXED
        assert resolved.used_date == "2023-07-01"
        assert calls[-1] == ("2023-07-01", 60.0)
        assert any("relaxed" in w for w in resolved.warnings)

    @pytest.mark.asyncio()
    async def test_relaxed_uses_relaxed_catalog_search(self) -> None:
        service = FakeImageryService(
            [],
            relaxed_candidates=[_candidate("2023-07-05", cloud=45.0)],
        )
        async def relaxed_only(day: str, cloud: float) -> RenderedPayload:
            if day == "2023-07-05" and cloud == 60.0:
                return GOOD
            return TINY

        resolved = await _resolver(service).resolve_scene(
            OCEAN_BBOX, "2023-07-01", AsyncMock(side_effect=relaxed_only)
        )

        assert resolved.used_date == "2023-07-05"
        assert [s["cloud"] for s in service.searches] == [20.0, 60.0]


class TestExhaustion:
    """Every tier exhausted → NoCoverageFound with attempted dates."""

    @pytest.mark.asyncio()
    async def test_attempted_dates_reported_in_order(self) -> None:
        service = FakeImageryService([_candidate("2023-07-03")])

        with pytest.raises(NoCoverageFound) as exc_info:
            await _resolver(service).resolve_scene(OCEAN_BBOX, "2023-07-01", _renderer({}))

        err = exc_info.value
        tiers = [a.tier for a in err.attempted]
        assert err.attempted_dates[0] == "2023-07-01"
        assert tiers.index(FallbackTier.CURATED) < tiers.index(FallbackTier.NEIGHBOURHOOD)
        assert tiers.index(FallbackTier.NEIGHBOURHOOD) < tiers.index(FallbackTier.RELAXED)
        assert "2023-07-03" in err.attempted_dates
        assert err.requested_date == "2023-07-01"
        assert isinstance(err, PermanentError)
        assert err.code == "NO_COVERAGE"

    @pytest.mark.asyncio()
    async def test_suggestions_catalog_then_curated(self) -> None:
        service = FakeImageryService([_candidate("2023-07-03")])

        with pytest.raises(NoCoverageFound) as exc_info:
            await _resolver(service).resolve_scene(OCEAN_BBOX, "2023-07-01", _renderer({}))

        suggested = exc_info.value.suggested_dates
        assert suggested[0] == "2023-07-03"
        assert suggested[1:] == ["2023-01-15", "2023-04-15", "2023-07-15", "2023-10-15"]

    @pytest.mark.asyncio()
    async def test_empty_result_counts_as_no_coverage(self) -> None:
        service = FakeImageryService()
        render = _renderer({"2023-07-01": EmptyResult("fake", "process"), "2023-01-15": GOOD})

        resolved = await _resolver(service).resolve_scene(CENTRAL_CHILE_BBOX, "2023-07-01", render)

        assert resolved.used_date == "2023-01-15"

    @pytest.mark.asyncio()
    async def test_upstream_error_propagates(self) -> None:
        service = FakeImageryService()
        error = UpstreamServiceError("fake", "process", status_code=500, upstream_message="boom")
        render = _renderer({"2023-07-01": error})

        with pytest.raises(UpstreamServiceError, match="boom"):
            await _resolver(service).resolve_scene(CENTRAL_CHILE_BBOX, "2023-07-01", render)

        render.assert_awaited_once()


class TestFindDates:
    """find_dates: dedupe by date, newest first, optional predicate."""

    @pytest.mark.asyncio()
    async def test_dedupes_and_sorts_descending(self) -> None:
        service = FakeImageryService(
            [
                _candidate("2023-07-01", cloud=30.0, scene_id="a"),
                _candidate("2023-07-05"),
                _candidate("2023-07-01", cloud=3.0, scene_id="b"),
                _candidate("2023-06-20"),
            ]
        )

        found = await _resolver(service).find_dates(OCEAN_BBOX, ("2023-06-01", "2023-07-31"))

        assert [c.date for c in found] == ["2023-07-05", "2023-07-01", "2023-06-20"]
        assert found[1].scene_id == "b"

    @pytest.mark.asyncio()
    async def test_filter_predicate(self) -> None:
        service = FakeImageryService(
            [_candidate("2023-07-01", pol="DV"), _candidate("2023-07-02", pol="SV")]
        )

        found = await _resolver(service).find_dates(
            OCEAN_BBOX,
            ("2023-06-01", "2023-07-31"),
            filter_predicate=lambda c: c.polarization_mode == "DV",
        )

        assert [c.date for c in found] == ["2023-07-01"]

    @pytest.mark.asyncio()
    async def test_cap_passed_and_truncation_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        service = FakeImageryService([_candidate("2023-07-01")], truncated=True)

        with caplog.at_level(logging.WARNING, logger="sentinel_scene.activities.resolve_scene"):
            await _resolver(service, catalog_max_items=50, catalog_page_size=10).find_dates(
                OCEAN_BBOX, ("2023-06-01", "2023-07-31")
            )

        assert service.searches[0]["limit"] == 50
        assert "capped" in caplog.text


class TestSuggestDates:
    """suggest_dates: dedupe, catalog first, at most five."""

    def test_limit_and_order(self) -> None:
        suggested = SceneResolver.suggest_dates(
            ["2023-07-03", "2023-06-29", "2023-07-03"],
            ["2023-01-15", "2023-06-29", "2023-04-15", "2023-07-15", "2023-10-15"],
        )
        assert suggested == ["2023-07-03", "2023-06-29", "2023-01-15", "2023-04-15", "2023-07-15"]
