"""Tests for the ImageryService ABC and provider exceptions.

Covers: ABC enforcement, ProviderError formatting, and which upstream
statuses are retryable.
"""

from __future__ import annotations

import unittest
from typing import Any

from sentinel_scene.models.geometry import BoundingBox
from sentinel_scene.models.scene import CatalogResult, RenderedPayload
from sentinel_scene.providers.base import (
    ImageryService,
    ProviderError,
    UpstreamServiceError,
    is_retryable_status,
)

# ---------------------------------------------------------------------------
# ABC enforcement
# ---------------------------------------------------------------------------


class TestABCEnforcement(unittest.IsolatedAsyncioTestCase):
    """ImageryService cannot be instantiated directly."""

    def test_cannot_instantiate_abc(self) -> None:
        with self.assertRaises(TypeError):
            ImageryService()  # type: ignore[abstract]

    def test_incomplete_subclass_raises(self) -> None:
        """Subclass missing ``render`` cannot be instantiated."""

        class _Partial(ImageryService):
            async def search_catalog(self, bbox, time_window, **_kwargs):  # type: ignore[override]
                return CatalogResult()

        with self.assertRaises(TypeError):
            _Partial()  # type: ignore[abstract]

    async def test_complete_subclass_works(self) -> None:
        """Subclass implementing both operations works; aclose is a no-op."""

        class _Complete(ImageryService):
            name = "complete"

            async def search_catalog(
                self,
                bbox: BoundingBox,
                time_window: tuple[str, str],
                *,
                collection: str,
                max_cloud_cover_pct: float | None = None,
                limit: int | None = None,
            ) -> CatalogResult:
                return CatalogResult()

            async def render(self, payload: dict[str, Any]) -> RenderedPayload:
                return RenderedPayload(content=b"png")

        service = _Complete()
        assert (await service.render({})).content == b"png"
        await service.aclose()


# ---------------------------------------------------------------------------
# Provider exceptions
# ---------------------------------------------------------------------------


class TestProviderError(unittest.TestCase):
    """ProviderError formatting and attributes."""

    def test_str_includes_provider(self) -> None:
        err = ProviderError("sentinel_hub", "boom")
        assert str(err) == "[sentinel_hub] boom"
        assert err.provider == "sentinel_hub"
        assert err.retryable is False

    def test_upstream_transport_failure(self) -> None:
        err = UpstreamServiceError("sentinel_hub", "catalog")
        assert err.status_code is None
        assert err.retryable is True
        assert "transport failure" in str(err)

    def test_upstream_error_dict(self) -> None:
        err = UpstreamServiceError(
            "sentinel_hub", "process", status_code=429, upstream_message="slow down"
        )
        payload = err.to_error_dict()
        assert payload["service"] == "process"
        assert payload["status_code"] == 429
        assert payload["upstream_message"] == "slow down"
        assert payload["retryable"] is True


class TestRetryableStatus(unittest.TestCase):
    """is_retryable_status decision table."""

    def test_retryable(self) -> None:
        for status in (None, 429, 500, 502, 503, 504):
            with self.subTest(status=status):
                assert is_retryable_status(status) is True

    def test_not_retryable(self) -> None:
        for status in (400, 401, 403, 404, 422):
            with self.subTest(status=status):
                assert is_retryable_status(status) is False
