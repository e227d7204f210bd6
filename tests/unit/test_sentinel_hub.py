"""Unit tests for the Sentinel Hub adapter.

The STAC client is patched at ``pystac_client.Client.open``; Process API
calls go through an ``httpx.MockTransport``.  No network access.
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from pystac_client.exceptions import APIError

from sentinel_scene.core.config import ServiceConfig
from sentinel_scene.core.constants import SENTINEL1_GRD, SENTINEL2_L2A
from sentinel_scene.models.geometry import BoundingBox
from sentinel_scene.providers.base import EmptyResult, UpstreamServiceError
from sentinel_scene.providers.sentinel_hub import SentinelHubAdapter

BBOX = BoundingBox(-70.6, -33.5, -70.5, -33.4)
OPEN_PATH = "sentinel_scene.providers.sentinel_hub.pystac_client.Client.open"
RENDER_PAYLOAD: dict[str, Any] = {
    "output": {"responses": [{"identifier": "default", "format": {"type": "image/png"}}]},
}


def _item(item_id: str, when: str, **properties: Any) -> SimpleNamespace:
    return SimpleNamespace(id=item_id, properties={"datetime": when, **properties})


def _tokens() -> MagicMock:
    tokens = MagicMock()
    tokens.get_token = AsyncMock(return_value="tok")
    return tokens


def _adapter(
    handler: Any = None,
    *,
    tokens: MagicMock | None = None,
    **config: Any,
) -> SentinelHubAdapter:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler or (lambda request: httpx.Response(200)))
    )
    return SentinelHubAdapter(
        ServiceConfig(client_id="id", client_secret="secret", **config),
        client=client,
        token_provider=tokens or _tokens(),
    )


def _mock_catalog(items: list[SimpleNamespace]) -> MagicMock:
    catalog = MagicMock()
    catalog.search.return_value.items.return_value = iter(items)
    return catalog


class TestSearchCatalog:
    """search_catalog: pystac-client search, capping, candidate parsing."""

    @pytest.mark.asyncio()
    async def test_optical_search_parameters(self) -> None:
        catalog = _mock_catalog(
            [_item("S2A_1", "2023-07-01T14:30:00Z", **{"eo:cloud_cover": 12.5})]
        )
        adapter = _adapter(catalog_page_size=50)

        with patch(OPEN_PATH, return_value=catalog) as open_mock:
            result = await adapter.search_catalog(
                BBOX,
                ("2023-06-16", "2023-07-16"),
                collection=SENTINEL2_L2A,
                max_cloud_cover_pct=20.0,
                limit=200,
            )

        open_mock.assert_called_once()
        assert open_mock.call_args.kwargs["headers"] == {"Authorization": "Bearer tok"}
        kwargs = catalog.search.call_args.kwargs
        assert kwargs["bbox"] == [-70.6, -33.5, -70.5, -33.4]
        assert kwargs["collections"] == [SENTINEL2_L2A]
        assert kwargs["datetime"] == "2023-06-16T00:00:00Z/2023-07-16T23:59:59Z"
        assert kwargs["limit"] == 50
        assert kwargs["max_items"] == 201
        assert kwargs["filter"]["args"][1] == 20.0
        assert kwargs["filter_lang"] == "cql2-json"

        assert result.truncated is False
        [candidate] = result.candidates
        assert candidate.scene_id == "S2A_1"
        assert candidate.date == "2023-07-01"
        assert candidate.quality_metric == 12.5
        assert candidate.polarization_mode == ""
        await adapter.aclose()

    @pytest.mark.asyncio()
    async def test_radar_search_has_no_cloud_filter(self) -> None:
        catalog = _mock_catalog(
            [
                _item("S1A_IW_GRDH_1SDV_20230701T232411_05EB4D", "2023-07-01T23:24:11Z"),
                _item("S1A_IW_GRDH_X", "2023-07-02T23:24:11Z", **{"s1:polarization": "SV"}),
            ]
        )
        adapter = _adapter()

        with patch(OPEN_PATH, return_value=catalog):
            result = await adapter.search_catalog(
                BBOX, ("2023-06-16", "2023-07-16"), collection=SENTINEL1_GRD, max_cloud_cover_pct=20
            )

        assert "filter" not in catalog.search.call_args.kwargs
        assert [c.polarization_mode for c in result.candidates] == ["DV", "SV"]
        await adapter.aclose()

    @pytest.mark.asyncio()
    async def test_cap_truncates(self) -> None:
        items = [_item(f"S2A_{i}", f"2023-07-{i + 1:02d}T10:00:00Z") for i in range(4)]
        adapter = _adapter(catalog_max_items=3, catalog_page_size=3)

        with patch(OPEN_PATH, return_value=_mock_catalog(items)):
            result = await adapter.search_catalog(
                BBOX, ("2023-07-01", "2023-07-31"), collection=SENTINEL2_L2A
            )

        assert result.truncated is True
        assert len(result.candidates) == 3
        await adapter.aclose()

    @pytest.mark.asyncio()
    async def test_unparseable_items_skipped(self) -> None:
        items = [
            SimpleNamespace(id="broken", properties={}),
            _item("S2A_ok", "2023-07-01T10:00:00Z"),
        ]
        adapter = _adapter()

        with patch(OPEN_PATH, return_value=_mock_catalog(items)):
            result = await adapter.search_catalog(
                BBOX, ("2023-07-01", "2023-07-31"), collection=SENTINEL2_L2A
            )

        assert [c.scene_id for c in result.candidates] == ["S2A_ok"]
        await adapter.aclose()

    @pytest.mark.asyncio()
    async def test_api_error_wrapped(self) -> None:
        adapter = _adapter()

        with (
            patch(OPEN_PATH, side_effect=APIError("catalog exploded")),
            pytest.raises(UpstreamServiceError, match="catalog exploded") as exc_info,
        ):
            await adapter.search_catalog(
                BBOX, ("2023-07-01", "2023-07-31"), collection=SENTINEL2_L2A
            )

        assert exc_info.value.service == "catalog"
        await adapter.aclose()

    @pytest.mark.asyncio()
    async def test_catalog_pages_use_http_timeout(self) -> None:
        adapter = _adapter(http_timeout_s=30.0)

        with patch(OPEN_PATH, return_value=_mock_catalog([])) as open_mock:
            await adapter.search_catalog(
                BBOX, ("2023-07-01", "2023-07-31"), collection=SENTINEL2_L2A
            )

        assert open_mock.call_args.kwargs["timeout"] == 30.0
        await adapter.aclose()

    @pytest.mark.asyncio()
    async def test_timed_out_page_is_transport_failure(self) -> None:
        catalog = MagicMock()
        catalog.search.return_value.items.side_effect = TimeoutError("read timed out")
        adapter = _adapter()

        with (
            patch(OPEN_PATH, return_value=catalog),
            pytest.raises(UpstreamServiceError, match="read timed out") as exc_info,
        ):
            await adapter.search_catalog(
                BBOX, ("2023-07-01", "2023-07-31"), collection=SENTINEL2_L2A
            )

        assert exc_info.value.status_code is None
        assert exc_info.value.retryable is True
        await adapter.aclose()


class TestRender:
    """render: Process API POST through httpx."""

    @pytest.mark.asyncio()
    async def test_success(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"\x89PNG...", headers={"content-type": "image/png"})

        adapter = _adapter(handler)
        payload = await adapter.render(RENDER_PAYLOAD)

        assert payload.content == b"\x89PNG..."
        assert payload.content_type == "image/png"
        request = seen[0]
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Accept"] == "image/png"
        assert json.loads(request.content) == RENDER_PAYLOAD
        await adapter.aclose()

    @pytest.mark.asyncio()
    async def test_server_error(self) -> None:
        adapter = _adapter(lambda request: httpx.Response(500, text="internal"))

        with pytest.raises(UpstreamServiceError) as exc_info:
            await adapter.render(RENDER_PAYLOAD)

        err = exc_info.value
        assert err.service == "process"
        assert err.status_code == 500
        assert err.upstream_message == "internal"
        assert err.retryable is True
        await adapter.aclose()

    @pytest.mark.asyncio()
    async def test_empty_body(self) -> None:
        adapter = _adapter(lambda request: httpx.Response(200, content=b""))

        with pytest.raises(EmptyResult):
            await adapter.render(RENDER_PAYLOAD)
        await adapter.aclose()

    @pytest.mark.asyncio()
    async def test_unauthorized_invalidates_token(self) -> None:
        tokens = _tokens()
        adapter = _adapter(lambda request: httpx.Response(401, text="expired"), tokens=tokens)

        with pytest.raises(UpstreamServiceError):
            await adapter.render(RENDER_PAYLOAD)

        tokens.invalidate.assert_called_once()
        await adapter.aclose()

    @pytest.mark.asyncio()
    async def test_transport_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        adapter = _adapter(handler)

        with pytest.raises(UpstreamServiceError, match="ReadTimeout") as exc_info:
            await adapter.render(RENDER_PAYLOAD)

        assert exc_info.value.status_code is None
        await adapter.aclose()
