"""Sentinel Hub adapter (Catalog API + Process API).

Concrete ``ImageryService`` for Sentinel Hub:

- Catalog search goes through ``pystac-client`` against the Sentinel Hub
  STAC catalog.  Pagination is blocking, so it runs in a worker thread
  and the event loop only waits on the result.  Aggregation stops at
  ``CATALOG_MAX_ITEMS`` descriptors; hitting the cap is logged.  Each page
  request is bounded by ``HTTP_TIMEOUT_S``.
- Renders are ``POST`` calls to the Process API through a shared
  ``httpx.AsyncClient`` with the configured per-call timeout.

Every outbound call carries a bearer token from ``TokenProvider``.

Configuration:
    ``SH_CATALOG_URL``, ``SH_PROCESS_URL``, ``SH_TOKEN_URL`` and the
    credentials come from ``ServiceConfig``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx
import pystac_client
from pystac_client.exceptions import APIError

from sentinel_scene.activities.classify_mode import classify_mode
from sentinel_scene.core.constants import SENTINEL1_GRD
from sentinel_scene.models.scene import CatalogResult, RenderedPayload, SceneCandidate
from sentinel_scene.providers.base import EmptyResult, ImageryService, UpstreamServiceError
from sentinel_scene.providers.token import TokenProvider

if TYPE_CHECKING:
    import pystac

    from sentinel_scene.core.config import ServiceConfig
    from sentinel_scene.models.geometry import BoundingBox

logger = logging.getLogger("sentinel_scene.providers.sentinel_hub")

PROVIDER_NAME = "sentinel_hub"


class SentinelHubAdapter(ImageryService):
    """Sentinel Hub implementation of ``ImageryService``.

    Args:
        config: Service configuration.
        client: Optional shared HTTP client; one is created (and owned)
            when omitted.
        token_provider: Optional token provider; built from *config*
            when omitted.
    """

    name = PROVIDER_NAME

    def __init__(
        self,
        config: ServiceConfig,
        *,
        client: httpx.AsyncClient | None = None,
        token_provider: TokenProvider | None = None,
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.http_timeout_s)
        self._tokens = token_provider or TokenProvider(
            self._client,
            token_url=config.token_url,
            client_id=config.client_id,
            client_secret=config.client_secret,
            expiry_margin_s=config.token_expiry_margin_s,
            provider=PROVIDER_NAME,
        )

    @property
    def config(self) -> ServiceConfig:
        return self._config

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def search_catalog(
        self,
        bbox: BoundingBox,
        time_window: tuple[str, str],
        *,
        collection: str,
        max_cloud_cover_pct: float | None = None,
        limit: int | None = None,
    ) -> CatalogResult:
        cap = limit if limit is not None else self._config.catalog_max_items
        token = await self._tokens.get_token()

        search_kwargs: dict[str, Any] = {
            "bbox": bbox.to_list(),
            "collections": [collection],
            "datetime": f"{time_window[0]}T00:00:00Z/{time_window[1]}T23:59:59Z",
            "limit": min(self._config.catalog_page_size, cap),
            # One past the cap tells a full catalog apart from a truncated one.
            "max_items": cap + 1,
        }
        if max_cloud_cover_pct is not None and collection != SENTINEL1_GRD:
            search_kwargs["filter"] = {
                "op": "<=",
                "args": [{"property": "eo:cloud_cover"}, max_cloud_cover_pct],
            }
            search_kwargs["filter_lang"] = "cql2-json"

        items = await asyncio.to_thread(self._run_search, token, search_kwargs)

        truncated = len(items) > cap
        if truncated:
            items = items[:cap]
            logger.warning(
                "Catalog search truncated | collection=%s | window=%s/%s | cap=%d",
                collection,
                time_window[0],
                time_window[1],
                cap,
            )

        candidates = [c for c in (self._to_candidate(item, collection) for item in items) if c]
        logger.info(
            "Catalog search | collection=%s | window=%s/%s | items=%d | truncated=%s",
            collection,
            time_window[0],
            time_window[1],
            len(candidates),
            truncated,
        )
        return CatalogResult(candidates=candidates, truncated=truncated)

    def _run_search(self, token: str, search_kwargs: dict[str, Any]) -> list[pystac.Item]:
        """Blocking catalog pagination (runs in a worker thread)."""
        try:
            catalog = pystac_client.Client.open(
                self._config.catalog_url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self._config.http_timeout_s,
            )
            return list(catalog.search(**search_kwargs).items())
        except APIError as exc:
            raise UpstreamServiceError(
                PROVIDER_NAME,
                "catalog",
                status_code=getattr(exc, "status_code", None),
                upstream_message=str(exc),
            ) from exc
        except OSError as exc:
            raise UpstreamServiceError(
                PROVIDER_NAME,
                "catalog",
                upstream_message=str(exc),
            ) from exc

    def _to_candidate(self, item: pystac.Item, collection: str) -> SceneCandidate | None:
        """Convert a STAC item to a ``SceneCandidate``, or ``None`` if unusable."""
        try:
            properties = item.properties or {}
            acquired = datetime.fromisoformat(properties["datetime"].replace("Z", "+00:00"))

            polarization = ""
            if collection == SENTINEL1_GRD:
                polarization = properties.get("s1:polarization") or classify_mode(
                    item.id
                ).polarization_code

            return SceneCandidate(
                scene_id=item.id,
                acquisition_date=acquired,
                polarization_mode=polarization,
                quality_metric=float(properties.get("eo:cloud_cover", 0.0)),
                extra={
                    "platform": properties.get("platform", ""),
                    "instrument_mode": properties.get("sar:instrument_mode", ""),
                },
            )
        except (KeyError, ValueError, TypeError, AttributeError):
            logger.warning(
                "Skipping unparseable catalog item: %s",
                getattr(item, "id", "?"),
                exc_info=True,
            )
            return None

    # ------------------------------------------------------------------
    # Process API
    # ------------------------------------------------------------------

    async def render(self, payload: dict[str, Any]) -> RenderedPayload:
        token = await self._tokens.get_token()
        accept = payload["output"]["responses"][0]["format"]["type"]

        try:
            response = await self._client.post(
                self._config.process_url,
                json=payload,
                headers={"Authorization": f"Bearer {token}", "Accept": accept},
            )
        except httpx.TransportError as exc:
            raise UpstreamServiceError(
                PROVIDER_NAME,
                "process",
                upstream_message=f"{type(exc).__name__}: {exc}",
            ) from exc

        if response.status_code == httpx.codes.UNAUTHORIZED:
            self._tokens.invalidate()

        if not response.is_success:
            raise UpstreamServiceError(
                PROVIDER_NAME,
                "process",
                status_code=response.status_code,
                upstream_message=response.text,
            )

        content = response.content
        if not content:
            raise EmptyResult(PROVIDER_NAME, "process")

        content_type = response.headers.get("content-type", accept)
        logger.debug("Render complete | bytes=%d | content_type=%s", len(content), content_type)
        return RenderedPayload(content=content, content_type=content_type)
