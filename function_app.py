"""Azure Functions entry point — Sentinel scene query service.

Registers the HTTP endpoints using the Python v2 programming model:

- ``POST /api/sentinel2``: optical render (true colour, NDVI, highlight)
- ``POST /api/sentinel1/classification``: radar land-cover classification
- ``POST /api/sentinel1/statistics``: radar backscatter statistics

All business logic lives in the sentinel_scene package. This file is
purely the wiring layer between Azure Functions bindings and application
code.  CORS is configured on the Functions host (``ALLOWED_ORIGIN``).
"""

from __future__ import annotations

import json
import logging

import azure.functions as func

from sentinel_scene.core.config import ServiceConfig
from sentinel_scene.core.ingress import correlation_id_from, handle_scene_request
from sentinel_scene.orchestrators.scene_pipeline import ScenePipeline
from sentinel_scene.providers.factory import get_provider

app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)

logger = logging.getLogger("sentinel_scene.function_app")

_pipeline: ScenePipeline | None = None


def _get_pipeline() -> ScenePipeline:
    """Build the pipeline on first use; configuration is read once."""
    global _pipeline  # noqa: PLW0603
    if _pipeline is None:
        config = ServiceConfig.from_env()
        provider = get_provider(config.imagery_provider, config)
        _pipeline = ScenePipeline(provider, config)
        logger.info(
            "Pipeline initialised | provider=%s | resolution=%.1f m | catalog_cap=%d",
            config.imagery_provider,
            config.target_resolution_m,
            config.catalog_max_items,
        )
    return _pipeline


def _json_response(status: int, body: dict[str, object], correlation_id: str) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(body),
        status_code=status,
        mimetype="application/json",
        headers={"x-correlation-id": correlation_id},
    )


# ---------------------------------------------------------------------------
# HTTP endpoints
# ---------------------------------------------------------------------------


@app.function_name("sentinel2")
@app.route(route="sentinel2", methods=["POST"])
async def sentinel2(req: func.HttpRequest) -> func.HttpResponse:
    """Render an optical Sentinel-2 variant for a polygon and date."""
    correlation_id = correlation_id_from(dict(req.headers))
    status, body = await handle_scene_request(
        req.get_body(),
        endpoint="sentinel2",
        operation=_get_pipeline().render_scene,
        correlation_id=correlation_id,
    )
    return _json_response(status, body, correlation_id)


@app.function_name("sentinel1_classification")
@app.route(route="sentinel1/classification", methods=["POST"])
async def sentinel1_classification(req: func.HttpRequest) -> func.HttpResponse:
    """Render the radar land-cover classification for a polygon and date."""
    correlation_id = correlation_id_from(dict(req.headers))
    status, body = await handle_scene_request(
        req.get_body(),
        endpoint="sentinel1_classification",
        operation=_get_pipeline().classify_scene,
        correlation_id=correlation_id,
    )
    return _json_response(status, body, correlation_id)


@app.function_name("sentinel1_statistics")
@app.route(route="sentinel1/statistics", methods=["POST"])
async def sentinel1_statistics(req: func.HttpRequest) -> func.HttpResponse:
    """Radar backscatter statistics, optionally compared with a second date."""
    correlation_id = correlation_id_from(dict(req.headers))
    status, body = await handle_scene_request(
        req.get_body(),
        endpoint="sentinel1_statistics",
        operation=_get_pipeline().radar_statistics,
        correlation_id=correlation_id,
    )
    return _json_response(status, body, correlation_id)
