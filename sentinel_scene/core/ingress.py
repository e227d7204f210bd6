"""Thin ingress boundary helpers for the HTTP entrypoints.

Centralises the transport concerns so that ``function_app.py`` holds
only trigger bindings and handoff:

- **parse_json_body**: decodes the request body into a dict, raising
  ``ContractError`` on malformed JSON.
- **status_for**: the HTTP status an exception class declares.
- **handle_scene_request**: parses the body into a ``SceneQuery``, runs
  one pipeline operation, and returns ``(status, body)``.

Status mapping (declared on the exception classes):
    ``ValidationError`` / ``ContractError`` → 400,
    ``UpstreamServiceError`` → 502, any other ``PipelineError`` → 500.
    No coverage is not an error: it is a 200 with ``hasCoverage: false``.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import TYPE_CHECKING, Any

from sentinel_scene.core.exceptions import ContractError, PipelineError
from sentinel_scene.models.payloads import parse_scene_request

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sentinel_scene.models.payloads import SceneQuery
    from sentinel_scene.models.response import SceneResponse

logger = logging.getLogger("sentinel_scene.core.ingress")

CORRELATION_HEADER = "x-correlation-id"


def parse_json_body(raw: bytes | str | dict[str, Any] | None, *, endpoint: str) -> dict[str, Any]:
    """Decode a request body into a dict.

    Raises:
        ContractError: If the body is empty, not JSON, or not an object.
    """
    if isinstance(raw, dict):
        return raw
    if not raw:
        msg = f"{endpoint}: request body is empty"
        raise ContractError(msg, stage=endpoint, code="PAYLOAD_EMPTY")
    try:
        decoded = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        msg = f"{endpoint}: request body is not valid JSON: {exc}"
        raise ContractError(msg, stage=endpoint, code="PAYLOAD_INVALID_JSON") from exc
    if not isinstance(decoded, dict):
        msg = f"{endpoint}: request body must be a JSON object"
        raise ContractError(msg, stage=endpoint, code="PAYLOAD_NOT_OBJECT")
    return decoded


def status_for(exc: PipelineError) -> int:
    """HTTP status for a pipeline error."""
    return exc.http_status


def correlation_id_from(headers: dict[str, str] | None) -> str:
    """Caller-supplied correlation id, or a fresh one."""
    if headers:
        for key, value in headers.items():
            if key.lower() == CORRELATION_HEADER and value:
                return value
    return uuid.uuid4().hex


async def handle_scene_request(
    raw: bytes | str | dict[str, Any] | None,
    *,
    endpoint: str,
    operation: Callable[[SceneQuery], Awaitable[SceneResponse]],
    correlation_id: str = "",
) -> tuple[int, dict[str, object]]:
    """Run one scene operation and return ``(status, body)``.

    Only ``PipelineError`` is converted into an error body; anything
    else propagates to the Functions host.
    """
    try:
        query = parse_scene_request(parse_json_body(raw, endpoint=endpoint), endpoint=endpoint)
        logger.info(
            "Request accepted | endpoint=%s | date=%s | compare=%s | variant=%s | "
            "correlation_id=%s",
            endpoint,
            query.requested_date,
            query.compare_date or "-",
            query.variant or "default",
            correlation_id,
        )
        response = await operation(query)
    except PipelineError as exc:
        exc.correlation_id = exc.correlation_id or correlation_id
        status = status_for(exc)
        log = logger.warning if status < 500 else logger.error
        log(
            "Request failed | endpoint=%s | status=%d | code=%s | error=%s | correlation_id=%s",
            endpoint,
            status,
            exc.code,
            exc,
            correlation_id,
        )
        return status, {"error": exc.to_error_dict()}

    logger.info(
        "Request completed | endpoint=%s | has_coverage=%s | correlation_id=%s",
        endpoint,
        response.has_coverage,
        correlation_id,
    )
    return 200, response.to_dict()
