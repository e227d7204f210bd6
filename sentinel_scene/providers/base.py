"""ImageryService abstract base class.

Defines the contract every imagery service adapter implements.  The
resolver and the pipeline only see this interface; they never know which
concrete service is behind it.

Operations:
    1. ``search_catalog(bbox, time_window, ...)`` — scene descriptors
       covering a bbox, aggregated across pages up to a cap.
    2. ``render(payload)`` — run one Process API request and return the
       raw bytes (PNG image or numeric raster).

``SentinelHubAdapter`` implements both against Sentinel Hub.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

from sentinel_scene.core.exceptions import PermanentError, PipelineError

if TYPE_CHECKING:
    from typing import Any

    from sentinel_scene.models.geometry import BoundingBox
    from sentinel_scene.models.scene import CatalogResult, RenderedPayload


class ImageryService(abc.ABC):
    """Abstract base class for imagery service adapters.

    Example usage::

        service = get_provider("sentinel_hub", config)
        found = await service.search_catalog(bbox, ("2023-01-01", "2023-01-31"),
                                             collection="sentinel-2-l2a")
        payload = await service.render(build_process_request(...))
        await service.aclose()
    """

    #: Adapter name used in error messages and logs.
    name: str = ""

    @abc.abstractmethod
    async def search_catalog(
        self,
        bbox: BoundingBox,
        time_window: tuple[str, str],
        *,
        collection: str,
        max_cloud_cover_pct: float | None = None,
        limit: int | None = None,
    ) -> CatalogResult:
        """Search the catalog for scenes covering *bbox*.

        Args:
            bbox: Search bounding box.
            time_window: Inclusive ``(start, end)`` ISO dates.
            collection: Collection identifier.
            max_cloud_cover_pct: Optional cloud cover ceiling (optical only).
            limit: Cap on aggregated descriptors; the adapter default
                when ``None``.

        Returns:
            A ``CatalogResult``; ``truncated`` is set when the cap was hit.

        Raises:
            UpstreamServiceError: On catalog or token failures.
        """

    @abc.abstractmethod
    async def render(self, payload: dict[str, Any]) -> RenderedPayload:
        """Run one render request.

        Raises:
            EmptyResult: If the service answers with a zero-length body.
            UpstreamServiceError: On non-2xx responses or transport failures.
        """

    async def aclose(self) -> None:  # noqa: B027
        """Release network resources held by the adapter."""


# ---------------------------------------------------------------------------
# Provider exceptions
# ---------------------------------------------------------------------------


class ProviderError(PipelineError):
    """Base exception for imagery service adapter errors.

    Attributes:
        provider: Name of the service that raised the error.
        message: Human-readable error description.
        retryable: Whether a caller may retry the operation.
    """

    default_stage = "provider"
    default_code = "PROVIDER_ERROR"

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        retryable: bool = False,
    ) -> None:
        self.provider = provider
        super().__init__(
            message,
            retryable=retryable,
            code=self.default_code,
            stage=self.default_stage,
        )

    def __str__(self) -> str:
        return f"[{self.provider}] {self.message}"


class ProviderAuthError(ProviderError):
    """Credentials are missing or were rejected by the token endpoint."""

    default_code = "PROVIDER_AUTH_FAILED"

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(provider, message, retryable=False)


class UpstreamServiceError(ProviderError):
    """Non-success response or transport failure from a remote service.

    Retryable for throttling (429), server errors (5xx), and transport
    failures (``status_code`` is ``None``); the core itself never retries.

    Attributes:
        service: Which remote call failed (``"token"``, ``"catalog"``,
            ``"process"``).
        status_code: HTTP status, or ``None`` for transport failures.
        upstream_message: Response body verbatim.
    """

    default_code = "UPSTREAM_SERVICE_ERROR"
    http_status = 502

    def __init__(
        self,
        provider: str,
        service: str,
        *,
        status_code: int | None = None,
        upstream_message: str = "",
    ) -> None:
        self.service = service
        self.status_code = status_code
        self.upstream_message = upstream_message
        status = f"HTTP {status_code}" if status_code is not None else "transport failure"
        message = f"{service} call failed ({status})"
        if upstream_message:
            message = f"{message}: {upstream_message}"
        super().__init__(provider, message, retryable=is_retryable_status(status_code))

    def to_error_dict(self) -> dict[str, object]:
        payload = super().to_error_dict()
        payload["service"] = self.service
        payload["status_code"] = self.status_code
        payload["upstream_message"] = self.upstream_message
        return payload


class EmptyResult(PermanentError):
    """The service answered successfully but with no content."""

    default_stage = "provider"
    default_code = "EMPTY_RESULT"

    def __init__(self, provider: str, service: str) -> None:
        self.provider = provider
        self.service = service
        super().__init__(f"[{provider}] {service} returned an empty body")


def is_retryable_status(status_code: int | None) -> bool:
    """Throttling, server errors, and transport failures are retryable."""
    if status_code is None:
        return True
    return status_code == 429 or status_code >= 500
