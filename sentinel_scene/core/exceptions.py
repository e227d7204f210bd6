"""Error taxonomy for the scene service.

Everything the service raises on purpose derives from ``PipelineError``.
Each category fixes two things per class: whether a caller may retry,
and which HTTP status the request ends with.

Categories
----------
- ``ValidationError``  400, never retryable: bad geometry, malformed raster.
- ``ContractError``    400, never retryable: request body fails the contract.
- ``TransientError``   500, retryable: throttling, timeouts, 5xx upstream.
- ``PermanentError``   500, not retryable: no coverage, empty upstream body.

Adapters may narrow the status (``UpstreamServiceError`` answers 502).
``to_error_dict()`` is the error body returned to HTTP clients and logged.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Root of the service's error hierarchy.

    Attributes:
        message: Human-readable error description.
        stage: Component that raised (e.g. ``"analyze_geometry"``,
            ``"resolve_scene"``, ``"provider"``).
        code: Stable machine-readable code (e.g. ``"INVALID_GEOMETRY"``).
        retryable: Whether the same request may succeed if sent again.
        correlation_id: Identifier of the HTTP request being served.
    """

    default_stage: str = ""
    default_code: str = ""
    default_retryable: bool = False
    #: Status the HTTP layer answers with when this error ends a request.
    http_status: int = 500

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool | None = None,
        correlation_id: str = "",
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = self.default_retryable if retryable is None else retryable
        self.correlation_id = correlation_id
        super().__init__(message)

    @property
    def category(self) -> str:
        """Category name used in error bodies and log lines."""
        if isinstance(self, ContractError):
            return "contract"
        if isinstance(self, ValidationError):
            return "validation"
        if isinstance(self, TransientError):
            return "transient"
        if isinstance(self, PermanentError):
            return "permanent"
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Error body with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
            "correlation_id": self.correlation_id,
        }


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class ValidationError(PipelineError):
    """Geometry, raster, or model invariant violated by the input."""

    http_status = 400


class ContractError(PipelineError):
    """Request body is not JSON, not an object, or misses required fields."""

    http_status = 400


class TransientError(PipelineError):
    """Temporary failure; the same request may succeed later."""

    default_retryable = True


class PermanentError(PipelineError):
    """Expected outcome that retrying will not change."""
