"""Service configuration loaded from environment variables.

All configuration values have defaults suitable for the public Sentinel
Hub endpoints.  Azure Functions app settings (or ``local.settings.json``
for local dev) are the source of truth.

Fail-fast validation:
    ``from_env()`` raises ``ConfigValidationError`` if any numeric
    value is out of its valid range.  Bad configuration is caught at
    startup instead of on the first request.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from sentinel_scene.core.constants import (
    DEFAULT_CATALOG_URL,
    DEFAULT_PROCESS_URL,
    DEFAULT_TOKEN_URL,
)
from sentinel_scene.core.exceptions import PipelineError


class ConfigValidationError(PipelineError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Immutable service configuration.

    Loaded once at function startup and injected into the pipeline.

    Attributes:
        client_id: OAuth client id for the imagery service.
        client_secret: OAuth client secret for the imagery service.
        token_url: Token endpoint (client-credentials grant).
        process_url: Process API endpoint (render / raw raster).
        catalog_url: STAC catalog root URL.
        imagery_provider: Active provider adapter name.
        target_resolution_m: Target ground resolution in metres per pixel.
        max_cloud_cover_pct: Cloud cover ceiling for the strict tiers.
        relaxed_max_cloud_cover_pct: Cloud cover ceiling for the relaxed tier.
        fallback_window_days: Half-width of the neighbourhood search window.
        catalog_max_items: Cap on aggregated catalog descriptors per search.
        catalog_page_size: Descriptors requested per catalog page.
        min_payload_bytes: Payloads at or below this size count as empty.
        http_timeout_s: Per-call deadline for outbound requests, in seconds.
        token_expiry_margin_s: Refresh the token this many seconds early.
        max_area_km2: Area above which a sizing warning is attached.
        allowed_origin: CORS origin handed to the Functions host.
    """

    client_id: str = ""
    client_secret: str = ""
    token_url: str = DEFAULT_TOKEN_URL
    process_url: str = DEFAULT_PROCESS_URL
    catalog_url: str = DEFAULT_CATALOG_URL
    imagery_provider: str = "sentinel_hub"
    target_resolution_m: float = 10.0
    max_cloud_cover_pct: float = 20.0
    relaxed_max_cloud_cover_pct: float = 60.0
    fallback_window_days: int = 15
    catalog_max_items: int = 500
    catalog_page_size: int = 100
    min_payload_bytes: int = 1024
    http_timeout_s: float = 60.0
    token_expiry_margin_s: float = 60.0
    max_area_km2: float = 2_500.0
    allowed_origin: str = ""

    @classmethod
    def from_env(cls) -> ServiceConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a numeric value is out of range.
            ValueError: If a numeric environment variable cannot be
                parsed (e.g. ``CATALOG_MAX_ITEMS=lots``).
        """
        config = cls(
            client_id=os.getenv("SH_CLIENT_ID", ""),
            client_secret=os.getenv("SH_CLIENT_SECRET", ""),
            token_url=os.getenv("SH_TOKEN_URL", DEFAULT_TOKEN_URL),
            process_url=os.getenv("SH_PROCESS_URL", DEFAULT_PROCESS_URL),
            catalog_url=os.getenv("SH_CATALOG_URL", DEFAULT_CATALOG_URL),
            imagery_provider=os.getenv("IMAGERY_PROVIDER", "sentinel_hub"),
            target_resolution_m=float(os.getenv("TARGET_RESOLUTION_M", "10")),
            max_cloud_cover_pct=float(os.getenv("MAX_CLOUD_COVER_PCT", "20")),
            relaxed_max_cloud_cover_pct=float(os.getenv("RELAXED_MAX_CLOUD_COVER_PCT", "60")),
            fallback_window_days=int(os.getenv("FALLBACK_WINDOW_DAYS", "15")),
            catalog_max_items=int(os.getenv("CATALOG_MAX_ITEMS", "500")),
            catalog_page_size=int(os.getenv("CATALOG_PAGE_SIZE", "100")),
            min_payload_bytes=int(os.getenv("MIN_PAYLOAD_BYTES", "1024")),
            http_timeout_s=float(os.getenv("HTTP_TIMEOUT_S", "60")),
            token_expiry_margin_s=float(os.getenv("TOKEN_EXPIRY_MARGIN_S", "60")),
            max_area_km2=float(os.getenv("MAX_AREA_KM2", "2500")),
            allowed_origin=os.getenv("ALLOWED_ORIGIN", ""),
        )
        _validate(config)
        return config


def _validate(config: ServiceConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if config.target_resolution_m <= 0:
        raise ConfigValidationError(
            "TARGET_RESOLUTION_M",
            config.target_resolution_m,
            "must be > 0 (metres)",
        )

    for key, value in (
        ("MAX_CLOUD_COVER_PCT", config.max_cloud_cover_pct),
        ("RELAXED_MAX_CLOUD_COVER_PCT", config.relaxed_max_cloud_cover_pct),
    ):
        if not 0.0 <= value <= 100.0:
            raise ConfigValidationError(key, value, "must be between 0 and 100 (percentage)")

    if config.relaxed_max_cloud_cover_pct < config.max_cloud_cover_pct:
        raise ConfigValidationError(
            "RELAXED_MAX_CLOUD_COVER_PCT",
            config.relaxed_max_cloud_cover_pct,
            f"must be >= MAX_CLOUD_COVER_PCT ({config.max_cloud_cover_pct})",
        )

    if config.fallback_window_days < 0:
        raise ConfigValidationError(
            "FALLBACK_WINDOW_DAYS",
            config.fallback_window_days,
            "must be >= 0 (days)",
        )

    if config.catalog_max_items < 1:
        raise ConfigValidationError(
            "CATALOG_MAX_ITEMS",
            config.catalog_max_items,
            "must be >= 1",
        )

    if not 1 <= config.catalog_page_size <= config.catalog_max_items:
        raise ConfigValidationError(
            "CATALOG_PAGE_SIZE",
            config.catalog_page_size,
            f"must be between 1 and CATALOG_MAX_ITEMS ({config.catalog_max_items})",
        )

    if config.min_payload_bytes < 0:
        raise ConfigValidationError(
            "MIN_PAYLOAD_BYTES",
            config.min_payload_bytes,
            "must be >= 0 (bytes)",
        )

    if config.http_timeout_s <= 0:
        raise ConfigValidationError(
            "HTTP_TIMEOUT_S",
            config.http_timeout_s,
            "must be > 0 (seconds)",
        )

    if config.token_expiry_margin_s < 0:
        raise ConfigValidationError(
            "TOKEN_EXPIRY_MARGIN_S",
            config.token_expiry_margin_s,
            "must be >= 0 (seconds)",
        )

    if config.max_area_km2 <= 0:
        raise ConfigValidationError(
            "MAX_AREA_KM2",
            config.max_area_km2,
            "must be > 0 (square kilometres)",
        )

    for key, value in (
        ("SH_TOKEN_URL", config.token_url),
        ("SH_PROCESS_URL", config.process_url),
        ("SH_CATALOG_URL", config.catalog_url),
    ):
        if not value:
            raise ConfigValidationError(key, value, "must not be empty")
