"""Imagery service adapters.

Implements the provider-agnostic adapter pattern:
- ImageryService: Abstract base class (catalog search + render)
- SentinelHubAdapter: Sentinel Hub Catalog and Process APIs
- TokenProvider: Cached client-credentials bearer token

The active provider is selected via configuration.
"""

from sentinel_scene.providers.base import (
    EmptyResult,
    ImageryService,
    ProviderAuthError,
    ProviderError,
    UpstreamServiceError,
)
from sentinel_scene.providers.factory import (
    SENTINEL_HUB,
    get_provider,
    list_providers,
    register_provider,
)

__all__ = [
    "SENTINEL_HUB",
    "EmptyResult",
    "ImageryService",
    "ProviderAuthError",
    "ProviderError",
    "UpstreamServiceError",
    "get_provider",
    "list_providers",
    "register_provider",
]
