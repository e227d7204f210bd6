"""Provider factory — selects the active imagery service by name.

The factory maintains a registry of known adapters.  New adapters are
registered by adding an entry to ``_ADAPTER_REGISTRY`` or at runtime via
``register_provider``.

Usage::

    from sentinel_scene.providers.factory import get_provider

    service = get_provider("sentinel_hub", config)

The provider name comes from the ``IMAGERY_PROVIDER`` environment
variable via ``ServiceConfig.imagery_provider``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sentinel_scene.providers.base import ImageryService, ProviderError

if TYPE_CHECKING:
    from collections.abc import Callable

    from sentinel_scene.core.config import ServiceConfig

logger = logging.getLogger("sentinel_scene.providers.factory")

SENTINEL_HUB = "sentinel_hub"

# Loaders return the adapter *class*; imports are deferred so that
# httpx / pystac-client load only when that adapter is selected.
_ADAPTER_REGISTRY: dict[str, Callable[[], type[ImageryService]]] = {}


def _register_builtin_adapters() -> None:
    def _sentinel_hub() -> type[ImageryService]:
        from sentinel_scene.providers.sentinel_hub import SentinelHubAdapter

        return SentinelHubAdapter

    _ADAPTER_REGISTRY[SENTINEL_HUB] = _sentinel_hub


def _ensure_registry() -> None:
    """Initialise the adapter registry once (idempotent)."""
    if not _ADAPTER_REGISTRY:
        _register_builtin_adapters()


def register_provider(
    name: str,
    loader: Callable[[], type[ImageryService]],
) -> None:
    """Register a custom adapter (e.g. a test double).

    Raises:
        ValueError: If the name is empty.
    """
    if not name:
        msg = "Provider name must be non-empty"
        raise ValueError(msg)
    _ensure_registry()
    _ADAPTER_REGISTRY[name] = loader
    logger.debug("Registered provider adapter: %s", name)


def get_provider(name: str, config: ServiceConfig) -> ImageryService:
    """Create and return an imagery service adapter.

    Args:
        name: Provider identifier (e.g. ``"sentinel_hub"``).
        config: Service configuration handed to the adapter.

    Raises:
        ProviderError: If the named provider is not registered.
    """
    _ensure_registry()

    loader = _ADAPTER_REGISTRY.get(name)
    if loader is None:
        available = ", ".join(sorted(_ADAPTER_REGISTRY))
        msg = f"Unknown imagery provider: {name!r}. Available: {available}"
        raise ProviderError(provider=name, message=msg)

    adapter_cls = loader()
    logger.info("Creating imagery provider: %s", name)
    return adapter_cls(config)  # type: ignore[call-arg]


def list_providers() -> list[str]:
    """Return the names of all registered provider adapters."""
    _ensure_registry()
    return sorted(_ADAPTER_REGISTRY)
