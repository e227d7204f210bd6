"""Shared pytest fixtures for the Sentinel scene test suite."""

import pytest

from sentinel_scene.core.config import ServiceConfig
from sentinel_scene.models.geometry import BoundingBox

# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def service_config() -> ServiceConfig:
    """Default configuration with dummy credentials."""
    return ServiceConfig(client_id="test-client", client_secret="test-secret")


# ---------------------------------------------------------------------------
# Geometry fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def santiago_bbox() -> BoundingBox:
    """Small rectangle over Santiago, Chile (~103 km², central_chile region)."""
    return BoundingBox(-70.6, -33.5, -70.5, -33.4)


@pytest.fixture()
def santiago_ring() -> list[tuple[float, float]]:
    """Closed outer ring tracing ``santiago_bbox``."""
    return [
        (-70.6, -33.5),
        (-70.5, -33.5),
        (-70.5, -33.4),
        (-70.6, -33.4),
        (-70.6, -33.5),
    ]
