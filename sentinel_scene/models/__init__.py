"""Data models and schemas.

Defines the data structures used throughout the pipeline:
- BoundingBox / AreaEstimate / PixelDimensions: geometry analysis results
- SceneCandidate / FallbackPolicy / ResolvedScene: scene resolution
- RasterBuffer / RasterStatistics: raw raster decoding and aggregation
- SceneRequest / SceneQuery: inbound request contract
- SceneResponse: serialised response document
"""

from sentinel_scene.models.geometry import (
    AreaEstimate,
    BoundingBox,
    GeometryAnalysis,
    PixelDimensions,
    Polygon,
)
from sentinel_scene.models.raster import (
    AggregationStrategy,
    RasterBuffer,
    RasterStatistics,
    SampleType,
)
from sentinel_scene.models.scene import (
    AcquisitionMode,
    AttemptedDate,
    CatalogResult,
    FallbackPolicy,
    FallbackTier,
    RenderedPayload,
    ResolvedScene,
    SceneCandidate,
)
from sentinel_scene.models.validation import ModelValidationError

__all__ = [
    "AcquisitionMode",
    "AggregationStrategy",
    "AreaEstimate",
    "AttemptedDate",
    "BoundingBox",
    "CatalogResult",
    "FallbackPolicy",
    "FallbackTier",
    "GeometryAnalysis",
    "ModelValidationError",
    "PixelDimensions",
    "Polygon",
    "RasterBuffer",
    "RasterStatistics",
    "RenderedPayload",
    "ResolvedScene",
    "SampleType",
    "SceneCandidate",
]
