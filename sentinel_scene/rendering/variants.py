"""Render variant descriptors.

Every visualisation the service offers is one ``RenderVariant``: which
collection to read, which bands and units, the per-pixel evalscript, the
output sample type, and the response format.  A single request builder
(``rendering.request_builder``) turns any variant into a Process API
payload, so optical and radar renders cannot drift apart.

Built-in variants:

============================  ===============  ==============================
name                          collection       output
============================  ===============  ==============================
``true-color``                Sentinel-2 L2A   RGB PNG, gamma contrast
``ndvi``                      Sentinel-2 L2A   RGBA PNG colour ramp
``highlight``                 Sentinel-2 L2A   RGBA PNG, highlight compression
``radar-vv``                  Sentinel-1 GRD   grayscale dB PNG
``radar-classification``      Sentinel-1 GRD   UINT8 PNG, ``class × 50``
``radar-stats``               Sentinel-1 GRD   FLOAT32 GeoTIFF [VV, VH, mask]
============================  ===============  ==============================
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass

from sentinel_scene.core.constants import SENTINEL1_GRD, SENTINEL2_L2A
from sentinel_scene.core.exceptions import ValidationError
from sentinel_scene.models.raster import SampleType
from sentinel_scene.rendering.classification import (
    ClassificationThresholds,
    build_classification_script,
)

TRUE_COLOR = "true-color"
NDVI = "ndvi"
HIGHLIGHT = "highlight"
RADAR_VV = "radar-vv"
RADAR_CLASSIFICATION = "radar-classification"
RADAR_STATS = "radar-stats"


class UnknownVariantError(ValidationError):
    """Raised when a request names a variant that is not registered."""

    default_stage = "render_variant"
    default_code = "UNKNOWN_VARIANT"


@dataclass(frozen=True, slots=True)
class RenderVariant:
    """Everything that differs between two render requests.

    Attributes:
        name: Registry key.
        collection: Data collection identifier.
        input_bands: Bands the evalscript reads.
        units: Input units (``"REFLECTANCE"``, ``"DN"``, ``"LINEAR_POWER"``).
        evalscript: Per-pixel transform (VERSION=3).
        output_bands: Bands per output pixel.
        sample_type: Output sample type.
        response_format: Output MIME type.
        polarization: Required radar polarisation code (``"DV"``), or empty.
        uses_cloud_filter: Whether the data filter carries a cloud ceiling.
    """

    name: str
    collection: str
    input_bands: tuple[str, ...]
    units: str
    evalscript: str
    output_bands: int
    sample_type: SampleType
    response_format: str = "image/png"
    polarization: str = ""
    uses_cloud_filter: bool = False

    @property
    def is_radar(self) -> bool:
        return self.collection == SENTINEL1_GRD

    @property
    def is_raw(self) -> bool:
        """True when the payload is a numeric raster rather than an image."""
        return self.response_format != "image/png"


# ---------------------------------------------------------------------------
# Evalscripts
# ---------------------------------------------------------------------------

_TRUE_COLOR_SCRIPT = """//VERSION=3
function setup() {
  return {
    input: [{ bands: ["B04", "B03", "B02"], units: "DN" }],
    output: { bands: 3, sampleType: "AUTO" }
  };
}

const MIN_VAL = 0;
const MAX_VAL = 3000;
const GAMMA = 1.5;

function stretch(value) {
  const v = Math.pow((value - MIN_VAL) / (MAX_VAL - MIN_VAL), GAMMA);
  return Math.max(0, Math.min(v, 1));
}

function evaluatePixel(sample) {
  return [stretch(sample.B04), stretch(sample.B03), stretch(sample.B02)];
}
"""

_NDVI_SCRIPT = """//VERSION=3
function setup() {
  return {
    input: [{ bands: ["B04", "B08", "dataMask"], units: "REFLECTANCE" }],
    output: { bands: 4, sampleType: "AUTO" }
  };
}

const RAMP = [
  [-0.2, [0.75, 0.75, 0.75]],
  [0.0, [0.86, 0.86, 0.55]],
  [0.2, [0.80, 0.86, 0.40]],
  [0.4, [0.45, 0.70, 0.25]],
  [0.6, [0.20, 0.55, 0.15]],
  [0.8, [0.05, 0.35, 0.05]]
];

function evaluatePixel(sample) {
  const ndvi = index(sample.B08, sample.B04);
  return [...colorBlend(ndvi, RAMP.map(r => r[0]), RAMP.map(r => r[1])), sample.dataMask];
}
"""

_HIGHLIGHT_SCRIPT = """//VERSION=3
function setup() {
  return {
    input: [{ bands: ["B04", "B03", "B02", "dataMask"], units: "REFLECTANCE" }],
    output: { bands: 4, sampleType: "AUTO" }
  };
}

const GAIN = 2.5;
const KNEE = 0.7;

function compress(value) {
  const v = value * GAIN;
  if (v <= KNEE) return v;
  return KNEE + (1 - KNEE) * (1 - Math.exp(-(v - KNEE) / (1 - KNEE)));
}

function evaluatePixel(sample) {
  return [compress(sample.B04), compress(sample.B03), compress(sample.B02), sample.dataMask];
}
"""

_RADAR_VV_SCRIPT = """//VERSION=3
function setup() {
  return {
    input: [{ bands: ["VV", "dataMask"], units: "LINEAR_POWER" }],
    output: { bands: 2, sampleType: "AUTO" }
  };
}

const MIN_DB = -25;
const MAX_DB = 0;

function evaluatePixel(sample) {
  if (sample.dataMask === 0 || sample.VV <= 0) return [0, 0];
  const db = 10 * Math.log(sample.VV) / Math.LN10;
  return [Math.max(0, Math.min((db - MIN_DB) / (MAX_DB - MIN_DB), 1)), 1];
}
"""

_RADAR_STATS_SCRIPT = """//VERSION=3
function setup() {
  return {
    input: [{ bands: ["VV", "VH", "dataMask"], units: "LINEAR_POWER" }],
    output: { bands: 3, sampleType: "FLOAT32" }
  };
}

function evaluatePixel(sample) {
  return [sample.VV, sample.VH, sample.dataMask];
}
"""

# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_VARIANTS: dict[str, RenderVariant] = {
    TRUE_COLOR: RenderVariant(
        name=TRUE_COLOR,
        collection=SENTINEL2_L2A,
        input_bands=("B04", "B03", "B02"),
        units="DN",
        evalscript=_TRUE_COLOR_SCRIPT,
        output_bands=3,
        sample_type=SampleType.UINT8,
        uses_cloud_filter=True,
    ),
    NDVI: RenderVariant(
        name=NDVI,
        collection=SENTINEL2_L2A,
        input_bands=("B04", "B08", "dataMask"),
        units="REFLECTANCE",
        evalscript=_NDVI_SCRIPT,
        output_bands=4,
        sample_type=SampleType.UINT8,
        uses_cloud_filter=True,
    ),
    HIGHLIGHT: RenderVariant(
        name=HIGHLIGHT,
        collection=SENTINEL2_L2A,
        input_bands=("B04", "B03", "B02", "dataMask"),
        units="REFLECTANCE",
        evalscript=_HIGHLIGHT_SCRIPT,
        output_bands=4,
        sample_type=SampleType.UINT8,
        uses_cloud_filter=True,
    ),
    RADAR_VV: RenderVariant(
        name=RADAR_VV,
        collection=SENTINEL1_GRD,
        input_bands=("VV", "dataMask"),
        units="LINEAR_POWER",
        evalscript=_RADAR_VV_SCRIPT,
        output_bands=2,
        sample_type=SampleType.UINT8,
    ),
    RADAR_CLASSIFICATION: RenderVariant(
        name=RADAR_CLASSIFICATION,
        collection=SENTINEL1_GRD,
        input_bands=("VV", "VH", "dataMask"),
        units="LINEAR_POWER",
        evalscript=build_classification_script(),
        output_bands=1,
        sample_type=SampleType.UINT8,
        polarization="DV",
    ),
    RADAR_STATS: RenderVariant(
        name=RADAR_STATS,
        collection=SENTINEL1_GRD,
        input_bands=("VV", "VH", "dataMask"),
        units="LINEAR_POWER",
        evalscript=_RADAR_STATS_SCRIPT,
        output_bands=3,
        sample_type=SampleType.FLOAT32,
        response_format="image/tiff",
        polarization="DV",
    ),
}


def get_variant(
    name: str,
    *,
    thresholds: ClassificationThresholds | None = None,
) -> RenderVariant:
    """Return the registered variant called *name*.

    For ``radar-classification``, *thresholds* swaps in the evalscript
    generated for that seasonal profile.

    Raises:
        UnknownVariantError: If *name* is not registered.
    """
    variant = _VARIANTS.get(name)
    if variant is None:
        available = ", ".join(sorted(_VARIANTS))
        msg = f"Unknown render variant: {name!r}. Available: {available}"
        raise UnknownVariantError(msg)

    if name == RADAR_CLASSIFICATION and thresholds is not None:
        return dataclasses.replace(variant, evalscript=build_classification_script(thresholds))
    return variant


def list_variants() -> list[str]:
    """Return the names of all registered variants."""
    return sorted(_VARIANTS)
