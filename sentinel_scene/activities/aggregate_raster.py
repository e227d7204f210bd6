"""Raster statistics aggregation for raw Sentinel-1 backscatter.

Turns the raw numeric raster returned by the imagery service into
robust summary statistics:

1. **Parse** the byte buffer as a typed sample sequence and check it
   against the declared shape (``parse_raster`` / ``decode_tiff``).
2. **Mask** invalid pixels: a pixel counts only if its data mask is
   non-zero and its linear power is strictly positive.  Invalid pixels
   are dropped, never zero-filled.
3. **Convert** linear power to decibels with an epsilon floor so zero or
   negative inputs yield a finite value instead of a domain error.
4. **Aggregate** with an explicit ``AggregationStrategy``.

Aggregation strategy:
    ``MEAN_OF_DB`` is the default: the arithmetic mean of per-pixel dB
    values, which is what the radar thresholds are calibrated against.
    ``GEOMETRIC_MEAN`` computes ``10·log10(exp(mean(ln x)))``.  On
    strictly positive samples the two are mathematically identical; they
    only diverge in floating-point rounding and in how the epsilon floor
    would apply, which masking already rules out.  The strategy used is
    reported with every result.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from sentinel_scene.core.constants import DB_EPSILON
from sentinel_scene.core.exceptions import ValidationError
from sentinel_scene.models.raster import (
    AggregationStrategy,
    RasterBuffer,
    RasterStatistics,
    SampleType,
)

if TYPE_CHECKING:
    from numpy.typing import ArrayLike

logger = logging.getLogger("sentinel_scene.activities.aggregate_raster")

TIFF_CONTENT_TYPES = frozenset({"image/tiff", "image/geotiff", "image/tif"})


class MalformedRaster(ValidationError):
    """Raised when a raster payload does not match its declared shape."""

    default_stage = "aggregate_raster"
    default_code = "MALFORMED_RASTER"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_raster(
    buffer: bytes,
    sample_type: SampleType | str,
    band_count: int,
    *,
    width: int,
    height: int,
) -> RasterBuffer:
    """Interpret *buffer* as little-endian samples of *sample_type*.

    Args:
        buffer: Raw bytes, band-interleaved by pixel.
        sample_type: ``SampleType`` or its name (``"FLOAT32"`` etc.).
        band_count: Bands per pixel.
        width: Raster width in pixels.
        height: Raster height in pixels.

    Raises:
        MalformedRaster: If the byte length is not a whole number of
            samples or disagrees with ``width * height * band_count``.
    """
    if isinstance(sample_type, str):
        sample_type = SampleType.parse(sample_type)

    if width < 1 or height < 1 or band_count < 1:
        msg = f"Invalid raster shape width={width} height={height} bands={band_count}"
        raise MalformedRaster(msg)

    expected_samples = width * height * band_count
    expected_bytes = expected_samples * sample_type.byte_size
    if len(buffer) != expected_bytes:
        msg = (
            f"Raster payload is {len(buffer)} bytes; expected {expected_bytes} "
            f"({width}x{height}x{band_count} {sample_type.value})"
        )
        raise MalformedRaster(msg)

    values = np.frombuffer(buffer, dtype=sample_type.dtype)
    return RasterBuffer(
        values=values,
        width=width,
        height=height,
        band_count=band_count,
        sample_type=sample_type,
    )


def decode_tiff(buffer: bytes, *, expected_bands: int | None = None) -> RasterBuffer:
    """Decode an in-memory GeoTIFF into a band-interleaved ``RasterBuffer``.

    Raises:
        MalformedRaster: If the payload cannot be read as a GeoTIFF, uses
            an unsupported sample type, or has an unexpected band count.
    """
    from rasterio.errors import RasterioIOError
    from rasterio.io import MemoryFile

    try:
        with MemoryFile(buffer) as memfile, memfile.open() as dataset:
            array = dataset.read()  # (bands, rows, cols)
    except RasterioIOError as exc:
        msg = f"Raster payload is not a readable GeoTIFF: {exc}"
        raise MalformedRaster(msg) from exc

    bands, rows, cols = array.shape
    if expected_bands is not None and bands != expected_bands:
        msg = f"GeoTIFF has {bands} band(s); expected {expected_bands}"
        raise MalformedRaster(msg)

    dtype_name = {"uint8": "UINT8", "uint16": "UINT16", "float32": "FLOAT32"}.get(
        str(array.dtype)
    )
    if dtype_name is None:
        msg = f"Unsupported GeoTIFF sample type {array.dtype}"
        raise MalformedRaster(msg)

    interleaved = np.ascontiguousarray(np.moveaxis(array, 0, -1)).reshape(-1)
    return RasterBuffer(
        values=interleaved,
        width=cols,
        height=rows,
        band_count=bands,
        sample_type=SampleType(dtype_name),
    )


def decode_payload(
    content: bytes,
    content_type: str,
    *,
    band_count: int,
    sample_type: SampleType,
    width: int,
    height: int,
) -> RasterBuffer:
    """Decode a render payload by content type (GeoTIFF or raw samples)."""
    media_type = content_type.split(";")[0].strip().lower()
    if media_type in TIFF_CONTENT_TYPES:
        return decode_tiff(content, expected_bands=band_count)
    return parse_raster(content, sample_type, band_count, width=width, height=height)


# ---------------------------------------------------------------------------
# Masking and conversion
# ---------------------------------------------------------------------------


def to_decibel(linear_power: ArrayLike, epsilon: float = DB_EPSILON) -> np.ndarray | float:
    """Convert linear power to decibels: ``10·log10(max(x, epsilon))``.

    Scalars in, float out; arrays in, array out.  Zero, negative, or NaN
    inputs map to ``10·log10(epsilon)`` (-60 dB for the default floor).
    """
    values = np.asarray(linear_power, dtype=np.float64)
    floored = np.fmax(values, epsilon)
    result = 10.0 * np.log10(floored)
    if result.ndim == 0:
        return float(result)
    return result


def valid_mask(linear_power: ArrayLike, data_mask: ArrayLike | None = None) -> np.ndarray:
    """Boolean mask of pixels with a non-zero data mask and positive power."""
    values = np.asarray(linear_power, dtype=np.float64)
    mask = np.isfinite(values) & (values > 0)
    if data_mask is not None:
        mask &= np.asarray(data_mask) != 0
    return mask


def mask_and_convert(
    linear_power: ArrayLike,
    data_mask: ArrayLike | None = None,
    *,
    epsilon: float = DB_EPSILON,
) -> np.ndarray:
    """Drop invalid pixels and return the remaining samples in dB."""
    values = np.asarray(linear_power, dtype=np.float64)
    keep = valid_mask(values, data_mask)
    return np.asarray(to_decibel(values[keep], epsilon), dtype=np.float64).reshape(-1)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def aggregate(
    linear_power: ArrayLike,
    data_mask: ArrayLike | None = None,
    *,
    strategy: AggregationStrategy = AggregationStrategy.MEAN_OF_DB,
    epsilon: float = DB_EPSILON,
) -> RasterStatistics:
    """Aggregate linear backscatter samples into dB statistics.

    Args:
        linear_power: Linear power samples, one per pixel.
        data_mask: Optional per-pixel data mask (non-zero = valid).
        strategy: How the mean is computed (see module docstring).
        epsilon: Linear-power floor for the dB transform.

    Returns:
        ``RasterStatistics``; every dB field is ``None`` when no pixel
        is valid.
    """
    values = np.asarray(linear_power, dtype=np.float64).reshape(-1)
    total = int(values.size)
    db_values = mask_and_convert(values, data_mask, epsilon=epsilon)
    valid = int(db_values.size)

    if valid == 0:
        logger.info("Aggregation found no valid pixels | total=%d", total)
        return RasterStatistics(total_pixels=total, valid_pixels=0, strategy=strategy)

    if strategy is AggregationStrategy.GEOMETRIC_MEAN:
        keep = valid_mask(values, data_mask)
        log_mean = float(np.mean(np.log(values[keep])))
        mean = float(to_decibel(np.exp(log_mean), epsilon))
    else:
        mean = float(np.mean(db_values))

    p10, median, p90 = (float(v) for v in np.percentile(db_values, [10, 50, 90]))
    return RasterStatistics(
        total_pixels=total,
        valid_pixels=valid,
        mean=mean,
        median=median,
        std=float(np.std(db_values)),
        p10=p10,
        p90=p90,
        minimum=float(np.min(db_values)),
        maximum=float(np.max(db_values)),
        strategy=strategy,
    )


def summarise_raster(
    raster: RasterBuffer,
    *,
    value_band: int = 0,
    mask_band: int | None = None,
    strategy: AggregationStrategy = AggregationStrategy.MEAN_OF_DB,
) -> RasterStatistics:
    """Aggregate one band of *raster*, masked by another band if given."""
    values = raster.band(value_band)
    mask = raster.band(mask_band) if mask_band is not None else None
    stats = aggregate(values, mask, strategy=strategy)

    logger.info(
        "Raster summarised | size=%dx%d | band=%d | valid=%d/%d | mean=%s | strategy=%s",
        raster.width,
        raster.height,
        value_band,
        stats.valid_pixels,
        stats.total_pixels,
        f"{stats.mean:.2f} dB" if stats.mean is not None else "n/a",
        strategy.value,
    )
    return stats
