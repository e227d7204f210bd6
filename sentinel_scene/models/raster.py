"""Typed models for raw raster payloads and their statistics.

- ``SampleType``: numeric encoding of raw samples (8/16-bit uint, float32)
- ``RasterBuffer``: decoded samples plus shape, band-interleaved by pixel
- ``AggregationStrategy``: how per-pixel backscatter is averaged
- ``RasterStatistics``: aggregate result, ``mean`` is ``None`` when empty
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sentinel_scene.models.validation import ModelValidationError, check_min

if TYPE_CHECKING:
    import numpy as np


class SampleType(enum.Enum):
    """Raw sample encodings understood by the aggregator.

    The value is the Process API ``sampleType`` name; samples are
    little-endian on the wire.
    """

    UINT8 = "UINT8"
    UINT16 = "UINT16"
    FLOAT32 = "FLOAT32"

    @property
    def dtype(self) -> str:
        """numpy dtype string for little-endian decoding."""
        return {"UINT8": "u1", "UINT16": "<u2", "FLOAT32": "<f4"}[self.value]

    @property
    def byte_size(self) -> int:
        return {"UINT8": 1, "UINT16": 2, "FLOAT32": 4}[self.value]

    @classmethod
    def parse(cls, value: str) -> SampleType:
        """Look up a sample type by name (case-insensitive)."""
        try:
            return cls(value.upper())
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            msg = f"Unsupported sample type {value!r}. Allowed: {allowed}"
            raise ModelValidationError("SampleType", "value", value, msg) from None


@dataclass(frozen=True, slots=True)
class RasterBuffer:
    """Decoded raster samples, band-interleaved by pixel.

    Sample ``b`` of pixel ``(row, col)`` lives at index
    ``(row * width + col) * band_count + b``.

    Invariant: ``len(values) == width * height * band_count``.
    """

    values: np.ndarray
    width: int
    height: int
    band_count: int
    sample_type: SampleType

    def __post_init__(self) -> None:
        check_min("RasterBuffer", "width", self.width, 1)
        check_min("RasterBuffer", "height", self.height, 1)
        check_min("RasterBuffer", "band_count", self.band_count, 1)
        expected = self.width * self.height * self.band_count
        if len(self.values) != expected:
            raise ModelValidationError(
                "RasterBuffer",
                "values",
                len(self.values),
                f"length must equal width*height*band_count ({expected})",
            )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def band(self, index: int) -> np.ndarray:
        """Return one band as a flat array of ``pixel_count`` samples."""
        if not 0 <= index < self.band_count:
            raise ModelValidationError(
                "RasterBuffer", "band", index, f"must be between 0 and {self.band_count - 1}"
            )
        return self.values[index :: self.band_count]


class AggregationStrategy(enum.Enum):
    """How valid backscatter samples are averaged.

    Values:
        MEAN_OF_DB:     Arithmetic mean of per-pixel decibel values.
        GEOMETRIC_MEAN: Decibel of the geometric mean of linear power,
                        computed in log space (speckle-robust estimator).
    """

    MEAN_OF_DB = "mean_of_db"
    GEOMETRIC_MEAN = "geometric_mean"


@dataclass(frozen=True, slots=True)
class RasterStatistics:
    """Aggregate backscatter statistics for one raster.

    All dB fields are ``None`` (never NaN) when ``valid_pixels == 0``.
    """

    total_pixels: int
    valid_pixels: int
    mean: float | None = None
    median: float | None = None
    std: float | None = None
    p10: float | None = None
    p90: float | None = None
    minimum: float | None = None
    maximum: float | None = None
    strategy: AggregationStrategy = AggregationStrategy.MEAN_OF_DB

    def __post_init__(self) -> None:
        check_min("RasterStatistics", "total_pixels", self.total_pixels, 0)
        check_min("RasterStatistics", "valid_pixels", self.valid_pixels, 0)
        if self.valid_pixels > self.total_pixels:
            raise ModelValidationError(
                "RasterStatistics",
                "valid_pixels",
                self.valid_pixels,
                f"must be <= total_pixels ({self.total_pixels})",
            )

    @property
    def valid_fraction(self) -> float:
        return self.valid_pixels / self.total_pixels if self.total_pixels else 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "mean": self.mean,
            "median": self.median,
            "std": self.std,
            "p10": self.p10,
            "p90": self.p90,
            "min": self.minimum,
            "max": self.maximum,
            "totalPixels": self.total_pixels,
            "validPixels": self.valid_pixels,
            "strategy": self.strategy.value,
        }
