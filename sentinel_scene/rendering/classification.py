"""Dual-polarisation land-cover classification.

Maps Sentinel-1 VV/VH backscatter to discrete land-cover classes with an
explicit, ordered rule table evaluated top-down (first match wins):

    water → dense vegetation → forest → low vegetation → bare soil / urban

Rule order is part of the contract.  Later rules act as "else" branches
for earlier ones, so swapping two rules changes the class assigned near
their shared threshold.  The same table drives three evaluators:

- ``classify_pixel``: scalar reference implementation
- ``classify_raster``: vectorised numpy evaluation of a raw raster
- ``build_classification_script``: the per-pixel evalscript sent to the
  Process API

Pixels with non-positive linear power or an inactive data mask are
``NO_DATA`` before any rule is consulted.  Classes are encoded for
display as ``label × 50`` in a single byte.

Seasonal thresholds come from fixed profiles selected by a ``Season``
value through ``thresholds_for``; there is no module-level mutable state.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from sentinel_scene.core.constants import CLASS_BYTE_SCALE, DB_EPSILON

if TYPE_CHECKING:
    from sentinel_scene.models.raster import RasterBuffer


class LandCover(enum.IntEnum):
    """Land-cover class labels (byte value is ``label × 50``)."""

    NO_DATA = 0
    WATER = 1
    DENSE_VEGETATION = 2
    FOREST = 3
    LOW_VEGETATION = 4
    BARE_URBAN = 5


# Ordering used for the VH monotonicity guarantee: higher = more vegetation.
VEGETATION_DENSITY: dict[LandCover, int] = {
    LandCover.NO_DATA: 0,
    LandCover.WATER: 0,
    LandCover.BARE_URBAN: 0,
    LandCover.LOW_VEGETATION: 1,
    LandCover.FOREST: 2,
    LandCover.DENSE_VEGETATION: 3,
}


class Season(enum.Enum):
    """Threshold profile selector."""

    ANNUAL = "annual"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"
    SPRING = "spring"


_NORTHERN_SEASONS: dict[int, Season] = {
    12: Season.WINTER, 1: Season.WINTER, 2: Season.WINTER,
    3: Season.SPRING, 4: Season.SPRING, 5: Season.SPRING,
    6: Season.SUMMER, 7: Season.SUMMER, 8: Season.SUMMER,
    9: Season.AUTUMN, 10: Season.AUTUMN, 11: Season.AUTUMN,
}  # fmt: skip

_OPPOSITE: dict[Season, Season] = {
    Season.WINTER: Season.SUMMER,
    Season.SUMMER: Season.WINTER,
    Season.SPRING: Season.AUTUMN,
    Season.AUTUMN: Season.SPRING,
    Season.ANNUAL: Season.ANNUAL,
}


def season_for_month(month: int, *, southern_hemisphere: bool = False) -> Season:
    """Map a calendar month (1-12) to its meteorological season."""
    if not 1 <= month <= 12:
        msg = f"Month must be between 1 and 12, got {month}"
        raise ValueError(msg)
    season = _NORTHERN_SEASONS[month]
    return _OPPOSITE[season] if southern_hemisphere else season


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ClassificationThresholds:
    """Decibel cutoffs for one seasonal profile.

    Attributes:
        water_vh_db: VH below this is water.
        water_vv_db: VV below this is water regardless of VH.
        dense_vegetation_vh_db: VH above this (with a low VV−VH ratio)
            is dense vegetation.
        dense_vegetation_max_ratio_db: Upper bound on VV−VH for dense
            vegetation; volume scattering keeps the ratio small.
        forest_vh_db: VH above this is forest.
        low_vegetation_vh_db: VH above this is low vegetation.
    """

    season: Season
    water_vh_db: float
    water_vv_db: float
    dense_vegetation_vh_db: float
    dense_vegetation_max_ratio_db: float
    forest_vh_db: float
    low_vegetation_vh_db: float

    def __post_init__(self) -> None:
        ladder = (
            self.water_vh_db,
            self.low_vegetation_vh_db,
            self.forest_vh_db,
            self.dense_vegetation_vh_db,
        )
        if list(ladder) != sorted(ladder) or len(set(ladder)) != len(ladder):
            msg = f"VH cutoffs must increase strictly from water to dense vegetation: {ladder}"
            raise ValueError(msg)


_PROFILES: dict[Season, ClassificationThresholds] = {
    Season.ANNUAL: ClassificationThresholds(
        season=Season.ANNUAL,
        water_vh_db=-24.0,
        water_vv_db=-18.0,
        dense_vegetation_vh_db=-13.0,
        dense_vegetation_max_ratio_db=7.0,
        forest_vh_db=-15.0,
        low_vegetation_vh_db=-19.0,
    ),
    Season.SUMMER: ClassificationThresholds(
        season=Season.SUMMER,
        water_vh_db=-24.0,
        water_vv_db=-18.0,
        dense_vegetation_vh_db=-12.5,
        dense_vegetation_max_ratio_db=7.0,
        forest_vh_db=-14.5,
        low_vegetation_vh_db=-18.5,
    ),
    Season.AUTUMN: ClassificationThresholds(
        season=Season.AUTUMN,
        water_vh_db=-24.0,
        water_vv_db=-18.0,
        dense_vegetation_vh_db=-13.0,
        dense_vegetation_max_ratio_db=7.5,
        forest_vh_db=-15.0,
        low_vegetation_vh_db=-19.0,
    ),
    Season.WINTER: ClassificationThresholds(
        season=Season.WINTER,
        water_vh_db=-25.0,
        water_vv_db=-19.0,
        dense_vegetation_vh_db=-14.0,
        dense_vegetation_max_ratio_db=8.0,
        forest_vh_db=-16.0,
        low_vegetation_vh_db=-20.0,
    ),
    Season.SPRING: ClassificationThresholds(
        season=Season.SPRING,
        water_vh_db=-24.5,
        water_vv_db=-18.5,
        dense_vegetation_vh_db=-13.5,
        dense_vegetation_max_ratio_db=7.5,
        forest_vh_db=-15.5,
        low_vegetation_vh_db=-19.5,
    ),
}


def thresholds_for(season: Season = Season.ANNUAL) -> ClassificationThresholds:
    """Return the fixed threshold profile for *season*."""
    return _PROFILES[season]


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ClassRule:
    """One ``(predicate, label)`` row of the cascade.

    The predicate is stored as data so the same rule can be evaluated in
    Python, in numpy, and rendered into the evalscript:

    - ``vh_below`` / ``vv_below``: strict upper bounds (water rule)
    - ``vh_above``: strict lower bound on VH
    - ``ratio_below``: strict upper bound on VV−VH
    - a rule with no bounds always matches (the default)

    ``vh_below`` and ``vv_below`` are OR-ed; every other bound is AND-ed.
    """

    label: LandCover
    vh_below: float | None = None
    vv_below: float | None = None
    vh_above: float | None = None
    ratio_below: float | None = None

    def matches(self, vv_db: float, vh_db: float) -> bool:
        if self.vh_below is not None or self.vv_below is not None:
            return (self.vh_below is not None and vh_db < self.vh_below) or (
                self.vv_below is not None and vv_db < self.vv_below
            )
        if self.vh_above is not None and vh_db <= self.vh_above:
            return False
        return self.ratio_below is None or (vv_db - vh_db) < self.ratio_below

    def matches_array(self, vv_db: np.ndarray, vh_db: np.ndarray) -> np.ndarray:
        if self.vh_below is not None or self.vv_below is not None:
            hit = np.zeros(vv_db.shape, dtype=bool)
            if self.vh_below is not None:
                hit |= vh_db < self.vh_below
            if self.vv_below is not None:
                hit |= vv_db < self.vv_below
            return hit
        hit = np.ones(vv_db.shape, dtype=bool)
        if self.vh_above is not None:
            hit &= vh_db > self.vh_above
        if self.ratio_below is not None:
            hit &= (vv_db - vh_db) < self.ratio_below
        return hit

    def to_js(self) -> str:
        """Render the predicate as an evalscript boolean expression."""
        if self.vh_below is not None or self.vv_below is not None:
            terms = []
            if self.vh_below is not None:
                terms.append(f"vh < {self.vh_below!r}")
            if self.vv_below is not None:
                terms.append(f"vv < {self.vv_below!r}")
            return " || ".join(terms)
        terms = []
        if self.vh_above is not None:
            terms.append(f"vh > {self.vh_above!r}")
        if self.ratio_below is not None:
            terms.append(f"(vv - vh) < {self.ratio_below!r}")
        return " && ".join(terms) if terms else "true"


def build_rules(thresholds: ClassificationThresholds) -> tuple[ClassRule, ...]:
    """Return the ordered cascade for *thresholds*."""
    return (
        ClassRule(
            LandCover.WATER,
            vh_below=thresholds.water_vh_db,
            vv_below=thresholds.water_vv_db,
        ),
        ClassRule(
            LandCover.DENSE_VEGETATION,
            vh_above=thresholds.dense_vegetation_vh_db,
            ratio_below=thresholds.dense_vegetation_max_ratio_db,
        ),
        ClassRule(LandCover.FOREST, vh_above=thresholds.forest_vh_db),
        ClassRule(LandCover.LOW_VEGETATION, vh_above=thresholds.low_vegetation_vh_db),
        ClassRule(LandCover.BARE_URBAN),
    )


# ---------------------------------------------------------------------------
# Evaluators
# ---------------------------------------------------------------------------


def classify_pixel(
    vv_linear: float,
    vh_linear: float,
    data_mask: float = 1.0,
    rules: tuple[ClassRule, ...] | None = None,
) -> LandCover:
    """Classify one pixel from linear VV/VH power."""
    if rules is None:
        rules = build_rules(thresholds_for())
    if not data_mask or not vv_linear > 0 or not vh_linear > 0:
        return LandCover.NO_DATA

    vv_db = 10.0 * math.log10(max(vv_linear, DB_EPSILON))
    vh_db = 10.0 * math.log10(max(vh_linear, DB_EPSILON))
    return classify_db(vv_db, vh_db, rules)


def classify_db(vv_db: float, vh_db: float, rules: tuple[ClassRule, ...]) -> LandCover:
    """Run the cascade on decibel values; first matching rule wins."""
    for rule in rules:
        if rule.matches(vv_db, vh_db):
            return rule.label
    return LandCover.BARE_URBAN


def classify_raster(
    raster: RasterBuffer,
    rules: tuple[ClassRule, ...] | None = None,
    *,
    vv_band: int = 0,
    vh_band: int = 1,
    mask_band: int | None = 2,
) -> np.ndarray:
    """Classify every pixel of a raw ``[VV, VH, dataMask]`` raster.

    Returns:
        ``uint8`` array of shape ``(height, width)`` holding class labels.
    """
    if rules is None:
        rules = build_rules(thresholds_for())

    vv = raster.band(vv_band).astype(np.float64)
    vh = raster.band(vh_band).astype(np.float64)
    valid = np.isfinite(vv) & np.isfinite(vh) & (vv > 0) & (vh > 0)
    if mask_band is not None:
        valid &= raster.band(mask_band) != 0

    with np.errstate(divide="ignore", invalid="ignore"):
        vv_db = 10.0 * np.log10(np.fmax(vv, DB_EPSILON))
        vh_db = 10.0 * np.log10(np.fmax(vh, DB_EPSILON))

    labels = np.full(vv.shape, LandCover.NO_DATA, dtype=np.uint8)
    pending = valid.copy()
    for rule in rules:
        hit = pending & rule.matches_array(vv_db, vh_db)
        labels[hit] = rule.label
        pending &= ~hit
    labels[pending] = LandCover.BARE_URBAN
    return labels.reshape(raster.height, raster.width)


def class_distribution(labels: np.ndarray) -> dict[str, float]:
    """Fraction of classified (non-``NO_DATA``) pixels per land-cover class."""
    classified = labels[labels != LandCover.NO_DATA]
    if classified.size == 0:
        return {}
    counts = np.bincount(classified.reshape(-1), minlength=len(LandCover))
    return {
        label.name.lower(): float(counts[label] / classified.size)
        for label in LandCover
        if label is not LandCover.NO_DATA
    }


def encode_class(label: LandCover | int) -> int:
    """Byte value used for direct visualisation of a class label."""
    return int(label) * CLASS_BYTE_SCALE


# ---------------------------------------------------------------------------
# Evalscript generation
# ---------------------------------------------------------------------------


def build_classification_script(
    thresholds: ClassificationThresholds | None = None,
) -> str:
    """Generate the per-pixel evalscript implementing the cascade.

    The script reads linear ``VV``, ``VH`` and ``dataMask``, returns a
    single ``UINT8`` band of ``label × 50``, and evaluates the rules in
    exactly the order ``build_rules`` returns them.
    """
    if thresholds is None:
        thresholds = thresholds_for()
    rules = build_rules(thresholds)

    branches = []
    for rule in rules:
        value = encode_class(rule.label)
        condition = rule.to_js()
        if condition == "true":
            branches.append(f"  return [{value}]; // {rule.label.name.lower()}")
        else:
            branches.append(
                f"  if ({condition}) return [{value}]; // {rule.label.name.lower()}"
            )
    cascade = "\n".join(branches)

    return f"""//VERSION=3
// profile: {thresholds.season.value}
function setup() {{
  return {{
    input: [{{ bands: ["VV", "VH", "dataMask"] }}],
    output: {{ bands: 1, sampleType: "UINT8" }}
  }};
}}

function toDb(linear) {{
  return 10 * Math.log(Math.max(linear, {DB_EPSILON!r})) / Math.LN10;
}}

function evaluatePixel(sample) {{
  if (sample.dataMask === 0 || sample.VV <= 0 || sample.VH <= 0) {{
    return [{encode_class(LandCover.NO_DATA)}]; // no_data
  }}
  const vv = toDb(sample.VV);
  const vh = toDb(sample.VH);
{cascade}
}}
"""
