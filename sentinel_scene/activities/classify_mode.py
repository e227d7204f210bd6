"""Acquisition mode lookup for Sentinel-1 scene identifiers.

Sentinel-1 product names encode polarisation and instrument mode, e.g.
``S1A_IW_GRDH_1SDV_20230701T232411_...``:

- ``1SDV`` dual VV+VH, ``1SSV`` single VV
- ``1SDH`` dual HH+HV, ``1SSH`` single HH
- ``_IW_`` / ``_EW_`` / ``_SM_`` / ``_WV_`` instrument mode

Identifiers that match nothing in the table resolve to ``DEFAULT_MODE``
(IW, dual VV+VH), the mode almost every land acquisition uses.
"""

from __future__ import annotations

import logging

from sentinel_scene.models.scene import AcquisitionMode

logger = logging.getLogger("sentinel_scene.activities.classify_mode")

DEFAULT_INSTRUMENT_MODE = "IW"

# Ordered: first substring found in the identifier wins.
_POLARIZATION_TABLE: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("1SDV", ("VV", "VH")),
    ("1SSV", ("VV",)),
    ("1SDH", ("HH", "HV")),
    ("1SSH", ("HH",)),
)

_INSTRUMENT_MODES: tuple[str, ...] = ("IW", "EW", "SM", "WV")

DEFAULT_MODE = AcquisitionMode(
    primary_polarization="VV",
    polarizations=("VV", "VH"),
    instrument_mode=DEFAULT_INSTRUMENT_MODE,
    band_count=2,
)


def classify_mode(scene_id: str) -> AcquisitionMode:
    """Decode polarisation and instrument mode from a scene identifier.

    Args:
        scene_id: Catalog identifier of a Sentinel-1 scene.

    Returns:
        The matching ``AcquisitionMode``; ``DEFAULT_MODE`` (or its
        polarisation with the decoded instrument mode) when the
        identifier is not recognised.
    """
    token = scene_id.upper()

    polarizations: tuple[str, ...] | None = None
    for marker, channels in _POLARIZATION_TABLE:
        if marker in token:
            polarizations = channels
            break

    instrument_mode = DEFAULT_INSTRUMENT_MODE
    for mode in _INSTRUMENT_MODES:
        if f"_{mode}_" in token or token.startswith(f"{mode}_"):
            instrument_mode = mode
            break

    if polarizations is None:
        logger.debug("Unrecognised polarisation in scene id %s; using default", scene_id)
        polarizations = DEFAULT_MODE.polarizations

    return AcquisitionMode(
        primary_polarization=polarizations[0],
        polarizations=polarizations,
        instrument_mode=instrument_mode,
        band_count=len(polarizations),
    )
