# thermal_render/ocean_mask.py
"""Nearest-neighbor ocean / missing-data test, independent of the resampler."""

import numpy as np

from .common import round_half_up
from .grid import (GRID_STEP, LAT_MAX, LNG_MIN, NUM_LNG, clamp_lat_index, is_missing,
                   wrap_lng_index)


def ocean_mask(temps: np.ndarray, lats, lngs) -> np.ndarray:
    """
    True where the nearest grid cell holds the missing-data sentinel.

    The smoothed bicubic value never decides this, so land interpolation
    cannot leak into the ocean near coastlines.

    Args:
        temps: Single-day grid, NUM_POINTS values
        lats: Latitudes in degrees
        lngs: Longitudes in degrees, broadcastable against lats

    Returns:
        Boolean array
    """
    temps = np.asarray(temps, dtype=np.float64)
    lats, lngs = np.broadcast_arrays(np.asarray(lats, dtype=np.float64),
                                     np.asarray(lngs, dtype=np.float64))
    lat_idx = clamp_lat_index(round_half_up((LAT_MAX - lats) / GRID_STEP).astype(np.int64))
    lng_idx = wrap_lng_index(round_half_up((lngs - LNG_MIN) / GRID_STEP).astype(np.int64))
    return is_missing(temps[lat_idx * NUM_LNG + lng_idx])


def is_ocean_nearest(temps: np.ndarray, lat: float, lng: float) -> bool:
    return bool(ocean_mask(temps, lat, lng))
