# thermal_render/bicubic.py
"""
Bicubic (Catmull-Rom) resampling of the 2° temperature grid.

Missing neighbors are filled with the mean of the valid ones before
interpolating, which keeps land values from ringing against the coastline.
"""

import numpy as np

from .grid import (GRID_STEP, LAT_MAX, LNG_MIN, NUM_LNG, clamp_lat_index, is_missing,
                   wrap_lng_index)

# Neighborhood offsets around floor(g)
_OFFSETS = (-1, 0, 1, 2)


def catmull_rom_weights(t):
    """
    Catmull-Rom cubic convolution weights for fractional offset t in [0, 1).

    Args:
        t: Scalar or array of fractional offsets

    Returns:
        Tuple (w0, w1, w2, w3); the weights sum to 1
    """
    t2 = t * t
    t3 = t2 * t
    return (
        (-t3 + 2 * t2 - t) / 2,
        (3 * t3 - 5 * t2 + 2) / 2,
        (-3 * t3 + 4 * t2 + t) / 2,
        (t3 - t2) / 2,
    )


def bicubic_sample_grid(temps: np.ndarray, lats, lngs) -> np.ndarray:
    """
    Sample the grid at continuous (lat, lng) positions.

    Args:
        temps: Single-day grid, NUM_POINTS values (NaN = missing)
        lats: Latitudes in degrees (any shape)
        lngs: Longitudes in degrees, broadcastable against lats

    Returns:
        float64 array of interpolated temperatures; NaN where all 16
        neighbors are missing
    """
    temps = np.asarray(temps, dtype=np.float64)
    lats, lngs = np.broadcast_arrays(np.asarray(lats, dtype=np.float64),
                                     np.asarray(lngs, dtype=np.float64))
    g_lat = (LAT_MAX - lats) / GRID_STEP
    g_lng = (lngs - LNG_MIN) / GRID_STEP

    lat_base = np.floor(g_lat)
    lng_base = np.floor(g_lng)
    t_lat = g_lat - lat_base
    t_lng = g_lng - lng_base
    lat_base = lat_base.astype(np.int64)
    lng_base = lng_base.astype(np.int64)

    # 16 samples in row-major neighborhood order (dy outer, dx inner)
    raw = []
    valid_sum = np.zeros(lats.shape, dtype=np.float64)
    valid_count = np.zeros(lats.shape, dtype=np.int64)
    for dy in _OFFSETS:
        row_idx = clamp_lat_index(lat_base + dy) * NUM_LNG
        for dx in _OFFSETS:
            v = temps[row_idx + wrap_lng_index(lng_base + dx)]
            ok = ~is_missing(v)
            valid_sum = valid_sum + np.where(ok, v, 0.0)
            valid_count += ok
            raw.append(v)

    with np.errstate(invalid='ignore', divide='ignore'):
        fallback = valid_sum / valid_count
    raw = [np.where(is_missing(v), fallback, v) for v in raw]

    w_lat = catmull_rom_weights(t_lat)
    w_lng = catmull_rom_weights(t_lng)

    result = np.zeros(lats.shape, dtype=np.float64)
    for row in range(4):
        row_val = np.zeros(lats.shape, dtype=np.float64)
        for col in range(4):
            row_val = row_val + w_lng[col] * raw[row * 4 + col]
        result = result + w_lat[row] * row_val

    return np.where(valid_count == 0, np.nan, result)


def bicubic_sample(temps: np.ndarray, lat: float, lng: float) -> float:
    """Sample one (lat, lng) position; NaN if the whole neighborhood is missing."""
    return float(bicubic_sample_grid(temps, lat, lng))
