# thermal_render/grid.py
"""
Equirectangular Temperature Grid

Fixed 2° global sampling grid shared by the resampler, the ocean mask and the
atlas builder. Rows run from +90 (north) to -90, columns from -180 to +180.
Missing data (ocean / no observation) is stored as NaN.
"""

import numpy as np

from .common import GridError, _dbg

GRID_STEP = 2
LAT_MIN = -90
LAT_MAX = 90
LNG_MIN = -180
LNG_MAX = 180
NUM_LAT = (LAT_MAX - LAT_MIN) // GRID_STEP + 1   # 91
NUM_LNG = (LNG_MAX - LNG_MIN) // GRID_STEP + 1   # 181
NUM_POINTS = NUM_LAT * NUM_LNG                   # 16 471

RENDER_WIDTH = 1024
RENDER_HEIGHT = 512

MISSING = np.nan


def clamp_lat_index(lat_idx):
    """Clamp latitude row index to [0, NUM_LAT-1] (no wrap over the poles)."""
    return np.clip(lat_idx, 0, NUM_LAT - 1)


def wrap_lng_index(lng_idx):
    """Wrap longitude column index cylindrically modulo NUM_LNG."""
    return np.mod(lng_idx, NUM_LNG)


def grid_value(temps, lat_idx, lng_idx):
    """Look up grid values with latitude clamping and longitude wrapping.

    Works on scalars or integer arrays of matching shape.
    """
    lat_idx = clamp_lat_index(lat_idx)
    lng_idx = wrap_lng_index(lng_idx)
    return temps[lat_idx * NUM_LNG + lng_idx]


def is_missing(values):
    """True where a grid value is the missing-data sentinel"""
    return np.isnan(values)


def _to_float_array(values):
    # numpy turns None into NaN when casting to float
    return np.asarray(values, dtype=np.float64)


def _read_only(arr):
    view = arr.view()
    view.setflags(write=False)
    return view


def as_grid(values):
    """
    Validate a single-day grid and return it as a read-only float64 vector.

    Args:
        values: Sequence or array of NUM_POINTS temperatures, or an array
                shaped (NUM_LAT, NUM_LNG). ``None`` entries become NaN.

    Returns:
        1D float64 array of length NUM_POINTS (read-only view)

    Raises:
        GridError: If the data does not hold exactly NUM_POINTS values
    """
    arr = _to_float_array(values)
    if arr.shape == (NUM_LAT, NUM_LNG):
        arr = arr.reshape(NUM_POINTS)
    if arr.ndim != 1 or arr.size != NUM_POINTS:
        raise GridError(
            f"Grid must hold {NUM_POINTS} values ({NUM_LAT}x{NUM_LNG}), got shape {arr.shape}"
        )
    return _read_only(arr)


def as_day_stack(values, num_days):
    """
    Validate a concatenated multi-day grid.

    Args:
        values: Flat sequence of ``num_days * NUM_POINTS`` values, or an array
                shaped (num_days, NUM_POINTS) / (num_days, NUM_LAT, NUM_LNG)
        num_days: Number of days the caller claims the buffer holds

    Returns:
        1D float64 array of length ``num_days * NUM_POINTS`` (read-only view)

    Raises:
        GridError: If num_days < 1 or the length does not match
    """
    if isinstance(num_days, bool) or int(num_days) != num_days or num_days < 1:
        raise GridError(f"num_days must be a positive integer, got {num_days!r}")
    num_days = int(num_days)

    arr = _to_float_array(values).reshape(-1)
    expected = num_days * NUM_POINTS
    if arr.size != expected:
        raise GridError(
            f"Grid length {arr.size} does not match {num_days} days x {NUM_POINTS} points "
            f"(expected {expected})"
        )

    _dbg(f"Day stack: {num_days} days, {np.count_nonzero(is_missing(arr))} missing cells")
    return _read_only(arr)


def day_slice(stack, day):
    """Return the grid for one day of a concatenated stack (a view, no copy)."""
    return stack[day * NUM_POINTS:(day + 1) * NUM_POINTS]
