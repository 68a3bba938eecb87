"""
Grid Loading and Output Files

Reads already-gridded daily temperature stacks (.npy, .npz, netCDF) into the
concatenated layout the renderer expects, and writes frames and atlases.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
import xarray as xr

from thermal_render import NUM_LAT, NUM_LNG, NUM_POINTS, GridError, as_day_stack, day_slice

logger = logging.getLogger(__name__)

LAT_NAMES = ('latitude', 'lat')
LON_NAMES = ('longitude', 'lon', 'lng')
NETCDF_SUFFIXES = ('.nc', '.nc4', '.netcdf')


def _find_dim(da: xr.DataArray, names) -> str:
    for name in names:
        if name in da.dims:
            return name
    raise GridError(f"No {names[0]} dimension in {list(da.dims)}")


def grid_from_dataarray(da: xr.DataArray) -> Tuple[np.ndarray, int]:
    """
    Convert an xarray temperature field to a concatenated day stack.

    Latitude is put in descending order and longitude in ascending -180..180
    order; any other dimension (time/day) becomes the day axis.

    Args:
        da: DataArray with latitude/longitude dims and at most one more dim

    Returns:
        (stack, num_days)
    """
    lat_dim = _find_dim(da, LAT_NAMES)
    lon_dim = _find_dim(da, LON_NAMES)

    # Convert 0..360 longitudes to -180..180
    closed_seam = False
    if float(da[lon_dim].max()) > 180:
        da = da.sortby(lon_dim)
        closed_seam = float(da[lon_dim][0]) == 0 and float(da[lon_dim][-1]) == 360
        if closed_seam:
            # 0 and 360 are the same meridian
            da = da.isel({lon_dim: slice(0, -1)})
        da = da.assign_coords({lon_dim: ((da[lon_dim] + 180) % 360) - 180})
    da = da.sortby(lat_dim, ascending=False).sortby(lon_dim)

    if closed_seam:
        # Repeat the -180 column as +180
        seam = da.isel({lon_dim: [0]}).assign_coords({lon_dim: [180.0]})
        da = xr.concat([da, seam], dim=lon_dim)

    other = [d for d in da.dims if d not in (lat_dim, lon_dim)]
    if len(other) > 1:
        raise GridError(f"Expected at most one day dimension, got {other}")
    da = da.transpose(*other, lat_dim, lon_dim)

    values = np.asarray(da.values, dtype=np.float64)
    if values.shape[-2:] != (NUM_LAT, NUM_LNG):
        raise GridError(
            f"Grid must be {NUM_LAT}x{NUM_LNG} (2° global), got {values.shape[-2:]}"
        )
    num_days = values.shape[0] if other else 1
    return as_day_stack(values, num_days), num_days


def _stack_from_array(arr: np.ndarray) -> Tuple[np.ndarray, int]:
    arr = np.asarray(arr, dtype=np.float64)
    if arr.size == 0 or arr.size % NUM_POINTS:
        raise GridError(f"Array of {arr.size} values is not a whole number of {NUM_POINTS}-point grids")
    num_days = arr.size // NUM_POINTS
    return as_day_stack(arr, num_days), num_days


def load_temperature_stack(path, variable: Optional[str] = None) -> Tuple[np.ndarray, int]:
    """
    Load a daily temperature stack from disk.

    Args:
        path: .npy, .npz (key ``temps`` or the first array) or netCDF file
        variable: netCDF variable / npz key to read (default: first one)

    Returns:
        (stack, num_days) with stack a read-only float64 vector
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == '.npy':
        stack, num_days = _stack_from_array(np.load(path))
    elif suffix == '.npz':
        with np.load(path) as npz:
            key = variable or ('temps' if 'temps' in npz.files else npz.files[0])
            stack, num_days = _stack_from_array(npz[key])
    elif suffix in NETCDF_SUFFIXES:
        with xr.open_dataset(path) as ds:
            name = variable or list(ds.data_vars)[0]
            stack, num_days = grid_from_dataarray(ds[name].load())
    else:
        raise GridError(f"Unsupported grid file type: {path.name}")

    missing = np.count_nonzero(np.isnan(stack)) / stack.size
    logger.info(f"Loaded {num_days} days from {path.name} ({missing * 100:.1f}% missing)")
    return stack, num_days


def select_days(stack: np.ndarray, days: List[int]) -> Tuple[np.ndarray, int]:
    """Build a new stack holding only the given days, in the given order."""
    num_available = stack.size // NUM_POINTS
    bad = [d for d in days if d >= num_available]
    if bad:
        raise GridError(f"Days {bad} out of range (stack has {num_available} days)")
    selected = np.concatenate([day_slice(stack, d) for d in days])
    return as_day_stack(selected, len(days)), len(days)


def create_output_structure(output_dir) -> Dict[str, Path]:
    """Create frames/ and atlas/ directories under output_dir."""
    base = Path(output_dir)
    dirs = {
        'base': base,
        'frames': base / 'frames',
        'atlas': base / 'atlas',
    }
    for d in dirs.values():
        d.mkdir(parents=True, exist_ok=True)
    return dirs


def save_frame(pixels: np.ndarray, output_path) -> Path:
    """Write an RGBA frame as PNG."""
    from PIL import Image

    output_path = Path(output_path)
    Image.fromarray(pixels).save(output_path, format='PNG')
    return output_path


def save_atlas(result: Dict, output_dir, name: str = 'thermal_atlas') -> Path:
    """Write the encoded atlas bytes from a result message to ``{name}.jpg``."""
    output_path = Path(output_dir) / f"{name}.jpg"
    output_path.write_bytes(result['buffer'])
    logger.info(f"Saved atlas: {output_path} ({len(result['buffer']) / 1024 / 1024:.1f} MB)")
    return output_path
