"""
Thermal Render Common Helpers
Debug logging and the exception hierarchy shared by the rendering modules
"""

import os
import sys

import numpy as np

# Debug logging - accepts true/yes/on/1
_debug_val = os.getenv("THERMAL_DEBUG", "0").lower()
DEBUG = _debug_val in ("1", "true", "yes", "on")


def _dbg(msg):
    """Debug logging function - only outputs when THERMAL_DEBUG is truthy"""
    if DEBUG:
        print(msg, file=sys.stderr)


class ThermalRenderError(ValueError):
    """Base class for caller contract violations in the render pipeline"""


class GridError(ThermalRenderError):
    """Grid data has the wrong length, shape or type"""


class ColorRampError(ThermalRenderError):
    """Stop table is malformed or a colorway name is unknown"""


class RenderOptionsError(ThermalRenderError):
    """Render options are inconsistent (e.g. both colorway and custom stops)"""


def round_half_up(values):
    """
    Round to the nearest integer with ties going up, like ``Math.round``.

    Python's ``round`` and ``np.round`` round ties to even, which would shift
    colors at exact .5 boundaries.

    Args:
        values: Scalar or array of floats

    Returns:
        Array (or numpy scalar) of rounded floats
    """
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5)
