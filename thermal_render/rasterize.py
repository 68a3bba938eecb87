# thermal_render/rasterize.py
"""
Frame Rasterizer

Renders one equirectangular RGBA frame from a single-day temperature grid:
nearest-neighbor ocean mask, bicubic resampling, color ramp, optional box
blur, then the ocean pixels are stamped white again.
"""

import math
from typing import Any, Dict, Optional

import numpy as np

from config.colormaps import DEFAULT_COLORWAY
from .box_blur import DEFAULT_PASSES, box_blur
from .bicubic import bicubic_sample_grid
from .color_ramp import ColorRamp
from .common import RenderOptionsError, _dbg, round_half_up
from .grid import RENDER_HEIGHT, RENDER_WIDTH, as_grid
from .ocean_mask import ocean_mask

# Blur radii are given in pixels at this reference width
BLUR_REFERENCE_WIDTH = 2048


class RenderOptions:
    """Colorway (or custom stop table) plus blur radius for a render call."""

    def __init__(self, colorway: Optional[str] = None, custom_stops=None,
                 blur_radius: float = 0):
        if colorway is not None and custom_stops is not None:
            raise RenderOptionsError("Give either a colorway or custom stops, not both")
        try:
            blur_radius = float(blur_radius or 0)
        except (TypeError, ValueError):
            raise RenderOptionsError(f"blur_radius must be a number, got {blur_radius!r}") from None
        if not (math.isfinite(blur_radius) and blur_radius >= 0):
            raise RenderOptionsError(f"blur_radius must be a finite number >= 0, got {blur_radius}")

        if custom_stops is not None:
            self.ramp = ColorRamp(custom_stops)
            self.colorway = None
        else:
            self.colorway = colorway or DEFAULT_COLORWAY
            self.ramp = ColorRamp.named(self.colorway)
        self.blur_radius = blur_radius

    @classmethod
    def from_dict(cls, opts: Optional[Dict[str, Any]]) -> 'RenderOptions':
        """Build options from a dict using either snake_case or the message-protocol camelCase keys."""
        if opts is None:
            return cls()
        if isinstance(opts, RenderOptions):
            return opts
        known = {'colorway', 'custom_stops', 'customStops', 'blur_radius', 'blurRadius'}
        unknown = set(opts) - known
        if unknown:
            raise RenderOptionsError(f"Unknown render options: {sorted(unknown)}")
        return cls(
            colorway=opts.get('colorway'),
            custom_stops=opts.get('custom_stops', opts.get('customStops')),
            blur_radius=opts.get('blur_radius', opts.get('blurRadius', 0)),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            'colorway': self.colorway,
            'custom_stops': None if self.colorway else [
                {'t': t, 'c': list(c)} for t, c in self.ramp.stops
            ],
            'blur_radius': self.blur_radius,
        }

    def scaled_blur_radius(self, width: int) -> int:
        """Blur radius in output pixels; 0 means no blur, otherwise at least 1."""
        if self.blur_radius <= 0:
            return 0
        return max(1, int(round_half_up(self.blur_radius * width / BLUR_REFERENCE_WIDTH)))

    def __repr__(self):
        label = self.colorway or f"custom[{len(self.ramp)}]"
        return f"RenderOptions({label}, blur={self.blur_radius})"


def pixel_coordinates(width: int, height: int):
    """Latitude per row and longitude per column of an equirectangular frame."""
    y = np.arange(height, dtype=np.float64)
    x = np.arange(width, dtype=np.float64)
    lats = 90 - (y / height) * 180
    lngs = (x / width) * 360 - 180
    return lats[:, None], lngs[None, :]


def render_pixel_data(temps, opts=None, width: int = RENDER_WIDTH,
                      height: int = RENDER_HEIGHT) -> np.ndarray:
    """
    Render one RGBA frame.

    Output depends only on the arguments; nothing is cached between calls.

    Args:
        temps: Single-day grid (NUM_POINTS values, NaN = ocean)
        opts: RenderOptions, options dict, or None for the defaults
        width: Output width in pixels
        height: Output height in pixels

    Returns:
        uint8 array shaped (height, width, 4), alpha 255 everywhere
    """
    if int(width) != width or int(height) != height or width < 1 or height < 1:
        raise RenderOptionsError(f"Frame size must be positive integers, got {width}x{height}")
    width, height = int(width), int(height)

    grid = as_grid(temps)
    opts = RenderOptions.from_dict(opts)

    lats, lngs = pixel_coordinates(width, height)
    ocean = ocean_mask(grid, lats, lngs)

    data = np.full((height, width, 4), 255, dtype=np.uint8)
    land = ~ocean
    if np.any(land):
        lat_px = np.broadcast_to(lats, (height, width))[land]
        lng_px = np.broadcast_to(lngs, (height, width))[land]
        temp = bicubic_sample_grid(grid, lat_px, lng_px)
        data[land, :3] = opts.ramp.map(temp)

    radius = opts.scaled_blur_radius(width)
    if radius > 0:
        box_blur(data, width, height, radius, DEFAULT_PASSES)
        # Undo blur bleed across the coastline
        data[ocean, :3] = 255

    _dbg(f"Rendered {width}x{height} frame ({opts}), ocean {ocean.mean() * 100:.1f}%")
    return data


def render_image(temps, opts=None, width: int = RENDER_WIDTH, height: int = RENDER_HEIGHT):
    """Render a frame and wrap it as an RGBA ``PIL.Image``."""
    from PIL import Image

    return Image.fromarray(render_pixel_data(temps, opts, width, height))
