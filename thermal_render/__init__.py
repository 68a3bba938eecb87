# thermal_render/__init__.py
"""
Thermal Render Package

Pure, stateless rendering of 2° global temperature grids into color-mapped
RGBA frames. Used directly for single frames and by the atlas job executor.
"""

from .common import (
    ThermalRenderError,
    GridError,
    ColorRampError,
    RenderOptionsError,
    round_half_up,
)
from .grid import (
    GRID_STEP,
    LAT_MIN,
    LAT_MAX,
    LNG_MIN,
    LNG_MAX,
    NUM_LAT,
    NUM_LNG,
    NUM_POINTS,
    RENDER_WIDTH,
    RENDER_HEIGHT,
    MISSING,
    as_grid,
    as_day_stack,
    day_slice,
    grid_value,
    is_missing,
    clamp_lat_index,
    wrap_lng_index,
)
from .color_ramp import ColorRamp, resolve_ramp, temp_to_rgb
from .bicubic import catmull_rom_weights, bicubic_sample, bicubic_sample_grid
from .ocean_mask import ocean_mask, is_ocean_nearest
from .box_blur import box_blur
from .rasterize import RenderOptions, render_pixel_data, render_image, pixel_coordinates
from config.colormaps import COLORWAY_MAP
