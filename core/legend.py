"""Colorbar legends for the temperature ramps"""

from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.colorbar import ColorbarBase
from matplotlib.colors import Normalize

from config.colormaps import stops_to_colormap
from thermal_render import RenderOptions


def create_colorbar(opts, output_path, units='°C', dpi=150):
    """Draw a horizontal colorbar for the active ramp, ticked at each stop.

    Args:
        opts: RenderOptions or options dict
        output_path: PNG path to write
        units: Axis label
        dpi: Output resolution

    Returns:
        Path of the written PNG
    """
    opts = RenderOptions.from_dict(opts)
    stops = opts.ramp.stops
    name = opts.colorway or 'custom'
    cmap = stops_to_colormap(name, stops)
    lo, hi = stops[0][0], stops[-1][0]

    fig, ax = plt.subplots(figsize=(8, 1.1))
    fig.subplots_adjust(left=0.04, right=0.96, bottom=0.45, top=0.8)
    try:
        cb = ColorbarBase(ax, cmap=cmap, norm=Normalize(vmin=lo, vmax=hi),
                          orientation='horizontal')
        cb.set_ticks([t for t, _ in stops])
        cb.set_ticklabels([f"{t:g}" for t, _ in stops])
        cb.set_label(units)
        ax.set_title(f"{name.title()} ramp", fontsize=9)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=dpi)
    finally:
        plt.close(fig)

    return output_path
