"""Temperature color ramps for thermal globe imagery"""

from matplotlib.colors import LinearSegmentedColormap


# Each ramp is a list of (threshold °C, (r, g, b)) stops with strictly
# increasing thresholds. Values are reference data; keep them exact.

# Thermal - deep blue (cold) -> white comfort band -> yellow -> red -> dark red
THERMAL_STOPS = [
    (-30, (20, 40, 150)),
    (5, (60, 130, 255)),
    (10, (255, 255, 255)),
    (15.5, (255, 255, 255)),
    (18, (255, 235, 50)),
    (25, (255, 220, 40)),
    (26.7, (255, 160, 20)),
    (32, (255, 40, 20)),
    (50, (150, 0, 0)),
]

# Classic - blue -> teal -> green -> yellow -> red
CLASSIC_STOPS = [
    (-20, (30, 100, 240)),
    (-5, (50, 160, 200)),
    (10, (60, 200, 90)),
    (25, (235, 220, 55)),
    (40, (210, 50, 30)),
]

# Earth - navy -> blue -> ochre/amber band -> burnt orange -> dark red
EARTH_STOPS = [
    (-30, (15, 25, 110)),
    (5, (55, 110, 225)),
    (10, (200, 190, 85)),
    (16, (220, 190, 55)),
    (18, (225, 175, 40)),
    (25, (220, 145, 30)),
    (27, (215, 110, 20)),
    (32, (200, 40, 15)),
    (50, (120, 0, 0)),
]

# Vivid - narrow, saturated range for warm-season comparisons
VIVID_STOPS = [
    (4, (30, 100, 240)),
    (10, (80, 180, 255)),
    (18, (255, 235, 0)),
    (24, (255, 130, 0)),
    (32, (240, 10, 0)),
]

COLORWAY_MAP = {
    'thermal': THERMAL_STOPS,
    'classic': CLASSIC_STOPS,
    'earth': EARTH_STOPS,
    'vivid': VIVID_STOPS,
}

DEFAULT_COLORWAY = 'thermal'


def stops_to_colormap(name, stops):
    """Build a matplotlib colormap whose nodes sit at the stop thresholds.

    Thresholds are normalised to 0..1 over the ramp's range so a colorbar
    spanning ``[stops[0][0], stops[-1][0]]`` shows the same gradient as the
    rasterizer.
    """
    lo = float(stops[0][0])
    hi = float(stops[-1][0])
    nodes = []
    for threshold, color in stops:
        pos = (float(threshold) - lo) / (hi - lo)
        nodes.append((pos, tuple(c / 255.0 for c in color)))
    return LinearSegmentedColormap.from_list(name, nodes)


def create_all_colormaps():
    """Create matplotlib colormaps for every named colorway"""
    colormaps = {}
    for name, stops in COLORWAY_MAP.items():
        colormaps[name] = stops_to_colormap(name, stops)
    return colormaps
