# thermal_render/color_ramp.py
"""
Piecewise-linear temperature -> RGB mapping.

Ocean / missing values map to white, the identity color for the multiply
blend used when the imagery is composited onto the globe.
"""

import math
from typing import Optional, Sequence, Tuple

import numpy as np

from config.colormaps import COLORWAY_MAP
from .common import ColorRampError, round_half_up

WHITE = (255, 255, 255)


def _parse_stop(stop):
    """Accept (t, (r, g, b)) pairs or {'t': t, 'c': [r, g, b]} dicts."""
    if isinstance(stop, dict):
        if 't' not in stop or 'c' not in stop:
            raise ColorRampError(f"Stop dict needs 't' and 'c' keys: {stop!r}")
        return stop['t'], stop['c']
    try:
        threshold, color = stop
    except (TypeError, ValueError):
        raise ColorRampError(f"Stop must be a (threshold, rgb) pair: {stop!r}") from None
    return threshold, color


def _is_rgb(color):
    try:
        return len(color) == 3 and all(
            not isinstance(c, bool) and int(c) == c and 0 <= c <= 255 for c in color
        )
    except (TypeError, ValueError):
        return False


class ColorRamp:
    """Validated, ordered stop table.

    Construction is where malformed tables fail; mapping never raises.
    """

    def __init__(self, stops: Sequence, name: Optional[str] = None):
        if stops is None or len(stops) < 2:
            raise ColorRampError("Color ramp needs at least 2 stops")

        thresholds = []
        colors = []
        for stop in stops:
            threshold, color = _parse_stop(stop)
            try:
                threshold = float(threshold)
            except (TypeError, ValueError):
                raise ColorRampError(f"Stop threshold is not a number: {threshold!r}") from None
            if not math.isfinite(threshold):
                raise ColorRampError(f"Stop threshold must be finite: {threshold!r}")
            if not _is_rgb(color):
                raise ColorRampError(f"Stop color must be 3 integers in 0..255: {color!r}")
            thresholds.append(threshold)
            colors.append(tuple(int(c) for c in color))

        for lo, hi in zip(thresholds, thresholds[1:]):
            if not hi > lo:
                raise ColorRampError(
                    f"Stop thresholds must be strictly increasing ({lo} then {hi})"
                )

        self.name = name
        self.thresholds = np.array(thresholds, dtype=np.float64)
        self.colors = np.array(colors, dtype=np.float64)
        self.stops = list(zip(thresholds, colors))

    @classmethod
    def named(cls, colorway: str) -> 'ColorRamp':
        if colorway not in COLORWAY_MAP:
            raise ColorRampError(
                f"Unknown colorway: {colorway}. Available: {sorted(COLORWAY_MAP)}"
            )
        return cls(COLORWAY_MAP[colorway], name=colorway)

    def __len__(self):
        return len(self.stops)

    def __repr__(self):
        label = self.name or 'custom'
        return f"ColorRamp({label}, {len(self)} stops, {self.thresholds[0]}..{self.thresholds[-1]})"

    def color_of(self, t) -> Tuple[int, int, int]:
        """Map one temperature to an (r, g, b) tuple."""
        if t is None or t != t:
            return WHITE

        if t <= self.thresholds[0]:
            return self.stops[0][1]
        if t >= self.thresholds[-1]:
            return self.stops[-1][1]

        for (a_t, a_c), (b_t, b_c) in zip(self.stops, self.stops[1:]):
            if a_t <= t <= b_t:
                p = (t - a_t) / (b_t - a_t)
                return tuple(
                    int(math.floor(a_c[i] + (b_c[i] - a_c[i]) * p + 0.5)) for i in range(3)
                )

        return WHITE

    def map(self, values) -> np.ndarray:
        """
        Vectorized ``color_of`` over an array of temperatures.

        Uses the same bracket choice and arithmetic order as the scalar path so
        results are bit-identical.

        Args:
            values: Array of temperatures (NaN = missing)

        Returns:
            uint8 array of shape ``values.shape + (3,)``
        """
        t = np.asarray(values, dtype=np.float64)
        flat = t.reshape(-1)
        out = np.full((flat.size, 3), 255, dtype=np.uint8)

        valid = ~np.isnan(flat)
        below = valid & (flat <= self.thresholds[0])
        above = valid & (flat >= self.thresholds[-1])
        inner = valid & ~below & ~above

        out[below] = self.colors[0].astype(np.uint8)
        out[above] = self.colors[-1].astype(np.uint8)

        if np.any(inner):
            ti = flat[inner]
            # side='left' picks the first bracket when t sits exactly on a stop
            idx = np.searchsorted(self.thresholds, ti, side='left') - 1
            idx = np.clip(idx, 0, len(self.thresholds) - 2)
            a_t = self.thresholds[idx]
            b_t = self.thresholds[idx + 1]
            a_c = self.colors[idx]
            b_c = self.colors[idx + 1]
            p = (ti - a_t) / (b_t - a_t)
            rgb = round_half_up(a_c + (b_c - a_c) * p[:, None])
            out[inner] = rgb.astype(np.uint8)

        return out.reshape(t.shape + (3,))


def resolve_ramp(stops) -> ColorRamp:
    """Coerce a ColorRamp, colorway name or raw stop list into a ColorRamp."""
    if isinstance(stops, ColorRamp):
        return stops
    if isinstance(stops, str):
        return ColorRamp.named(stops)
    return ColorRamp(stops)


def temp_to_rgb(t, stops='thermal') -> Tuple[int, int, int]:
    """
    Map a single temperature to RGB.

    Args:
        t: Temperature, or None/NaN for missing data
        stops: ColorRamp, colorway name, or list of stops

    Returns:
        (r, g, b) tuple of ints; white for missing data
    """
    return resolve_ramp(stops).color_of(t)
