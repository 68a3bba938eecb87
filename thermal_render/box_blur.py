# thermal_render/box_blur.py
"""
Separable multi-pass box blur for RGBA frame buffers.

Three passes of a moving average approximate a Gaussian. Windows shrink at
the buffer edges instead of wrapping or mirroring.
"""

import numpy as np

from .common import _dbg

DEFAULT_PASSES = 3


def _moving_average(src: np.ndarray, radius: int, axis: int) -> np.ndarray:
    """
    Edge-shrinking moving average of uint8 data along one axis.

    Window for index i is [i - radius, i + radius] clipped to the buffer;
    output is floor(sum / count + 0.5). Integer sums make the prefix-sum form
    exact.
    """
    n = src.shape[axis]
    csum = np.cumsum(src, axis=axis, dtype=np.int64)
    pad_shape = list(csum.shape)
    pad_shape[axis] = 1
    csum = np.concatenate([np.zeros(pad_shape, dtype=np.int64), csum], axis=axis)

    idx = np.arange(n)
    lo = np.maximum(idx - radius, 0)
    hi = np.minimum(idx + radius, n - 1)
    sums = np.take(csum, hi + 1, axis=axis) - np.take(csum, lo, axis=axis)

    count_shape = [1] * src.ndim
    count_shape[axis] = n
    counts = (hi - lo + 1).reshape(count_shape)

    return np.floor(sums / counts + 0.5).astype(np.uint8)


def box_blur(data: np.ndarray, width: int, height: int, radius: int,
             passes: int = DEFAULT_PASSES) -> np.ndarray:
    """
    Blur the RGB channels of an RGBA buffer in place.

    Each pass runs a horizontal average into a scratch buffer and a vertical
    average back into ``data``. Alpha is left out of the arithmetic and set
    to 255.

    Args:
        data: uint8 RGBA buffer, flat (width*height*4) or shaped (height, width, 4)
        width: Buffer width in pixels
        height: Buffer height in pixels
        radius: Window half-width in pixels (0 = identity)
        passes: Number of horizontal+vertical passes

    Returns:
        ``data`` (modified in place)
    """
    if radius < 0:
        raise ValueError(f"Blur radius must be >= 0, got {radius}")
    if passes < 0:
        raise ValueError(f"Blur passes must be >= 0, got {passes}")
    if data.size != width * height * 4:
        raise ValueError(
            f"Buffer holds {data.size} bytes, expected {width}x{height}x4 = {width * height * 4}"
        )
    if data.ndim == 3 and data.shape[:2] != (height, width):
        raise ValueError(
            f"Buffer is shaped {data.shape[:2]}, expected (height, width) = ({height}, {width})"
        )

    frame = data.reshape(height, width, 4)
    if not np.shares_memory(frame, data):
        raise ValueError("Buffer must be contiguous to blur in place")

    scratch = np.empty_like(frame)
    for _ in range(passes):
        # Horizontal: frame -> scratch
        scratch[..., :3] = _moving_average(frame[..., :3], radius, axis=1)
        scratch[..., 3] = 255
        # Vertical: scratch -> frame
        frame[..., :3] = _moving_average(scratch[..., :3], radius, axis=0)

    frame[..., 3] = 255
    _dbg(f"Box blur: {width}x{height}, radius {radius}, {passes} passes")
    return data
