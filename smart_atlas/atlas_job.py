# smart_atlas/atlas_job.py
"""
Texture Atlas Job

Renders N days of temperature grids into one sprite sheet: 16 columns of
512x256 tiles, height padded to a power of two, empty slots white. Progress
is reported once per day; cancellation is checked at day boundaries only.
"""

import io
import logging
import math
import threading
import time
from multiprocessing import Pool
from typing import Any, Callable, Dict, Optional

import numpy as np

from thermal_render import RenderOptions, as_day_stack, day_slice, render_pixel_data

logger = logging.getLogger(__name__)

FRAME_W = 512
FRAME_H = 256
ATLAS_COLS = 16
JPEG_QUALITY = 92
YIELD_EVERY = 5

Emit = Callable[[Dict[str, Any]], None]


class AtlasEncodingError(RuntimeError):
    """The finished atlas could not be encoded"""


class CancellationToken:
    """Per-job cancel flag, safe to set from any thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n (n >= 1)."""
    return 1 << (int(n) - 1).bit_length()


def atlas_geometry(num_days: int) -> Dict[str, int]:
    """Tile layout for an atlas holding num_days frames."""
    rows = math.ceil(num_days / ATLAS_COLS)
    return {
        'num_days': num_days,
        'cols': ATLAS_COLS,
        'rows': rows,
        'frame_w': FRAME_W,
        'frame_h': FRAME_H,
        'width': ATLAS_COLS * FRAME_W,
        'height': next_power_of_two(rows * FRAME_H),
    }


def tile_position(day: int):
    """(col, row) of a day's tile."""
    return day % ATLAS_COLS, day // ATLAS_COLS


def encode_atlas(atlas: np.ndarray, quality: int = JPEG_QUALITY) -> bytes:
    """JPEG-encode an (H, W, 3) uint8 atlas."""
    from PIL import Image

    try:
        buf = io.BytesIO()
        Image.fromarray(atlas).save(buf, format='JPEG', quality=quality)
        return buf.getvalue()
    except (OSError, ValueError) as e:
        raise AtlasEncodingError(f"Failed to encode {atlas.shape[1]}x{atlas.shape[0]} atlas: {e}") from e


def _render_day_worker(args):
    """Worker function for parallel day rendering - must be at module level for pickling"""
    day_temps, opts = args
    return render_pixel_data(day_temps, opts, FRAME_W, FRAME_H)


def _iter_frames(stack, num_days, opts, workers, pool_holder):
    if workers <= 1:
        for day in range(num_days):
            yield render_pixel_data(day_slice(stack, day), opts, FRAME_W, FRAME_H)
        return

    work_items = ((np.array(day_slice(stack, day)), opts) for day in range(num_days))
    pool = Pool(processes=workers)
    pool_holder.append(pool)
    # imap keeps day order so progress stays monotonic
    for frame in pool.imap(_render_day_worker, work_items):
        yield frame


def render_atlas(all_temps, num_days: int, opts=None, emit: Optional[Emit] = None,
                 token: Optional[CancellationToken] = None, workers: int = 1,
                 encoder: Optional[Callable[[np.ndarray], bytes]] = None) -> Optional[Dict[str, Any]]:
    """
    Build and encode an atlas.

    Args:
        all_temps: Concatenated per-day grids (num_days * NUM_POINTS values)
        num_days: Number of days in all_temps
        opts: RenderOptions or options dict
        emit: Callback receiving progress and result messages
        token: Cancellation token polled before each day
        workers: Processes used to render days (1 = in this thread)
        encoder: Atlas -> bytes encoder (default: JPEG at JPEG_QUALITY)

    Returns:
        The result message, or None if cancelled

    Raises:
        GridError: If the grid length does not match num_days
        AtlasEncodingError: If encoding fails
    """
    stack = as_day_stack(all_temps, num_days)
    num_days = int(num_days)
    opts = RenderOptions.from_dict(opts)
    emit = emit or (lambda msg: None)
    token = token or CancellationToken()

    geom = atlas_geometry(num_days)
    logger.info(f"Atlas: {num_days} days -> {geom['cols']}x{geom['rows']} tiles, "
                f"{geom['width']}x{geom['height']} px ({opts})")

    # White is the identity for the multiply blend and fills unused slots
    atlas = np.full((geom['height'], geom['width'], 3), 255, dtype=np.uint8)

    start_time = time.time()
    pool_holder = []
    frames = _iter_frames(stack, num_days, opts, workers, pool_holder)
    try:
        for day in range(num_days):
            if token.cancelled:
                logger.info(f"Atlas cancelled before day {day}/{num_days}")
                return None

            pixels = next(frames)
            col, row = tile_position(day)
            y0, x0 = row * FRAME_H, col * FRAME_W
            atlas[y0:y0 + FRAME_H, x0:x0 + FRAME_W] = pixels[..., :3]

            emit({'type': 'progress', 'done': day + 1, 'total': num_days})

            if day % YIELD_EVERY == 0:
                # Let the host thread run (cancel requests, message delivery)
                time.sleep(0)
    finally:
        frames.close()
        for pool in pool_holder:
            pool.terminate()
            pool.join()

    if token.cancelled:
        logger.info("Atlas cancelled before encoding")
        return None

    buffer = (encoder or encode_atlas)(atlas)
    elapsed = time.time() - start_time
    logger.info(f"✓ Atlas encoded: {len(buffer) / 1024 / 1024:.1f} MB in {elapsed:.1f}s")

    result = {
        'type': 'atlas',
        'buffer': buffer,
        'num_days': num_days,
        'cols': geom['cols'],
        'rows': geom['rows'],
        'frame_w': FRAME_W,
        'frame_h': FRAME_H,
    }
    emit(result)
    return result


class AtlasJob:
    """One atlas build: owns its grid buffer, options and cancellation token.

    States: idle -> running -> cancelled | completed | failed
    """

    def __init__(self, all_temps, num_days: int, opts=None, workers: int = 1):
        self.temps = as_day_stack(all_temps, num_days)
        self.num_days = int(num_days)
        self.opts = RenderOptions.from_dict(opts)
        if isinstance(all_temps, np.ndarray) and all_temps.flags.writeable \
                and all_temps.flags.owndata:
            # The job owns the buffer from here on
            all_temps.setflags(write=False)
        self.workers = max(1, int(workers))
        self.token = CancellationToken()
        self.state = 'idle'
        self.done = 0
        self.error = None

    def cancel(self):
        self.token.cancel()

    def run(self, emit: Optional[Emit] = None) -> Optional[Dict[str, Any]]:
        """Run to completion, cancellation or failure (failures re-raise)."""
        if self.state != 'idle':
            raise RuntimeError(f"Atlas job already {self.state}")
        self.state = 'running'

        def track(msg):
            if msg['type'] == 'progress':
                self.done = msg['done']
            if emit is not None:
                emit(msg)

        try:
            result = render_atlas(self.temps, self.num_days, self.opts, emit=track,
                                  token=self.token, workers=self.workers)
        except Exception as e:
            self.state = 'failed'
            self.error = str(e)
            raise
        self.state = 'completed' if result is not None else 'cancelled'
        return result
