#!/usr/bin/env python3

import argparse
import json
import logging
import multiprocessing as mp
import time
from pathlib import Path

from smart_atlas.utils import setup_logging, parse_day_range
from smart_atlas.io import (create_output_structure, load_temperature_stack, save_atlas,
                            save_frame, select_days)
from smart_atlas.atlas_job import AtlasJob
from core.metadata import save_atlas_metadata
from core.legend import create_colorbar
from thermal_render import RENDER_HEIGHT, RENDER_WIDTH, RenderOptions, day_slice, render_pixel_data
from config.colormaps import COLORWAY_MAP


def build_options(args):
    """Merge --options JSON, --stops-file and CLI flags into RenderOptions"""
    opts = {}
    if args.options:
        opts.update(json.loads(Path(args.options).read_text()))
    if args.stops_file:
        opts.pop('colorway', None)
        opts['custom_stops'] = json.loads(Path(args.stops_file).read_text())
    if args.colorway:
        opts.pop('custom_stops', None)
        opts.pop('customStops', None)
        opts['colorway'] = args.colorway
    if args.blur is not None:
        opts.pop('blurRadius', None)
        opts['blur_radius'] = args.blur
    return RenderOptions.from_dict(opts)


def render_frames(stack, days, opts, output_dir, width, height, logger):
    """Render one PNG per selected day; failures are logged and skipped"""
    processed, failed = 0, []
    for day in days:
        try:
            pixels = render_pixel_data(day_slice(stack, day), opts, width, height)
            path = save_frame(pixels, output_dir / f"day_{day:03d}.png")
            processed += 1
            logger.info(f"✓ Day {day}: {path.name}")
        except Exception as e:
            logger.error(f"✗ Failed to render day {day}: {e}")
            failed.append(day)

    logger.info(f"Rendered {processed}/{len(days)} frames")
    if failed:
        logger.warning(f"Failed days: {', '.join(str(d) for d in failed)}")
    return {'processed': processed, 'failed': failed, 'total': len(days)}


def build_atlas(stack, num_days, opts, dirs, workers, logger):
    job = AtlasJob(stack, num_days, opts, workers=workers)
    start = time.time()

    def on_message(msg):
        if msg['type'] == 'progress' and (msg['done'] % 10 == 0 or msg['done'] == msg['total']):
            elapsed = time.time() - start
            rate = msg['done'] / elapsed if elapsed > 0 else 0
            eta = (msg['total'] - msg['done']) / rate if rate > 0 else 0
            logger.info(f"  Progress: {msg['done']}/{msg['total']} days "
                        f"| {elapsed:.1f}s elapsed, ~{eta:.1f}s remaining")

    try:
        result = job.run(emit=on_message)
    except KeyboardInterrupt:
        job.cancel()
        logger.warning("Interrupted")
        return None

    atlas_path = save_atlas(result, dirs['atlas'])
    meta_path = save_atlas_metadata(result, opts, dirs['atlas'], temps=stack)
    logger.info(f"Atlas: {atlas_path} ({result['cols']}x{result['rows']} tiles), metadata: {meta_path.name}")
    return atlas_path


def main():
    parser = argparse.ArgumentParser(description="Thermal globe frame and atlas renderer")
    parser.add_argument("input", nargs="?", help="Daily temperature grid file (.npy, .npz, .nc)")
    parser.add_argument("--variable", help="netCDF variable / npz key to read")
    parser.add_argument("--atlas", action="store_true", help="Render all selected days into one atlas JPEG")
    parser.add_argument("--frames", action="store_true", help="Render one PNG per selected day")
    parser.add_argument("--legend", action="store_true", help="Write a colorbar PNG for the ramp")
    parser.add_argument("--days", help="Day selection (e.g. 0-59 or 0,7,14); default all")
    parser.add_argument("--colorway", choices=sorted(COLORWAY_MAP), help="Named color ramp (default: thermal)")
    parser.add_argument("--stops-file", help="JSON file with custom stops [[t, [r, g, b]], ...]")
    parser.add_argument("--options", help="JSON file with render options")
    parser.add_argument("--blur", type=float, help="Blur radius in px at 2048 px width")
    parser.add_argument("--width", type=int, default=RENDER_WIDTH, help=f"Frame width (default: {RENDER_WIDTH})")
    parser.add_argument("--height", type=int, default=RENDER_HEIGHT, help=f"Frame height (default: {RENDER_HEIGHT})")
    parser.add_argument("--workers", type=int, default=1, help="Parallel atlas render processes (default: 1)")
    parser.add_argument("--output-dir", default="outputs/thermal", help="Output directory")
    parser.add_argument("--debug", action="store_true", help="Debug logging")

    args = parser.parse_args()

    if args.colorway and args.stops_file:
        parser.error("Cannot combine --colorway with --stops-file")
    if not (args.atlas or args.frames or args.legend):
        parser.error("Nothing to do: pass --atlas, --frames and/or --legend")
    if (args.atlas or args.frames) and not args.input:
        parser.error("An input grid file is required for --atlas/--frames")

    dirs = create_output_structure(args.output_dir)
    logger = setup_logging(debug=args.debug, output_dir=dirs['base'])
    opts = build_options(args)

    if args.legend:
        path = create_colorbar(opts, dirs['base'] / f"legend_{opts.colorway or 'custom'}.png")
        logger.info(f"Legend: {path}")

    if not (args.atlas or args.frames):
        return

    stack, num_days = load_temperature_stack(args.input, args.variable)
    days = parse_day_range(args.days) or list(range(num_days))

    if args.frames:
        render_frames(stack, days, opts, dirs['frames'], args.width, args.height, logger)

    if args.atlas:
        if days != list(range(num_days)):
            stack, num_days = select_days(stack, days)
        workers = min(args.workers, mp.cpu_count()) if args.workers > 0 else 1
        build_atlas(stack, num_days, opts, dirs, workers, logger)


if __name__ == "__main__":
    logging.captureWarnings(True)
    main()
