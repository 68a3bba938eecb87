"""Metadata generation for rendered atlases"""

import json
from datetime import datetime, timezone
from pathlib import Path

import numpy as np

from smart_atlas.atlas_job import atlas_geometry

PROCESSOR_VERSION = "1.0"


def atlas_tile_box(day, cols, frame_w, frame_h):
    """Pixel box (left, top, right, bottom) of a day's tile in the atlas"""
    col, row = day % cols, day // cols
    left, top = col * frame_w, row * frame_h
    return left, top, left + frame_w, top + frame_h


def build_atlas_metadata(result, opts, temps=None):
    """Build the metadata dictionary for an atlas result message"""
    geom = atlas_geometry(result['num_days'])
    opts_dict = opts.as_dict()

    metadata = {
        "atlas": {
            "num_days": result['num_days'],
            "cols": result['cols'],
            "rows": result['rows'],
            "frame_w": result['frame_w'],
            "frame_h": result['frame_h'],
            "width": geom['width'],
            "height": geom['height'],
            "format": "jpeg",
            "bytes": len(result['buffer']),
        },
        "visualization": {
            "colorway": opts_dict['colorway'] or 'custom',
            "stops": [{'t': t, 'c': list(c)} for t, c in opts.ramp.stops],
            "blur_radius": opts_dict['blur_radius'],
            "ocean_color": [255, 255, 255],
        },
        "processing": {
            "generated_utc": datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S'),
            "processor_version": PROCESSOR_VERSION,
        },
    }

    # Add data statistics if available
    if temps is not None:
        values = np.asarray(temps, dtype=np.float64)
        valid_data = values[~np.isnan(values)]
        if len(valid_data) > 0:
            metadata["data_statistics"] = {
                "min": float(valid_data.min()),
                "max": float(valid_data.max()),
                "mean": float(valid_data.mean()),
                "valid_points": int(len(valid_data)),
                "total_points": int(values.size),
            }

    return metadata


def save_atlas_metadata(result, opts, output_dir, temps=None, name='thermal_atlas'):
    """Save atlas metadata as a JSON sidecar next to the atlas image"""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    metadata = build_atlas_metadata(result, opts, temps)
    metadata_file = output_dir / f"{name}_metadata.json"
    with open(metadata_file, 'w') as f:
        json.dump(metadata, f, indent=2)

    return metadata_file
