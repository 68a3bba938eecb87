#!/usr/bin/env python3
"""
Thermal Atlas Server

HTTP front end for the atlas job protocol: start / cancel an atlas build,
poll its progress, fetch the finished sprite sheet, or render single frames.

Usage:
    python tools/atlas_server.py --data temps_2024.npy
    python tools/atlas_server.py --data era5_daily_t2m.nc --variable t2m --port 5050
"""

import argparse
import io
import logging
import sys
import threading
from pathlib import Path

from flask import Flask, jsonify, request, send_file

sys.path.insert(0, str(Path(__file__).parent.parent))

from config.colormaps import COLORWAY_MAP
from smart_atlas.io import load_temperature_stack
from smart_atlas.orchestrator import AtlasJobBusyError, AtlasWorker
from thermal_render import (RENDER_HEIGHT, RENDER_WIDTH, NUM_POINTS, ThermalRenderError,
                            day_slice, render_image)

logging.basicConfig(level=logging.INFO, format='%(asctime)s | %(levelname)s | %(message)s')
logger = logging.getLogger(__name__)

app = Flask(__name__)

MAX_FRAME_PIXELS = 4096 * 2048

# =============================================================================
# DATA MANAGER
# =============================================================================

class AtlasDataManager:
    """Holds the loaded day stack and tracks the current atlas job."""

    def __init__(self):
        self.stack = None
        self.num_days = 0
        self.lock = threading.Lock()
        self.worker = AtlasWorker(listener=self._on_message)
        self._reset_status('idle')

    def _reset_status(self, state, total=0):
        self.status = {'state': state, 'done': 0, 'total': total, 'error': None}
        self.result = None

    def set_stack(self, stack, num_days):
        with self.lock:
            self.stack = stack
            self.num_days = num_days
        logger.info(f"Serving {num_days} days")

    def load(self, path, variable=None):
        stack, num_days = load_temperature_stack(path, variable)
        self.set_stack(stack, num_days)
        return num_days

    def _on_message(self, msg):
        # Runs on the worker thread
        with self.lock:
            if msg['type'] == 'progress':
                self.status['done'] = msg['done']
                self.status['total'] = msg['total']
            elif msg['type'] == 'atlas':
                self.status['state'] = 'completed'
                self.result = msg
            elif msg['type'] == 'error':
                self.status['state'] = 'failed'
                self.status['error'] = msg['error']

    def start(self, opts):
        # Held across start so the job's first messages land after the reset
        with self.lock:
            if self.stack is None:
                raise LookupError("No temperature data loaded")
            job = self.worker.start(self.stack, self.num_days, opts)
            self._reset_status('running', total=self.num_days)
        return job

    def cancel(self):
        self.worker.cancel()
        with self.lock:
            if self.status['state'] == 'running':
                self.status['state'] = 'cancelled'

    def get_status(self):
        with self.lock:
            status = dict(self.status)
        job = self.worker.job
        if status['state'] == 'running' and job is not None and job.state == 'cancelled':
            status['state'] = 'cancelled'
        return status


data_manager = AtlasDataManager()

# =============================================================================
# ROUTES
# =============================================================================

@app.route('/api/colorways')
def api_colorways():
    return jsonify({
        name: [{'t': t, 'c': list(c)} for t, c in stops]
        for name, stops in COLORWAY_MAP.items()
    })


@app.route('/api/info')
def api_info():
    return jsonify({
        'num_days': data_manager.num_days,
        'points_per_day': NUM_POINTS,
        'colorways': sorted(COLORWAY_MAP),
    })


@app.route('/api/frame')
def api_frame():
    try:
        day = int(request.args.get('day', 0))
        width = int(request.args.get('width', RENDER_WIDTH))
        height = int(request.args.get('height', RENDER_HEIGHT))
        opts = {
            'colorway': request.args.get('colorway', 'thermal'),
            'blur_radius': float(request.args.get('blur', 0)),
        }
    except ValueError as e:
        return jsonify({'error': f'Invalid parameters: {e}'}), 400

    if data_manager.stack is None:
        return jsonify({'error': 'No temperature data loaded'}), 503
    if not 0 <= day < data_manager.num_days:
        return jsonify({'error': f'Day {day} out of range 0..{data_manager.num_days - 1}'}), 400
    if width * height > MAX_FRAME_PIXELS:
        return jsonify({'error': f'Frame too large: {width}x{height}'}), 400

    try:
        img = render_image(day_slice(data_manager.stack, day), opts, width, height)
    except ThermalRenderError as e:
        return jsonify({'error': str(e)}), 400

    buf = io.BytesIO()
    img.save(buf, format='PNG')
    buf.seek(0)
    return send_file(buf, mimetype='image/png')


@app.route('/api/atlas/start', methods=['POST'])
def api_atlas_start():
    opts = request.get_json(silent=True) or {}
    try:
        data_manager.start(opts)
    except AtlasJobBusyError as e:
        return jsonify({'error': str(e)}), 409
    except LookupError as e:
        return jsonify({'error': str(e)}), 503
    except ThermalRenderError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify(data_manager.get_status()), 202


@app.route('/api/atlas/cancel', methods=['POST'])
def api_atlas_cancel():
    data_manager.cancel()
    return jsonify(data_manager.get_status())


@app.route('/api/atlas/status')
def api_atlas_status():
    return jsonify(data_manager.get_status())


@app.route('/api/atlas/result')
def api_atlas_result():
    result = data_manager.result
    if result is None:
        return jsonify({'error': 'No finished atlas'}), 404

    response = send_file(io.BytesIO(result['buffer']), mimetype='image/jpeg',
                         download_name='thermal_atlas.jpg')
    response.headers['X-Atlas-Days'] = str(result['num_days'])
    response.headers['X-Atlas-Cols'] = str(result['cols'])
    response.headers['X-Atlas-Rows'] = str(result['rows'])
    response.headers['X-Atlas-Frame-Width'] = str(result['frame_w'])
    response.headers['X-Atlas-Frame-Height'] = str(result['frame_h'])
    return response

# =============================================================================
# MAIN
# =============================================================================

def main():
    parser = argparse.ArgumentParser(description='Thermal Atlas Server')
    parser.add_argument('--data', required=True, help='Daily temperature grid file (.npy, .npz, .nc)')
    parser.add_argument('--variable', help='netCDF variable / npz key to read')
    parser.add_argument('--port', type=int, default=5050, help='Server port')
    parser.add_argument('--host', type=str, default='127.0.0.1', help='Server host')

    args = parser.parse_args()

    data_manager.load(args.data, args.variable)

    logger.info("=" * 60)
    logger.info("Thermal Atlas Server")
    logger.info(f"Open: http://{args.host}:{args.port}")
    logger.info("=" * 60)

    app.run(host=args.host, port=args.port, threaded=True)


if __name__ == '__main__':
    main()
