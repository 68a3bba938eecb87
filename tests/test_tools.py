#!/usr/bin/env python3
"""End-to-end checks for the command line renderer and the atlas HTTP server"""

import io
import json
import logging
import sys
import threading

import numpy as np
import pytest
from PIL import Image

import atlas_cli
from thermal_render import NUM_POINTS
from tools import atlas_server

TIMEOUT = 120


def day_stack(*values):
    return np.concatenate([np.full(NUM_POINTS, v, dtype=np.float64) for v in values])


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers, root.level = handlers, level


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, 'argv', ['atlas_cli.py', *map(str, argv)])
    atlas_cli.main()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def test_cli_frames_atlas_legend(tmp_path, monkeypatch, restore_logging):
    data = tmp_path / 'temps.npy'
    np.save(data, day_stack(10, 20, 30))
    out = tmp_path / 'out'

    run_cli(monkeypatch, data, '--atlas', '--frames', '--legend', '--days', '0,2',
            '--width', 64, '--height', 32, '--blur', 8, '--output-dir', out)

    frames = sorted(p.name for p in (out / 'frames').glob('*.png'))
    assert frames == ['day_000.png', 'day_002.png']
    assert Image.open(out / 'frames' / 'day_002.png').size == (64, 32)
    assert (out / 'legend_thermal.png').exists()
    assert (out / 'thermal_atlas.log').exists()

    atlas = Image.open(out / 'atlas' / 'thermal_atlas.jpg')
    assert atlas.size == (16 * 512, 256)
    meta = json.loads((out / 'atlas' / 'thermal_atlas_metadata.json').read_text())
    assert meta['atlas']['num_days'] == 2
    assert meta['visualization']['blur_radius'] == 8


def test_cli_custom_stops(tmp_path, monkeypatch, restore_logging):
    stops = tmp_path / 'stops.json'
    stops.write_text(json.dumps([[0, [0, 0, 255]], [30, [255, 0, 0]]]))
    out = tmp_path / 'out'
    run_cli(monkeypatch, '--legend', '--stops-file', stops, '--output-dir', out)
    assert (out / 'legend_custom.png').exists()


@pytest.mark.parametrize('argv', [
    ['--legend', '--colorway', 'thermal', '--stops-file', 'x.json'],
    ['temps.npy'],
    ['--atlas'],
])
def test_cli_usage_errors(monkeypatch, argv):
    with pytest.raises(SystemExit):
        run_cli(monkeypatch, *argv)


def test_build_options_precedence(tmp_path):
    opts_file = tmp_path / 'opts.json'
    opts_file.write_text(json.dumps({'colorway': 'earth', 'blurRadius': 3}))
    args = atlas_cli.argparse.Namespace(options=str(opts_file), stops_file=None,
                                        colorway='vivid', blur=None)
    opts = atlas_cli.build_options(args)
    assert opts.colorway == 'vivid'
    assert opts.blur_radius == 3


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

@pytest.fixture
def server(monkeypatch):
    manager = atlas_server.AtlasDataManager()
    monkeypatch.setattr(atlas_server, 'data_manager', manager)
    atlas_server.app.config['TESTING'] = True
    with atlas_server.app.test_client() as client:
        yield client, manager
    manager.worker.shutdown()


def test_server_without_data(server):
    client, _ = server
    assert client.get('/api/frame?day=0').status_code == 503
    assert client.post('/api/atlas/start', json={}).status_code == 503
    assert client.get('/api/atlas/result').status_code == 404
    assert client.get('/api/atlas/status').get_json()['state'] == 'idle'


def test_server_info_and_colorways(server):
    client, manager = server
    manager.set_stack(day_stack(1, 2), 2)
    info = client.get('/api/info').get_json()
    assert info['num_days'] == 2
    assert info['points_per_day'] == NUM_POINTS
    colorways = client.get('/api/colorways').get_json()
    assert set(colorways) == {'thermal', 'classic', 'earth', 'vivid'}
    assert colorways['thermal'][0] == {'t': -30, 'c': [20, 40, 150]}


def test_server_frame(server):
    client, manager = server
    manager.set_stack(day_stack(20, np.nan), 2)

    resp = client.get('/api/frame?day=0&width=64&height=32&colorway=thermal')
    assert resp.status_code == 200
    assert resp.mimetype == 'image/png'
    img = Image.open(io.BytesIO(resp.data)).convert('RGB')
    assert img.size == (64, 32)
    assert img.getpixel((10, 10)) == (255, 231, 47)

    ocean = Image.open(io.BytesIO(client.get('/api/frame?day=1&width=16&height=8').data))
    assert ocean.convert('RGB').getpixel((3, 3)) == (255, 255, 255)

    assert client.get('/api/frame?day=2').status_code == 400
    assert client.get('/api/frame?day=abc').status_code == 400
    assert client.get('/api/frame?day=0&colorway=nope&width=8&height=4').status_code == 400
    assert client.get('/api/frame?day=0&width=10000&height=10000').status_code == 400


def test_server_atlas_flow(server):
    client, manager = server
    manager.set_stack(day_stack(5, 25), 2)

    resp = client.post('/api/atlas/start', json={'colorway': 'classic', 'blurRadius': 4})
    assert resp.status_code == 202
    manager.worker.wait(TIMEOUT)

    status = client.get('/api/atlas/status').get_json()
    assert status == {'state': 'completed', 'done': 2, 'total': 2, 'error': None}

    resp = client.get('/api/atlas/result')
    assert resp.status_code == 200
    assert resp.mimetype == 'image/jpeg'
    assert resp.headers['X-Atlas-Days'] == '2'
    assert resp.headers['X-Atlas-Cols'] == '16'
    assert resp.headers['X-Atlas-Rows'] == '1'
    assert Image.open(io.BytesIO(resp.data)).size == (8192, 256)


def test_server_rejects_bad_options(server):
    client, manager = server
    manager.set_stack(day_stack(5), 1)
    resp = client.post('/api/atlas/start', json={'colorway': 'thermal', 'customStops': []})
    assert resp.status_code == 400
    assert not manager.worker.busy


def test_server_cancel(server):
    client, manager = server
    manager.set_stack(day_stack(5), 1)
    # Cancelling with nothing running leaves the state alone
    assert client.post('/api/atlas/cancel').get_json()['state'] == 'idle'


def test_server_cancel_running_job(server):
    client, manager = server
    manager.set_stack(day_stack(5, 6, 7), 3)

    release = threading.Event()
    first_progress = threading.Event()
    forward = manager.worker.listener

    def gated(msg):
        forward(msg)
        if msg['type'] == 'progress' and msg['done'] == 1:
            first_progress.set()
            release.wait(TIMEOUT)

    manager.worker.listener = gated
    try:
        assert client.post('/api/atlas/start', json={}).status_code == 202
        assert first_progress.wait(TIMEOUT)

        assert client.post('/api/atlas/cancel').get_json()['state'] == 'cancelled'
        release.set()
        assert manager.worker.wait(TIMEOUT) is None
    finally:
        release.set()

    status = client.get('/api/atlas/status').get_json()
    assert status['state'] == 'cancelled'
    assert status['done'] == 1
    assert client.get('/api/atlas/result').status_code == 404
