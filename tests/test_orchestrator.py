#!/usr/bin/env python3
import threading

import numpy as np
import pytest

import smart_atlas.atlas_job as atlas_job
from smart_atlas.atlas_job import AtlasEncodingError
from smart_atlas.orchestrator import AtlasJobBusyError, AtlasWorker
from thermal_render import NUM_POINTS, GridError

TIMEOUT = 120


def day_stack(num_days, value=15.0):
    return np.full(num_days * NUM_POINTS, value, dtype=np.float64)


def drain(worker):
    messages = []
    while not worker.messages.empty():
        messages.append(worker.messages.get_nowait())
    return messages


def test_completed_job_messages():
    worker = AtlasWorker()
    try:
        job = worker.start(day_stack(2), 2, {'colorway': 'classic'})
        result = worker.wait(TIMEOUT)
    finally:
        worker.shutdown()

    assert job.state == 'completed'
    messages = drain(worker)
    assert [m['type'] for m in messages] == ['progress', 'progress', 'atlas']
    assert messages[-1] is result
    assert not worker.busy


def test_second_start_rejected_while_running():
    release = threading.Event()
    first_progress = threading.Event()

    def listener(msg):
        if msg['type'] == 'progress' and msg['done'] == 1:
            first_progress.set()
            release.wait(TIMEOUT)

    worker = AtlasWorker(listener=listener)
    try:
        job = worker.start(day_stack(4), 4)
        assert first_progress.wait(TIMEOUT)
        assert worker.busy

        with pytest.raises(AtlasJobBusyError):
            worker.start(day_stack(1), 1)
        assert worker.job is job

        worker.cancel()
        release.set()
        assert worker.wait(TIMEOUT) is None
    finally:
        release.set()
        worker.shutdown()

    assert job.state == 'cancelled'
    messages = drain(worker)
    assert [m['done'] for m in messages if m['type'] == 'progress'] == [1]
    assert not any(m['type'] == 'atlas' for m in messages)


def test_new_job_after_cancel():
    worker = AtlasWorker()
    try:
        first = worker.start(day_stack(1), 1)
        worker.wait(TIMEOUT)
        second = worker.start(day_stack(1, value=-3.0), 1)
        result = worker.wait(TIMEOUT)
    finally:
        worker.shutdown()
    assert first is not second
    assert second.state == 'completed'
    assert result['num_days'] == 1


def test_invalid_input_raises_synchronously():
    worker = AtlasWorker()
    try:
        with pytest.raises(GridError):
            worker.start(day_stack(2), 3)
        assert worker.job is None
        assert not worker.busy
    finally:
        worker.shutdown()


def test_encoding_failure_reported_as_error_message(monkeypatch):
    def fail(atlas):
        raise AtlasEncodingError("encoder unavailable")

    monkeypatch.setattr(atlas_job, 'encode_atlas', fail)
    worker = AtlasWorker()
    try:
        job = worker.start(day_stack(1), 1)
        assert worker.wait(TIMEOUT) is None
    finally:
        worker.shutdown()

    assert job.state == 'failed'
    last = drain(worker)[-1]
    assert last['type'] == 'error'
    assert last['error'] == "encoder unavailable"
    assert last['exception'] == 'AtlasEncodingError'


def test_cancel_when_idle_is_noop():
    worker = AtlasWorker()
    worker.cancel()
    assert worker.wait(1) is None
    worker.shutdown()
