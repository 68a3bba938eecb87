"""
Atlas Job Host

Runs one atlas job at a time on a background thread and relays its messages
to the initiator. A start request while a job is running is rejected.
"""

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from .atlas_job import AtlasJob

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], None]


class AtlasJobBusyError(RuntimeError):
    """A start request arrived while another atlas job is running"""


class AtlasWorker:
    """Background executor for atlas jobs.

    Messages (``progress``, ``atlas``, ``error``) are put on ``self.messages``
    in emission order and, if given, passed to ``listener`` on the worker
    thread.
    """

    def __init__(self, listener: Optional[Listener] = None, workers: int = 1):
        self.listener = listener
        self.workers = workers
        self.messages: "queue.Queue[Dict[str, Any]]" = queue.Queue()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='atlas')
        self._lock = threading.Lock()
        self._job: Optional[AtlasJob] = None
        self._future = None

    @property
    def job(self) -> Optional[AtlasJob]:
        return self._job

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._future is not None and not self._future.done()

    def start(self, all_temps, num_days: int, opts=None) -> AtlasJob:
        """
        Start rendering an atlas in the background.

        Args:
            all_temps: Concatenated per-day grids; the job takes ownership
            num_days: Number of days in all_temps
            opts: RenderOptions or options dict

        Returns:
            The running AtlasJob

        Raises:
            AtlasJobBusyError: If a job is already running
            GridError / ColorRampError / RenderOptionsError: Invalid inputs
        """
        with self._lock:
            if self._future is not None and not self._future.done():
                raise AtlasJobBusyError(
                    f"Atlas job already running ({self._job.num_days} days); cancel it first"
                )
            # Validation errors surface here, before anything is queued
            job = AtlasJob(all_temps, num_days, opts, workers=self.workers)
            self._job = job
            self._future = self._executor.submit(self._run, job)
        logger.info(f"Started atlas job: {job.num_days} days, {job.opts}")
        return job

    def cancel(self):
        """Stop the current job at its next day boundary (no-op when idle)."""
        with self._lock:
            job = self._job
        if job is not None and job.state in ('idle', 'running'):
            logger.info("Cancel requested for atlas job")
            job.cancel()

    def wait(self, timeout: Optional[float] = None):
        """Block until the current job finishes; returns its result message or None."""
        with self._lock:
            future = self._future
        if future is None:
            return None
        return future.result(timeout=timeout)

    def shutdown(self, cancel: bool = True):
        if cancel:
            self.cancel()
        self._executor.shutdown(wait=True)

    def _emit(self, msg: Dict[str, Any]):
        self.messages.put(msg)
        if self.listener is not None:
            self.listener(msg)

    def _run(self, job: AtlasJob):
        try:
            result = job.run(emit=self._emit)
        except Exception as e:
            logger.error(f"✗ Atlas job failed: {e}", exc_info=True)
            self._emit({'type': 'error', 'error': str(e), 'exception': type(e).__name__})
            return None
        if result is None:
            logger.info(f"Atlas job cancelled after {job.done}/{job.num_days} days")
        return result
