"""
In-process runner for the lifecycle jobs.

Used when Celery beat is not deployed. Each job gets its own daemon thread
that runs the job, then waits ``interval`` seconds on a shared stop event.
"""
import logging
from threading import Event, Thread
from typing import List, Optional, Tuple

from django.conf import settings
from django.db import close_old_connections

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 24 * 60 * 60


class JobRunner:

    def __init__(self, jobs: Optional[List[Tuple[object, float]]] = None):
        self._jobs: List[Tuple[object, float]] = list(jobs or [])
        self._stop_event = Event()
        self._threads: List[Thread] = []

    @classmethod
    def from_settings(cls, jobs):
        """Pair each job with its interval from LIFECYCLE_JOB_INTERVALS"""
        intervals = getattr(settings, 'LIFECYCLE_JOB_INTERVALS', {})
        return cls([(job, intervals.get(job.name, DEFAULT_INTERVAL)) for job in jobs])

    def add_job(self, job, interval: float):
        if self.is_running:
            raise RuntimeError("Cannot add jobs while the runner is started")
        self._jobs.append((job, interval))

    @property
    def jobs(self):
        return list(self._jobs)

    @property
    def is_running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def start(self):
        if self.is_running:
            logger.warning("Job runner already started")
            return

        self._stop_event.clear()
        self._threads = []
        for job, interval in self._jobs:
            thread = Thread(
                target=self._loop,
                args=(job, interval),
                name=f"lifecycle-{job.name}",
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()

        logger.info(f"Job runner started with {len(self._threads)} jobs")

    def stop(self, timeout: Optional[float] = None):
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info("Job runner stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stop() is called or ``timeout`` elapses"""
        return self._stop_event.wait(timeout)

    def run_once(self):
        """Run every job once in the calling thread"""
        return [self._run_job(job) for job, _ in self._jobs]

    def _loop(self, job, interval):
        while not self._stop_event.is_set():
            self._run_job(job)
            if self._stop_event.wait(interval):
                break
        close_old_connections()

    def _run_job(self, job):
        try:
            return job.run()
        except Exception:
            logger.exception(f"Job {job.name} run failed")
            return None
        finally:
            # each thread holds its own DB connection
            close_old_connections()
