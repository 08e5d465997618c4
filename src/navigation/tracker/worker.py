# worker.py
# Single background thread draining a job queue.
# Used for fire-and-forget calls (route recalculation, reward writes) so the
# location update path never blocks on the network.

import logging
import queue
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Job = Callable[[], None]


class BackgroundWorker:
    """
    FIFO job runner on one daemon thread.

    Jobs run in submission order. A failing job is logged and the worker
    keeps going.
    """

    def __init__(self, name: str = "nav-worker") -> None:
        self._queue: "queue.Queue[Optional[Job]]" = queue.Queue()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._closed = False
        self._thread.start()

    def _run(self) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is None:
                    break
                job()
            except Exception:
                logger.exception("Background job failed.")
            finally:
                self._queue.task_done()

    def submit(self, job: Job) -> None:
        if self._closed:
            logger.debug("Worker closed; dropping job.")
            return
        self._queue.put(job)

    def join(self) -> None:
        """Block until every submitted job has run."""
        self._queue.join()

    def close(self, timeout: float = 5.0) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put(None)
        self._thread.join(timeout=timeout)
