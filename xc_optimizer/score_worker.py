"""
Background execution of optimization sessions.

Each submitted request gets its own task handle, request id, engine instance and
session. Results are delivered as ScoreMessage objects carrying the request id
to the callback given with that request, so overlapping requests can never be
mixed up. With the default single worker thread, requests run one at a time in
submission order.
"""
import itertools
import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from typing import Callable, NamedTuple, Optional

from .models import OptimizationRequest, OptimizationResult
from .optimization import EngineFactory, OptimizationSession


logger = logging.getLogger(__name__)


class ScoreMessage(NamedTuple):
    request_id: int
    result: OptimizationResult


ResultCallback = Callable[[ScoreMessage], None]


class ScoreTask:
    """
    Handle on one submitted request.

    The future is created with the task, so it is available to callbacks from
    the first result on. The worker thread drives it through run().
    """

    def __init__(self, request_id: int, session: OptimizationSession, on_result: Optional[ResultCallback]):
        self.request_id = request_id
        self.session = session
        self._on_result = on_result
        self._future: Future = Future()
        self._cancel_requested = threading.Event()

    def run(self) -> None:
        """Run the session on the calling thread, unless the task was cancelled first."""
        if not self._future.set_running_or_notify_cancel():
            return
        try:
            for result in self.session:
                if self._cancel_requested.is_set():
                    break
                if self._on_result is not None:
                    self._on_result(ScoreMessage(self.request_id, result))
        except Exception as e:
            logger.exception(f"Score request {self.request_id} failed")
            self._future.set_exception(e)
        else:
            self._future.set_result(self.session.best)

    def cancel(self) -> bool:
        """
        Ask the task to stop. A task still waiting in the queue never starts,
        a running one stops before its next result.
        """
        self._cancel_requested.set()
        self.session.cancel()
        self._future.cancel()
        return True

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested.is_set()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> Optional[OptimizationResult]:
        """
        Wait for the task and return its last result.

        The failure of the task, if any, is raised here. A task cancelled before
        it started returns None.
        """
        try:
            return self._future.result(timeout)
        except CancelledError:
            return self.session.best


class ScoreWorker:
    """
    Runs optimization sessions off the calling thread.

    Args:
        engine_factory: called once per request to get a fresh engine
        max_workers: number of sessions that may run at the same time
    """

    def __init__(self, engine_factory: EngineFactory, max_workers: int = 1):
        self._engine_factory = engine_factory
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='score-worker')
        self._request_ids = itertools.count(1)
        self._lock = threading.Lock()

    def _next_request_id(self) -> int:
        with self._lock:
            return next(self._request_ids)

    def submit(self, request: OptimizationRequest, league: str,
               on_result: Optional[ResultCallback] = None) -> ScoreTask:
        """
        Queue a request. Configuration errors such as an unknown league are
        raised right away, before anything is queued.
        """
        session = OptimizationSession(request, league, self._engine_factory())
        task = ScoreTask(self._next_request_id(), session, on_result)
        logger.info(f"Queueing score request {task.request_id} ({len(request.track.points)} points, league {league})")
        self._executor.submit(task.run)
        return task

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> 'ScoreWorker':
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
