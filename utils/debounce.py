import inspect
import logging
from typing import Any, Callable, Optional, Set

from utils.scheduling import AsyncioScheduler

logger = logging.getLogger(__name__)


class Debouncer:
    """Run ``fn`` once input has been quiet for ``delay_ms``.

    One timer slot per instance: each call cancels the pending one and
    reschedules with its own arguments, so only the latest call in a quiet
    window reaches ``fn``. Coroutine results are started as tasks; the most
    recent one is kept on ``last_task``. Every task stays in ``tasks`` until it
    finishes, and a task that fails is logged then.
    """

    def __init__(self, fn: Callable[..., Any], delay_ms: float, *, scheduler=None):
        self.fn = fn
        self.delay_ms = float(delay_ms)
        self.scheduler = scheduler or AsyncioScheduler()
        self.last_task = None
        self.tasks: Set[Any] = set()
        self._handle = None
        self._pending_call: Optional[tuple] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self.cancel()
        self._pending_call = (args, kwargs)
        self._handle = self.scheduler.call_later(self.delay_ms / 1000.0, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending_call = None

    def flush(self) -> None:
        """Run the pending call now instead of waiting for the timer."""
        if self._handle is not None:
            self._handle.cancel()
            self._fire()

    def _fire(self) -> None:
        call = self._pending_call
        self._handle = None
        self._pending_call = None
        if call is None:
            return

        args, kwargs = call
        result = self.fn(*args, **kwargs)
        if inspect.isawaitable(result):
            task = self.scheduler.spawn(result)
            self.tasks.add(task)
            task.add_done_callback(self._task_done)
            self.last_task = task

    def _task_done(self, task) -> None:
        self.tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Debounced call failed: %r", error, exc_info=error)


def debounce(fn: Callable[..., Any], delay_ms: float, *, scheduler=None) -> Debouncer:
    return Debouncer(fn, delay_ms, scheduler=scheduler)
