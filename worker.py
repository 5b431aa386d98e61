from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Optional, Tuple

from inventory import Failure

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]
Dispatcher = Callable[[Callback, Any], None]

_STOP = object()


def _call_now(callback: Callback, result: Any) -> None:
    callback(result)


def _run(func: Callable[..., Any], args: Tuple[Any, ...]) -> Any:
    try:
        return func(*args)
    except Exception as error:
        logger.exception("Background task %s failed", getattr(func, "__name__", func))
        return Failure(str(error))


class TaskRunner:
    """Runs database work on one background thread, in submission order.

    Callbacks are passed to ``dispatch`` so the GUI can hop back onto its
    event thread (``lambda cb, result: root.after(0, cb, result)``). Tasks
    still queued at shutdown run to completion, but their results are no
    longer dispatched.
    """

    def __init__(self, dispatch: Optional[Dispatcher] = None, *, name: str = "library-db"):
        self.dispatch = dispatch or _call_now
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._closed = threading.Event()
        self._thread = threading.Thread(target=self._loop, name=name, daemon=True)
        self._thread.start()

    def submit(
        self,
        func: Callable[..., Any],
        *args: Any,
        callback: Optional[Callback] = None,
    ) -> None:
        self._queue.put((func, args, callback))

    def _loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                func, args, callback = item
                result = _run(func, args)
                if callback is not None and not self._closed.is_set():
                    try:
                        self.dispatch(callback, result)
                    except Exception:
                        logger.exception("Could not deliver result of %s", getattr(func, "__name__", func))
            finally:
                self._queue.task_done()

    def join(self) -> None:
        """Block until every queued task has run."""
        self._queue.join()

    def shutdown(self, wait: bool = True) -> None:
        self._closed.set()
        self._queue.put(_STOP)
        if wait:
            self._thread.join()


class ImmediateRunner:
    """Same interface as :class:`TaskRunner`, but runs tasks inline."""

    def __init__(self, dispatch: Optional[Dispatcher] = None):
        self.dispatch = dispatch or _call_now

    def submit(
        self,
        func: Callable[..., Any],
        *args: Any,
        callback: Optional[Callback] = None,
    ) -> None:
        result = _run(func, args)
        if callback is not None:
            self.dispatch(callback, result)

    def join(self) -> None:
        return None

    def shutdown(self, wait: bool = True) -> None:
        return None
