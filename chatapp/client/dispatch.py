"""Serialized callback queue shared by the watches of one conversation."""
import queue
import threading
from typing import Any, Callable

from . import config
from ..shared.logging_config import configure_logging

logger = configure_logging("chatapp.client", config.LOG_FILE)

_STOP = object()


class EventQueue:
    """Runs submitted callbacks one at a time, in submission order, on one worker thread."""

    def __init__(self, name: str = "events"):
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def submit(self, fn: Callable[..., Any], *args: Any) -> bool:
        if self._stopped.is_set():
            return False
        self._queue.put((fn, args))
        return True

    def join(self) -> None:
        """Block until everything submitted so far has run."""
        self._queue.join()

    def stop(self, wait: bool = False) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        self._queue.put(_STOP)
        if wait and threading.current_thread() is not self._thread:
            self._thread.join()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                fn, args = item
                try:
                    fn(*args)
                except Exception:  # noqa: BLE001
                    logger.exception("EVENT_HANDLER_FAIL handler=%s", getattr(fn, "__qualname__", fn))
            finally:
                self._queue.task_done()
