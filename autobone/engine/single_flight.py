"""
Single-Flight Supervisor

Runs a callable on a dedicated worker thread, allowing at most one run in
progress at a time. Each run gets its own `Future`, which completes only
after the supervisor is back to IDLE.
"""

import threading
from concurrent.futures import Future, wait
from enum import Enum
from typing import Any, Callable, Optional


class TaskState(Enum):
    IDLE = "idle"
    RUNNING = "running"


class SingleFlight:
    """
    One-at-a-time worker for a named operation.

    The state check and the thread assignment happen under one lock, and
    the state always returns to IDLE when the worker exits, even if the
    callable raises.
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._state = TaskState.IDLE
        self._future: Optional[Future] = None

    @property
    def state(self) -> TaskState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is TaskState.RUNNING

    @property
    def future(self) -> Optional[Future]:
        """Future of the latest run; holds the callable's result or exception."""
        with self._lock:
            return self._future

    def start(self, target: Callable[..., Any], *args) -> bool:
        """
        Start `target(*args)` on a new worker thread.

        Returns:
            False if a run is already in progress, True otherwise
        """
        with self._lock:
            if self._state is TaskState.RUNNING:
                return False

            future: Future = Future()
            future.set_running_or_notify_cancel()

            self._state = TaskState.RUNNING
            self._future = future
            thread = threading.Thread(
                target=self._run,
                args=(target, args, future),
                name=f"{self.name}-worker",
                daemon=True,
            )
            thread.start()
        return True

    def _run(self, target: Callable[..., Any], args: tuple, future: Future) -> None:
        result = None
        error: Optional[BaseException] = None
        try:
            result = target(*args)
        except Exception as e:
            error = e
        finally:
            with self._lock:
                self._state = TaskState.IDLE

        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the latest run finishes. Returns False on timeout."""
        future = self.future
        if future is None:
            return True
        done, _ = wait([future], timeout=timeout)
        return future in done
