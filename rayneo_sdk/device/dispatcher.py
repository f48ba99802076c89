"""Callback delivery onto a consumer thread.

The session's I/O thread never calls user callbacks directly. It posts them
here, and they run in posting order on whichever thread drains the queue:
the application's own loop via process_pending(), or the dispatcher's
delivery thread after start().
"""
from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

DELIVERY_POLL_INTERVAL = 0.1  # seconds

_Task = Tuple[Callable[..., Any], Tuple[Any, ...]]


class CallbackDispatcher:
    """Single-consumer FIFO of pending callbacks."""

    def __init__(self, name: str = "RayNeoCallbacks"):
        self._name = name
        self._queue: queue.Queue[Optional[_Task]] = queue.Queue()
        self._running = False
        self._thread: Optional[threading.Thread] = None

    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        """Queue `callback(*args)`. Safe to call from any thread."""
        self._queue.put((callback, args))

    def process_pending(self) -> int:
        """Run every queued callback on the calling thread.

        Returns:
            Number of callbacks run
        """
        count = 0
        while True:
            try:
                task = self._queue.get_nowait()
            except queue.Empty:
                break
            if task is not None:
                self._run(task)
                count += 1
        return count

    def start(self) -> None:
        """Start a background delivery thread."""
        if self._running:
            return

        self._running = True
        self._thread = threading.Thread(
            target=self._delivery_loop,
            daemon=True,
            name=self._name
        )
        self._thread.start()
        logger.debug("Callback dispatcher started")

    def stop(self, timeout: float = 1.0) -> None:
        """Stop the delivery thread after it drains what is queued.

        May be called from a callback: the delivery thread then exits once
        that callback returns.
        """
        if not self._running:
            return

        self._running = False
        # Sentinel unblocks queue.get
        self._queue.put(None)
        if (self._thread and self._thread.is_alive()
                and self._thread is not threading.current_thread()):
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.debug("Callback dispatcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _delivery_loop(self) -> None:
        while True:
            try:
                task = self._queue.get(timeout=DELIVERY_POLL_INTERVAL)
            except queue.Empty:
                if not self._running:
                    break
                continue

            if task is None:
                # Drain whatever was posted before stop()
                self.process_pending()
                break
            self._run(task)

    def _run(self, task: _Task) -> None:
        callback, args = task
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Error in callback {getattr(callback, '__name__', callback)}: {e}")
