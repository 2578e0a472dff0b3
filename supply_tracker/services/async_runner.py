"""
Async Runner - one long-lived event loop for the Flask request threads.

Every coroutine submitted from a request thread runs on the same loop in a
daemon worker thread, so transport resources opened by the ledger gateway
(HTTP sessions) are created once and closed once on shutdown.
"""

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Coroutine, Optional

logger = logging.getLogger(__name__)


class AsyncRunner:
    """
    Event loop running in a background thread.

    Usage:
        >>> runner = AsyncRunner()
        >>> runner.run(session.reload())
        >>> runner.stop(cleanup=gateway.close)
    """

    def __init__(self, name: str = "tracker-loop"):
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._worker_thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._loop is not None and self._loop.is_running()

    def start(self) -> None:
        """Start the loop thread (no-op if already running)."""
        with self._lock:
            if self._worker_thread is not None:
                return

            loop = asyncio.new_event_loop()
            started = threading.Event()

            def serve():
                asyncio.set_event_loop(loop)
                loop.call_soon(started.set)
                loop.run_forever()

            self._loop = loop
            self._worker_thread = threading.Thread(target=serve, name=self.name, daemon=True)
            self._worker_thread.start()
            started.wait()
        logger.info(f"Async runner {self.name} started")

    def run(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        """Run a coroutine on the loop and block until it finishes."""
        self.start()
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)

    def stop(self, cleanup: Optional[Callable[[], Awaitable[None]]] = None) -> None:
        """
        Stop the loop thread.

        Args:
            cleanup: Coroutine function awaited on the loop before it stops,
                e.g. the gateway's close()
        """
        with self._lock:
            loop, thread = self._loop, self._worker_thread
            self._loop = None
            self._worker_thread = None

        if loop is None:
            return

        try:
            if cleanup is not None:
                asyncio.run_coroutine_threadsafe(cleanup(), loop).result(timeout=5)
        finally:
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=5)
            loop.close()
        logger.info(f"Async runner {self.name} stopped")
