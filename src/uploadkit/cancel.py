"""Cancellation token shared between a batch and its transport calls."""

import asyncio
import threading


class CancellationToken:
    """
    One-shot cancellation flag.

    The flag is checked from worker threads (while a request body is being
    streamed) and awaited from the event loop, so it is backed by a
    ``threading.Event`` plus a list of loop futures woken on cancel.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._waiters: list[asyncio.Future] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Cancel the token and wake every coroutine waiting on it."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            waiters, self._waiters = self._waiters, []

        for waiter in waiters:
            loop = waiter.get_loop()
            if loop.is_closed():
                continue
            loop.call_soon_threadsafe(_resolve, waiter)

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        with self._lock:
            if self._event.is_set():
                return
            self._waiters.append(waiter)
        try:
            await waiter
        finally:
            with self._lock:
                if waiter in self._waiters:
                    self._waiters.remove(waiter)


def _resolve(waiter: asyncio.Future) -> None:
    if not waiter.done():
        waiter.set_result(None)
