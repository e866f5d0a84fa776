"""
Error Stream

Out-of-band errors (a Redis node refusing connections, a Memcached server
going down) are not tied to a single invocation. They are published on the
client's ErrorStream instead.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, List

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[BaseException], None]


class ErrorStream:
    """
    Subscriber list for out-of-band errors.

    Callbacks run synchronously in subscription order. Queues created by
    listen() receive every error published after they were created. There
    is no ordering guarantee between errors coming from different sources.
    """

    def __init__(self):
        self._callbacks: List[ErrorCallback] = []
        self._queues: List[asyncio.Queue] = []

    def subscribe(self, callback: ErrorCallback) -> Callable[[], None]:
        """
        Register a callback.

        Returns:
            A function that removes the callback again
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def publish(self, error: BaseException) -> None:
        """Deliver an error to every subscriber; logged if nobody listens."""
        if not self._callbacks and not self._queues:
            logger.error(f"Unhandled mredis error: {error}")
            return

        for callback in list(self._callbacks):
            try:
                callback(error)
            except Exception:
                logger.exception("Error stream subscriber failed")

        for queue in list(self._queues):
            queue.put_nowait(error)

    async def listen(self) -> AsyncIterator[BaseException]:
        """Iterate over errors as they are published."""
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues.remove(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks) + len(self._queues)
