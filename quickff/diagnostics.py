"""Push-based stream of diagnostic output chunks."""

import asyncio
import logging
from typing import AsyncIterator, List, Optional

logger = logging.getLogger(__name__)


class DiagnosticStream:
    """Fans out diagnostic chunks to any number of subscribers.

    Publishing never blocks: each subscriber has an unbounded queue, and with
    no subscribers chunks are simply dropped.
    """

    def __init__(self):
        self._subscribers: List[asyncio.Queue] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> AsyncIterator[bytes]:
        """Subscribe to chunks published from now on.

        Registration happens immediately, before the returned iterator is
        first awaited.

        Returns:
            Async iterator yielding chunks in publish order until the stream
            is closed.
        """
        queue: asyncio.Queue = asyncio.Queue()
        if self._closed:
            queue.put_nowait(None)
        else:
            self._subscribers.append(queue)
        return self._iterate(queue)

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.subscribe()

    async def _iterate(self, queue: asyncio.Queue) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk: Optional[bytes] = await queue.get()
                if chunk is None:
                    return
                yield chunk
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    def publish(self, chunk: bytes) -> None:
        """Deliver a chunk to every current subscriber."""
        if self._closed:
            logger.warning("Dropping diagnostic chunk published after close.")
            return
        for queue in self._subscribers:
            queue.put_nowait(chunk)

    def close(self) -> None:
        """End the stream; subscribers finish after draining their queues."""
        if self._closed:
            return
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(None)
