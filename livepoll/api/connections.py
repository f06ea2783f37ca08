"""
Connection Hub - Delivers emissions to live WebSocket connections.

Each WebSocket gets an opaque identity when it connects. The service
resolves audiences to identities; the hub only maps identities to
sockets and sends.

ORDERING:
Every connection has one outbound queue drained by one writer task.
Enqueueing never awaits, so messages produced by successive events
reach each socket in the order the events were handled, however slow
any single socket is. Sockets that fail on send are dropped.
"""

from __future__ import annotations
from typing import Any, Iterable, TYPE_CHECKING
import asyncio
import logging

if TYPE_CHECKING:
    from fastapi import WebSocket
    from .service import Emission

logger = logging.getLogger(__name__)


class ConnectionHub:
    """Identity -> WebSocket registry with ordered fan-out."""

    def __init__(self):
        self._connections: dict[str, WebSocket] = {}
        self._queues: dict[str, asyncio.Queue] = {}
        self._writers: dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, identity: str) -> bool:
        return identity in self._connections

    def register(self, identity: str, websocket: WebSocket):
        """Start the writer for a new connection. Needs a running event loop."""
        queue: asyncio.Queue = asyncio.Queue()
        self._connections[identity] = websocket
        self._queues[identity] = queue
        self._writers[identity] = asyncio.get_running_loop().create_task(
            self._write(identity, websocket, queue)
        )

    def unregister(self, identity: str):
        """Forget a connection; anything still queued for it is discarded."""
        writer = self._drop(identity)
        if writer is not None:
            writer.cancel()

    def send(self, identity: str, message: dict[str, Any]) -> bool:
        """Queue a message for one identity. Returns False if it is gone."""
        queue = self._queues.get(identity)
        if queue is None:
            return False
        queue.put_nowait(message)
        return True

    def deliver(self, emissions: Iterable[Emission]) -> int:
        """
        Queue each emission for its recipients, in order.

        Returns the number of messages queued.
        """
        queued = 0
        for emission in emissions:
            message = {"event": emission.event, "data": emission.payload}
            for identity in emission.recipients:
                if self.send(identity, message):
                    queued += 1
        return queued

    async def flush(self):
        """Wait until every live connection's queue has been written out."""
        await asyncio.gather(*(queue.join() for queue in list(self._queues.values())))

    def _drop(self, identity: str) -> asyncio.Task | None:
        self._connections.pop(identity, None)
        self._queues.pop(identity, None)
        return self._writers.pop(identity, None)

    async def _write(self, identity: str, websocket: WebSocket, queue: asyncio.Queue):
        while True:
            message = await queue.get()
            try:
                await websocket.send_json(message)
            except Exception:
                logger.debug("Dropping dead connection %s", identity)
                self._drop(identity)
                queue.task_done()
                while not queue.empty():
                    queue.get_nowait()
                    queue.task_done()
                return
            queue.task_done()
