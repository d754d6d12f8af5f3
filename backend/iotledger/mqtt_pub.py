import asyncio
import logging

import aiomqtt

from .schemas import LedgerEvent

logger = logging.getLogger(__name__)

RETRY_DELAY = 3
MAX_PENDING = 10000


def event_topic(tenant: str, event: LedgerEvent) -> str:
    return f"{tenant}/ledger/events/{event.type}"


class MqttEventSink:
    """Publishes every ledger event as JSON over one long-lived connection.

    ``emit`` only enqueues, so a slow or unreachable broker never holds up
    the writer. A single sender task publishes in enqueue order and keeps
    the current event until the broker has taken it.
    """

    def __init__(self, host: str, port: int = 1883, tenant: str = "t0",
                 client_factory=aiomqtt.Client, retry_delay: float = RETRY_DELAY,
                 max_pending: int = MAX_PENDING):
        self.host = host
        self.port = port
        self.tenant = tenant
        self.retry_delay = retry_delay
        self._client_factory = client_factory
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._task: asyncio.Task | None = None

    async def emit(self, event: LedgerEvent) -> None:
        # raises QueueFull when the broker has been away too long; the outbox logs it
        self._queue.put_nowait(event)

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self._sender())

    async def drain(self):
        """Wait until every queued event has been published."""
        await self._queue.join()

    async def close(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        if not self._queue.empty():
            logger.warning("closing mqtt sink with %d unpublished events", self._queue.qsize())

    async def _sender(self):
        event = None
        while True:
            try:
                async with self._client_factory(self.host, self.port) as client:
                    logger.info("publishing ledger events to %s:%s", self.host, self.port)
                    while True:
                        if event is None:
                            event = await self._queue.get()
                        topic = event_topic(self.tenant, event)
                        await client.publish(topic, event.model_dump_json(), qos=1)
                        logger.debug("published %s to %s", event.type, topic)
                        event = None
                        self._queue.task_done()
            except aiomqtt.MqttError as e:
                logger.warning("mqtt publish failed (%s), retrying in %ss", e, self.retry_delay)
                await asyncio.sleep(self.retry_delay)
