"""Event sinks and the per-transaction outbox.

Events are staged while an operation runs and handed to the sink only
after its transaction commits, so a rolled-back operation emits nothing.
"""
import logging
from typing import List, Protocol

from .schemas import LedgerEvent

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    async def emit(self, event: LedgerEvent) -> None: ...


class MemoryEventSink:
    def __init__(self):
        self.events: List[LedgerEvent] = []

    async def emit(self, event: LedgerEvent) -> None:
        self.events.append(event)

    def of_type(self, name: str) -> List[LedgerEvent]:
        return [e for e in self.events if e.type == name]


class LoggingEventSink:
    async def emit(self, event: LedgerEvent) -> None:
        logger.info("event %s", event.model_dump_json())


class Outbox:
    def __init__(self):
        self._pending: List[LedgerEvent] = []

    def add(self, event: LedgerEvent):
        self._pending.append(event)

    def __len__(self):
        return len(self._pending)

    async def flush(self, sink: EventSink):
        pending, self._pending = self._pending, []
        for event in pending:
            try:
                await sink.emit(event)
            except Exception:
                # state is already committed; delivery is the sink's problem
                logger.exception("event sink failed for %s", event.type)
