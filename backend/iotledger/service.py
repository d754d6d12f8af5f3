"""Ledger service: the single state handle every operation goes through.

All mutating operations are serialized by one writer lock and run in one
database transaction each. Events staged by an operation are delivered
after its commit and before the next writer starts, so sinks see them in
commit order. Reads take no lock and return immutable snapshots.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List

from sqlalchemy.ext.asyncio import AsyncEngine

from .clock import LogicalClock
from .db import make_engine, make_sessionmaker, init_models
from .errors import InvalidArgument, LedgerError
from .events import EventSink, LoggingEventSink, Outbox
from .hashing import HashEngine
from .ledger import DataLedger
from .registry import DeviceRegistry
from .schemas import DeviceOut, DataPointOut

logger = logging.getLogger(__name__)


def _require_identity(caller: str):
    if not caller:
        raise InvalidArgument("caller identity must not be empty")


INT64_MIN, INT64_MAX = -2 ** 63, 2 ** 63 - 1


def _require_timestamp(value):
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"logical_timestamp must be an integer, got {type(value).__name__}")
    if not INT64_MIN <= value <= INT64_MAX:
        raise InvalidArgument("logical_timestamp must fit in a signed 64-bit integer")


class LedgerService:

    def __init__(self, engine: AsyncEngine, sink: EventSink | None = None,
                 hash_engine: HashEngine | None = None, clock: LogicalClock | None = None):
        self.engine = engine
        self.sessions = make_sessionmaker(engine)
        self.sink = sink or LoggingEventSink()
        self.clock = clock or LogicalClock()
        self.registry = DeviceRegistry()
        self.ledger = DataLedger(self.registry, hash_engine)
        self._writer = asyncio.Lock()

    @asynccontextmanager
    async def _write(self, operation: str):
        async with self._writer:
            outbox = Outbox()
            try:
                async with self.sessions() as session:
                    async with session.begin():
                        yield session, outbox
            except LedgerError as e:
                logger.warning("%s rejected: %s", operation, e)
                raise
            await outbox.flush(self.sink)

    @asynccontextmanager
    async def _read(self):
        async with self.sessions() as session:
            yield session

    # --- mutations ---

    async def register_device(self, device_id: str, device_type: str, location: str,
                              caller: str) -> DeviceOut:
        _require_identity(caller)
        async with self._write("register_device") as (session, outbox):
            device = await self.registry.register(
                session, outbox, device_id, device_type, location, caller
            )
            result = DeviceOut.model_validate(device)
        logger.info("registered device %s owner=%s", device_id, caller)
        return result

    async def submit_data(self, device_id: str, data_type: str, data_value: str, caller: str,
                          logical_timestamp: int | None = None) -> DataPointOut:
        _require_identity(caller)
        if logical_timestamp is not None:
            _require_timestamp(logical_timestamp)
        async with self._write("submit_data") as (session, outbox):
            ts = self.clock.now() if logical_timestamp is None else logical_timestamp
            point = await self.ledger.submit(
                session, outbox, device_id, data_type, data_value, caller, ts
            )
            result = DataPointOut.model_validate(point)
        logger.info("accepted data %s from device %s", result.data_hash, device_id)
        return result

    async def verify_data(self, data_hash: str, caller: str):
        _require_identity(caller)
        async with self._write("verify_data") as (session, outbox):
            await self.ledger.verify(session, outbox, data_hash, caller)
        logger.info("verified data %s by %s", data_hash, caller)

    async def toggle_device_status(self, device_id: str, caller: str) -> bool:
        _require_identity(caller)
        async with self._write("toggle_device_status") as (session, outbox):
            state = await self.registry.toggle_active(session, outbox, device_id, caller)
        logger.info("device %s active=%s", device_id, state)
        return state

    # --- reads ---

    async def get_device(self, device_id: str) -> DeviceOut:
        async with self._read() as session:
            return DeviceOut.model_validate(await self.registry.get(session, device_id))

    async def get_data_point(self, data_hash: str) -> DataPointOut:
        async with self._read() as session:
            return DataPointOut.model_validate(await self.ledger.get(session, data_hash))

    async def get_owner_devices(self, owner: str) -> List[str]:
        async with self._read() as session:
            return await self.registry.list_by_owner(session, owner)

    async def get_total_devices(self) -> int:
        async with self._read() as session:
            return await self.registry.count(session)

    async def get_total_data_points(self) -> int:
        async with self._read() as session:
            return await self.ledger.count(session)

    async def list_devices(self) -> List[DeviceOut]:
        async with self._read() as session:
            return [DeviceOut.model_validate(d) for d in await self.registry.list_all(session)]

    async def list_device_data(self, device_id: str, limit: int = 100) -> List[DataPointOut]:
        async with self._read() as session:
            await self.registry.get(session, device_id)
            rows = await self.ledger.list_for_device(session, device_id, limit)
            return [DataPointOut.model_validate(r) for r in rows]

    async def close(self):
        await self.engine.dispose()


async def open_service(database_url: str, **kwargs) -> LedgerService:
    engine = make_engine(database_url)
    await init_models(engine)
    logger.info("ledger storage ready at %s", engine.url.render_as_string(hide_password=True))
    return LedgerService(engine, **kwargs)
