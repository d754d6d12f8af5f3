"""Hash-addressed data points and their one-way verification.

A data point is Unverified when submitted and becomes Verified exactly
once. Verified is terminal.
"""
from typing import List

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import AlreadyVerified, HashCollision, InvalidArgument, InvalidState, NotFound
from .events import Outbox
from .hashing import HashEngine
from .models import DataPoint
from .registry import DeviceRegistry, require_owner
from .schemas import DataSubmitted, DataVerified


class DataLedger:

    def __init__(self, registry: DeviceRegistry, hash_engine: HashEngine | None = None):
        self.registry = registry
        self.hash_engine = hash_engine or HashEngine()

    async def _find(self, session: AsyncSession, data_hash: str) -> DataPoint | None:
        res = await session.execute(select(DataPoint).where(DataPoint.data_hash == data_hash))
        return res.scalar_one_or_none()

    async def get(self, session: AsyncSession, data_hash: str) -> DataPoint:
        point = await self._find(session, data_hash)
        if point is None:
            raise NotFound(f"data point {data_hash!r} does not exist")
        return point

    async def submit(self, session: AsyncSession, outbox: Outbox, device_id: str,
                     data_type: str, data_value: str, caller: str,
                     logical_timestamp: int) -> DataPoint:
        device = await self.registry.get(session, device_id)
        require_owner(device, caller, "submit data")
        if not device.is_active:
            raise InvalidState(f"device {device_id!r} is inactive")
        if not data_type:
            raise InvalidArgument("data_type must not be empty")
        if not data_value:
            raise InvalidArgument("data_value must not be empty")

        data_hash = self.hash_engine.hexdigest(
            device_id, data_type, data_value, logical_timestamp, caller
        )
        if await self._find(session, data_hash) is not None:
            raise HashCollision(f"digest {data_hash} is already recorded")

        point = DataPoint(
            data_hash=data_hash,
            device_id=device_id,
            data_type=data_type,
            data_value=data_value,
            timestamp=logical_timestamp,
            submitter=caller,
            is_verified=False,
        )
        session.add(point)
        self.registry.record_submission(device, logical_timestamp)
        try:
            await session.flush()
        except IntegrityError as e:
            raise HashCollision(f"digest {data_hash} is already recorded") from e
        outbox.add(DataSubmitted(device_id=device_id, data_hash=data_hash,
                                 timestamp=logical_timestamp))
        return point

    async def verify(self, session: AsyncSession, outbox: Outbox, data_hash: str, caller: str):
        point = await self.get(session, data_hash)
        if point.is_verified:
            raise AlreadyVerified(f"data point {data_hash!r} is already verified")
        point.is_verified = True
        point.verified_by = caller
        await session.flush()
        outbox.add(DataVerified(data_hash=data_hash, verifier=caller))

    async def list_for_device(self, session: AsyncSession, device_id: str,
                              limit: int = 100) -> List[DataPoint]:
        res = await session.execute(
            select(DataPoint)
            .where(DataPoint.device_id == device_id)
            .order_by(DataPoint.id.desc())
            .limit(limit)
        )
        return list(res.scalars().all())

    async def count(self, session: AsyncSession) -> int:
        res = await session.execute(select(func.count()).select_from(DataPoint))
        return res.scalar_one()
