"""Device records: uniqueness, ownership and lifecycle.

Functions here run inside a transaction owned by the caller (the service)
and never commit on their own.
"""
from typing import List

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import AlreadyExists, Forbidden, InvalidArgument, NotFound
from .events import Outbox
from .models import Device
from .schemas import DeviceRegistered, DeviceStatusChanged


def is_owner(device: Device, identity: str) -> bool:
    return device.owner == identity


def require_owner(device: Device, identity: str, action: str):
    if not is_owner(device, identity):
        raise Forbidden(f"only the owner of device {device.device_id!r} may {action}")


class DeviceRegistry:

    async def exists(self, session: AsyncSession, device_id: str) -> bool:
        res = await session.execute(select(Device.id).where(Device.device_id == device_id))
        return res.scalar_one_or_none() is not None

    async def get(self, session: AsyncSession, device_id: str) -> Device:
        res = await session.execute(select(Device).where(Device.device_id == device_id))
        device = res.scalar_one_or_none()
        if device is None:
            raise NotFound(f"device {device_id!r} is not registered")
        return device

    async def register(self, session: AsyncSession, outbox: Outbox, device_id: str,
                       device_type: str, location: str, caller: str) -> Device:
        if not device_id:
            raise InvalidArgument("device_id must not be empty")
        if await self.exists(session, device_id):
            raise AlreadyExists(f"device {device_id!r} is already registered")
        device = Device(
            device_id=device_id,
            owner=caller,
            device_type=device_type,
            location=location,
            is_active=True,
            last_data_timestamp=0,
            total_data_points=0,
        )
        session.add(device)
        try:
            await session.flush()
        except IntegrityError as e:
            raise AlreadyExists(f"device {device_id!r} is already registered") from e
        outbox.add(DeviceRegistered(device_id=device_id, owner=caller, device_type=device_type))
        return device

    async def toggle_active(self, session: AsyncSession, outbox: Outbox,
                            device_id: str, caller: str) -> bool:
        device = await self.get(session, device_id)
        require_owner(device, caller, "change its status")
        device.is_active = not device.is_active
        await session.flush()
        outbox.add(DeviceStatusChanged(device_id=device_id, is_active=device.is_active))
        return device.is_active

    def record_submission(self, device: Device, logical_timestamp: int):
        # only the ledger calls this, after it has inserted the data point
        device.last_data_timestamp = logical_timestamp
        device.total_data_points = device.total_data_points + 1

    async def list_by_owner(self, session: AsyncSession, owner: str) -> List[str]:
        res = await session.execute(
            select(Device.device_id).where(Device.owner == owner).order_by(Device.id)
        )
        return list(res.scalars().all())

    async def list_all(self, session: AsyncSession) -> List[Device]:
        res = await session.execute(select(Device).order_by(Device.id))
        return list(res.scalars().all())

    async def count(self, session: AsyncSession) -> int:
        res = await session.execute(select(func.count()).select_from(Device))
        return res.scalar_one()
