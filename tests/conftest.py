import pytest

from iotledger.events import MemoryEventSink
from iotledger.service import open_service


def sqlite_url(tmp_path, name="ledger.db"):
    return f"sqlite+aiosqlite:///{tmp_path / name}"


class StepClock:
    """Deterministic logical clock: 1, 2, 3, ..."""

    def __init__(self):
        self.value = 0

    def now(self):
        self.value += 1
        return self.value


@pytest.fixture
def sink():
    return MemoryEventSink()


@pytest.fixture
async def service(tmp_path, sink):
    svc = await open_service(sqlite_url(tmp_path), sink=sink, clock=StepClock())
    yield svc
    await svc.close()


@pytest.fixture
async def sensor(service):
    """sensor-1 registered by owner-a."""
    return await service.register_device("sensor-1", "temperature", "room-1", "owner-a")


@pytest.fixture
def db_url(tmp_path):
    return sqlite_url(tmp_path, "alt.db")
