"""Tests for serialization, event delivery and lifecycle of the ledger service."""

import asyncio

import pytest

from iotledger.errors import AlreadyExists, AlreadyVerified, Forbidden
from iotledger.schemas import DeviceOut
from iotledger.service import open_service


class FailingSink:
    async def emit(self, event):
        raise RuntimeError("broker down")


class TestSerialization:

    async def test_concurrent_duplicate_registration_has_one_winner(self, service):
        results = await asyncio.gather(
            *[service.register_device("dup", "t", "l", f"owner-{i}") for i in range(10)],
            return_exceptions=True,
        )
        winners = [r for r in results if isinstance(r, DeviceOut)]
        losers = [r for r in results if isinstance(r, AlreadyExists)]
        assert len(winners) == 1
        assert len(losers) == 9
        assert await service.get_total_devices() == 1
        assert (await service.get_device("dup")).owner == winners[0].owner

    async def test_concurrent_submissions_keep_counter_exact(self, service, sensor):
        await asyncio.gather(
            *[service.submit_data("sensor-1", "temperature", str(i), "owner-a") for i in range(20)]
        )
        assert (await service.get_device("sensor-1")).total_data_points == 20
        assert await service.get_total_data_points() == 20

    async def test_concurrent_verification_succeeds_once(self, service, sensor):
        point = await service.submit_data("sensor-1", "temperature", "1", "owner-a")
        results = await asyncio.gather(
            *[service.verify_data(point.data_hash, f"v-{i}") for i in range(5)],
            return_exceptions=True,
        )
        assert results.count(None) == 1
        assert sum(isinstance(r, AlreadyVerified) for r in results) == 4

    async def test_reads_run_alongside_writes(self, service, sensor):
        writes = [service.submit_data("sensor-1", "temperature", str(i), "owner-a") for i in range(5)]
        reads = [service.get_device("sensor-1") for _ in range(5)]
        results = await asyncio.gather(*writes, *reads)
        for snapshot in results[5:]:
            assert 0 <= snapshot.total_data_points <= 5


class TestEvents:

    async def test_events_follow_commit_order(self, service, sink):
        await service.register_device("sensor-1", "temperature", "room-1", "owner-a")
        point = await service.submit_data("sensor-1", "temperature", "1", "owner-a")
        await service.verify_data(point.data_hash, "anyone")
        await service.toggle_device_status("sensor-1", "owner-a")
        assert [e.type for e in sink.events] == [
            "DeviceRegistered", "DataSubmitted", "DataVerified", "DeviceStatusChanged",
        ]

    async def test_failed_operations_emit_nothing(self, service, sink, sensor):
        sink.events.clear()
        with pytest.raises(Forbidden):
            await service.submit_data("sensor-1", "temperature", "1", "intruder")
        with pytest.raises(Forbidden):
            await service.toggle_device_status("sensor-1", "intruder")
        assert sink.events == []

    async def test_sink_failure_does_not_undo_commit(self, tmp_path, caplog):
        service = await open_service(f"sqlite+aiosqlite:///{tmp_path / 's.db'}", sink=FailingSink())
        try:
            device = await service.register_device("sensor-1", "temperature", "room-1", "owner-a")
            assert device.device_id == "sensor-1"
            assert await service.get_total_devices() == 1
            assert "event sink failed" in caplog.text
        finally:
            await service.close()


class TestLifecycle:

    async def test_state_survives_reopen(self, db_url):
        first = await open_service(db_url)
        await first.register_device("sensor-1", "temperature", "room-1", "owner-a")
        await first.close()

        second = await open_service(db_url)
        try:
            assert (await second.get_device("sensor-1")).owner == "owner-a"
        finally:
            await second.close()

    async def test_default_clock_is_strictly_increasing(self, db_url):
        service = await open_service(db_url)
        try:
            await service.register_device("sensor-1", "temperature", "room-1", "owner-a")
            a = await service.submit_data("sensor-1", "temperature", "1", "owner-a")
            b = await service.submit_data("sensor-1", "temperature", "1", "owner-a")
            assert b.timestamp > a.timestamp
            assert a.data_hash != b.data_hash
        finally:
            await service.close()
