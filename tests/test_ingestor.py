"""Tests for MQTT message handling (no broker needed)."""

import json

from iotledger.auth import create_token
from iotledger.ingestor import device_from_topic, handle_message

SECRET = "test-secret"


def message(token, data_type="temperature", data_value="21.0"):
    return json.dumps({"token": token, "data_type": data_type, "data_value": data_value}).encode()


class TestTopic:

    def test_device_from_topic(self):
        assert device_from_topic("t0/devices/sensor-1/data") == "sensor-1"
        assert device_from_topic("t0/devices//data") is None
        assert device_from_topic("t0/other/sensor-1/data") is None
        assert device_from_topic("t0/devices/sensor-1") is None


class TestHandleMessage:

    async def test_valid_message_is_submitted_as_token_subject(self, service, sensor):
        token = create_token("owner-a", SECRET)
        point = await handle_message(service, SECRET, "t0/devices/sensor-1/data", message(token))
        assert point is not None
        assert point.submitter == "owner-a"
        assert point.data_value == "21.0"
        assert (await service.get_device("sensor-1")).total_data_points == 1

    async def test_bad_token_is_dropped(self, service, sensor):
        token = create_token("owner-a", "another-secret")
        assert await handle_message(service, SECRET, "t0/devices/sensor-1/data", message(token)) is None
        assert await service.get_total_data_points() == 0

    async def test_missing_token_is_dropped(self, service, sensor):
        payload = json.dumps({"data_type": "temperature", "data_value": "1"}).encode()
        assert await handle_message(service, SECRET, "t0/devices/sensor-1/data", payload) is None

    async def test_non_owner_is_dropped(self, service, sensor, caplog):
        token = create_token("owner-c", SECRET)
        assert await handle_message(service, SECRET, "t0/devices/sensor-1/data", message(token)) is None
        assert "forbidden" in caplog.text
        assert await service.get_total_data_points() == 0

    async def test_garbage_payloads_are_dropped(self, service, sensor):
        topic = "t0/devices/sensor-1/data"
        assert await handle_message(service, SECRET, topic, b"\xff\xfe") is None
        assert await handle_message(service, SECRET, topic, b"not json") is None
        assert await handle_message(service, SECRET, topic, b"[1, 2]") is None
        assert await service.get_total_data_points() == 0

    async def test_unexpected_topic_is_dropped(self, service, sensor):
        token = create_token("owner-a", SECRET)
        assert await handle_message(service, SECRET, "t0/devices/sensor-1", message(token)) is None


class TestPayloadTypes:

    async def send(self, service, body):
        payload = json.dumps({"token": create_token("owner-a", SECRET), **body}).encode()
        return await handle_message(service, SECRET, "t0/devices/sensor-1/data", payload)

    async def test_null_value_is_dropped(self, service, sensor):
        assert await self.send(service, {"data_type": "temperature", "data_value": None}) is None
        assert await service.get_total_data_points() == 0

    async def test_list_value_is_dropped(self, service, sensor):
        assert await self.send(service, {"data_type": "temperature", "data_value": [1, 2]}) is None
        assert await service.get_total_data_points() == 0

    async def test_boolean_and_object_fields_are_dropped(self, service, sensor):
        assert await self.send(service, {"data_type": "temperature", "data_value": True}) is None
        assert await self.send(service, {"data_type": {"k": 1}, "data_value": "1"}) is None
        assert await service.get_total_data_points() == 0

    async def test_numeric_value_is_stored_as_text(self, service, sensor):
        point = await self.send(service, {"data_type": "temperature", "data_value": 21.5})
        assert point.data_value == "21.5"
