"""MQTT ingestion of sensor readings.

Devices publish to ``<tenant>/devices/<device_id>/data`` a JSON body
``{"token": ..., "data_type": ..., "data_value": ...}``. The token names
the caller. Runs as a task inside the API process so that the service
keeps a single writer.
"""
import asyncio
import json
import logging

import aiomqtt
from jose import JWTError

from .auth import decode_token
from .errors import LedgerError
from .schemas import DataPointOut
from .service import LedgerService

logger = logging.getLogger(__name__)

RECONNECT_DELAY = 3


def device_from_topic(topic: str) -> str | None:
    parts = topic.split("/")  # t0 devices {device_id} data
    if len(parts) != 4 or parts[1] != "devices" or not parts[2]:
        return None
    return parts[2]


def _text_field(body: dict, name: str) -> str | None:
    value = body.get(name)
    if isinstance(value, str):
        return value
    # numeric readings are accepted and stored in their JSON text form
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


async def handle_message(service: LedgerService, secret: str, topic: str,
                         payload: bytes) -> DataPointOut | None:
    device_id = device_from_topic(topic)
    if device_id is None:
        logger.warning("dropping message on unexpected topic %s", topic)
        return None
    try:
        body = json.loads(payload.decode())
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("dropping non-JSON message for %s", device_id)
        return None
    if not isinstance(body, dict):
        logger.warning("dropping non-object message for %s", device_id)
        return None
    try:
        caller = decode_token(str(body.get("token", "")), secret)
    except JWTError:
        logger.warning("dropping message for %s: invalid token", device_id)
        return None
    data_type = _text_field(body, "data_type")
    data_value = _text_field(body, "data_value")
    if data_type is None or data_value is None:
        logger.warning("dropping message for %s: data_type and data_value must be strings or numbers", device_id)
        return None
    try:
        return await service.submit_data(device_id, data_type, data_value, caller)
    except LedgerError as e:
        logger.warning("dropping message for %s: %s", device_id, e)
        return None
    except Exception:
        # one failing message must not stop ingestion
        logger.exception("failed to ingest message for %s", device_id)
        return None


async def run(service: LedgerService, settings, client_factory=aiomqtt.Client):
    while True:
        try:
            async with client_factory(settings.mqtt_host, settings.mqtt_port) as client:
                await client.subscribe(settings.mqtt_data_topic, qos=1)
                logger.info("ingesting from %s", settings.mqtt_data_topic)
                async for m in client.messages:
                    payload = m.payload if isinstance(m.payload, (bytes, bytearray)) else str(m.payload).encode()
                    await handle_message(service, settings.jwt_secret, str(m.topic), bytes(payload))
        except aiomqtt.MqttError as e:
            logger.warning("mqtt connection lost (%s), retrying in %ss", e, RECONNECT_DELAY)
            await asyncio.sleep(RECONNECT_DELAY)
