"""Content digest for data points.

The digest covers device id, data type, data value, logical timestamp and
submitter, in that order. Every field is length-prefixed so that distinct
tuples never encode to the same bytes (("ab", "c") vs ("a", "bc")).
"""
import hashlib
import struct

DIGEST_SIZE = 32
_DOMAIN = b"iotledger.datapoint.v1"


def _field(raw: bytes) -> bytes:
    return struct.pack(">Q", len(raw)) + raw


def encode_fields(device_id: str, data_type: str, data_value: str,
                  logical_timestamp: int, caller: str) -> bytes:
    parts = [
        _field(_DOMAIN),
        _field(device_id.encode("utf-8")),
        _field(data_type.encode("utf-8")),
        _field(data_value.encode("utf-8")),
        _field(struct.pack(">q", logical_timestamp)),
        _field(caller.encode("utf-8")),
    ]
    return b"".join(parts)


class HashEngine:
    """SHA-256 over the canonical field encoding."""

    def digest(self, device_id: str, data_type: str, data_value: str,
               logical_timestamp: int, caller: str) -> bytes:
        payload = encode_fields(device_id, data_type, data_value, logical_timestamp, caller)
        return hashlib.sha256(payload).digest()

    def hexdigest(self, *args) -> str:
        return self.digest(*args).hex()
