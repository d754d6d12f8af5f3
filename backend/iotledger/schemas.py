from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, List


class TokenIn(BaseModel):
    identity: str = Field(min_length=1)


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class DeviceRegisterIn(BaseModel):
    device_id: str
    device_type: str = ""
    location: str = ""


class DataSubmitIn(BaseModel):
    """Sensor reading submitted by the device owner.

    Example:
    {
        "device_id": "sensor-1",
        "data_type": "temperature",
        "data_value": "22.5"
    }
    """
    device_id: str
    data_type: str
    data_value: str


class DeviceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    device_id: str
    owner: str
    device_type: str
    location: str
    is_active: bool
    last_data_timestamp: int
    total_data_points: int


class DataPointOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    data_hash: str
    device_id: str
    data_type: str
    data_value: str
    timestamp: int
    submitter: str
    is_verified: bool
    verified_by: str | None = None


class ToggleOut(BaseModel):
    device_id: str
    is_active: bool


class VerifyOut(BaseModel):
    data_hash: str
    is_verified: bool = True


class OwnerDevicesOut(BaseModel):
    owner: str
    device_ids: List[str]


class StatsOut(BaseModel):
    total_devices: int
    total_data_points: int


# --- events handed to the EventSink ---

class DeviceRegistered(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["DeviceRegistered"] = "DeviceRegistered"
    device_id: str
    owner: str
    device_type: str


class DataSubmitted(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["DataSubmitted"] = "DataSubmitted"
    device_id: str
    data_hash: str
    timestamp: int


class DataVerified(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["DataVerified"] = "DataVerified"
    data_hash: str
    verifier: str


class DeviceStatusChanged(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["DeviceStatusChanged"] = "DeviceStatusChanged"
    device_id: str
    is_active: bool


LedgerEvent = DeviceRegistered | DataSubmitted | DataVerified | DeviceStatusChanged
