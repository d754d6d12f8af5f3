from sqlalchemy import Column, BigInteger, Integer, String, Text, Boolean, ForeignKey, DateTime
from sqlalchemy.sql import func
from .db import Base

# SQLite only autoincrements INTEGER PRIMARY KEY
Serial = BigInteger().with_variant(Integer, "sqlite")


class Device(Base):
    __tablename__ = "devices"
    id = Column(Serial, primary_key=True, autoincrement=True)  # registration order
    device_id = Column(String, unique=True, nullable=False)
    owner = Column(String, nullable=False, index=True)
    device_type = Column(String, nullable=False, default="")
    location = Column(String, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    last_data_timestamp = Column(BigInteger, nullable=False, default=0)
    total_data_points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class DataPoint(Base):
    __tablename__ = "data_points"
    id = Column(Serial, primary_key=True, autoincrement=True)  # submission order
    data_hash = Column(String(64), unique=True, nullable=False)
    device_id = Column(String, ForeignKey("devices.device_id"), nullable=False, index=True)
    data_type = Column(String, nullable=False)
    data_value = Column(Text, nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    submitter = Column(String, nullable=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    verified_by = Column(String, nullable=True)
