import os
import logging
from dataclasses import dataclass
from typing import Mapping

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./ledger.db"


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    jwt_secret: str = "devsecret"
    jwt_minutes: int = 60
    mqtt_enabled: bool = False
    mqtt_host: str = "emqx"
    mqtt_port: int = 1883
    mqtt_tenant: str = "t0"
    mqtt_data_topic: str = "t0/devices/+/data"
    log_level: str = "INFO"


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build settings from environment variables (MQTT__* keeps the broker naming)."""
    if env is None:
        env = os.environ
    tenant = env.get("MQTT__TENANT", "t0")
    return Settings(
        database_url=env.get("DATABASE_URL") or DEFAULT_DATABASE_URL,
        jwt_secret=env.get("JWT_SECRET", "devsecret"),
        jwt_minutes=_int(env, "JWT_MINUTES", 60),
        mqtt_enabled=_bool(env, "MQTT__ENABLED", False),
        mqtt_host=env.get("MQTT__HOST", "emqx"),
        mqtt_port=_int(env, "MQTT__PORT", 1883),
        mqtt_tenant=tenant,
        mqtt_data_topic=env.get("MQTT__TOPIC", f"{tenant}/devices/+/data"),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )
