"""Runtime configuration read from STCTL_* environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from stctl.core.errors import ConfigError
from stctl.protocol.codec import BROADCAST_ADDRESS, DEFAULT_PORT
from stctl.transports.discovery import DEFAULT_DISCOVERY_TIMEOUT_S
from stctl.transports.udp import DEFAULT_TIMEOUT_S


@dataclass(frozen=True)
class ControllerConfig:
    port: int = DEFAULT_PORT
    timeout_s: float = DEFAULT_TIMEOUT_S
    discovery_timeout_s: float = DEFAULT_DISCOVERY_TIMEOUT_S
    broadcast_address: str = BROADCAST_ADDRESS
    host: str | None = None
    devices_dir: Path | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ControllerConfig:
        env = os.environ if environ is None else environ
        devices_dir = env.get("STCTL_DEVICES_DIR")
        return cls(
            port=_int_env(env, "STCTL_PORT", DEFAULT_PORT),
            timeout_s=_float_env(env, "STCTL_TIMEOUT", DEFAULT_TIMEOUT_S),
            discovery_timeout_s=_float_env(env, "STCTL_DISCOVERY_TIMEOUT", DEFAULT_DISCOVERY_TIMEOUT_S),
            broadcast_address=env.get("STCTL_BROADCAST", BROADCAST_ADDRESS),
            host=env.get("STCTL_HOST") or None,
            devices_dir=Path(devices_dir) if devices_dir else None,
        )


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got '{raw}'") from exc
    if not 0 < value < 65536:
        raise ConfigError(f"{name} must be a port number (1-65535), got {value}")
    return value


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number of seconds, got '{raw}'") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value
