"""Stable public API for building tooling on top of stctl.

This module is the supported integration surface for third-party callers
(host plugins, control surfaces, scripts). Network operations are coroutines;
run them on the caller's event loop.
"""

from __future__ import annotations

from dataclasses import dataclass

from stctl.core.config import ControllerConfig
from stctl.core.errors import (
    ConfigError,
    SchemaLoadError,
    SchemaResolutionError,
    SchemaValidationError,
    StctlError,
    TransportError,
    TransportSocketError,
    TransportTimeoutError,
    UnsupportedValueTypeError,
    ValidationError,
    ValueValidationError,
)
from stctl.core.model import (
    Choice,
    DeviceInfo,
    DeviceSchema,
    NumberRange,
    ParameterDescriptor,
    ParameterValueType,
    SendResult,
    SettingValue,
    UiType,
)
from stctl.core.schema_loader import SchemaRegistry, load_schemas
from stctl.core.service import StudioService
from stctl.core.tables import ActionEntry, FeedbackEntry, build_action_table, build_feedback_table
from stctl.transports.base import Transactor
from stctl.transports.udp import UDPTransactor

__all__ = [
    "StctlError",
    "ConfigError",
    "ValidationError",
    "SchemaValidationError",
    "UnsupportedValueTypeError",
    "ValueValidationError",
    "SchemaLoadError",
    "SchemaResolutionError",
    "TransportError",
    "TransportSocketError",
    "TransportTimeoutError",
    "Choice",
    "DeviceInfo",
    "DeviceSchema",
    "NumberRange",
    "ParameterDescriptor",
    "ParameterValueType",
    "SendResult",
    "SettingValue",
    "UiType",
    "ActionEntry",
    "FeedbackEntry",
    "ControllerConfig",
    "SchemaRegistry",
    "Transactor",
    "UDPTransactor",
    "load_schemas",
    "build_action_table",
    "build_feedback_table",
    "SettingCatalog",
    "Client",
]


@dataclass(frozen=True)
class SettingCatalog:
    """Setting/value catalog for one device model."""

    model: str
    settings: dict[str, tuple[str, ...]]


class Client:
    """Public client for interacting with stctl core capabilities.

    A `Client` wraps schema loading, action/feedback table construction,
    discovery and command sends behind a stable API.
    """

    def __init__(
        self,
        *,
        config: ControllerConfig | None = None,
        registry: SchemaRegistry | None = None,
        transactor: Transactor | None = None,
    ) -> None:
        self._service = StudioService(config=config, registry=registry, transactor=transactor)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    def list_models(self) -> list[DeviceSchema]:
        return self._service.list_models()

    def get_setting_catalog(self, model: str) -> SettingCatalog:
        schema = self._service.registry.get(model)
        settings = {
            name: self._service.setting_values(model, name)[1]
            for name in sorted(schema.settings)
        }
        return SettingCatalog(model=model, settings=settings)

    def get_actions(self, host: str | None = None) -> dict[str, ActionEntry]:
        return self._service.action_table(host)

    def get_feedbacks(self) -> dict[str, FeedbackEntry]:
        return self._service.feedback_table()

    async def discover(self, timeout_s: float | None = None) -> list[DeviceInfo]:
        return await self._service.discover(timeout_s)

    async def set_setting(self, model: str, setting: str, value: object, *, host: str) -> SendResult:
        return await self._service.set_setting(model, setting, value, host)

    async def get_all_settings(self, model: str, *, host: str) -> bytes:
        return await self._service.get_all_settings(model, host)

    async def reset_device(self, model: str, *, host: str) -> bytes:
        return await self._service.reset_device(model, host)
