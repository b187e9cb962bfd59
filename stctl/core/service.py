"""Service layer used by CLI and the public API."""

from __future__ import annotations

import logging

from stctl.core.config import ControllerConfig
from stctl.core.errors import ConfigError, SchemaResolutionError
from stctl.core.model import DeviceInfo, DeviceSchema, ParameterDescriptor, SendResult, SettingValue
from stctl.core.schema_loader import SchemaRegistry, load_schemas
from stctl.core.tables import (
    ActionEntry,
    FeedbackEntry,
    allowed_values,
    build_action_table,
    build_feedback_table,
    coerce_value,
    entry_id,
)
from stctl.protocol.codec import build_packet
from stctl.protocol.values import encode_setting
from stctl.transports.base import Transactor
from stctl.transports.discovery import discover
from stctl.transports.udp import UDPTransactor

LOGGER = logging.getLogger(__name__)


class StudioService:
    def __init__(
        self,
        *,
        config: ControllerConfig | None = None,
        registry: SchemaRegistry | None = None,
        transactor: Transactor | None = None,
    ) -> None:
        self.config = config or ControllerConfig()
        self.registry = registry or load_schemas(self.config.devices_dir)
        self.load_warnings = self.registry.warnings
        self.transactor = transactor or UDPTransactor(
            port=self.config.port,
            timeout_s=self.config.timeout_s,
        )

    def list_models(self) -> list[DeviceSchema]:
        return [self.registry.get(model) for model in self.registry.models()]

    def action_table(self, host: str | None = None) -> dict[str, ActionEntry]:
        target = host or self.config.host or ""

        async def _send(model: str, command_id: int, setting_id: int, value: SettingValue) -> bytes:
            if not target:
                raise ConfigError(f"No target host configured for {model}. Pass --host or set STCTL_HOST.")
            return await self.transactor.send_await_ack(model, command_id, setting_id, value, target)

        return build_action_table(self.registry, _send)

    def feedback_table(self) -> dict[str, FeedbackEntry]:
        return build_feedback_table(self.registry)

    def resolve_setting(self, model: str, setting: str) -> ParameterDescriptor:
        schema = self.registry.get(model)
        descriptor = schema.settings.get(setting)
        if descriptor is None:
            available = ", ".join(sorted(schema.settings))
            raise SchemaResolutionError(
                f"Model '{model}' does not define setting '{setting}'. Available: {available}"
            )
        return descriptor

    def setting_values(self, model: str, setting: str) -> tuple[ParameterDescriptor, tuple[str, ...]]:
        descriptor = self.resolve_setting(model, setting)
        return descriptor, allowed_values(descriptor)

    def _check_addressable(self, model: str, setting: str, descriptor: ParameterDescriptor) -> None:
        # The last setting declared with an id owns it in the action table.
        action_id = entry_id(model, descriptor)
        owner = [
            name
            for name, other in self.registry.get(model).actions.items()
            if entry_id(model, other) == action_id
        ][-1]
        if owner != setting:
            raise SchemaResolutionError(
                f"Setting '{setting}' on {model} shares its id with '{owner}' and cannot be addressed"
            )

    async def set_setting(self, model: str, setting: str, value: object, host: str) -> SendResult:
        """Validate ``value`` for one setting and send it to ``host``.

        ``packet_hex`` is framed from the same tagged value handed to the
        transactor.
        """
        descriptor = self.resolve_setting(model, setting)
        if descriptor.read_only:
            raise SchemaResolutionError(f"Setting '{setting}' on {model} is read-only")
        if not host:
            raise ConfigError(f"No target host configured for {model}. Pass --host or set STCTL_HOST.")
        self._check_addressable(model, setting, descriptor)

        tagged = coerce_value(descriptor, value)
        packet = build_packet(descriptor.command_id, descriptor.setting_id, encode_setting(tagged))
        LOGGER.debug("Setting %s.%s=%r on %s: %s", model, setting, value, host, packet.hex(" "))
        response = await self.transactor.send_await_ack(
            model,
            descriptor.command_id,
            descriptor.setting_id,
            tagged,
            host,
        )
        return SendResult(
            model=model,
            host=host,
            setting=setting,
            packet_hex=packet.hex(),
            response_hex=response.hex(),
        )

    async def discover(self, timeout_s: float | None = None) -> list[DeviceInfo]:
        return await discover(
            self.config.discovery_timeout_s if timeout_s is None else timeout_s,
            port=self.config.port,
            broadcast_address=self.config.broadcast_address,
        )

    async def get_all_settings(self, model: str, host: str) -> bytes:
        return await self.transactor.get_all_settings(model, host)

    async def reset_device(self, model: str, host: str) -> bytes:
        return await self.transactor.reset_device(model, host)
