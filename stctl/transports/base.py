"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol

from stctl.core.model import SettingValue


class Transactor(Protocol):
    async def send_await_ack(
        self,
        model: str,
        command_id: int,
        setting_id: int | None,
        value: SettingValue | object | None,
        dest_ip: str,
        include_length: bool = True,
    ) -> bytes:
        """Send one command packet and return the first reply."""

    async def get_all_settings(self, model: str, dest_ip: str) -> bytes:
        """Request a dump of all device settings."""

    async def reset_device(self, model: str, dest_ip: str) -> bytes:
        """Reset the device to factory settings."""
