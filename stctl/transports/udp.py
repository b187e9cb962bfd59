"""UDP request/acknowledgement transport.

Every call opens its own socket, sends one packet and resolves with the first
datagram that arrives on that socket. The protocol carries no correlation id,
so a late reply to an earlier (timed-out) request is indistinguishable from
the ACK of the current one. Callers must serialize requests per device.
"""

from __future__ import annotations

import asyncio
import logging

from stctl.core.errors import TransportSocketError, TransportTimeoutError
from stctl.core.model import SettingValue
from stctl.protocol.codec import CMD_GET_ALL_SETTINGS, CMD_RESET, DEFAULT_PORT, build_packet
from stctl.protocol.values import encode_value

DEFAULT_TIMEOUT_S = 2.0
LOGGER = logging.getLogger(__name__)


class _ReplyProtocol(asyncio.DatagramProtocol):
    def __init__(self, reply: asyncio.Future[bytes]) -> None:
        self._reply = reply

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        LOGGER.debug("Reply from %s:%s: %s", addr[0], addr[1], data.hex(" "))
        if not self._reply.done():
            self._reply.set_result(data)

    def error_received(self, exc: Exception) -> None:
        if not self._reply.done():
            self._reply.set_exception(TransportSocketError(f"UDP socket error: {exc}"))

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None and not self._reply.done():
            self._reply.set_exception(TransportSocketError(f"UDP socket closed: {exc}"))


class UDPTransactor:
    def __init__(self, *, port: int = DEFAULT_PORT, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
        self.port = port
        self.timeout_s = timeout_s

    async def send_packet(self, model: str, packet: bytes, dest_ip: str) -> bytes:
        """Send an already framed packet and wait for the first reply."""
        loop = asyncio.get_running_loop()
        reply: asyncio.Future[bytes] = loop.create_future()
        address = f"{dest_ip}:{self.port}"

        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _ReplyProtocol(reply),
                local_addr=("0.0.0.0", 0),
            )
        except OSError as exc:
            raise TransportSocketError(f"Could not open UDP socket: {exc}") from exc

        try:
            LOGGER.debug("Sending %s to %s at %s", packet.hex(" "), model or "<unknown-model>", address)
            try:
                transport.sendto(packet, (dest_ip, self.port))
            except OSError as exc:
                raise TransportSocketError(f"UDP send to {address} failed: {exc}") from exc
            try:
                return await asyncio.wait_for(reply, self.timeout_s)
            except asyncio.TimeoutError as exc:
                raise TransportTimeoutError(model, address, self.timeout_s) from exc
        finally:
            transport.close()

    async def send_await_ack(
        self,
        model: str,
        command_id: int,
        setting_id: int | None,
        value: SettingValue | object | None,
        dest_ip: str,
        include_length: bool = True,
    ) -> bytes:
        packet = build_packet(command_id, setting_id, encode_value(value), include_length)
        return await self.send_packet(model, packet, dest_ip)

    async def get_all_settings(self, model: str, dest_ip: str) -> bytes:
        return await self.send_await_ack(model, CMD_GET_ALL_SETTINGS, None, None, dest_ip, include_length=False)

    async def reset_device(self, model: str, dest_ip: str) -> bytes:
        return await self.send_await_ack(model, CMD_RESET, 0x00, None, dest_ip, include_length=False)
