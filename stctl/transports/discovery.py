"""UDP broadcast discovery of STcontroller devices."""

from __future__ import annotations

import asyncio
import logging
import re

from stctl.core.model import DeviceInfo
from stctl.protocol.codec import BROADCAST_ADDRESS, DEFAULT_PORT, DISCOVERY_PROBE

DEFAULT_DISCOVERY_TIMEOUT_S = 2.0
UNKNOWN_MODEL = "Unknown"

_MODEL_RE = re.compile(r"Model\d+", re.IGNORECASE)
_FIRMWARE_RE = re.compile(r"v?(\d+\.\d+\.\d+)", re.IGNORECASE)
_MAC_HEX_RE = re.compile(r"(?:[0-9a-f]{2}){6}", re.IGNORECASE)
LOGGER = logging.getLogger(__name__)


def parse_discovery_reply(data: bytes, ip: str) -> DeviceInfo:
    """Extract model, firmware and MAC from a free-form reply payload.

    Extraction is heuristic: replies follow no fixed layout.
    """
    text = data.decode("utf-8", errors="replace")
    model_match = _MODEL_RE.search(text)
    firmware_match = _FIRMWARE_RE.search(text)
    mac_match = _MAC_HEX_RE.search(data.hex())

    mac = None
    if mac_match:
        raw = mac_match.group(0)
        mac = ":".join(raw[i : i + 2] for i in range(0, len(raw), 2))

    return DeviceInfo(
        model=model_match.group(0) if model_match else UNKNOWN_MODEL,
        ip=ip,
        firmware=firmware_match.group(1) if firmware_match else None,
        mac=mac,
    )


class DiscoveryCollector(asyncio.DatagramProtocol):
    """Collects discovery replies keyed by source IP; later replies win."""

    def __init__(self) -> None:
        self.devices: dict[str, DeviceInfo] = {}
        self.stopped = asyncio.Event()

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        info = parse_discovery_reply(data, addr[0])
        LOGGER.debug("Discovery reply from %s: %s", addr[0], info)
        self.devices[addr[0]] = info

    def error_received(self, exc: Exception) -> None:
        LOGGER.debug("Discovery socket error, stopping early: %s", exc)
        self.stopped.set()

    def connection_lost(self, exc: Exception | None) -> None:
        self.stopped.set()


async def discover(
    timeout_s: float = DEFAULT_DISCOVERY_TIMEOUT_S,
    *,
    port: int = DEFAULT_PORT,
    broadcast_address: str = BROADCAST_ADDRESS,
) -> list[DeviceInfo]:
    """Broadcast a probe and collect replies for ``timeout_s`` seconds.

    Socket failures end the window early; whatever was collected is returned.
    """
    loop = asyncio.get_running_loop()
    collector = DiscoveryCollector()
    try:
        transport, _ = await loop.create_datagram_endpoint(
            lambda: collector,
            local_addr=("0.0.0.0", 0),
            allow_broadcast=True,
        )
    except OSError as exc:
        LOGGER.warning("Discovery socket could not be opened: %s", exc)
        return []

    try:
        try:
            transport.sendto(DISCOVERY_PROBE, (broadcast_address, port))
        except OSError as exc:
            LOGGER.warning("Discovery probe to %s:%s failed: %s", broadcast_address, port, exc)
            return list(collector.devices.values())
        try:
            await asyncio.wait_for(collector.stopped.wait(), timeout_s)
        except asyncio.TimeoutError:
            pass
    finally:
        transport.close()

    return list(collector.devices.values())
