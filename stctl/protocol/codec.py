"""Packet builder and checksum for the STcontroller UDP protocol.

Packet layout::

    +-----------------+------+-----+----------+---------+------------+---------+-------+
    | Header          | 0x5A | Cmd | Bus/Chan | Length  | Setting ID | Value   | CRC-8 |
    | 24 bytes        | 1 B  | 1 B | 0/1 byte | 0/1 B   | 0/1 byte   | 0..n B  | 1 B   |
    +-----------------+------+-----+----------+---------+------------+---------+-------+

- Header: ``FF FF 00 <total_len & 0xFF> 07 E1 00 00`` followed by a fixed
  16-byte identity block. ``total_len`` counts the header, the payload body
  and the checksum byte. Only the low byte is sent.
- Bus/Chan: present only for the mic-pre-bus command, always ``0x00``.
- Length: data block length plus one (omitted for parameterless commands).
- CRC-8: CRC-8/DVB-S2 over the payload body (from ``0x5A`` up to the value).
"""

from __future__ import annotations

from collections.abc import Iterable

DEFAULT_PORT = 8700
BROADCAST_ADDRESS = "255.255.255.255"
HEADER_SIZE = 24

PAYLOAD_MARKER = 0x5A
CMD_GET_ALL_SETTINGS = 0x0A
CMD_RESET = 0x0E
CMD_MIC_PRE_BUS = 0x12

CRC8_POLY = 0xD5

_HEADER_PREFIX = b"\xFF\xFF\x00"
_PROTOCOL_TAG = b"\x07\xE1\x00\x00"
_IDENTITY_BLOCK = bytes.fromhex("90b11c5bd2850000") + b"Studio-T"

DISCOVERY_PROBE = b"\xFF\xFF\x00\x20" + _PROTOCOL_TAG + b"Studio-Technologies-Discovery\x00"


def crc8(data: Iterable[int]) -> int:
    """CRC-8/DVB-S2: poly 0xD5, init 0x00, MSB first, no reflection."""
    crc = 0
    for byte in data:
        crc ^= byte & 0xFF
        for _ in range(8):
            if crc & 0x80:
                crc = ((crc << 1) ^ CRC8_POLY) & 0xFF
            else:
                crc = (crc << 1) & 0xFF
    return crc


def build_header(total_length: int) -> bytes:
    return _HEADER_PREFIX + bytes([total_length & 0xFF]) + _PROTOCOL_TAG + _IDENTITY_BLOCK


def build_payload(
    command_id: int,
    setting_id: int | None = None,
    value_bytes: bytes = b"",
    include_length: bool = True,
) -> bytes:
    """Build the payload body, without the trailing checksum.

    Args:
        command_id: Protocol command group.
        setting_id: Setting within the command, or ``None`` for commands that
            carry no setting.
        value_bytes: Encoded value.
        include_length: Emit the length byte. ``False`` for "get all
            settings" and "reset".
    """
    data_block = bytes([setting_id & 0xFF]) if setting_id is not None else b""
    data_block += bytes(value_bytes)

    body = bytearray([PAYLOAD_MARKER, command_id & 0xFF])
    if command_id == CMD_MIC_PRE_BUS:
        body.append(0x00)
    if include_length:
        body.append((len(data_block) + 1) & 0xFF)
    body += data_block
    return bytes(body)


def build_packet(
    command_id: int,
    setting_id: int | None = None,
    value_bytes: bytes = b"",
    include_length: bool = True,
) -> bytes:
    body = build_payload(command_id, setting_id, value_bytes, include_length)
    body_with_crc = body + bytes([crc8(body)])
    return build_header(HEADER_SIZE + len(body_with_crc)) + body_with_crc
