"""Value encoding for setting values on the wire."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from stctl.core.errors import UnsupportedValueTypeError
from stctl.core.model import ParameterValueType, SettingValue


def _encode_boolean(value: object) -> bytes:
    if not isinstance(value, bool):
        raise UnsupportedValueTypeError(f"Boolean setting requires a bool, got {value!r}")
    return b"\x01" if value else b"\x00"


def _encode_uint8(value: object) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise UnsupportedValueTypeError(f"8-bit setting requires an int, got {value!r}")
    return bytes([value & 0xFF])


def _encode_rgb(value: object) -> bytes:
    if isinstance(value, int) and not isinstance(value, bool):
        return bytes([(value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF])
    if isinstance(value, tuple) and len(value) == 3:
        return bytes(int(part) & 0xFF for part in value)
    raise UnsupportedValueTypeError(f"RGB setting requires a packed int or 3-tuple, got {value!r}")


_ENCODERS: dict[ParameterValueType, Callable[[object], bytes]] = {
    ParameterValueType.BOOLEAN: _encode_boolean,
    ParameterValueType.UINT8: _encode_uint8,
    ParameterValueType.ENUM: _encode_uint8,
    ParameterValueType.BUS_UINT8: _encode_uint8,
    ParameterValueType.RGB: _encode_rgb,
}


def encode_setting(setting: SettingValue) -> bytes:
    """Encode a tagged value using the encoder for its declared type."""
    return _ENCODERS[setting.value_type](setting.value)


def encode_raw(value: object) -> bytes:
    """Encode an untagged value; the value's shape and magnitude decide.

    Integers above 255 are treated as packed 24-bit RGB.
    """
    if isinstance(value, bool):
        return b"\x01" if value else b"\x00"
    if isinstance(value, int):
        if value > 0xFF:
            return _encode_rgb(value)
        return bytes([value & 0xFF])
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, Sequence) and not isinstance(value, str):
        if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value):
            raise UnsupportedValueTypeError(f"Unsupported value type: {value!r}")
        return bytes(int(v) & 0xFF for v in value)
    raise UnsupportedValueTypeError(f"Unsupported value type: {value!r}")


def encode_value(value: SettingValue | object | None) -> bytes:
    if value is None:
        return b""
    if isinstance(value, SettingValue):
        return encode_setting(value)
    return encode_raw(value)
