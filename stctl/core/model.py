"""Core data models used across loader, tables, transports, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class ParameterValueType(str, Enum):
    BOOLEAN = "boolean"
    UINT8 = "uint8"
    ENUM = "enum"
    RGB = "rgb"
    BUS_UINT8 = "bus_uint8"

    @property
    def wire_length(self) -> int:
        return 3 if self is ParameterValueType.RGB else 1


class UiType(str, Enum):
    STATIC_TEXT = "static-text"
    TEXT_INPUT = "textinput"
    DROPDOWN = "dropdown"
    COLOR_PICKER = "colorpicker"
    NUMBER = "number"
    CHECKBOX = "checkbox"


ChoiceId = Union[str, int]
RawValue = Union[bool, int, str, tuple[int, int, int]]


@dataclass(frozen=True)
class Choice:
    id: ChoiceId
    label: str


@dataclass(frozen=True)
class NumberRange:
    min: int
    max: int
    step: int = 1


@dataclass(frozen=True)
class ParameterDescriptor:
    name: str
    label: str
    setting_id: int
    command_id: int
    value_type: ParameterValueType
    ui_type: UiType
    choices: tuple[Choice, ...] = ()
    codes: dict[str, int] = field(default_factory=dict)
    valid_values: tuple[int, ...] = ()
    length: int = 1
    default: RawValue | None = None
    current: RawValue | None = None
    examples: tuple[tuple[object, str], ...] = ()

    @property
    def read_only(self) -> bool:
        return self.ui_type is UiType.STATIC_TEXT


@dataclass(frozen=True)
class DeviceSchema:
    model: str
    settings: dict[str, ParameterDescriptor]
    actions: dict[str, ParameterDescriptor]
    feedbacks: dict[str, ParameterDescriptor]


@dataclass(frozen=True)
class SettingValue:
    """A value tagged with the wire type it must be encoded as."""

    value_type: ParameterValueType
    value: bool | int | tuple[int, int, int]


@dataclass(frozen=True)
class DeviceInfo:
    model: str
    ip: str
    firmware: str | None = None
    mac: str | None = None


@dataclass(frozen=True)
class SendResult:
    model: str
    host: str
    setting: str
    packet_hex: str
    response_hex: str
