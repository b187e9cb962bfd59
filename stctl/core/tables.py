"""Generic action/feedback tables built from loaded device schemas."""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from stctl.core.errors import ValueValidationError
from stctl.core.model import (
    Choice,
    NumberRange,
    ParameterDescriptor,
    ParameterValueType,
    SettingValue,
    UiType,
)
from stctl.core.schema_loader import SchemaRegistry

SendFn = Callable[[str, int, int, SettingValue], Awaitable[bytes]]

_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")
_TRUE_WORDS = {"true", "on", "1", "yes"}
_FALSE_WORDS = {"false", "off", "0", "no"}
LOGGER = logging.getLogger(__name__)


def entry_id(model: str, descriptor: ParameterDescriptor) -> str:
    return f"{model}:{descriptor.command_id}:{descriptor.setting_id}"


def number_range(descriptor: ParameterDescriptor) -> NumberRange | None:
    if descriptor.value_type not in (ParameterValueType.UINT8, ParameterValueType.BUS_UINT8):
        return None
    if descriptor.choices:
        return None
    if descriptor.valid_values:
        return NumberRange(min=min(descriptor.valid_values), max=max(descriptor.valid_values))
    return NumberRange(min=0, max=0xFF)


def _coerce_bool(descriptor: ParameterDescriptor, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
    raise ValueValidationError(f"{descriptor.name} expects true/false, got {raw!r}")


def _coerce_int(descriptor: ParameterDescriptor, raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValueValidationError(f"{descriptor.name} expects an integer, got {raw!r}")
    if isinstance(raw, str):
        try:
            raw = int(raw.strip(), 0)
        except ValueError as exc:
            raise ValueValidationError(f"{descriptor.name} expects an integer, got {raw!r}") from exc
    if not isinstance(raw, int):
        raise ValueValidationError(f"{descriptor.name} expects an integer, got {raw!r}")
    if not 0 <= raw <= 0xFF:
        raise ValueValidationError(f"{descriptor.name} value {raw} is outside 0..255")
    if descriptor.valid_values and raw not in descriptor.valid_values:
        allowed = ", ".join(str(v) for v in descriptor.valid_values)
        raise ValueValidationError(f"{descriptor.name} does not accept {raw}. Allowed: {allowed}")
    if descriptor.choices and str(raw) not in {str(c.id) for c in descriptor.choices}:
        allowed = ", ".join(str(c.id) for c in descriptor.choices)
        raise ValueValidationError(f"{descriptor.name} does not accept {raw}. Allowed: {allowed}")
    return raw


def _coerce_enum(descriptor: ParameterDescriptor, raw: Any) -> int:
    code = descriptor.codes.get(str(raw).strip())
    if code is None or isinstance(raw, bool):
        allowed = ", ".join(str(c.id) for c in descriptor.choices)
        raise ValueValidationError(f"{descriptor.name} does not accept {raw!r}. Allowed: {allowed}")
    return code


def _coerce_rgb(descriptor: ParameterDescriptor, raw: Any) -> tuple[int, int, int]:
    if isinstance(raw, str):
        match = _COLOR_RE.match(raw.strip())
        if match is None:
            raise ValueValidationError(f"{descriptor.name} expects a #RRGGBB color, got {raw!r}")
        raw = int(match.group(1), 16)
    if isinstance(raw, int) and not isinstance(raw, bool):
        if not 0 <= raw <= 0xFFFFFF:
            raise ValueValidationError(f"{descriptor.name} color {raw:#x} is outside 0..0xFFFFFF")
        return ((raw >> 16) & 0xFF, (raw >> 8) & 0xFF, raw & 0xFF)
    if isinstance(raw, Sequence) and len(raw) == 3:
        parts = tuple(raw)
        if all(isinstance(p, int) and not isinstance(p, bool) and 0 <= p <= 0xFF for p in parts):
            return parts  # type: ignore[return-value]
    raise ValueValidationError(f"{descriptor.name} expects an RGB color, got {raw!r}")


_COERCERS: dict[ParameterValueType, Callable[[ParameterDescriptor, Any], Any]] = {
    ParameterValueType.BOOLEAN: _coerce_bool,
    ParameterValueType.UINT8: _coerce_int,
    ParameterValueType.BUS_UINT8: _coerce_int,
    ParameterValueType.ENUM: _coerce_enum,
    ParameterValueType.RGB: _coerce_rgb,
}


def coerce_value(descriptor: ParameterDescriptor, raw: Any) -> SettingValue:
    """Validate ``raw`` against the descriptor and tag it with its wire type."""
    value = _COERCERS[descriptor.value_type](descriptor, raw)
    return SettingValue(value_type=descriptor.value_type, value=value)


def allowed_values(descriptor: ParameterDescriptor) -> tuple[str, ...]:
    """Human-readable list of accepted values for listings and error hints."""
    if descriptor.value_type is ParameterValueType.BOOLEAN:
        return ("true", "false")
    if descriptor.value_type is ParameterValueType.RGB:
        return ("#RRGGBB",)
    if descriptor.choices:
        return tuple(str(c.id) for c in descriptor.choices)
    bounds = number_range(descriptor)
    if bounds is not None:
        return (f"{bounds.min}..{bounds.max}",)
    return ()


@dataclass(frozen=True)
class ActionEntry:
    id: str
    model: str
    name: str
    descriptor: ParameterDescriptor
    choices: tuple[Choice, ...]
    range: NumberRange | None
    send_fn: SendFn

    async def invoke(self, value: Any) -> bytes:
        setting = coerce_value(self.descriptor, value)
        return await self.send_fn(
            self.model,
            self.descriptor.command_id,
            self.descriptor.setting_id,
            setting,
        )


@dataclass(frozen=True)
class FeedbackEntry:
    id: str
    model: str
    name: str
    descriptor: ParameterDescriptor
    option_type: UiType

    def evaluate(self, observed_state: Mapping[str, Mapping[Any, Any]] | None, expected: Any) -> bool:
        """Compare the caller's last-known state for this setting with ``expected``."""
        model_state = (observed_state or {}).get(self.model)
        if not model_state:
            return False
        if self.descriptor.setting_id in model_state:
            current = model_state[self.descriptor.setting_id]
        elif self.descriptor.name in model_state:
            current = model_state[self.descriptor.name]
        else:
            return False
        return current == expected


def _feedback_option_type(descriptor: ParameterDescriptor) -> UiType:
    if descriptor.ui_type in (UiType.CHECKBOX, UiType.DROPDOWN):
        return descriptor.ui_type
    return UiType.TEXT_INPUT


def build_action_table(registry: SchemaRegistry, send_fn: SendFn) -> dict[str, ActionEntry]:
    actions: dict[str, ActionEntry] = {}
    for model in registry.models():
        for name, descriptor in registry.get(model).actions.items():
            action_id = entry_id(model, descriptor)
            if action_id in actions:
                LOGGER.debug("Action %s (%s) replaces %s", action_id, name, actions[action_id].name)
            actions[action_id] = ActionEntry(
                id=action_id,
                model=model,
                name=name,
                descriptor=descriptor,
                choices=descriptor.choices,
                range=number_range(descriptor),
                send_fn=send_fn,
            )
    return actions


def build_feedback_table(registry: SchemaRegistry) -> dict[str, FeedbackEntry]:
    feedbacks: dict[str, FeedbackEntry] = {}
    for model in registry.models():
        for name, descriptor in registry.get(model).feedbacks.items():
            feedback_id = entry_id(model, descriptor)
            if feedback_id in feedbacks:
                LOGGER.debug("Feedback %s (%s) replaces %s", feedback_id, name, feedbacks[feedback_id].name)
            feedbacks[feedback_id] = FeedbackEntry(
                id=feedback_id,
                model=model,
                name=name,
                descriptor=descriptor,
                option_type=_feedback_option_type(descriptor),
            )
    return feedbacks
