from __future__ import annotations

import asyncio

import pytest

from stctl.core.errors import ValueValidationError
from stctl.core.model import (
    Choice,
    DeviceSchema,
    NumberRange,
    ParameterDescriptor,
    ParameterValueType,
    SettingValue,
    UiType,
)
from stctl.core.schema_loader import SchemaRegistry, load_schemas
from stctl.core.tables import build_action_table, build_feedback_table, coerce_value


class RecordingSend:
    def __init__(self) -> None:
        self.calls: list[tuple[str, int, int, SettingValue]] = []

    async def __call__(self, model: str, command_id: int, setting_id: int, value: SettingValue) -> bytes:
        self.calls.append((model, command_id, setting_id, value))
        return b"\x06"


def _descriptor(name: str, setting_id: int = 0x0A, **kwargs) -> ParameterDescriptor:
    fields = {
        "label": name,
        "command_id": 13,
        "value_type": ParameterValueType.BOOLEAN,
        "ui_type": UiType.CHECKBOX,
    }
    fields.update(kwargs)
    return ParameterDescriptor(name=name, setting_id=setting_id, **fields)


def _registry(model: str, *descriptors: ParameterDescriptor) -> SchemaRegistry:
    settings = {d.name: d for d in descriptors}
    schema = DeviceSchema(model=model, settings=settings, actions=dict(settings), feedbacks=dict(settings))
    return SchemaRegistry(schemas={model: schema})


def test_action_ids_are_model_command_setting() -> None:
    actions = build_action_table(load_schemas(), RecordingSend())
    action = actions["Model209:13:10"]
    assert action.name == "TalkbackToggle"
    assert action.model == "Model209"


def test_read_only_settings_have_no_action() -> None:
    actions = build_action_table(load_schemas(), RecordingSend())
    assert not any(a.model == "Model5401A" for a in actions.values())
    feedbacks = build_feedback_table(load_schemas())
    assert "Model5401A:10:30" in feedbacks


def test_colliding_ids_keep_later_entry() -> None:
    registry = _registry("Model100", _descriptor("First"), _descriptor("Second"))

    actions = build_action_table(registry, RecordingSend())
    feedbacks = build_feedback_table(registry)
    assert list(actions) == ["Model100:13:10"]
    assert actions["Model100:13:10"].name == "Second"
    assert feedbacks["Model100:13:10"].name == "Second"


def test_dropdown_choices_carried_and_numeric_range_derived() -> None:
    actions = build_action_table(load_schemas(), RecordingSend())
    dim = actions["Model209:13:7"]
    assert dim.choices[4] == Choice(id=4, label="6.0 dB")
    assert dim.range is None

    position = actions["Model209:13:4"]
    assert position.choices == ()
    assert position.range == NumberRange(min=0, max=31, step=1)


def test_invoke_encodes_and_forwards_reply() -> None:
    send = RecordingSend()
    actions = build_action_table(load_schemas(), send)

    reply = asyncio.run(actions["Model209:13:10"].invoke(True))
    assert reply == b"\x06"
    assert send.calls == [("Model209", 13, 0x0A, SettingValue(ParameterValueType.BOOLEAN, True))]


def test_invoke_maps_enum_choice_to_wire_code() -> None:
    send = RecordingSend()
    actions = build_action_table(load_schemas(), send)

    asyncio.run(actions["Model207:7:16"].invoke("always_on"))
    assert send.calls[0][3] == SettingValue(ParameterValueType.ENUM, 11)


def test_invoke_rejects_undeclared_choice_without_sending() -> None:
    send = RecordingSend()
    actions = build_action_table(load_schemas(), send)

    with pytest.raises(ValueValidationError):
        asyncio.run(actions["Model207:7:16"].invoke("loud"))
    with pytest.raises(ValueValidationError):
        asyncio.run(actions["Model209:13:7"].invoke(11))
    assert send.calls == []


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(True, True), ("on", True), ("false", False), (0, False)],
)
def test_coerce_boolean(raw: object, expected: bool) -> None:
    assert coerce_value(_descriptor("Toggle"), raw) == SettingValue(ParameterValueType.BOOLEAN, expected)


def test_coerce_boolean_rejects_other_values() -> None:
    with pytest.raises(ValueValidationError):
        coerce_value(_descriptor("Toggle"), 2)


def test_coerce_uint8_bounds_and_valid_values() -> None:
    level = _descriptor(
        "Level",
        value_type=ParameterValueType.UINT8,
        ui_type=UiType.NUMBER,
        valid_values=(0, 1, 2, 3),
    )
    assert coerce_value(level, "3").value == 3
    with pytest.raises(ValueValidationError):
        coerce_value(level, 4)
    with pytest.raises(ValueValidationError):
        coerce_value(level, "loud")

    free = _descriptor("Free", value_type=ParameterValueType.UINT8, ui_type=UiType.NUMBER)
    assert coerce_value(free, "0x20").value == 0x20
    with pytest.raises(ValueValidationError):
        coerce_value(free, 256)


@pytest.mark.parametrize(
    "raw",
    ["#FF8000", "ff8000", 0xFF8000, (255, 128, 0), [255, 128, 0]],
)
def test_coerce_rgb_shapes(raw: object) -> None:
    color = _descriptor("Color", value_type=ParameterValueType.RGB, ui_type=UiType.COLOR_PICKER, length=3)
    assert coerce_value(color, raw) == SettingValue(ParameterValueType.RGB, (255, 128, 0))


def test_coerce_rgb_rejects_bad_values() -> None:
    color = _descriptor("Color", value_type=ParameterValueType.RGB, ui_type=UiType.COLOR_PICKER, length=3)
    for raw in ("#FF80", 0x1000000, (256, 0, 0), True):
        with pytest.raises(ValueValidationError):
            coerce_value(color, raw)


def test_feedback_evaluate_compares_model_state() -> None:
    feedbacks = build_feedback_table(load_schemas())
    toggle = feedbacks["Model209:13:10"]

    state = {"Model209": {0x0A: True}, "Model391": {0x0A: False}}
    assert toggle.evaluate(state, True) is True
    assert toggle.evaluate(state, False) is False
    assert toggle.evaluate({"Model209": {"TalkbackToggle": False}}, False) is True
    assert toggle.evaluate({}, True) is False
    assert toggle.evaluate(None, True) is False


def test_feedback_option_types() -> None:
    feedbacks = build_feedback_table(load_schemas())
    assert feedbacks["Model209:13:10"].option_type is UiType.CHECKBOX
    assert feedbacks["Model209:13:5"].option_type is UiType.DROPDOWN
    assert feedbacks["Model209:13:6"].option_type is UiType.TEXT_INPUT
