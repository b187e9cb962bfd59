from __future__ import annotations

import asyncio

import pytest

from stctl.core.config import ControllerConfig
from stctl.core.errors import ConfigError, SchemaResolutionError, ValueValidationError
from stctl.core.model import DeviceSchema, ParameterDescriptor, ParameterValueType, SettingValue, UiType
from stctl.core.schema_loader import SchemaRegistry, load_schemas
from stctl.core.service import StudioService
from stctl.protocol.codec import build_packet
from stctl.protocol.values import encode_value


class FakeTransactor:
    def __init__(self) -> None:
        self.calls: list[tuple[str, int, int | None, object, str, bool]] = []

    async def send_await_ack(self, model, command_id, setting_id, value, dest_ip, include_length=True) -> bytes:
        self.calls.append((model, command_id, setting_id, value, dest_ip, include_length))
        return bytes.fromhex("beef")

    async def get_all_settings(self, model: str, dest_ip: str) -> bytes:
        return await self.send_await_ack(model, 0x0A, None, None, dest_ip, include_length=False)

    async def reset_device(self, model: str, dest_ip: str) -> bytes:
        return await self.send_await_ack(model, 0x0E, 0x00, None, dest_ip, include_length=False)


def _service(transactor: FakeTransactor, **config) -> StudioService:
    return StudioService(config=ControllerConfig(**config), registry=load_schemas(), transactor=transactor)


def test_set_setting_happy_path() -> None:
    transactor = FakeTransactor()
    service = _service(transactor)

    result = asyncio.run(service.set_setting("Model209", "TalkbackToggle", "true", "10.0.0.5"))
    assert result.setting == "TalkbackToggle"
    assert result.host == "10.0.0.5"
    assert result.packet_hex == build_packet(13, 0x0A, b"\x01").hex()
    assert result.packet_hex.endswith("5a0d030a01" + result.packet_hex[-2:])
    assert result.response_hex == "beef"

    assert transactor.calls == [
        ("Model209", 13, 0x0A, SettingValue(ParameterValueType.BOOLEAN, True), "10.0.0.5", True)
    ]


def test_set_setting_color_and_mic_pre_bus() -> None:
    transactor = FakeTransactor()
    service = _service(transactor)

    color = asyncio.run(service.set_setting("Model209", "EncoderColor", "#FF8000", "10.0.0.5"))
    assert "0506ff8000" in color.packet_hex

    gain = asyncio.run(service.set_setting("Model5365", "MicPreGain", "36", "10.0.0.6"))
    assert "5a1200030d24" in gain.packet_hex


def test_unknown_setting_lists_available() -> None:
    service = _service(FakeTransactor())

    with pytest.raises(SchemaResolutionError) as exc:
        asyncio.run(service.set_setting("Model209", "Volume", "3", "10.0.0.5"))
    assert "Available:" in str(exc.value)
    assert "TalkbackToggle" in str(exc.value)


def test_unknown_model_rejected() -> None:
    with pytest.raises(SchemaResolutionError):
        _service(FakeTransactor()).resolve_setting("Model999", "TalkbackToggle")


def test_read_only_setting_rejected() -> None:
    transactor = FakeTransactor()
    with pytest.raises(SchemaResolutionError):
        asyncio.run(_service(transactor).set_setting("Model5401A", "Status", "1", "10.0.0.5"))
    assert transactor.calls == []


def test_invalid_value_not_sent() -> None:
    transactor = FakeTransactor()
    with pytest.raises(ValueValidationError):
        asyncio.run(_service(transactor).set_setting("Model207", "MainButtonMode", "sometimes", "10.0.0.5"))
    assert transactor.calls == []


def test_setting_values_listing() -> None:
    service = _service(FakeTransactor())
    _, values = service.setting_values("Model392", "OnIntensity")
    assert values == ("off", "low", "medium", "high")
    _, values = service.setting_values("ZEVO", "OverallLevel")
    assert values == ("0..31",)


def test_action_table_uses_configured_host() -> None:
    transactor = FakeTransactor()
    service = _service(transactor, host="10.0.0.9")

    asyncio.run(service.action_table()["Model391:9:25"].invoke(False))
    assert transactor.calls[0][4] == "10.0.0.9"


def test_action_table_without_host_fails() -> None:
    transactor = FakeTransactor()
    service = _service(transactor)
    with pytest.raises(ConfigError):
        asyncio.run(service.action_table()["Model391:9:25"].invoke(False))
    assert transactor.calls == []


def test_set_setting_without_host_is_config_error() -> None:
    transactor = FakeTransactor()
    with pytest.raises(ConfigError):
        asyncio.run(_service(transactor).set_setting("Model209", "TalkbackToggle", "on", ""))
    assert transactor.calls == []


def test_set_setting_reports_packet_of_sent_value(monkeypatch: pytest.MonkeyPatch) -> None:
    transactor = FakeTransactor()
    service = _service(transactor)

    def _no_table(host=None):
        raise AssertionError("action table rebuilt")

    monkeypatch.setattr(service, "action_table", _no_table)

    result = asyncio.run(service.set_setting("Model392", "ControlSource", "udp", "10.0.0.7"))
    model, command_id, setting_id, sent, _, _ = transactor.calls[0]
    assert sent == SettingValue(ParameterValueType.ENUM, 4)
    assert result.packet_hex == build_packet(command_id, setting_id, encode_value(sent)).hex()


def test_shadowed_setting_cannot_be_addressed() -> None:
    def _toggle(name: str) -> ParameterDescriptor:
        return ParameterDescriptor(
            name=name,
            label=name,
            setting_id=0x0A,
            command_id=13,
            value_type=ParameterValueType.BOOLEAN,
            ui_type=UiType.CHECKBOX,
        )

    settings = {"First": _toggle("First"), "Second": _toggle("Second")}
    schema = DeviceSchema(model="Model100", settings=settings, actions=dict(settings), feedbacks=dict(settings))
    transactor = FakeTransactor()
    service = StudioService(
        config=ControllerConfig(),
        registry=SchemaRegistry(schemas={"Model100": schema}),
        transactor=transactor,
    )

    with pytest.raises(SchemaResolutionError, match="shares its id with 'Second'"):
        asyncio.run(service.set_setting("Model100", "First", True, "10.0.0.5"))
    asyncio.run(service.set_setting("Model100", "Second", True, "10.0.0.5"))
    assert [call[2] for call in transactor.calls] == [0x0A]


def test_get_all_and_reset() -> None:
    transactor = FakeTransactor()
    service = _service(transactor)

    asyncio.run(service.get_all_settings("Model209", "10.0.0.5"))
    asyncio.run(service.reset_device("Model209", "10.0.0.5"))
    assert transactor.calls == [
        ("Model209", 0x0A, None, None, "10.0.0.5", False),
        ("Model209", 0x0E, 0x00, None, "10.0.0.5", False),
    ]
