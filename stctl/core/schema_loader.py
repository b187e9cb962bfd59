"""Device schema loading and validation for JSON/YAML device description files."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from stctl.core.errors import SchemaLoadError, SchemaResolutionError, SchemaValidationError
from stctl.core.model import (
    Choice,
    DeviceSchema,
    ParameterDescriptor,
    ParameterValueType,
    UiType,
)
from stctl.protocol.codec import CMD_MIC_PRE_BUS

COMMANDS_SUFFIX = "_commands"
_SCHEMA_SUFFIXES = (".json", ".yml", ".yaml")
_BOOL_RE = re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$")
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys and keeps on/off/yes/no as text."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]

UniqueKeyLoader.add_implicit_resolver("tag:yaml.org,2002:bool", _BOOL_RE, list("tTfF"))


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise SchemaValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _unique_json_pairs(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key, value in pairs:
        if key in mapping:
            raise SchemaValidationError(f"Duplicate key '{key}' in JSON document")
        mapping[key] = value
    return mapping


@dataclass(frozen=True)
class SchemaRegistry:
    """Loaded device schemas keyed by model name. Immutable once built."""

    schemas: dict[str, DeviceSchema]
    warnings: tuple[str, ...] = ()

    def models(self) -> list[str]:
        return sorted(self.schemas)

    def get(self, model: str) -> DeviceSchema:
        schema = self.schemas.get(model)
        if schema is None:
            available = ", ".join(self.models())
            raise SchemaResolutionError(f"Unknown model '{model}'. Available: {available}")
        return schema


def _load_schema_validator(name: str) -> Any:
    schema_text = resources.files("stctl").joinpath("schemas").joinpath(name).read_text(encoding="utf-8")
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _schema_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "stctl/devices", xdg_data / "stctl/devices"


def _read_document(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SchemaLoadError(f"Could not read device file {path}: {exc}") from exc

    if path.name.endswith(".json"):
        try:
            loaded = json.loads(content, object_pairs_hook=_unique_json_pairs)
        except json.JSONDecodeError as exc:
            raise SchemaValidationError(f"Invalid JSON in {path}: {exc}") from exc
    else:
        try:
            loaded = yaml.load(content, Loader=UniqueKeyLoader)
        except yaml.YAMLError as exc:
            raise SchemaValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise SchemaValidationError(f"Device file {path} must contain a mapping at root")
    return loaded


def _validate(doc: dict[str, Any], schema_name: str, source: Path | Traversable) -> None:
    validator = _load_schema_validator(schema_name)
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise SchemaValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def _value_type(ui_type: UiType, raw_type: str, command_id: int, *, context: str) -> ParameterValueType:
    if (ui_type is UiType.COLOR_PICKER) != (raw_type == "rgb"):
        raise SchemaValidationError(f"{context}: UI type '{ui_type.value}' does not match wire type '{raw_type}'")
    if raw_type == "rgb":
        return ParameterValueType.RGB
    if raw_type == "boolean" or ui_type is UiType.CHECKBOX:
        if raw_type == "enum":
            raise SchemaValidationError(f"{context}: checkbox settings cannot use enum wire type")
        return ParameterValueType.BOOLEAN
    if raw_type == "enum":
        return ParameterValueType.ENUM
    if command_id == CMD_MIC_PRE_BUS:
        return ParameterValueType.BUS_UINT8
    return ParameterValueType.UINT8


def _enum_codes(
    raw_values: Any,
    choices: tuple[Choice, ...],
    *,
    context: str,
) -> tuple[dict[str, int], tuple[Choice, ...]]:
    if not isinstance(raw_values, dict):
        raise SchemaValidationError(f"{context}: enum parameters need a validValues code mapping")
    codes = {str(label_id): int(code) for code, label_id in raw_values.items()}
    if len(codes) != len(raw_values):
        raise SchemaValidationError(f"{context}: validValues maps two codes to the same choice")
    if not choices:
        return codes, tuple(Choice(id=label_id, label=label_id) for label_id in codes)

    choice_ids = {str(choice.id) for choice in choices}
    missing = sorted(set(codes) - choice_ids)
    unknown = sorted(choice_ids - set(codes))
    if missing or unknown:
        raise SchemaValidationError(
            f"{context}: choices must cover every wire code "
            f"(codes without choice: {missing or '-'}, choices without code: {unknown or '-'})"
        )
    return codes, choices


def _build_descriptor(
    name: str,
    setting: dict[str, Any],
    command: dict[str, Any],
    *,
    context: str,
) -> ParameterDescriptor:
    if len(command["parameters"]) != 1:
        raise SchemaValidationError(f"{context}: command must declare exactly one parameter per setting")
    param = command["parameters"][0]
    command_id = int(command["cmdId"])
    ui_type = UiType.CHECKBOX if setting["type"] == "boolean" else UiType(setting["type"])
    value_type = _value_type(ui_type, param["type"], command_id, context=context)

    if param["length"] != value_type.wire_length:
        raise SchemaValidationError(
            f"{context}: length {param['length']} does not match {value_type.value} "
            f"({value_type.wire_length} byte(s))"
        )

    choices = tuple(Choice(id=c["id"], label=c["label"]) for c in setting.get("choices", ()))
    codes: dict[str, int] = {}
    valid_values: tuple[int, ...] = ()
    raw_values = param.get("validValues")
    if value_type is ParameterValueType.ENUM:
        codes, choices = _enum_codes(raw_values, choices, context=context)
        valid_values = tuple(sorted(codes.values()))
    elif isinstance(raw_values, list):
        valid_values = tuple(raw_values)
    elif raw_values is not None:
        raise SchemaValidationError(f"{context}: code mapping is only allowed for enum parameters")

    return ParameterDescriptor(
        name=name,
        label=setting["label"],
        setting_id=int(param["paramId"], 16),
        command_id=command_id,
        value_type=value_type,
        ui_type=ui_type,
        choices=choices,
        codes=codes,
        valid_values=valid_values,
        length=param["length"],
        default=setting.get("default"),
        current=setting.get("current"),
        examples=tuple((ex["value"], ex["hex"]) for ex in param.get("examples", ())),
    )


def _build_schema(
    doc: dict[str, Any],
    commands_doc: dict[str, Any] | None,
    source: Path | Traversable,
    warnings: list[str],
) -> DeviceSchema:
    _validate(doc, "device.schema.json", source)
    model = doc["model"]
    commands = commands_doc["commands"] if commands_doc else {}

    settings: dict[str, ParameterDescriptor] = {}
    for name, setting in doc["settings"].items():
        command = commands.get(name)
        if command is None:
            warning = f"{model}.{name} has no raw command mapping; skipped"
            LOGGER.warning(warning)
            warnings.append(warning)
            continue
        settings[name] = _build_descriptor(name, setting, command, context=f"{model}.{name}")

    for name in commands:
        if name not in doc["settings"]:
            LOGGER.debug("Raw command %s.%s has no UI setting", model, name)

    return DeviceSchema(
        model=model,
        settings=settings,
        actions={name: d for name, d in settings.items() if not d.read_only},
        feedbacks=dict(settings),
    )


def _split_stem(name: str) -> str:
    for suffix in _SCHEMA_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def _load_entries(
    paths: list[Path] | list[Traversable],
    warnings: list[str],
) -> list[DeviceSchema]:
    ui_paths: dict[str, Path | Traversable] = {}
    companion_paths: dict[str, Path | Traversable] = {}
    for path in sorted(paths, key=lambda p: p.name):
        stem = _split_stem(path.name)
        if stem.endswith(COMMANDS_SUFFIX):
            companion_paths[stem[: -len(COMMANDS_SUFFIX)]] = path
        else:
            ui_paths[stem] = path

    orphans = sorted(companion_paths.keys() - ui_paths.keys())
    if orphans:
        names = ", ".join(companion_paths[stem].name for stem in orphans)
        raise SchemaValidationError(f"Command files without a matching device file: {names}")

    loaded: list[DeviceSchema] = []
    for stem, path in ui_paths.items():
        doc = _read_document(path)
        commands_doc = None
        companion = companion_paths.get(stem)
        if companion is not None:
            commands_doc = _read_document(companion)
            _validate(commands_doc, "commands.schema.json", companion)
            if commands_doc["model"] != doc.get("model"):
                raise SchemaValidationError(
                    f"{companion} describes model '{commands_doc['model']}' "
                    f"but {path.name} describes '{doc.get('model')}'"
                )
        loaded.append(_build_schema(doc, commands_doc, path, warnings))
    return loaded


def _iter_packaged_schema_paths() -> list[Traversable]:
    root = resources.files("stctl").joinpath("devices")
    return [item for item in root.iterdir() if item.name.endswith(_SCHEMA_SUFFIXES)]


def _iter_dir_schema_paths(directory: Path) -> list[Path]:
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix in _SCHEMA_SUFFIXES)


def load_schemas(directory: str | Path | None = None) -> SchemaRegistry:
    """Load device schemas.

    With ``directory``, only the files in that directory are loaded. Without it,
    the packaged device files are loaded first and user files from the XDG
    config/data directories override them per model.
    """
    schemas: dict[str, DeviceSchema] = {}
    warnings: list[str] = []

    if directory is not None:
        directory = Path(directory)
        if not directory.is_dir():
            raise SchemaLoadError(f"Device directory {directory} does not exist")
        for schema in _load_entries(_iter_dir_schema_paths(directory), warnings):
            schemas[schema.model] = schema
        return SchemaRegistry(schemas=schemas, warnings=tuple(warnings))

    for schema in _load_entries(_iter_packaged_schema_paths(), warnings):
        schemas[schema.model] = schema

    for user_dir in _schema_dirs():
        if not user_dir.is_dir():
            continue
        for schema in _load_entries(_iter_dir_schema_paths(user_dir), warnings):
            if schema.model in schemas:
                warning = f"User device file '{schema.model}' overrides packaged model"
                LOGGER.warning(warning)
                warnings.append(warning)
            schemas[schema.model] = schema

    return SchemaRegistry(schemas=schemas, warnings=tuple(warnings))
