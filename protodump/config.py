"""Configuration loading for protodump (.protodump.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".protodump.yml"

DEFAULT_BASE_MESSAGE_TYPE = "Google.Protobuf.MessageBase"
DEFAULT_REPEATED_CONTAINER_TYPE = "Google.Protobuf.Collections.RepeatedMessageField`1"
DEFAULT_MAP_CONTAINER_TYPE = "Google.Protobuf.Collections.MapField`2"
DEFAULT_COMMAND_ID_ENUM_NAMES = ("CmdId",)

COMMAND_ID_DETECTIONS = ("name", "single-member")


class ConfigError(RuntimeError):
    """Raised when the configuration cannot be parsed or is invalid."""


class Dialect(str, Enum):
    """Target output dialects."""

    PROTO = "proto"
    TYPESCRIPT = "typescript"

    @classmethod
    def parse(cls, value: str) -> "Dialect":
        lowered = value.strip().lower()
        if lowered == "ts":
            return cls.TYPESCRIPT
        for dialect in cls:
            if dialect.value == lowered:
                return dialect
        valid = ", ".join(d.value for d in cls)
        raise ConfigError(f"Unknown export type '{value}'. Valid types: {valid}")


@dataclass
class DumperConfig:
    """Resolved options for one extraction run."""

    base_message_type: str = DEFAULT_BASE_MESSAGE_TYPE
    repeated_container_type: str = DEFAULT_REPEATED_CONTAINER_TYPE
    map_container_type: str = DEFAULT_MAP_CONTAINER_TYPE
    include_command_id_enums: bool = False
    command_id_enum_names: List[str] = field(
        default_factory=lambda: list(DEFAULT_COMMAND_ID_ENUM_NAMES)
    )
    command_id_detection: str = "name"
    target_dialects: List[Dialect] = field(default_factory=lambda: [Dialect.PROTO])
    file_extension_override: str = ""
    atomic_output: bool = False
    delete_old_output: bool = True
    prune_unreferenced_enums: bool = False

    def extension_for(self, default: str) -> str:
        """Return the output file extension without a leading dot."""
        extension = self.file_extension_override or default
        return extension.lstrip(".")


def load_config(config_path: Path, *, required: bool = False) -> DumperConfig:
    """Load configuration from disk, falling back to defaults when absent.

    With ``required`` the path itself (a file, or a directory that may hold
    the config file) must exist.
    """
    if required and not config_path.expanduser().exists():
        raise ConfigError(f"Configuration path {config_path} does not exist")
    config_file = _resolve_config_path(config_path)
    if not config_file.exists():
        return DumperConfig()

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")
    return config_from_mapping(data)


def config_from_mapping(data: Dict[str, Any]) -> DumperConfig:
    """Build a config from a mapping using hyphenated or underscored keys."""
    normalised = {str(key).replace("-", "_"): value for key, value in data.items()}
    known = {item.name for item in fields(DumperConfig)}
    # ``target_dialect`` is the singular spelling used on the command line.
    if "target_dialect" in normalised and "target_dialects" not in normalised:
        normalised["target_dialects"] = normalised.pop("target_dialect")
    unknown = sorted(set(normalised) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    config = DumperConfig()
    for key in ("base_message_type", "repeated_container_type", "map_container_type"):
        if key in normalised:
            value = _as_str(normalised[key])
            if not value:
                raise ConfigError(f"'{key}' must be a non-empty string")
            setattr(config, key, value)

    for key in (
        "include_command_id_enums",
        "atomic_output",
        "delete_old_output",
        "prune_unreferenced_enums",
    ):
        if key in normalised:
            value = _as_bool(normalised[key])
            if value is None:
                raise ConfigError(f"'{key}' must be a boolean")
            setattr(config, key, value)

    if "command_id_enum_names" in normalised:
        config.command_id_enum_names = _as_str_list(normalised["command_id_enum_names"])
    if "command_id_detection" in normalised:
        config.command_id_detection = _as_detection(normalised["command_id_detection"])
    if "target_dialects" in normalised:
        config.target_dialects = parse_dialects(_as_str_list(normalised["target_dialects"]))
    if "file_extension_override" in normalised:
        config.file_extension_override = _as_str(normalised["file_extension_override"]) or ""
    return config


def apply_overrides(config: DumperConfig, **overrides: Any) -> DumperConfig:
    """Return a copy of ``config`` with every non-None override applied."""
    changes = {key: value for key, value in overrides.items() if value is not None}
    if "command_id_detection" in changes:
        changes["command_id_detection"] = _as_detection(changes["command_id_detection"])
    if "target_dialects" in changes:
        dialects = changes["target_dialects"]
        if not dialects:
            del changes["target_dialects"]
        else:
            changes["target_dialects"] = parse_dialects(
                [d.value if isinstance(d, Dialect) else str(d) for d in dialects]
            )
    return replace(config, **changes)


def parse_dialects(values: Sequence[str]) -> List[Dialect]:
    dialects: List[Dialect] = []
    for value in values:
        dialect = Dialect.parse(value)
        if dialect not in dialects:
            dialects.append(dialect)
    if not dialects:
        raise ConfigError("At least one target dialect is required")
    return dialects


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_detection(value: Any) -> str:
    detection = _as_str(value)
    if detection not in COMMAND_ID_DETECTIONS:
        valid = ", ".join(COMMAND_ID_DETECTIONS)
        raise ConfigError(f"'command_id_detection' must be one of: {valid}")
    return detection


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "Dialect",
    "DumperConfig",
    "apply_overrides",
    "config_from_mapping",
    "load_config",
    "parse_dialects",
]
