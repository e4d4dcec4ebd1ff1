"""Tests for protodump.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from protodump.config import (
    ConfigError,
    Dialect,
    DumperConfig,
    apply_overrides,
    config_from_mapping,
    load_config,
)


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, DumperConfig)
    assert config.base_message_type == "Google.Protobuf.MessageBase"
    assert config.repeated_container_type == "Google.Protobuf.Collections.RepeatedMessageField`1"
    assert config.map_container_type == "Google.Protobuf.Collections.MapField`2"
    assert config.include_command_id_enums is False
    assert config.command_id_enum_names == ["CmdId"]
    assert config.target_dialects == [Dialect.PROTO]
    assert config.file_extension_override == ""
    assert config.delete_old_output is True
    assert config.atomic_output is False


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".protodump.yml"
    config_file.write_text(
        """
base-message-type: "Game.Net.ProtoBase"
repeated-container-type: "Game.Net.RepeatedField`1"
map-container-type: "Game.Net.MapField`2"
include-command-id-enums: yes
command-id-enum-names: [CmdId, PacketId]
command-id-detection: single-member
target-dialect: [proto, ts]
file-extension-override: ".txt"
atomic-output: true
delete-old-output: false
prune-unreferenced-enums: true
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.base_message_type == "Game.Net.ProtoBase"
    assert config.repeated_container_type == "Game.Net.RepeatedField`1"
    assert config.map_container_type == "Game.Net.MapField`2"
    assert config.include_command_id_enums is True
    assert config.command_id_enum_names == ["CmdId", "PacketId"]
    assert config.command_id_detection == "single-member"
    assert config.target_dialects == [Dialect.PROTO, Dialect.TYPESCRIPT]
    assert config.extension_for("proto") == "txt"
    assert config.atomic_output is True
    assert config.delete_old_output is False
    assert config.prune_unreferenced_enums is True


def test_load_config_reads_directory_and_empty_file(tmp_path: Path) -> None:
    (tmp_path / ".protodump.yml").write_text("", encoding="utf-8")
    assert load_config(tmp_path) == DumperConfig()


@pytest.mark.parametrize(
    "data",
    [
        {"unknown-key": 1},
        {"target-dialect": "cobol"},
        {"target-dialect": []},
        {"atomic-output": "sometimes"},
        {"base-message-type": ""},
        {"command-id-detection": "magic"},
    ],
)
def test_config_from_mapping_rejects_invalid_values(data: dict) -> None:
    with pytest.raises(ConfigError):
        config_from_mapping(data)


def test_load_config_rejects_non_mapping(tmp_path: Path) -> None:
    (tmp_path / ".protodump.yml").write_text("- proto\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_reports_yaml_errors(tmp_path: Path) -> None:
    (tmp_path / ".protodump.yml").write_text("target-dialect: [\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_apply_overrides_ignores_unset_values() -> None:
    base = DumperConfig(file_extension_override="txt")

    updated = apply_overrides(
        base,
        base_message_type="Custom.Base",
        file_extension_override=None,
        target_dialects=["TS", "typescript"],
    )

    assert updated.base_message_type == "Custom.Base"
    assert updated.file_extension_override == "txt"
    assert updated.target_dialects == [Dialect.TYPESCRIPT]
    assert base.base_message_type == "Google.Protobuf.MessageBase"


def test_dialect_parse_accepts_aliases() -> None:
    assert Dialect.parse(" TS ") is Dialect.TYPESCRIPT
    assert Dialect.parse("proto") is Dialect.PROTO
    with pytest.raises(ConfigError):
        Dialect.parse("json")


def test_load_config_requires_named_path_to_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.yml", required=True)
    assert load_config(tmp_path, required=True) == DumperConfig()
