"""CLI entrypoint for protodump."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, DumperConfig, apply_overrides, load_config
from .errors import EmissionError, SchemaError
from .logging import configure_logging, get_logger
from .orchestrator import DumpResult, Dumper


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="protodump",
        description="Reconstruct protobuf schemas from compiled type metadata.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=False,
        help="Only log warnings and errors.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write a detailed log to this file.",
    )
    parser.add_argument(
        "--input",
        "--assembly-path",
        dest="input",
        required=True,
        help="Metadata snapshot (.yml/.json), C# source file or directory of C# sources.",
    )
    parser.add_argument(
        "--output-path",
        default="output",
        help="Directory receiving the generated files (defaults to ./output).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a .protodump.yml file or the directory containing it.",
    )
    parser.add_argument(
        "--export-type",
        action="append",
        dest="export_types",
        default=None,
        help="Output dialect: proto, typescript or ts. Repeat for several dialects.",
    )
    parser.add_argument(
        "--export-file-extension",
        default=None,
        help="Override the extension of generated files.",
    )
    parser.add_argument(
        "--proto-base",
        default=None,
        help="Full name of the base type every message derives from.",
    )
    parser.add_argument(
        "--repeated-message-field-class",
        default=None,
        help="Generic signature of the repeated field container, e.g. RepeatedField`1.",
    )
    parser.add_argument(
        "--map-field-class",
        default=None,
        help="Generic signature of the map field container, e.g. MapField`2.",
    )
    parser.add_argument(
        "--dump-cmdid-enum",
        action="store_true",
        default=None,
        help="Keep the command-id enums nested in messages.",
    )
    parser.add_argument(
        "--dont-delete-old-protos",
        action="store_true",
        default=False,
        help="Keep existing files in the output directory.",
    )
    parser.add_argument(
        "--atomic",
        action="store_true",
        default=None,
        help="Write nothing if any file fails to render.",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> DumperConfig:
    """Merge the optional config file with command-line overrides."""
    if args.config:
        config = load_config(Path(args.config), required=True)
    else:
        config = load_config(Path.cwd())
    export_types = _export_types(args.export_types)
    return apply_overrides(
        config,
        base_message_type=args.proto_base,
        repeated_container_type=args.repeated_message_field_class,
        map_container_type=args.map_field_class,
        include_command_id_enums=args.dump_cmdid_enum,
        target_dialects=export_types,
        file_extension_override=args.export_file_extension,
        atomic_output=args.atomic,
        delete_old_output=False if args.dont_delete_old_protos else None,
    )


def _export_types(values: list[str] | None) -> list[str] | None:
    if not values:
        return None
    logger = get_logger("cli")
    accepted: list[str] = []
    for value in values:
        if value.strip().lower() in {"proto", "typescript", "ts"}:
            accepted.append(value)
        else:
            logger.warning("Unknown export type '%s', defaulting to proto", value)
            accepted.append("proto")
    return accepted


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for protodump."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=bool(args.quiet),
        log_file=Path(args.log_file) if args.log_file else None,
    )

    try:
        config = resolve_config(args)
    except ConfigError as exc:
        parser.exit(1, f"protodump: invalid configuration: {exc}\n")

    dumper = Dumper(config)
    try:
        result = dumper.run(Path(args.input), Path(args.output_path))
    except SchemaError as exc:
        parser.exit(1, f"protodump failed: {_describe(exc)}\nRun with --verbose for more details.\n")
    except EmissionError as exc:
        parser.exit(1, f"protodump failed: {exc}\nRun with --verbose for more details.\n")
    except OSError as exc:
        parser.exit(1, f"protodump failed to write output: {exc}\n")

    _report(result, Path(args.output_path))
    if not result.ok:
        parser.exit(1, f"{len(result.failures)} files could not be rendered.\n")


def _describe(exc: SchemaError) -> str:
    context = [part for part in (exc.message_name, exc.field_name) if part]
    if not context:
        return str(exc)
    return f"{exc} [{'.'.join(context)}]"


def _report(result: DumpResult, output_path: Path) -> None:
    for failure in result.failures:
        print(f"skipped {failure.path}: {failure.error}", file=sys.stderr)
    print(f"Wrote {len(result.written)} files to {_relativize(output_path)}")


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
