"""Pipeline orchestration: metadata source to schema graph to output files."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .config import DumperConfig, load_config
from .emitters import EmissionFailure, EmissionResult, EmittedFile, Emitter, create_emitter
from .emitters.base import check_output_paths
from .errors import EmissionError
from .extraction import SchemaBuilder
from .logging import get_logger
from .metadata import MetadataSource, open_source
from .models import SchemaGraph
from .writer import OutputWriter


@dataclass
class DumpResult:
    """Outcome of one dump run."""

    graph: SchemaGraph
    files: List[EmittedFile] = field(default_factory=list)
    failures: List[EmissionFailure] = field(default_factory=list)
    written: List[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class Dumper:
    """Coordinates extraction, emission and writing for a single run."""

    def __init__(
        self,
        config: DumperConfig | None = None,
        *,
        builder: SchemaBuilder | None = None,
        emitters: Optional[Sequence[Emitter]] = None,
        source_opener: Callable[[Path], MetadataSource] = open_source,
    ) -> None:
        self.config = config or DumperConfig()
        self.builder = builder or SchemaBuilder(self.config)
        self._emitter_overrides = list(emitters) if emitters is not None else None
        self.source_opener = source_opener
        self.logger = get_logger("orchestrator")

    @classmethod
    def from_config_file(cls, config_path: Path) -> "Dumper":
        return cls(load_config(config_path, required=True))

    def run(self, input_path: Path, output_path: Path) -> DumpResult:
        """Dump every dialect for ``input_path`` into ``output_path``."""
        self.logger.info("Reading metadata from %s", input_path)
        source = self.source_opener(input_path)
        result = self.dump(source)
        writer = OutputWriter(output_path, clean=self.config.delete_old_output)
        result.written = writer.write(result.files)
        return result

    def dump(self, source: MetadataSource) -> DumpResult:
        """Build and emit without touching the filesystem."""
        graph = self.builder.build(source)
        emissions = self.emit(graph)

        result = DumpResult(graph=graph)
        for emission in emissions:
            result.files.extend(emission.files)
            result.failures.extend(emission.failures)

        if result.failures and self.config.atomic_output:
            first = result.failures[0].error
            raise EmissionError(
                f"{len(result.failures)} files failed to render; nothing written "
                f"(first failure: {first})",
                qualified_name=first.qualified_name,
                field_name=first.field_name,
            )
        check_output_paths(result.files)
        return result

    def emit(self, graph: SchemaGraph) -> List[EmissionResult]:
        """Run every configured emitter over ``graph``, one worker per dialect."""
        emitters = self._emitters()
        if len(emitters) == 1:
            return [emitters[0].emit(graph)]
        with ThreadPoolExecutor(max_workers=len(emitters), thread_name_prefix="protodump-emit") as pool:
            futures = [pool.submit(emitter.emit, graph) for emitter in emitters]
            return [future.result() for future in futures]

    def _emitters(self) -> List[Emitter]:
        if self._emitter_overrides is not None:
            return list(self._emitter_overrides)
        extension = self.config.file_extension_override or None
        return [
            create_emitter(dialect, extension=extension)
            for dialect in self.config.target_dialects
        ]


__all__ = ["DumpResult", "Dumper"]
