"""Emitter contract shared by every output dialect."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Set, Tuple

from jinja2 import Environment, FileSystemLoader

from ..errors import EmissionError, OutputCollisionError
from ..logging import get_logger
from ..models import SchemaGraph

GLOBAL_PACKAGE_STEM = "_global"

_TEMPLATES_DIR = Path(__file__).with_name("templates")


@dataclass(frozen=True)
class EmittedFile:
    """A rendered output file, relative to the output root."""

    path: str
    content: str
    dialect: str


@dataclass(frozen=True)
class FilePlan:
    """Where a package is rendered and which other packages it imports."""

    package: str
    path: str
    imports: Tuple[str, ...]


@dataclass
class EmissionFailure:
    path: str
    package: str
    error: EmissionError


@dataclass
class EmissionResult:
    """Files produced by one emitter plus the files it had to abandon."""

    dialect: str
    files: List[EmittedFile] = field(default_factory=list)
    failures: List[EmissionFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class Emitter(ABC):
    """Renders a :class:`SchemaGraph` into one file per package.

    Emitters hold no state between runs. A failure while rendering a file
    abandons that file only; the others are still produced.
    """

    name: str = ""
    default_extension: str = ""
    template_name: str = ""

    def __init__(self, extension: str | None = None) -> None:
        self.extension = (extension or self.default_extension).lstrip(".")
        self.logger = get_logger(f"emitters.{self.name}")
        self._env = _create_env()

    def emit(self, graph: SchemaGraph) -> EmissionResult:
        result = EmissionResult(dialect=self.name)
        for plan in self.plan(graph):
            try:
                content = self.render_file(graph, plan)
            except EmissionError as exc:
                self.logger.warning("Skipping %s: %s", plan.path, exc)
                result.failures.append(EmissionFailure(path=plan.path, package=plan.package, error=exc))
                continue
            result.files.append(EmittedFile(path=plan.path, content=content, dialect=self.name))
        self.logger.debug(
            "Rendered %d %s files (%d failed)", len(result.files), self.name, len(result.failures)
        )
        return result

    def plan(self, graph: SchemaGraph) -> List[FilePlan]:
        """Assign each package a path and its imports before any rendering."""
        plans: List[FilePlan] = []
        for package in graph.packages():
            imports = tuple(sorted(referenced_packages(graph, package) - {package}))
            plans.append(FilePlan(package=package, path=self.file_name(package), imports=imports))
        return plans

    def file_name(self, package: str) -> str:
        return f"{self.file_stem(package)}.{self.extension}"

    @staticmethod
    def file_stem(package: str) -> str:
        if not package:
            return GLOBAL_PACKAGE_STEM
        return ".".join(part.replace("/", "_").replace("\\", "_") for part in package.split("."))

    def render_template(self, **context: object) -> str:
        template = self._env.get_template(self.template_name)
        return template.render(**context)

    @abstractmethod
    def render_file(self, graph: SchemaGraph, plan: FilePlan) -> str:
        """Render the package described by ``plan``; raise EmissionError on failure."""


def referenced_packages(graph: SchemaGraph, package: str) -> Set[str]:
    """Return the packages whose definitions ``package``'s fields reference."""
    packages: Set[str] = set()
    for message in graph.iter_messages():
        if message.package != package:
            continue
        for field_def in message.fields:
            for ref in field_def.shape.references():
                packages.add(graph.resolve(ref).package)
    return packages


def check_output_paths(files: Iterable[EmittedFile]) -> None:
    """Reject absolute paths, parent-directory segments and duplicate paths."""
    seen: Dict[str, str] = {}
    for emitted in files:
        path = PurePosixPath(emitted.path)
        if path.is_absolute() or ".." in path.parts or not path.parts:
            raise OutputCollisionError(f"Output path {emitted.path!r} escapes the output root")
        key = path.as_posix().lower()
        if key in seen:
            raise OutputCollisionError(
                f"Output path {emitted.path!r} ({emitted.dialect}) collides with "
                f"{seen[key]!r}"
            )
        seen[key] = emitted.path


def _create_env() -> Environment:
    loader = FileSystemLoader(str(_TEMPLATES_DIR))
    return Environment(
        loader=loader,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


__all__ = [
    "EmissionFailure",
    "EmissionResult",
    "EmittedFile",
    "Emitter",
    "FilePlan",
    "check_output_paths",
    "referenced_packages",
]
