"""Filesystem sink for emitted files."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Iterable, List

from .emitters.base import EmittedFile, check_output_paths
from .errors import OutputCollisionError
from .logging import get_logger


class OutputWriter:
    """Writes emitted files below a single output root.

    With ``clean`` set, an existing output directory is removed before the
    first file is written so stale files from an earlier run do not linger.
    """

    def __init__(self, root: Path, *, clean: bool = True) -> None:
        self.root = root.expanduser()
        self.clean = clean
        self.logger = get_logger("writer")

    def write(self, files: Iterable[EmittedFile]) -> List[Path]:
        emitted = list(files)
        check_output_paths(emitted)
        self._prepare_root()

        resolved_root = self.root.resolve()
        written: List[Path] = []
        for item in emitted:
            target = (self.root / item.path).resolve()
            if resolved_root not in target.parents:
                raise OutputCollisionError(f"Output path {item.path!r} escapes {self.root}")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(item.content, encoding="utf-8", newline="\n")
            self.logger.debug("Wrote %s", target)
            written.append(target)
        self.logger.info("Wrote %d files to %s", len(written), self.root)
        return written

    def _prepare_root(self) -> None:
        if self.root.exists() and not self.root.is_dir():
            raise OutputCollisionError(f"Output path {self.root} exists and is not a directory")
        if self.clean and self.root.exists():
            self.logger.info("Deleting old output in %s", self.root)
            shutil.rmtree(self.root)
        self.root.mkdir(parents=True, exist_ok=True)


__all__ = ["OutputWriter"]
