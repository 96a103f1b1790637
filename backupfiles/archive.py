"""
Archive writer.

An archive is a plain text file.  It starts with the tree summary of the
selected files and continues with one block per packed file::

    -----------------------------------------
    #########################################
    ##>src/app.js
    #########################################
    <file content>
    #########################################
    ## END OF FILE
    #########################################
    -----------------------------------------

Tree-only files appear in the summary but get no block.  Files that look
binary or cannot be read are skipped and counted; only failing to create
or write the archive itself aborts the run.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Iterable, Optional

from .context import RunContext
from .scanner import ScanStats, SelectedFile, SkipReason
from .tree import render_selection

logger = logging.getLogger(__name__)

SEPARATOR_LINE = "-" * 41
HASH_LINE = "#" * 41
PATH_MARKER = "##>"
END_MARKER = "## END OF FILE"

SNIFF_SIZE = 4096
MAX_CONTROL_BYTES = 4


class ArchiveWriteError(OSError):
    """Raised when the archive file cannot be created or written."""


def is_likely_text(path: Path) -> bool:
    """Guess whether ``path`` holds text by sampling its first bytes.

    A NUL byte, or more than ``MAX_CONTROL_BYTES`` control bytes outside
    TAB..CR, marks the file as binary.  Raises OSError if unreadable.
    """
    with path.open("rb") as f:
        sample = f.read(SNIFF_SIZE)
    if b"\0" in sample:
        return False
    control = sum(1 for b in sample if b < 0x09 or 0x0D < b < 0x20)
    return control <= MAX_CONTROL_BYTES


def read_content(path: Path) -> str:
    """Read a file as text without translating line endings."""
    with path.open("r", encoding="utf-8", errors="replace", newline="") as f:
        return f.read()


def write_block(out: IO[str], rel_path: str, content: str) -> None:
    out.write(SEPARATOR_LINE + "\n")
    out.write(HASH_LINE + "\n")
    out.write(f"{PATH_MARKER}{rel_path}\n")
    out.write(HASH_LINE + "\n")
    out.write(content + "\n")
    out.write(HASH_LINE + "\n")
    out.write(END_MARKER + "\n")
    out.write(HASH_LINE + "\n")
    out.write(SEPARATOR_LINE + "\n")


class ArchiveWriter:
    """Packs selected files of ``root`` into a single archive file."""

    def __init__(
        self,
        root: Path,
        context: Optional[RunContext] = None,
        stats: Optional[ScanStats] = None,
    ) -> None:
        self.root = root
        self.context = context or RunContext(logger)
        self.stats = stats if stats is not None else ScanStats()

    def _load(self, rel_path: str) -> Optional[str]:
        path = self.root / rel_path
        try:
            if not is_likely_text(path):
                self.stats.record(SkipReason.BINARY)
                self.context.info("Skipping binary file: %s", rel_path)
                return None
            return read_content(path)
        except OSError as exc:
            self.stats.record(SkipReason.READ_FAILED)
            self.context.error("Failed to read %s: %s", rel_path, exc)
            return None

    def write(self, files: Iterable[SelectedFile], output_path: Path) -> Path:
        files = list(files)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ArchiveWriteError(f"Failed to create result directory: {exc}") from exc
        try:
            out = output_path.open("w", encoding="utf-8", newline="")
        except OSError as exc:
            raise ArchiveWriteError(f"Failed to open result file {output_path}: {exc}") from exc

        try:
            with out:
                out.write(render_selection(files, self.root.name) + "\n")
                for selected in files:
                    if selected.tree_only:
                        continue
                    content = self._load(selected.path)
                    if content is None:
                        continue
                    self.context.detail("Packing file: %s", selected.path)
                    write_block(out, selected.path, content)
                    self.stats.packed += 1
                    self.stats.packed_bytes += len(content.encode("utf-8"))
        except OSError as exc:
            raise ArchiveWriteError(f"Error writing to result file {output_path}: {exc}") from exc
        return output_path
