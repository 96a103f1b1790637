"""
Restore files from an archive produced by :mod:`backupfiles.archive`.

The reader is a small line-oriented state machine.  Outside a block every
line is ignored (this skips the tree summary and the dashed separators).
A ``##>`` line starts a block for the named path, ``## END OF FILE``
finishes it, and the lines in between are the file content.

Known lossy cases, kept as-is:

* any line that is exactly the 41-character hash delimiter is dropped,
  even inside file content;
* a block that is never closed by ``## END OF FILE`` is discarded.

Restoring never raises for malformed input; whatever can be recovered is
written and the rest is reported.
"""

from __future__ import annotations

import enum
import io
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

from .archive import END_MARKER, HASH_LINE, PATH_MARKER
from .context import RunContext

logger = logging.getLogger(__name__)


class _State(enum.Enum):
    OUTSIDE = 0
    INSIDE_FILE = 1


def _strip_newline(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def _join(buffer: List[str]) -> str:
    # The writer terminates content with one extra newline.
    text = "".join(buffer)
    return text[:-1] if text.endswith("\n") else text


def parse_archive(lines: Iterable[str]) -> Iterator[Tuple[str, str]]:
    """Yield ``(relative_path, content)`` for every complete block.

    ``lines`` must keep their line terminators (as produced by iterating
    a file opened with ``newline="\\n"``).
    """
    state = _State.OUTSIDE
    current_path = ""
    buffer: List[str] = []
    for line in lines:
        bare = _strip_newline(line)
        if bare == HASH_LINE:
            continue
        if bare.startswith(PATH_MARKER):
            if state is _State.INSIDE_FILE and current_path and buffer:
                yield current_path, _join(buffer)
            buffer = []
            current_path = bare[len(PATH_MARKER):].strip()
            state = _State.INSIDE_FILE
        elif bare.startswith(END_MARKER):
            if current_path and buffer:
                yield current_path, _join(buffer)
            buffer = []
            current_path = ""
            state = _State.OUTSIDE
        elif state is _State.INSIDE_FILE:
            buffer.append(line)


@dataclass
class RestoreResult:
    target_dir: Path
    files: List[Path] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def _safe_target(target_dir: Path, rel_path: str) -> Optional[Path]:
    base = target_dir.resolve()
    candidate = (base / rel_path.replace("\\", "/").lstrip("/")).resolve()
    try:
        candidate.relative_to(base)
    except ValueError:
        return None
    return candidate


def restore_lines(lines: Iterable[str], target_dir: Path, context: Optional[RunContext] = None) -> RestoreResult:
    """Write every complete block in ``lines`` below ``target_dir``."""
    context = context or RunContext(logger)
    result = RestoreResult(target_dir)
    for rel_path, content in parse_archive(lines):
        destination = _safe_target(target_dir, rel_path)
        if destination is None or destination == target_dir.resolve():
            context.warning("Refusing to restore outside the target folder: %s", rel_path)
            result.skipped.append(rel_path)
            continue
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with destination.open("w", encoding="utf-8", newline="") as f:
                f.write(content)
        except OSError as exc:
            context.error("Error saving file %s: %s", rel_path, exc)
            result.skipped.append(rel_path)
            continue
        context.detail("Created file: %s", destination)
        result.files.append(destination)
    return result


def restore_target_dir(archive_path: Path) -> Path:
    """Sibling folder named after the archive (``x.bak.txt`` -> ``x.bak``)."""
    return archive_path.parent / archive_path.stem


def restore_backup(archive_path: Path, context: Optional[RunContext] = None) -> RestoreResult:
    """Restore a text archive, or a zip wrapping one, next to itself."""
    context = context or RunContext(logger)
    target_dir = restore_target_dir(archive_path)
    target_dir.mkdir(parents=True, exist_ok=True)

    if archive_path.suffix.lower() == ".zip":
        context.info("Unzipping file: %s", archive_path)
        try:
            with zipfile.ZipFile(archive_path) as zf:
                members = [info for info in zf.infolist() if not info.is_dir()]
                if not members:
                    context.error("The archive %s contains no files.", archive_path)
                    return RestoreResult(target_dir)
                with zf.open(members[0]) as raw:
                    stream = io.TextIOWrapper(raw, encoding="utf-8", errors="replace", newline="\n")
                    context.info("Processing text file: %s", members[0].filename)
                    return restore_lines(stream, target_dir, context)
        except zipfile.BadZipFile as exc:
            context.error("Error restoring from backup: %s", exc)
            return RestoreResult(target_dir)

    context.info("Processing text file: %s", archive_path)
    with archive_path.open("r", encoding="utf-8", errors="replace", newline="\n") as f:
        return restore_lines(f, target_dir, context)
