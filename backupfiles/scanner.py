"""
File selection for a backup run.

The scanner walks the configured include paths, adds explicitly named
include files, and runs every candidate through the same checks in a
fixed order:

1. exclusion patterns (forced include files bypass this step),
2. size and age limits,
3. extension rules (the first matching rule decides, see ``rules.py``),
4. the incremental cutoff.

Each check yields a :class:`SkipReason` rather than raising, and every
outcome is tallied in :class:`ScanStats`.  Missing include paths are
reported and skipped; an empty selection is a valid result.
"""

from __future__ import annotations

import enum
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .config import BackupConfig, ConfigItem, last_run_cutoff
from .context import RunContext
from .rules import PatternRule, build_rules, match_rule
from .wildcard import has_wildcard, normalize_pattern, wildcard_match

BYTES_PER_MB = 1024 * 1024
SECONDS_PER_DAY = 24 * 60 * 60

logger = logging.getLogger(__name__)


class SkipReason(enum.Enum):
    PATH_NOT_FOUND = "path not found"
    EXCLUDED = "excluded by path"
    NO_PATTERN = "no matching pattern"
    UNCHANGED = "unchanged since last run"
    TOO_LARGE = "exceeds size limit"
    TOO_OLD = "exceeds age limit"
    BINARY = "binary content"
    READ_FAILED = "content could not be read"


@dataclass
class SelectedFile:
    """A file chosen for the backup, addressed relative to the project root."""

    path: str
    tree_only: bool = False


@dataclass
class ScanStats:
    scanned: int = 0
    included: int = 0
    tree_only: int = 0
    excluded: int = 0
    skipped_pattern: int = 0
    skipped_unchanged: int = 0
    skipped_size: int = 0
    skipped_age: int = 0
    skipped_binary: int = 0
    read_failed: int = 0
    missing_paths: int = 0
    packed: int = 0
    packed_bytes: int = 0

    _COUNTERS = {
        SkipReason.PATH_NOT_FOUND: "missing_paths",
        SkipReason.EXCLUDED: "excluded",
        SkipReason.NO_PATTERN: "skipped_pattern",
        SkipReason.UNCHANGED: "skipped_unchanged",
        SkipReason.TOO_LARGE: "skipped_size",
        SkipReason.TOO_OLD: "skipped_age",
        SkipReason.BINARY: "skipped_binary",
        SkipReason.READ_FAILED: "read_failed",
    }

    def record(self, reason: SkipReason) -> None:
        attr = self._COUNTERS[reason]
        setattr(self, attr, getattr(self, attr) + 1)

    def summary(self) -> str:
        return (
            f"scanned={self.scanned} included={self.included} tree_only={self.tree_only} "
            f"excluded={self.excluded} no_pattern={self.skipped_pattern} "
            f"unchanged={self.skipped_unchanged} too_large={self.skipped_size} "
            f"too_old={self.skipped_age} binary={self.skipped_binary} "
            f"read_failed={self.read_failed} missing_paths={self.missing_paths} "
            f"packed={self.packed} packed_bytes={self.packed_bytes}"
        )


@dataclass
class ScanLimits:
    """Optional limits; zero or None disables each one."""

    max_size_mb: float = 0.0
    max_age_days: float = 0.0
    cutoff: Optional[datetime] = None

    @property
    def max_size_bytes(self) -> int:
        return int(self.max_size_mb * BYTES_PER_MB)


@dataclass
class ScanResult:
    files: List[SelectedFile] = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)


def to_relative(root: Path, path: Path) -> str:
    """Return ``path`` relative to ``root`` with forward slashes."""
    return os.path.relpath(str(path), str(root)).replace(os.sep, "/")


def is_excluded(rel_path: str, patterns: Iterable[str]) -> bool:
    """Return True if ``rel_path`` is removed by any exclusion pattern.

    Wildcard patterns are matched against the root-relative path; a
    pattern that does not end in ``*`` also excludes everything below the
    directory it names.  Patterns without wildcards are root-relative path
    prefixes compared segment by segment.
    """
    lowered = rel_path.lower()
    for raw in patterns:
        pattern = (raw or "").strip()
        if not pattern:
            continue
        if has_wildcard(pattern):
            if wildcard_match(rel_path, pattern):
                return True
            normalized = normalize_pattern(pattern)
            if not normalized.endswith("*") and wildcard_match(rel_path, normalized.rstrip("/") + "/*"):
                return True
        else:
            prefix = normalize_pattern(pattern).rstrip("/").lower()
            if prefix in ("", "."):
                continue
            if lowered == prefix or lowered.startswith(prefix + "/"):
                return True
    return False


class FileScanner:
    """Selects the files of a project according to include/exclude rules."""

    def __init__(
        self,
        root: Path,
        include_paths: Sequence[ConfigItem],
        include_files: Sequence[ConfigItem],
        exclude_patterns: Sequence[str],
        rules: Sequence[PatternRule],
        limits: Optional[ScanLimits] = None,
        context: Optional[RunContext] = None,
        now: Optional[float] = None,
    ) -> None:
        self.root = root
        self.include_paths = include_paths
        self.include_files = include_files
        self.exclude_patterns = [p for p in exclude_patterns if p and p.strip()]
        self.rules = list(rules)
        self.limits = limits or ScanLimits()
        self.context = context or RunContext(logger)
        self.now = time.time() if now is None else now

    @classmethod
    def from_config(
        cls, config: BackupConfig, root: Path, context: Optional[RunContext] = None
    ) -> "FileScanner":
        limits = ScanLimits(
            max_size_mb=config.max_file_size_mb,
            max_age_days=config.max_file_age_days,
            cutoff=last_run_cutoff(config) if config.incremental else None,
        )
        return cls(
            root=root,
            include_paths=config.include_paths,
            include_files=config.include_files,
            exclude_patterns=config.exclude_paths,
            rules=build_rules(config.extensions.all_items()),
            limits=limits,
            context=context,
        )

    # -- directory discovery -------------------------------------------------

    def _directory_is_excluded(self, rel_dir: str) -> bool:
        # A directory matching a pattern means every file below it matches too.
        return is_excluded(rel_dir, self.exclude_patterns)

    def _expand_include_path(self, value: str) -> List[Path]:
        if not has_wildcard(value):
            return [self.root / value]
        matches: List[Path] = []
        for current, dirs, _files in os.walk(self.root, topdown=True):
            rel_dir = to_relative(self.root, Path(current))
            kept_dirs = []
            for name in dirs:
                dir_rel = name if rel_dir == "." else f"{rel_dir}/{name}"
                if self._directory_is_excluded(dir_rel):
                    continue
                kept_dirs.append(name)
                if wildcard_match(dir_rel, value):
                    matches.append(Path(current) / name)
            dirs[:] = kept_dirs
        return matches

    def _walk(self, directory: Path, recursive: bool) -> Iterator[Path]:
        for current, dirs, filenames in os.walk(directory, topdown=True):
            rel_dir = to_relative(self.root, Path(current))
            kept_dirs = []
            for name in dirs:
                dir_rel = name if rel_dir == "." else f"{rel_dir}/{name}"
                if self._directory_is_excluded(dir_rel):
                    self.context.detail("Skipping excluded directory: %s", dir_rel)
                else:
                    kept_dirs.append(name)
            dirs[:] = kept_dirs if recursive else []
            for filename in filenames:
                yield Path(current) / filename

    # -- per-file checks -----------------------------------------------------

    def _check_limits(self, path: Path) -> Optional[SkipReason]:
        max_bytes = self.limits.max_size_bytes
        max_age = self.limits.max_age_days
        if max_bytes <= 0 and max_age <= 0:
            return None
        try:
            st = path.stat()
        except OSError:
            return None
        if max_bytes > 0 and st.st_size > max_bytes:
            return SkipReason.TOO_LARGE
        if max_age > 0 and (self.now - st.st_mtime) > max_age * SECONDS_PER_DAY:
            return SkipReason.TOO_OLD
        return None

    def _is_unchanged(self, path: Path) -> bool:
        cutoff = self.limits.cutoff
        if cutoff is None:
            return False
        try:
            return path.stat().st_mtime <= cutoff.timestamp()
        except OSError:
            return False

    def classify(self, path: Path, tree_only: bool, forced: bool = False) -> Tuple[Optional[SkipReason], bool]:
        """Run one candidate through the checks.

        Returns ``(reason, tree_only)``; ``reason`` is None when the file is
        selected, and ``tree_only`` folds in the matched rule's flag.
        """
        rel_path = to_relative(self.root, path)
        if not forced and is_excluded(rel_path, self.exclude_patterns):
            return SkipReason.EXCLUDED, tree_only
        reason = self._check_limits(path)
        if reason is not None:
            return reason, tree_only
        rule = match_rule(self.rules, rel_path, path.name)
        if rule is None:
            return SkipReason.NO_PATTERN, tree_only
        tree_only = tree_only or rule.tree_only
        if self._is_unchanged(path):
            return SkipReason.UNCHANGED, tree_only
        return None, tree_only

    # -- driver ----------------------------------------------------------------

    def _candidates(self, stats: ScanStats) -> Iterator[Tuple[Path, bool, bool]]:
        for item in self.include_paths:
            value = item.path
            if not value:
                continue
            directories = self._expand_include_path(value)
            if not directories or not all(d.is_dir() for d in directories):
                self.context.warning("Include path does not exist: %s", self.root / value)
                stats.record(SkipReason.PATH_NOT_FOUND)
                continue
            for directory in directories:
                for path in self._walk(directory, item.recursive):
                    yield path, item.tree_only, False

        for item in self.include_files:
            value = item.path
            if not value:
                continue
            path = self.root / value
            if not path.is_file():
                self.context.warning("Include file does not exist: %s", path)
                stats.record(SkipReason.PATH_NOT_FOUND)
                continue
            yield path, item.tree_only, item.is_forced

    def _select(self, result: ScanResult, rel_path: str, tree_only: bool, forced: bool) -> SelectedFile:
        if forced:
            self.context.detail("Including file (override): %s", rel_path)
        selected = SelectedFile(rel_path, tree_only)
        result.files.append(selected)
        result.stats.included += 1
        if tree_only:
            result.stats.tree_only += 1
        return selected

    def scan(self) -> ScanResult:
        result = ScanResult()
        stats = result.stats
        # Outcome per path: the SelectedFile, or the reason it was skipped.
        outcomes: Dict[str, Union[SelectedFile, SkipReason]] = {}
        for path, tree_only, forced in self._candidates(stats):
            rel_path = to_relative(self.root, path)
            previous = outcomes.get(rel_path)

            if isinstance(previous, SelectedFile):
                if tree_only and not previous.tree_only:
                    previous.tree_only = True
                    stats.tree_only += 1
                continue
            if previous is not None and not (forced and previous is SkipReason.EXCLUDED):
                continue

            if previous is None:
                stats.scanned += 1
            else:
                # A forced include file reached earlier by a directory walk.
                stats.excluded -= 1
            reason, tree_only = self.classify(path, tree_only, forced)
            if reason is not None:
                stats.record(reason)
                outcomes[rel_path] = reason
                self.context.detail("Skipping %s: %s", rel_path, reason.value)
                continue
            outcomes[rel_path] = self._select(result, rel_path, tree_only, forced)

        if not result.files:
            self.context.info("No files found matching the specified criteria.")
        return result
