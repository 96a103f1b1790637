"""
Post-processing of finished archives: zip wrapping and retention.
"""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Dict, List, Optional

from .config import FILENAME_TIMESTAMP_TOKEN
from .context import RunContext
from .wildcard import wildcard_match

logger = logging.getLogger(__name__)


def zip_result(result_path: Path, delete_unzipped: bool = False, context: Optional[RunContext] = None) -> Path:
    """Wrap ``result_path`` into ``<result_path>.zip`` and return the zip path.

    Raises OSError if the zip cannot be written.
    """
    context = context or RunContext(logger)
    zip_path = result_path.with_name(result_path.name + ".zip")
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.write(result_path, arcname=result_path.name)
    context.info("ZIP file created successfully at: %s", zip_path)
    if delete_unzipped:
        result_path.unlink()
        context.detail("Deleted unzipped archive %s", result_path)
    return zip_path


def mask_to_pattern(mask: str, project_name: str) -> str:
    """Turn a result filename mask into a wildcard matching any past result."""
    return (
        mask.replace("@PROJECTNAME", project_name)
        .replace("@VER", "*")
        .replace(FILENAME_TIMESTAMP_TOKEN, "*")
    )


def _result_key(name: str) -> str:
    # An archive and its zip wrapper are one result.
    return name[: -len(".zip")] if name.lower().endswith(".zip") else name


def cleanup_old_results(
    result_dir: Path,
    mask: str,
    project_name: str,
    keep_last: int,
    context: Optional[RunContext] = None,
) -> List[Path]:
    """Delete all but the ``keep_last`` most recently modified results.

    Files count as results when their name matches the filename mask, or
    the mask followed by ``.zip``.  A plain archive and its ``.zip`` are
    kept or deleted together.  Returns the deleted paths.
    """
    context = context or RunContext(logger)
    if keep_last <= 0 or not result_dir.is_dir():
        return []
    pattern = mask_to_pattern(mask, project_name)
    groups: Dict[str, List[Path]] = {}
    for path in result_dir.iterdir():
        if path.is_file() and (wildcard_match(path.name, pattern) or wildcard_match(path.name, pattern + ".zip")):
            groups.setdefault(_result_key(path.name), []).append(path)
    ordered = sorted(
        groups.values(),
        key=lambda paths: max(p.stat().st_mtime for p in paths),
        reverse=True,
    )
    deleted: List[Path] = []
    for paths in ordered[keep_last:]:
        for path in paths:
            try:
                path.unlink()
            except OSError as exc:
                context.warning("Failed to delete old backup %s: %s", path, exc)
                continue
            context.detail("Deleted old backup: %s", path)
            deleted.append(path)
    if deleted:
        context.info("Cleanup removed %d old backup file(s), kept %d result(s).", len(deleted), keep_last)
    return deleted
