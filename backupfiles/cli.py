"""
Entry point for the backup command-line interface (exposed as `backupfiles`).

The CLI works in one of two modes depending on the path it is given:

* an ``.xml`` file is a backup configuration: the project next to it is
  scanned and the selected files are packed into a single text archive;
* any other file is an archive (or a zip wrapping one) and is restored
  into a folder next to it, named after the file.

Usage examples::

    # Use backup.config.xml in the current directory (created if missing)
    backupfiles
    # Run a backup with an explicit configuration
    backupfiles ./configs/backup.web.config.xml --root ./web
    # Restore an archive into ./backup/MyProject_1.0.3_20240101120000.bak/
    backupfiles ./backup/MyProject_1.0.3_20240101120000.bak.txt

During development the module can also be executed with
``python -m backupfiles.cli``.
"""

from __future__ import annotations

import argparse
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from . import __version__
from .archive import ArchiveWriteError, ArchiveWriter
from .config import (
    DEFAULT_CONFIG_NAME,
    ConfigError,
    load_config,
    record_successful_run,
    result_file_path,
    write_config_template,
)
from .context import RunContext
from .restore import restore_backup
from .results import cleanup_old_results, zip_result
from .scanner import FileScanner
from .update_check import check_for_updates, should_check_for_updates

LOG_FORMAT = "[%(levelname)s] %(asctime)s %(name)s:%(lineno)d - %(message)s"


def run_backup(
    config_path: Path,
    root: Optional[Path] = None,
    context: Optional[RunContext] = None,
    now: Optional[datetime] = None,
) -> int:
    """Run a full backup described by ``config_path``.  Returns an exit code."""
    context = context or RunContext(logging.getLogger("backupfiles.cli"))
    now = now or datetime.now()

    if not config_path.exists():
        if config_path.name == DEFAULT_CONFIG_NAME:
            write_config_template(config_path, now)
            context.error(
                "Config file is missing! A template has been created at %s. "
                "Please update the 'IsExample' parameter to 0.",
                config_path,
            )
        else:
            context.error("Config file '%s' not found.", config_path)
        return 1

    try:
        config = load_config(config_path)
    except ConfigError as exc:
        context.error("%s", exc)
        return 1

    problems = config.validate()
    if problems:
        for problem in problems:
            context.error("%s", problem)
        return 1

    if should_check_for_updates(config, now):
        newer = check_for_updates(config.update_check_url, __version__, config.update_check_timeout_seconds)
        if newer:
            context.info("Update available: %s (current %s)", newer, __version__)

    root = (root or config_path.parent).resolve()
    scanner = FileScanner.from_config(config, root, context)
    scan = scanner.scan()

    output_path = result_file_path(config, root, now)
    writer = ArchiveWriter(root, context, scan.stats)
    try:
        writer.write(scan.files, output_path)
    except ArchiveWriteError as exc:
        context.error("%s", exc)
        return 1

    final_path = output_path
    if config.enable_zip:
        try:
            final_path = zip_result(output_path, config.delete_unzipped, context)
        except OSError as exc:
            context.error("Failed to create ZIP file for %s: %s", output_path, exc)
            return 1

    cleanup_old_results(
        output_path.parent,
        config.result_filename_mask,
        config.project_name,
        config.cleanup_keep_last,
        context,
    )
    record_successful_run(config_path, now)
    context.info("Scan summary: %s", scan.stats.summary())
    context.info("Backup completed successfully. Files are packed in %s", final_path)
    return 0


def run_restore(archive_path: Path, context: Optional[RunContext] = None) -> int:
    context = context or RunContext(logging.getLogger("backupfiles.cli"))
    if not archive_path.is_file():
        context.error("The specified file does not exist: %s", archive_path)
        return 1
    try:
        result = restore_backup(archive_path, context)
    except OSError as exc:
        context.error("Error restoring from backup: %s", exc)
        return 1
    context.info("Restored %d file(s) into %s", len(result.files), result.target_dir)
    if result.skipped:
        context.warning("%d file(s) could not be restored.", len(result.skipped))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Primary CLI entry point.

    Parses arguments, configures logging, and dispatches to backup or
    restore.  Returns an exit code.
    """
    parser = argparse.ArgumentParser(
        description="Pack selected project files into a text archive, or restore one."
    )
    parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        default=None,
        help=f"Backup configuration (.xml) or archive to restore. Defaults to ./{DEFAULT_CONFIG_NAME}.",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Project root for a backup run (default: the configuration file's directory).",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.environ.get("BACKUPFILES_LOGLEVEL", "INFO").upper(),
        help="Logging verbosity (default from env BACKUPFILES_LOGLEVEL or INFO).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log messages to this file.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Report every packed, skipped and restored file at INFO level.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    level = getattr(logging, (args.log_level or "INFO").upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
    logging.getLogger("httpx").setLevel(level)
    if args.log_file is not None:
        try:
            handler = logging.FileHandler(args.log_file, encoding="utf-8")
        except OSError as exc:
            logging.getLogger("backupfiles.cli").error("Cannot open log file %s: %s", args.log_file, exc)
            return 1
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)
    context = RunContext(logging.getLogger("backupfiles.cli"), verbose=args.verbose)

    if args.path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME
        context.info("Using default config file: %s", config_path)
        return run_backup(config_path, args.root, context)

    if args.path.suffix.lower() == ".xml":
        context.info("Using config file: %s", args.path)
        return run_backup(args.path, args.root, context)

    return run_restore(args.path, context)


if __name__ == "__main__":  # pragma: no cover
    import sys
    raise SystemExit(main(sys.argv[1:]))
