"""
Backup files package.

This package selects files from a project tree according to layered
include, exclude and extension rules, and packs them into a single
human-readable text archive together with a directory tree summary.  The
same archive can later be restored into a folder of files.

* ``scanner`` and ``rules`` decide which files are selected.
* ``tree`` renders the compact directory summary.
* ``archive`` writes the archive; ``restore`` reads it back.

See `cli.py` for the entry point.
"""

__version__ = "1.0.0"

__all__ = [
    "cli",
]
