"""
Run context passed to the scanner, the archive writer and the restorer.

Instead of consulting global verbosity settings, those components receive
a :class:`RunContext`.  It wraps the logger they report through, a
``verbose`` flag that promotes per-file messages from DEBUG to INFO, and
an optional ``sink`` that receives every user-visible message (the CLI
leaves it empty; tests use it to capture output).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional


@dataclass
class RunContext:
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("backupfiles"))
    verbose: bool = False
    sink: Optional[Callable[[str], None]] = None

    def _emit(self, level: int, message: str, *args: object) -> None:
        self.logger.log(level, message, *args)
        if self.sink is not None:
            self.sink(message % args if args else message)

    def info(self, message: str, *args: object) -> None:
        self._emit(logging.INFO, message, *args)

    def warning(self, message: str, *args: object) -> None:
        self._emit(logging.WARNING, message, *args)

    def error(self, message: str, *args: object) -> None:
        self._emit(logging.ERROR, message, *args)

    def detail(self, message: str, *args: object) -> None:
        """Report a per-file event; INFO when verbose, DEBUG otherwise."""
        self._emit(logging.INFO if self.verbose else logging.DEBUG, message, *args)
