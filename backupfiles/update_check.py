"""
Optional check for a newer release of the tool.

The check is throttled by ``UpdateCheckMinutes`` relative to the last
recorded run and bounded by ``UpdateCheckTimeoutSeconds``.  It never
affects the outcome of a backup: any failure is logged at DEBUG level and
treated as "no update".
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Optional, Tuple

import httpx

from .config import BackupConfig, parse_timestamp

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"(\d+(?:\.\d+)+)")


def should_check_for_updates(config: BackupConfig, now: Optional[datetime] = None) -> bool:
    if config.update_check_minutes <= 0 or not config.update_check_url:
        return False
    last_run = parse_timestamp(config.created)
    if last_run is None:
        return True
    now = now or datetime.now()
    return now - last_run >= timedelta(minutes=config.update_check_minutes)


def _version_tuple(text: str) -> Tuple[int, ...]:
    return tuple(int(part) for part in text.split("."))


def extract_version(text: str) -> Optional[str]:
    """Return the first dotted version number found in ``text``."""
    match = _VERSION_RE.search(text or "")
    return match.group(1) if match else None


def check_for_updates(url: str, current_version: str, timeout_seconds: float = 5) -> Optional[str]:
    """Return the remote version if it is newer than ``current_version``."""
    try:
        response = httpx.get(
            url,
            timeout=max(1.0, float(timeout_seconds)),
            headers={"User-Agent": "backupfiles"},
            follow_redirects=True,
        )
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.debug("Update check failed: %s", exc)
        return None
    remote = extract_version(response.text)
    if remote is None:
        logger.debug("Update check: no version found in response from %s", url)
        return None
    try:
        if _version_tuple(remote) > _version_tuple(current_version):
            return remote
    except ValueError:
        logger.debug("Update check: cannot compare %r with %r", remote, current_version)
    return None
