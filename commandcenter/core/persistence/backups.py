"""
Backup store — timestamped, append-only snapshots beside each file.

Backups are named ``<file>.backup-<YYYYmmdd_HHMMSS_ffffff>`` and created
with exclusive-create, so an existing backup is never overwritten. The
core never deletes them.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path

from commandcenter.core.models.config_block import Backup

logger = logging.getLogger(__name__)

BACKUP_INFIX = ".backup-"


class BackupStore:
    """Creates and lists backups for managed files."""

    def __init__(self, clock=datetime.now):
        self._clock = clock

    def snapshot(self, path: Path, content: str) -> Backup:
        """Write ``content`` as a new backup of ``path``.

        Raises:
            OSError: If the backup cannot be written.
        """
        stamp = self._clock().strftime("%Y%m%d_%H%M%S_%f")
        base = f"{path.name}{BACKUP_INFIX}{stamp}"
        candidate = path.with_name(base)
        counter = 0
        while True:
            try:
                fd = os.open(candidate, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
                break
            except FileExistsError:
                counter += 1
                candidate = path.with_name(f"{base}-{counter}")

        data = content.encode("utf-8")
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        logger.info("Backed up %s to %s", path, candidate)
        return Backup(original=str(path), path=str(candidate), size=len(data))

    def list(self, path: Path) -> list[Path]:
        """Existing backups of ``path``, oldest first."""
        if not path.parent.is_dir():
            return []
        prefix = f"{path.name}{BACKUP_INFIX}"
        found = [p for p in path.parent.iterdir() if p.name.startswith(prefix)]
        return sorted(found, key=_backup_sort_key)


def _backup_sort_key(path: Path) -> tuple[str, int]:
    stamp = path.name.split(BACKUP_INFIX, 1)[1]
    head, _, counter = stamp.partition("-")
    return head, int(counter) if counter.isdigit() else 0
