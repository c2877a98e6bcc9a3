"""
Maintenance use cases — backup listing and manual marker reset.

The core never deletes RunState entries or backups on its own; these
are the operator's tools for recovery.
"""

from __future__ import annotations

import logging
from pathlib import Path

from commandcenter.core.config.settings import Settings
from commandcenter.core.engine.mutator import ConfigMutator
from commandcenter.core.persistence.state_file import default_state_path, load_state, save_state

logger = logging.getLogger(__name__)


def list_backups(path: Path) -> list[dict]:
    """Backups of ``path``, oldest first, with size and mtime."""
    rows = []
    for backup in ConfigMutator().list_backups(path):
        stat = backup.stat()
        rows.append({"path": str(backup), "size": stat.st_size, "mtime": stat.st_mtime})
    return rows


def reset_phase(settings: Settings, name: str) -> bool:
    """Clear ``name``'s completion marker. Returns whether one existed."""
    path = default_state_path(settings.paths.state_dir)
    state = load_state(path)
    if not state.clear(name):
        return False
    state.touch()
    save_state(state, path)
    logger.info("Cleared marker for phase %s", name)
    return True


def clear_reboot_flag(settings: Settings) -> bool:
    """Drop a pending-reboot flag (after the operator rebooted by hand)."""
    path = default_state_path(settings.paths.state_dir)
    state = load_state(path)
    if not state.awaiting_reboot:
        return False
    state.awaiting_reboot = False
    state.reboot_boot_id = None
    state.reboot_requested_by = []
    state.touch()
    save_state(state, path)
    return True
