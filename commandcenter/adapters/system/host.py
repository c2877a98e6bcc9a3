"""
Host inspector — facts about the machine being provisioned.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
from pathlib import Path

logger = logging.getLogger(__name__)

_BOOT_ID = Path("/proc/sys/kernel/random/boot_id")
_MODEL_FILES = (Path("/proc/device-tree/model"), Path("/sys/firmware/devicetree/base/model"))


class HostInspector:
    """Privilege, disk, boot identity, hardware model, process control."""

    def is_root(self) -> bool:
        return os.geteuid() == 0

    def free_bytes(self, path: str = "/") -> int:
        return shutil.disk_usage(path).free

    def boot_id(self) -> str | None:
        """Identifier of the current boot; changes on every reboot."""
        try:
            return _BOOT_ID.read_text(encoding="utf-8").strip()
        except OSError:
            return None

    def model(self) -> str | None:
        for path in _MODEL_FILES:
            try:
                return path.read_bytes().rstrip(b"\0").decode("utf-8", "replace").strip()
            except OSError:
                continue
        return None

    def terminate(self, pid: int) -> None:
        """Send SIGTERM to ``pid``."""
        logger.warning("Terminating process %d", pid)
        os.kill(pid, signal.SIGTERM)
