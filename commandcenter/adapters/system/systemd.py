"""
Service manager adapter — systemd units via systemctl.
"""

from __future__ import annotations

import logging

from commandcenter.adapters.shell.command import CommandRunner

logger = logging.getLogger(__name__)


class ServiceManager:
    """systemctl wrapper. Mutating calls raise CommandError on failure."""

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    def is_active(self, unit: str, timeout: float = 30) -> bool:
        return self._runner.run(["systemctl", "is-active", "--quiet", unit], check=False, timeout=timeout).ok

    def is_enabled(self, unit: str) -> bool:
        return self._runner.run(["systemctl", "is-enabled", "--quiet", unit], check=False, timeout=30).ok

    def enable(self, unit: str, now: bool = False) -> None:
        argv = ["systemctl", "enable", unit]
        if now:
            argv.insert(2, "--now")
        self._runner.run(argv, timeout=120)

    def start(self, unit: str) -> None:
        self._runner.run(["systemctl", "start", unit], timeout=300)

    def restart(self, unit: str) -> None:
        self._runner.run(["systemctl", "restart", unit], timeout=300)

    def disable(self, unit: str) -> None:
        self._runner.run(["systemctl", "disable", unit], timeout=120)

    def daemon_reload(self) -> None:
        self._runner.run(["systemctl", "daemon-reload"], timeout=120)

    def set_default_target(self, target: str) -> None:
        self._runner.run(["systemctl", "set-default", target], timeout=60)

    def reboot(self) -> None:
        logger.warning("Rebooting system")
        self._runner.run(["systemctl", "reboot"], timeout=60)
