"""
Prerequisites — global checks that must pass before any Phase runs.

All checks are read-only. Any failure raises PrerequisiteError, and
because nothing has executed yet, a failed check leaves the system
exactly as it was.

    require_root        effective uid 0
    internet            TCP reachability of a public resolver
    disk space          free bytes on the root filesystem
    phase graph         every Step callable, predecessors known, no cycles
    hardware model      warning only
"""

from __future__ import annotations

import logging

from commandcenter.adapters.system.host import HostInspector
from commandcenter.adapters.system.network import NetworkInspector
from commandcenter.core.config.settings import PrerequisiteSettings
from commandcenter.core.errors import PrerequisiteError
from commandcenter.core.models.phase import Phase

logger = logging.getLogger(__name__)


def order_phases(phases: list[Phase]) -> list[Phase]:
    """Stable topological order of ``phases``.

    A Phase keeps its position in the given list unless a predecessor
    appears later, in which case it moves after it.

    Raises:
        PrerequisiteError: Duplicate names, unknown predecessors, or a cycle.
    """
    by_name: dict[str, Phase] = {}
    for phase in phases:
        if phase.name in by_name:
            raise PrerequisiteError(f"Duplicate phase name: {phase.name}")
        by_name[phase.name] = phase

    for phase in phases:
        unknown = [r for r in phase.requires if r not in by_name]
        if unknown:
            raise PrerequisiteError(
                f"Phase '{phase.name}' requires unknown phase(s): {', '.join(unknown)}"
            )

    ordered: list[Phase] = []
    placed: set[str] = set()
    remaining = list(phases)
    while remaining:
        ready = next((p for p in remaining if all(r in placed for r in p.requires)), None)
        if ready is None:
            cycle = ", ".join(p.name for p in remaining)
            raise PrerequisiteError(f"Dependency cycle among phases: {cycle}")
        ordered.append(ready)
        placed.add(ready.name)
        remaining.remove(ready)
    return ordered


def check_phase_entry_points(phases: list[Phase]) -> None:
    """Every Phase must have Steps and every Step must be callable."""
    for phase in phases:
        if not phase.steps:
            raise PrerequisiteError(f"Phase '{phase.name}' has no steps")
        for step in phase.steps:
            if not callable(step.action):
                raise PrerequisiteError(
                    f"Step '{phase.name}/{step.name}' has no invokable action"
                )


class PrerequisiteChecker:
    """Run the global checks from PrerequisiteSettings.

    Args:
        settings: Thresholds and hosts.
        host: Host facts.
        network: Connectivity checks.
    """

    def __init__(self, settings: PrerequisiteSettings, host: HostInspector, network: NetworkInspector):
        self._settings = settings
        self._host = host
        self._network = network
        self.warnings: list[str] = []

    def check(self, phases: list[Phase]) -> list[Phase]:
        """Run every check; return the Phases in execution order.

        Raises:
            PrerequisiteError: On the first failing check.
        """
        self.warnings = []
        self.check_privilege()
        self.check_disk()
        self.check_internet()
        check_phase_entry_points(phases)
        ordered = order_phases(phases)
        self.check_model()
        logger.info("Prerequisites satisfied (%d phases)", len(ordered))
        return ordered

    def check_privilege(self) -> None:
        if self._settings.require_root and not self._host.is_root():
            raise PrerequisiteError("Must run as root (try: sudo commandcenter run)")

    def check_disk(self) -> None:
        free_gb = self._host.free_bytes(self._settings.disk_path) / 1024**3
        if free_gb < self._settings.min_free_gb:
            raise PrerequisiteError(
                f"Insufficient disk space on {self._settings.disk_path}: "
                f"{free_gb:.1f} GB free, {self._settings.min_free_gb:g} GB required"
            )

    def check_internet(self) -> None:
        hosts = self._settings.connectivity_hosts
        if not hosts:
            return
        if not self._network.internet_reachable(
            hosts, port=self._settings.connectivity_port, timeout=self._settings.connectivity_timeout
        ):
            raise PrerequisiteError(f"No internet connectivity (tried {', '.join(hosts)})")

    def check_model(self) -> None:
        expected = self._settings.expect_model
        if not expected:
            return
        model = self._host.model()
        if model is None or expected.lower() not in model.lower():
            message = f"Hardware model is {model or 'unknown'}, expected {expected}; continuing"
            logger.warning(message)
            self.warnings.append(message)
