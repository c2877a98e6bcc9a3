"""
Status use case — RunState per Phase, pending reboot, last run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from commandcenter.adapters.system.host import HostInspector
from commandcenter.core.config.settings import Settings
from commandcenter.core.engine.mutator import ConfigMutator
from commandcenter.core.errors import ConfigMutationError
from commandcenter.core.models.state import RunState
from commandcenter.core.persistence.state_file import default_state_path, load_state
from commandcenter.phases import build_phases
from commandcenter.phases.performance import boot_config_path


@dataclass
class PhaseStatusRow:
    name: str
    status: str
    version: str
    current: bool = True      # recorded version matches the planned one
    ended_at: str | None = None
    warnings: int = 0
    error: str | None = None


@dataclass
class StatusResult:
    """Aggregated RunState view."""

    state_path: Path | None = None
    phases: list[PhaseStatusRow] = field(default_factory=list)
    awaiting_reboot: bool = False
    reboot_requested_by: list[str] = field(default_factory=list)
    last_run_id: str = ""
    last_exit_code: int | None = None

    def to_dict(self) -> dict:
        return {
            "state_path": str(self.state_path) if self.state_path else None,
            "awaiting_reboot": self.awaiting_reboot,
            "reboot_requested_by": self.reboot_requested_by,
            "last_run_id": self.last_run_id,
            "last_exit_code": self.last_exit_code,
            "phases": [
                {
                    "name": p.name,
                    "status": p.status,
                    "version": p.version,
                    "current": p.current,
                    "ended_at": p.ended_at,
                    "warnings": p.warnings,
                    "error": p.error,
                }
                for p in self.phases
            ],
        }


def get_status(settings: Settings) -> StatusResult:
    """Read RunState and line it up with the planned Phases."""
    state_path = default_state_path(settings.paths.state_dir)
    state = load_state(state_path)
    result = StatusResult(
        state_path=state_path,
        awaiting_reboot=state.awaiting_reboot,
        reboot_requested_by=list(state.reboot_requested_by),
        last_run_id=state.last_run_id,
        last_exit_code=state.last_exit_code,
    )

    planned = build_phases(settings)
    for phase in planned:
        record = state.phases.get(phase.name)
        if record is None:
            result.phases.append(PhaseStatusRow(name=phase.name, status="pending", version=phase.version))
            continue
        result.phases.append(
            PhaseStatusRow(
                name=phase.name,
                status=record.status.value,
                version=record.version,
                current=record.version == phase.version,
                ended_at=record.ended_at,
                warnings=len(record.warnings),
                error=record.error,
            )
        )
    return result


# ── Reboot check ────────────────────────────────────────────────


@dataclass
class RebootCheckResult:
    """Whether the managed boot block is in place and a reboot is pending."""

    boot_config: Path | None = None
    block_present: bool = False
    preset: str | None = None
    awaiting_reboot: bool = False
    reboot_pending: bool = False
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "boot_config": str(self.boot_config) if self.boot_config else None,
            "block_present": self.block_present,
            "preset": self.preset,
            "awaiting_reboot": self.awaiting_reboot,
            "reboot_pending": self.reboot_pending,
            "error": self.error,
        }


def check_reboot(settings: Settings, host: HostInspector | None = None) -> RebootCheckResult:
    """Inspect the boot configuration and RunState without changing either."""
    host = host or HostInspector()
    result = RebootCheckResult()

    state: RunState = load_state(default_state_path(settings.paths.state_dir))
    result.awaiting_reboot = state.awaiting_reboot
    if state.awaiting_reboot:
        current = host.boot_id()
        result.reboot_pending = current is None or state.reboot_boot_id is None or current == state.reboot_boot_id

    try:
        result.boot_config = boot_config_path(settings)
    except ConfigMutationError as e:
        result.error = str(e)
        return result

    block = ConfigMutator().read_block(result.boot_config, settings.boot.begin_marker, settings.boot.end_marker)
    if block is not None:
        result.block_present = True
        for line in block.splitlines():
            if line.startswith("# preset:"):
                result.preset = line.split(":", 1)[1].strip()
    return result
