"""
Run summary — the human-readable end-of-run report.

Aggregates per-Phase outcomes into succeeded / failed / skipped /
unverified capabilities and the reboot verdict. Written to
``<logs_dir>/summary-<run_id>.txt`` and available as a dict for
``--json`` output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from commandcenter.core.models.phase import PhaseResult, PhaseStatus

logger = logging.getLogger(__name__)


@dataclass
class PhaseSummary:
    """Outcome of a single Phase in this run."""

    name: str
    status: str = PhaseStatus.PENDING.value
    warnings: list[str] = field(default_factory=list)
    unverified: list[str] = field(default_factory=list)
    cause: str | None = None

    @classmethod
    def from_result(cls, result: PhaseResult) -> PhaseSummary:
        cause = result.cause
        return cls(
            name=result.phase,
            status=result.status.value,
            warnings=result.warnings,
            unverified=list(result.unverified),
            cause=cause.error if cause else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "warnings": self.warnings,
            "unverified": self.unverified,
            "cause": self.cause,
        }


@dataclass
class RunSummary:
    """Aggregate outcome of one provisioning run."""

    run_id: str = ""
    timestamp: str = ""
    phases: list[PhaseSummary] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None
    reboot_required: bool = False
    rebooting: bool = False
    exit_code: int = 0

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(UTC).isoformat()

    def add(self, result: PhaseResult) -> None:
        self.phases.append(PhaseSummary.from_result(result))

    def skip(self, name: str) -> None:
        self.phases.append(PhaseSummary(name=name, status=PhaseStatus.SKIPPED.value))

    def _named(self, status: PhaseStatus) -> list[str]:
        return [p.name for p in self.phases if p.status == status.value]

    @property
    def succeeded(self) -> list[str]:
        return self._named(PhaseStatus.SUCCEEDED)

    @property
    def failed(self) -> list[str]:
        return self._named(PhaseStatus.FAILED)

    @property
    def skipped(self) -> list[str]:
        return self._named(PhaseStatus.SKIPPED)

    @property
    def unverified(self) -> list[str]:
        return [c for p in self.phases for c in p.unverified]

    @property
    def status(self) -> str:
        if self.failed or self.error:
            return "failed"
        if self.reboot_required and not self.rebooting:
            return "reboot-required"
        if self.unverified or any(p.warnings for p in self.phases):
            return "degraded"
        return "ok"

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "timestamp": self.timestamp,
            "status": self.status,
            "exit_code": self.exit_code,
            "error": self.error,
            "reboot_required": self.reboot_required,
            "rebooting": self.rebooting,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "unverified": self.unverified,
            "warnings": self.warnings,
            "phases": [p.to_dict() for p in self.phases],
        }

    def render_text(self) -> str:
        """Plain-text report for the operator."""
        lines = [
            f"Provisioning run {self.run_id}: {self.status} (exit {self.exit_code})",
            "",
        ]
        if self.error:
            lines += [f"Error: {self.error}", ""]

        icons = {"succeeded": "✓", "failed": "✗", "skipped": "○", "running": "…", "pending": "·"}
        for phase in self.phases:
            lines.append(f"  {icons.get(phase.status, '?')} {phase.name:<16} {phase.status}")
            if phase.cause:
                lines.append(f"      cause: {phase.cause}")
            for warning in phase.warnings:
                lines.append(f"      warning: {warning}")
            for capability in phase.unverified:
                lines.append(f"      unverified: {capability}")

        for warning in self.warnings:
            lines.append(f"  ⚠ {warning}")

        lines.append("")
        lines.append(f"Succeeded:  {', '.join(self.succeeded) or '-'}")
        lines.append(f"Failed:     {', '.join(self.failed) or '-'}")
        lines.append(f"Skipped:    {', '.join(self.skipped) or '-'}")
        lines.append(f"Unverified: {', '.join(self.unverified) or '-'}")

        if self.rebooting:
            lines += ["", "Rebooting now to apply boot configuration changes."]
        elif self.reboot_required:
            lines += [
                "",
                "Reboot required to apply boot configuration changes.",
                "Reboot, then run `commandcenter run` again to continue.",
            ]
        return "\n".join(lines) + "\n"

    def write(self, logs_dir: Path | str) -> Path | None:
        """Write ``summary-<run_id>.txt``. Returns the path, or None on I/O error."""
        path = Path(logs_dir) / f"summary-{self.run_id}.txt"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.render_text(), encoding="utf-8")
        except OSError as e:
            logger.error("Failed to write run summary %s: %s", path, e)
            return None
        return path
