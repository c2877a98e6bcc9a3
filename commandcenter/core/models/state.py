"""
RunState — the persisted record of Phase completion.

Serialized to ``<state_dir>/runstate.json`` and consulted on every
invocation. A Phase whose record says Succeeded (for the same strategy
version) is skipped, which is what makes a re-run after a crash, an
abort, or a reboot safe.

The core never deletes this file; ``commandcenter reset`` is the only
way to clear a marker.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from commandcenter.core.models.phase import PhaseStatus


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class PhaseRecord(BaseModel):
    """Last known outcome of a Phase."""

    name: str
    version: str = "1"
    status: PhaseStatus = PhaseStatus.PENDING
    started_at: str | None = None
    ended_at: str | None = None
    run_id: str = ""
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None


class RunState(BaseModel):
    """Root state model — serialized to runstate.json."""

    # ── Schema ───────────────────────────────────────────────────
    schema_version: int = 1

    # ── Timestamps ───────────────────────────────────────────────
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    # ── Phase completion ─────────────────────────────────────────
    phases: dict[str, PhaseRecord] = Field(default_factory=dict)

    # ── Reboot tracking ──────────────────────────────────────────
    awaiting_reboot: bool = False
    reboot_boot_id: str | None = None   # boot id when the reboot was requested
    reboot_requested_by: list[str] = Field(default_factory=list)

    # ── Last run ─────────────────────────────────────────────────
    last_run_id: str = ""
    last_exit_code: int | None = None

    # ── Extensible metadata ──────────────────────────────────────
    metadata: dict[str, Any] = Field(default_factory=dict)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()

    def is_succeeded(self, name: str, version: str | None = None) -> bool:
        """Whether a Phase has a Succeeded marker (for ``version``, if given)."""
        record = self.phases.get(name)
        if record is None or record.status != PhaseStatus.SUCCEEDED:
            return False
        return version is None or record.version == version

    def record(self, name: str, **kwargs: Any) -> PhaseRecord:
        """Update or create a Phase record."""
        if name in self.phases:
            for key, value in kwargs.items():
                setattr(self.phases[name], key, value)
        else:
            self.phases[name] = PhaseRecord(name=name, **kwargs)
        return self.phases[name]

    def clear(self, name: str) -> bool:
        """Drop a Phase's marker. Returns whether one existed."""
        return self.phases.pop(name, None) is not None

    @property
    def succeeded_phases(self) -> list[str]:
        return [n for n, r in self.phases.items() if r.status == PhaseStatus.SUCCEEDED]
