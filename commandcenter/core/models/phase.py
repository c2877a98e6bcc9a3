"""
Phase and Step models — the unit-of-work contract.

A Phase is a named, dependency-ordered group of Steps. A Step is a single
callable tagged with a failure policy. Steps never return status codes:
they either return normally or raise, and the Phase Executor classifies
the exception by the Step's policy into a StepReceipt.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from commandcenter.core.context import RunContext


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class FailurePolicy(StrEnum):
    """What a Step failure means for its Phase."""

    FAIL_FAST = "fail_fast"      # abort the Phase, report as the failure cause
    BEST_EFFORT = "best_effort"  # record a warning, continue with the next Step


class PhaseStatus(StrEnum):
    """Phase lifecycle: Pending → Running → {Succeeded, Failed, Skipped}."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_success(self) -> bool:
        """Skipped and Succeeded both satisfy downstream dependencies."""
        return self in (PhaseStatus.SUCCEEDED, PhaseStatus.SKIPPED)


StepAction = Callable[["RunContext"], Any]


@dataclass
class Step:
    """A single action within a Phase.

    Args:
        name: Identifier, unique within the Phase.
        action: Callable receiving the RunContext. Raises on failure.
        policy: FailFast or BestEffort.
        description: Human-readable label for logs.
    """

    name: str
    action: StepAction
    policy: FailurePolicy = FailurePolicy.FAIL_FAST
    description: str = ""

    @property
    def best_effort(self) -> bool:
        return self.policy == FailurePolicy.BEST_EFFORT


@dataclass
class Phase:
    """A named, dependency-ordered unit of provisioning work.

    ``mutates_boot_config`` declares that a successful execution requires a
    reboot to take effect. ``reboot_barrier`` additionally stops the run
    right after this Phase so that dependents execute on the new boot.
    """

    name: str
    steps: list[Step] = field(default_factory=list)
    requires: list[str] = field(default_factory=list)
    version: str = "1"
    description: str = ""
    mutates_boot_config: bool = False
    reboot_barrier: bool = False

    def add(
        self,
        name: str,
        action: StepAction,
        policy: FailurePolicy = FailurePolicy.FAIL_FAST,
        description: str = "",
    ) -> Step:
        """Append a Step and return it."""
        step = Step(name=name, action=action, policy=policy, description=description)
        self.steps.append(step)
        return step


class StepReceipt(BaseModel):
    """Outcome of one Step invocation.

    ``warning`` receipts come from BestEffort failures and non-fatal
    errors; ``failed`` receipts come from FailFast failures only.
    """

    phase: str
    step: str
    policy: FailurePolicy = FailurePolicy.FAIL_FAST
    status: Literal["ok", "warning", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    error: str | None = None
    error_type: str | None = None
    exit_code: int | None = None     # set when a command exited non-zero

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(cls, phase: str, step: str, **kwargs: Any) -> StepReceipt:
        """Create a success receipt."""
        return cls(phase=phase, step=step, status="ok", **kwargs)

    @classmethod
    def warning(cls, phase: str, step: str, error: str, **kwargs: Any) -> StepReceipt:
        """Create a warning receipt (non-fatal failure)."""
        return cls(phase=phase, step=step, status="warning", error=error, **kwargs)

    @classmethod
    def failure(cls, phase: str, step: str, error: str, **kwargs: Any) -> StepReceipt:
        """Create a failure receipt (fatal for the Phase)."""
        return cls(phase=phase, step=step, status="failed", error=error, **kwargs)


@dataclass
class PhaseResult:
    """Aggregate result of executing one Phase."""

    phase: str
    status: PhaseStatus = PhaseStatus.PENDING
    receipts: list[StepReceipt] = field(default_factory=list)
    unverified: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status.is_success

    @property
    def warnings(self) -> list[str]:
        return [r.error or "" for r in self.receipts if r.status == "warning"]

    @property
    def cause(self) -> StepReceipt | None:
        """The FailFast receipt that failed the Phase, if any."""
        for receipt in self.receipts:
            if receipt.failed:
                return receipt
        return None

    @property
    def exit_code(self) -> int:
        """Exit code the Orchestrator should report for this Phase."""
        if self.succeeded:
            return 0
        cause = self.cause
        if cause is not None and cause.exit_code:
            return cause.exit_code
        return 1

    def to_dict(self) -> dict:
        cause = self.cause
        return {
            "phase": self.phase,
            "status": self.status.value,
            "warnings": self.warnings,
            "cause": cause.error if cause else None,
            "unverified": self.unverified,
            "steps": [r.model_dump(mode="json") for r in self.receipts],
        }
