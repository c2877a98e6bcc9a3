"""
Phase executor — run one Phase's Steps and classify their outcomes.

    execute(phase) -> PhaseResult

Steps run strictly in order. Each raised exception is classified:

    non-fatal error (ValidationTimeout, PackageInstallWarning)  → warning
    ConflictUnresolved / PolicyViolation                         → Phase fails
    any other error, BestEffort step                             → warning
    any other error, FailFast step                               → Phase fails

A failed FailFast Step ends the Phase immediately; later Steps are never
invoked. Every Step start and outcome is appended to the run log. On
full success the Phase is marked Succeeded in RunState.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime

from commandcenter.core.context import RunContext
from commandcenter.core.errors import (
    CommandError,
    ConflictUnresolved,
    PolicyViolation,
    ProvisionError,
    ValidationTimeout,
)
from commandcenter.core.models.phase import Phase, PhaseResult, PhaseStatus, Step, StepReceipt

logger = logging.getLogger(__name__)

_ALWAYS_FATAL = (ConflictUnresolved, PolicyViolation)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _is_non_fatal(error: BaseException) -> bool:
    return isinstance(error, ProvisionError) and not error.fatal


class PhaseExecutor:
    """Execute Phases against a RunContext."""

    def __init__(self, ctx: RunContext):
        self._ctx = ctx

    def execute(self, phase: Phase) -> PhaseResult:
        """Run every Step of ``phase`` and return the aggregate result.

        Raises:
            KeyboardInterrupt: Re-raised after the interrupted Step and the
                Phase have been recorded as failed.
        """
        ctx = self._ctx
        result = PhaseResult(phase=phase.name, status=PhaseStatus.RUNNING)
        started_at = _now_iso()

        logger.info("Phase %s: starting (%d steps)", phase.name, len(phase.steps))
        ctx.run_log.append("phase_started", phase.description, phase=phase.name, version=phase.version)
        ctx.state.record(
            phase.name,
            version=phase.version,
            status=PhaseStatus.RUNNING,
            started_at=started_at,
            ended_at=None,
            run_id=ctx.run_id,
            warnings=[],
            error=None,
        )
        ctx.save_state()

        for step in phase.steps:
            try:
                receipt = self._run_step(phase, step, result)
            except KeyboardInterrupt:
                result.status = PhaseStatus.FAILED
                self._finish(phase, result, error="interrupted by operator")
                raise
            result.receipts.append(receipt)
            if receipt.failed:
                break

        result.status = PhaseStatus.FAILED if result.cause is not None else PhaseStatus.SUCCEEDED
        cause = result.cause
        self._finish(phase, result, error=cause.error if cause else None)
        return result

    # ── Steps ───────────────────────────────────────────────────

    def _run_step(self, phase: Phase, step: Step, result: PhaseResult) -> StepReceipt:
        ctx = self._ctx
        log_fields = {"phase": phase.name, "step": step.name, "policy": step.policy.value}
        ctx.run_log.append("step_started", step.description, **log_fields)
        logger.info("  → %s", step.description or step.name)

        started_at = _now_iso()
        start = time.monotonic()
        timing = {"policy": step.policy, "started_at": started_at}

        try:
            step.action(ctx)
        except KeyboardInterrupt:
            duration = int((time.monotonic() - start) * 1000)
            ctx.run_log.append("interrupted", "operator interrupt", duration_ms=duration, **log_fields)
            logger.warning("Interrupted during %s/%s", phase.name, step.name)
            raise
        except Exception as e:
            duration = int((time.monotonic() - start) * 1000)
            timing.update(ended_at=_now_iso(), duration_ms=duration, error_type=type(e).__name__)
            if isinstance(e, ValidationTimeout):
                result.unverified.append(e.capability)

            if _is_non_fatal(e) or (step.best_effort and not isinstance(e, _ALWAYS_FATAL)):
                logger.warning("  ⚠ %s: %s", step.name, e)
                ctx.run_log.append("step_warning", str(e), duration_ms=duration, **log_fields)
                return StepReceipt.warning(phase.name, step.name, str(e), **timing)

            exit_code = e.returncode if isinstance(e, CommandError) else None
            logger.error("  ✗ %s: %s", step.name, e)
            ctx.run_log.append(
                "step_failed", str(e), duration_ms=duration, exit_code=exit_code,
                error_type=type(e).__name__, **log_fields,
            )
            return StepReceipt.failure(phase.name, step.name, str(e), exit_code=exit_code, **timing)

        duration = int((time.monotonic() - start) * 1000)
        ctx.run_log.append("step_ok", duration_ms=duration, **log_fields)
        return StepReceipt.success(phase.name, step.name, ended_at=_now_iso(), duration_ms=duration, **timing)

    # ── State ───────────────────────────────────────────────────

    def _finish(self, phase: Phase, result: PhaseResult, error: str | None) -> None:
        ctx = self._ctx
        ctx.state.record(
            phase.name,
            status=result.status,
            ended_at=_now_iso(),
            warnings=result.warnings,
            error=error,
        )
        ctx.state.touch()
        ctx.save_state()

        if result.status == PhaseStatus.SUCCEEDED:
            logger.info(
                "Phase %s: succeeded (%d warnings)", phase.name, len(result.warnings)
            )
            ctx.run_log.append(
                "phase_succeeded",
                phase=phase.name,
                warnings=result.warnings,
                unverified=result.unverified,
            )
        else:
            logger.error("Phase %s: failed: %s", phase.name, error)
            ctx.run_log.append("phase_failed", error or "", phase=phase.name)
