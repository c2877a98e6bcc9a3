"""
Orchestrator — drive an ordered list of Phases to completion.

    run(phases) -> exit code

    Idle → ValidatingPrerequisites → RunningPhases → Complete | Aborted
                                          ↘ AwaitingReboot ↗ (next invocation)

Prerequisites are checked before anything executes. Phases already
Succeeded in RunState (for the same version) are skipped, so a re-run
after a crash, an abort or a reboot resumes at the first unfinished
Phase. The first failed Phase halts the run: its dependents are never
invoked.

When an executed Phase mutated the boot configuration the run ends with
either an automatic reboot or EXIT_REBOOT_REQUIRED. The boot id at that
moment is persisted; a later invocation on the same boot exits with
EXIT_REBOOT_REQUIRED again without running anything.
"""

from __future__ import annotations

import logging

from commandcenter.core.context import RunContext
from commandcenter.core.engine.executor import PhaseExecutor
from commandcenter.core.engine.prerequisites import PrerequisiteChecker
from commandcenter.core.errors import CommandError, PrerequisiteError
from commandcenter.core.models.phase import Phase
from commandcenter.core.observability.summary import RunSummary

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_REBOOT_REQUIRED = 100
EXIT_INTERRUPTED = 130

# Codes with an orchestrator meaning; a command exiting with one of them
# (apt-get exits 100 on any error) is reported as EXIT_FAILURE.
RESERVED_EXIT_CODES = frozenset({EXIT_REBOOT_REQUIRED, EXIT_INTERRUPTED})


def _failure_exit_code(code: int) -> int:
    """Exit code for a failed Phase whose cause exited with ``code``."""
    if code in RESERVED_EXIT_CODES:
        logger.info("Command exit code %d is reserved, reporting %d", code, EXIT_FAILURE)
        return EXIT_FAILURE
    return code


class Orchestrator:
    """Run Phases in dependency order against one RunContext.

    Args:
        ctx: The run context.
        executor: Phase executor (default: PhaseExecutor(ctx)).
        prerequisites: Global checks (default: from ctx.settings).
    """

    def __init__(
        self,
        ctx: RunContext,
        executor: PhaseExecutor | None = None,
        prerequisites: PrerequisiteChecker | None = None,
    ):
        self._ctx = ctx
        self._executor = executor or PhaseExecutor(ctx)
        self._prerequisites = prerequisites or PrerequisiteChecker(
            ctx.settings.prerequisites, ctx.host, ctx.network
        )
        self.summary = RunSummary(run_id=ctx.run_id)

    def run(self, phases: list[Phase]) -> int:
        """Execute ``phases`` and return the process exit code."""
        ctx = self._ctx
        self.summary = RunSummary(run_id=ctx.run_id)
        ctx.run_log.append("run_started", phases=[p.name for p in phases], auto=ctx.auto)

        # ── ValidatingPrerequisites ─────────────────────────────
        try:
            ordered = self._prerequisites.check(phases)
        except PrerequisiteError as e:
            logger.error("Prerequisite check failed: %s", e)
            ctx.run_log.append("prerequisite_failed", str(e))
            self.summary.error = str(e)
            return self._finish(EXIT_FAILURE, save=False)
        self.summary.warnings.extend(self._prerequisites.warnings)

        # ── AwaitingReboot ──────────────────────────────────────
        if ctx.state.awaiting_reboot:
            if not self._rebooted_since_request():
                logger.warning(
                    "A reboot is pending (requested by %s); reboot and run again",
                    ", ".join(ctx.state.reboot_requested_by) or "an earlier run",
                )
                self.summary.reboot_required = True
                self.summary.error = "reboot pending from an earlier run"
                return self._finish(EXIT_REBOOT_REQUIRED, save=False)
            logger.info("Reboot detected, resuming")
            ctx.run_log.append("resumed_after_reboot", requested_by=ctx.state.reboot_requested_by)
            ctx.state.awaiting_reboot = False
            ctx.state.reboot_boot_id = None
            ctx.state.reboot_requested_by = []
            ctx.save_state()

        # ── RunningPhases ───────────────────────────────────────
        exit_code = EXIT_OK
        reboot_requested_by: list[str] = []
        try:
            for index, phase in enumerate(ordered):
                if ctx.state.is_succeeded(phase.name, phase.version):
                    logger.info("Phase %s: already succeeded, skipping", phase.name)
                    ctx.run_log.append("phase_skipped", "already succeeded", phase=phase.name)
                    self.summary.skip(phase.name)
                    continue

                result = self._executor.execute(phase)
                self.summary.add(result)
                if not result.succeeded:
                    exit_code = _failure_exit_code(result.exit_code)
                    logger.error("Halting: phase %s failed", phase.name)
                    break

                if phase.mutates_boot_config:
                    reboot_requested_by.append(phase.name)
                    if self._barrier(phase) and index < len(ordered) - 1:
                        logger.warning(
                            "Phase %s changed the boot configuration; stopping until reboot",
                            phase.name,
                        )
                        ctx.run_log.append("reboot_barrier", phase=phase.name)
                        break
        except KeyboardInterrupt:
            logger.error("Interrupted by operator")
            self.summary.error = "interrupted by operator"
            if reboot_requested_by:
                self._request_reboot(reboot_requested_by)
            return self._finish(EXIT_INTERRUPTED)

        # ── Reboot decision ─────────────────────────────────────
        if reboot_requested_by:
            self._request_reboot(reboot_requested_by)
            if exit_code == EXIT_OK:
                return self._reboot_or_defer()

        return self._finish(exit_code)

    # ── Reboot handling ─────────────────────────────────────────

    def _barrier(self, phase: Phase) -> bool:
        return phase.reboot_barrier or self._ctx.settings.reboot.barrier_after_boot_config

    def _rebooted_since_request(self) -> bool:
        recorded = self._ctx.state.reboot_boot_id
        current = self._ctx.host.boot_id()
        if recorded is None or current is None:
            # Boot identity unknown: trust the operator's re-invocation.
            return True
        return current != recorded

    def _request_reboot(self, requested_by: list[str]) -> None:
        ctx = self._ctx
        ctx.state.awaiting_reboot = True
        ctx.state.reboot_boot_id = ctx.host.boot_id()
        ctx.state.reboot_requested_by = requested_by
        self.summary.reboot_required = True
        ctx.run_log.append("reboot_required", requested_by=requested_by)

    def _reboot_or_defer(self) -> int:
        """Reboot now (reboot.auto) or tell the operator to. Finishes the run."""
        ctx = self._ctx
        if not ctx.settings.reboot.auto:
            logger.warning("Reboot required to apply boot configuration changes")
            return self._finish(EXIT_REBOOT_REQUIRED)

        # State and summary must be on disk before the machine goes down.
        self.summary.rebooting = True
        self._finish(EXIT_OK)
        try:
            ctx.services.reboot()
        except CommandError as e:
            logger.error("Automatic reboot failed: %s", e)
            self.summary.rebooting = False
            return self._finish(EXIT_REBOOT_REQUIRED)
        return EXIT_OK

    # ── Completion ──────────────────────────────────────────────

    def _finish(self, exit_code: int, save: bool = True) -> int:
        ctx = self._ctx
        self.summary.exit_code = exit_code
        if save:
            ctx.state.last_run_id = ctx.run_id
            ctx.state.last_exit_code = exit_code
            ctx.state.touch()
            ctx.save_state()

        path = self.summary.write(ctx.logs_dir)
        ctx.run_log.append(
            "run_finished",
            self.summary.status,
            exit_code=exit_code,
            summary=str(path) if path else None,
        )
        logger.info("Run %s finished: %s (exit %d)", ctx.run_id, self.summary.status, exit_code)
        return exit_code
