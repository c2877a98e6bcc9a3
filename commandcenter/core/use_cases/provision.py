"""
Provision use case — one full provisioning run.

Builds the RunContext, the Phase list and the Orchestrator, attaches the
per-run log file, and returns the exit code together with the summary.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from commandcenter.core.config.loader import ConfigError
from commandcenter.core.config.presets import PRESETS
from commandcenter.core.config.settings import Settings
from commandcenter.core.context import build_context
from commandcenter.core.engine.orchestrator import EXIT_FAILURE, EXIT_INTERRUPTED, Orchestrator
from commandcenter.core.errors import ProvisionError
from commandcenter.core.models.phase import Phase
from commandcenter.core.observability.logging_config import add_file_handler
from commandcenter.core.observability.summary import RunSummary
from commandcenter.phases import build_phases

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Outcome of ``run_provision``."""

    exit_code: int
    summary: RunSummary
    run_log: Path | None = None
    log_file: Path | None = None

    def to_dict(self) -> dict:
        data = self.summary.to_dict()
        data["run_log"] = str(self.run_log) if self.run_log else None
        data["log_file"] = str(self.log_file) if self.log_file else None
        return data


def apply_overrides(
    settings: Settings,
    *,
    auto: bool | None = None,
    auto_reboot: bool | None = None,
    preset: str | None = None,
) -> Settings:
    """Copy of ``settings`` with CLI overrides applied.

    Raises:
        ConfigError: If ``preset`` is unknown.
    """
    updated = settings.model_copy(deep=True)
    if auto is not None:
        updated.mode.auto = auto
    if auto_reboot is not None:
        updated.reboot.auto = auto_reboot
    if preset is not None:
        if preset not in PRESETS:
            raise ConfigError(f"Unknown preset '{preset}' (known: {', '.join(sorted(PRESETS))})")
        updated.boot.preset = preset
    return updated


def run_provision(
    settings: Settings,
    *,
    confirm: Callable[[str], bool] | None = None,
    phases: list[Phase] | None = None,
    log_to_file: bool = True,
    **adapters: Any,
) -> ProvisionResult:
    """Run every Phase of the plan for ``settings``.

    Args:
        settings: Effective settings (overrides already applied).
        confirm: Operator prompt for conflict resolution (interactive mode).
        phases: Phase list (default: the catalog for ``settings``).
        log_to_file: Attach ``provision-<run_id>.log`` in the logs dir.
        **adapters: Adapter overrides passed to ``build_context``.
    """
    ctx = build_context(settings, confirm=confirm, **adapters)
    log_file = Path(settings.paths.logs_dir) / f"provision-{ctx.run_id}.log"
    handler = add_file_handler(log_file, "INFO") if log_to_file else None

    orchestrator = Orchestrator(ctx)
    try:
        logger.info("Run %s starting (auto=%s, preset=%s)", ctx.run_id, ctx.auto, settings.boot.preset)
        try:
            plan = phases if phases is not None else build_phases(settings)
        except ProvisionError as e:
            logger.error("Cannot build the provisioning plan: %s", e)
            orchestrator.summary.error = str(e)
            orchestrator.summary.exit_code = EXIT_FAILURE
            return ProvisionResult(EXIT_FAILURE, orchestrator.summary, ctx.run_log.path)

        try:
            exit_code = orchestrator.run(plan)
        except KeyboardInterrupt:
            logger.error("Interrupted by operator")
            orchestrator.summary.error = "interrupted by operator"
            orchestrator.summary.exit_code = EXIT_INTERRUPTED
            exit_code = EXIT_INTERRUPTED
    finally:
        if handler is not None:
            logging.getLogger().removeHandler(handler)
            handler.close()

    return ProvisionResult(
        exit_code=exit_code,
        summary=orchestrator.summary,
        run_log=ctx.run_log.path,
        log_file=log_file if handler is not None else None,
    )
