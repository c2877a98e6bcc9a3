"""
Run context — everything a Step needs, passed explicitly.

One RunContext is built per invocation by ``build_context`` and handed
down Orchestrator → Phase Executor → Step. It carries the settings, the
run identity, the persisted RunState, the run log, and the adapters
(real ones in production, mocks in tests). There is no module-level
state: two contexts never share anything but the filesystem.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from commandcenter.adapters.containers.docker import DockerRuntime
from commandcenter.adapters.shell.command import CommandRunner
from commandcenter.adapters.system.host import HostInspector
from commandcenter.adapters.system.network import NetworkInspector
from commandcenter.adapters.system.systemd import ServiceManager
from commandcenter.core.config.settings import Settings
from commandcenter.core.engine.mutator import ConfigMutator
from commandcenter.core.engine.resolver import ConflictResolver
from commandcenter.core.engine.validator import ServiceValidator
from commandcenter.core.models.config_block import MutationResult
from commandcenter.core.models.conflict import Resolution
from commandcenter.core.models.state import RunState
from commandcenter.core.models.validation import Outcome, ValidationCheck
from commandcenter.core.persistence.run_log import RunLog
from commandcenter.core.persistence.state_file import default_state_path, load_state, save_state

logger = logging.getLogger(__name__)


def new_run_id() -> str:
    """Sortable, collision-resistant run identifier."""
    return f"{datetime.now().strftime('%Y%m%d-%H%M%S')}-{secrets.token_hex(3)}"


@dataclass
class RunContext:
    """Explicit per-run state shared by the core components."""

    settings: Settings
    run_id: str
    state: RunState
    state_path: Path
    run_log: RunLog

    runner: CommandRunner
    docker: DockerRuntime
    services: ServiceManager
    network: NetworkInspector
    host: HostInspector

    mutator: ConfigMutator
    resolver: ConflictResolver
    validator: ServiceValidator

    auto: bool = False
    sleep: Callable[[float], None] = time.sleep
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("commandcenter.run"))

    @property
    def interactive(self) -> bool:
        return not self.auto

    @property
    def logs_dir(self) -> Path:
        return Path(self.settings.paths.logs_dir)

    def save_state(self) -> None:
        save_state(self.state, self.state_path)


def build_context(
    settings: Settings,
    *,
    auto: bool | None = None,
    confirm: Callable[[str], bool] | None = None,
    run_id: str | None = None,
    runner: CommandRunner | None = None,
    docker: DockerRuntime | None = None,
    services: ServiceManager | None = None,
    network: NetworkInspector | None = None,
    host: HostInspector | None = None,
    clock: Callable[[], float] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> RunContext:
    """Wire adapters and core components for one invocation.

    Any adapter left as None gets its production implementation.
    ``auto`` defaults to ``settings.mode.auto``.
    """
    auto = settings.mode.auto if auto is None else auto
    run_id = run_id or new_run_id()

    runner = runner or CommandRunner()
    docker = docker or DockerRuntime(runner)
    services = services or ServiceManager(runner)
    network = network or NetworkInspector(runner)
    host = host or HostInspector()

    state_path = default_state_path(settings.paths.state_dir)
    state = load_state(state_path)
    run_log = RunLog.for_run(settings.paths.logs_dir, run_id)

    def on_mutation(result: MutationResult) -> None:
        run_log.append(
            "mutation",
            f"{result.operation} {result.path}",
            path=result.path,
            operation=result.operation,
            owner=result.owner,
            created=result.created,
            backup=result.backup.path if result.backup else None,
        )

    def on_resolution(resolution: Resolution) -> None:
        run_log.append(
            "conflict",
            resolution.reason,
            resource=resolution.resource,
            proceed=resolution.proceed,
        )

    def on_outcome(capability: str, check: ValidationCheck, outcome: Outcome) -> None:
        run_log.append(
            "validation",
            f"{capability}: {'ready' if outcome.ready else 'unverified'}",
            capability=capability,
            kind=check.kind.value,
            target=check.target,
            ready=outcome.ready,
            attempts=outcome.attempts,
            elapsed=round(outcome.elapsed, 2),
        )

    timing = {}
    if clock is not None:
        timing["clock"] = clock
    if sleep is not None:
        timing["sleep"] = sleep

    mutator = ConfigMutator(on_mutation=on_mutation)
    resolver = ConflictResolver(
        network,
        docker,
        host,
        interactive=not auto,
        confirm=confirm,
        on_resolution=on_resolution,
        **timing,
    )
    validator = ServiceValidator(services, network, on_outcome=on_outcome, **timing)

    return RunContext(
        settings=settings,
        run_id=run_id,
        state=state,
        state_path=state_path,
        run_log=run_log,
        runner=runner,
        docker=docker,
        services=services,
        network=network,
        host=host,
        mutator=mutator,
        resolver=resolver,
        validator=validator,
        auto=auto,
        sleep=sleep or time.sleep,
    )
