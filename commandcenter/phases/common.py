"""
Step building blocks shared by the feature Phases.

Every helper returns (or appends) a Step whose action takes the
RunContext. Commands are checked against the mutation policy when the
Step is built, so a forbidden operation can never enter a Phase.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from commandcenter.adapters.containers.docker import ContainerSpec
from commandcenter.core.context import RunContext
from commandcenter.core.engine.policy import check_command
from commandcenter.core.errors import CommandError, PackageInstallWarning
from commandcenter.core.models.conflict import ContainerRequest, PortRequest
from commandcenter.core.models.phase import FailurePolicy, Phase, Step
from commandcenter.core.models.validation import CheckKind, ValidationCheck
from commandcenter.core.reliability.retry import retry_call

logger = logging.getLogger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


# ── Commands ────────────────────────────────────────────────────


def command_step(
    phase: Phase,
    name: str,
    argv: Sequence[str],
    *,
    policy: FailurePolicy = FailurePolicy.FAIL_FAST,
    description: str = "",
    attempts: int = 1,
    env: dict[str, str] | None = None,
) -> Step:
    """Append a Step that runs one external command.

    Raises:
        PolicyViolation: If ``argv`` is a forbidden operation.
    """
    argv = list(argv)
    check_command(argv)

    def action(ctx: RunContext) -> None:
        retry_call(
            lambda: ctx.runner.run(argv, env=env),
            attempts=attempts,
            retry_on=(CommandError,),
            sleep=ctx.sleep,
            label=" ".join(argv[:3]),
        )

    return phase.add(name, action, policy=policy, description=description or " ".join(argv))


def apt_update_step(phase: Phase) -> Step:
    return command_step(
        phase,
        "apt-update",
        ["apt-get", "update"],
        description="Refresh package lists",
        attempts=3,
        env=APT_ENV,
    )


def install_package(ctx: RunContext, package: str) -> None:
    """Install a single package, never upgrading the rest of the system.

    Raises:
        PackageInstallWarning: If the package could not be installed.
    """
    argv = ["apt-get", "install", "-y", "--no-install-recommends", package]
    try:
        ctx.runner.run(argv, env=APT_ENV)
    except CommandError as e:
        raise PackageInstallWarning(package, e.stderr.strip() or f"exit {e.returncode}") from e


def apt_install_steps(phase: Phase, packages: Sequence[str], group: str = "") -> list[Step]:
    """One BestEffort Step per package, so one failure never hides the others."""
    steps = []
    for package in packages:
        steps.append(
            phase.add(
                f"install-{package}",
                lambda ctx, p=package: install_package(ctx, p),
                policy=FailurePolicy.BEST_EFFORT,
                description=f"Install {package}" + (f" ({group})" if group else ""),
            )
        )
    return steps


# ── Files ───────────────────────────────────────────────────────


def file_step(
    phase: Phase,
    name: str,
    path: str,
    content: str,
    *,
    policy: FailurePolicy = FailurePolicy.FAIL_FAST,
    mode: int | None = None,
) -> Step:
    """Append a Step that writes a whole managed file (under ``paths.root``)."""

    def action(ctx: RunContext) -> None:
        ctx.mutator.write_file(ctx.settings.system_path(path), content, owner=phase.name, mode=mode)

    return phase.add(name, action, policy=policy, description=f"Write {path}")


def managed_block(name: str) -> tuple[str, str]:
    """Begin/end markers for a named managed region in a shared file."""
    return f"# BEGIN commandcenter {name}", f"# END commandcenter {name}"


def ensure_dirs(paths: Sequence[Path]) -> None:
    for path in paths:
        path.mkdir(parents=True, exist_ok=True)


# ── Services ────────────────────────────────────────────────────


def enable_service_step(
    phase: Phase,
    unit: str,
    *,
    policy: FailurePolicy = FailurePolicy.FAIL_FAST,
) -> Step:
    return phase.add(
        f"enable-{unit}",
        lambda ctx: ctx.services.enable(unit, now=True),
        policy=policy,
        description=f"Enable and start {unit}",
    )


def validate_step(
    phase: Phase,
    capability: str,
    kind: CheckKind,
    target: str,
    *,
    timeout: float | None = None,
) -> Step:
    """Append a Step confirming ``capability``; a timeout only downgrades it."""

    def action(ctx: RunContext) -> None:
        settings = ctx.settings.validation
        check = ValidationCheck(
            kind=kind,
            target=target,
            timeout=settings.timeout if timeout is None else timeout,
            interval=settings.interval,
        )
        ctx.validator.confirm(check, capability)

    return phase.add(f"validate-{capability}", action, description=f"Validate {capability} ({target})")


def add_user_to_group(ctx: RunContext, group: str) -> None:
    user = ctx.settings.effective_user
    if user == "root":
        return
    ctx.runner.run(["usermod", "-a", "-G", group, user])


# ── Conflicts ───────────────────────────────────────────────────


def clear_port_step(
    phase: Phase,
    port: int,
    *,
    service: str,
    own_processes: Sequence[str] = (),
) -> Step:
    """Append a Step that must obtain proceed=True for ``port``."""
    request = PortRequest(port=port, service=service, own_processes=list(own_processes))
    return phase.add(
        f"clear-port-{port}",
        lambda ctx: ctx.resolver.require(request),
        description=f"Check port {port} for {service}",
    )


def launch_container(ctx: RunContext, spec: ContainerSpec, ports: Sequence[int] = ()) -> str:
    """Replace any container named ``spec.name`` and start a fresh one.

    The name and every port must be cleared by the resolver first; an
    uncleared resource raises ConflictUnresolved before anything starts.
    """
    ctx.resolver.require(ContainerRequest(name=spec.name, service=spec.name))
    for port in ports:
        ctx.resolver.require(PortRequest(port=port, service=spec.name))

    retry_call(
        lambda: ctx.docker.pull(spec.image),
        attempts=3,
        retry_on=(CommandError,),
        sleep=ctx.sleep,
        label=f"pull {spec.image}",
    )

    ctx.resolver.assert_cleared(container=spec.name, ports=list(ports))
    return ctx.docker.run(spec)
