"""
Conflict resolver — clear ports and container names before claiming them.

Ports: a free port proceeds. A port held by one of the caller's own
prior instances proceeds. Anything else is a conflict: in interactive
mode the operator may agree to terminate the occupant; in automatic
mode (or when the operator declines) the request is refused.

Containers: an existing container with the requested name, running or
stopped, is always stopped and removed. The policy is "replace with
fresh state", never "merge with existing".

Steps must obtain ``proceed=True`` before binding a port or creating a
container. ``assert_cleared`` is the guard that enforces it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from commandcenter.adapters.containers.docker import DockerRuntime
from commandcenter.adapters.system.host import HostInspector
from commandcenter.adapters.system.network import NetworkInspector
from commandcenter.core.errors import ConflictUnresolved, ProvisionError
from commandcenter.core.models.conflict import (
    ContainerRequest,
    PortBinding,
    PortRequest,
    Resolution,
)

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


def _never_confirm(_prompt: str) -> bool:
    return False


class ConflictResolver:
    """Pre-mutation collision check for ports and containers.

    Args:
        network: Source of current port bindings.
        docker: Container runtime.
        host: Used to terminate a port occupant the operator agreed to kill.
        interactive: Whether the operator may be asked. False = automatic mode.
        confirm: Prompt callable returning the operator's answer.
        release_timeout: Seconds to wait for a terminated occupant to free its port.
        on_resolution: Optional callback receiving every Resolution (run log).
    """

    def __init__(
        self,
        network: NetworkInspector,
        docker: DockerRuntime,
        host: HostInspector,
        *,
        interactive: bool = False,
        confirm: Confirm | None = None,
        release_timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        on_resolution: Callable[[Resolution], None] | None = None,
    ):
        self._network = network
        self._docker = docker
        self._host = host
        self._interactive = interactive
        self._confirm = confirm or _never_confirm
        self._release_timeout = release_timeout
        self._clock = clock
        self._sleep = sleep
        self._on_resolution = on_resolution
        self._cleared: set[str] = set()

    @property
    def interactive(self) -> bool:
        return self._interactive

    def resolve(self, request: PortRequest | ContainerRequest) -> Resolution:
        """Decide whether ``request`` may proceed, clearing what policy allows."""
        if isinstance(request, PortRequest):
            resolution = self._resolve_port(request)
        else:
            resolution = self._resolve_container(request)

        if resolution.proceed:
            self._cleared.add(request.key)
        else:
            self._cleared.discard(request.key)

        log = logger.info if resolution.proceed else logger.warning
        log("%s → %s (%s)", request.key, "proceed" if resolution.proceed else "refused", resolution.reason)
        if self._on_resolution is not None:
            self._on_resolution(resolution)
        return resolution

    def require(self, request: PortRequest | ContainerRequest) -> Resolution:
        """Resolve, raising ConflictUnresolved if the request may not proceed."""
        resolution = self.resolve(request)
        if not resolution.proceed:
            raise ConflictUnresolved(resolution.reason, resource=resolution.resource)
        return resolution

    def is_cleared(self, key: str) -> bool:
        return key in self._cleared

    def assert_cleared(self, *, container: str | None = None, ports: list[int] | None = None) -> None:
        """Guard for Steps that create a container or bind ports.

        Raises:
            ConflictUnresolved: If any resource lacks a prior proceed=True.
        """
        keys = []
        if container is not None:
            keys.append(ContainerRequest(name=container).key)
        keys += [PortRequest(port=p).key for p in ports or []]
        missing = [k for k in keys if k not in self._cleared]
        if missing:
            raise ConflictUnresolved(
                f"Resources not cleared by the conflict resolver: {', '.join(missing)}",
                resource=missing[0],
            )

    # ── Ports ───────────────────────────────────────────────────

    def _resolve_port(self, request: PortRequest) -> Resolution:
        try:
            occupants = self._occupants(request)
        except ProvisionError as e:
            return Resolution(proceed=False, resource=request.key, reason=f"cannot read port bindings: {e}")

        if not occupants:
            return Resolution(proceed=True, resource=request.key, reason="port is free")

        foreign = [b for b in occupants if not b.process or b.process not in request.own_processes]
        if not foreign:
            return Resolution(
                proceed=True,
                resource=request.key,
                reason=f"held by own prior instance ({occupants[0].process})",
                occupant=occupants[0],
            )

        occupant = foreign[0]
        label = _describe(occupant)
        if not self._interactive:
            return Resolution(
                proceed=False,
                resource=request.key,
                reason=f"port {request.port} is in use by {label} (automatic mode, not terminating)",
                occupant=occupant,
            )

        if occupant.pid is None:
            return Resolution(
                proceed=False,
                resource=request.key,
                reason=f"port {request.port} is in use by {label} and its process cannot be identified",
                occupant=occupant,
            )

        service = f" for {request.service}" if request.service else ""
        if not self._confirm(f"Port {request.port}{service} is in use by {label}. Terminate it?"):
            return Resolution(
                proceed=False,
                resource=request.key,
                reason=f"operator declined to terminate {label} on port {request.port}",
                occupant=occupant,
            )

        for binding in foreign:
            if binding.pid is None:
                continue
            try:
                self._host.terminate(binding.pid)
            except ProcessLookupError:
                logger.info("Process %d on port %d already exited", binding.pid, request.port)
            except OSError as e:
                return Resolution(
                    proceed=False,
                    resource=request.key,
                    reason=f"cannot terminate {label} on port {request.port}: {e}",
                    occupant=occupant,
                )

        if self._wait_released(request):
            return Resolution(
                proceed=True,
                resource=request.key,
                reason=f"terminated {label} holding port {request.port}",
                occupant=occupant,
            )
        return Resolution(
            proceed=False,
            resource=request.key,
            reason=f"port {request.port} still in use after terminating {label}",
            occupant=occupant,
        )

    def _occupants(self, request: PortRequest) -> list[PortBinding]:
        return [b for b in self._network.port_bindings(request.protocol) if b.port == request.port]

    def _wait_released(self, request: PortRequest) -> bool:
        deadline = self._clock() + self._release_timeout
        while True:
            remaining = [
                b for b in self._occupants(request)
                if not b.process or b.process not in request.own_processes
            ]
            if not remaining:
                return True
            if self._clock() >= deadline:
                return False
            self._sleep(0.5)

    # ── Containers ──────────────────────────────────────────────

    def _resolve_container(self, request: ContainerRequest) -> Resolution:
        try:
            existing = self._docker.find(request.name)
        except ProvisionError as e:
            return Resolution(proceed=False, resource=request.key, reason=f"cannot list containers: {e}")

        if not existing:
            return Resolution(proceed=True, resource=request.key, reason="no existing container")

        record = existing[0]
        try:
            if record.running:
                logger.info("Stopping container %s", request.name)
                self._docker.stop(request.name)
            logger.info("Removing container %s", request.name)
            self._docker.remove(request.name)
        except ProvisionError as e:
            return Resolution(
                proceed=False,
                resource=request.key,
                reason=f"could not remove existing container {request.name}: {e}",
                occupant=record,
            )

        try:
            leftover = self._docker.find(request.name)
        except ProvisionError as e:
            return Resolution(proceed=False, resource=request.key, reason=f"cannot list containers: {e}")
        if leftover:
            return Resolution(
                proceed=False,
                resource=request.key,
                reason=f"container {request.name} still present after removal",
                occupant=record,
            )
        return Resolution(
            proceed=True,
            resource=request.key,
            reason=f"replaced existing {record.state or 'unknown'} container {request.name}",
            occupant=record,
        )


def _describe(binding: PortBinding) -> str:
    if binding.process and binding.pid is not None:
        return f"{binding.process} (pid {binding.pid})"
    if binding.process:
        return binding.process
    return "an unknown process"
