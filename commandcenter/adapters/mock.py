"""
Mock adapters — in-memory test doubles for every OS-facing adapter.

Each mock keeps a call log so tests can assert what would have been
executed, and exposes small knobs to script failures and state.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from commandcenter.adapters.containers.docker import ContainerSpec, DockerRuntime
from commandcenter.adapters.shell.command import CommandResult, CommandRunner
from commandcenter.adapters.system.host import HostInspector
from commandcenter.adapters.system.network import NetworkInspector
from commandcenter.adapters.system.systemd import ServiceManager
from commandcenter.core.engine.policy import check_command
from commandcenter.core.errors import CommandError
from commandcenter.core.models.conflict import ContainerRecord, PortBinding


class MockCommandRunner(CommandRunner):
    """Records commands instead of running them.

    Responses are matched by argv prefix; the longest matching prefix wins.
    Unmatched commands succeed with empty output.
    """

    def __init__(self, available: Sequence[str] = ()):
        super().__init__()
        self._responses: dict[tuple[str, ...], CommandResult] = {}
        self._available = set(available)
        self.call_log: list[list[str]] = []

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    def set_response(self, prefix: Sequence[str], stdout: str = "", returncode: int = 0, stderr: str = "") -> None:
        self._responses[tuple(prefix)] = CommandResult(
            argv=list(prefix), returncode=returncode, stdout=stdout, stderr=stderr
        )

    def set_failure(self, prefix: Sequence[str], returncode: int = 1, stderr: str = "mock failure") -> None:
        self.set_response(prefix, returncode=returncode, stderr=stderr)

    def ran(self, prefix: Sequence[str]) -> bool:
        """Whether any recorded command starts with ``prefix``."""
        n = len(prefix)
        return any(tuple(argv[:n]) == tuple(prefix) for argv in self.call_log)

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
    ) -> CommandResult:
        argv_list = list(argv)
        check_command(argv_list)
        self.call_log.append(argv_list)

        matches = [p for p in self._responses if tuple(argv_list[: len(p)]) == p]
        if matches:
            canned = self._responses[max(matches, key=len)]
            result = CommandResult(
                argv=argv_list, returncode=canned.returncode, stdout=canned.stdout, stderr=canned.stderr
            )
        else:
            result = CommandResult(argv=argv_list, returncode=0)

        if check and not result.ok:
            raise CommandError(argv_list, result.returncode, result.stderr)
        return result

    def which(self, program: str) -> bool:
        return program in self._available

    def reset(self) -> None:
        self.call_log.clear()
        self._responses.clear()


class MockHost(HostInspector):
    """Static host facts."""

    def __init__(
        self,
        root: bool = True,
        free_gb: float = 32.0,
        boot_id: str | None = "boot-1",
        model: str | None = "Raspberry Pi 5 Model B Rev 1.0",
    ):
        self.root = root
        self.free_gb = free_gb
        self.current_boot_id = boot_id
        self.current_model = model
        self.terminated: list[int] = []
        self.on_terminate = None   # optional callable(pid)

    def is_root(self) -> bool:
        return self.root

    def free_bytes(self, path: str = "/") -> int:
        return int(self.free_gb * 1024**3)

    def boot_id(self) -> str | None:
        return self.current_boot_id

    def model(self) -> str | None:
        return self.current_model

    def terminate(self, pid: int) -> None:
        self.terminated.append(pid)
        if self.on_terminate is not None:
            self.on_terminate(pid)


class MockNetworkInspector(NetworkInspector):
    """Scripted sockets, ports and URLs."""

    def __init__(self, online: bool = True):
        super().__init__(MockCommandRunner())
        self.online = online
        self.bindings: list[PortBinding] = []
        self.open_ports: set[int] = set()
        self.reachable_urls: set[str] = set()

    def bind(self, port: int, process: str | None = None, pid: int | None = None) -> PortBinding:
        binding = PortBinding(port=port, process=process, pid=pid)
        self.bindings.append(binding)
        self.open_ports.add(port)
        return binding

    def release(self, port: int) -> None:
        self.bindings = [b for b in self.bindings if b.port != port]
        self.open_ports.discard(port)

    def port_bindings(self, protocol: str = "tcp") -> list[PortBinding]:
        return [b for b in self.bindings if b.protocol == protocol]

    def tcp_open(self, host: str, port: int, timeout: float = 3.0) -> bool:
        return port in self.open_ports

    def http_ok(self, url: str, timeout: float = 5.0) -> bool:
        return url in self.reachable_urls

    def internet_reachable(self, hosts: list[str], port: int = 53, timeout: float = 5.0) -> bool:
        return self.online


class MockDockerRuntime(DockerRuntime):
    """In-memory container runtime."""

    def __init__(self, available: bool = True):
        super().__init__(MockCommandRunner())
        self.available = available
        self.containers: dict[str, ContainerRecord] = {}
        self.specs: dict[str, ContainerSpec] = {}
        self.pulled: list[str] = []
        self.fail_remove: set[str] = set()
        self.call_log: list[tuple[str, str]] = []

    def add(self, name: str, state: str = "running", image: str = "") -> ContainerRecord:
        record = ContainerRecord(name=name, id=f"id-{name}", image=image, state=state)
        self.containers[name] = record
        return record

    def is_available(self) -> bool:
        return self.available

    def daemon_running(self) -> bool:
        return self.available

    def list_containers(self) -> list[ContainerRecord]:
        if not self.available:
            raise CommandError(["docker", "ps"], 1, "Cannot connect to the Docker daemon")
        return list(self.containers.values())

    def stop(self, name: str, timeout: int = 30) -> None:
        self.call_log.append(("stop", name))
        if name in self.containers:
            self.containers[name].state = "exited"

    def remove(self, name: str) -> None:
        self.call_log.append(("remove", name))
        if name in self.fail_remove:
            raise CommandError(["docker", "rm", "-f", name], 1, "removal in progress")
        self.containers.pop(name, None)
        self.specs.pop(name, None)

    def pull(self, image: str) -> None:
        self.call_log.append(("pull", image))
        self.pulled.append(image)

    def run(self, spec: ContainerSpec) -> str:
        self.call_log.append(("run", spec.name))
        if spec.name in self.containers:
            raise CommandError(["docker", "run", "--name", spec.name], 125, "container name already in use")
        self.add(spec.name, state="running", image=spec.image)
        self.specs[spec.name] = spec
        return f"id-{spec.name}"


class MockServiceManager(ServiceManager):
    """In-memory systemd.

    ``activate_after`` maps a unit to the number of ``is_active`` polls
    that must happen before it reports active.
    """

    def __init__(self):
        super().__init__(MockCommandRunner())
        self.active: set[str] = set()
        self.enabled: set[str] = set()
        self.activate_after: dict[str, int] = {}
        self.default_target: str | None = None
        self.reboots = 0
        self.call_log: list[tuple[str, str]] = []
        self.timeouts: list[float] = []

    def is_active(self, unit: str, timeout: float = 30) -> bool:
        self.timeouts.append(timeout)
        if unit in self.activate_after:
            self.activate_after[unit] -= 1
            if self.activate_after[unit] <= 0:
                del self.activate_after[unit]
                self.active.add(unit)
        return unit in self.active

    def is_enabled(self, unit: str) -> bool:
        return unit in self.enabled

    def enable(self, unit: str, now: bool = False) -> None:
        self.call_log.append(("enable", unit))
        self.enabled.add(unit)
        if now:
            self.active.add(unit)

    def start(self, unit: str) -> None:
        self.call_log.append(("start", unit))
        self.active.add(unit)

    def restart(self, unit: str) -> None:
        self.call_log.append(("restart", unit))
        self.active.add(unit)

    def disable(self, unit: str) -> None:
        self.call_log.append(("disable", unit))
        self.enabled.discard(unit)

    def daemon_reload(self) -> None:
        self.call_log.append(("daemon-reload", ""))

    def set_default_target(self, target: str) -> None:
        self.call_log.append(("set-default", target))
        self.default_target = target

    def reboot(self) -> None:
        self.call_log.append(("reboot", ""))
        self.reboots += 1
