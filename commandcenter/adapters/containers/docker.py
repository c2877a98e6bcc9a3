"""
Docker runtime adapter — observe and act on containers.

Uses the docker CLI, never the Docker API directly. Observations come
back as ContainerRecord models; actions raise CommandError on failure.
"""

from __future__ import annotations

import json
import logging

from pydantic import BaseModel, Field

from commandcenter.adapters.shell.command import CommandRunner
from commandcenter.core.models.conflict import ContainerRecord

logger = logging.getLogger(__name__)


class ContainerSpec(BaseModel):
    """Everything needed to ``docker run -d`` a service container."""

    name: str
    image: str
    env: dict[str, str] = Field(default_factory=dict)
    volumes: list[str] = Field(default_factory=list)     # "host:container[:mode]"
    ports: list[int] = Field(default_factory=list)       # published on the host, same number inside
    network: str | None = None                           # e.g. "host"
    privileged: bool = False
    restart: str = "unless-stopped"

    def run_args(self) -> list[str]:
        """Arguments for ``docker run``."""
        args = ["run", "-d", "--name", self.name, f"--restart={self.restart}"]
        if self.privileged:
            args.append("--privileged")
        if self.network:
            args.append(f"--network={self.network}")
        for key, value in sorted(self.env.items()):
            args += ["-e", f"{key}={value}"]
        for volume in self.volumes:
            args += ["-v", volume]
        if self.network != "host":
            for port in self.ports:
                args += ["-p", f"{port}:{port}"]
        args.append(self.image)
        return args


class DockerRuntime:
    """Container operations through the docker CLI."""

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    def is_available(self) -> bool:
        return self._runner.which("docker")

    def daemon_running(self) -> bool:
        result = self._runner.run(["docker", "info", "--format", "{{.ServerVersion}}"], check=False, timeout=15)
        return result.ok

    # ── Observe ─────────────────────────────────────────────────

    def list_containers(self) -> list[ContainerRecord]:
        """All containers, running or stopped."""
        result = self._runner.run(["docker", "ps", "-a", "--format", "{{json .}}"], timeout=30)
        records: list[ContainerRecord] = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            try:
                info = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Skipping unparsable docker ps line: %s", line)
                continue
            records.append(
                ContainerRecord(
                    name=info.get("Names", ""),
                    id=info.get("ID", ""),
                    image=info.get("Image", ""),
                    state=info.get("State", ""),
                )
            )
        return records

    def find(self, name: str) -> list[ContainerRecord]:
        """Containers whose name is exactly ``name``."""
        return [c for c in self.list_containers() if c.name == name]

    # ── Act ─────────────────────────────────────────────────────

    def stop(self, name: str, timeout: int = 30) -> None:
        self._runner.run(["docker", "stop", "-t", str(timeout), name], timeout=timeout + 30)

    def remove(self, name: str) -> None:
        self._runner.run(["docker", "rm", "-f", name], timeout=60)

    def pull(self, image: str) -> None:
        self._runner.run(["docker", "pull", image], timeout=1800)

    def run(self, spec: ContainerSpec) -> str:
        """Start a container and return its id."""
        result = self._runner.run(["docker", *spec.run_args()], timeout=300)
        container_id = result.stdout.strip()
        logger.info("Started container %s (%s)", spec.name, container_id[:12])
        return container_id
