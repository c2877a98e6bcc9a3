"""
Conflict models — observed system facts and resolution requests.

PortBinding and ContainerRecord are read from the OS and the container
runtime; the core never owns them. Requests describe what a Step is
about to create; a Resolution says whether it may go ahead.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class PortBinding(BaseModel):
    """A listening socket and the process that owns it."""

    port: int
    protocol: str = "tcp"
    address: str = "*"
    process: str | None = None
    pid: int | None = None


class ContainerRecord(BaseModel):
    """A container known to the runtime, running or stopped."""

    name: str
    id: str = ""
    image: str = ""
    state: str = ""          # running, exited, created, ...

    @property
    def running(self) -> bool:
        return self.state.lower() == "running"


class PortRequest(BaseModel):
    """Intent to bind a port.

    ``own_processes`` lists process names that are recognized as a prior
    instance of the caller's own service; such an occupant is not a
    conflict.
    """

    port: int
    protocol: str = "tcp"
    service: str = ""
    own_processes: list[str] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return f"port:{self.protocol}/{self.port}"


class ContainerRequest(BaseModel):
    """Intent to (re)create a container with a fixed name."""

    name: str
    service: str = ""

    @property
    def key(self) -> str:
        return f"container:{self.name}"


class Resolution(BaseModel):
    """Whether the requested resource may be claimed."""

    proceed: bool
    reason: str = ""
    resource: str = ""
    occupant: PortBinding | ContainerRecord | None = None
