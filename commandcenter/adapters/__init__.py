"""Adapters — the only code that touches the operating system.

Public re-exports for convenient access.
"""

from commandcenter.adapters.containers.docker import DockerRuntime
from commandcenter.adapters.shell.command import CommandResult, CommandRunner
from commandcenter.adapters.system.host import HostInspector
from commandcenter.adapters.system.network import NetworkInspector
from commandcenter.adapters.system.systemd import ServiceManager

__all__ = [
    "CommandResult",
    "CommandRunner",
    "DockerRuntime",
    "HostInspector",
    "NetworkInspector",
    "ServiceManager",
]
