"""
Network inspector — listening sockets, TCP/HTTP reachability, internet.

Port bindings are read from ``ss``; reachability checks use plain
sockets and urllib so they work before any package is installed.
"""

from __future__ import annotations

import logging
import re
import socket
import urllib.error
import urllib.request

from commandcenter.adapters.shell.command import CommandRunner
from commandcenter.core.models.conflict import PortBinding

logger = logging.getLogger(__name__)

# users:(("hass",pid=812,fd=9),("python3",pid=813,fd=9))
_USERS_RE = re.compile(r'\("(?P<process>[^"]+)",pid=(?P<pid>\d+)')


def parse_ss_output(output: str, protocol: str = "tcp") -> list[PortBinding]:
    """Parse ``ss -H -ltnp`` / ``ss -H -lunp`` output into PortBindings.

    Columns: State Recv-Q Send-Q Local-Address:Port Peer-Address:Port [Process]
    """
    bindings: list[PortBinding] = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 4:
            continue
        local = parts[3]
        address, _, port_text = local.rpartition(":")
        if not port_text.isdigit():
            continue
        process_field = " ".join(parts[5:]) if len(parts) > 5 else ""
        match = _USERS_RE.search(process_field)
        bindings.append(
            PortBinding(
                port=int(port_text),
                protocol=protocol,
                address=address.strip("[]") or "*",
                process=match.group("process") if match else None,
                pid=int(match.group("pid")) if match else None,
            )
        )
    return bindings


class NetworkInspector:
    """Read-only network observations."""

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    def port_bindings(self, protocol: str = "tcp") -> list[PortBinding]:
        """Listening sockets for ``protocol`` (tcp or udp)."""
        flag = "-ltnp" if protocol == "tcp" else "-lunp"
        result = self._runner.run(["ss", "-H", flag], timeout=15)
        return parse_ss_output(result.stdout, protocol=protocol)

    def bindings_for(self, port: int, protocol: str = "tcp") -> list[PortBinding]:
        return [b for b in self.port_bindings(protocol) if b.port == port]

    @staticmethod
    def tcp_open(host: str, port: int, timeout: float = 3.0) -> bool:
        """Whether a TCP connection to host:port succeeds."""
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError:
            return False

    @staticmethod
    def http_ok(url: str, timeout: float = 5.0) -> bool:
        """Whether ``url`` answers with any HTTP status below 500."""
        req = urllib.request.Request(url, method="GET", headers={"User-Agent": "commandcenter/1.0"})
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                return resp.getcode() < 500
        except urllib.error.HTTPError as e:
            return e.code < 500
        except (urllib.error.URLError, OSError, ValueError):
            return False

    def internet_reachable(self, hosts: list[str], port: int = 53, timeout: float = 5.0) -> bool:
        """Whether any of ``hosts`` accepts a TCP connection."""
        for host in hosts:
            if self.tcp_open(host, port, timeout=timeout):
                logger.info("Internet connectivity confirmed (via %s)", host)
                return True
        return False
