"""
Command runner — execute external programs with consistent logging.

Every package-manager, service-manager and container-runtime call goes
through here, so this is where the mutation policy is enforced a second
time (the first is when a command Step is built).
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from commandcenter.core.engine.policy import check_command
from commandcenter.core.errors import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one command."""

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


class CommandRunner:
    """Run commands and capture their output.

    Args:
        default_timeout: Seconds before a command is killed.
        env: Extra environment merged over os.environ for every call.
    """

    def __init__(self, default_timeout: float = 1800, env: Mapping[str, str] | None = None):
        self._default_timeout = default_timeout
        self._env = dict(env or {})

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
    ) -> CommandResult:
        """Run ``argv``.

        Raises:
            PolicyViolation: If the command is forbidden.
            CommandError: If ``check`` and the command exits non-zero,
                times out (code 124) or cannot be started (code 127).
        """
        argv_list = list(argv)
        check_command(argv_list)

        logger.info("CMD %s", format_argv(argv_list))
        timeout = timeout if timeout is not None else self._default_timeout
        start = time.monotonic()

        try:
            proc = subprocess.run(
                argv_list,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout,
                env={**os.environ, **self._env, **(env or {})},
            )
            result = CommandResult(
                argv=argv_list,
                returncode=proc.returncode,
                stdout=proc.stdout or "",
                stderr=proc.stderr or "",
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        except subprocess.TimeoutExpired:
            result = CommandResult(
                argv=argv_list,
                returncode=124,
                stderr=f"timed out after {timeout:g}s",
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        except FileNotFoundError as e:
            result = CommandResult(argv=argv_list, returncode=127, stderr=str(e))

        if result.stdout:
            logger.debug("STDOUT %s", result.stdout.strip())
        if result.stderr:
            logger.debug("STDERR %s", result.stderr.strip())

        if check and not result.ok:
            raise CommandError(argv_list, result.returncode, result.stderr)
        return result

    def which(self, program: str) -> bool:
        """Whether ``program`` is on PATH."""
        from shutil import which

        return which(program) is not None
