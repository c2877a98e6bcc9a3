"""
Error taxonomy — every failure the provisioning core can classify.

Fatal errors stop the owning Phase (and therefore the run). Non-fatal
ones are captured as warnings and surfaced in the run summary.

    PrerequisiteError     fatal, raised before any mutation
    ConfigMutationError   fatal for the owning Phase, backup preserved
    ConflictUnresolved    fatal for the Step that needed the resource
    PolicyViolation       fatal, forbidden operation requested
    CommandError          fatal when the Step is FailFast
    PackageInstallWarning non-fatal, aggregated per Phase
    ValidationTimeout     non-fatal, capability downgraded to "unverified"
"""

from __future__ import annotations

from collections.abc import Sequence


class ProvisionError(Exception):
    """Base class for all provisioning errors."""

    fatal: bool = True


class PrerequisiteError(ProvisionError):
    """A global precondition does not hold. Nothing has been mutated."""


class ConfigMutationError(ProvisionError):
    """A managed configuration file could not be rewritten.

    The most recent backup (if any) is kept for manual recovery.
    """

    def __init__(self, message: str, path: str = "", backup: str | None = None):
        super().__init__(message)
        self.path = path
        self.backup = backup


class ConflictUnresolved(ProvisionError):
    """A port or container collision was not cleared."""

    def __init__(self, message: str, resource: str = ""):
        super().__init__(message)
        self.resource = resource


class PolicyViolation(ProvisionError):
    """A hard-forbidden operation (full upgrade, firmware rewrite) was requested."""


class CommandError(ProvisionError):
    """An external command exited non-zero.

    ``returncode`` is propagated verbatim as the process exit code when
    the failing Step was FailFast.
    """

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"Command failed ({returncode}): {' '.join(self.argv)}{detail}")


class PackageInstallWarning(ProvisionError):
    """A single package could not be installed. Never fails the Phase."""

    fatal = False

    def __init__(self, package: str, reason: str = ""):
        super().__init__(f"Package '{package}' not installed" + (f": {reason}" if reason else ""))
        self.package = package


class ValidationTimeout(ProvisionError):
    """A validation check did not pass within its time budget."""

    fatal = False

    def __init__(self, capability: str, target: str, timeout: float):
        super().__init__(f"{capability}: {target} not ready after {timeout:g}s")
        self.capability = capability
        self.target = target
        self.timeout = timeout
