"""
Mutation policy — operations the provisioning system never performs.

Full package-set upgrades and firmware/bootloader rewrites are excluded
from the Step vocabulary: a failure half-way through either cannot be
recovered by backup-and-retry. The check is not configurable.
"""

from __future__ import annotations

import os
from collections.abc import Sequence

from commandcenter.core.errors import PolicyViolation

_PACKAGE_MANAGERS = {"apt", "apt-get", "aptitude"}
_UPGRADE_VERBS = {"upgrade", "full-upgrade", "dist-upgrade"}
_FIRMWARE_TOOLS = {"rpi-update", "rpi-eeprom-update", "rpi-eeprom-config", "flashrom"}


def _strip_prefix(argv: Sequence[str]) -> list[str]:
    """Drop sudo/env wrappers and VAR=value assignments."""
    rest = list(argv)
    while rest:
        head = os.path.basename(rest[0])
        if head in {"sudo", "env", "nice", "ionice"} or "=" in rest[0]:
            rest = rest[1:]
            continue
        if head.startswith("-"):
            rest = rest[1:]
            continue
        break
    return rest


def violation(argv: Sequence[str]) -> str | None:
    """Return why ``argv`` is forbidden, or None if it is allowed."""
    rest = _strip_prefix(argv)
    if not rest:
        return None

    tool = os.path.basename(rest[0])
    if tool in _FIRMWARE_TOOLS:
        return f"firmware/bootloader rewrite via '{tool}' is not allowed"

    if tool in _PACKAGE_MANAGERS:
        verbs = [a for a in rest[1:] if not a.startswith("-")]
        hit = next((v for v in verbs if v in _UPGRADE_VERBS), None)
        if hit and not {"install", "remove", "purge"} & set(verbs[: verbs.index(hit)]):
            return f"full package-set '{tool} {hit}' is not allowed"

    if tool in {"sh", "bash"} and "-c" in rest:
        script = rest[rest.index("-c") + 1] if rest.index("-c") + 1 < len(rest) else ""
        for part in script.replace("&&", ";").replace("||", ";").split(";"):
            reason = violation(part.split())
            if reason:
                return reason

    return None


def check_command(argv: Sequence[str]) -> None:
    """Raise PolicyViolation if ``argv`` is a forbidden operation."""
    reason = violation(argv)
    if reason:
        raise PolicyViolation(f"{reason}: {' '.join(argv)}")
