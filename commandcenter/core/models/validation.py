"""
Validation models — bounded-time checks of observable effects.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class CheckKind(StrEnum):
    """What kind of predicate a check evaluates."""

    SERVICE_ACTIVE = "service-active"
    PORT_LISTENING = "port-listening"
    HTTP_REACHABLE = "http-reachable"


class ValidationCheck(BaseModel):
    """A predicate polled at ``interval`` until ``timeout`` elapses.

    ``target`` is a unit name (service-active), ``host:port`` or a bare
    port (port-listening), or a URL (http-reachable).
    """

    kind: CheckKind
    target: str
    timeout: float = Field(default=60.0, ge=0)
    interval: float = Field(default=2.0, gt=0)


class Outcome(BaseModel):
    """Result of polling a check."""

    ready: bool = False
    timed_out: bool = False
    attempts: int = 0
    elapsed: float = 0.0
    last_error: str | None = None
