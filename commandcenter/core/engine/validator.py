"""
Service validator — bounded-time confirmation that a mutation took effect.

    poll(check) -> Outcome

evaluates the check's predicate every ``interval`` seconds until it holds
or ``timeout`` has elapsed. The last sleep is clipped to the remaining
budget, so a call returns within ``timeout + interval`` whatever the
predicate does.

A timeout is not a Phase failure. ``confirm`` records the capability as
verified or unverified for the run summary and raises the non-fatal
ValidationTimeout so the Phase Executor can attach it as a warning.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from commandcenter.adapters.system.network import NetworkInspector
from commandcenter.adapters.system.systemd import ServiceManager
from commandcenter.core.errors import ValidationTimeout
from commandcenter.core.models.validation import CheckKind, Outcome, ValidationCheck

logger = logging.getLogger(__name__)


def split_host_port(target: str) -> tuple[str, int]:
    """``"host:port"`` or ``"port"`` → (host, port). Host defaults to 127.0.0.1."""
    host, sep, port = target.rpartition(":")
    if not sep:
        return "127.0.0.1", int(target)
    return host.strip("[]") or "127.0.0.1", int(port)


class ServiceValidator:
    """Poll service / port / HTTP predicates with a deadline.

    Args:
        services: systemd adapter (service-active checks).
        network: network adapter (port-listening and http-reachable checks).
        clock: Monotonic time source.
        sleep: Sleep function.
    """

    def __init__(
        self,
        services: ServiceManager,
        network: NetworkInspector,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        on_outcome: Callable[[str, ValidationCheck, Outcome], None] | None = None,
    ):
        self._services = services
        self._network = network
        self._clock = clock
        self._sleep = sleep
        self._on_outcome = on_outcome
        self.capabilities: dict[str, bool] = {}

    @property
    def unverified(self) -> list[str]:
        return [name for name, ok in self.capabilities.items() if not ok]

    @property
    def verified(self) -> list[str]:
        return [name for name, ok in self.capabilities.items() if ok]

    def poll(self, check: ValidationCheck) -> Outcome:
        """Evaluate ``check`` until it holds or its timeout elapses."""
        start = self._clock()
        deadline = start + check.timeout
        attempts = 0
        last_error: str | None = None

        while True:
            attempts += 1
            try:
                if self._evaluate(check):
                    elapsed = self._clock() - start
                    logger.info("%s %s ready after %.1fs", check.kind, check.target, elapsed)
                    return Outcome(ready=True, attempts=attempts, elapsed=elapsed)
                last_error = None
            except Exception as e:
                last_error = str(e)
                logger.debug("Check %s %s raised: %s", check.kind, check.target, e)

            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            self._sleep(min(check.interval, remaining))

        elapsed = self._clock() - start
        logger.warning("%s %s not ready after %.1fs", check.kind, check.target, elapsed)
        return Outcome(
            ready=False,
            timed_out=True,
            attempts=attempts,
            elapsed=elapsed,
            last_error=last_error,
        )

    def confirm(self, check: ValidationCheck, capability: str) -> Outcome:
        """Poll and record ``capability`` as verified or unverified.

        Raises:
            ValidationTimeout: If the check did not pass in time (non-fatal).
        """
        outcome = self.poll(check)
        self.capabilities[capability] = outcome.ready
        if self._on_outcome is not None:
            self._on_outcome(capability, check, outcome)
        if not outcome.ready:
            raise ValidationTimeout(capability, check.target, check.timeout)
        return outcome

    def _evaluate(self, check: ValidationCheck) -> bool:
        if check.kind == CheckKind.SERVICE_ACTIVE:
            return self._services.is_active(check.target, timeout=min(check.interval, 30.0))
        if check.kind == CheckKind.PORT_LISTENING:
            host, port = split_host_port(check.target)
            return self._network.tcp_open(host, port, timeout=min(check.interval, 3.0))
        if check.kind == CheckKind.HTTP_REACHABLE:
            return self._network.http_ok(check.target, timeout=min(check.interval, 5.0))
        raise ValueError(f"Unknown check kind: {check.kind}")
