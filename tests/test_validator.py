"""
Tests for the service validator — bounded polling and capability records.
"""

import pytest

from commandcenter.core.engine.validator import ServiceValidator, split_host_port
from commandcenter.core.errors import ValidationTimeout
from commandcenter.core.models.validation import CheckKind, ValidationCheck


@pytest.fixture
def validator(services, network, clock) -> ServiceValidator:
    return ServiceValidator(services, network, clock=clock, sleep=clock.sleep)


class TestPoll:
    def test_ready_immediately(self, validator, services, clock):
        services.active.add("ssh")
        outcome = validator.poll(ValidationCheck(kind=CheckKind.SERVICE_ACTIVE, target="ssh"))
        assert outcome.ready is True
        assert outcome.attempts == 1
        assert clock.sleeps == []

    def test_ready_after_some_polls(self, validator, services, clock):
        services.activate_after["kodi.service"] = 3
        check = ValidationCheck(kind=CheckKind.SERVICE_ACTIVE, target="kodi.service", timeout=60, interval=2)
        outcome = validator.poll(check)
        assert outcome.ready is True
        assert outcome.attempts == 3
        assert clock.now == 4

    @pytest.mark.parametrize("timeout,interval", [(10, 3), (5, 5), (0, 1), (7.5, 2)])
    def test_returns_within_timeout_plus_interval(self, validator, clock, timeout, interval):
        check = ValidationCheck(kind=CheckKind.SERVICE_ACTIVE, target="never", timeout=timeout, interval=interval)
        outcome = validator.poll(check)
        assert outcome.ready is False
        assert outcome.timed_out is True
        assert clock.now <= timeout + interval
        assert clock.now >= timeout

    def test_zero_timeout_checks_once(self, validator, clock):
        outcome = validator.poll(ValidationCheck(kind=CheckKind.SERVICE_ACTIVE, target="x", timeout=0))
        assert outcome.attempts == 1
        assert clock.sleeps == []

    def test_port_listening(self, validator, network):
        network.open_ports.add(445)
        check = ValidationCheck(kind=CheckKind.PORT_LISTENING, target="127.0.0.1:445", timeout=0)
        assert validator.poll(check).ready is True

    def test_service_check_bounded_by_interval(self, validator, services):
        services.active.add("ssh")
        validator.poll(ValidationCheck(kind=CheckKind.SERVICE_ACTIVE, target="ssh", interval=2))
        validator.poll(ValidationCheck(kind=CheckKind.SERVICE_ACTIVE, target="ssh", interval=45))
        assert services.timeouts == [2, 30.0]

    def test_http_reachable(self, validator, network):
        network.reachable_urls.add("http://127.0.0.1:8123")
        check = ValidationCheck(kind=CheckKind.HTTP_REACHABLE, target="http://127.0.0.1:8123", timeout=0)
        assert validator.poll(check).ready is True

    def test_predicate_error_is_retried(self, services, network, clock):
        calls = []

        class Flaky(type(services)):
            def is_active(self, unit, timeout=30):
                calls.append(unit)
                if len(calls) < 2:
                    raise RuntimeError("bus not ready")
                return True

        validator = ServiceValidator(Flaky(), network, clock=clock, sleep=clock.sleep)
        outcome = validator.poll(ValidationCheck(kind=CheckKind.SERVICE_ACTIVE, target="x", timeout=10, interval=1))
        assert outcome.ready is True
        assert outcome.attempts == 2

    def test_last_error_reported(self, services, network, clock):
        class Broken(type(services)):
            def is_active(self, unit, timeout=30):
                raise RuntimeError("bus not ready")

        validator = ServiceValidator(Broken(), network, clock=clock, sleep=clock.sleep)
        outcome = validator.poll(ValidationCheck(kind=CheckKind.SERVICE_ACTIVE, target="x", timeout=2, interval=1))
        assert outcome.timed_out is True
        assert outcome.last_error == "bus not ready"


class TestConfirm:
    def test_verified_capability(self, validator, services):
        services.active.add("ssh")
        validator.confirm(ValidationCheck(kind=CheckKind.SERVICE_ACTIVE, target="ssh"), "ssh")
        assert validator.verified == ["ssh"]
        assert validator.unverified == []

    def test_timeout_marks_unverified(self, validator):
        check = ValidationCheck(kind=CheckKind.HTTP_REACHABLE, target="http://127.0.0.1:8123", timeout=3, interval=1)
        with pytest.raises(ValidationTimeout) as exc_info:
            validator.confirm(check, "homeassistant-web")
        assert exc_info.value.fatal is False
        assert exc_info.value.capability == "homeassistant-web"
        assert validator.unverified == ["homeassistant-web"]


class TestSplitHostPort:
    def test_host_and_port(self):
        assert split_host_port("10.0.0.1:80") == ("10.0.0.1", 80)

    def test_bare_port(self):
        assert split_host_port("445") == ("127.0.0.1", 445)

    def test_ipv6(self):
        assert split_host_port("[::1]:8080") == ("::1", 8080)
