"""
Shared test fixtures and configuration.

Every OS-facing dependency is replaced by an in-memory mock and every
system path lives under ``tmp_path``; no test needs root, docker or a
network connection.
"""

from pathlib import Path

import pytest

from commandcenter.adapters.mock import (
    MockCommandRunner,
    MockDockerRuntime,
    MockHost,
    MockNetworkInspector,
    MockServiceManager,
)
from commandcenter.core.config.settings import Settings
from commandcenter.core.context import RunContext, build_context


class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def system_root(tmp_path: Path) -> Path:
    """Stand-in for ``/`` with a boot configuration file in place."""
    root = tmp_path / "root"
    boot = root / "boot" / "firmware"
    boot.mkdir(parents=True)
    (boot / "config.txt").write_text("# stock config\ndtparam=audio=on\n")
    (root / "home" / "pi").mkdir(parents=True)
    return root


@pytest.fixture
def settings(tmp_path: Path, system_root: Path) -> Settings:
    return Settings.model_validate(
        {
            "paths": {
                "root": str(system_root),
                "state_dir": str(tmp_path / "state"),
                "logs_dir": str(tmp_path / "logs"),
            },
            "validation": {"timeout": 4, "interval": 1},
            "target_user": "pi",
        }
    )


@pytest.fixture
def runner() -> MockCommandRunner:
    return MockCommandRunner(available=["docker"])


@pytest.fixture
def docker() -> MockDockerRuntime:
    return MockDockerRuntime()


@pytest.fixture
def services() -> MockServiceManager:
    return MockServiceManager()


@pytest.fixture
def network() -> MockNetworkInspector:
    return MockNetworkInspector()


@pytest.fixture
def host() -> MockHost:
    return MockHost()


@pytest.fixture
def make_ctx(settings, runner, docker, services, network, host, clock):
    """Factory for a RunContext wired to the mock adapters."""

    def _make(auto: bool = True, confirm=None, **overrides) -> RunContext:
        return build_context(
            overrides.pop("settings", settings),
            auto=auto,
            confirm=confirm,
            runner=runner,
            docker=docker,
            services=services,
            network=network,
            host=host,
            clock=clock,
            sleep=clock.sleep,
            **overrides,
        )

    return _make


@pytest.fixture
def ctx(make_ctx) -> RunContext:
    return make_ctx()
