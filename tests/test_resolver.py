"""
Tests for the conflict resolver — ports, containers, and the clearance guard.
"""

import pytest

from commandcenter.adapters.mock import MockDockerRuntime, MockHost, MockNetworkInspector
from commandcenter.core.engine.resolver import ConflictResolver
from commandcenter.core.errors import ConflictUnresolved
from commandcenter.core.models.conflict import ContainerRequest, PortRequest


def _resolver(network, docker, host, clock, interactive=False, answer=False, prompts=None):
    def confirm(prompt):
        if prompts is not None:
            prompts.append(prompt)
        return answer

    return ConflictResolver(
        network,
        docker,
        host,
        interactive=interactive,
        confirm=confirm,
        clock=clock,
        sleep=clock.sleep,
    )


# ── Ports ────────────────────────────────────────────────────────────


class TestPortRequests:
    def test_free_port_proceeds(self, network, docker, host, clock):
        resolver = _resolver(network, docker, host, clock)
        resolution = resolver.resolve(PortRequest(port=8123))
        assert resolution.proceed is True
        assert resolver.is_cleared("port:tcp/8123")

    def test_own_prior_instance_proceeds(self, network, docker, host, clock):
        network.bind(445, process="smbd", pid=900)
        resolver = _resolver(network, docker, host, clock)
        resolution = resolver.resolve(PortRequest(port=445, own_processes=["smbd"]))
        assert resolution.proceed is True
        assert host.terminated == []

    def test_auto_mode_refuses_foreign_occupant(self, network, docker, host, clock):
        network.bind(8123, process="nginx", pid=42)
        resolver = _resolver(network, docker, host, clock, interactive=False)
        resolution = resolver.resolve(PortRequest(port=8123, service="homeassistant"))
        assert resolution.proceed is False
        assert "nginx" in resolution.reason
        assert host.terminated == []
        assert not resolver.is_cleared("port:tcp/8123")

    def test_interactive_decline(self, network, docker, host, clock):
        """Operator declines termination: refused, occupant untouched."""
        network.bind(8123, process="nginx", pid=42)
        prompts = []
        resolver = _resolver(network, docker, host, clock, interactive=True, answer=False, prompts=prompts)
        resolution = resolver.resolve(PortRequest(port=8123, service="homeassistant"))
        assert resolution.proceed is False
        assert len(prompts) == 1
        assert "8123" in prompts[0]
        assert host.terminated == []

    def test_interactive_accept_terminates_occupant(self, network, docker, host, clock):
        network.bind(8123, process="nginx", pid=42)
        host.on_terminate = lambda pid: network.release(8123)
        resolver = _resolver(network, docker, host, clock, interactive=True, answer=True)
        resolution = resolver.resolve(PortRequest(port=8123))
        assert resolution.proceed is True
        assert host.terminated == [42]

    def test_occupant_exiting_before_termination_is_released(self, network, docker, host, clock):
        network.bind(8123, process="nginx", pid=42)

        def already_gone(pid):
            network.release(8123)
            raise ProcessLookupError(3, "No such process")

        host.on_terminate = already_gone
        resolver = _resolver(network, docker, host, clock, interactive=True, answer=True)
        resolution = resolver.resolve(PortRequest(port=8123))
        assert resolution.proceed is True
        assert host.terminated == [42]

    def test_termination_not_permitted_is_unresolved(self, network, docker, host, clock):
        network.bind(8123, process="nginx", pid=1)

        def not_permitted(pid):
            raise PermissionError(1, "Operation not permitted")

        host.on_terminate = not_permitted
        resolver = _resolver(network, docker, host, clock, interactive=True, answer=True)
        resolution = resolver.resolve(PortRequest(port=8123))
        assert resolution.proceed is False
        assert "cannot terminate" in resolution.reason
        assert "Operation not permitted" in resolution.reason
        assert network.port_bindings("tcp")[0].port == 8123

    def test_occupant_that_survives_termination(self, network, docker, host, clock):
        network.bind(8123, process="stubborn", pid=7)
        resolver = _resolver(network, docker, host, clock, interactive=True, answer=True)
        resolution = resolver.resolve(PortRequest(port=8123))
        assert resolution.proceed is False
        assert "still in use" in resolution.reason
        assert clock.now >= 10.0

    def test_unidentified_occupant_refused(self, network, docker, host, clock):
        network.bind(8123)
        prompts = []
        resolver = _resolver(network, docker, host, clock, interactive=True, answer=True, prompts=prompts)
        resolution = resolver.resolve(PortRequest(port=8123))
        assert resolution.proceed is False
        assert prompts == []

    def test_other_ports_ignored(self, network, docker, host, clock):
        network.bind(80, process="nginx", pid=1)
        resolver = _resolver(network, docker, host, clock)
        assert resolver.resolve(PortRequest(port=8123)).proceed is True


# ── Containers ───────────────────────────────────────────────────────


class TestContainerRequests:
    def test_no_container_proceeds(self, network, docker, host, clock):
        resolver = _resolver(network, docker, host, clock)
        assert resolver.resolve(ContainerRequest(name="homeassistant")).proceed is True
        assert docker.call_log == []

    def test_running_container_stopped_and_removed(self, network, docker, host, clock):
        docker.add("homeassistant", state="running", image="old")
        resolver = _resolver(network, docker, host, clock)
        resolution = resolver.resolve(ContainerRequest(name="homeassistant"))
        assert resolution.proceed is True
        assert docker.call_log == [("stop", "homeassistant"), ("remove", "homeassistant")]
        assert "homeassistant" not in docker.containers

    def test_stopped_container_removed_without_stop(self, network, docker, host, clock):
        docker.add("homeassistant", state="exited")
        resolver = _resolver(network, docker, host, clock)
        assert resolver.resolve(ContainerRequest(name="homeassistant")).proceed is True
        assert docker.call_log == [("remove", "homeassistant")]

    def test_replacement_leaves_exactly_one_container(self, network, docker, host, clock):
        from commandcenter.adapters.containers.docker import ContainerSpec

        docker.add("x", state="running", image="img:1")
        resolver = _resolver(network, docker, host, clock)
        assert resolver.resolve(ContainerRequest(name="x")).proceed is True
        docker.run(ContainerSpec(name="x", image="img:2"))

        named = [c for c in docker.list_containers() if c.name == "x"]
        assert len(named) == 1
        assert named[0].image == "img:2"

    def test_removal_failure_refuses(self, network, docker, host, clock):
        docker.add("homeassistant", state="exited")
        docker.fail_remove.add("homeassistant")
        resolver = _resolver(network, docker, host, clock)
        resolution = resolver.resolve(ContainerRequest(name="homeassistant"))
        assert resolution.proceed is False
        assert "could not remove" in resolution.reason

    def test_runtime_unavailable_refuses(self, network, host, clock):
        docker = MockDockerRuntime(available=False)
        resolver = _resolver(network, docker, host, clock)
        assert resolver.resolve(ContainerRequest(name="x")).proceed is False


# ── Guards ───────────────────────────────────────────────────────────


class TestGuards:
    def test_require_raises_on_refusal(self, network, docker, host, clock):
        network.bind(8123, process="nginx", pid=42)
        resolver = _resolver(network, docker, host, clock)
        with pytest.raises(ConflictUnresolved) as exc_info:
            resolver.require(PortRequest(port=8123))
        assert exc_info.value.resource == "port:tcp/8123"

    def test_assert_cleared_without_resolution(self, network, docker, host, clock):
        resolver = _resolver(network, docker, host, clock)
        with pytest.raises(ConflictUnresolved):
            resolver.assert_cleared(container="homeassistant")
        with pytest.raises(ConflictUnresolved):
            resolver.assert_cleared(ports=[8123])

    def test_assert_cleared_after_resolution(self, network, docker, host, clock):
        resolver = _resolver(network, docker, host, clock)
        resolver.require(ContainerRequest(name="homeassistant"))
        resolver.require(PortRequest(port=8123))
        resolver.assert_cleared(container="homeassistant", ports=[8123])

    def test_refusal_revokes_earlier_clearance(self, network, docker, host, clock):
        resolver = _resolver(network, docker, host, clock)
        resolver.require(PortRequest(port=8123))
        network.bind(8123, process="nginx", pid=42)
        assert resolver.resolve(PortRequest(port=8123)).proceed is False
        with pytest.raises(ConflictUnresolved):
            resolver.assert_cleared(ports=[8123])

    def test_resolutions_reported(self, network, docker, host, clock):
        seen = []
        resolver = ConflictResolver(MockNetworkInspector(), docker, MockHost(), on_resolution=seen.append)
        resolver.resolve(PortRequest(port=1))
        assert [r.resource for r in seen] == ["port:tcp/1"]
