"""
Tests for adapters — command runner, docker, systemd and network inspection.

The real adapters are exercised over a MockCommandRunner so no command
ever reaches the host.
"""

import json
import sys

import pytest

from commandcenter.adapters.containers.docker import ContainerSpec, DockerRuntime
from commandcenter.adapters.mock import MockCommandRunner
from commandcenter.adapters.shell.command import CommandRunner, format_argv
from commandcenter.adapters.system.network import NetworkInspector, parse_ss_output
from commandcenter.adapters.system.systemd import ServiceManager
from commandcenter.core.errors import CommandError, PolicyViolation


class TestCommandRunner:
    def test_success(self):
        result = CommandRunner().run([sys.executable, "-c", "print('hello')"])
        assert result.ok
        assert result.stdout.strip() == "hello"

    def test_failure_raises(self):
        with pytest.raises(CommandError) as exc:
            CommandRunner().run([sys.executable, "-c", "import sys; sys.exit(3)"])
        assert exc.value.returncode == 3

    def test_failure_without_check(self):
        result = CommandRunner().run([sys.executable, "-c", "import sys; sys.exit(3)"], check=False)
        assert result.returncode == 3
        assert not result.ok

    def test_missing_program(self):
        result = CommandRunner().run(["definitely-not-a-real-program-xyz"], check=False)
        assert result.returncode == 127

    def test_timeout(self):
        result = CommandRunner().run(
            [sys.executable, "-c", "import time; time.sleep(5)"], check=False, timeout=0.2
        )
        assert result.returncode == 124

    def test_policy_enforced(self):
        with pytest.raises(PolicyViolation):
            CommandRunner().run(["rpi-update"])

    def test_format_argv_quotes(self):
        assert format_argv(["echo", "a b"]) == "echo 'a b'"


class TestMockCommandRunner:
    def test_records_and_matches_longest_prefix(self):
        runner = MockCommandRunner()
        runner.set_response(["docker"], stdout="short")
        runner.set_response(["docker", "ps"], stdout="long")
        assert runner.run(["docker", "ps", "-a"]).stdout == "long"
        assert runner.run(["docker", "info"]).stdout == "short"
        assert runner.call_count == 2

    def test_failure(self):
        runner = MockCommandRunner()
        runner.set_failure(["apt-get", "update"], 100, "lock")
        with pytest.raises(CommandError) as exc:
            runner.run(["apt-get", "update"])
        assert exc.value.returncode == 100

    def test_policy_enforced(self):
        with pytest.raises(PolicyViolation):
            MockCommandRunner().run(["apt-get", "upgrade", "-y"])


class TestDockerRuntime:
    def test_list_containers(self):
        runner = MockCommandRunner()
        lines = [
            json.dumps({"Names": "homeassistant", "ID": "abc", "Image": "ha:stable", "State": "running"}),
            "garbage",
            json.dumps({"Names": "other", "ID": "def", "Image": "x", "State": "exited"}),
        ]
        runner.set_response(["docker", "ps"], stdout="\n".join(lines) + "\n")
        docker = DockerRuntime(runner)

        records = docker.list_containers()
        assert [r.name for r in records] == ["homeassistant", "other"]
        assert docker.find("homeassistant")[0].state == "running"
        assert docker.find("missing") == []

    def test_run_returns_id(self):
        runner = MockCommandRunner()
        runner.set_response(["docker", "run"], stdout="0123456789abcdef\n")
        spec = ContainerSpec(name="web", image="nginx:latest", ports=[8080])
        assert DockerRuntime(runner).run(spec) == "0123456789abcdef"
        assert runner.call_log[0][:2] == ["docker", "run"]

    def test_run_args_bridge_network(self):
        spec = ContainerSpec(
            name="web",
            image="nginx:latest",
            env={"TZ": "UTC"},
            volumes=["/srv:/usr/share/nginx/html:ro"],
            ports=[8080],
        )
        assert spec.run_args() == [
            "run", "-d", "--name", "web", "--restart=unless-stopped",
            "-e", "TZ=UTC",
            "-v", "/srv:/usr/share/nginx/html:ro",
            "-p", "8080:8080",
            "nginx:latest",
        ]

    def test_run_args_host_network_publishes_nothing(self):
        spec = ContainerSpec(name="ha", image="ha:stable", ports=[8123], network="host", privileged=True)
        args = spec.run_args()
        assert "--network=host" in args
        assert "--privileged" in args
        assert "-p" not in args
        assert args[-1] == "ha:stable"

    def test_stop_and_remove(self):
        runner = MockCommandRunner()
        docker = DockerRuntime(runner)
        docker.stop("ha", timeout=10)
        docker.remove("ha")
        assert runner.call_log == [["docker", "stop", "-t", "10", "ha"], ["docker", "rm", "-f", "ha"]]


class TestServiceManager:
    def test_enable_now(self):
        runner = MockCommandRunner()
        ServiceManager(runner).enable("ssh", now=True)
        assert runner.call_log == [["systemctl", "enable", "--now", "ssh"]]

    def test_is_active(self):
        runner = MockCommandRunner()
        runner.set_failure(["systemctl", "is-active", "--quiet", "kodi.service"], 3)
        services = ServiceManager(runner)
        assert services.is_active("ssh") is True
        assert services.is_active("kodi.service") is False

    def test_is_active_timeout_forwarded(self):
        seen = []

        class Recording(MockCommandRunner):
            def run(self, argv, *, timeout=None, **kwargs):
                seen.append(timeout)
                return super().run(argv, timeout=timeout, **kwargs)

        services = ServiceManager(Recording())
        services.is_active("ssh", timeout=2.0)
        services.is_active("ssh")
        assert seen == [2.0, 30]

    def test_enable_failure_raises(self):
        runner = MockCommandRunner()
        runner.set_failure(["systemctl", "enable"], 1, "Unit not found")
        with pytest.raises(CommandError):
            ServiceManager(runner).enable("nope")


SS_OUTPUT = """\
LISTEN 0      4096         0.0.0.0:8123      0.0.0.0:*    users:(("python3",pid=812,fd=9))
LISTEN 0      128          0.0.0.0:22        0.0.0.0:*    users:(("sshd",pid=500,fd=3),("sshd",pid=501,fd=3))
LISTEN 0      50              [::]:445          [::]:*
LISTEN 0      511        127.0.0.1:8080      0.0.0.0:*    users:(("kodi.bin",pid=900,fd=30))
"""


class TestParseSs:
    def test_ports_and_processes(self):
        bindings = parse_ss_output(SS_OUTPUT)
        assert [b.port for b in bindings] == [8123, 22, 445, 8080]
        assert bindings[0].process == "python3"
        assert bindings[0].pid == 812
        assert bindings[3].address == "127.0.0.1"

    def test_no_process_column(self):
        binding = parse_ss_output(SS_OUTPUT)[2]
        assert binding.process is None
        assert binding.pid is None
        assert binding.address == "::"

    def test_garbage_ignored(self):
        assert parse_ss_output("nonsense\n\nLISTEN 0 0 nope\n") == []

    def test_inspector_filters_by_port(self):
        runner = MockCommandRunner()
        runner.set_response(["ss", "-H", "-ltnp"], stdout=SS_OUTPUT)
        inspector = NetworkInspector(runner)
        assert [b.pid for b in inspector.bindings_for(8080)] == [900]
        assert inspector.bindings_for(9999) == []
