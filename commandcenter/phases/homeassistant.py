"""
Home Assistant phase — containerized Home Assistant on port 8123.

The container is always recreated from a fresh ``docker run``: an
existing ``homeassistant`` container is stopped and removed by the
conflict resolver, and port 8123 must be free (or freed with the
operator's consent) before the new one starts.
"""

from __future__ import annotations

import logging

from commandcenter.adapters.containers.docker import ContainerSpec
from commandcenter.core.config.settings import Settings
from commandcenter.core.context import RunContext
from commandcenter.core.models.conflict import ContainerRequest
from commandcenter.core.models.phase import Phase
from commandcenter.core.models.validation import CheckKind
from commandcenter.phases.common import clear_port_step, ensure_dirs, launch_container, validate_step

logger = logging.getLogger(__name__)

NAME = "homeassistant"
CONTAINER = "homeassistant"
IMAGE = "ghcr.io/home-assistant/home-assistant:stable"
PORT = 8123
CONFIG_DIR = "/opt/homeassistant"


def ensure_docker(ctx: RunContext) -> None:
    if not ctx.services.is_active("docker"):
        ctx.services.enable("docker", now=True)


def host_timezone(ctx: RunContext) -> str:
    result = ctx.runner.run(["timedatectl", "show", "--property=Timezone", "--value"], check=False, timeout=15)
    return result.stdout.strip() if result.ok and result.stdout.strip() else "UTC"


def container_spec(ctx: RunContext) -> ContainerSpec:
    return ContainerSpec(
        name=CONTAINER,
        image=IMAGE,
        env={"TZ": host_timezone(ctx)},
        volumes=[f"{CONFIG_DIR}:/config", "/run/dbus:/run/dbus:ro"],
        ports=[PORT],
        network="host",
        privileged=True,
    )


def start_container(ctx: RunContext) -> None:
    ensure_dirs([ctx.settings.system_path(CONFIG_DIR)])
    launch_container(ctx, container_spec(ctx), ports=[PORT])


def build(settings: Settings) -> Phase:
    phase = Phase(
        name=NAME,
        requires=["services"],
        version="1",
        description="Home Assistant (Docker)",
    )
    phase.add("docker-running", ensure_docker, description="Make sure docker is running")
    phase.add(
        "replace-container",
        lambda ctx: ctx.resolver.require(ContainerRequest(name=CONTAINER, service=NAME)),
        description=f"Remove any existing {CONTAINER} container",
    )
    clear_port_step(phase, PORT, service=NAME)
    phase.add("start-container", start_container, description="Pull and start Home Assistant")
    validate_step(
        phase,
        "homeassistant-web",
        CheckKind.HTTP_REACHABLE,
        f"http://127.0.0.1:{PORT}",
        timeout=max(settings.validation.timeout, 300.0),
    )
    return phase
