"""
Dependencies phase — package lists and the container runtime.

Refreshes the package index (FailFast), installs each package of the
essential and Raspberry Pi lists as its own BestEffort Step, and makes
sure Docker is installed and running. The rest of the system is never
upgraded.
"""

from __future__ import annotations

import logging

from commandcenter.core.config.settings import Settings
from commandcenter.core.context import RunContext
from commandcenter.core.models.phase import FailurePolicy, Phase
from commandcenter.phases.common import add_user_to_group, apt_install_steps, apt_update_step

logger = logging.getLogger(__name__)

NAME = "dependencies"

ESSENTIAL_PACKAGES = [
    "build-essential",
    "git",
    "curl",
    "wget",
    "unzip",
    "ca-certificates",
    "gnupg",
    "lsb-release",
    "htop",
    "rsync",
    "tmux",
    "i2c-tools",
    "python3-pip",
    "python3-dev",
    "avahi-daemon",
    "ffmpeg",
]

PI_PACKAGES = [
    "raspi-config",
    "libraspberrypi-bin",
    "python3-gpiozero",
    "python3-picamera2",
    "mesa-utils",
]

DOCKER_INSTALLER_URL = "https://get.docker.com"
DOCKER_INSTALLER = "/tmp/get-docker.sh"


def install_docker(ctx: RunContext) -> None:
    """Install Docker from the upstream convenience script if absent."""
    if ctx.runner.which("docker"):
        logger.info("Docker already installed")
        return
    ctx.runner.run(["curl", "-fsSL", DOCKER_INSTALLER_URL, "-o", DOCKER_INSTALLER], timeout=300)
    ctx.runner.run(["sh", DOCKER_INSTALLER], timeout=1800)


def build(settings: Settings) -> Phase:
    phase = Phase(
        name=NAME,
        version="1",
        description="System packages and container runtime",
    )
    apt_update_step(phase)
    apt_install_steps(phase, ESSENTIAL_PACKAGES, group="essential")
    apt_install_steps(phase, PI_PACKAGES, group="raspberry pi")
    phase.add("install-docker", install_docker, description="Install Docker")
    phase.add(
        "docker-group",
        lambda ctx: add_user_to_group(ctx, "docker"),
        policy=FailurePolicy.BEST_EFFORT,
        description=f"Add {settings.effective_user} to the docker group",
    )
    phase.add(
        "enable-docker",
        lambda ctx: ctx.services.enable("docker", now=True),
        description="Enable and start docker",
    )
    return phase
