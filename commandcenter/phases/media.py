"""
Media phase — Kodi as a systemd service with its web interface on 8080.
"""

from __future__ import annotations

from commandcenter.core.config.settings import Settings
from commandcenter.core.context import RunContext
from commandcenter.core.models.phase import Phase
from commandcenter.core.models.validation import CheckKind
from commandcenter.phases.common import apt_install_steps, clear_port_step, validate_step

NAME = "media"
UNIT = "kodi.service"
UNIT_PATH = "/etc/systemd/system/kodi.service"
WEB_PORT = 8080
KODI_PROCESSES = ["kodi.bin", "kodi", "kodi-standalone"]

MEDIA_PACKAGES = [
    "kodi",
    "kodi-peripheral-joystick",
    "kodi-inputstream-adaptive",
    "alsa-utils",
]


def kodi_unit(user: str, home: str) -> str:
    return f"""\
[Unit]
Description=Kodi Standalone Service
After=network-online.target sound.target

[Service]
Type=simple
User={user}
Group={user}
Environment=HOME={home}
ExecStart=/usr/bin/kodi-standalone
Restart=on-failure
RestartSec=3

[Install]
WantedBy=multi-user.target
"""


def install_unit(ctx: RunContext) -> None:
    settings = ctx.settings
    user = settings.effective_user
    home = "/root" if user == "root" else f"/home/{user}"
    ctx.mutator.write_file(settings.system_path(UNIT_PATH), kodi_unit(user, home), owner=NAME)
    ctx.services.daemon_reload()


def start_kodi(ctx: RunContext) -> None:
    ctx.resolver.assert_cleared(ports=[WEB_PORT])
    ctx.services.enable(UNIT, now=True)


def build(settings: Settings) -> Phase:
    requires = ["gaming"] if settings.features.gaming else ["services"]
    phase = Phase(
        name=NAME,
        requires=requires,
        version="1",
        description="Kodi media center",
    )
    apt_install_steps(phase, MEDIA_PACKAGES, group="media")
    clear_port_step(phase, WEB_PORT, service=NAME, own_processes=KODI_PROCESSES)
    phase.add("kodi-unit", install_unit, description="Install kodi.service")
    phase.add("start-kodi", start_kodi, description="Enable and start kodi.service")
    validate_step(phase, "kodi", CheckKind.SERVICE_ACTIVE, UNIT)
    return phase
