"""
Services phase — ssh, bluetooth, audio, console boot, optional NetworkManager.

NetworkManager is only touched when ``network.manage_network_manager``
is set: enabling it on a device already managed by another stack can
cut connectivity, so it is an explicit opt-in.
"""

from __future__ import annotations

from commandcenter.core.config.settings import Settings
from commandcenter.core.models.phase import FailurePolicy, Phase
from commandcenter.core.models.validation import CheckKind
from commandcenter.phases.common import (
    add_user_to_group,
    apt_install_steps,
    enable_service_step,
    file_step,
    validate_step,
)

NAME = "services"

BLUETOOTH_MODPROBE_PATH = "/etc/modprobe.d/xbox_bt.conf"
BLUETOOTH_MODPROBE = "options bluetooth disable_ertm=Y\n"

BLUETOOTH_CONF_PATH = "/etc/bluetooth/main.conf.d/raspi-optimization.conf"
BLUETOOTH_CONF = """\
[General]
Class=0x000100
DiscoverableTimeout=0
PairableTimeout=0

[Policy]
AutoEnable=true
"""

ASOUND_PATH = "/etc/asound.conf"
ASOUND_CONF = """\
pcm.!default {
    type hw
    card 0
    device 0
}

ctl.!default {
    type hw
    card 0
}
"""


def build(settings: Settings) -> Phase:
    phase = Phase(
        name=NAME,
        requires=["dependencies"],
        version="1",
        description="System services",
    )

    enable_service_step(phase, "ssh")
    validate_step(phase, "ssh", CheckKind.SERVICE_ACTIVE, "ssh")

    enable_service_step(phase, "bluetooth", policy=FailurePolicy.BEST_EFFORT)
    file_step(phase, "bluetooth-modprobe", BLUETOOTH_MODPROBE_PATH, BLUETOOTH_MODPROBE)
    file_step(phase, "bluetooth-controllers", BLUETOOTH_CONF_PATH, BLUETOOTH_CONF)

    phase.add(
        "audio-group",
        lambda ctx: add_user_to_group(ctx, "audio"),
        policy=FailurePolicy.BEST_EFFORT,
        description=f"Add {settings.effective_user} to the audio group",
    )
    file_step(phase, "asound", ASOUND_PATH, ASOUND_CONF)

    phase.add(
        "console-boot",
        lambda ctx: ctx.services.set_default_target("multi-user.target"),
        description="Boot to console (multi-user.target)",
    )

    if settings.network.manage_network_manager:
        phase.version = "1-nm"
        apt_install_steps(phase, ["network-manager"], group="network")
        enable_service_step(phase, "NetworkManager")
        validate_step(phase, "network-manager", CheckKind.SERVICE_ACTIVE, "NetworkManager")

    return phase
