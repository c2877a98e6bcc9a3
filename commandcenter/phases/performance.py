"""
Performance phase — boot configuration tuning from a preset.

Writes one managed block into the boot configuration file (the first
existing candidate path). The block content comes from the selected
preset; the preset name is part of the Phase version, so switching
presets re-runs the Phase on the next invocation.

The Phase declares a boot-configuration mutation: the Orchestrator
schedules a reboot after it succeeds.
"""

from __future__ import annotations

from pathlib import Path

from commandcenter.core.config.presets import get_preset, render_boot_block
from commandcenter.core.config.settings import Settings
from commandcenter.core.context import RunContext
from commandcenter.core.errors import ConfigMutationError
from commandcenter.core.models.phase import FailurePolicy, Phase
from commandcenter.phases.common import add_user_to_group, file_step

NAME = "performance"

VIDEO_RULES_PATH = "/etc/udev/rules.d/99-video-permissions.rules"
VIDEO_RULES = """\
# Video device permissions for hardware acceleration
SUBSYSTEM=="video4linux", GROUP="video", MODE="0664"
KERNEL=="vchiq", GROUP="video", MODE="0664"
"""


def boot_config_path(settings: Settings) -> Path:
    """The boot configuration file to patch.

    Raises:
        ConfigMutationError: If none of the candidate paths exists.
    """
    candidates = [settings.system_path(p) for p in settings.boot.config_paths]
    for path in candidates:
        if path.is_file():
            return path
    raise ConfigMutationError(
        "No boot configuration file found (tried " + ", ".join(str(p) for p in candidates) + ")"
    )


def apply_boot_block(ctx: RunContext) -> None:
    boot = ctx.settings.boot
    preset = get_preset(boot.preset)
    ctx.mutator.upsert_block(
        boot_config_path(ctx.settings),
        boot.begin_marker,
        boot.end_marker,
        render_boot_block(preset),
        owner=NAME,
    )


def build(settings: Settings) -> Phase:
    preset = settings.boot.preset
    phase = Phase(
        name=NAME,
        requires=["dependencies"],
        version=f"1-{preset}",
        description=f"Boot configuration tuning ({preset})",
        mutates_boot_config=True,
    )
    phase.add("boot-config", apply_boot_block, description=f"Apply {preset} boot configuration")
    phase.add(
        "video-group",
        lambda ctx: add_user_to_group(ctx, "video"),
        policy=FailurePolicy.BEST_EFFORT,
        description=f"Add {settings.effective_user} to the video group",
    )
    file_step(phase, "video-udev-rule", VIDEO_RULES_PATH, VIDEO_RULES)
    return phase
