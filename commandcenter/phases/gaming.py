"""
Gaming phase — emulators, console autologin, EmulationStation autostart.

Autostart lives in a managed block of the target user's ``.profile``;
the rest of the file is left as the user wrote it.
"""

from __future__ import annotations

from commandcenter.core.config.settings import Settings
from commandcenter.core.context import RunContext
from commandcenter.core.models.phase import FailurePolicy, Phase
from commandcenter.phases.common import apt_install_steps, ensure_dirs, managed_block

NAME = "gaming"

GAMING_PACKAGES = [
    "retroarch",
    "libretro-snes9x",
    "libretro-genesis-plus-gx",
    "libretro-beetle-psx",
    "joystick",
    "bluez-tools",
    "libsdl2-2.0-0",
]

ROM_SYSTEMS = ["nes", "snes", "megadrive", "psx", "gba", "n64", "arcade"]

AUTOLOGIN_PATH = "/etc/systemd/system/getty@tty1.service.d/autologin.conf"

AUTOSTART = """\
# Start EmulationStation on console login (tty1 only)
if [ "$(tty)" = "/dev/tty1" ] && [ -z "$SSH_CONNECTION" ]; then
    if command -v emulationstation >/dev/null 2>&1; then
        emulationstation
    fi
fi
"""


def autologin_unit(user: str) -> str:
    return (
        "[Service]\n"
        "ExecStart=\n"
        f"ExecStart=-/sbin/agetty --autologin {user} --noclear %I $TERM\n"
    )


def write_autologin(ctx: RunContext) -> None:
    ctx.mutator.write_file(
        ctx.settings.system_path(AUTOLOGIN_PATH),
        autologin_unit(ctx.settings.effective_user),
        owner=NAME,
    )
    # Unconditional: an unchanged file may never have been loaded.
    ctx.services.daemon_reload()


def write_autostart(ctx: RunContext) -> None:
    begin, end = managed_block("emulationstation")
    ctx.mutator.upsert_block(ctx.settings.user_home / ".profile", begin, end, AUTOSTART, owner=NAME)


def create_rom_dirs(ctx: RunContext) -> None:
    roms = ctx.settings.user_home / "ROMs"
    ensure_dirs([roms / system for system in ROM_SYSTEMS])


def build(settings: Settings) -> Phase:
    phase = Phase(
        name=NAME,
        requires=["services"],
        version="1",
        description="Retro gaming",
    )
    apt_install_steps(phase, GAMING_PACKAGES, group="gaming")
    phase.add("autologin", write_autologin, description="Console autologin on tty1")
    phase.add("autostart", write_autostart, description="EmulationStation autostart")
    phase.add(
        "rom-dirs",
        create_rom_dirs,
        policy=FailurePolicy.BEST_EFFORT,
        description="ROM directories",
    )
    return phase
