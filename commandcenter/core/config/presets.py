"""
Boot tuning presets — explicit strategies for the boot configuration block.

One Phase strategy, two parameter sets. Both enable NVMe through the
device tree only; neither touches the bootloader EEPROM.
"""

from __future__ import annotations

from pydantic import BaseModel


class BootPreset(BaseModel):
    """CPU/GPU tuning written into the managed boot-config block."""

    name: str
    arm_freq: int
    arm_freq_min: int | None = None
    gpu_freq: int
    over_voltage: int
    gpu_mem: int
    temp_limit: int
    description: str = ""


PRESETS: dict[str, BootPreset] = {
    "conservative": BootPreset(
        name="conservative",
        arm_freq=2600,
        gpu_freq=800,
        over_voltage=1,
        gpu_mem=256,
        temp_limit=80,
        description="Safe overclock, stock GPU frequency",
    ),
    "aggressive": BootPreset(
        name="aggressive",
        arm_freq=3000,
        arm_freq_min=1500,
        gpu_freq=1000,
        over_voltage=4,
        gpu_mem=512,
        temp_limit=81,
        description="3 GHz overclock, needs active cooling",
    ),
}


def get_preset(name: str) -> BootPreset:
    """Look up a preset by name.

    Raises:
        KeyError: If the preset is unknown.
    """
    return PRESETS[name]


def render_boot_block(preset: BootPreset) -> str:
    """Render the body of the managed boot-config block."""
    lines = [
        f"# preset: {preset.name}",
        "dtparam=nvme",
        "dtparam=audio=on",
        f"arm_freq={preset.arm_freq}",
    ]
    if preset.arm_freq_min is not None:
        lines.append(f"arm_freq_min={preset.arm_freq_min}")
    lines += [
        f"gpu_freq={preset.gpu_freq}",
        f"over_voltage={preset.over_voltage}",
        f"gpu_mem={preset.gpu_mem}",
        f"temp_limit={preset.temp_limit}",
        "dtparam=spi=on",
        "dtparam=i2c_arm=on",
    ]
    return "\n".join(lines) + "\n"
