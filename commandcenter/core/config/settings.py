"""
Settings model — every tunable of a provisioning run.

Loaded from commandcenter.yml by the loader. Every field has a default
so an absent config file yields a complete, conservative configuration.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from commandcenter.core.config.presets import PRESETS


class PathSettings(BaseModel):
    """Where persistent artefacts are written.

    ``root`` prefixes every system path the Phases touch (/etc, /boot,
    /home, /opt). It is "/" on a real device.
    """

    root: str = "/"
    state_dir: str = "/var/lib/commandcenter"
    logs_dir: str = "/var/log/commandcenter"


class ModeSettings(BaseModel):
    """Run mode. ``auto`` suppresses interactive conflict prompts."""

    auto: bool = False


class RebootSettings(BaseModel):
    """What happens when a Phase mutated the boot configuration."""

    auto: bool = False                       # reboot without asking
    barrier_after_boot_config: bool = False  # stop right after the boot-mutating Phase


class PrerequisiteSettings(BaseModel):
    """Global checks run before any Phase."""

    require_root: bool = True
    min_free_gb: float = 2.0
    disk_path: str = "/"
    connectivity_hosts: list[str] = Field(default_factory=lambda: ["8.8.8.8", "1.1.1.1"])
    connectivity_port: int = 53
    connectivity_timeout: float = 5.0
    expect_model: str = "Raspberry Pi"       # mismatch is a warning only


class BootSettings(BaseModel):
    """Boot configuration file and tuning preset."""

    config_paths: list[str] = Field(
        default_factory=lambda: ["/boot/firmware/config.txt", "/boot/config.txt"]
    )
    preset: str = "conservative"
    begin_marker: str = "# BEGIN commandcenter"
    end_marker: str = "# END commandcenter"

    @field_validator("preset")
    @classmethod
    def _known_preset(cls, value: str) -> str:
        if value not in PRESETS:
            raise ValueError(f"unknown preset '{value}' (known: {', '.join(sorted(PRESETS))})")
        return value


class NetworkSettings(BaseModel):
    """Network-stack mutation is an explicit opt-in."""

    manage_network_manager: bool = False


class ValidationSettings(BaseModel):
    """Default patience for ServiceValidator checks."""

    timeout: float = Field(default=120.0, ge=0)
    interval: float = Field(default=5.0, gt=0)


class FeatureSettings(BaseModel):
    """Which application Phases are part of the run."""

    homeassistant: bool = True
    gaming: bool = True
    media: bool = True
    fileserver: bool = True


class Settings(BaseModel):
    """Root configuration — loaded from commandcenter.yml."""

    version: int = 1

    paths: PathSettings = Field(default_factory=PathSettings)
    mode: ModeSettings = Field(default_factory=ModeSettings)
    reboot: RebootSettings = Field(default_factory=RebootSettings)
    prerequisites: PrerequisiteSettings = Field(default_factory=PrerequisiteSettings)
    boot: BootSettings = Field(default_factory=BootSettings)
    network: NetworkSettings = Field(default_factory=NetworkSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    features: FeatureSettings = Field(default_factory=FeatureSettings)

    target_user: str | None = None

    @property
    def effective_user(self) -> str:
        """The unprivileged account to configure."""
        return self.target_user or os.environ.get("SUDO_USER") or os.environ.get("USER", "pi")

    def system_path(self, path: str) -> Path:
        """Resolve an absolute system path under ``paths.root``."""
        return Path(self.paths.root) / path.lstrip("/")

    @property
    def user_home(self) -> Path:
        user = self.effective_user
        return self.system_path("/root" if user == "root" else f"/home/{user}")
