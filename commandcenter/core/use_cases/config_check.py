"""
Config check use case — validate commandcenter.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from commandcenter.core.config.loader import ConfigError, find_config_file, load_settings
from commandcenter.core.config.settings import Settings
from commandcenter.core.errors import ProvisionError
from commandcenter.phases import build_phases


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    settings: Settings | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    phases: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "preset": self.settings.boot.preset if self.settings else None,
            "phases": self.phases,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate configuration and report issues.

    Args:
        config_path: Optional explicit path to commandcenter.yml.
    """
    result = ConfigCheckResult()
    result.config_path = config_path or find_config_file()

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result
    result.settings = settings

    if result.config_path is None or not result.config_path.is_file():
        result.warnings.append("No commandcenter.yml found; using defaults")

    if settings.boot.preset == "aggressive":
        result.warnings.append("Preset 'aggressive' overclocks to 3 GHz and needs active cooling")
    if settings.network.manage_network_manager:
        result.warnings.append("NetworkManager will be enabled; this can interrupt existing network config")
    if settings.reboot.auto:
        result.warnings.append("Automatic reboot is enabled")
    if not any(settings.system_path(p).is_file() for p in settings.boot.config_paths):
        result.warnings.append(
            "No boot configuration file found at " + ", ".join(settings.boot.config_paths)
        )
    if settings.validation.timeout == 0:
        result.warnings.append("validation.timeout is 0; every capability will be checked exactly once")

    try:
        result.phases = [p.name for p in build_phases(settings)]
    except ProvisionError as e:
        result.errors.append(f"Cannot build the provisioning plan: {e}")
        return result

    result.valid = True
    return result
