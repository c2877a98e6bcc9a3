"""
Configuration loader — reads commandcenter.yml into Settings.

Lookup order: explicit path, ``$CC_CONFIG``, the system-wide file, then
the current directory. No file at all is not an error: every setting has
a default.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from commandcenter.core.config.settings import Settings

logger = logging.getLogger(__name__)

CONFIG_FILE = "commandcenter.yml"
SYSTEM_CONFIG = Path("/etc/commandcenter") / CONFIG_FILE
CONFIG_ENV = "CC_CONFIG"


class ConfigError(Exception):
    """Raised when the configuration file is invalid or unreadable."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Locate the config file without an explicit path.

    Returns:
        Path to the first existing candidate, or None.
    """
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path)

    for candidate in (SYSTEM_CONFIG, (start_dir or Path.cwd()) / CONFIG_FILE):
        if candidate.is_file():
            return candidate
    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit path to commandcenter.yml. If None, searches.

    Returns:
        Validated Settings (defaults when no file is found).

    Raises:
        ConfigError: If the file is missing (explicit path), unreadable,
            not YAML, or fails validation.
    """
    explicit = path is not None
    if path is None:
        path = find_config_file()

    if path is None:
        logger.debug("No %s found, using defaults", CONFIG_FILE)
        return Settings()

    if not path.is_file():
        if explicit or os.environ.get(CONFIG_ENV):
            raise ConfigError(f"Config file not found: {path}")
        return Settings()

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded settings from %s (preset=%s)", path, settings.boot.preset)
    return settings
