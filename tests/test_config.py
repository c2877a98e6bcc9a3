"""
Tests for configuration loading — commandcenter.yml parsing and validation.
"""

import textwrap
from pathlib import Path

import pytest

from commandcenter.core.config.loader import CONFIG_ENV, ConfigError, find_config_file, load_settings
from commandcenter.core.config.presets import PRESETS, get_preset, render_boot_block
from commandcenter.core.config.settings import Settings


@pytest.fixture
def config_yml(tmp_path: Path) -> Path:
    content = textwrap.dedent("""\
        version: 1
        target_user: pi

        paths:
          state_dir: /tmp/cc/state
          logs_dir: /tmp/cc/logs

        boot:
          preset: aggressive

        reboot:
          auto: true

        features:
          gaming: false

        validation:
          timeout: 30
          interval: 2
    """)
    path = tmp_path / "commandcenter.yml"
    path.write_text(content)
    return path


class TestLoadSettings:
    """Tests for load_settings."""

    def test_load_valid(self, config_yml: Path):
        settings = load_settings(config_yml)
        assert settings.target_user == "pi"
        assert settings.boot.preset == "aggressive"
        assert settings.reboot.auto is True
        assert settings.features.gaming is False
        assert settings.features.media is True
        assert settings.validation.timeout == 30
        assert settings.paths.state_dir == "/tmp/cc/state"

    def test_defaults_are_conservative(self):
        settings = Settings()
        assert settings.boot.preset == "conservative"
        assert settings.mode.auto is False
        assert settings.reboot.auto is False
        assert settings.network.manage_network_manager is False
        assert settings.paths.root == "/"

    def test_explicit_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yml")

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "commandcenter.yml"
        path.write_text("")
        assert load_settings(path) == Settings()

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "commandcenter.yml"
        path.write_text("boot: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "commandcenter.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path)

    def test_unknown_preset(self, tmp_path: Path):
        path = tmp_path / "commandcenter.yml"
        path.write_text("boot:\n  preset: ludicrous\n")
        with pytest.raises(ConfigError, match="ludicrous"):
            load_settings(path)

    def test_invalid_interval(self, tmp_path: Path):
        path = tmp_path / "commandcenter.yml"
        path.write_text("validation:\n  interval: 0\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_settings(path)


class TestFindConfigFile:
    def test_env_wins(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "custom.yml"))
        assert find_config_file(tmp_path) == tmp_path / "custom.yml"

    def test_env_path_missing_is_error(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "custom.yml"))
        with pytest.raises(ConfigError):
            load_settings()


class TestSettingsPaths:
    def test_system_path_under_root(self, tmp_path: Path):
        settings = Settings()
        settings.paths.root = str(tmp_path)
        assert settings.system_path("/etc/asound.conf") == tmp_path / "etc" / "asound.conf"

    def test_system_path_default_root(self):
        assert Settings().system_path("/etc/asound.conf") == Path("/etc/asound.conf")

    def test_user_home(self):
        settings = Settings(target_user="pi")
        assert settings.user_home == Path("/home/pi")
        settings.target_user = "root"
        assert settings.user_home == Path("/root")

    def test_effective_user_from_sudo(self, monkeypatch):
        monkeypatch.setenv("SUDO_USER", "alice")
        assert Settings().effective_user == "alice"


class TestPresets:
    def test_known_presets(self):
        assert set(PRESETS) == {"conservative", "aggressive"}

    def test_unknown_preset(self):
        with pytest.raises(KeyError):
            get_preset("ludicrous")

    def test_render_names_preset(self):
        block = render_boot_block(get_preset("conservative"))
        assert block.startswith("# preset: conservative\n")
        assert "arm_freq=2600\n" in block
        assert "arm_freq_min" not in block
        assert block.endswith("\n")

    def test_aggressive_sets_min_freq(self):
        block = render_boot_block(get_preset("aggressive"))
        assert "arm_freq=3000\n" in block
        assert "arm_freq_min=1500\n" in block

    def test_no_eeprom_settings(self):
        for preset in PRESETS.values():
            assert "eeprom" not in render_boot_block(preset).lower()
