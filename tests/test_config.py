"""Tests for configuration loading."""

from pathlib import Path

import pytest

from reflens.config import Config, find_project_config
from reflens.errors import ConfigError


class TestDefaults:
    """Tests for default values and validation."""

    def test_defaults(self, config):
        """Test defaults cover the usual tools and excluded directories."""
        assert config.default_port == 3000
        assert config.port_range == 1000
        assert "node_modules" in config.excluded_dirs
        assert ".git" in config.excluded_dirs
        assert config.ripgrep_paths[-1] == "rg"
        assert ".py" in config.text_extensions

    def test_invalid_values_rejected(self, tmp_path):
        """Test nonsensical values raise ConfigError."""
        with pytest.raises(ConfigError):
            Config(data_dir=tmp_path, tool_timeout_s=0)
        with pytest.raises(ConfigError):
            Config(data_dir=tmp_path, port_range=0)


class TestSettingsFile:
    """Tests for YAML settings."""

    def test_sections_are_applied(self, config, tmp_path, monkeypatch):
        """Test settings sections override defaults with env substitution."""
        monkeypatch.setenv("REFLENS_TEST_RG", "/custom/rg")
        settings = tmp_path / "settings.yaml"
        settings.write_text(
            "search:\n"
            "  excluded_dirs: [vendor]\n"
            "  text_extensions: [py, .rs]\n"
            "tools:\n"
            "  ripgrep_paths: ['${REFLENS_TEST_RG}']\n"
            "  grep_path: '${REFLENS_TEST_GREP:-ggrep}'\n"
            "  timeout_s: 12\n"
            "server:\n"
            "  host: 0.0.0.0\n"
            "  port: 8080\n"
            "terminal:\n"
            "  root: /srv/code\n",
            encoding="utf-8",
        )

        config.load_settings(settings)

        assert config.excluded_dirs == {"vendor"}
        assert config.text_extensions == [".py", ".rs"]
        assert config.ripgrep_paths == ["/custom/rg"]
        assert config.grep_path == "ggrep"
        assert config.tool_timeout_s == 12.0
        assert config.host == "0.0.0.0"
        assert config.default_port == 8080
        assert config.terminal_root == Path("/srv/code")

    def test_invalid_values_are_ignored(self, config, tmp_path):
        """Test bad values are logged and the defaults kept."""
        settings = tmp_path / "settings.yaml"
        settings.write_text("server:\n  port: 70000\ntools:\n  timeout_s: nope\n", encoding="utf-8")

        config.load_settings(settings)

        assert config.default_port == 3000
        assert config.tool_timeout_s == 30.0

    def test_missing_default_file_is_fine(self, config):
        """Test an absent settings file in the data directory is not an error."""
        config.load_settings()
        assert config.default_port == 3000

    def test_missing_explicit_file(self, config, tmp_path):
        """Test an explicitly requested file must exist."""
        with pytest.raises(ConfigError):
            config.load_settings(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, config, tmp_path):
        """Test unparseable YAML raises ConfigError."""
        settings = tmp_path / "settings.yaml"
        settings.write_text("server: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            config.load_settings(settings)


class TestEnvironment:
    """Tests for environment overrides."""

    def test_env_overrides_settings(self, tmp_path, monkeypatch):
        """Test REFLENS_* variables win over the settings file."""
        settings = tmp_path / "settings.yaml"
        settings.write_text("server:\n  port: 8080\n", encoding="utf-8")
        monkeypatch.delenv("REFLENS_SETTINGS", raising=False)
        monkeypatch.setenv("REFLENS_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("REFLENS_PORT", "9090")
        monkeypatch.setenv("REFLENS_HOST", "0.0.0.0")
        monkeypatch.setenv("REFLENS_TOOL_TIMEOUT", "2.5")
        monkeypatch.setenv("REFLENS_ROOT", str(tmp_path))

        config = Config.load()

        assert config.data_dir == tmp_path
        assert config.default_port == 9090
        assert config.host == "0.0.0.0"
        assert config.tool_timeout_s == 2.5
        assert config.terminal_root == tmp_path

    def test_settings_path_from_env(self, tmp_path, monkeypatch):
        """Test REFLENS_SETTINGS selects the settings file."""
        settings = tmp_path / "custom.yaml"
        settings.write_text("server:\n  port: 4000\n", encoding="utf-8")
        monkeypatch.setenv("REFLENS_DATA_DIR", str(tmp_path / "data"))
        monkeypatch.setenv("REFLENS_SETTINGS", str(settings))
        for name in ("REFLENS_PORT", "REFLENS_HOST", "REFLENS_TOOL_TIMEOUT", "REFLENS_ROOT"):
            monkeypatch.delenv(name, raising=False)

        assert Config.load().default_port == 4000


class TestFindProjectConfig:
    """Tests for find_project_config."""

    def test_found_in_parent(self, tmp_path):
        """Test the nearest marker file above the start directory is returned."""
        (tmp_path / "setup.cfg").write_text("", encoding="utf-8")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)

        assert find_project_config(nested, ["pyproject.toml", "setup.cfg"]) == tmp_path / "setup.cfg"

    def test_not_found(self, tmp_path):
        """Test None is returned when no marker exists up to the filesystem root."""
        assert find_project_config(tmp_path, ["reflens-test-no-such-marker.cfg"]) is None
