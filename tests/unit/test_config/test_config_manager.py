"""
Unit tests for configuration loading and the configuration singleton.
"""

import tomllib

import pytest
import toml

from speedprobe.config import (
    clear_config_cache,
    get_config,
    get_config_info,
    is_config_loaded,
    load_toml_file,
    set_config_path,
)
from speedprobe.validation import ConfigError


@pytest.fixture
def config_file(temp_dir, sample_config_data):
    """Write the sample configuration to a temporary config.toml."""
    sample_config_data["probe"]["writable_dir"] = str(temp_dir / "work")
    path = temp_dir / "config.toml"
    path.write_text(toml.dumps(sample_config_data))
    return path


@pytest.mark.unit
class TestConfigLoader:
    """Test cases for TOML loading."""

    def test_load_toml_file(self, config_file):
        """Test a TOML file is parsed into a dictionary."""
        data = load_toml_file(config_file)

        assert data["probe"]["idle_timeout_millis"] == 5000
        assert data["logging"]["level"] == "INFO"

    def test_missing_file(self, temp_dir):
        """Test a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_toml_file(temp_dir / "absent.toml")

    def test_malformed_file(self, temp_dir):
        """Test malformed TOML raises a decode error."""
        path = temp_dir / "broken.toml"
        path.write_text("[probe\nidle_timeout_millis = ")

        with pytest.raises(tomllib.TOMLDecodeError):
            load_toml_file(path)


@pytest.mark.unit
class TestConfigManager:
    """Test cases for the cached configuration."""

    def test_get_config_loads_once(self, config_file):
        """Test the configuration is cached after the first load."""
        set_config_path(config_file)
        assert is_config_loaded() is False

        first = get_config()
        second = get_config()

        assert first is second
        assert is_config_loaded() is True
        assert first.probe.user_args == "-t 10 -i 1"
        assert (config_file.parent / "work").is_dir()

    def test_clear_config_cache_reloads(self, config_file, sample_config_data):
        """Test clearing the cache picks up file changes."""
        set_config_path(config_file)
        assert get_config().probe.idle_timeout_millis == 5000

        sample_config_data["probe"]["idle_timeout_millis"] = 8000
        config_file.write_text(toml.dumps(sample_config_data))
        clear_config_cache()

        assert get_config().probe.idle_timeout_millis == 8000

    def test_invalid_config_raises(self, temp_dir):
        """Test validation errors surface from get_config."""
        path = temp_dir / "config.toml"
        path.write_text(toml.dumps({"probe": {"user_args": "-p 5202"}}))
        set_config_path(path)

        with pytest.raises(ConfigError):
            get_config()
        assert is_config_loaded() is False

    def test_get_config_info(self, config_file):
        """Test configuration metadata reflects the loaded state."""
        set_config_path(config_file)
        assert get_config_info()["iperf_executable"] is None

        get_config()
        info = get_config_info()

        assert info["config_loaded"] is True
        assert info["config_path"] == str(config_file)
        assert info["iperf_executable"] == "iperf3"
