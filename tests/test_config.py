"""
Tests for the configuration module
"""

import pytest
import yaml

from ipmi_exporter.config import (
    ConfigError,
    DEFAULT_COLLECTORS,
    ModuleConfig,
    SafeConfig,
    ipmitool_args,
    load_config
)

# Test configuration
TEST_CONFIG = {
    "modules": {
        "default": {
            "user": "default_user",
            "pass": "default_pass",
            "privilege": "user",
            "interface": "lanplus",
            "timeout": 10,
            "collectors": ["sensor", "bmc"]
        },
        "example": {
            "user": "example_user",
            "pass": "example_pass",
            "privilege": "administrator",
            "timeout": 5,
            "collectors": ["sensor", "fwum"]
        }
    }
}

@pytest.fixture
def config_file(tmp_path):
    """Create a temporary config file"""
    path = tmp_path / "ipmi_remote.yml"
    with open(path, "w") as f:
        yaml.dump(TEST_CONFIG, f)
    return str(path)

@pytest.fixture
def safe_config(config_file):
    config = SafeConfig()
    config.reload_config(config_file)
    return config

def write_config(tmp_path, data, name="bad.yml"):
    path = tmp_path / name
    with open(path, "w") as f:
        if isinstance(data, str):
            f.write(data)
        else:
            yaml.dump(data, f)
    return str(path)

class TestLoadConfig:
    """Test configuration loading and validation"""

    def test_good_config(self, config_file):
        modules = load_config(config_file)
        assert set(modules) == {"default", "example"}
        assert modules["example"].password == "example_pass"
        assert modules["example"].collectors == ["sensor", "fwum"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "missing.yml"))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(write_config(tmp_path, "modules: [unclosed"))

    def test_unknown_module_field(self, tmp_path):
        data = {"modules": {"default": {"user": "u", "password": "p"}}}
        with pytest.raises(ConfigError, match="password"):
            load_config(write_config(tmp_path, data))

    def test_unknown_top_level_field(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(write_config(tmp_path, {"targets": {}}))

    def test_unknown_collector(self, tmp_path):
        data = {"modules": {"default": {"collectors": ["sensor", "sel"]}}}
        with pytest.raises(ConfigError, match="sel"):
            load_config(write_config(tmp_path, data))

    def test_invalid_timeout(self, tmp_path):
        data = {"modules": {"default": {"timeout": "soon"}}}
        with pytest.raises(ConfigError):
            load_config(write_config(tmp_path, data))

    def test_default_collectors(self, tmp_path):
        data = {"modules": {"default": {"user": "admin"}}}
        modules = load_config(write_config(tmp_path, data))
        assert modules["default"].collectors == DEFAULT_COLLECTORS

    def test_empty_file(self, tmp_path):
        assert load_config(write_config(tmp_path, "")) == {}

class TestSafeConfig:
    """Test module lookup"""

    def test_has_module(self, safe_config):
        assert safe_config.has_module("example")
        assert not safe_config.has_module("example1")

    def test_config_for_target(self, safe_config):
        config = safe_config.config_for_target("localhost", "example")
        assert config.user == "example_user"
        assert config.password == "example_pass"

    def test_fallback_to_default(self, safe_config):
        config = safe_config.config_for_target("localhost", "example1")
        assert config.user == "default_user"
        assert config.password == "default_pass"

    def test_fallback_without_default(self):
        config = SafeConfig({"example": ModuleConfig(user="x")})
        assert config.config_for_target("10.0.0.5", "other") == ModuleConfig()

    def test_bad_reload_keeps_previous(self, safe_config, tmp_path):
        with pytest.raises(ConfigError):
            safe_config.reload_config(write_config(tmp_path, {"modules": {"x": {"bogus": 1}}}))
        assert safe_config.has_module("example")

class TestIpmitoolArgs:
    """Test rendering module options as ipmitool arguments"""

    def test_example_module(self, safe_config):
        config = safe_config.config_for_target("localhost", "example")
        assert " ".join(ipmitool_args(config)) == "-L administrator -U example_user -P example_pass -N 5"

    def test_default_module(self, safe_config):
        config = safe_config.config_for_target("localhost", "default")
        assert ipmitool_args(config) == [
            "-I", "lanplus", "-L", "user", "-U", "default_user", "-P", "default_pass", "-N", "10"
        ]

    def test_empty(self):
        assert ipmitool_args(ModuleConfig()) == []
