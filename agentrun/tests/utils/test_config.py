# agentrun/tests/utils/test_config.py
"""
Unit tests for the cached YAML config loader and its environment overrides.
"""
import pytest

from agentrun.exceptions import ConfigurationError
from agentrun.schemas.settings import AppSettings
from agentrun.utils import config as config_module


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    for name in config_module._ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AGENTRUN_CONFIG", str(tmp_path / "config.yaml"))
    config_module.reload_config()
    yield
    monkeypatch.delenv("AGENTRUN_CONFIG", raising=False)
    config_module.reload_config()


def test_missing_file_yields_empty_config():
    assert config_module.reload_config() == {}
    settings = AppSettings.from_config(config_module.get_config())
    assert settings.agent.max_steps == 10
    assert settings.policy.duplicate_cooldown_ms == 30_000
    assert settings.sandbox.enabled is False


def test_yaml_file_is_loaded_and_cached(tmp_path):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("agent:\n  max_steps: 4\nsandbox:\n  cpu: 2\n")
    cfg = config_module.reload_config()
    assert cfg["agent"]["max_steps"] == 4

    cfg_file.write_text("agent:\n  max_steps: 9\n")
    # cached until reload
    assert config_module.get_config()["agent"]["max_steps"] == 4
    assert config_module.reload_config()["agent"]["max_steps"] == 9


def test_malformed_yaml_falls_back_to_defaults(tmp_path):
    (tmp_path / "config.yaml").write_text("agent: [unclosed\n")
    assert config_module.reload_config() == {}


def test_env_overrides_win_over_file(tmp_path, monkeypatch):
    (tmp_path / "config.yaml").write_text("agent:\n  max_steps: 4\n  history_limit: 7\n")
    monkeypatch.setenv("AGENTRUN_MAX_STEPS", "12")
    monkeypatch.setenv("AGENTRUN_SANDBOX_ENABLED", "true")
    settings = AppSettings.from_config(config_module.reload_config())
    assert settings.agent.max_steps == 12
    assert settings.agent.history_limit == 7
    assert settings.sandbox.enabled is True


def test_invalid_env_override_is_ignored(monkeypatch):
    monkeypatch.setenv("AGENTRUN_MAX_STEPS", "lots")
    assert "agent" not in config_module.reload_config()


def test_invalid_value_raises_configuration_error():
    with pytest.raises(ConfigurationError):
        AppSettings.from_config({"agent": {"max_steps": 0}})


def test_numeric_resource_limits_are_stringified():
    settings = AppSettings.from_config({"sandbox": {"cpu": 2, "memory": 1024}})
    assert settings.sandbox.cpu == "2"
    assert settings.sandbox.memory == "1024"
