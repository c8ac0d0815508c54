"""Test configuration loading."""
import pytest
from pathlib import Path
from slashcmd.config.settings import Config, load_config
from slashcmd.exceptions import ConfigError


@pytest.fixture
def config_file(tmp_path):
    """Create a temporary config file."""
    config_content = """
log_level: debug

commands:
  enabled: true
  project_dir: .prompts
  global_dir: ~/prompts
  shell_timeout: 10
  max_file_size: 2048
  cache_ttl: 5

security:
  policy_path: /tmp/policy.yaml
"""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(config_content)
    return config_path


def test_load_config(config_file):
    """Config loads from YAML file."""
    config = load_config(config_file)

    assert config.log_level == "DEBUG"
    assert config.commands.enabled is True
    assert config.commands.project_dir == ".prompts"
    assert config.commands.shell_timeout == 10.0
    assert config.commands.max_file_size == 2048
    assert config.commands.cache_ttl == 5.0
    assert config.security.policy_path == "/tmp/policy.yaml"


def test_load_config_defaults(tmp_path):
    """Config applies defaults for missing values."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text("commands:\n  enabled: true\n")

    config = load_config(config_path)

    assert config.commands.enabled is True
    assert config.commands.project_dir == ".slashcmd/commands"
    assert config.commands.shell_timeout == 30.0
    assert config.commands.max_file_size == 1024 * 1024
    assert config.log_level == "INFO"


def test_load_config_missing_file(tmp_path):
    """Missing config file yields defaults with the feature off."""
    config = load_config(tmp_path / "nope.yaml")

    assert config.commands.enabled is False


def test_load_config_default_location(tmp_path, monkeypatch):
    """Default config lives under the home directory."""
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    (tmp_path / ".slashcmd").mkdir()
    (tmp_path / ".slashcmd" / "config.yaml").write_text("log_level: warning\n")

    assert load_config().log_level == "WARNING"


def test_load_config_malformed(tmp_path):
    """Malformed YAML is a ConfigError."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text("commands: [unclosed\n")

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_load_config_bad_section(tmp_path):
    """Sections must be mappings with valid values."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text("commands: yes\n")
    with pytest.raises(ConfigError):
        load_config(config_path)

    config_path.write_text("commands:\n  shell_timeout: soon\n")
    with pytest.raises(ConfigError):
        load_config(config_path)


def test_config_paths(tmp_path):
    """Directory helpers expand against cwd and home."""
    config = Config()

    assert config.project_commands_dir(tmp_path) == tmp_path / ".slashcmd" / "commands"
    assert config.global_commands_dir(tmp_path) == tmp_path / ".slashcmd" / "commands"
    assert config.policy_file(tmp_path) == tmp_path / ".slashcmd" / "security.yaml"
