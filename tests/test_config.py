"""Tests for configuration loading."""

import tempfile
from datetime import timezone
from pathlib import Path

import pytest

from mcp_timelog.config import (
    TimelogConfig,
    dict_to_config,
    find_config_file,
    load_config,
    load_json_config,
    load_python_config,
)
from mcp_timelog.errors import ConfigError


@pytest.fixture
def temp_project():
    """Create a temporary project directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestFindConfigFile:
    """Tests for find_config_file."""

    def test_finds_python_config(self, temp_project):
        """Python config is found first."""
        (temp_project / "timelog_config.py").write_text("CONFIG = {}")
        (temp_project / "timelog_config.toml").write_text("")

        found = find_config_file(temp_project)
        assert found.name == "timelog_config.py"

    def test_finds_toml_config(self, temp_project):
        """TOML config is found if no Python config."""
        (temp_project / "timelog_config.toml").write_text("")

        found = find_config_file(temp_project)
        assert found.name == "timelog_config.toml"

    def test_finds_json_config(self, temp_project):
        (temp_project / "timelog_config.json").write_text("{}")

        found = find_config_file(temp_project)
        assert found.name == "timelog_config.json"

    def test_finds_dotfile_config(self, temp_project):
        """Dotfile configs are found."""
        (temp_project / ".timelog.toml").write_text("")

        found = find_config_file(temp_project)
        assert found.name == ".timelog.toml"

    def test_returns_none_if_no_config(self, temp_project):
        assert find_config_file(temp_project) is None


class TestLoaders:
    """Tests for the per-format loaders."""

    def test_loads_json(self, temp_project):
        config_file = temp_project / "config.json"
        config_file.write_text('{"app": {"name": "test"}}')

        data = load_json_config(config_file)
        assert data["app"]["name"] == "test"

    def test_loads_python_config_and_hooks(self, temp_project):
        """CONFIG dict and hook_* functions are picked up."""
        config_file = temp_project / "timelog_config.py"
        config_file.write_text(
            "CONFIG = {'app': {'name': 'pylog'}}\n"
            "def hook_post_export(path):\n"
            "    return path\n"
        )

        data, hooks = load_python_config(config_file)
        assert data["app"]["name"] == "pylog"
        assert set(hooks) == {"post_export"}

    def test_lowercase_config_name(self, temp_project):
        config_file = temp_project / "timelog_config.py"
        config_file.write_text("config = {'tags': {'top_limit': 3}}")

        data, hooks = load_python_config(config_file)
        assert data == {"tags": {"top_limit": 3}}
        assert hooks == {}


class TestDictToConfig:
    """Tests for dict_to_config."""

    def test_defaults(self, temp_project):
        config = dict_to_config({}, temp_project)
        assert config.app_name == "shuiTime"
        assert config.dedup_granularity == "day"
        assert config.top_tags_limit == 10
        assert config.get_timezone() is timezone.utc
        assert config.get_db_path() == temp_project / "data" / "timelog.db"
        assert config.get_backups_path() == temp_project / "backups"

    def test_all_sections(self, temp_project):
        config = dict_to_config({
            "app": {"name": "mylog"},
            "directories": {"data": "store", "backups": "exports", "database": "log.sqlite"},
            "dedup": {"granularity": "exact", "timezone": "utc"},
            "tags": {"top_limit": 5},
            "logging": {"level": "debug", "ops_log": True},
        }, temp_project)

        assert config.app_name == "mylog"
        assert config.get_db_path() == temp_project / "store" / "log.sqlite"
        assert config.get_backups_path() == temp_project / "exports"
        assert config.dedup_granularity == "exact"
        assert config.top_tags_limit == 5
        assert config.log_level == "DEBUG"
        assert config.ops_log is True

    def test_bad_granularity(self, temp_project):
        with pytest.raises(ConfigError):
            dict_to_config({"dedup": {"granularity": "hourly"}}, temp_project)

    def test_bad_timezone(self, temp_project):
        with pytest.raises(ConfigError):
            dict_to_config({"dedup": {"timezone": "Mars/Olympus_Mons"}}, temp_project)

    @pytest.mark.parametrize("limit", [0, -3, "ten", 2.5])
    def test_bad_top_limit(self, temp_project, limit):
        with pytest.raises(ConfigError):
            dict_to_config({"tags": {"top_limit": limit}}, temp_project)

    def test_bad_log_level(self, temp_project):
        with pytest.raises(ConfigError):
            dict_to_config({"logging": {"level": "chatty"}}, temp_project)


class TestLoadConfig:
    """Tests for load_config."""

    def test_no_file_gives_defaults(self, temp_project):
        config = load_config(temp_project)
        assert isinstance(config, TimelogConfig)
        assert config.project_root == temp_project

    def test_toml(self, temp_project):
        (temp_project / "timelog_config.toml").write_text(
            '[app]\nname = "tomllog"\n\n[dedup]\ngranularity = "exact"\n'
        )
        config = load_config(temp_project)
        assert config.app_name == "tomllog"
        assert config.dedup_granularity == "exact"

    def test_json(self, temp_project):
        (temp_project / ".timelog.json").write_text('{"tags": {"top_limit": 7}}')
        assert load_config(temp_project).top_tags_limit == 7

    def test_python_hooks_attached(self, temp_project):
        (temp_project / "timelog_config.py").write_text(
            "def hook_post_import(result):\n    pass\n"
        )
        config = load_config(temp_project)
        assert "post_import" in config.hooks

    def test_explicit_path(self, temp_project):
        explicit = temp_project / "elsewhere.json"
        explicit.write_text('{"app": {"name": "explicit"}}')
        (temp_project / "timelog_config.json").write_text('{"app": {"name": "auto"}}')

        assert load_config(temp_project, explicit).app_name == "explicit"

    def test_unsupported_suffix(self, temp_project):
        path = temp_project / "config.yaml"
        path.write_text("app: {}")
        with pytest.raises(ConfigError):
            load_config(temp_project, path)
