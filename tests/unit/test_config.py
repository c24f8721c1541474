"""
Unit tests for ConfigManager.

Tests verify:
- TOML loading
- Environment variable overrides
- Explicit overrides win over everything
- Type-specific getters
- Config file discovery
"""
from pathlib import Path

import pytest

from paydb.core.config import ConfigManager, find_config_file


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "paydb.toml"
    path.write_text(
        """
[paydb]
log_level = "DEBUG"

[database]
path = "/var/lib/paydb/paydb.sqlite"
lock_retries = 3

[migrations]
auto_apply = false
"""
    )
    return path


class TestConfigBasics:
    """Tests for basic ConfigManager functionality."""

    def test_empty_config(self):
        """Verify ConfigManager works without a config file."""
        config = ConfigManager()
        assert config.get("any.key") is None
        assert config.get("any.key", "default") == "default"
        assert config.config_path is None

    def test_load_toml_file(self, config_file):
        config = ConfigManager(config_path=config_file)

        assert config.get("paydb.log_level") == "DEBUG"
        assert config.get("database.path") == "/var/lib/paydb/paydb.sqlite"
        assert config.get("database.lock_retries") == 3
        assert config.config_path == config_file

    def test_missing_file_is_ignored(self, tmp_path):
        config = ConfigManager(config_path=tmp_path / "missing.toml")

        assert config.get("database.path", "fallback") == "fallback"

    def test_section_lookup(self, config_file):
        config = ConfigManager(config_path=config_file)

        assert config.get("migrations") == {"auto_apply": False}
        assert config.get("database.path.deeper") is None


class TestOverrides:
    """Environment variables and explicit overrides."""

    def test_env_overrides_toml(self, config_file, monkeypatch):
        monkeypatch.setenv("PAYDB_DATABASE_PATH", "/tmp/other.sqlite")
        monkeypatch.setenv("PAYDB_MIGRATIONS_AUTO_APPLY", "true")
        monkeypatch.setenv("PAYDB_DATABASE_LOCK_RETRIES", "9")

        config = ConfigManager(config_path=config_file)

        assert config.get("database.path") == "/tmp/other.sqlite"
        assert config.get("migrations.auto_apply") is True
        assert config.get("database.lock_retries") == 9

    def test_custom_env_prefix(self, monkeypatch):
        monkeypatch.setenv("OTHER_DATABASE_BACKEND", "memory")

        config = ConfigManager(env_prefix="OTHER_")

        assert config.get("database.backend") == "memory"

    def test_set_wins_over_env(self, config_file, monkeypatch):
        monkeypatch.setenv("PAYDB_DATABASE_PATH", "/tmp/env.sqlite")
        config = ConfigManager(config_path=config_file)

        config.set("database.path", "/tmp/cli.sqlite")

        assert config.get("database.path") == "/tmp/cli.sqlite"


class TestTypedGetters:
    def test_get_bool(self, config_file, monkeypatch):
        config = ConfigManager(config_path=config_file)

        assert config.get_bool("migrations.auto_apply", default=True) is False
        assert config.get_bool("migrations.missing", default=True) is True

        config.set("migrations.dry_run", "yes")
        assert config.get_bool("migrations.dry_run") is True

        monkeypatch.setenv("PAYDB_PAYDB_LOG_JSON", "off")
        assert config.get_bool("paydb.log_json", default=True) is False

    def test_get_int(self, config_file):
        config = ConfigManager(config_path=config_file)

        assert config.get_int("database.lock_retries") == 3
        assert config.get_int("database.missing", default=5) == 5

        config.set("database.lock_retries", "7")
        assert config.get_int("database.lock_retries") == 7


class TestFindConfigFile:
    def test_explicit_path(self, config_file):
        assert find_config_file(config_file) == config_file

    def test_explicit_missing_path(self, tmp_path):
        assert find_config_file(tmp_path / "nope.toml") is None

    def test_default_locations(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert find_config_file() is None

        (tmp_path / "paydb.toml").write_text("[paydb]\n")
        assert find_config_file() == Path("paydb.toml")

        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "default.toml").write_text("[paydb]\n")
        assert find_config_file() == Path("config/default.toml")
