"""
Configuration management with TOML + environment variable support.

Configuration hierarchy (later overrides earlier):
1. Default values in code
2. TOML file
3. Environment variables (PAYDB_* prefix)
4. Explicit overrides set from the command line
"""
import os
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore


DEFAULT_CONFIG_PATHS = (
    Path("config/default.toml"),
    Path("paydb.toml"),
)


def find_config_file(specified: Optional[Path] = None) -> Optional[Path]:
    """Return the first existing config file, preferring an explicit path."""
    if specified is not None:
        return specified if specified.exists() else None

    for path in DEFAULT_CONFIG_PATHS:
        if path.exists():
            return path

    return None


class ConfigManager:
    """Centralized configuration with TOML + env var support.

    Usage:
        config = ConfigManager(Path("config/default.toml"))
        db_path = config.get("database.path", "./data/paydb.sqlite")
        dry_run = config.get_bool("migrations.dry_run")
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        env_prefix: str = "PAYDB_",
    ) -> None:
        self._data: dict[str, Any] = {}
        self._overrides: dict[str, Any] = {}
        self._env_prefix = env_prefix
        self._config_path = config_path

        if config_path and config_path.exists():
            self._load_toml(config_path)

    def _load_toml(self, path: Path) -> None:
        with open(path, "rb") as f:
            self._data = tomllib.load(f)

    def _get_nested(self, data: dict[str, Any], key: str) -> tuple[bool, Any]:
        """Get a nested value using dot notation.

        Returns (found, value) tuple.
        """
        current: Any = data
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return False, None
            current = current[part]

        return True, current

    def _get_env_value(self, key: str) -> tuple[bool, Any]:
        """Get value from environment variable.

        Converts key like "database.path" to "PAYDB_DATABASE_PATH".
        """
        env_key = self._env_prefix + key.upper().replace(".", "_")
        if env_key in os.environ:
            return True, self._parse_env_value(os.environ[env_key])
        return False, None

    def _parse_env_value(self, value: str) -> Any:
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        return value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value with dot notation.

        Overrides win over environment variables, which win over TOML.
        """
        if key in self._overrides:
            return self._overrides[key]

        found, value = self._get_env_value(key)
        if found:
            return value

        found, value = self._get_nested(self._data, key)
        if found:
            return value

        return default

    def set(self, key: str, value: Any) -> None:
        """Override a value for the lifetime of this manager."""
        self._overrides[key] = value

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("true", "1", "yes", "on")
        return bool(value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key)
        if value is None:
            return default
        return int(value)

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path
