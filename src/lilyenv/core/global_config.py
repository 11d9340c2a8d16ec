"""Global configuration data structures and loading.

Provides immutable global config data loaded from the lilyenv config.toml in
the user config directory. A missing file means defaults; LILYENV_HOME and
GITHUB_TOKEN override the file.
"""

import tomllib
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import tomlkit
from platformdirs import user_cache_path, user_config_path, user_data_path

from lilyenv.core.errors import ConfigError

APP_NAME = "lilyenv"

DEFAULT_NETWORK_TIMEOUT = 30.0
DEFAULT_LOCK_TIMEOUT = 30.0
DEFAULT_CATALOG_RELEASES = 10


@dataclass(frozen=True)
class GlobalConfig:
    """Immutable global configuration data.

    Loaded once at CLI entry point and stored in LilyenvContext.
    All fields are read-only after construction.
    """

    store_root: Path
    cache_dir: Path
    network_timeout: float = DEFAULT_NETWORK_TIMEOUT
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    catalog_releases: int = DEFAULT_CATALOG_RELEASES
    github_token: str | None = None

    @staticmethod
    def defaults() -> "GlobalConfig":
        return GlobalConfig(
            store_root=user_data_path(APP_NAME),
            cache_dir=user_cache_path(APP_NAME),
        )


# Keys settable through `lilyenv config set`, with their value parsers
def _parse_path(value: str) -> Path:
    return Path(value).expanduser().resolve()


def _parse_positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise ValueError("must be positive")
    return number


def _parse_positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise ValueError("must be positive")
    return number


CONFIG_KEYS = {
    "store_root": _parse_path,
    "cache_dir": _parse_path,
    "network_timeout": _parse_positive_float,
    "lock_timeout": _parse_positive_float,
    "catalog_releases": _parse_positive_int,
    "github_token": str,
}


def parse_config_value(key: str, value: str) -> Any:
    """Parse a config value given on the command line.

    Raises:
        ConfigError: If the key is unknown or the value is invalid
    """
    parser = CONFIG_KEYS.get(key)
    if parser is None:
        raise ConfigError(f"Invalid config key: {key}")
    try:
        return parser(value)
    except ValueError as e:
        raise ConfigError(f"Invalid value for {key}: {value} ({e})") from None


def config_from_data(
    data: Mapping[str, Any], environ: Mapping[str, str], path: Path
) -> GlobalConfig:
    """Build a GlobalConfig from parsed TOML data plus environment overrides.

    Unknown keys are ignored.

    Raises:
        ConfigError: If a known key holds a value of the wrong type
    """
    config = GlobalConfig.defaults()
    updates: dict[str, Any] = {}
    for key, parser in CONFIG_KEYS.items():
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, str | int | float):
            raise ConfigError(f"Invalid value for {key} in {path}: {value!r}")
        try:
            updates[key] = parser(str(value))
        except ValueError as e:
            raise ConfigError(f"Invalid value for {key} in {path}: {value!r} ({e})") from None

    if environ.get("LILYENV_HOME"):
        updates["store_root"] = _parse_path(environ["LILYENV_HOME"])
    if not updates.get("github_token") and environ.get("GITHUB_TOKEN"):
        updates["github_token"] = environ["GITHUB_TOKEN"]
    return replace(config, **updates)


class GlobalConfigStore(ABC):
    """Abstract interface for global config operations.

    Provides dependency injection for global config access, enabling
    in-memory implementations for tests without touching filesystem.
    """

    @abstractmethod
    def load(self, environ: Mapping[str, str]) -> GlobalConfig:
        """Load global config, falling back to defaults for missing keys.

        Raises:
            ConfigError: If the config file is malformed
        """
        ...

    @abstractmethod
    def set_value(self, key: str, value: str) -> None:
        """Persist one validated config value.

        Raises:
            ConfigError: If the key is unknown or the value is invalid
        """
        ...

    @abstractmethod
    def path(self) -> Path:
        """Get the path to the global config file (for messages)."""
        ...


class FilesystemGlobalConfigStore(GlobalConfigStore):
    """Production implementation backed by ``config.toml``."""

    def __init__(self, config_path: Path | None = None) -> None:
        if config_path is None:
            config_path = user_config_path(APP_NAME) / "config.toml"
        self._path = config_path

    def path(self) -> Path:
        return self._path

    def load(self, environ: Mapping[str, str]) -> GlobalConfig:
        config_path = self.path()
        data: dict[str, Any] = {}
        if config_path.exists():
            try:
                data = tomllib.loads(config_path.read_text(encoding="utf-8"))
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"Could not parse {config_path}: {e}") from e
        return config_from_data(data, environ, config_path)

    def set_value(self, key: str, value: str) -> None:
        parsed = parse_config_value(key, value)
        config_path = self.path()

        # Load existing file or create new document, preserving comments
        if config_path.exists():
            with config_path.open("r", encoding="utf-8") as f:
                doc = tomlkit.load(f)
        else:
            doc = tomlkit.document()
            doc.add(tomlkit.comment("Global lilyenv configuration"))

        doc[key] = str(parsed) if isinstance(parsed, Path) else parsed

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with config_path.open("w", encoding="utf-8") as f:
            tomlkit.dump(doc, f)


class InMemoryGlobalConfigStore(GlobalConfigStore):
    """Test implementation that stores config data in memory without touching filesystem."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    def load(self, environ: Mapping[str, str]) -> GlobalConfig:
        return config_from_data(self._data, environ, self.path())

    def set_value(self, key: str, value: str) -> None:
        parsed = parse_config_value(key, value)
        self._data[key] = str(parsed) if isinstance(parsed, Path) else parsed

    def path(self) -> Path:
        return Path("/fake/lilyenv/config.toml")
