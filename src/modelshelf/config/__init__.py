"""Configuration management for modelshelf."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import ScanOptions, ShelfConfig
from .resolver import assign_dotted, flatten_for_env, overrides_from_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.modelshelf/config.yaml")
_CONFIG_HEADER = (
    "# modelshelf configuration file\n"
    "# Edit by hand or with `modelshelf config set KEY --value VALUE`.\n"
)


class ConfigManager:
    """Read and write ``config.yaml`` and resolve the effective settings."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> ShelfConfig:
        """Return defaults overlaid with the file, environment and CLI values.

        Raises:
            ConfigError: If the file cannot be parsed or a value is invalid.
        """
        env_data = None
        if include_env:
            env_data = overrides_from_env(
                env_overrides if env_overrides is not None else self._env
            )
        return resolve_with_precedence(
            defaults=ShelfConfig(),
            file_overrides=self.load_file_overrides(),
            env_overrides=env_data,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored in the configuration file."""
        text = self.read_text()
        try:
            raw = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse {self._config_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"{self._config_path} must contain a mapping at the top level.")
        return raw

    def save(self, data: Mapping[str, Any]) -> None:
        """Write ``data`` to the configuration file under a timestamped header."""
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
        )

    def ensure_exists(self) -> Path:
        """Write the default settings if no configuration file exists yet."""
        if not self._config_path.exists():
            self.save(ShelfConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")


__all__ = [
    "ConfigManager",
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "ScanOptions",
    "ShelfConfig",
    "assign_dotted",
    "flatten_for_env",
    "overrides_from_env",
    "resolve_with_precedence",
]
