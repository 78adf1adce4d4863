"""Configuration resolution helpers."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import ShelfConfig

ENV_PREFIX = "MODELSHELF__"


def resolve_with_precedence(
    *,
    defaults: ShelfConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> ShelfConfig:
    """Merge configuration sources; later sources win (file < env < cli)."""
    merged = deepcopy(defaults.model_dump(mode="python"))
    for name, source in (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if source is None:
            continue
        overrides = _normalize_mapping(source, source_name=name)
        merged = _deep_merge(merged, overrides)

    try:
        return ShelfConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: ShelfConfig) -> Dict[str, str]:
    """Flatten the config into `MODELSHELF__SECTION__KEY` environment mappings."""
    flat: Dict[str, str] = {}

    def _recurse(prefix: list[str], value: Any) -> None:
        if isinstance(value, dict):
            for key, child in value.items():
                _recurse(prefix + [str(key)], child)
            return
        env_key = ENV_PREFIX + "__".join(part.upper() for part in prefix)
        if isinstance(value, list):
            rendered = yaml.safe_dump(value, default_flow_style=True).strip()
        else:
            rendered = "null" if value is None else str(value)
        flat[env_key] = rendered

    for top_key, child_value in config.model_dump(mode="python").items():
        _recurse([str(top_key)], child_value)

    return flat


def overrides_from_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect `MODELSHELF__SECTION__KEY` variables into a nested mapping.

    Values are parsed as YAML so lists and booleans can be supplied; text that
    is not valid YAML is kept as a plain string.
    """
    overrides: dict[str, Any] = {}
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        path = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__") if segment]
        if not path:
            continue
        try:
            value = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        assign_dotted(overrides, path, value)
    return overrides


def assign_dotted(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign ``value`` into ``target`` following a list of key segments.

    Raises:
        ConfigError: If an intermediate segment already holds a scalar.
    """
    node = target
    for segment in path[:-1]:
        existing = node.setdefault(segment, {})
        if not isinstance(existing, dict):
            raise ConfigError(f"Cannot assign {'.'.join(path)}: {segment} is not a mapping.")
        node = existing
    node[path[-1]] = value


def _normalize_mapping(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")

    result: dict[str, Any] = {}
    for key, value in dict(source).items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        path = key.split(".")
        if isinstance(value, MappingABC):
            value = _normalize_mapping(value, source_name=source_name)
        try:
            existing = _lookup(result, path)
        except KeyError:
            existing = None
        if isinstance(existing, dict) and isinstance(value, dict):
            value = _deep_merge(existing, value)
        try:
            assign_dotted(result, path, value)
        except ConfigError as exc:
            raise ConfigError(
                f"{source_name.capitalize()} override for {key} conflicts with existing value."
            ) from exc
    return result


def _lookup(source: Mapping[str, Any], path: list[str]) -> Any:
    node: Any = source
    for segment in path:
        if not isinstance(node, MappingABC):
            raise KeyError(segment)
        node = node[segment]
    return node


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {key: deepcopy(value) for key, value in base.items()}
    for key, value in overrides.items():
        if isinstance(value, MappingABC) and isinstance(merged.get(key), MappingABC):
            merged[key] = _deep_merge(dict(merged[key]), value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = [
    "ENV_PREFIX",
    "assign_dotted",
    "flatten_for_env",
    "overrides_from_env",
    "resolve_with_precedence",
]
