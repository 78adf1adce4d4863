"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from modelshelf.config import (
    ConfigError,
    ConfigManager,
    ShelfConfig,
    assign_dotted,
    flatten_for_env,
    overrides_from_env,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".modelshelf" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "modelshelf configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, ShelfConfig)
    assert "stl" in config.scan.model_extensions


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"scan": {"include_hidden": False}, "watch": {"debounce_seconds": 5}})

    env = {
        "MODELSHELF__WATCH__DEBOUNCE_SECONDS": "3.5",
        "MODELSHELF__SCAN__FOLLOW_SYMLINKS": "true",
    }
    cli = {"watch.debounce_seconds": 0.5}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.scan.include_hidden is False
    assert config.scan.follow_symlinks is True
    # CLI overrides take precedence over environment
    assert config.watch.debounce_seconds == pytest.approx(0.5)


def test_environment_lists_are_parsed_as_yaml(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    config = manager.load(env_overrides={"MODELSHELF__SCAN__MODEL_EXTENSIONS": "[.STL, obj]"})

    assert config.scan.model_extensions == ["stl", "obj"]


def test_unrelated_environment_is_ignored(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    config = manager.load(env_overrides={"PATH": "/usr/bin", "MODELSHELF__": "x"})

    assert config == ShelfConfig()


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_unknown_keys_are_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.save({"scan": {"colour": "blue"}})

    with pytest.raises(ConfigError):
        manager.load(include_env=False)


def test_flatten_for_env_round_trips_defaults() -> None:
    flat = flatten_for_env(ShelfConfig())

    assert flat["MODELSHELF__WATCH__DEBOUNCE_SECONDS"] == "2.0"
    assert flat["MODELSHELF__SCAN__CASE_SENSITIVE"] == "null"
    assert flat["MODELSHELF__SCAN__MODEL_EXTENSIONS"].startswith("[stl, obj")


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=ShelfConfig(),
            file_overrides={"logging": {"max_size_mb": "not-an-int"}},
        )


def test_assign_dotted_refuses_to_replace_scalars() -> None:
    target = {"scan": {"include_hidden": True}}

    assign_dotted(target, ["scan", "follow_symlinks"], True)
    assert target["scan"] == {"include_hidden": True, "follow_symlinks": True}

    with pytest.raises(ConfigError):
        assign_dotted(target, ["scan", "include_hidden", "nested"], 1)


def test_load_without_file_uses_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    assert manager.load(include_env=False) == ShelfConfig()
    assert not manager.config_path.exists()


def test_overrides_from_env_nests_sections() -> None:
    overrides = overrides_from_env(
        {
            "MODELSHELF__SCAN__CASE_SENSITIVE": "false",
            "MODELSHELF__STORAGE__STATE_DIR": "[unterminated",
            "HOME": "/root",
        }
    )

    assert overrides == {
        "scan": {"case_sensitive": False},
        "storage": {"state_dir": "[unterminated"},
    }
