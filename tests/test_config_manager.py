"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from sortwise.config import (
    ConfigError,
    ConfigManager,
    SortwiseConfig,
    flatten_for_env,
    parse_env_overrides,
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

    assert path == tmp_path / ".sortwise" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "Sortwise configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, SortwiseConfig)
    assert config.organization.date_organized_categories == ["Images", "Videos"]
    assert config.ai.enabled is False


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"ai": {"model": "gpt-4o-mini"}, "watch": {"worker_count": 2}})

    env = {"SORTWISE__AI__TEMPERATURE": "0.7", "SORTWISE__WATCH__WORKER_COUNT": "3"}
    cli = {"ai.temperature": 0.2}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.ai.model == "gpt-4o-mini"
    assert config.watch.worker_count == 3
    # CLI overrides take precedence over environment
    assert config.ai.temperature == pytest.approx(0.2)


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=SortwiseConfig(),
            file_overrides={"organization": {"root": "~/Elsewhere"}},
        )


def test_flatten_for_env_round_trips_defaults() -> None:
    flat = flatten_for_env(SortwiseConfig())

    assert flat["SORTWISE__AI__PROVIDER"] == "openai"
    assert flat["SORTWISE__WATCH__STABILIZATION_SECONDS"] == "2.0"
    assert flat["SORTWISE__AI__API_KEY"] == "null"


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=SortwiseConfig(),
            file_overrides={"ai": {"confidence_threshold": 1.5}},
        )


def test_custom_rule_extensions_are_normalized() -> None:
    config = resolve_with_precedence(
        defaults=SortwiseConfig(),
        file_overrides={
            "rules": [{"name": "Invoices", "category": "Finance", "extensions": [".PDF", " xlsx "]}]
        },
    )

    rule = config.rules[0]
    assert rule.extensions == ["pdf", "xlsx"]
    assert rule.priority == 50
    assert rule.sub_category == "General"


def test_parse_env_overrides_nests_typed_values() -> None:
    overrides = parse_env_overrides(
        {
            "SORTWISE__AI__ENABLED": "true",
            "SORTWISE__WATCH__WORKER_COUNT": "3",
            "SORTWISE__PROCESSING__EXCLUDED_PATTERNS": "[\"*.tmp\", \"*.part\"]",
            "SORTWISE__": "ignored",
            "PATH": "/usr/bin",
        }
    )

    assert overrides == {
        "ai": {"enabled": True},
        "watch": {"worker_count": 3},
        "processing": {"excluded_patterns": ["*.tmp", "*.part"]},
    }


def test_save_refuses_invalid_mapping(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()
    before = manager.read_text()

    with pytest.raises(ConfigError):
        manager.save({"ai": {"confidence_threshold": 2}})

    assert manager.read_text() == before


def test_state_dir_holds_config_and_log(tmp_path: Path) -> None:
    manager = ConfigManager(config_path=tmp_path / "state" / "config.yaml")

    assert manager.state_dir == tmp_path / "state"
    assert manager.log_path == tmp_path / "state" / "sortwise.log"
