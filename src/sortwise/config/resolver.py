"""Merge configuration sources into a validated :class:`SortwiseConfig`."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import SortwiseConfig

ENV_PREFIX = "SORTWISE__"


def resolve_with_precedence(
    *,
    defaults: SortwiseConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> SortwiseConfig:
    """Merge sources in the order defaults, file, environment, CLI.

    Later sources win. Keys may be nested mappings or dotted paths such as
    ``"ai.enabled"``.

    Args:
        defaults: Baseline configuration.
        file_overrides: Values read from the YAML configuration file.
        env_overrides: Values derived from ``SORTWISE__`` environment variables.
        cli_overrides: Values supplied on the command line.

    Returns:
        SortwiseConfig: Validated configuration.

    Raises:
        ConfigError: If a source is malformed or the merged result fails validation.
    """
    merged: dict[str, Any] = defaults.model_dump(mode="python")
    for label, source in (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if source is None:
            continue
        merged = _deep_merge(merged, _expand_dotted(source, label=label))

    try:
        return SortwiseConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: SortwiseConfig) -> Dict[str, str]:
    """Render the config as ``SORTWISE__SECTION__KEY`` environment variables."""
    flat: Dict[str, str] = {}

    def _walk(prefix: list[str], value: Any) -> None:
        if isinstance(value, dict):
            for key, child in value.items():
                _walk([*prefix, str(key)], child)
            return
        name = ENV_PREFIX + "__".join(part.upper() for part in prefix)
        if isinstance(value, list):
            flat[name] = yaml.safe_dump(value, default_flow_style=True).strip()
        elif value is None:
            flat[name] = "null"
        else:
            flat[name] = str(value)

    for key, value in config.model_dump(mode="python").items():
        _walk([key], value)
    return flat


def _expand_dotted(source: Mapping[str, Any], *, label: str) -> dict[str, Any]:
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{label.capitalize()} overrides must be a mapping.")

    expanded: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{label.capitalize()} override keys must be strings.")
        segments = key.split(".")
        node = expanded
        for segment in segments[:-1]:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(
                    f"{label.capitalize()} override for {key} conflicts with existing value."
                )
            node = child
        leaf = segments[-1]
        if isinstance(value, MappingABC):
            previous = node.get(leaf)
            nested = _expand_dotted(value, label=label)
            node[leaf] = _deep_merge(previous, nested) if isinstance(previous, dict) else nested
        else:
            node[leaf] = value
    return expanded


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    result = {key: deepcopy(value) for key, value in base.items()}
    for key, value in overrides.items():
        current = result.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            result[key] = _deep_merge(current, value)
        else:
            result[key] = deepcopy(value)
    return result


__all__ = ["ENV_PREFIX", "resolve_with_precedence", "flatten_for_env"]
