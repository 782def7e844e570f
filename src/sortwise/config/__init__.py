"""Sortwise settings: the YAML file under ``~/.sortwise`` plus environment and CLI overrides.

The directory holding ``config.yaml`` doubles as the application state
directory; the rotating ``sortwise.log`` is written next to it. Undo journals
are not kept here but under each organization root.
"""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import CustomRule, SortwiseConfig
from .resolver import ENV_PREFIX, flatten_for_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.sortwise/config.yaml")
LOG_FILENAME = "sortwise.log"
_CONFIG_HEADER = textwrap.dedent(
    """\
    # Sortwise configuration file
    # Manage with `sortwise config set KEY --value VALUE` or `sortwise config edit`.
    # Any key can be overridden per run with SORTWISE__SECTION__KEY variables.
    """
)


def parse_env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Turn ``SORTWISE__SECTION__KEY`` variables into a nested override mapping.

    Values are read as YAML scalars so ``true``, ``3`` and ``[a, b]`` arrive
    typed; anything YAML rejects is kept as the raw string. Variables without
    the prefix are ignored.

    Example:
        ``SORTWISE__AI__ENABLED=true`` becomes ``{"ai": {"enabled": True}}``.
    """
    overrides: dict[str, Any] = {}
    for name, raw in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        parts = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
        if not parts:
            continue
        *parents, leaf = parts
        try:
            value: Any = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        node = overrides
        for part in parents:
            if not isinstance(node.get(part), dict):
                node[part] = {}
            node = node[part]
        node[leaf] = value
    return overrides


class ConfigManager:
    """Owns the Sortwise settings file and computes the effective configuration.

    A missing file is created with every default written out, so users can
    edit a complete file. Writes always go through validation first; an
    invalid edit never reaches disk.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Bind the manager to a settings file.

        Args:
            config_path: Settings file; defaults to ``~/.sortwise/config.yaml``.
            env: Environment consulted for ``SORTWISE__`` overrides; defaults to
                ``os.environ``.
        """
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the settings file location."""
        return self._config_path

    @property
    def state_dir(self) -> Path:
        """Return the Sortwise state directory (``~/.sortwise`` by default).

        It holds ``config.yaml`` and the rotating application log.
        """
        return self._config_path.parent

    @property
    def log_path(self) -> Path:
        """Return where the rotating application log is written."""
        return self.state_dir / LOG_FILENAME

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> SortwiseConfig:
        """Return the effective configuration.

        Precedence, lowest first: built-in defaults, ``config.yaml``,
        ``SORTWISE__`` environment variables, then ``cli_overrides`` (dotted
        keys such as ``"organization.root_folder"`` are accepted).

        Args:
            cli_overrides: Values from command-line flags.
            include_env: Whether environment variables are applied.
            ensure_file: Whether a default ``config.yaml`` is written when missing.
            env_overrides: Environment to read instead of the one bound at construction.

        Returns:
            SortwiseConfig: Validated configuration.

        Raises:
            ConfigError: If the file is not valid YAML or a merged value fails validation.
        """
        if ensure_file:
            self.ensure_exists()

        env_source: Mapping[str, str] | None = None
        if include_env:
            env_source = self._env if env_overrides is None else env_overrides

        return resolve_with_precedence(
            defaults=SortwiseConfig(),
            file_overrides=self._read_file(),
            env_overrides=parse_env_overrides(env_source) if env_source else None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the mapping stored in ``config.yaml``, without defaults applied."""
        return self._read_file()

    def save(self, config: SortwiseConfig | Mapping[str, Any]) -> None:
        """Validate and write ``config`` to ``config.yaml``.

        Mappings may be partial; missing keys fall back to defaults when loaded.

        Raises:
            ConfigError: If ``config`` is a mapping that fails validation.
        """
        if isinstance(config, SortwiseConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
            resolve_with_precedence(defaults=SortwiseConfig(), file_overrides=data)
        self._write_file(data)

    def ensure_exists(self) -> Path:
        """Write a ``config.yaml`` holding every default when none exists yet."""
        if not self._config_path.exists():
            self._write_file(SortwiseConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the raw ``config.yaml`` text, or an empty string when missing."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}
        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"{self._config_path} is not valid YAML: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"{self._config_path} must contain a mapping at the top level.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._config_path.write_text(f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8")


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "LOG_FILENAME",
    "SortwiseConfig",
    "CustomRule",
    "parse_env_overrides",
    "resolve_with_precedence",
    "flatten_for_env",
    "ConfigError",
]
