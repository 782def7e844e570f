"""Tests for component wiring and logging setup."""

import logging
from pathlib import Path

import pytest

from sortwise.classification import AIRequest
from sortwise.config import SortwiseConfig, resolve_with_precedence
from sortwise.config.models import LoggingSettings
from sortwise.events import EventHub
from sortwise.log import LOG_FILENAME, configure_logging
from sortwise.runtime import build_runtime, make_scanner


class EchoTransport:
    def complete(self, request: AIRequest) -> str:
        return '{"category": "Documents", "confidence": 0.9}'

    def check_credentials(self) -> bool:
        return True


def _config(tmp_path: Path, **overrides) -> SortwiseConfig:
    return resolve_with_precedence(
        defaults=SortwiseConfig(),
        cli_overrides={"organization.root_folder": str(tmp_path / "Organized"), **overrides},
    )


def test_build_runtime_without_ai(tmp_path: Path) -> None:
    runtime = build_runtime(_config(tmp_path))

    assert runtime.ai is None
    assert runtime.pipeline.ai_enabled is False
    assert runtime.organization_root == (tmp_path / "Organized").resolve()
    assert runtime.journal.entries() == []
    runtime.close()


def test_build_runtime_with_transport_shares_event_hub(tmp_path: Path) -> None:
    events = EventHub()
    runtime = build_runtime(_config(tmp_path), transport=EchoTransport(), events=events)

    assert runtime.ai is not None
    assert runtime.events is events
    assert runtime.watcher(auto_organize=True) is not None
    runtime.close()


def test_build_runtime_rejects_ambiguous_rules(tmp_path: Path) -> None:
    config = _config(
        tmp_path,
        rules=[
            {"name": "A", "category": "One", "priority": 10},
            {"name": "B", "category": "Two", "priority": 10},
        ],
    )

    with pytest.raises(ValueError):
        build_runtime(config)


def test_make_scanner_excludes_nested_organization_root(tmp_path: Path) -> None:
    (tmp_path / "Organized" / "Documents").mkdir(parents=True)
    (tmp_path / "Organized" / "Documents" / "old.pdf").write_text("x", encoding="utf-8")
    (tmp_path / "new.pdf").write_text("x", encoding="utf-8")

    scanner = make_scanner(_config(tmp_path), tmp_path, recursive=True)

    assert [path.name for path in scanner.scan(tmp_path)] == ["new.pdf"]


def test_configure_logging_replaces_handlers(tmp_path: Path) -> None:
    settings = LoggingSettings(level="info")

    configure_logging(settings, tmp_path)
    configure_logging(settings, tmp_path)

    logger = logging.getLogger("sortwise")
    ours = [handler for handler in logger.handlers if getattr(handler, "_sortwise_handler", False)]
    assert len(ours) == 2
    logging.getLogger("sortwise.tests").warning("hello from tests")
    for handler in ours:
        handler.flush()
    assert "hello from tests" in (tmp_path / LOG_FILENAME).read_text(encoding="utf-8")

    configure_logging(LoggingSettings())
    assert len([h for h in logger.handlers if getattr(h, "_sortwise_handler", False)]) == 1
