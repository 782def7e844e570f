"""Assemble the engine components from a loaded configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sortwise.classification import AIClassifier, AITransport, ClassificationPipeline, RuleClassifier, SkipPolicy
from sortwise.config import SortwiseConfig
from sortwise.events import EventHub
from sortwise.ingestion import DirectoryScanner, MetadataExtractor
from sortwise.organization import DestinationPlanner, OrganizeEngine
from sortwise.state import InMemoryRecordStore, JsonlJournalStore, UndoJournal, journal_path_for
from sortwise.watch import FolderWatcher

LOGGER = logging.getLogger(__name__)


def make_scanner(config: SortwiseConfig, root: Path, *, recursive: bool) -> DirectoryScanner:
    """Return a scanner for ``root`` honoring the processing settings.

    The organization root is left out when it is nested inside ``root``.
    """
    organized = Path(config.organization.root_folder).expanduser().resolve()
    return DirectoryScanner(
        recursive=recursive,
        include_hidden=config.processing.process_hidden_files,
        follow_symlinks=config.processing.follow_symlinks,
        exclude=(organized,) if root.expanduser().resolve() in organized.parents else (),
    )


@dataclass(slots=True)
class Runtime:
    """Wired components sharing one record store and event hub.

    Attributes:
        config: Configuration the components were built from.
        events: Observer hub shared by every component.
        store: Tracked record store.
        rules: Rule classifier including user-defined rules.
        ai: AI classifier, or ``None`` when AI analysis is disabled.
        planner: Destination planner for the organization root.
        journal: Undo journal stored under the organization root.
        pipeline: Classification pipeline.
        engine: Organize engine.
    """

    config: SortwiseConfig
    events: EventHub
    store: InMemoryRecordStore
    rules: RuleClassifier
    ai: Optional[AIClassifier]
    planner: DestinationPlanner
    journal: UndoJournal
    pipeline: ClassificationPipeline
    engine: OrganizeEngine

    @property
    def organization_root(self) -> Path:
        """Return the organization root."""
        return self.planner.root

    def scanner(self, root: Path, *, recursive: bool) -> DirectoryScanner:
        """Return a scanner for ``root`` honoring the processing settings."""
        return make_scanner(self.config, root, recursive=recursive)

    def watcher(self, *, auto_organize: Optional[bool] = None) -> FolderWatcher:
        """Return a folder watcher bound to these components."""
        organization = self.config.organization
        return FolderWatcher(
            self.pipeline,
            self.engine,
            self.store,
            settings=self.config.watch,
            events=self.events,
            auto_organize=organization.auto_organize_enabled if auto_organize is None else auto_organize,
            auto_organize_min_confidence=organization.auto_organize_min_confidence,
        )

    def close(self) -> None:
        """Wait for queued AI work and release worker threads."""
        self.pipeline.shutdown()


def build_runtime(
    config: SortwiseConfig,
    *,
    transport: Optional[AITransport] = None,
    events: Optional[EventHub] = None,
) -> Runtime:
    """Build every component from ``config``.

    Args:
        config: Effective configuration.
        transport: AI transport to use instead of the configured DSPy client.
        events: Event hub to share; a new one is created when omitted.

    Returns:
        Runtime: Wired components.

    Raises:
        ValueError: If the custom rules are ambiguous.
        RuntimeError: If AI analysis is enabled but DSPy is not installed.
    """
    hub = events or EventHub()
    store = InMemoryRecordStore()
    rules = RuleClassifier(config.rules)
    extractor = MetadataExtractor()

    organization = config.organization
    root = Path(organization.root_folder).expanduser().resolve()
    planner = DestinationPlanner(
        root,
        date_categories=organization.date_organized_categories,
        conflict_strategy=organization.conflict_resolution,
        extractor=extractor,
    )
    journal = UndoJournal(JsonlJournalStore(journal_path_for(root)))

    ai: Optional[AIClassifier] = None
    if config.ai.enabled or transport is not None:
        if transport is None:
            from sortwise.classification.llm import DSPyTransport

            transport = DSPyTransport(config.ai, categories=rules.categories)
        max_bytes = config.processing.max_file_size_mb * 1024 * 1024 if config.processing.max_file_size_mb > 0 else None
        ai = AIClassifier(
            transport,
            confidence_threshold=config.ai.confidence_threshold,
            max_concurrency=config.ai.max_concurrency,
            inter_call_delay=config.ai.inter_call_delay_seconds,
            categories=rules.categories,
            excerpt_chars=config.ai.max_excerpt_chars,
            max_excerpt_bytes=max_bytes,
            extractor=extractor,
        )

    pipeline = ClassificationPipeline(
        store,
        rules,
        planner,
        ai=ai,
        events=hub,
        skip_policy=SkipPolicy(
            include_hidden=config.processing.process_hidden_files,
            excluded_patterns=config.processing.excluded_patterns,
        ),
        ai_workers=config.ai.max_concurrency,
    )
    engine = OrganizeEngine(
        store,
        journal,
        planner,
        events=hub,
        announce=config.notifications.show_notifications,
    )
    LOGGER.debug("Runtime ready (organization root %s, AI %s)", root, "on" if ai else "off")
    return Runtime(
        config=config,
        events=hub,
        store=store,
        rules=rules,
        ai=ai,
        planner=planner,
        journal=journal,
        pipeline=pipeline,
        engine=engine,
    )


__all__ = ["Runtime", "build_runtime", "make_scanner"]
