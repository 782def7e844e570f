"""Configuration models describing Sortwise settings."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SortwiseBaseModel(BaseModel):
    """Shared configuration for Sortwise Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class OrganizationSettings(SortwiseBaseModel):
    """Settings that govern where and when files are organized.

    Attributes:
        root_folder: Root of the organized tree; destinations are computed below it.
        auto_organize_enabled: Whether watched files are moved without confirmation.
        auto_organize_min_confidence: Confidence floor a record must reach before
            auto-organize moves it.
        date_organized_categories: Categories whose destinations nest by year/month.
        conflict_resolution: Disambiguation style used when a destination is taken.
    """

    root_folder: str = "~/Sortwise"
    auto_organize_enabled: bool = False
    auto_organize_min_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    date_organized_categories: List[str] = Field(default_factory=lambda: ["Images", "Videos"])
    conflict_resolution: Literal["append_number", "timestamp"] = "append_number"


class AISettings(SortwiseBaseModel):
    """External AI classifier configuration.

    Attributes:
        enabled: Whether AI re-analysis is used for low and medium confidence results.
        api_key: Credential passed to the configured provider.
        confidence_threshold: Minimum confidence an AI answer needs to be merged.
        provider: Identifier for the language-model provider.
        model: Model name to target when issuing requests.
        api_base_url: Optional custom endpoint for self-hosted providers.
        temperature: Sampling temperature for generative calls.
        max_tokens: Maximum number of tokens in responses.
        request_timeout_seconds: Per-request timeout enforced by the transport.
        inter_call_delay_seconds: Pause between sequential batch calls.
        max_concurrency: Number of AI calls admitted at the same time.
        max_excerpt_chars: Number of leading text characters sent with a request.
    """

    enabled: bool = False
    api_key: Optional[str] = None
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    provider: str = "openai"
    model: str = "gpt-3.5-turbo"
    api_base_url: Optional[str] = None
    temperature: float = 0.3
    max_tokens: int = 500
    request_timeout_seconds: float = 30.0
    inter_call_delay_seconds: float = 0.1
    max_concurrency: int = Field(default=1, ge=1)
    max_excerpt_chars: int = 2_000


class NotificationSettings(SortwiseBaseModel):
    """Notification preferences.

    Attributes:
        show_notifications: Whether organize results are announced on the status channel.
    """

    show_notifications: bool = True


class ProcessingOptions(SortwiseBaseModel):
    """Options controlling which files enter the pipeline.

    Attributes:
        process_hidden_files: Whether hidden files should be classified.
        follow_symlinks: Whether to traverse symbolic links during scans.
        max_file_size_mb: Files above this size are never read for AI excerpts.
        excluded_patterns: Glob patterns matched against file names to skip.
    """

    process_hidden_files: bool = False
    follow_symlinks: bool = False
    max_file_size_mb: int = 100
    excluded_patterns: List[str] = Field(default_factory=list)


class WatchSettings(SortwiseBaseModel):
    """Folder watcher tuning.

    Attributes:
        stabilization_seconds: Quiet period after the last write before a file is ready.
        scan_interval_seconds: Minimum delay between debounce passes.
        worker_count: Size of the classification/organization worker pool.
        recursive: Whether subdirectories of watched roots are monitored.
    """

    stabilization_seconds: float = Field(default=2.0, gt=0)
    scan_interval_seconds: float = Field(default=0.5, gt=0)
    worker_count: int = Field(default=4, ge=1)
    recursive: bool = False


class CleanupSettings(SortwiseBaseModel):
    """Heuristics for cleanup candidate detection.

    Attributes:
        stale_age_days: Age after which files in low-value locations are flagged.
        installer_age_days: Age after which installer packages are flagged.
        large_file_mb: Size above which old, untouched files are flagged.
        low_value_dirs: Directory names considered low-value locations.
    """

    stale_age_days: int = 90
    installer_age_days: int = 30
    large_file_mb: int = 100
    low_value_dirs: List[str] = Field(
        default_factory=lambda: ["downloads", "temp", "tmp", "cache", ".cache", "trash"]
    )


class LoggingSettings(SortwiseBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    max_size_mb: int = 10
    backup_count: int = 5


class CLIOptions(SortwiseBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class CustomRule(SortwiseBaseModel):
    """User-defined classification rule evaluated before the built-in table.

    Attributes:
        name: Display name for the rule.
        category: Category assigned on match.
        sub_category: Sub-category assigned on match.
        extensions: Extensions (without dots) the rule applies to; empty means any.
        pattern: Optional case-insensitive regular expression matched against the name.
        priority: Evaluation order, 1 being evaluated first.
        enabled: Whether the rule participates in classification.
    """

    name: str
    category: str
    sub_category: str = "General"
    extensions: List[str] = Field(default_factory=list)
    pattern: Optional[str] = None
    priority: int = Field(default=50, ge=1, le=100)
    enabled: bool = True

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(cls, value: List[str]) -> List[str]:
        return [item.strip().lstrip(".").lower() for item in value if item.strip()]


class SortwiseConfig(SortwiseBaseModel):
    """Top-level configuration struct for Sortwise.

    Attributes:
        organization: Destination and auto-organize settings.
        ai: External AI classifier settings.
        notifications: Notification preferences.
        processing: Pipeline admission settings.
        watch: Folder watcher settings.
        cleanup: Cleanup heuristics.
        logging: Logging configuration.
        cli: CLI presentation defaults.
        rules: User-defined classification rules.
    """

    organization: OrganizationSettings = Field(default_factory=OrganizationSettings)
    ai: AISettings = Field(default_factory=AISettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    processing: ProcessingOptions = Field(default_factory=ProcessingOptions)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    cleanup: CleanupSettings = Field(default_factory=CleanupSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)
    rules: List[CustomRule] = Field(default_factory=list)


__all__ = [
    "SortwiseBaseModel",
    "OrganizationSettings",
    "AISettings",
    "NotificationSettings",
    "ProcessingOptions",
    "WatchSettings",
    "CleanupSettings",
    "LoggingSettings",
    "CLIOptions",
    "CustomRule",
    "SortwiseConfig",
]
