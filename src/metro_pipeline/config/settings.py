"""Pipeline configuration values.

``PipelineConfig`` is a tree of frozen dataclasses mirroring the YAML
configuration file.  Construction never validates: an invalid config
must be able to reach ``BuildOrchestrator.initialize()``, which calls
:meth:`PipelineConfig.validate` and fails with a ``ConfigurationError``.

Example YAML
------------
::

    enabled: true
    ci_platform: github
    performance:
      threshold_bundle_size: 10
      threshold_build_time: 25
      baseline_builds: 5
    build:
      platforms: [android, ios]
      environments: [development, production]
      output_dir: dist
    retry:
      max_attempts: 3
      base_delay_ms: 1000
"""
from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from metro_pipeline.errors import (
    FileOperation,
    configuration_error,
    file_system_error,
)
from metro_pipeline.retry.strategy import RecoveryStrategy, RetryStrategy


class CIPlatform(Enum):
    """CI provider the pipeline integrates with."""

    GITHUB = "github"
    GITLAB = "gitlab"
    JENKINS = "jenkins"
    AZURE = "azure"
    GENERIC = "generic"


@dataclass(frozen=True)
class TriggerConfig:
    """When CI should run the pipeline."""

    on_push: bool = True
    on_pull_request: bool = True
    on_schedule: bool = False
    schedule_expression: str = "0 2 * * *"
    branches: tuple[str, ...] = ("main", "develop")


@dataclass(frozen=True)
class PerformanceThresholds:
    """Regression detection settings.

    Percentages are increases over the rolling baseline mean.
    """

    enabled: bool = True
    threshold_bundle_size: float = 10.0
    threshold_build_time: float = 25.0
    baseline_builds: int = 5
    alert_on_regression: bool = False


@dataclass(frozen=True)
class OptimizationToggles:
    """Bundler optimizations passed through to the external build step."""

    tree_shaking: bool = True
    dead_code_elimination: bool = True
    bundle_splitting: bool = False
    cache_optimization: bool = True
    bundle_analyzer: bool = True


@dataclass(frozen=True)
class RetentionPolicy:
    """How many report artifacts to keep, and for how long."""

    days: int = 30
    max_artifacts: int = 100


@dataclass(frozen=True)
class NotificationSettings:
    """Who to tell about finished runs.  Recorded, not delivered."""

    slack_webhook: str | None = None
    slack_channels: tuple[str, ...] = ()
    email_recipients: tuple[str, ...] = ()
    github_comments: bool = False
    github_status_checks: bool = False

    @property
    def any_enabled(self) -> bool:
        return bool(
            self.slack_webhook
            or self.email_recipients
            or self.github_comments
            or self.github_status_checks
        )


@dataclass(frozen=True)
class BuildSettings:
    """The build matrix and where its outputs go.

    Parameters
    ----------
    platforms, environments:
        Enumerated in configuration order; their cross product is the
        set of build combinations.
    output_dir:
        Root directory for build outputs.
    report_dir:
        Directory for persisted build reports.
    history_path:
        Optional JSON file persisting regression baselines across runs.
    concurrent:
        Run combinations as parallel tasks instead of one after another.
    max_parallel:
        Upper bound on simultaneously running combinations.
    default_timeout:
        Seconds after which a single build is abandoned.
    timeouts:
        Per-platform overrides of ``default_timeout``.
    """

    platforms: tuple[str, ...] = ("android", "ios")
    environments: tuple[str, ...] = ("development", "production")
    output_dir: str = "dist"
    report_dir: str = "build-reports"
    history_path: str | None = None
    concurrent: bool = False
    max_parallel: int = 2
    default_timeout: float = 600.0
    timeouts: Mapping[str, float] = field(default_factory=dict)

    def timeout_for(self, platform: str) -> float:
        """Return the build timeout in seconds for *platform*."""
        return float(self.timeouts.get(platform, self.default_timeout))

    def combinations(self) -> list[tuple[str, str]]:
        """Return every (platform, environment) pair in configuration order."""
        return [(p, e) for p in self.platforms for e in self.environments]


@dataclass(frozen=True)
class PipelineConfig:
    """Complete, immutable configuration of a pipeline run."""

    enabled: bool = True
    ci_platform: CIPlatform = CIPlatform.GITHUB
    triggers: TriggerConfig = field(default_factory=TriggerConfig)
    performance: PerformanceThresholds = field(default_factory=PerformanceThresholds)
    optimization: OptimizationToggles = field(default_factory=OptimizationToggles)
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    build: BuildSettings = field(default_factory=BuildSettings)
    retry: RetryStrategy = field(default_factory=RetryStrategy)
    recovery: RecoveryStrategy = field(default_factory=RecoveryStrategy)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> list[str]:
        """Return every problem with this configuration (empty if valid)."""
        problems: list[str] = []
        # Negated comparisons so NaN fails them.
        perf = self.performance
        if not perf.threshold_bundle_size >= 0:
            problems.append("performance.threshold_bundle_size must be >= 0")
        if not perf.threshold_build_time >= 0:
            problems.append("performance.threshold_build_time must be >= 0")
        if perf.baseline_builds < 1:
            problems.append("performance.baseline_builds must be >= 1")

        build = self.build
        if not build.platforms:
            problems.append("build.platforms must not be empty")
        if not build.environments:
            problems.append("build.environments must not be empty")
        for name, values in (
            ("platforms", build.platforms),
            ("environments", build.environments),
        ):
            if any(not value.strip() for value in values):
                problems.append(f"build.{name} must not contain blank names")
            duplicates = sorted({v for v in values if values.count(v) > 1})
            if duplicates:
                problems.append(
                    f"build.{name} contains duplicates: {', '.join(duplicates)}"
                )
        if not build.output_dir.strip():
            problems.append("build.output_dir is required")
        if not build.report_dir.strip():
            problems.append("build.report_dir is required")
        if build.max_parallel < 1:
            problems.append("build.max_parallel must be >= 1")
        if not build.default_timeout > 0:
            problems.append("build.default_timeout must be > 0")
        for platform, seconds in sorted(build.timeouts.items()):
            if not seconds > 0:
                problems.append(f"build.timeouts.{platform} must be > 0")

        if self.retention.days < 0:
            problems.append("retention.days must be >= 0")
        if self.retention.max_artifacts < 1:
            problems.append("retention.max_artifacts must be >= 1")
        if self.triggers.on_schedule and not self.triggers.schedule_expression.strip():
            problems.append("triggers.schedule_expression is required when on_schedule is set")
        return problems

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the plain mapping form accepted by :meth:`from_dict`."""
        return {
            "enabled": self.enabled,
            "ci_platform": self.ci_platform.value,
            "triggers": _section_to_dict(self.triggers),
            "performance": _section_to_dict(self.performance),
            "optimization": _section_to_dict(self.optimization),
            "retention": _section_to_dict(self.retention),
            "notifications": _section_to_dict(self.notifications),
            "build": _section_to_dict(self.build),
            "retry": self.retry.to_dict(),
            "recovery": self.recovery.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PipelineConfig":
        """Build a config from its plain mapping form.

        Missing keys take their defaults.

        Raises
        ------
        PipelineError
            A ``ConfigurationError`` for unknown keys, wrongly typed
            values or values the retry strategy rejects.
        """
        if not isinstance(data, Mapping):
            raise configuration_error(
                f"configuration must be a mapping, got {type(data).__name__}"
            )
        _reject_unknown(data, {f.name for f in dataclasses.fields(cls)}, "")

        kwargs: dict[str, Any] = {}
        if "enabled" in data:
            kwargs["enabled"] = _coerce(data["enabled"], bool, "enabled")
        if "ci_platform" in data:
            raw = data["ci_platform"]
            try:
                kwargs["ci_platform"] = CIPlatform(raw)
            except ValueError:
                choices = ", ".join(p.value for p in CIPlatform)
                raise configuration_error(
                    f"ci_platform must be one of {choices}, got {raw!r}"
                ) from None
        for name, section_cls in _SECTIONS.items():
            if name in data:
                kwargs[name] = _section_from_dict(section_cls, data[name], name)
        if "retry" in data:
            retry_kwargs = _section_kwargs(RetryStrategy, data["retry"], "retry")
            try:
                kwargs["retry"] = RetryStrategy(**retry_kwargs)
            except ValueError as exc:
                raise configuration_error(f"retry: {exc}") from exc
        if "recovery" in data:
            kwargs["recovery"] = _section_from_dict(
                RecoveryStrategy, data["recovery"], "recovery"
            )
        return cls(**kwargs)


_SECTIONS: dict[str, type] = {
    "triggers": TriggerConfig,
    "performance": PerformanceThresholds,
    "optimization": OptimizationToggles,
    "retention": RetentionPolicy,
    "notifications": NotificationSettings,
    "build": BuildSettings,
}

# Field name → expected type for every section field that is not a
# plain bool/str/int/float default.
_SPECIAL_FIELDS: dict[str, Any] = {
    "branches": tuple,
    "slack_channels": tuple,
    "email_recipients": tuple,
    "platforms": tuple,
    "environments": tuple,
    "timeouts": Mapping,
    "fallback_config": Mapping,
    "history_path": str,
    "slack_webhook": str,
}

_NULLABLE_FIELDS = frozenset({"history_path", "slack_webhook", "fallback_config"})


def default_config() -> PipelineConfig:
    """Return the default configuration."""
    return PipelineConfig()


def ensure_valid(config: PipelineConfig) -> PipelineConfig:
    """Return *config* unchanged, or raise if it has any problem.

    Raises
    ------
    PipelineError
        A ``ConfigurationError`` listing every problem found.
    """
    problems = config.validate()
    if problems:
        raise configuration_error(
            "invalid pipeline configuration: " + "; ".join(problems)
        )
    return config


def load_config(path: str | Path) -> PipelineConfig:
    """Load a YAML configuration file.

    Raises
    ------
    PipelineError
        A ``FileSystemError`` if the file cannot be read, or a
        ``ConfigurationError`` if it is not valid YAML or not a valid
        configuration.
    """
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise file_system_error(
            f"cannot read configuration file: {exc.strerror or exc}",
            str(config_path),
            FileOperation.READ,
        ) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise configuration_error(f"{config_path}: malformed YAML: {exc}") from exc
    if data is None:
        data = {}
    return PipelineConfig.from_dict(data)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _section_to_dict(section: Any) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for f in dataclasses.fields(section):
        value = getattr(section, f.name)
        if isinstance(value, tuple):
            value = list(value)
        elif isinstance(value, Mapping):
            value = dict(value)
        result[f.name] = value
    return result


def _reject_unknown(data: Mapping[str, Any], known: set[str], prefix: str) -> None:
    unknown = sorted(str(k) for k in data if k not in known)
    if unknown:
        where = f" in {prefix}" if prefix else ""
        raise configuration_error(f"unknown configuration key(s){where}: {', '.join(unknown)}")


def _section_kwargs(section_cls: type, raw: Any, name: str) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise configuration_error(f"{name} must be a mapping, got {type(raw).__name__}")
    fields = {f.name: f for f in dataclasses.fields(section_cls)}
    _reject_unknown(raw, set(fields), name)
    kwargs: dict[str, Any] = {}
    for key, value in raw.items():
        if value is None and key in _NULLABLE_FIELDS:
            kwargs[key] = None
            continue
        expected = _SPECIAL_FIELDS.get(key)
        if expected is None:
            default = fields[key].default
            expected = type(default)
        kwargs[key] = _coerce(value, expected, f"{name}.{key}")
    if "timeouts" in kwargs:
        kwargs["timeouts"] = {
            str(platform): _coerce(seconds, float, f"{name}.timeouts.{platform}")
            for platform, seconds in kwargs["timeouts"].items()
        }
    return kwargs


def _section_from_dict(section_cls: type, raw: Any, name: str) -> Any:
    return section_cls(**_section_kwargs(section_cls, raw, name))


def _coerce(value: Any, expected: Any, where: str) -> Any:
    """Check *value* against *expected*, converting where unambiguous."""
    if expected is bool:
        if isinstance(value, bool):
            return value
    elif expected is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif expected is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif expected is str:
        if isinstance(value, str):
            return value
    elif expected is tuple:
        if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
            return tuple(value)
        if isinstance(value, str):
            return (value,)
    elif expected is Mapping:
        if isinstance(value, Mapping):
            return dict(value)
    raise configuration_error(
        f"{where} has invalid value {value!r} "
        f"(expected {getattr(expected, '__name__', expected)})"
    )


__all__ = [
    "CIPlatform",
    "TriggerConfig",
    "PerformanceThresholds",
    "OptimizationToggles",
    "RetentionPolicy",
    "NotificationSettings",
    "BuildSettings",
    "PipelineConfig",
    "default_config",
    "ensure_valid",
    "load_config",
]
