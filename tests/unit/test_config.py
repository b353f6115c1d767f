"""Unit tests for metro_pipeline.config."""
from __future__ import annotations

from pathlib import Path

import pytest

from metro_pipeline.config import (
    BuildSettings,
    CIPlatform,
    PerformanceThresholds,
    PipelineConfig,
    RetentionPolicy,
    default_config,
    ensure_valid,
    load_config,
)
from metro_pipeline.errors import ErrorKind, FileOperation, PipelineError
from metro_pipeline.retry import RetryStrategy

_YAML = """\
enabled: true
ci_platform: gitlab
performance:
  threshold_bundle_size: 15
  baseline_builds: 3
build:
  platforms: [android]
  environments: [production]
  output_dir: out
  timeouts:
    ios: 900
retry:
  max_attempts: 5
  base_delay_ms: 250
recovery:
  graceful_degradation: true
  fallback_config:
    minify: false
"""


class TestDefaults:
    def test_default_config_is_valid(self) -> None:
        assert default_config().validate() == []

    def test_default_matrix(self) -> None:
        assert default_config().build.combinations() == [
            ("android", "development"),
            ("android", "production"),
            ("ios", "development"),
            ("ios", "production"),
        ]

    def test_timeout_for_uses_override(self) -> None:
        build = BuildSettings(default_timeout=600, timeouts={"ios": 900})
        assert build.timeout_for("ios") == 900
        assert build.timeout_for("android") == 600


class TestValidate:
    def test_reports_every_problem(self) -> None:
        config = PipelineConfig(
            performance=PerformanceThresholds(threshold_bundle_size=-1, baseline_builds=0),
            build=BuildSettings(platforms=(), output_dir=" ", max_parallel=0),
            retention=RetentionPolicy(days=-1, max_artifacts=0),
        )
        problems = config.validate()
        assert "performance.threshold_bundle_size must be >= 0" in problems
        assert "performance.baseline_builds must be >= 1" in problems
        assert "build.platforms must not be empty" in problems
        assert "build.output_dir is required" in problems
        assert "build.max_parallel must be >= 1" in problems
        assert "retention.days must be >= 0" in problems
        assert "retention.max_artifacts must be >= 1" in problems

    def test_duplicate_platforms(self) -> None:
        config = PipelineConfig(build=BuildSettings(platforms=("ios", "ios")))
        assert config.validate() == ["build.platforms contains duplicates: ios"]

    def test_non_positive_platform_timeout(self) -> None:
        config = PipelineConfig(build=BuildSettings(timeouts={"web": 0}))
        assert config.validate() == ["build.timeouts.web must be > 0"]

    @pytest.mark.parametrize("field", ["threshold_bundle_size", "threshold_build_time"])
    def test_nan_threshold_is_rejected(self, field: str) -> None:
        config = PipelineConfig.from_dict({"performance": {field: float("nan")}})
        assert config.validate() == [f"performance.{field} must be >= 0"]

    def test_nan_timeout_is_rejected(self) -> None:
        config = PipelineConfig(build=BuildSettings(default_timeout=float("nan")))
        assert config.validate() == ["build.default_timeout must be > 0"]

    def test_ensure_valid_raises_configuration_error(self) -> None:
        config = PipelineConfig(build=BuildSettings(environments=()))
        with pytest.raises(PipelineError) as excinfo:
            ensure_valid(config)
        assert excinfo.value.kind is ErrorKind.CONFIGURATION
        assert "build.environments must not be empty" in excinfo.value.message

    def test_ensure_valid_returns_config(self) -> None:
        config = default_config()
        assert ensure_valid(config) is config


class TestFromDict:
    def test_missing_keys_take_defaults(self) -> None:
        assert PipelineConfig.from_dict({}) == PipelineConfig()

    def test_round_trip(self) -> None:
        config = PipelineConfig(
            ci_platform=CIPlatform.JENKINS,
            build=BuildSettings(platforms=("web",), timeouts={"web": 30.0}),
            retry=RetryStrategy(max_attempts=2),
        )
        assert PipelineConfig.from_dict(config.to_dict()) == config

    def test_unknown_top_level_key(self) -> None:
        with pytest.raises(PipelineError, match="unknown configuration key"):
            PipelineConfig.from_dict({"bulid": {}})

    def test_unknown_section_key(self) -> None:
        with pytest.raises(PipelineError, match="in build"):
            PipelineConfig.from_dict({"build": {"platform": ["ios"]}})

    def test_wrong_type(self) -> None:
        with pytest.raises(PipelineError) as excinfo:
            PipelineConfig.from_dict({"build": {"max_parallel": "two"}})
        assert excinfo.value.kind is ErrorKind.CONFIGURATION

    def test_bool_is_not_a_number(self) -> None:
        with pytest.raises(PipelineError):
            PipelineConfig.from_dict({"performance": {"threshold_bundle_size": True}})

    def test_int_is_accepted_for_float(self) -> None:
        config = PipelineConfig.from_dict({"performance": {"threshold_build_time": 30}})
        assert config.performance.threshold_build_time == 30.0

    def test_single_string_becomes_tuple(self) -> None:
        config = PipelineConfig.from_dict({"build": {"platforms": "ios"}})
        assert config.build.platforms == ("ios",)

    def test_unknown_ci_platform(self) -> None:
        with pytest.raises(PipelineError, match="ci_platform must be one of"):
            PipelineConfig.from_dict({"ci_platform": "travis"})

    def test_invalid_retry_is_configuration_error(self) -> None:
        with pytest.raises(PipelineError, match="retry:"):
            PipelineConfig.from_dict({"retry": {"max_attempts": 0}})

    def test_non_mapping(self) -> None:
        with pytest.raises(PipelineError, match="must be a mapping"):
            PipelineConfig.from_dict(["build"])  # type: ignore[arg-type]

    def test_invalid_values_construct_without_raising(self) -> None:
        config = PipelineConfig.from_dict({"build": {"platforms": []}})
        assert config.validate() == ["build.platforms must not be empty"]


class TestLoadConfig:
    def test_loads_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "metro-pipeline.yml"
        path.write_text(_YAML, encoding="utf-8")
        config = load_config(path)
        assert config.ci_platform is CIPlatform.GITLAB
        assert config.performance.threshold_bundle_size == 15.0
        assert config.performance.baseline_builds == 3
        assert config.build.combinations() == [("android", "production")]
        assert config.build.timeout_for("ios") == 900.0
        assert config.retry.max_attempts == 5
        assert config.recovery.graceful_degradation is True
        assert config.recovery.fallback_config == {"minify": False}

    def test_empty_file_is_default(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == PipelineConfig()

    def test_missing_file_is_read_error(self, tmp_path: Path) -> None:
        with pytest.raises(PipelineError) as excinfo:
            load_config(tmp_path / "absent.yml")
        assert excinfo.value.kind is ErrorKind.FILE_SYSTEM
        assert excinfo.value.operation is FileOperation.READ

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yml"
        path.write_text("build: [unclosed\n", encoding="utf-8")
        with pytest.raises(PipelineError, match="malformed YAML"):
            load_config(path)
