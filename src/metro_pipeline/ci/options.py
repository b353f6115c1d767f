"""Options shared by every CI template."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from metro_pipeline.config import PipelineConfig

_VARIABLE_NAME = re.compile(r"^[A-Z_][A-Z0-9_]*$")


@dataclass(frozen=True)
class CITemplateOptions:
    """Inputs of the CI generators.

    Identical options always render to identical text.

    Parameters
    ----------
    platforms, environments:
        The build matrix, in the order jobs are emitted.
    node_versions:
        Node.js versions to build with.  Providers without a native
        matrix use the first one.
    enable_performance_benchmarks:
        Add a job running the performance test suite.
    enable_mutation_testing:
        Add a job running the mutation test suite.
    enable_parallel_builds:
        Let build jobs run at the same time.  When false, providers
        serialize the build matrix.
    include_deployment:
        Add a deploy job on the default branch.
    container_image:
        Image to run jobs in.  ``None`` means the provider's default
        Node image.
    enable_code_quality, enable_security:
        Add lint and dependency-audit jobs.
    artifact_retention_days:
        How long uploaded build artifacts are kept.
    branches:
        Branches whose pushes trigger the pipeline.  The first one is
        the deployment branch.
    schedule:
        Optional cron expression for scheduled runs.
    deploy_credential:
        Name of the CI variable holding the deploy credential.  This is
        the only place such a name may appear in generated text.
    config_path:
        Pipeline configuration file passed to ``metro-pipeline run``.
    """

    platforms: tuple[str, ...] = ("android", "ios")
    environments: tuple[str, ...] = ("development", "production")
    node_versions: tuple[str, ...] = ("18",)
    enable_performance_benchmarks: bool = False
    enable_mutation_testing: bool = False
    enable_parallel_builds: bool = True
    include_deployment: bool = False
    container_image: str | None = None
    enable_code_quality: bool = False
    enable_security: bool = False
    artifact_retention_days: int = 30
    branches: tuple[str, ...] = ("main", "develop")
    schedule: str | None = None
    deploy_credential: str = "EXPO_TOKEN"
    config_path: str = "metro-pipeline.yml"

    def __post_init__(self) -> None:
        if not self.platforms:
            raise ValueError("at least one platform is required")
        if not self.environments:
            raise ValueError("at least one environment is required")
        if not self.node_versions:
            raise ValueError("at least one Node.js version is required")
        if not self.branches:
            raise ValueError("at least one branch is required")
        if self.artifact_retention_days < 1:
            raise ValueError("artifact_retention_days must be >= 1")
        if not _VARIABLE_NAME.match(self.deploy_credential):
            raise ValueError(
                f"deploy_credential must be an upper-case variable name, "
                f"got {self.deploy_credential!r}"
            )

    @property
    def primary_node_version(self) -> str:
        return self.node_versions[0]

    @property
    def default_branch(self) -> str:
        return self.branches[0]

    def combinations(self) -> list[tuple[str, str]]:
        return [(p, e) for p in self.platforms for e in self.environments]

    @classmethod
    def from_config(cls, config: "PipelineConfig", **overrides: Any) -> "CITemplateOptions":
        """Derive options from a pipeline configuration.

        The build matrix, branches, schedule and retention come from
        *config*; keyword *overrides* replace any field.
        """
        values: dict[str, Any] = {
            "platforms": tuple(config.build.platforms),
            "environments": tuple(config.build.environments),
            "enable_parallel_builds": config.build.concurrent,
            "branches": tuple(config.triggers.branches) or ("main",),
            "schedule": (
                config.triggers.schedule_expression
                if config.triggers.on_schedule
                else None
            ),
            "artifact_retention_days": max(config.retention.days, 1),
            "enable_performance_benchmarks": config.performance.enabled,
        }
        values.update(overrides)
        return cls(**values)
