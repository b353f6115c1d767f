"""metro-pipeline: multi-platform Metro build orchestration with retry, regression detection and CI generation.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
::

    import asyncio
    import metro_pipeline

    config = metro_pipeline.load_config("metro-pipeline.yml")

    # Build every platform×environment combination
    results = asyncio.run(metro_pipeline.run_pipeline(config, branch="main"))

    # Emit CI configuration for the same matrix
    workflow = metro_pipeline.generate_ci("github", config)

    metro_pipeline.__version__
    '0.1.0'
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

__version__: str = "0.1.0"

if TYPE_CHECKING:
    from pathlib import Path

    from metro_pipeline.config import PipelineConfig
    from metro_pipeline.models import BuildResult
    from metro_pipeline.steps import BuildStep


def load_config(path: "str | Path") -> "PipelineConfig":
    """Load and validate a YAML pipeline configuration.

    Raises
    ------
    metro_pipeline.errors.PipelineError
        A ``ConfigurationError`` for malformed or invalid content, or a
        ``FileSystemError`` if the file cannot be read.
    """
    from metro_pipeline.config import ensure_valid
    from metro_pipeline.config import load_config as _load_config

    return ensure_valid(_load_config(path))


async def run_pipeline(
    config: "PipelineConfig",
    step: "BuildStep | None" = None,
    branch: str | None = None,
    commit: str | None = None,
) -> list["BuildResult"]:
    """Initialize an orchestrator for *config* and run one build.

    Parameters
    ----------
    config:
        The pipeline configuration.
    step:
        The build step to run per combination.  Defaults to
        ``CommandBuildStep()`` running ``npm run build``.
    branch, commit:
        Recorded on every result; looked up with git when omitted.

    Returns
    -------
    list[BuildResult]
        One result per combination in configuration order.
    """
    from metro_pipeline.orchestrator import BuildOrchestrator
    from metro_pipeline.steps import CommandBuildStep

    orchestrator = BuildOrchestrator(config, step if step is not None else CommandBuildStep())
    await orchestrator.initialize()
    return await orchestrator.execute_build(branch=branch, commit=commit)


def generate_ci(
    provider: str, config: "PipelineConfig | None" = None, **options: Any
) -> str:
    """Render CI configuration for *provider* (``github``, ``gitlab`` or ``jenkins``).

    When *config* is given the build matrix, branches and retention are
    taken from it; keyword *options* override individual
    ``CITemplateOptions`` fields.
    """
    from metro_pipeline.ci import CITemplateOptions, render

    if config is not None:
        ci_options = CITemplateOptions.from_config(config, **options)
    else:
        ci_options = CITemplateOptions(**options)
    return render(provider, ci_options)


__all__ = [
    "__version__",
    "load_config",
    "run_pipeline",
    "generate_ci",
]
