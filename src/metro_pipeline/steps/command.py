"""Build step that shells out to the project's bundler."""
from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from metro_pipeline.errors import ErrorContext, build_step_error
from metro_pipeline.models import StepOutcome
from metro_pipeline.steps.base import BuildStep
from metro_pipeline.steps.registry import step_registry

if TYPE_CHECKING:
    from metro_pipeline.config import PipelineConfig

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "npm run build"

JS_SUFFIXES = frozenset({".js", ".bundle", ".hbc", ".mjs", ".cjs"})

_MAX_WARNINGS = 50
_STDERR_TAIL = 2000


def measure_output(path: Path) -> tuple[int, int, int]:
    """Return ``(js_bytes, asset_bytes, js_file_count)`` under *path*.

    A missing directory measures as empty.
    """
    js_size = 0
    assets_size = 0
    js_count = 0
    if not path.exists():
        return 0, 0, 0
    for file in path.rglob("*"):
        if not file.is_file():
            continue
        size = file.stat().st_size
        if file.suffix in JS_SUFFIXES:
            js_size += size
            js_count += 1
        else:
            assets_size += size
    return js_size, assets_size, js_count


def collect_warnings(*streams: str) -> tuple[str, ...]:
    """Return the distinct lines mentioning a warning, in order of appearance."""
    seen: dict[str, None] = {}
    for stream in streams:
        for line in stream.splitlines():
            text = line.strip()
            if "warn" in text.lower() and text not in seen:
                seen[text] = None
                if len(seen) >= _MAX_WARNINGS:
                    return tuple(seen)
    return tuple(seen)


def _toggle_env(config: "PipelineConfig") -> dict[str, str]:
    opt = config.optimization
    toggles = {
        "METRO_TREE_SHAKING": opt.tree_shaking,
        "METRO_DEAD_CODE_ELIMINATION": opt.dead_code_elimination,
        "METRO_BUNDLE_SPLITTING": opt.bundle_splitting,
        "METRO_CACHE_OPTIMIZATION": opt.cache_optimization,
        "METRO_BUNDLE_ANALYZER": opt.bundle_analyzer,
    }
    return {key: "1" if value else "0" for key, value in toggles.items()}


@step_registry.register("command")
class CommandBuildStep(BuildStep):
    """Run a shell command per combination and measure what it wrote.

    The command is a ``str.format`` template receiving ``platform``,
    ``environment``, ``dev`` (``"true"`` for the development
    environment) and ``output_dir``.  The child process additionally
    sees ``PLATFORM``, ``NODE_ENV``, ``BUILD_OUTPUT_DIR`` and one
    ``METRO_*`` flag per optimization toggle.

    Parameters
    ----------
    command:
        Command template, run through the shell.
    cwd:
        Working directory of the command.  Defaults to the current one.
    env:
        Extra environment variables for the command.
    """

    def __init__(
        self,
        command: str = DEFAULT_COMMAND,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._command = command
        self._cwd = Path(cwd) if cwd is not None else None
        self._env = dict(env or {})

    @property
    def name(self) -> str:
        return "bundle_build"

    @property
    def command(self) -> str:
        return self._command

    def _output_path(self, platform: str, environment: str, config: "PipelineConfig") -> Path:
        root = Path(config.build.output_dir)
        if self._cwd is not None and not root.is_absolute():
            root = self._cwd / root
        return root / platform / environment

    async def execute(
        self, platform: str, environment: str, config: "PipelineConfig"
    ) -> StepOutcome:
        output_path = self._output_path(platform, environment, config)
        command = self._command.format(
            platform=platform,
            environment=environment,
            dev="true" if environment == "development" else "false",
            output_dir=str(output_path),
        )
        env = {
            **os.environ,
            **_toggle_env(config),
            "PLATFORM": platform,
            "NODE_ENV": environment,
            "BUILD_OUTPUT_DIR": str(output_path),
            **self._env,
        }
        context = ErrorContext(
            operation=self.name, platform=platform, environment=environment
        )

        logger.info("Running %r for %s/%s", command, platform, environment)
        start = time.perf_counter()
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self._cwd,
            env=env,
        )
        try:
            stdout_bytes, stderr_bytes = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise
        duration_ms = (time.perf_counter() - start) * 1000

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        if process.returncode != 0:
            raise build_step_error(
                f"{command!r} exited with status {process.returncode}: "
                f"{stderr.strip()[-_STDERR_TAIL:] or 'no output'}",
                self.name,
                context=context,
            )

        js_size, assets_size, js_count = await asyncio.to_thread(measure_output, output_path)
        return StepOutcome(
            success=True,
            duration_ms=duration_ms,
            output_path=str(output_path),
            bundle_size=js_size,
            assets_size=assets_size,
            bundle_count=js_count,
            warnings=collect_warnings(stdout, stderr),
        )
