"""CLI entry point for metro-pipeline.

Invoked as::

    metro-pipeline [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m metro_pipeline.cli.main

Commands
--------
validate    Load and validate a pipeline configuration file
ci          Generate CI configuration for GitHub, GitLab or Jenkins
run         Build every platform×environment combination
steps       List registered build steps
version     Show version information
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import sys
from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

if TYPE_CHECKING:
    from metro_pipeline.config import PipelineConfig
    from metro_pipeline.models import BuildResult

console = Console()
err_console = Console(stderr=True)


def _load_or_exit(path: str) -> "PipelineConfig":
    """Load a configuration file, printing the error and exiting on failure."""
    from metro_pipeline.config import load_config
    from metro_pipeline.errors import PipelineError

    try:
        return load_config(path)
    except PipelineError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)


def _state_color(result: "BuildResult") -> str:
    if result.success:
        return "green"
    if result.cancelled or result.degraded:
        return "yellow"
    return "red"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="metro-pipeline")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Multi-platform Metro build pipeline: orchestration, regression detection, CI generation."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose)],
    )
    if verbose:
        logging.getLogger("metro_pipeline").setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# version command
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from metro_pipeline import __version__

    table = Table(show_header=False, box=None)
    table.add_row("[bold]metro-pipeline[/bold]", f"v{__version__}")
    table.add_row("Python", f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")
    table.add_row("Platform", sys.platform)
    console.print(table)


# ---------------------------------------------------------------------------
# steps command
# ---------------------------------------------------------------------------


@cli.command(name="steps")
def steps_command() -> None:
    """List build steps, including those installed via entry-points."""
    from metro_pipeline.steps import step_registry

    step_registry.load_entrypoints()
    table = Table(title="Build steps")
    table.add_column("Name", style="bold")
    table.add_column("Class")
    for name in step_registry.list_steps():
        cls = step_registry.get(name)
        table.add_row(name, f"{cls.__module__}.{cls.__qualname__}")
    console.print(table)


# ---------------------------------------------------------------------------
# validate command
# ---------------------------------------------------------------------------


@cli.command(name="validate")
@click.argument("config_file", type=click.Path(exists=False))
def validate_command(config_file: str) -> None:
    """Load and validate a pipeline configuration.

    CONFIG_FILE is the path to the YAML configuration.
    """
    config = _load_or_exit(config_file)
    problems = config.validate()
    if not problems:
        build = config.build
        console.print(
            f"[green]OK[/green] {config_file}: "
            f"{len(build.platforms)} platform(s) x {len(build.environments)} environment(s)"
        )
        return

    table = Table(title=f"Validation: {config_file}", show_lines=True)
    table.add_column("#", justify="right")
    table.add_column("Problem")
    for index, problem in enumerate(problems, start=1):
        table.add_row(str(index), problem)
    console.print(table)
    console.print(f"\n[bold]Summary:[/bold] {len(problems)} problem(s)")
    sys.exit(1)


# ---------------------------------------------------------------------------
# ci command
# ---------------------------------------------------------------------------


@cli.command(name="ci")
@click.argument("provider", type=click.Choice(["github", "gitlab", "jenkins"]))
@click.option("--config", "config_file", type=click.Path(exists=False), default=None,
              help="Take the build matrix, branches and retention from this configuration")
@click.option("--output", "output_dir", type=click.Path(file_okay=False), default=None,
              help="Write the file under this repository root instead of printing it")
@click.option("--benchmarks", is_flag=True, default=False, help="Add a performance benchmark job")
@click.option("--mutation", is_flag=True, default=False, help="Add a mutation testing job")
@click.option("--parallel/--sequential", default=None, help="Run build jobs in parallel")
@click.option("--deploy", is_flag=True, default=False, help="Add a deployment job")
@click.option("--image", default=None, help="Container image to run jobs in")
@click.option("--node-version", "node_versions", multiple=True, help="Node.js version (repeatable)")
def ci_command(
    provider: str,
    config_file: str | None,
    output_dir: str | None,
    benchmarks: bool,
    mutation: bool,
    parallel: bool | None,
    deploy: bool,
    image: str | None,
    node_versions: tuple[str, ...],
) -> None:
    """Generate CI configuration for PROVIDER."""
    from metro_pipeline.ci import CITemplateOptions, render, write_ci_files
    from metro_pipeline.errors import PipelineError, TemplateSecurityError

    overrides: dict[str, object] = {
        "enable_mutation_testing": mutation,
        "include_deployment": deploy,
        "container_image": image,
    }
    if benchmarks:
        overrides["enable_performance_benchmarks"] = True
    if parallel is not None:
        overrides["enable_parallel_builds"] = parallel
    if node_versions:
        overrides["node_versions"] = node_versions

    try:
        if config_file is not None:
            options = CITemplateOptions.from_config(_load_or_exit(config_file), **overrides)
        else:
            options = CITemplateOptions(**overrides)
    except ValueError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    try:
        if output_dir is None:
            click.echo(render(provider, options), nl=False)
            return
        written = write_ci_files(provider, options, output_dir)
    except TemplateSecurityError as exc:
        err_console.print(f"[red]Refused:[/red] {exc}")
        sys.exit(1)
    except PipelineError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    console.print(f"[green]Wrote[/green] {written}")


# ---------------------------------------------------------------------------
# run command
# ---------------------------------------------------------------------------


@cli.command(name="run")
@click.argument("config_file", type=click.Path(exists=False))
@click.option("--step", "step_name", default="command", show_default=True,
              help="Registered build step to run")
@click.option("--command", "command", default=None,
              help="Command template for the 'command' step, e.g. 'npx expo export --platform {platform}'")
@click.option("--platform", "platforms", multiple=True, help="Only build this platform (repeatable)")
@click.option("--environment", "environments", multiple=True,
              help="Only build this environment (repeatable)")
@click.option("--branch", default=None, help="Branch recorded on results (default: from git)")
@click.option("--commit", default=None, help="Commit recorded on results (default: from git)")
def run_command(
    config_file: str,
    step_name: str,
    command: str | None,
    platforms: tuple[str, ...],
    environments: tuple[str, ...],
    branch: str | None,
    commit: str | None,
) -> None:
    """Build every platform×environment combination in CONFIG_FILE."""
    from metro_pipeline.errors import PipelineError
    from metro_pipeline.orchestrator import BuildOrchestrator
    from metro_pipeline.steps import StepNotFoundError, step_registry

    config = _load_or_exit(config_file)
    build = config.build
    if platforms or environments:
        build = dataclasses.replace(
            build,
            platforms=platforms or build.platforms,
            environments=environments or build.environments,
        )
        config = dataclasses.replace(config, build=build)

    step_registry.load_entrypoints()
    kwargs = {}
    if command is not None:
        if step_name != "command":
            err_console.print("[red]Error:[/red] --command only applies to the 'command' step")
            sys.exit(1)
        kwargs["command"] = command
    try:
        step = step_registry.create(step_name, **kwargs)
    except StepNotFoundError as exc:
        err_console.print(f"[red]Error:[/red] {exc.args[0]}")
        sys.exit(1)

    orchestrator = BuildOrchestrator(config, step)

    async def _run() -> list["BuildResult"]:
        await orchestrator.initialize()
        return await orchestrator.execute_build(branch=branch, commit=commit)

    try:
        results = asyncio.run(_run())
    except PipelineError as exc:
        results = list(orchestrator.last_results)
        _print_results(results)
        err_console.print(f"[red]Pipeline aborted:[/red] {exc}")
        if exc.recovery_hint:
            err_console.print(f"[dim]hint: {exc.recovery_hint}[/dim]")
        sys.exit(1)

    _print_results(results)
    report = orchestrator.last_report
    if report is not None and report.markdown_path is not None:
        console.print(f"Report: {report.markdown_path}")
    failed = [r for r in results if not r.success]
    if failed:
        console.print(f"\n[bold red]{len(failed)} of {len(results)} build(s) failed[/bold red]")
        sys.exit(1)
    console.print(f"\n[bold green]All {len(results)} build(s) succeeded[/bold green]")


def _print_results(results: "list[BuildResult]") -> None:
    if not results:
        console.print("[dim]No builds were run.[/dim]")
        return
    table = Table(title="Build results", show_lines=True)
    table.add_column("Platform", style="bold")
    table.add_column("Environment")
    table.add_column("State")
    table.add_column("Duration", justify="right")
    table.add_column("Bundle", justify="right")
    table.add_column("Notes")
    for result in results:
        color = _state_color(result)
        notes = result.error or ""
        if result.regressions and not notes:
            notes = f"{len(result.regressions)} regression(s)"
        table.add_row(
            result.platform,
            result.environment,
            f"[{color}]{result.state.value}[/{color}]",
            f"{result.duration:.0f} ms",
            f"{result.bundle_size:,} B",
            notes,
        )
    console.print(table)


if __name__ == "__main__":
    cli()
