"""GitHub Actions workflow generator."""
from __future__ import annotations

from metro_pipeline.ci import commands
from metro_pipeline.ci.base import CITemplate, quoted_list
from metro_pipeline.ci.options import CITemplateOptions


class GitHubActionsTemplate(CITemplate):
    """Render a workflow with one matrix job per platform/environment/Node version."""

    @property
    def name(self) -> str:
        return "github"

    @property
    def output_path(self) -> str:
        return ".github/workflows/metro-build.yml"

    def placeholders(self, options: CITemplateOptions) -> tuple[str, ...]:
        return (
            options.deploy_credential,
            f"${{{{ secrets.{options.deploy_credential} }}}}",
        )

    def _render(self, options: CITemplateOptions) -> list[str]:
        lines = ["name: Metro Build Pipeline", ""]
        lines += self._triggers(options)
        lines += [
            "",
            "env:",
            *self._lines(1, "CI: 'true'", "NODE_ENV: 'test'"),
            "",
            "jobs:",
        ]
        lines += self._build_job(options)
        if options.enable_code_quality or options.enable_security:
            lines += self._quality_job(options)
        if options.enable_performance_benchmarks:
            lines += self._suite_job(
                options, "benchmarks", "Performance benchmarks", commands.PERFORMANCE,
                "performance-results",
            )
        if options.enable_mutation_testing:
            lines += self._suite_job(
                options, "mutation", "Mutation testing", commands.MUTATION,
                "mutation-results",
            )
        if options.include_deployment:
            lines += self._deploy_job(options)
        return lines

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _triggers(self, options: CITemplateOptions) -> list[str]:
        branches = quoted_list(options.branches)
        lines = [
            "on:",
            *self._lines(1, "push:"),
            *self._lines(2, f"branches: {branches}"),
            *self._lines(1, "pull_request:"),
            *self._lines(2, f"branches: {branches}"),
        ]
        if options.schedule:
            lines += self._lines(1, "schedule:")
            lines += self._lines(2, f"- cron: '{options.schedule}'")
        lines += self._lines(1, "workflow_dispatch:")
        return lines

    def _job_header(self, options: CITemplateOptions, job_id: str, title: str) -> list[str]:
        lines = self._lines(1, f"{job_id}:")
        lines += self._lines(2, f"name: {title}", "runs-on: ubuntu-latest")
        if options.container_image:
            lines += self._lines(2, f"container: {options.container_image}")
        return lines

    def _setup_steps(self, node_version: str) -> list[str]:
        return self._lines(
            3,
            "- uses: actions/checkout@v4",
            "- name: Setup Node.js",
            "  uses: actions/setup-node@v4",
            "  with:",
            f"    node-version: {node_version}",
            "    cache: npm",
            "- name: Install dependencies",
            f"  run: {commands.INSTALL}",
        )

    def _upload_step(self, options: CITemplateOptions, artifact: str, paths: tuple[str, ...]) -> list[str]:
        lines = self._lines(
            3,
            "- name: Upload artifacts",
            "  if: always()",
            "  uses: actions/upload-artifact@v4",
            "  with:",
            f"    name: {artifact}",
            "    path: |",
        )
        lines += self._lines(6, *paths)
        lines += self._lines(3, f"    retention-days: {options.artifact_retention_days}")
        return lines

    def _build_job(self, options: CITemplateOptions) -> list[str]:
        lines = self._job_header(
            options,
            "build",
            "Build ${{ matrix.platform }} (${{ matrix.environment }}, node ${{ matrix.node }})",
        )
        lines += self._lines(2, "strategy:")
        lines += self._lines(3, "fail-fast: false")
        if not options.enable_parallel_builds:
            lines += self._lines(3, "max-parallel: 1")
        lines += self._lines(3, "matrix:")
        lines += self._lines(
            4,
            f"platform: {quoted_list(options.platforms)}",
            f"environment: {quoted_list(options.environments)}",
            f"node: {quoted_list(options.node_versions)}",
        )
        lines += self._lines(2, "env:")
        lines += self._lines(3, "NODE_ENV: ${{ matrix.environment }}")
        lines += self._lines(2, "steps:")
        lines += self._setup_steps("${{ matrix.node }}")
        lines += self._lines(
            3,
            "- name: Run tests",
            f"  run: {commands.TEST}",
            "- name: Run Metro build pipeline",
            "  run: |",
        )
        lines += self._lines(
            5,
            commands.pipeline_command(
                options.config_path,
                "${{ matrix.platform }}",
                "${{ matrix.environment }}",
                "${{ github.ref_name }}",
                "${{ github.sha }}",
            ),
        )
        lines += self._upload_step(
            options,
            "metro-build-${{ matrix.platform }}-${{ matrix.environment }}-node${{ matrix.node }}",
            commands.ARTIFACT_PATHS,
        )
        lines += self._lines(
            3,
            "- name: Notify failure",
            "  if: failure()",
            "  run: echo \"::error::Metro build failed for "
            "${{ matrix.platform }}/${{ matrix.environment }} on ${{ github.ref_name }}\"",
        )
        return lines

    def _quality_job(self, options: CITemplateOptions) -> list[str]:
        lines = [""]
        lines += self._job_header(options, "quality", "Code quality")
        lines += self._lines(2, "steps:")
        lines += self._setup_steps(f"'{options.primary_node_version}'")
        if options.enable_code_quality:
            lines += self._lines(3, "- name: Lint", f"  run: {commands.LINT}")
        if options.enable_security:
            lines += self._lines(3, "- name: Dependency audit", f"  run: {commands.AUDIT}")
        return lines

    def _suite_job(
        self,
        options: CITemplateOptions,
        job_id: str,
        title: str,
        command: str,
        artifact: str,
    ) -> list[str]:
        lines = [""]
        lines += self._job_header(options, job_id, title)
        lines += self._lines(2, "needs: build")
        lines += self._lines(2, "steps:")
        lines += self._setup_steps(f"'{options.primary_node_version}'")
        lines += self._lines(3, f"- name: {title}", f"  run: {command}")
        lines += self._upload_step(options, artifact, ("build-reports/",))
        return lines

    def _deploy_job(self, options: CITemplateOptions) -> list[str]:
        needs = ["build"]
        if options.enable_performance_benchmarks:
            needs.append("benchmarks")
        if options.enable_mutation_testing:
            needs.append("mutation")
        lines = [""]
        lines += self._job_header(options, "deploy", "Deploy")
        lines += self._lines(
            2,
            f"needs: [{', '.join(needs)}]",
            f"if: github.ref == 'refs/heads/{options.default_branch}'",
            "environment: production",
            "env:",
            "  NODE_ENV: production",
            f"  {options.deploy_credential}: "
            f"${{{{ secrets.{options.deploy_credential} }}}}",
            "steps:",
        )
        lines += self._setup_steps(f"'{options.primary_node_version}'")
        lines += self._lines(3, "- name: Deploy", f"  run: {commands.DEPLOY}")
        return lines
