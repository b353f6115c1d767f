"""GitLab CI configuration generator."""
from __future__ import annotations

import re

from metro_pipeline.ci import commands
from metro_pipeline.ci.base import CITemplate, quoted_list
from metro_pipeline.ci.options import CITemplateOptions

_TEMPLATE_ANCHOR = "metro_build"


def _job_id(platform: str, environment: str) -> str:
    return f"metro:{platform}:{environment}"


def _branch_pattern(branches: tuple[str, ...]) -> str:
    escaped = (re.escape(b).replace("/", r"\/") for b in branches)
    return "/^(" + "|".join(escaped) + ")$/"


class GitLabCITemplate(CITemplate):
    """Render stages, a shared ``.metro_build`` job template and one job per combination."""

    @property
    def name(self) -> str:
        return "gitlab"

    @property
    def output_path(self) -> str:
        return ".gitlab-ci.yml"

    def placeholders(self, options: CITemplateOptions) -> tuple[str, ...]:
        return (options.deploy_credential,)

    def _render(self, options: CITemplateOptions) -> list[str]:
        lines = self._stages(options)
        lines += self._includes(options)
        lines += [
            "variables:",
            *self._lines(
                1,
                'CI: "true"',
                'NODE_ENV: "test"',
                f'NODE_VERSION: "{options.primary_node_version}"',
            ),
            "",
            "default:",
            *self._lines(1, f"image: {options.container_image or 'node:${NODE_VERSION}'}"),
            *self._lines(1, "cache:"),
            *self._lines(2, "key: ${CI_COMMIT_REF_SLUG}", "paths:", "  - node_modules/"),
            "",
        ]
        lines += self._workflow(options)
        lines += self._build_template(options)
        lines += self._simple_job("test", "test", commands.TEST)
        for platform, environment in options.combinations():
            lines += [
                f"{_job_id(platform, environment)}:",
                *self._lines(1, f"<<: *{_TEMPLATE_ANCHOR}", "variables:"),
                *self._lines(
                    2,
                    f'PLATFORM: "{platform}"',
                    f'ENVIRONMENT: "{environment}"',
                    f'NODE_ENV: "{environment}"',
                ),
                "",
            ]
        if options.enable_performance_benchmarks:
            lines += self._simple_job("performance", "benchmark", commands.PERFORMANCE)
        if options.enable_mutation_testing:
            lines += self._simple_job("mutation", "quality", commands.MUTATION)
        if options.enable_code_quality:
            lines += ["code_quality:", *self._lines(1, "stage: quality"), ""]
            lines += self._simple_job("lint", "quality", commands.LINT)
        if options.enable_security:
            lines += ["sast:", *self._lines(1, "stage: quality"), ""]
            lines += self._simple_job("dependency_audit", "quality", commands.AUDIT)
        if options.include_deployment:
            lines += self._deploy_job(options)
        return lines

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _stages(self, options: CITemplateOptions) -> list[str]:
        stages = ["test", "build"]
        if options.enable_performance_benchmarks:
            stages.append("benchmark")
        if (
            options.enable_mutation_testing
            or options.enable_code_quality
            or options.enable_security
        ):
            stages.append("quality")
        if options.include_deployment:
            stages.append("deploy")
        return ["stages:", *self._lines(1, *(f"- {s}" for s in stages)), ""]

    def _includes(self, options: CITemplateOptions) -> list[str]:
        templates = []
        if options.enable_code_quality:
            templates.append("Code-Quality.gitlab-ci.yml")
        if options.enable_security:
            templates.append("Security/SAST.gitlab-ci.yml")
        if not templates:
            return []
        return [
            "include:",
            *self._lines(1, *(f"- template: {t}" for t in templates)),
            "",
        ]

    def _workflow(self, options: CITemplateOptions) -> list[str]:
        lines = ["workflow:", *self._lines(1, "rules:")]
        lines += self._lines(
            2,
            "- if: '$CI_PIPELINE_SOURCE == \"merge_request_event\"'",
            f"- if: '$CI_COMMIT_BRANCH =~ {_branch_pattern(options.branches)}'",
        )
        if options.schedule:
            lines += self._lines(
                2,
                f"# cron '{options.schedule}' is configured under CI/CD > Schedules",
                "- if: '$CI_PIPELINE_SOURCE == \"schedule\"'",
            )
        return lines + [""]

    def _build_template(self, options: CITemplateOptions) -> list[str]:
        command = commands.pipeline_command(
            options.config_path,
            '"$PLATFORM"',
            '"$ENVIRONMENT"',
            '"$CI_COMMIT_REF_NAME"',
            '"$CI_COMMIT_SHA"',
        )
        lines = [f".{_TEMPLATE_ANCHOR}: &{_TEMPLATE_ANCHOR}"]
        lines += self._lines(
            1,
            "stage: build",
            "before_script:",
            f"  - {commands.INSTALL}",
            "script:",
            f"  - {command}",
            "artifacts:",
            "  when: always",
            "  paths:",
            *(f"    - {path}" for path in commands.ARTIFACT_PATHS),
            f"  expire_in: {options.artifact_retention_days} days",
        )
        if not options.enable_parallel_builds:
            lines += self._lines(1, "resource_group: metro-build")
        if len(options.node_versions) > 1 and not options.container_image:
            lines += self._lines(
                1,
                "parallel:",
                "  matrix:",
                f"    - NODE_VERSION: {quoted_list(options.node_versions)}",
            )
        return lines + [""]

    def _simple_job(self, job_id: str, stage: str, command: str) -> list[str]:
        return [
            f"{job_id}:",
            *self._lines(
                1,
                f"stage: {stage}",
                "before_script:",
                f"  - {commands.INSTALL}",
                "script:",
                f"  - {command}",
            ),
            "",
        ]

    def _deploy_job(self, options: CITemplateOptions) -> list[str]:
        return [
            "deploy:",
            *self._lines(
                1,
                "stage: deploy",
                "environment: production",
                "variables:",
                '  NODE_ENV: "production"',
                "before_script:",
                f"  - {commands.INSTALL}",
                "script:",
                f"  - {commands.DEPLOY}",
                "rules:",
                f"  - if: '$CI_COMMIT_BRANCH == \"{options.default_branch}\" "
                f"&& ${options.deploy_credential}'",
            ),
            "",
        ]
