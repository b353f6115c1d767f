"""Jenkins declarative pipeline generator."""
from __future__ import annotations

from metro_pipeline.ci import commands
from metro_pipeline.ci.base import CITemplate
from metro_pipeline.ci.options import CITemplateOptions


def _choices(values: tuple[str, ...]) -> str:
    return "[" + ", ".join(f"'{v}'" for v in ("all", *values)) + "]"


class JenkinsTemplate(CITemplate):
    """Render a ``Jenkinsfile`` with a parameterized build matrix."""

    indent_spaces = 4

    @property
    def name(self) -> str:
        return "jenkins"

    @property
    def output_path(self) -> str:
        return "Jenkinsfile"

    def placeholders(self, options: CITemplateOptions) -> tuple[str, ...]:
        return (options.deploy_credential,)

    def _render(self, options: CITemplateOptions) -> list[str]:
        lines = ["pipeline {"]
        lines += self._agent(options)
        lines += self._parameters(options)
        lines += self._lines(
            1,
            "environment {",
            "    CI = 'true'",
            "    NODE_ENV = 'test'",
            f"    NODE_VERSION = '{options.primary_node_version}'",
            "}",
            "",
            "options {",
            "    timeout(time: 60, unit: 'MINUTES')",
            f"    buildDiscarder(logRotator(daysToKeepStr: '{options.artifact_retention_days}'))",
            "}",
            "",
            "stages {",
        )
        lines += self._shell_stage("Install", commands.INSTALL)
        lines += self._shell_stage("Test", commands.TEST)
        if options.enable_code_quality:
            lines += self._shell_stage("Code Quality", commands.LINT)
        if options.enable_security:
            lines += self._shell_stage("Dependency Audit", commands.AUDIT)
        lines += self._build_stage(options)
        if options.enable_performance_benchmarks:
            lines += self._shell_stage("Performance Benchmarks", commands.PERFORMANCE)
        if options.enable_mutation_testing:
            lines += self._shell_stage("Mutation Testing", commands.MUTATION)
        if options.include_deployment:
            lines += self._deploy_stage(options)
        lines += self._lines(1, "}", "")
        lines += self._post()
        lines.append("}")
        return lines

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _agent(self, options: CITemplateOptions) -> list[str]:
        if options.container_image is None:
            return self._lines(1, "agent any", "")
        return self._lines(
            1,
            "agent {",
            "    docker {",
            f"        image '{options.container_image}'",
            "    }",
            "}",
            "",
        )

    def _parameters(self, options: CITemplateOptions) -> list[str]:
        return self._lines(
            1,
            "parameters {",
            f"    choice(name: 'PLATFORM', choices: {_choices(options.platforms)}, "
            "description: 'Platform to build')",
            f"    choice(name: 'ENVIRONMENT', choices: {_choices(options.environments)}, "
            "description: 'Environment to build')",
            "}",
            "",
        )

    def _shell_stage(self, title: str, command: str) -> list[str]:
        return self._lines(
            2,
            f"stage('{title}') {{",
            "    steps {",
            f"        sh '{command}'",
            "    }",
            "}",
        )

    def _combination_stage(
        self, options: CITemplateOptions, platform: str, environment: str
    ) -> list[str]:
        command = commands.pipeline_command(
            options.config_path,
            platform,
            environment,
            '"$BRANCH_NAME"',
            '"$GIT_COMMIT"',
        )
        return self._lines(
            4,
            f"stage('{platform} / {environment}') {{",
            "    when {",
            "        expression {",
            f"            params.PLATFORM in ['all', '{platform}'] && "
            f"params.ENVIRONMENT in ['all', '{environment}']",
            "        }",
            "    }",
            "    environment {",
            f"        NODE_ENV = '{environment}'",
            "    }",
            "    steps {",
            f"        sh '{command}'",
            "    }",
            "}",
        )

    def _build_stage(self, options: CITemplateOptions) -> list[str]:
        block = "parallel" if options.enable_parallel_builds else "stages"
        lines = self._lines(2, "stage('Metro Build') {", f"    {block} {{")
        for platform, environment in options.combinations():
            lines += self._combination_stage(options, platform, environment)
        lines += self._lines(2, "    }", "}")
        return lines

    def _deploy_stage(self, options: CITemplateOptions) -> list[str]:
        credential = options.deploy_credential
        return self._lines(
            2,
            "stage('Deploy') {",
            "    when {",
            f"        branch '{options.default_branch}'",
            "    }",
            "    environment {",
            "        NODE_ENV = 'production'",
            "    }",
            "    steps {",
            f"        withCredentials([string(credentialsId: '{credential}', "
            f"variable: '{credential}')]) {{",
            f"            sh '{commands.DEPLOY}'",
            "        }",
            "    }",
            "}",
        )

    def _post(self) -> list[str]:
        artifacts = ", ".join(f"{path}**" for path in commands.ARTIFACT_PATHS)
        return self._lines(
            1,
            "post {",
            "    always {",
            f"        archiveArtifacts artifacts: '{artifacts}', allowEmptyArchive: true",
            "    }",
            "    failure {",
            '        echo "Metro build failed: ${env.JOB_NAME} #${env.BUILD_NUMBER}"',
            "    }",
            "}",
        )
