"""CI configuration generators for GitHub Actions, GitLab CI and Jenkins.

Public API
----------
The stable surface is the three ``generate_*`` functions, the ``render``
dispatcher and ``CITemplateOptions``.  Generators are pure: the same
options always produce byte-identical text.

Example
-------
::

    from metro_pipeline.ci import CITemplateOptions, render, write_ci_files

    options = CITemplateOptions(enable_performance_benchmarks=True)
    print(render("gitlab", options))

    write_ci_files("github", options, root=".")
"""
from __future__ import annotations

from pathlib import Path

from metro_pipeline.ci import commands
from metro_pipeline.ci.base import CITemplate
from metro_pipeline.ci.github import GitHubActionsTemplate
from metro_pipeline.ci.gitlab import GitLabCITemplate
from metro_pipeline.ci.guard import (
    SENSITIVE_TERMS,
    ensure_no_sensitive_terms,
    find_sensitive_terms,
)
from metro_pipeline.ci.jenkins import JenkinsTemplate
from metro_pipeline.ci.options import CITemplateOptions
from metro_pipeline.ci.writer import write_template

_REGISTRY: dict[str, type[CITemplate]] = {
    "github": GitHubActionsTemplate,
    "gitlab": GitLabCITemplate,
    "jenkins": JenkinsTemplate,
}


def get_template(provider: str) -> CITemplate:
    """Return a template instance for *provider*.

    Raises
    ------
    ValueError
        If ``provider`` is not a registered CI provider.
    """
    if provider not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise ValueError(
            f"Unknown CI provider {provider!r}. Available providers: {available}"
        )
    return _REGISTRY[provider]()


def render(provider: str, options: CITemplateOptions | None = None) -> str:
    """Render the configuration of *provider* for *options*."""
    return get_template(provider).render(options)


def available_providers() -> list[str]:
    """Return the list of registered CI provider names."""
    return sorted(_REGISTRY)


def generate_github_workflow(options: CITemplateOptions | None = None) -> str:
    """Return a GitHub Actions workflow (``.github/workflows/metro-build.yml``)."""
    return render("github", options)


def generate_gitlab_workflow(options: CITemplateOptions | None = None) -> str:
    """Return a GitLab CI configuration (``.gitlab-ci.yml``)."""
    return render("gitlab", options)


def generate_jenkinsfile(options: CITemplateOptions | None = None) -> str:
    """Return a Jenkins declarative pipeline (``Jenkinsfile``)."""
    return render("jenkins", options)


def write_ci_files(
    provider: str,
    options: CITemplateOptions | None = None,
    root: str | Path = ".",
) -> Path:
    """Write *provider*'s configuration at its conventional path under *root*."""
    return write_template(get_template(provider), options, root)


__all__ = [
    "CITemplate",
    "CITemplateOptions",
    "GitHubActionsTemplate",
    "GitLabCITemplate",
    "JenkinsTemplate",
    "SENSITIVE_TERMS",
    "available_providers",
    "commands",
    "ensure_no_sensitive_terms",
    "find_sensitive_terms",
    "generate_github_workflow",
    "generate_gitlab_workflow",
    "generate_jenkinsfile",
    "get_template",
    "render",
    "write_ci_files",
]
