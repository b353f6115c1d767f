#!/usr/bin/env python3
"""Example: CI configuration generation

Renders the same build matrix for GitHub Actions, GitLab CI and Jenkins,
shows that output is deterministic, and demonstrates the credential
guard refusing unsafe input.

Usage:
    python examples/02_ci_templates.py

Requirements:
    pip install metro-pipeline
"""
from __future__ import annotations

from metro_pipeline.ci import CITemplateOptions, available_providers, render
from metro_pipeline.errors import TemplateSecurityError


def main() -> None:
    options = CITemplateOptions(
        platforms=("android", "ios"),
        environments=("staging", "production"),
        node_versions=("18", "20"),
        enable_performance_benchmarks=True,
        include_deployment=True,
    )

    # Every provider renders the same matrix
    for provider in available_providers():
        text = render(provider, options)
        print(f"--- {provider}: {len(text.splitlines())} lines ---")
        print("\n".join(text.splitlines()[:8]))
        print("...\n")

    # Identical options give byte-identical output
    assert render("gitlab", options) == render("gitlab", options)
    print("GitLab output is deterministic")

    # Credential-like words outside declared placeholders are refused
    try:
        render("github", CITemplateOptions(container_image="my-secret-image"))
    except TemplateSecurityError as exc:
        print(f"Refused: {exc}")


if __name__ == "__main__":
    main()
