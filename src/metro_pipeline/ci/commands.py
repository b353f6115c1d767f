"""Canonical commands every CI template runs.

All three providers reference these constants, so a change here changes
every generated pipeline the same way.
"""
from __future__ import annotations

INSTALL = "npm ci"
BUILD = "npm run build"
TEST = "npm test"
PERFORMANCE = "npm run test:performance"
MUTATION = "npm run test:mutation"
LINT = "npm run lint"
AUDIT = "npm audit --audit-level=high"
DEPLOY = "npm run deploy"
PIPELINE_ENTRY = "metro-pipeline run"

ARTIFACT_PATHS: tuple[str, ...] = ("dist/", "build-reports/")

CANONICAL_COMMANDS: tuple[str, ...] = (INSTALL, BUILD, TEST, PIPELINE_ENTRY)


def pipeline_command(
    config_path: str,
    platform: str,
    environment: str,
    branch: str,
    commit: str,
) -> str:
    """Return the ``metro-pipeline run`` invocation for one combination.

    Arguments are inserted verbatim so callers can pass provider
    expressions such as ``${{ matrix.platform }}`` or ``"$PLATFORM"``.
    """
    return (
        f"{PIPELINE_ENTRY} {config_path} --command \"{BUILD}\" "
        f"--platform {platform} --environment {environment} "
        f"--branch {branch} --commit {commit}"
    )
