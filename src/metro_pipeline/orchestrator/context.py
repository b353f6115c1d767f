"""Identity of one pipeline run: build id, branch and commit."""
from __future__ import annotations

import logging
import secrets
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


def generate_build_id(now: float | None = None) -> str:
    """Return a unique, time-ordered build id like ``build-1700000000000-a1b2c3``."""
    millis = int((time.time() if now is None else now) * 1000)
    return f"build-{millis}-{secrets.token_hex(3)}"


def _git(args: list[str], cwd: Path | None) -> str:
    try:
        completed = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=10,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("git %s failed: %s", " ".join(args), exc)
        return UNKNOWN
    return completed.stdout.strip() or UNKNOWN


def git_info(cwd: str | Path | None = None) -> tuple[str, str]:
    """Return ``(branch, commit)`` of the checkout at *cwd*.

    Either value is ``"unknown"`` when git is unavailable or *cwd* is
    not a repository.
    """
    where = Path(cwd) if cwd is not None else None
    branch = _git(["rev-parse", "--abbrev-ref", "HEAD"], where)
    commit = _git(["rev-parse", "HEAD"], where)
    return branch, commit


@dataclass(frozen=True)
class BuildContext:
    """Identity shared by every result of one run."""

    build_id: str
    branch: str = UNKNOWN
    commit: str = UNKNOWN

    @classmethod
    def create(
        cls,
        branch: str | None = None,
        commit: str | None = None,
        cwd: str | Path | None = None,
    ) -> "BuildContext":
        """Create a context, asking git for whatever was not given."""
        if branch is None or commit is None:
            git_branch, git_commit = git_info(cwd)
            branch = branch if branch is not None else git_branch
            commit = commit if commit is not None else git_commit
        return cls(build_id=generate_build_id(), branch=branch, commit=commit)
