"""Write generated CI configuration into a repository checkout."""
from __future__ import annotations

import logging
from pathlib import Path

from metro_pipeline.ci.base import CITemplate
from metro_pipeline.ci.options import CITemplateOptions
from metro_pipeline.errors import FileOperation, file_system_error

logger = logging.getLogger(__name__)


def write_template(
    template: CITemplate,
    options: CITemplateOptions | None,
    root: str | Path,
) -> Path:
    """Render *template* and write it at its conventional path under *root*.

    Returns
    -------
    Path
        The file that was written.

    Raises
    ------
    PipelineError
        A file-system error when the directory or file cannot be written.
    TemplateSecurityError
        When the rendered text fails the credential check.  Nothing is
        written in that case.
    """
    text = template.render(options)
    target = Path(root) / template.output_path
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise file_system_error(
            f"Cannot create {target.parent}: {exc}",
            str(target.parent),
            FileOperation.MKDIR,
        ) from exc
    try:
        target.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise file_system_error(
            f"Cannot write {target}: {exc}", str(target), FileOperation.WRITE
        ) from exc
    logger.info("Wrote %s configuration to %s", template.name, target)
    return target
