"""Pipeline error taxonomy.

Exports the ``PipelineError`` tagged union, its variant constructors,
and the classification helpers used by the retry executor.
"""
from __future__ import annotations

from metro_pipeline.errors.taxonomy import (
    RECOVERABLE_FILE_OPERATIONS,
    BuildCancelledError,
    ErrorContext,
    ErrorKind,
    ErrorSeverity,
    FileOperation,
    PipelineError,
    TemplateSecurityError,
    build_step_error,
    configuration_error,
    file_system_error,
    from_exception,
    is_retryable,
    network_error,
)

__all__ = [
    "PipelineError",
    "ErrorKind",
    "ErrorSeverity",
    "ErrorContext",
    "FileOperation",
    "RECOVERABLE_FILE_OPERATIONS",
    "BuildCancelledError",
    "TemplateSecurityError",
    "build_step_error",
    "configuration_error",
    "network_error",
    "file_system_error",
    "from_exception",
    "is_retryable",
]
