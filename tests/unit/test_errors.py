"""Unit tests for metro_pipeline.errors — taxonomy, factories, classification."""
from __future__ import annotations

import asyncio

import pytest

from metro_pipeline.errors import (
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


# ---------------------------------------------------------------------------
# Kinds and severities
# ---------------------------------------------------------------------------


class TestErrorKind:
    def test_labels_are_canonical_names(self) -> None:
        assert ErrorKind.BUILD_STEP.label == "BuildStepError"
        assert ErrorKind.CONFIGURATION.label == "ConfigurationError"
        assert ErrorKind.NETWORK.label == "NetworkError"
        assert ErrorKind.FILE_SYSTEM.label == "FileSystemError"

    def test_kind_set_is_closed(self) -> None:
        assert len(ErrorKind) == 4


class TestErrorSeverity:
    def test_ordering(self) -> None:
        assert ErrorSeverity.LOW < ErrorSeverity.MEDIUM < ErrorSeverity.HIGH < ErrorSeverity.CRITICAL

    def test_le(self) -> None:
        assert ErrorSeverity.HIGH <= ErrorSeverity.HIGH
        assert not ErrorSeverity.CRITICAL <= ErrorSeverity.LOW


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


class TestFactories:
    def test_build_step_error_defaults(self) -> None:
        error = build_step_error("bundling failed", "bundle_build")
        assert error.kind is ErrorKind.BUILD_STEP
        assert error.severity is ErrorSeverity.HIGH
        assert error.step_name == "bundle_build"
        assert error.context.operation == "bundle_build"
        assert error.recovery_hint
        assert error.attempts == 1

    def test_configuration_error_defaults(self) -> None:
        error = configuration_error("missing output_dir")
        assert error.kind is ErrorKind.CONFIGURATION
        assert error.severity is ErrorSeverity.HIGH

    def test_network_error_carries_url(self) -> None:
        error = network_error("bad gateway", url="https://registry.npmjs.org", status_code=502)
        assert error.kind is ErrorKind.NETWORK
        assert error.severity is ErrorSeverity.MEDIUM
        assert error.url == "https://registry.npmjs.org"
        assert error.status_code == 502

    def test_file_system_error_carries_path_and_operation(self) -> None:
        error = file_system_error("denied", "/tmp/out", FileOperation.WRITE)
        assert error.kind is ErrorKind.FILE_SYSTEM
        assert error.path == "/tmp/out"
        assert error.operation is FileOperation.WRITE
        assert error.context.operation == "fs_write"

    def test_is_an_exception(self) -> None:
        with pytest.raises(PipelineError, match="boom"):
            raise build_step_error("boom", "analysis")

    def test_args_hold_message(self) -> None:
        assert build_step_error("boom", "analysis").args == ("boom",)


class TestPipelineError:
    def test_str_includes_kind_location_and_attempts(self) -> None:
        ctx = ErrorContext(operation="bundle_build", platform="ios", environment="production")
        error = build_step_error("exit 1", "bundle_build", context=ctx).with_attempts(3)
        text = str(error)
        assert text.startswith("BuildStepError: exit 1")
        assert "[ios/production]" in text
        assert "(after 3 attempts)" in text

    def test_with_attempts_returns_copy(self) -> None:
        error = build_step_error("boom", "analysis")
        annotated = error.with_attempts(2)
        assert annotated is not error
        assert annotated.attempts == 2
        assert error.attempts == 1
        assert annotated.message == error.message

    def test_is_critical(self) -> None:
        assert build_step_error("x", "y", severity=ErrorSeverity.CRITICAL).is_critical
        assert not build_step_error("x", "y").is_critical

    def test_to_dict_includes_variant_fields(self) -> None:
        data = file_system_error("gone", "/r.json", FileOperation.DELETE).to_dict()
        assert data["type"] == "FileSystemError"
        assert data["path"] == "/r.json"
        assert data["operation"] == "delete"
        assert data["corrupted"] is False
        assert "step_name" not in data

        data = network_error("down", url="https://x").to_dict()
        assert data["url"] == "https://x"
        assert "path" not in data


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestIsRetryable:
    def test_build_step_and_network_are_retryable(self) -> None:
        assert is_retryable(build_step_error("x", "bundle_build"))
        assert is_retryable(network_error("x"))

    def test_configuration_is_never_retryable(self) -> None:
        assert not is_retryable(configuration_error("x", severity=ErrorSeverity.LOW))

    def test_critical_is_never_retryable(self) -> None:
        assert not is_retryable(network_error("x", severity=ErrorSeverity.CRITICAL))

    @pytest.mark.parametrize(
        ("operation", "expected"),
        [
            (FileOperation.MKDIR, True),
            (FileOperation.WRITE, True),
            (FileOperation.ACCESS, True),
            (FileOperation.READ, False),
            (FileOperation.DELETE, False),
        ],
    )
    def test_file_system_by_operation(self, operation: FileOperation, expected: bool) -> None:
        assert is_retryable(file_system_error("x", "/p", operation)) is expected

    def test_corrupted_file_is_not_retryable(self) -> None:
        error = file_system_error("x", "/p", FileOperation.WRITE, corrupted=True)
        assert not is_retryable(error)


class TestFromException:
    def test_pipeline_error_passes_through(self) -> None:
        error = network_error("x")
        assert from_exception(error) is error

    def test_timeout_becomes_medium_build_step_error(self) -> None:
        ctx = ErrorContext(operation="bundle_build", platform="android")
        error = from_exception(asyncio.TimeoutError(), ctx)
        assert error.kind is ErrorKind.BUILD_STEP
        assert error.severity is ErrorSeverity.MEDIUM
        assert error.context is ctx

    def test_connection_error_becomes_network_error(self) -> None:
        assert from_exception(ConnectionResetError("reset")).kind is ErrorKind.NETWORK

    def test_os_error_becomes_file_system_error(self) -> None:
        error = from_exception(PermissionError(13, "Permission denied", "/out"))
        assert error.kind is ErrorKind.FILE_SYSTEM
        assert error.path == "/out"
        assert error.message == "Permission denied"

    def test_anything_else_becomes_build_step_error(self) -> None:
        error = from_exception(RuntimeError("weird"))
        assert error.kind is ErrorKind.BUILD_STEP
        assert error.message == "weird"
        assert error.context.operation == "unknown"


class TestAuxiliaryExceptions:
    def test_build_cancelled_error(self) -> None:
        exc = BuildCancelledError("attempt 2")
        assert exc.where == "attempt 2"
        assert "attempt 2" in str(exc)

    def test_template_security_error_is_value_error(self) -> None:
        exc = TemplateSecurityError("secret", "github")
        assert isinstance(exc, ValueError)
        assert exc.term == "secret"
        assert exc.provider == "github"
