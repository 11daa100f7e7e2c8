"""
Test error mapping and CLI exit code functionality.

Validates that exceptions are correctly mapped to exit codes and that
the run_and_exit wrapper handles errors appropriately for CLI commands.
"""
from __future__ import annotations

import pytest
import typer
from pydantic import ValidationError

from bucketsync.errors import (
    BucketNotFound,
    BucketSyncError,
    ConfigurationError,
    MetadataUpdateError,
    ObjectNotFound,
    PreconditionViolation,
    ResourceImportError,
    StorageAccessError,
    TransientProviderError,
)
from bucketsync.models import Resource
from bucketsync.operations.mappers import EXIT_CODES, PARTIAL_FAILURE_EXIT_CODE, exit_code_for, run_and_exit


class TestExitCodeMapping:
    """Test exception to exit code mapping."""

    @pytest.mark.parametrize("error,code", [
        (ObjectNotFound("gone"), 1),
        (BucketNotFound("no bucket"), 1),
        (ConfigurationError("bad option"), 2),
        (PreconditionViolation("same object"), 2),
        (ValueError("bad value"), 2),
        (TransientProviderError("503"), 3),
        (StorageAccessError("unreadable"), 3),
        (MetadataUpdateError("patch failed"), 3),
        (ResourceImportError("move failed"), 3),
    ])
    def test_known_exceptions(self, error, code):
        assert exit_code_for(error) == code

    def test_bucket_not_found_wins_over_its_base_class(self):
        """Test that the most specific class in the MRO decides."""
        assert isinstance(BucketNotFound("x"), ConfigurationError)
        assert exit_code_for(BucketNotFound("x")) == 1

    def test_unknown_exception_maps_to_fallback(self):
        assert exit_code_for(RuntimeError("test")) == 3
        assert exit_code_for(BucketSyncError("test")) == 3
        assert exit_code_for(FileNotFoundError("test")) == 3

    def test_pydantic_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            Resource(sha1="not-a-hash", filename="a.txt")
        assert exit_code_for(exc_info.value) == 2

    def test_partial_failure_code_is_distinct(self):
        assert PARTIAL_FAILURE_EXIT_CODE not in EXIT_CODES.values()


class TestRunAndExit:
    """Test the run_and_exit wrapper."""

    def test_successful_function_returns_value(self):
        assert run_and_exit(lambda: "ok") == "ok"

    def test_exception_becomes_exit_code(self, capsys):
        def failing():
            raise BucketNotFound('Bucket "assets" does not exist')

        with pytest.raises(typer.Exit) as exc_info:
            run_and_exit(failing)

        assert exc_info.value.exit_code == 1
        assert "BucketNotFound" in capsys.readouterr().err

    def test_typer_exit_passes_through(self):
        def exiting():
            raise typer.Exit(code=PARTIAL_FAILURE_EXIT_CODE)

        with pytest.raises(typer.Exit) as exc_info:
            run_and_exit(exiting)
        assert exc_info.value.exit_code == PARTIAL_FAILURE_EXIT_CODE

    def test_configuration_error(self):
        def failing():
            raise ConfigurationError('an unknown option "bukket" was specified')

        with pytest.raises(typer.Exit) as exc_info:
            run_and_exit(failing)
        assert exc_info.value.exit_code == 2
