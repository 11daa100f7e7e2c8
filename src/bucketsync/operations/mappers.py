"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and CLI command wrappers
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

from typing import Any, Callable, TypeVar

import typer

T = TypeVar('T')

# Looked up along the exception's MRO, so subclasses inherit their parent's code
EXIT_CODES = {
    "ObjectNotFound": 1,
    "BucketNotFound": 1,
    "ConfigurationError": 2,
    "PreconditionViolation": 2,
    "ValidationError": 2,
    "ValueError": 2,
    "TransientProviderError": 3,
    "StorageAccessError": 3,
    "MetadataUpdateError": 3,
    "ResourceImportError": 3,
}

PARTIAL_FAILURE_EXIT_CODE = 4


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Returns exit codes:
    - 0: Success
    - 1: Bucket or object not found (BucketNotFound, ObjectNotFound)
    - 2: Configuration or validation error (ConfigurationError, ValueError)
    - 3: Provider/storage error (TransientProviderError, ...) or unknown error
    - 4: Bulk operation finished with per-object failures (set by the command)

    Args:
        exc: Exception to map

    Returns:
        Exit code (1-3, with 3 as fallback for unknown exceptions)
    """
    for cls in type(exc).__mro__:
        if cls.__name__ in EXIT_CODES:
            return EXIT_CODES[cls.__name__]
    return 3


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function and maps any exceptions to appropriate
    exit codes using typer.Exit. This centralizes error handling so
    CLI commands don't need individual try/except blocks.

    Args:
        func: Function to execute

    Returns:
        Function result if successful

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except typer.Exit:
        raise
    except Exception as e:
        from .printers import print_error
        print_error(e)
        raise typer.Exit(code=exit_code_for(e)) from e
