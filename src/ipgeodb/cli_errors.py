"""Centralized error handling for CLI operations"""

from typing import Optional, Callable, Any, TypeVar
from functools import wraps
import sys
import logging

logger = logging.getLogger(__name__)

# Type variable for decorator
F = TypeVar("F", bound=Callable[..., Any])


class CLIError(Exception):
    """Base exception for CLI operations."""

    exit_code = 1

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(message)


class FileError(CLIError):
    """Artifact or source file error."""

    exit_code = 2


class ConfigError(CLIError):
    """Configuration error."""

    exit_code = 3


class DataError(CLIError):
    """Source dataset could not be compiled."""

    exit_code = 4


class NetworkError(CLIError):
    """Upstream dataset could not be fetched."""

    exit_code = 5


def format_error_message(
    error: BaseException, context: Optional[str] = None, include_traceback: bool = False
) -> str:
    """
    Format error message for user display.

    Args:
        error: Exception that occurred
        context: Additional context about operation
        include_traceback: Whether to include full traceback

    Returns:
        Formatted error message string
    """
    error_types = {
        FileNotFoundError: "File not found",
        ValueError: "Invalid value",
        PermissionError: "Permission denied",
        TimeoutError: "Operation timeout",
        ConnectionError: "Connection failed",
        KeyboardInterrupt: "Operation cancelled",
        FileError: "File error",
        ConfigError: "Configuration error",
        DataError: "Invalid dataset",
        NetworkError: "Download failed",
    }

    # Subclasses such as CompileError or SourceFetchError use their base label
    error_name = next(
        (error_types[cls] for cls in type(error).__mro__ if cls in error_types),
        type(error).__name__,
    )

    if context:
        message = f"❌ {context}: {error_name}"
    else:
        message = f"❌ {error_name}"

    if str(error):
        message += f" - {str(error)}"

    if include_traceback:
        import traceback

        message += f"\n{traceback.format_exc()}"

    return message


def handle_cli_errors(
    context: str = "", exit_on_keyboard_interrupt: bool = True
) -> Callable[[F], F]:
    """
    Decorator mapping exceptions raised by a command to exit codes.

    ``CLIError`` subclasses exit with their own code, file errors with 2,
    network errors with 5, validation errors with 4 and anything else with 1.
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except KeyboardInterrupt:
                if exit_on_keyboard_interrupt:
                    print("\n⚠️  Operation cancelled by user", file=sys.stderr)
                    sys.exit(130)  # Standard SIGINT exit code
                else:
                    raise
            except CLIError as e:
                message = format_error_message(e, context or e.context)
                print(message, file=sys.stderr)
                logger.debug("CLI error: %s", message)
                sys.exit(e.exit_code)
            except (FileNotFoundError, PermissionError) as e:
                message = format_error_message(e, context or "File operation")
                print(message, file=sys.stderr)
                sys.exit(FileError.exit_code)
            except (TimeoutError, ConnectionError) as e:
                message = format_error_message(e, context or "Network operation")
                print(message, file=sys.stderr)
                sys.exit(NetworkError.exit_code)
            except ValueError as e:
                message = format_error_message(e, context or "Validation")
                print(message, file=sys.stderr)
                sys.exit(DataError.exit_code)
            except Exception as e:
                message = format_error_message(e, context or "Operation", include_traceback=True)
                print(message, file=sys.stderr)
                sys.exit(1)

        return wrapper  # type: ignore

    return decorator
