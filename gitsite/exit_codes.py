"""
Standard exit codes for gitsite commands.

Following Unix/POSIX conventions for command-line tools. Only setup
failures end a run with a non-zero code; per-item failures are logged
and reported in the run summary instead.
"""

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors

# Application-specific exit codes (64-113 are typically available)
SETUP_ERROR = 64         # Output directories, clone or index could not be set up
CONFIG_ERROR = 66        # Configuration file error
PERMISSION_ERROR = 67    # Insufficient permissions
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': GENERAL_ERROR,
    'PermissionError': PERMISSION_ERROR,
    'SetupError': SETUP_ERROR,
    'ConfigError': CONFIG_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: BaseException) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    exit_code = getattr(exc, 'exit_code', None)
    if isinstance(exit_code, int):
        return exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class SetupError(CommandError):
    """Raised when the run cannot be set up (directories, clone, index page)."""
    def __init__(self, message: str):
        super().__init__(message, SETUP_ERROR)


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)
