"""
Validation and error handling for the speedprobe package.

This module provides input validation, the error taxonomy of the
measurement task and consistent error reporting across the application.
"""

from .exceptions import (
    ConfigError,
    ErrorSeverity,
    FatalStartupError,
    IperfError,
    IperfTerminationError,
    SpeedParseError,
    ValidationError,
    handle_cli_error,
    handle_config_error,
    handle_error,
    handle_subprocess_error,
)

from .validators import (
    validate_enum_choice,
    validate_iperf_user_args,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
)

__all__ = [
    # Errors
    "ConfigError",
    "ErrorSeverity",
    "FatalStartupError",
    "IperfError",
    "IperfTerminationError",
    "SpeedParseError",
    "ValidationError",
    # Handlers
    "handle_cli_error",
    "handle_config_error",
    "handle_error",
    "handle_subprocess_error",
    # Validators
    "validate_enum_choice",
    "validate_iperf_user_args",
    "validate_non_empty_string",
    "validate_positive_float",
    "validate_positive_integer",
]
