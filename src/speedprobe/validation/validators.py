"""
Validation functions.

This module provides the scalar validators used by the configuration layer
and the check that keeps user-supplied iperf arguments from clashing with
the flags injected by the measurement task.
"""

import re
import shlex
from typing import Any, List, Optional

from .exceptions import ConfigError, ValidationError

# Flags that StartIperfTask injects itself. Short forms may carry their value
# attached (``-c10.0.0.2``), long forms may use ``--port=5201``.
_INJECTED_SHORT_FLAG_RE = re.compile(r"^-[cp]")
_INJECTED_LONG_FLAGS = ("--client", "--port")


def validate_positive_integer(
    value: Any,
    min_value: int = 1,
    max_value: Optional[int] = None,
    field_name: str = "value"
) -> int:
    """
    Validate that a value is an integer within bounds.

    Args:
        value: Value to validate
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive), None for no limit
        field_name: Name of the field being validated

    Returns:
        Validated integer value

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    try:
        int_value = int(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    if int_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and int_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    return int_value


def validate_positive_float(
    value: Any,
    min_value: float = 0.0,
    max_value: Optional[float] = None,
    field_name: str = "value"
) -> float:
    """
    Validate that a value is a float within bounds.

    Args:
        value: Value to validate
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive), None for no limit
        field_name: Name of the field being validated

    Returns:
        Validated float value

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a valid number, got {value}",
            field_name=field_name,
            value=value
        )
    try:
        float_value = float(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid number, got {value}",
            field_name=field_name,
            value=value
        )
    if float_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {float_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and float_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {float_value}",
            field_name=field_name,
            value=value
        )
    return float_value


def validate_enum_choice(
    value: Any,
    choices: List[str],
    field_name: str = "value",
    case_sensitive: bool = True
) -> str:
    """
    Validate that a value is one of the allowed choices.

    Returns the matching entry from ``choices``.
    """
    str_value = str(value)
    for choice in choices:
        if str_value == choice or (not case_sensitive and str_value.lower() == choice.lower()):
            return choice
    raise ValidationError(
        f"{field_name} must be one of {choices}, got {value}",
        field_name=field_name,
        value=value
    )


def validate_non_empty_string(value: Any, field_name: str = "value") -> str:
    """Validate that a value is a non-blank string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            field_name=field_name,
            value=value
        )
    return value


def validate_iperf_user_args(user_args: Any, field_name: str = "user_args") -> str:
    """
    Validate extra iperf arguments supplied by the user.

    The measurement task always passes the server address and port itself,
    so the user string must not contain its own client target or port flag.

    Args:
        user_args: Extra argument string, passed to iperf verbatim
        field_name: Name of the field being validated

    Returns:
        The argument string unchanged

    Raises:
        ConfigError: If the string cannot be tokenised or contains ``-c``/``-p``
    """
    if user_args is None:
        return ""
    if not isinstance(user_args, str):
        raise ConfigError(
            f"{field_name} must be a string, got {type(user_args).__name__}",
            field_name=field_name,
            value=user_args
        )

    try:
        tokens = shlex.split(user_args)
    except ValueError as e:
        raise ConfigError(
            f"{field_name} cannot be tokenised: {e}",
            field_name=field_name,
            value=user_args
        )

    for token in tokens:
        if _INJECTED_SHORT_FLAG_RE.match(token):
            raise ConfigError(
                f"{field_name} must not contain '{token[:2]}', it is set from the server address",
                field_name=field_name,
                value=user_args
            )
        for long_flag in _INJECTED_LONG_FLAGS:
            if token == long_flag or token.startswith(long_flag + "="):
                raise ConfigError(
                    f"{field_name} must not contain '{long_flag}', it is set from the server address",
                    field_name=field_name,
                    value=user_args
                )

    return user_args
