"""
Configuration validation utilities.

This module turns raw TOML sections into validated configuration models.
Every failure is reported as a ConfigError naming the offending field.
"""

import logging
from pathlib import Path
from typing import Any, Dict

from ..models.config import AppConfig, LoggingConfig, ProbeConfig
from ..validation import (
    ConfigError,
    ValidationError,
    validate_enum_choice,
    validate_iperf_user_args,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
)

logger = logging.getLogger(__name__)

SUPPORTED_PARSERS = ["text", "json_stream"]
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def validate_probe_config(probe_data: Dict[str, Any]) -> ProbeConfig:
    """
    Validate and create a ProbeConfig from the raw `[probe]` section.

    Args:
        probe_data: Raw probe configuration from TOML

    Returns:
        Validated ProbeConfig instance

    Raises:
        ConfigError: If validation fails
    """
    if not isinstance(probe_data, dict):
        raise ConfigError("[probe] must be a table", field_name="probe", value=probe_data)

    try:
        writable_dir = Path(validate_non_empty_string(
            probe_data.get("writable_dir", "."),
            field_name="probe.writable_dir",
        ))
        try:
            writable_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(
                f"Cannot create writable directory '{writable_dir}': {e}",
                field_name="probe.writable_dir",
                value=str(writable_dir),
            )

        iperf_executable = validate_non_empty_string(
            probe_data.get("iperf_executable", "iperf3"),
            field_name="probe.iperf_executable",
        )

        user_args = validate_iperf_user_args(
            probe_data.get("user_args", ""),
            field_name="probe.user_args",
        )

        idle_timeout_millis = validate_positive_integer(
            probe_data.get("idle_timeout_millis", 10_000),
            min_value=100,  # 100ms minimum
            max_value=3_600_000,  # 1h maximum
            field_name="probe.idle_timeout_millis",
        )

        max_start_attempts = validate_positive_integer(
            probe_data.get("max_start_attempts", 5),
            min_value=1,
            max_value=100,
            field_name="probe.max_start_attempts",
        )

        termination_timeout = validate_positive_float(
            probe_data.get("termination_timeout", 2.0),
            min_value=0.1,
            max_value=60.0,
            field_name="probe.termination_timeout",
        )

        parser = validate_enum_choice(
            probe_data.get("parser", "text"),
            choices=SUPPORTED_PARSERS,
            field_name="probe.parser",
        )
    except ConfigError:
        raise
    except ValidationError as e:
        raise ConfigError(str(e), field_name=e.field_name, value=e.value) from e

    return ProbeConfig(
        writable_dir=writable_dir,
        iperf_executable=iperf_executable,
        user_args=user_args,
        idle_timeout_millis=idle_timeout_millis,
        max_start_attempts=max_start_attempts,
        termination_timeout=termination_timeout,
        parser=parser,
    )


def validate_logging_config(logging_data: Dict[str, Any]) -> LoggingConfig:
    """Validate the `[logging]` section."""
    try:
        level = validate_enum_choice(
            logging_data.get("level", "INFO"),
            choices=LOG_LEVELS,
            field_name="logging.level",
            case_sensitive=False,
        )
    except ValidationError as e:
        raise ConfigError(str(e), field_name=e.field_name, value=e.value) from e
    return LoggingConfig(level=level)


def validate_app_config(config_data: Dict[str, Any]) -> AppConfig:
    """
    Validate the whole configuration document.

    A missing `[probe]` section is allowed and yields the defaults.
    """
    probe_config = validate_probe_config(config_data.get("probe", {}))
    logging_config = validate_logging_config(config_data.get("logging", {}))

    if probe_config.idle_timeout_millis < 1000:
        logger.warning(
            f"probe.idle_timeout_millis={probe_config.idle_timeout_millis} is shorter than "
            "the default iperf reporting interval, runs may be killed between reports"
        )

    return AppConfig(probe=probe_config, logging=logging_config)
