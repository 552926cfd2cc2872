"""
Unit tests for the scalar validators and the iperf user-argument check.
"""

import pytest

from speedprobe.validation import (
    ConfigError,
    ValidationError,
    validate_enum_choice,
    validate_iperf_user_args,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
)


@pytest.mark.unit
class TestIperfUserArgs:
    """Test cases for validate_iperf_user_args."""

    @pytest.mark.parametrize(
        "user_args",
        ["", "-t 10 -i 1", "-t 10 -P 4 -R", "--forceflush -J", "-u -b 100M", "--json-stream", "-t 5 --parallel 2"],
    )
    def test_allowed(self, user_args):
        """Test arguments without target or port flags pass unchanged."""
        assert validate_iperf_user_args(user_args) == user_args

    def test_none_is_empty(self):
        """Test missing user args become an empty string."""
        assert validate_iperf_user_args(None) == ""

    @pytest.mark.parametrize(
        "user_args",
        [
            "-c 1.2.3.4",
            "-c1.2.3.4",
            "-t 10 -p 5202",
            "-p5202",
            "--client 1.2.3.4",
            "--client=1.2.3.4",
            "--port 5202",
            "--port=5202",
        ],
    )
    def test_injected_flags_rejected(self, user_args):
        """Test client target and port flags are refused."""
        with pytest.raises(ConfigError) as exc_info:
            validate_iperf_user_args(user_args, field_name="probe.user_args")
        assert exc_info.value.field_name == "probe.user_args"

    def test_quoted_value_is_not_a_flag(self):
        """Test a flag-like string inside a quoted value is one token."""
        assert validate_iperf_user_args('-T "run -c label"') == '-T "run -c label"'

    def test_unbalanced_quotes(self):
        """Test strings that cannot be tokenised are rejected."""
        with pytest.raises(ConfigError):
            validate_iperf_user_args('-T "unterminated')

    def test_non_string(self):
        """Test non-string values are rejected."""
        with pytest.raises(ConfigError):
            validate_iperf_user_args(["-t", "10"])

    def test_config_error_is_validation_error(self):
        """Test ConfigError can be caught as ValidationError."""
        with pytest.raises(ValidationError):
            validate_iperf_user_args("-c host")


@pytest.mark.unit
class TestScalarValidators:
    """Test cases for the scalar validators."""

    def test_positive_integer_from_string(self):
        """Test integers are accepted from strings."""
        assert validate_positive_integer("5201", min_value=1, max_value=65535) == 5201

    @pytest.mark.parametrize("value", [0, 70000, "abc", None, True])
    def test_positive_integer_rejects(self, value):
        """Test out-of-range and non-integer values are rejected."""
        with pytest.raises(ValidationError):
            validate_positive_integer(value, min_value=1, max_value=65535, field_name="port")

    def test_positive_float_bounds(self):
        """Test float bounds are inclusive."""
        assert validate_positive_float(0.1, min_value=0.1, max_value=60.0) == 0.1
        with pytest.raises(ValidationError):
            validate_positive_float(60.5, min_value=0.1, max_value=60.0)

    def test_enum_choice_case_insensitive(self):
        """Test case-insensitive matching returns the canonical choice."""
        assert validate_enum_choice("debug", ["DEBUG", "INFO"], case_sensitive=False) == "DEBUG"

    def test_enum_choice_case_sensitive(self):
        """Test case-sensitive matching rejects other cases."""
        with pytest.raises(ValidationError):
            validate_enum_choice("TEXT", ["text", "json_stream"])

    @pytest.mark.parametrize("value", ["", "   ", None, 5])
    def test_non_empty_string_rejects(self, value):
        """Test blank and non-string values are rejected."""
        with pytest.raises(ValidationError):
            validate_non_empty_string(value, field_name="--server")
