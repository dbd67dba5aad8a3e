"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..utils.time import parse_clock


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_clock(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parse_clock(value)
    except ValueError:
        return False
    return True


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_session_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate session parameters."""
        errors = []

        if "timezone" in params:
            value = params["timezone"]
            try:
                ZoneInfo(str(value))
            except (ZoneInfoNotFoundError, ValueError):
                errors.append(ValidationError(
                    field="session.timezone",
                    message="Must be an IANA time zone name",
                    value=value
                ))

        if "bias_cutoff" in params and not _is_clock(params["bias_cutoff"]):
            errors.append(ValidationError(
                field="session.bias_cutoff",
                message="Must be an HH:MM time of day",
                value=params["bias_cutoff"]
            ))

        if "week_end_weekday" in params:
            value = params["week_end_weekday"]
            if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 6:
                errors.append(ValidationError(
                    field="session.week_end_weekday",
                    message="Must be an integer between 0 (Monday) and 6 (Sunday)",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_entry_window_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate entry window parameters."""
        errors = []

        for key in ("start", "end"):
            if key in params and not _is_clock(params[key]):
                errors.append(ValidationError(
                    field=f"entry_window.{key}",
                    message="Must be an HH:MM time of day",
                    value=params[key]
                ))

        if "enabled" in params and not isinstance(params["enabled"], bool):
            errors.append(ValidationError(
                field="entry_window.enabled",
                message="Must be a boolean",
                value=params["enabled"]
            ))

        return errors

    @staticmethod
    def validate_positive_numbers(section: str, params: dict[str, Any]) -> list[ValidationError]:
        """Validate that every numeric field of a section is positive."""
        errors = []

        for key, value in params.items():
            if isinstance(value, bool):
                continue
            if not _is_number(value) or value <= 0:
                errors.append(ValidationError(
                    field=f"{section}.{key}",
                    message="Must be a positive number",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_dispatch_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate dispatch parameters."""
        errors = []

        for key in ("max_attempts", "batch_size"):
            if key in params:
                value = params[key]
                if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                    errors.append(ValidationError(
                        field=f"dispatch.{key}",
                        message="Must be a positive integer",
                        value=value
                    ))

        for key in ("base_delay_seconds", "inter_batch_delay_seconds", "max_retry_after_seconds"):
            if key in params:
                value = params[key]
                if not _is_number(value) or value < 0:
                    errors.append(ValidationError(
                        field=f"dispatch.{key}",
                        message="Must be a non-negative number",
                        value=value
                    ))

        if "timeout_seconds" in params:
            value = params["timeout_seconds"]
            if not _is_number(value) or value <= 0:
                errors.append(ValidationError(
                    field="dispatch.timeout_seconds",
                    message="Must be a positive number",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        if "session" in config:
            errors.extend(ConfigValidator.validate_session_params(config["session"]))

        if "entry_window" in config:
            errors.extend(ConfigValidator.validate_entry_window_params(config["entry_window"]))

        if "suppression" in config:
            errors.extend(ConfigValidator.validate_positive_numbers("suppression", config["suppression"]))

        if "retention" in config:
            errors.extend(ConfigValidator.validate_positive_numbers("retention", config["retention"]))

        if "dispatch" in config:
            errors.extend(ConfigValidator.validate_dispatch_params(config["dispatch"]))

        return errors
