"""
System failure error classifications.

These exceptions represent failures of the relay's collaborators (store,
channels, configuration) rather than problems with an individual signal.
"""

from typing import Any, Dict, Optional


class SystemFailureError(Exception):
    """Base class for unrecoverable system failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class StoreError(SystemFailureError):
    """Key-value store unavailable or a store operation failed."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 key: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.key = key


class DeliveryError(SystemFailureError):
    """Notification channel misconfigured or unusable."""

    def __init__(self, message: str, channel: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.channel = channel


class ParseError(SystemFailureError):
    """Inbound payload could not be decoded."""

    def __init__(self, message: str, raw_data: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data
        self.recoverable = True


class ConfigError(SystemFailureError):
    """Configuration failed validation."""

    def __init__(self, message: str, errors: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []
