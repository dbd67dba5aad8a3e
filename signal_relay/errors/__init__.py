"""
Error classification for the signal relay.

Rejections describe signals the relay declined to act on and are returned to
the caller. Exceptions describe system failures (store, delivery, parsing,
configuration) and propagate until the intake boundary turns them into an
error response.
"""

from .rejections import (
    Rejection,
    RejectionKind,
    RejectionReason,
    conflict,
    validation,
)
from .system_failures import (
    SystemFailureError,
    StoreError,
    DeliveryError,
    ParseError,
    ConfigError,
)

__all__ = [
    # Rejections
    "Rejection",
    "RejectionKind",
    "RejectionReason",
    "conflict",
    "validation",
    # System Failures
    "SystemFailureError",
    "StoreError",
    "DeliveryError",
    "ParseError",
    "ConfigError",
]
