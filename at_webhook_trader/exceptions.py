"""
Exception hierarchy for the webhook trader.

Guard trips (throttle, loss limit, unknown signal) are not errors and are
reported as decision outcomes instead.
"""

from typing import Optional, Dict


class TraderError(Exception):
    """Base exception for webhook trader errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class ConfigError(TraderError):
    """Raised when configuration is missing or inconsistent."""
    pass


class MalformedSignalError(TraderError):
    """Raised when a webhook body cannot be decoded into a signal."""
    pass


class GatewayError(TraderError):
    """Base exception for order gateway failures."""
    pass


class GatewayConnectionError(GatewayError):
    """Raised when the brokerage API cannot be reached."""
    pass


class GatewayTimeoutError(GatewayError):
    """Raised when the brokerage API does not answer in time."""
    pass


class GatewayRejectedError(GatewayError):
    """Raised when the brokerage API answers with a non-success status."""
    pass
