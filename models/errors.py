"""
Error taxonomy for the Midtrans gateway client.

ConfigurationError and ValidationError are raised locally, before any
network call. GatewayError describes a failed outbound call and is
normally carried inside a GatewayResult.
"""

from typing import Any, Dict, Optional


class ConfigurationError(ValueError):
    """Required configuration is missing or invalid."""


class ValidationError(ValueError):
    """A request payload was rejected before being sent."""


class GatewayError(Exception):
    """
    Normalized failure of an outbound call.

    Attributes:
        message: Human-readable message, preferably taken from the
            gateway's own error fields
        status_code: Upstream HTTP status, or 0 when no response was
            received or the request never left the process
        raw_body: Decoded response body when one was received
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        raw_body: Optional[Any] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.raw_body = raw_body

    @property
    def is_network_error(self) -> bool:
        """True when no HTTP status could be interpreted."""
        return self.status_code == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON responses."""
        return {
            'error': self.message,
            'status_code': self.status_code,
            'response': self.raw_body
        }

    def __repr__(self) -> str:
        return f"GatewayError(status_code={self.status_code}, message={self.message!r})"
