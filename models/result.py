"""Outcome of an outbound gateway call."""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .errors import GatewayError


@dataclass(frozen=True)
class GatewayResult:
    """
    Either the decoded response body of a successful call or the
    GatewayError describing why it failed. Exactly one is set.
    """

    data: Any = None
    error: Optional[GatewayError] = None

    @classmethod
    def success(cls, data: Any) -> 'GatewayResult':
        return cls(data=data)

    @classmethod
    def failure(cls, error: GatewayError) -> 'GatewayResult':
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """
        Return the response body.

        Raises:
            GatewayError: If the call failed
        """
        if self.error is not None:
            raise self.error
        return self.data

    def map(self, fn: Callable[[Any], Any]) -> 'GatewayResult':
        """Apply fn to the body of a successful result."""
        if self.error is not None:
            return self
        return GatewayResult.success(fn(self.data))
