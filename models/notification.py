"""
Payment notification data model.

Represents the HTTP notification Midtrans posts when a transaction
changes state.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional


# Fields covered by the signature; all four must be present
SIGNED_FIELDS = ('order_id', 'status_code', 'gross_amount', 'signature_key')


class TransactionStatus(str, Enum):
    """Transaction states reported by Midtrans."""
    CAPTURE = "capture"
    SETTLEMENT = "settlement"
    PENDING = "pending"
    DENY = "deny"
    CANCEL = "cancel"
    EXPIRE = "expire"
    REFUND = "refund"
    PARTIAL_REFUND = "partial_refund"
    FAILURE = "failure"
    AUTHORIZE = "authorize"


class FraudStatus(str, Enum):
    """Fraud detection verdicts attached to card transactions."""
    ACCEPT = "accept"
    DENY = "deny"
    CHALLENGE = "challenge"


@dataclass(frozen=True)
class Notification:
    """
    Inbound transaction notification.

    Every value is kept exactly as received. gross_amount in particular
    stays a string ("10000.00"), since the signature is computed over
    that literal text.
    """

    order_id: Optional[str] = None
    status_code: Optional[str] = None
    gross_amount: Optional[str] = None
    signature_key: Optional[str] = None

    # Passthrough fields
    transaction_status: Optional[str] = None
    fraud_status: Optional[str] = None
    payment_type: Optional[str] = None
    transaction_time: Optional[str] = None
    transaction_id: Optional[str] = None
    status_message: Optional[str] = None

    # Anything else the gateway sent
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Notification':
        """
        Create Notification from a decoded JSON body.

        Args:
            data: Notification mapping

        Returns:
            Notification instance
        """
        known = {f.name for f in fields(cls) if f.name != 'extra'}
        return cls(
            extra={k: v for k, v in data.items() if k not in known},
            **{k: v for k, v in data.items() if k in known}
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the mapping it was built from."""
        data = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != 'extra' and getattr(self, f.name) is not None
        }
        data.update(self.extra)
        return data

    def get(self, key: str, default: Any = None) -> Any:
        """Mapping-style access so a Notification can stand in for a dict."""
        value = self.to_dict().get(key)
        return default if value is None else value

    def has_required_fields(self) -> bool:
        """Check that every signed field is a non-empty string."""
        return all(
            isinstance(getattr(self, name), str) and getattr(self, name)
            for name in SIGNED_FIELDS
        )

    def is_paid(self) -> bool:
        """
        Whether the notification reports money received.

        Settlement always counts; capture only when fraud detection
        accepted it (or did not run).
        """
        if self.transaction_status == TransactionStatus.SETTLEMENT.value:
            return True
        if self.transaction_status == TransactionStatus.CAPTURE.value:
            return self.fraud_status in (None, FraudStatus.ACCEPT.value)
        return False

    def __repr__(self) -> str:
        return (
            f"Notification(order_id={self.order_id}, "
            f"status={self.transaction_status}, "
            f"payment_type={self.payment_type})"
        )
