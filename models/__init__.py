"""Data models for the Midtrans gateway client."""

from .errors import ConfigurationError, GatewayError, ValidationError
from .notification import FraudStatus, Notification, TransactionStatus
from .payment_method import PaymentMethodSpec, build_charge_payload, get_payment_method
from .result import GatewayResult

__all__ = [
    'ConfigurationError',
    'GatewayError',
    'ValidationError',
    'FraudStatus',
    'Notification',
    'TransactionStatus',
    'PaymentMethodSpec',
    'build_charge_payload',
    'get_payment_method',
    'GatewayResult'
]
