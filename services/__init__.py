"""Services module for the Midtrans payment gateway."""

from .http_client import HttpClient
from .signature import SignatureVerifier, compute_signature
from .core_api import CoreApiService
from .card import CardService
from .snap import SnapService
from .payment_link import PaymentLinkService
from .disbursement import DisbursementService
from .payout import PayoutService
from .invoice import InvoiceService
from .gateway import MidtransGateway

__all__ = [
    'HttpClient',
    'SignatureVerifier',
    'compute_signature',
    'CoreApiService',
    'CardService',
    'SnapService',
    'PaymentLinkService',
    'DisbursementService',
    'PayoutService',
    'InvoiceService',
    'MidtransGateway'
]
