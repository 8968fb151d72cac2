"""
Midtrans gateway facade.

Wires every service over one shared HttpClient and exposes the
method-agnostic operations the receiver API needs.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from config import MidtransConfig
from models.errors import ValidationError
from models.notification import Notification
from models.payment_method import available_methods, get_payment_method
from models.result import GatewayResult
from .card import CARD_METHODS, CardService
from .core_api import CoreApiService
from .disbursement import DisbursementService
from .http_client import HttpClient
from .identifiers import generate_order_id
from .invoice import InvoiceService
from .payment_link import PaymentLinkService
from .payout import PayoutService
from .signature import SignatureVerifier
from .snap import SnapService

logger = logging.getLogger(__name__)

SNAP_METHOD = 'snap'


class MidtransGateway:
    """
    Entry point for talking to Midtrans.

    Usage:
        async with MidtransGateway(MidtransConfig.from_env()) as gateway:
            result = await gateway.create_payment({'method': 'gopay', ...})
    """

    def __init__(self, config: MidtransConfig, http_client: Optional[HttpClient] = None):
        """
        Initialize the gateway.

        Args:
            config: Midtrans configuration
            http_client: Optional shared client (one is created otherwise)
        """
        self.config = config
        self.http = http_client or HttpClient(config)
        self.signatures = SignatureVerifier(config)

        self.core = CoreApiService(self.http)
        self.card = CardService(self.http)
        self.snap = SnapService(self.http)
        self.payment_link = PaymentLinkService(self.http)
        self.disbursement = DisbursementService(self.http)
        self.payout = PayoutService(self.http)
        self.invoice = InvoiceService(self.http)

    async def start(self) -> None:
        await self.http.start()
        logger.info(f"Midtrans gateway started ({self.config.environment})")

    async def stop(self) -> None:
        await self.http.stop()
        logger.info("Midtrans gateway stopped")

    async def __aenter__(self) -> 'MidtransGateway':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def get_config(self) -> Dict[str, Any]:
        """Non-secret view of the configuration."""
        return self.config.get_environment_info()

    async def test_connection(self) -> Dict[str, Any]:
        """
        Check that the Core API is reachable with the configured key.

        Looks up the status of a throwaway order id. Any HTTP answer
        other than 401 means the gateway is reachable and the key is
        accepted.
        """
        probe = await self.core.get_status(generate_order_id('PING'))
        report: Dict[str, Any] = {
            'environment': self.config.environment,
            'base_urls': self.config.base_urls.to_dict(),
            'server_key_configured': bool(self.config.server_key),
            'client_key_configured': bool(self.config.client_key),
            'connection_status': 'ok',
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

        error = probe.error
        if error is not None and (error.is_network_error or error.status_code == 401):
            report['connection_status'] = 'error'
            report['error'] = error.message
            logger.warning(f"Midtrans connection test failed: {error.message}")

        return report

    def validate_notification(
        self,
        data: Union[Mapping[str, Any], Notification]
    ) -> Dict[str, Any]:
        """
        Verify a notification and summarize it.

        Returns:
            Dict with valid, order_id, transaction_status, fraud_status,
            payment_type, gross_amount and transaction_time
        """
        return {
            'valid': self.signatures.validate(data),
            'order_id': data.get('order_id'),
            'transaction_status': data.get('transaction_status'),
            'fraud_status': data.get('fraud_status'),
            'payment_type': data.get('payment_type'),
            'gross_amount': data.get('gross_amount'),
            'transaction_time': data.get('transaction_time')
        }

    async def create_payment(self, payment_data: Mapping[str, Any]) -> GatewayResult:
        """
        Create a payment with any supported method.

        Args:
            payment_data: Charge data plus 'method' ('snap' or a
                registered payment method name)

        Raises:
            ValidationError: If the method is unknown or data is invalid
        """
        if not isinstance(payment_data, Mapping):
            raise ValidationError('Payment data must be an object')

        data = dict(payment_data)
        method = data.pop('method', None)

        if isinstance(method, str) and method.lower() == SNAP_METHOD:
            return await self.snap.create_transaction(data)

        spec = get_payment_method(method)
        return await self.core.charge(spec.name, data)

    async def create_simple_payment(
        self,
        method: str,
        order_id: str,
        amount: float,
        customer: Mapping[str, Any],
        **options: Any
    ) -> GatewayResult:
        payment_data = {
            'method': method,
            'transaction_details': {
                'order_id': order_id,
                'gross_amount': amount
            },
            'customer_details': dict(customer)
        }
        payment_data.update(options)
        return await self.create_payment(payment_data)

    async def batch_create_payments(self, payments: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """
        Create payments one after another.

        A failing entry never stops the batch.

        Returns:
            One entry per payment: {'success': True, 'data': ...} or
            {'success': False, 'error': ..., 'status_code': ..., 'payment': ...}
        """
        results = []

        for payment in payments:
            try:
                result = await self.create_payment(payment)
            except ValidationError as e:
                results.append({
                    'success': False,
                    'error': str(e),
                    'status_code': None,
                    'payment': payment
                })
                continue

            if result.ok:
                results.append({'success': True, 'data': result.data})
            else:
                results.append({
                    'success': False,
                    'error': result.error.message,
                    'status_code': result.error.status_code,
                    'payment': payment
                })

        succeeded = sum(1 for entry in results if entry['success'])
        logger.info(f"Batch payment creation: {succeeded}/{len(results)} succeeded")
        return results

    async def get_payment_status(self, order_id: str) -> GatewayResult:
        return await self.core.get_status(order_id)

    async def cancel_payment(self, order_id: str) -> GatewayResult:
        return await self.core.cancel(order_id)

    @staticmethod
    def get_available_payment_methods() -> Dict[str, List[str]]:
        """Payment methods grouped by category, Snap included."""
        methods: Dict[str, List[str]] = {SNAP_METHOD: [SNAP_METHOD]}
        methods.update(available_methods())
        methods['card'] = list(CARD_METHODS)
        return methods
