"""
Core API service.

Charges for every registered payment method go through one generic
path: build the payload from the method's registry record, POST it to
/v2/charge, then lift action URLs from the response. Transaction
management calls (status, cancel, refund, ...) live here too.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from models.payment_method import (
    build_charge_payload,
    enrich_charge_response,
    get_payment_method,
)
from models.result import GatewayResult
from .base import BaseService, drop_none, require, segment
from .identifiers import generate_random_string

QRIS_EXPIRY_MINUTES = 15


class CoreApiService(BaseService):
    """Charges and transaction management on the Core API."""

    BASE_URL_KEY = 'api'

    def charge_defaults(self) -> Dict[str, Any]:
        """Client-level values payload fields may fall back to."""
        return {'callback_url': self.config.callback_url}

    async def charge(self, method: str, data: Mapping[str, Any]) -> GatewayResult:
        """
        Create a charge with a registered payment method.

        Args:
            method: Payment method name, e.g. 'gopay' or 'bca_va'
            data: transaction_details, customer_details, item_details
                and method-specific options

        Returns:
            GatewayResult with the charge response

        Raises:
            ValidationError: If the method is unknown or data is incomplete
        """
        spec = get_payment_method(method)
        payload = build_charge_payload(spec.name, data, self.charge_defaults())

        result = await self.http.post(self.base_url, '/v2/charge', payload)
        return result.map(lambda response: enrich_charge_response(spec, response))

    async def charge_qris(
        self,
        data: Mapping[str, Any],
        expiry_minutes: int = QRIS_EXPIRY_MINUTES
    ) -> GatewayResult:
        """QRIS charge with a custom expiry window."""
        spec = get_payment_method('qris')
        payload = build_charge_payload('qris', data, self.charge_defaults())
        payload['custom_expiry'] = {
            'expiry_duration': expiry_minutes,
            'unit': 'minute'
        }
        expiry_time = datetime.now(timezone.utc) + timedelta(minutes=expiry_minutes)

        def _with_expiry(response: Any) -> Any:
            enriched = enrich_charge_response(spec, response)
            if isinstance(enriched, dict):
                enriched['expiry_time'] = expiry_time.isoformat()
                enriched['expiry_duration_minutes'] = expiry_minutes
            return enriched

        result = await self.http.post(self.base_url, '/v2/charge', payload)
        return result.map(_with_expiry)

    async def get_status(self, order_id: str) -> GatewayResult:
        require(order_id, 'Order ID is required')
        return await self.http.get(self.base_url, f'/v2/{segment(order_id)}/status')

    async def cancel(self, order_id: str) -> GatewayResult:
        require(order_id, 'Order ID is required')
        return await self.http.post(self.base_url, f'/v2/{segment(order_id)}/cancel', {})

    async def approve(self, order_id: str) -> GatewayResult:
        """Approve a transaction flagged as challenge by fraud detection."""
        require(order_id, 'Order ID is required')
        return await self.http.post(self.base_url, f'/v2/{segment(order_id)}/approve', {})

    async def expire(self, order_id: str) -> GatewayResult:
        require(order_id, 'Order ID is required')
        return await self.http.post(self.base_url, f'/v2/{segment(order_id)}/expire', {})

    async def refund(
        self,
        order_id: str,
        amount: Optional[float] = None,
        reason: Optional[str] = None,
        refund_key: Optional[str] = None
    ) -> GatewayResult:
        """
        Refund a settled transaction.

        Args:
            order_id: Order to refund
            amount: Partial amount; omit for a full refund
            reason: Free-text reason
            refund_key: Idempotency key (generated when omitted)
        """
        require(order_id, 'Order ID is required')

        payload = drop_none({
            'refund_key': refund_key or generate_random_string(10),
            'amount': amount,
            'reason': reason or 'Refund requested'
        })
        return await self.http.post(self.base_url, f'/v2/{segment(order_id)}/refund', payload)

    async def capture(self, transaction_id: str, amount: Optional[float] = None) -> GatewayResult:
        """Capture a pre-authorized card transaction."""
        require(transaction_id, 'Transaction ID is required')

        payload: Dict[str, Any] = {'transaction_id': transaction_id}
        if amount:
            payload['transaction_details'] = {'gross_amount': amount}
        return await self.http.post(self.base_url, '/v2/capture', payload)


def is_qris_expired(
    transaction_time: datetime,
    expiry_minutes: int = QRIS_EXPIRY_MINUTES,
    now: Optional[datetime] = None
) -> bool:
    """Whether a QRIS code issued at transaction_time has lapsed."""
    now = now or datetime.now(transaction_time.tzinfo)
    return now - transaction_time > timedelta(minutes=expiry_minutes)


def qris_expiry_time(
    transaction_time: datetime,
    expiry_minutes: int = QRIS_EXPIRY_MINUTES
) -> datetime:
    return transaction_time + timedelta(minutes=expiry_minutes)
