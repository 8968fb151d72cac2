"""Payment Link service."""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from models.errors import ValidationError
from models.payment_method import qr_image_url
from models.result import GatewayResult
from .base import BaseService, clone, is_positive_number, require, require_fields, segment
from .identifiers import generate_order_id

DEFAULT_ENABLED_PAYMENTS = [
    'credit_card', 'bank_transfer', 'echannel', 'gopay',
    'ovo', 'dana', 'shopeepay', 'qris', 'cstore'
]

LINK_PAYMENT_METHODS = [
    'credit_card', 'bank_transfer', 'echannel', 'permata',
    'gopay', 'ovo', 'dana', 'shopeepay', 'linkaja',
    'qris', 'cstore', 'bca_klikpay', 'cimb_clicks'
]

# Longest expiry accepted per unit (30 days)
EXPIRY_LIMITS = {'minutes': 43200, 'hours': 720, 'days': 30}


class PaymentLinkService(BaseService):
    """Shareable payment links."""

    BASE_URL_KEY = 'payment_link'

    async def create(self, link_data: Mapping[str, Any]) -> GatewayResult:
        """
        Create a payment link.

        Missing order_id, usage_limit, expiry and enabled_payments are
        filled with defaults (single use, 24 hours, common methods).
        """
        self.validate_link_data(link_data)
        payload = self.prepare_link_payload(link_data)
        return await self.http.post(self.base_url, '/v1/payment-links', payload)

    async def create_simple(
        self,
        order_id: str,
        amount: float,
        title: str,
        description: Optional[str] = None,
        usage_limit: int = 1,
        expiry_hours: Optional[int] = None,
        enabled_payments: Optional[List[str]] = None,
        customer_details: Optional[Mapping[str, Any]] = None
    ) -> GatewayResult:
        link_data: Dict[str, Any] = {
            'transaction_details': {
                'order_id': order_id,
                'gross_amount': amount
            },
            'payment_link': {
                'title': title,
                'description': description or f"Payment for order {order_id}"
            },
            'usage_limit': usage_limit
        }

        if expiry_hours:
            link_data['expiry'] = _expiry(expiry_hours)
        if enabled_payments:
            link_data['enabled_payments'] = list(enabled_payments)
        if customer_details:
            link_data['customer_details'] = dict(customer_details)

        return await self.create(link_data)

    async def create_recurring(
        self,
        link_data: Mapping[str, Any],
        frequency: str = 'monthly',
        interval: int = 1,
        max_interval: int = 12,
        start_date: Optional[str] = None
    ) -> GatewayResult:
        """Payment link that bills on a schedule; usage is unlimited."""
        self.validate_link_data(link_data)
        payload = self.prepare_link_payload(link_data)

        payload['recurring'] = {
            'frequency': frequency,
            'interval': interval,
            'max_interval': max_interval,
            'start_date': start_date or date.today().isoformat()
        }
        payload['usage_limit'] = None

        return await self.http.post(self.base_url, '/v1/payment-links', payload)

    async def get(self, link_id: str) -> GatewayResult:
        require(link_id, 'Payment link ID is required')
        return await self.http.get(self.base_url, f'/v1/payment-links/{segment(link_id)}')

    async def update(self, link_id: str, update_data: Mapping[str, Any]) -> GatewayResult:
        require(link_id, 'Payment link ID is required')
        return await self.http.patch(self.base_url, f'/v1/payment-links/{segment(link_id)}', dict(update_data))

    async def delete(self, link_id: str) -> GatewayResult:
        require(link_id, 'Payment link ID is required')
        return await self.http.delete(self.base_url, f'/v1/payment-links/{segment(link_id)}')

    async def get_all(self, **filters: Any) -> GatewayResult:
        params = self.page_params(filters, ['status', 'created_at_start', 'created_at_end'])
        return await self.http.get(self.base_url, '/v1/payment-links', params)

    async def get_transactions(self, link_id: str, **filters: Any) -> GatewayResult:
        require(link_id, 'Payment link ID is required')
        params = self.page_params(filters, ['status'])
        return await self.http.get(self.base_url, f'/v1/payment-links/{segment(link_id)}/transactions', params)

    async def get_analytics(self, link_id: str) -> GatewayResult:
        require(link_id, 'Payment link ID is required')
        return await self.http.get(self.base_url, f'/v1/payment-links/{segment(link_id)}/analytics')

    async def send_email(
        self,
        link_id: str,
        to: str,
        subject: str,
        message: Optional[str] = None,
        sender_name: Optional[str] = None
    ) -> GatewayResult:
        require(link_id, 'Payment link ID is required')
        require(to and subject, 'Email recipient and subject are required')

        payload = {
            'to': to,
            'subject': subject,
            'message': message or 'Please complete your payment using the link below.',
            'sender_name': sender_name or 'Payment System'
        }
        return await self.http.post(self.base_url, f'/v1/payment-links/{segment(link_id)}/send-email', payload)

    @staticmethod
    def validate_link_data(link_data: Mapping[str, Any]) -> None:
        require_fields(link_data, ('transaction_details',))

        gross_amount = link_data['transaction_details'].get('gross_amount')
        if not gross_amount:
            raise ValidationError('gross_amount is required in transaction_details')
        if not is_positive_number(gross_amount):
            raise ValidationError('gross_amount must be a positive number')

    @staticmethod
    def prepare_link_payload(link_data: Mapping[str, Any]) -> Dict[str, Any]:
        payload = clone(link_data)

        if not payload['transaction_details'].get('order_id'):
            payload['transaction_details']['order_id'] = generate_order_id('PLINK')

        if not payload.get('usage_limit'):
            payload['usage_limit'] = 1

        if not payload.get('expiry'):
            payload['expiry'] = _expiry(24)

        if not payload.get('enabled_payments'):
            payload['enabled_payments'] = list(DEFAULT_ENABLED_PAYMENTS)

        return payload


def _expiry(hours: int) -> Dict[str, Any]:
    return {
        'start_time': datetime.now(timezone.utc).isoformat(),
        'duration': hours,
        'unit': 'hours'
    }


def validate_expiry(expiry: Mapping[str, Any]) -> Tuple[bool, str]:
    """
    Check an expiry block.

    Returns:
        Tuple of (is_valid, message)
    """
    duration = expiry.get('duration')
    unit = expiry.get('unit')

    if not duration or not unit:
        return False, 'Duration and unit are required for expiry'

    if unit not in EXPIRY_LIMITS:
        return False, f"Unit must be one of: {', '.join(EXPIRY_LIMITS)}"

    if not is_positive_number(duration):
        return False, 'Duration must be a positive number'

    if duration > EXPIRY_LIMITS[unit]:
        return False, f"Maximum {unit} allowed is {EXPIRY_LIMITS[unit]}"

    return True, 'Expiry configuration is valid'


def generate_qr_code(payment_url: Optional[str]) -> Optional[str]:
    """QR image URL pointing at a payment link."""
    return qr_image_url(payment_url)
