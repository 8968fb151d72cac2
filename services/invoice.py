"""Invoice service."""

from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Union

from models.errors import ValidationError
from models.result import GatewayResult
from .base import BaseService, clone, is_positive_number, require, require_fields, segment
from .identifiers import generate_order_id, generate_random_string
from .payment_link import DEFAULT_ENABLED_PAYMENTS

INVOICE_STATUSES = ['pending', 'paid', 'partially_paid', 'overdue', 'cancelled', 'expired']

# Statuses that can no longer become overdue
CLOSED_STATUSES = ('paid', 'cancelled', 'expired')

DateLike = Union[str, date]


def _to_date(value: DateLike) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class InvoiceService(BaseService):
    """Invoices with itemized totals."""

    BASE_URL_KEY = 'invoice'

    async def create(self, invoice_data: Mapping[str, Any]) -> GatewayResult:
        """
        Create an invoice.

        Args:
            invoice_data: invoice_details (invoice_number, due_date,
                invoice_items), customer_details and options

        Returns:
            GatewayResult with the created invoice

        Raises:
            ValidationError: If details, items or contact info are missing
        """
        self.validate_invoice_data(invoice_data)
        payload = self.prepare_invoice_payload(invoice_data)
        return await self.http.post(self.base_url, '/v1/invoices', payload)

    async def create_simple(
        self,
        invoice_number: str,
        customer: Mapping[str, Any],
        items: List[Mapping[str, Any]],
        due_date: str,
        tax_amount: float = 0,
        discount_amount: float = 0,
        notes: str = '',
        external_id: Optional[str] = None
    ) -> GatewayResult:
        invoice_data = {
            'external_id': external_id or generate_order_id('INV'),
            'invoice_details': {
                'invoice_number': invoice_number,
                'due_date': due_date,
                'invoice_items': [
                    {
                        'name': item.get('name'),
                        'quantity': item.get('quantity'),
                        'price': item.get('price'),
                        'description': item.get('description') or ''
                    }
                    for item in items
                ],
                'tax_amount': tax_amount,
                'discount_amount': discount_amount,
                'notes': notes
            },
            'customer_details': dict(customer)
        }
        return await self.create(invoice_data)

    async def create_recurring(
        self,
        invoice_data: Mapping[str, Any],
        frequency: str = 'monthly',
        interval: int = 1,
        max_interval: int = 12,
        start_date: Optional[str] = None
    ) -> GatewayResult:
        self.validate_invoice_data(invoice_data)
        payload = self.prepare_invoice_payload(invoice_data)
        payload['recurring'] = {
            'frequency': frequency,
            'interval': interval,
            'max_interval': max_interval,
            'start_date': start_date or date.today().isoformat()
        }
        return await self.http.post(self.base_url, '/v1/invoices', payload)

    async def get(self, invoice_id: str) -> GatewayResult:
        require(invoice_id, 'Invoice ID is required')
        return await self.http.get(self.base_url, f'/v1/invoices/{segment(invoice_id)}')

    async def update(self, invoice_id: str, update_data: Mapping[str, Any]) -> GatewayResult:
        require(invoice_id, 'Invoice ID is required')
        return await self.http.patch(self.base_url, f'/v1/invoices/{segment(invoice_id)}', dict(update_data))

    async def cancel(self, invoice_id: str) -> GatewayResult:
        require(invoice_id, 'Invoice ID is required')
        return await self.http.post(self.base_url, f'/v1/invoices/{segment(invoice_id)}/cancel', {})

    async def expire(self, invoice_id: str) -> GatewayResult:
        require(invoice_id, 'Invoice ID is required')
        return await self.http.post(self.base_url, f'/v1/invoices/{segment(invoice_id)}/expire', {})

    async def get_all(self, **filters: Any) -> GatewayResult:
        params = self.page_params(
            filters,
            ['status', 'created_at_start', 'created_at_end', 'external_id']
        )
        return await self.http.get(self.base_url, '/v1/invoices', params)

    async def send_email(
        self,
        invoice_id: str,
        to: str,
        subject: str,
        message: Optional[str] = None,
        sender_name: Optional[str] = None
    ) -> GatewayResult:
        require(invoice_id, 'Invoice ID is required')
        require(to and subject, 'Email recipient and subject are required')

        payload = {
            'to': to,
            'subject': subject,
            'message': message or 'Please find your invoice attached.',
            'sender_name': sender_name or 'Invoice System'
        }
        return await self.http.post(self.base_url, f'/v1/invoices/{segment(invoice_id)}/send-email', payload)

    async def get_pdf(self, invoice_id: str) -> GatewayResult:
        require(invoice_id, 'Invoice ID is required')
        return await self.http.get(self.base_url, f'/v1/invoices/{segment(invoice_id)}/pdf')

    async def add_payment(self, invoice_id: str, payment_data: Mapping[str, Any]) -> GatewayResult:
        """Record a (partial) payment against an invoice."""
        require(invoice_id, 'Invoice ID is required')
        require_fields(payment_data, ('amount', 'payment_method'), ' for payment')
        if not is_positive_number(payment_data['amount']):
            raise ValidationError('Payment amount must be a positive number')

        return await self.http.post(
            self.base_url,
            f'/v1/invoices/{segment(invoice_id)}/payments',
            dict(payment_data)
        )

    async def get_payments(self, invoice_id: str) -> GatewayResult:
        require(invoice_id, 'Invoice ID is required')
        return await self.http.get(self.base_url, f'/v1/invoices/{segment(invoice_id)}/payments')

    @staticmethod
    def validate_invoice_data(invoice_data: Mapping[str, Any]) -> None:
        require_fields(invoice_data, ('invoice_details', 'customer_details'))

        details = invoice_data['invoice_details']
        if not (details.get('invoice_number') and details.get('due_date')
                and details.get('invoice_items')):
            raise ValidationError(
                'invoice_number, due_date, and invoice_items are required in invoice_details'
            )

        items = details['invoice_items']
        if not isinstance(items, list) or not items:
            raise ValidationError('invoice_items must be a non-empty array')

        for index, item in enumerate(items):
            if not (item.get('name') and item.get('quantity') and item.get('price')):
                raise ValidationError(
                    f"Invoice item at index {index} is missing required fields (name, quantity, price)"
                )
            if not is_positive_number(item['quantity']):
                raise ValidationError(f"Invoice item at index {index} must have a positive quantity")
            if not is_positive_number(item['price']):
                raise ValidationError(f"Invoice item at index {index} must have a positive price")

        customer = invoice_data['customer_details']
        if not customer.get('email') and not customer.get('phone'):
            raise ValidationError('At least email or phone is required in customer_details')

    @staticmethod
    def prepare_invoice_payload(invoice_data: Mapping[str, Any]) -> Dict[str, Any]:
        payload = clone(invoice_data)
        details = payload['invoice_details']

        if not payload.get('external_id'):
            payload['external_id'] = generate_order_id('INV')

        if not details.get('total_amount'):
            totals = calculate_totals(
                details['invoice_items'],
                details.get('tax_amount') or 0,
                details.get('discount_amount') or 0
            )
            details['total_amount'] = totals['total_amount']

        if not details.get('currency'):
            details['currency'] = 'IDR'

        if not details.get('invoice_date'):
            details['invoice_date'] = date.today().isoformat()

        if not payload.get('enabled_payments'):
            payload['enabled_payments'] = list(DEFAULT_ENABLED_PAYMENTS)

        return payload


def calculate_totals(
    items: List[Mapping[str, Any]],
    tax_amount: float = 0,
    discount_amount: float = 0
) -> Dict[str, float]:
    """
    Invoice totals.

    Returns:
        Dict with subtotal, tax_amount, discount_amount and
        total_amount (subtotal + tax - discount)
    """
    subtotal = sum(item['quantity'] * item['price'] for item in items)
    return {
        'subtotal': subtotal,
        'tax_amount': tax_amount,
        'discount_amount': discount_amount,
        'total_amount': subtotal + tax_amount - discount_amount
    }


def is_overdue(due_date: DateLike, status: str, today: Optional[date] = None) -> bool:
    """Whether an open invoice is past its due date."""
    if status in CLOSED_STATUSES:
        return False
    today = today or date.today()
    return _to_date(due_date) < today


def days_until_due(due_date: DateLike, today: Optional[date] = None) -> int:
    """Days left until the due date; negative once overdue."""
    today = today or date.today()
    return (_to_date(due_date) - today).days


def generate_invoice_number(prefix: str = 'INV', today: Optional[date] = None) -> str:
    """Invoice number like INV-20240131-AB12."""
    today = today or date.today()
    return f"{prefix}-{today.strftime('%Y%m%d')}-{generate_random_string(4)}"
