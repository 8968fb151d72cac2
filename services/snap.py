"""
Snap checkout service.

Creates hosted-checkout transactions and returns the token and
redirect URL the frontend needs.
"""

from typing import Any, Dict, List, Mapping, Optional, Union

from models.errors import ValidationError
from models.result import GatewayResult
from .base import BaseService, clone, require_fields
from .identifiers import generate_order_id


class SnapService(BaseService):
    """Snap transactions."""

    BASE_URL_KEY = 'snap'

    async def create_transaction(self, transaction_data: Mapping[str, Any]) -> GatewayResult:
        """
        Create a Snap transaction.

        Args:
            transaction_data: transaction_details, customer_details and
                any other Snap options

        Returns:
            GatewayResult whose data is
            {'token': ..., 'redirect_url': ..., 'response': <raw>}

        Raises:
            ValidationError: If required details are missing
        """
        self.validate_transaction_data(transaction_data)
        payload = self.prepare_transaction_payload(transaction_data)

        result = await self.http.post(self.base_url, '/snap/v1/transactions', payload)
        return result.map(lambda response: {
            'token': response.get('token') if isinstance(response, dict) else None,
            'redirect_url': response.get('redirect_url') if isinstance(response, dict) else None,
            'response': response
        })

    async def create_simple_transaction(
        self,
        order_id: str,
        amount: float,
        customer: Mapping[str, Any],
        items: Optional[Union[Mapping[str, Any], List[Mapping[str, Any]]]] = None
    ) -> GatewayResult:
        transaction_data: Dict[str, Any] = {
            'transaction_details': {
                'order_id': order_id,
                'gross_amount': amount
            },
            'customer_details': dict(customer)
        }

        if items:
            transaction_data['item_details'] = list(items) if isinstance(items, list) else [items]

        return await self.create_transaction(transaction_data)

    def get_redirect_url(self, snap_token: str) -> str:
        """Hosted payment page URL for a Snap token."""
        return f"{self.config.base_urls.snap}/snap/v2/vtweb/{snap_token}"

    @staticmethod
    def validate_transaction_data(transaction_data: Mapping[str, Any]) -> None:
        require_fields(transaction_data, ('transaction_details', 'customer_details'))

        transaction_details = transaction_data['transaction_details']
        if not isinstance(transaction_details, Mapping):
            raise ValidationError('transaction_details must be an object')
        if not transaction_details.get('gross_amount'):
            raise ValidationError('gross_amount is required in transaction_details')

        customer_details = transaction_data['customer_details']
        if not isinstance(customer_details, Mapping):
            raise ValidationError('customer_details must be an object')
        if not customer_details.get('email') and not customer_details.get('phone'):
            raise ValidationError('At least email or phone is required in customer_details')

    def prepare_transaction_payload(self, transaction_data: Mapping[str, Any]) -> Dict[str, Any]:
        payload = clone(transaction_data)

        if not payload['transaction_details'].get('order_id'):
            payload['transaction_details']['order_id'] = generate_order_id('SNAP')

        if not payload.get('credit_card'):
            payload['credit_card'] = {
                'secure': True,
                'save_card': False
            }

        if not payload.get('callbacks'):
            payload['callbacks'] = {
                'finish': self.config.finish_url,
                'error': self.config.error_url,
                'pending': self.config.pending_url
            }

        return payload
