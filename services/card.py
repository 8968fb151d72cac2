"""
Card payment service.

Card tokens, saved cards, BIN lookups and the installment/recurring
variants of the credit_card charge. Plain charges go through
CoreApiService.charge('credit_card', ...).
"""

import re
from typing import Any, Dict, Mapping, Optional

from models.payment_method import build_charge_payload
from models.result import GatewayResult
from .base import BaseService, require, require_fields, segment

CARD_METHODS = ['credit_card', 'credit_card_3ds', 'installment', 'recurring']

CARD_TYPE_PATTERNS = (
    ('visa', re.compile(r'^4')),
    ('mastercard', re.compile(r'^5[1-5]')),
    ('amex', re.compile(r'^3[47]')),
    ('discover', re.compile(r'^6(?:011|5)')),
)


class CardService(BaseService):
    """Card-specific Core API calls."""

    BASE_URL_KEY = 'api'

    async def get_card_token(self, card_data: Mapping[str, Any]) -> GatewayResult:
        """
        Tokenize card details.

        Authenticated with the client key, as the browser-side flow is.
        """
        require_fields(card_data, ('card_number', 'card_exp_month', 'card_exp_year', 'card_cvv'))

        payload = {
            'card_number': card_data['card_number'],
            'card_exp_month': card_data['card_exp_month'],
            'card_exp_year': card_data['card_exp_year'],
            'card_cvv': card_data['card_cvv'],
            'client_key': self.config.client_key
        }
        return await self.http.post(self.base_url, '/v1/tokens', payload, auth_type='client')

    async def get_saved_cards(self, customer_id: str) -> GatewayResult:
        require(customer_id, 'Customer ID is required')
        return await self.http.get(self.base_url, f'/v1/card/list/{segment(customer_id)}')

    async def delete_saved_card(self, saved_token_id: str) -> GatewayResult:
        require(saved_token_id, 'Saved token ID is required')
        return await self.http.delete(self.base_url, f'/v1/card/{segment(saved_token_id)}')

    async def get_bin_info(self, bin_number: str) -> GatewayResult:
        """Installment and issuer info for the first six card digits."""
        require(
            isinstance(bin_number, str) and len(bin_number) == 6 and bin_number.isdigit(),
            'Valid 6-digit BIN number is required'
        )
        return await self.http.get(self.base_url, f'/v1/bins/{segment(bin_number)}')

    async def charge_installment(
        self,
        data: Mapping[str, Any],
        terms: Optional[Mapping[str, Any]] = None,
        bank_terms: Optional[Mapping[str, Any]] = None
    ) -> GatewayResult:
        """
        Credit card charge paid in installments.

        Args:
            data: Same data as a credit_card charge
            terms: Installment terms, e.g. {'bni': [3, 6, 12]}
            bank_terms: Extra per-bank terms merged over terms
        """
        payload = build_charge_payload('credit_card', data)

        merged_terms: Dict[str, Any] = dict(terms or {})
        merged_terms.update(bank_terms or {})
        payload['credit_card']['installment'] = {
            'required': True,
            'terms': merged_terms
        }

        return await self.http.post(self.base_url, '/v2/charge', payload)

    async def charge_recurring(
        self,
        data: Mapping[str, Any],
        frequency: str = 'monthly',
        interval: int = 1,
        max_interval: int = 12
    ) -> GatewayResult:
        """Credit card charge that sets up a recurring schedule."""
        payload = build_charge_payload('credit_card', data)
        payload['credit_card']['recurring'] = {
            'frequency': frequency,
            'interval': interval,
            'max_interval': max_interval
        }

        return await self.http.post(self.base_url, '/v2/charge', payload)


def is_valid_card_number(card_number: str) -> bool:
    """Luhn checksum over the digits of card_number."""
    digits = re.sub(r'\D', '', card_number)
    if not digits:
        return False

    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit

    return total % 10 == 0


def get_card_type(card_number: str) -> str:
    """Card network guessed from the number prefix."""
    digits = re.sub(r'\D', '', card_number)
    for card_type, pattern in CARD_TYPE_PATTERNS:
        if pattern.match(digits):
            return card_type
    return 'unknown'
