"""
Payout (Iris) service.

Iris takes amounts as strings and requires an OTP to approve a batch.
"""

import re
from typing import Any, List, Mapping, Optional

from models.errors import ValidationError
from models.result import GatewayResult
from .base import BaseService, drop_none, require, require_fields, validate_payout_items, segment

IRIS_PREFIX = '/iris/api/v1'

MIN_PAYOUT_AMOUNT = 10000
MAX_PAYOUT_AMOUNT = 500000000

SUPPORTED_BANKS = [
    'mandiri', 'bri', 'bca', 'bni', 'cimb', 'danamon', 'permata',
    'btn', 'maybank', 'panin', 'ocbc', 'mega', 'sinarmas', 'bsi',
    'hsbc', 'standard_chartered', 'uob', 'muamalat', 'bjb'
]

PAYOUT_FEES = {
    'bca': 2500,
    'mandiri': 2500,
    'bni': 2500,
    'bri': 2500,
    'cimb': 5000,
    'danamon': 5000,
    'permata': 5000
}
DEFAULT_PAYOUT_FEE = 2500

ALIAS_NAME_REGEX = re.compile(r'^[a-zA-Z0-9_]+$')


def _amount_string(amount: float) -> str:
    """Render an amount the way Iris expects it (10000.0 -> '10000')."""
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    return str(amount)


class PayoutService(BaseService):
    """Iris payouts and beneficiaries."""

    BASE_URL_KEY = 'payout'

    async def create(self, payout_data: Mapping[str, Any]) -> GatewayResult:
        """
        Create a payout batch.

        Every payout needs beneficiary_name, beneficiary_account,
        beneficiary_bank and an amount between Rp 10.000 and
        Rp 500.000.000.

        Raises:
            ValidationError: Naming the first bad payout
        """
        require_fields(payout_data, ('payouts',))
        validate_payout_items(
            payout_data['payouts'],
            ('beneficiary_name', 'beneficiary_account', 'beneficiary_bank', 'amount'),
            min_amount=MIN_PAYOUT_AMOUNT,
            max_amount=MAX_PAYOUT_AMOUNT
        )

        payload = dict(payout_data)
        payload['payouts'] = [
            drop_none({
                'beneficiary_name': payout['beneficiary_name'],
                'beneficiary_account': payout['beneficiary_account'],
                'beneficiary_bank': payout['beneficiary_bank'],
                'beneficiary_email': payout.get('beneficiary_email'),
                'amount': _amount_string(payout['amount']),
                'notes': payout.get('notes') or 'Payout payment'
            })
            for payout in payout_data['payouts']
        ]

        return await self.http.post(self.base_url, f'{IRIS_PREFIX}/payouts', payload)

    async def create_simple(
        self,
        recipient: Mapping[str, Any],
        amount: float,
        notes: str = 'Payout payment'
    ) -> GatewayResult:
        return await self.create({
            'payouts': [{
                'beneficiary_name': recipient.get('name'),
                'beneficiary_account': recipient.get('account'),
                'beneficiary_bank': recipient.get('bank'),
                'beneficiary_email': recipient.get('email'),
                'amount': amount,
                'notes': notes
            }]
        })

    async def create_bulk(
        self,
        recipients: List[Mapping[str, Any]],
        notes: str = 'Bulk payout'
    ) -> GatewayResult:
        """
        One batch for many recipients.

        Args:
            recipients: Items with name, account, bank, amount and
                optional email/notes
            notes: Notes used where a recipient has none
        """
        return await self.create({
            'payouts': [
                {
                    'beneficiary_name': recipient.get('name'),
                    'beneficiary_account': recipient.get('account'),
                    'beneficiary_bank': recipient.get('bank'),
                    'beneficiary_email': recipient.get('email'),
                    'amount': recipient.get('amount'),
                    'notes': recipient.get('notes') or notes
                }
                for recipient in recipients
            ]
        })

    async def get(self, reference_no: str) -> GatewayResult:
        require(reference_no, 'Reference number is required')
        return await self.http.get(self.base_url, f'{IRIS_PREFIX}/payouts/{segment(reference_no)}')

    async def get_history(
        self,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
        page: int = 1,
        limit: int = 25
    ) -> GatewayResult:
        params = {
            'from_date': from_date,
            'to_date': to_date,
            'page': page,
            'limit': limit
        }
        return await self.http.get(self.base_url, f'{IRIS_PREFIX}/payouts', params)

    async def approve(self, reference_nos: List[str], otp: str) -> GatewayResult:
        """Approve payouts; Iris requires the approver's OTP."""
        if not isinstance(reference_nos, list) or not reference_nos:
            raise ValidationError('Reference numbers array is required')
        require(otp, 'OTP is required for payout approval')

        payload = {'reference_nos': reference_nos, 'otp': otp}
        return await self.http.post(self.base_url, f'{IRIS_PREFIX}/payouts/approve', payload)

    async def reject(self, reference_nos: List[str], reason: str) -> GatewayResult:
        if not isinstance(reference_nos, list) or not reference_nos:
            raise ValidationError('Reference numbers array is required')
        require(reason, 'Reject reason is required')

        payload = {'reference_nos': reference_nos, 'reject_reason': reason}
        return await self.http.post(self.base_url, f'{IRIS_PREFIX}/payouts/reject', payload)

    async def get_balance(self, bank: Optional[str] = None) -> GatewayResult:
        """Iris balance, optionally for a single bank."""
        return await self.http.get(self.base_url, f'{IRIS_PREFIX}/balance', {'bank': bank})

    async def get_beneficiaries(self) -> GatewayResult:
        return await self.http.get(self.base_url, f'{IRIS_PREFIX}/beneficiaries')

    async def create_beneficiary(self, beneficiary_data: Mapping[str, Any]) -> GatewayResult:
        require_fields(
            beneficiary_data,
            ('name', 'account', 'bank', 'alias_name'),
            ' for beneficiary'
        )
        if not ALIAS_NAME_REGEX.match(str(beneficiary_data['alias_name'])):
            raise ValidationError('Alias name can only contain letters, numbers, and underscores')

        return await self.http.post(self.base_url, f'{IRIS_PREFIX}/beneficiaries', dict(beneficiary_data))

    async def update_beneficiary(self, alias_name: str, update_data: Mapping[str, Any]) -> GatewayResult:
        require(alias_name, 'Beneficiary alias name is required')
        return await self.http.patch(
            self.base_url,
            f'{IRIS_PREFIX}/beneficiaries/{segment(alias_name)}',
            dict(update_data)
        )

    async def delete_beneficiary(self, alias_name: str) -> GatewayResult:
        require(alias_name, 'Beneficiary alias name is required')
        return await self.http.delete(self.base_url, f'{IRIS_PREFIX}/beneficiaries/{segment(alias_name)}')

    async def validate_bank_account(self, bank: str, account: str) -> GatewayResult:
        require(bank and account, 'Bank code and account number are required')
        return await self.http.get(
            self.base_url,
            f'{IRIS_PREFIX}/account_validation',
            {'bank': bank, 'account': account}
        )

    async def get_available_banks(self) -> GatewayResult:
        return await self.http.get(self.base_url, f'{IRIS_PREFIX}/beneficiary_banks')

    async def get_top_up_info(self) -> GatewayResult:
        return await self.http.get(self.base_url, f'{IRIS_PREFIX}/balance/topup')


def is_bank_supported(bank_code: str) -> bool:
    return bank_code.lower() in SUPPORTED_BANKS


def calculate_fee(bank: str) -> int:
    """Flat transfer fee for the destination bank."""
    return PAYOUT_FEES.get(bank.lower(), DEFAULT_PAYOUT_FEE)
