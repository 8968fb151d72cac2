"""
Disbursement service.

Sends money out to bank accounts or GoPay wallets in batches.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from models.errors import ValidationError
from models.result import GatewayResult
from .base import BaseService, clone, drop_none, require, require_fields, validate_payout_items, segment
from .identifiers import generate_order_id, generate_random_string

SUPPORTED_BANKS = [
    'mandiri', 'bri', 'bca', 'bni', 'cimb', 'danamon', 'permata',
    'bsi', 'btn', 'maybank', 'panin', 'ocbc', 'mega', 'sinarmas'
]

# Fixed fee per transfer (IDR)
DISBURSEMENT_FEES = {
    'bank': 4000,
    'gopay': 2500
}

GOPAY_PHONE_REGEX = re.compile(r'^(\+62|62|0)8[1-9][0-9]{6,}$')


class DisbursementService(BaseService):
    """Bank and GoPay disbursements."""

    BASE_URL_KEY = 'disbursement'

    async def create_bank_disbursement(self, disbursement_data: Mapping[str, Any]) -> GatewayResult:
        """
        Disburse to bank accounts.

        Each payout needs beneficiary_name, beneficiary_account,
        beneficiary_bank and a positive amount.
        """
        require_fields(disbursement_data, ('payouts',))
        validate_payout_items(
            disbursement_data['payouts'],
            ('beneficiary_name', 'beneficiary_account', 'beneficiary_bank', 'amount')
        )

        payload = self._prepare(disbursement_data, 'DISB')
        payload['payouts'] = [
            drop_none({
                'beneficiary_name': payout['beneficiary_name'],
                'beneficiary_account': payout['beneficiary_account'],
                'beneficiary_bank': payout['beneficiary_bank'],
                'beneficiary_email': payout.get('beneficiary_email'),
                'amount': payout['amount'],
                'notes': payout.get('notes') or 'Disbursement payment',
                'external_id': payout.get('external_id') or generate_random_string(12)
            })
            for payout in disbursement_data['payouts']
        ]

        return await self.http.post(self.base_url, '/v1/disbursements', payload)

    async def create_gopay_disbursement(self, disbursement_data: Mapping[str, Any]) -> GatewayResult:
        """
        Disburse to GoPay wallets.

        beneficiary_account must be an Indonesian mobile number.
        """
        require_fields(disbursement_data, ('payouts',))
        validate_payout_items(
            disbursement_data['payouts'],
            ('beneficiary_name', 'beneficiary_account', 'amount')
        )

        for index, payout in enumerate(disbursement_data['payouts']):
            if not GOPAY_PHONE_REGEX.match(str(payout['beneficiary_account'])):
                raise ValidationError(f"Payout at index {index} has invalid phone number format")

        payload = self._prepare(disbursement_data, 'GOPAY-DISB')
        payload['payouts'] = [
            {
                'beneficiary_name': payout['beneficiary_name'],
                'beneficiary_account': payout['beneficiary_account'],
                'beneficiary_bank': 'gopay',
                'amount': payout['amount'],
                'notes': payout.get('notes') or 'GoPay disbursement',
                'external_id': payout.get('external_id') or generate_random_string(12)
            }
            for payout in disbursement_data['payouts']
        ]

        return await self.http.post(self.base_url, '/v1/disbursements', payload)

    async def create_simple_bank_disbursement(
        self,
        external_id: str,
        recipient: Mapping[str, Any],
        amount: float,
        notes: str = 'Payment'
    ) -> GatewayResult:
        """
        Single bank transfer.

        Args:
            external_id: Caller reference for the batch
            recipient: {'name', 'account', 'bank', 'email'}
            amount: Amount in IDR
            notes: Transfer notes
        """
        return await self.create_bank_disbursement({
            'external_id': external_id,
            'payouts': [{
                'beneficiary_name': recipient.get('name'),
                'beneficiary_account': recipient.get('account'),
                'beneficiary_bank': recipient.get('bank'),
                'beneficiary_email': recipient.get('email'),
                'amount': amount,
                'notes': notes
            }]
        })

    async def create_simple_gopay_disbursement(
        self,
        external_id: str,
        recipient_name: str,
        phone_number: str,
        amount: float,
        notes: str = 'GoPay payment'
    ) -> GatewayResult:
        return await self.create_gopay_disbursement({
            'external_id': external_id,
            'payouts': [{
                'beneficiary_name': recipient_name,
                'beneficiary_account': phone_number,
                'amount': amount,
                'notes': notes
            }]
        })

    async def get(self, disbursement_id: str) -> GatewayResult:
        require(disbursement_id, 'Disbursement ID is required')
        return await self.http.get(self.base_url, f'/v1/disbursements/{segment(disbursement_id)}')

    async def get_all(self, **filters: Any) -> GatewayResult:
        params = self.page_params(
            filters,
            ['status', 'created_at_start', 'created_at_end', 'external_id']
        )
        return await self.http.get(self.base_url, '/v1/disbursements', params)

    async def approve(self, disbursement_id: str, notes: Optional[str] = None) -> GatewayResult:
        require(disbursement_id, 'Disbursement ID is required')
        payload = {
            'action': 'approve',
            'notes': notes or 'Disbursement approved'
        }
        return await self.http.post(self.base_url, f'/v1/disbursements/{segment(disbursement_id)}/approve', payload)

    async def reject(
        self,
        disbursement_id: str,
        notes: Optional[str] = None,
        reason: Optional[str] = None
    ) -> GatewayResult:
        require(disbursement_id, 'Disbursement ID is required')
        payload = {
            'action': 'reject',
            'notes': notes or 'Disbursement rejected',
            'reason': reason or 'Rejected by system'
        }
        return await self.http.post(self.base_url, f'/v1/disbursements/{segment(disbursement_id)}/reject', payload)

    async def get_available_banks(self) -> GatewayResult:
        return await self.http.get(self.base_url, '/v1/account_validation/banks')

    async def validate_bank_account(self, bank: str, account: str) -> GatewayResult:
        require(bank and account, 'Bank code and account number are required')
        return await self.http.get(
            self.base_url,
            '/v1/account_validation',
            {'bank': bank, 'account': account}
        )

    async def get_balance(self) -> GatewayResult:
        return await self.http.get(self.base_url, '/v1/balance')

    @staticmethod
    def _prepare(disbursement_data: Mapping[str, Any], prefix: str) -> Dict[str, Any]:
        payload = clone(disbursement_data)
        if not payload.get('external_id'):
            payload['external_id'] = generate_order_id(prefix)
        if not payload.get('timestamp'):
            payload['timestamp'] = datetime.now(timezone.utc).isoformat()
        return payload


def is_bank_supported(bank_code: str) -> bool:
    return bank_code.lower() in SUPPORTED_BANKS


def format_gopay_phone(phone_number: str) -> str:
    """Normalize a phone number to the 62xxxxxxxx form."""
    formatted = re.sub(r'\D', '', phone_number)

    if formatted.startswith('0'):
        formatted = '62' + formatted[1:]
    elif not formatted.startswith('62'):
        formatted = '62' + formatted

    return formatted


def calculate_fee(disbursement_type: str = 'bank') -> int:
    return DISBURSEMENT_FEES.get(disbursement_type.lower(), DISBURSEMENT_FEES['bank'])
