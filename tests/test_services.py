"""
Unit tests for the Midtrans API services.

Services are exercised against a mocked HttpClient, so these tests
check the requests they build and the validation they apply.

Run with: pytest tests/test_services.py -v
"""

import re
from datetime import date, datetime, timedelta, timezone

import pytest

from models.errors import GatewayError, ValidationError
from models.result import GatewayResult
from services.card import CardService, get_card_type, is_valid_card_number
from services.core_api import CoreApiService, is_qris_expired, qris_expiry_time
from services.disbursement import DisbursementService, calculate_fee as disbursement_fee, format_gopay_phone
from services.identifiers import generate_order_id, generate_random_string
from services.invoice import (
    InvoiceService,
    calculate_totals,
    days_until_due,
    generate_invoice_number,
    is_overdue,
)
from services.payment_link import PaymentLinkService, generate_qr_code, validate_expiry
from services.payout import PayoutService, calculate_fee as payout_fee
from services.snap import SnapService

SANDBOX_API = 'https://api.sandbox.midtrans.com'
SANDBOX_APP = 'https://app.sandbox.midtrans.com'


def sent(mock_call):
    """(base_url, path, body) of the last call on a mocked verb."""
    args = mock_call.call_args.args
    return args[0], args[1], args[2] if len(args) > 2 else None


class TestIdentifiers:
    """Tests for id generation."""

    def test_order_id_format(self):
        order_id = generate_order_id('SNAP')

        assert re.fullmatch(r'SNAP-\d{13}-[A-Za-z0-9]{6}', order_id)

    def test_order_ids_unique(self):
        assert len({generate_order_id() for _ in range(50)}) == 50

    def test_random_string_length(self):
        assert len(generate_random_string(12)) == 12
        assert generate_random_string(12).isalnum()


class TestCoreApiService:
    """Tests for charges and transaction management."""

    async def test_charge_posts_built_payload(self, mock_http, transaction_data):
        service = CoreApiService(mock_http)

        await service.charge('bca_va', transaction_data)

        base_url, path, body = sent(mock_http.post)
        assert base_url == SANDBOX_API
        assert path == '/v2/charge'
        assert body['payment_type'] == 'bank_transfer'
        assert body['bank_transfer'] == {'bank': 'bca'}

    async def test_charge_uses_configured_callback(self, mock_http, transaction_data):
        service = CoreApiService(mock_http)

        await service.charge('gopay', transaction_data)

        _, _, body = sent(mock_http.post)
        assert body['gopay']['callback_url'] == 'https://shop.example.com/callback'

    async def test_charge_enriches_response(self, mock_http, transaction_data):
        mock_http.post.return_value = GatewayResult.success({
            'actions': [{'name': 'deeplink-redirect', 'url': 'shopeeid://pay'}]
        })
        service = CoreApiService(mock_http)

        result = await service.charge('shopeepay', transaction_data)

        assert result.data['deeplink'] == 'shopeeid://pay'

    async def test_charge_failure_passed_through(self, mock_http, transaction_data):
        error = GatewayError('Access denied', 401)
        mock_http.post.return_value = GatewayResult.failure(error)
        service = CoreApiService(mock_http)

        result = await service.charge('dana', transaction_data)

        assert result.error is error

    async def test_charge_validation_before_request(self, mock_http):
        service = CoreApiService(mock_http)

        with pytest.raises(ValidationError):
            await service.charge('gopay', {})

        mock_http.post.assert_not_called()

    async def test_charge_qris_expiry(self, mock_http, transaction_data):
        mock_http.post.return_value = GatewayResult.success({'qr_string': 'QR'})
        service = CoreApiService(mock_http)

        result = await service.charge_qris(transaction_data, expiry_minutes=30)

        _, _, body = sent(mock_http.post)
        assert body['custom_expiry'] == {'expiry_duration': 30, 'unit': 'minute'}
        assert result.data['expiry_duration_minutes'] == 30
        assert result.data['qr_image_url'].endswith('data=QR')
        assert 'expiry_time' in result.data

    @pytest.mark.parametrize('method_name,suffix', [
        ('get_status', 'status'),
        ('cancel', 'cancel'),
        ('approve', 'approve'),
        ('expire', 'expire'),
    ])
    async def test_transaction_management_paths(self, mock_http, method_name, suffix):
        service = CoreApiService(mock_http)

        await getattr(service, method_name)('ORDER-1')

        verb = mock_http.get if method_name == 'get_status' else mock_http.post
        assert sent(verb)[1] == f'/v2/ORDER-1/{suffix}'

    async def test_order_id_escaped_in_path(self, mock_http):
        """Test that an order ID cannot leave its /v2/ segment."""
        service = CoreApiService(mock_http)

        await service.cancel('x/../../v1/payouts/P1/approve?')

        assert sent(mock_http.post)[1] == '/v2/x%2F..%2F..%2Fv1%2Fpayouts%2FP1%2Fapprove%3F/cancel'

    async def test_dot_segment_order_id_rejected(self, mock_http):
        service = CoreApiService(mock_http)

        with pytest.raises(ValidationError, match="Invalid identifier"):
            await service.get_status('..')
        mock_http.get.assert_not_called()

    async def test_order_id_required(self, mock_http):
        service = CoreApiService(mock_http)

        with pytest.raises(ValidationError, match="Order ID is required"):
            await service.get_status('')

    async def test_refund(self, mock_http):
        service = CoreApiService(mock_http)

        await service.refund('ORDER-1', amount=5000, reason='Damaged')

        _, path, body = sent(mock_http.post)
        assert path == '/v2/ORDER-1/refund'
        assert body['amount'] == 5000
        assert body['reason'] == 'Damaged'
        assert len(body['refund_key']) == 10

    async def test_full_refund_omits_amount(self, mock_http):
        service = CoreApiService(mock_http)

        await service.refund('ORDER-1', refund_key='rk-1')

        _, _, body = sent(mock_http.post)
        assert body == {'refund_key': 'rk-1', 'reason': 'Refund requested'}

    async def test_capture(self, mock_http):
        service = CoreApiService(mock_http)

        await service.capture('trx-1', amount=10000)

        _, path, body = sent(mock_http.post)
        assert path == '/v2/capture'
        assert body == {'transaction_id': 'trx-1', 'transaction_details': {'gross_amount': 10000}}

    def test_qris_expiry_helpers(self):
        issued = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

        assert qris_expiry_time(issued) == issued + timedelta(minutes=15)
        assert not is_qris_expired(issued, now=issued + timedelta(minutes=10))
        assert is_qris_expired(issued, now=issued + timedelta(minutes=16))


class TestCardService:
    """Tests for card-specific calls."""

    async def test_card_token_uses_client_auth(self, mock_http):
        service = CardService(mock_http)

        await service.get_card_token({
            'card_number': '4811111111111114',
            'card_exp_month': '12',
            'card_exp_year': '2030',
            'card_cvv': '123'
        })

        _, path, body = sent(mock_http.post)
        assert path == '/v1/tokens'
        assert body['client_key'] == 'SB-Mid-client-XXXX'
        assert mock_http.post.call_args.kwargs['auth_type'] == 'client'

    async def test_card_token_requires_fields(self, mock_http):
        service = CardService(mock_http)

        with pytest.raises(ValidationError, match="card_cvv is required"):
            await service.get_card_token({
                'card_number': '4811111111111114',
                'card_exp_month': '12',
                'card_exp_year': '2030'
            })

    async def test_bin_info_validation(self, mock_http):
        service = CardService(mock_http)

        await service.get_bin_info('481111')
        assert sent(mock_http.get)[1] == '/v1/bins/481111'

        with pytest.raises(ValidationError, match="6-digit BIN"):
            await service.get_bin_info('48111a')

        with pytest.raises(ValidationError, match="6-digit BIN"):
            await service.get_bin_info(481111)

    async def test_delete_saved_card(self, mock_http):
        service = CardService(mock_http)

        await service.delete_saved_card('saved-1')

        assert mock_http.delete.call_args.args[1] == '/v1/card/saved-1'

    async def test_installment(self, mock_http, transaction_data):
        service = CardService(mock_http)
        transaction_data['card_token'] = 'tok-1'

        await service.charge_installment(transaction_data, {'bni': [3, 6]}, {'mandiri': [12]})

        _, _, body = sent(mock_http.post)
        assert body['credit_card']['installment'] == {
            'required': True,
            'terms': {'bni': [3, 6], 'mandiri': [12]}
        }

    async def test_recurring(self, mock_http, transaction_data):
        service = CardService(mock_http)
        transaction_data['saved_token_id'] = 'saved-1'

        await service.charge_recurring(transaction_data, interval=2)

        _, _, body = sent(mock_http.post)
        assert body['credit_card']['recurring'] == {
            'frequency': 'monthly',
            'interval': 2,
            'max_interval': 12
        }

    def test_luhn(self):
        assert is_valid_card_number('4811 1111 1111 1114')
        assert not is_valid_card_number('4811111111111115')
        assert not is_valid_card_number('')

    def test_card_type(self):
        assert get_card_type('4811111111111114') == 'visa'
        assert get_card_type('5211111111111117') == 'mastercard'
        assert get_card_type('371111111111114') == 'amex'
        assert get_card_type('9999') == 'unknown'


class TestSnapService:
    """Tests for Snap transactions."""

    async def test_create_transaction(self, mock_http, transaction_data):
        mock_http.post.return_value = GatewayResult.success({
            'token': 'snap-token',
            'redirect_url': 'https://app.sandbox.midtrans.com/snap/v2/vtweb/snap-token'
        })
        service = SnapService(mock_http)

        result = await service.create_transaction(transaction_data)

        base_url, path, body = sent(mock_http.post)
        assert base_url == SANDBOX_APP
        assert path == '/snap/v1/transactions'
        assert body['credit_card'] == {'secure': True, 'save_card': False}
        assert body['callbacks']['finish'] == 'https://example.com/finish'
        assert result.data['token'] == 'snap-token'
        assert result.data['response']['token'] == 'snap-token'

    async def test_order_id_generated(self, mock_http, transaction_data):
        service = SnapService(mock_http)
        del transaction_data['transaction_details']['order_id']

        await service.create_transaction(transaction_data)

        _, _, body = sent(mock_http.post)
        assert body['transaction_details']['order_id'].startswith('SNAP-')
        assert 'order_id' not in transaction_data['transaction_details']

    async def test_contact_required(self, mock_http, transaction_data):
        service = SnapService(mock_http)
        transaction_data['customer_details'] = {'first_name': 'Budi'}

        with pytest.raises(ValidationError, match="email or phone"):
            await service.create_transaction(transaction_data)

    @pytest.mark.parametrize('section', ['transaction_details', 'customer_details'])
    async def test_non_object_sections_rejected(self, mock_http, transaction_data, section):
        service = SnapService(mock_http)
        transaction_data[section] = 'oops'

        with pytest.raises(ValidationError, match=f"{section} must be an object"):
            await service.create_transaction(transaction_data)
        mock_http.post.assert_not_called()

    async def test_simple_transaction_wraps_single_item(self, mock_http):
        service = SnapService(mock_http)

        await service.create_simple_transaction(
            'ORDER-9', 25000, {'email': 'a@example.com'}, {'id': 'SKU-1', 'price': 25000}
        )

        _, _, body = sent(mock_http.post)
        assert body['item_details'] == [{'id': 'SKU-1', 'price': 25000}]

    def test_redirect_url(self, mock_http):
        service = SnapService(mock_http)

        assert service.get_redirect_url('abc') == f'{SANDBOX_APP}/snap/v2/vtweb/abc'


class TestPaymentLinkService:
    """Tests for payment links."""

    async def test_create_defaults(self, mock_http):
        service = PaymentLinkService(mock_http)

        await service.create({'transaction_details': {'gross_amount': 10000}})

        _, path, body = sent(mock_http.post)
        assert path == '/v1/payment-links'
        assert body['transaction_details']['order_id'].startswith('PLINK-')
        assert body['usage_limit'] == 1
        assert body['expiry']['duration'] == 24
        assert body['expiry']['unit'] == 'hours'
        assert 'gopay' in body['enabled_payments']

    async def test_amount_must_be_positive(self, mock_http):
        service = PaymentLinkService(mock_http)

        with pytest.raises(ValidationError, match="positive number"):
            await service.create({'transaction_details': {'gross_amount': -5}})

    async def test_recurring_unlimited_usage(self, mock_http):
        service = PaymentLinkService(mock_http)

        await service.create_recurring({'transaction_details': {'gross_amount': 10000}}, frequency='weekly')

        _, _, body = sent(mock_http.post)
        assert body['usage_limit'] is None
        assert body['recurring']['frequency'] == 'weekly'

    async def test_update_uses_patch(self, mock_http):
        service = PaymentLinkService(mock_http)

        await service.update('link-1', {'usage_limit': 5})

        assert sent(mock_http.patch)[1:] == ('/v1/payment-links/link-1', {'usage_limit': 5})

    async def test_listing_filters(self, mock_http):
        service = PaymentLinkService(mock_http)

        await service.get_all(status='active')

        params = mock_http.get.call_args.args[2]
        assert params == {'page': 1, 'per_page': 10, 'status': 'active'}

    def test_validate_expiry(self):
        assert validate_expiry({'duration': 2, 'unit': 'days'}) == (True, 'Expiry configuration is valid')
        assert validate_expiry({'duration': 31, 'unit': 'days'}) == (False, 'Maximum days allowed is 30')
        assert validate_expiry({'duration': 1, 'unit': 'weeks'})[0] is False
        assert validate_expiry({'unit': 'hours'})[0] is False

    def test_qr_code(self):
        assert generate_qr_code(None) is None
        assert generate_qr_code('https://pay.example/x').startswith('https://api.qrserver.com/')


def bank_payout(**overrides):
    payout = {
        'beneficiary_name': 'Siti',
        'beneficiary_account': '1234567890',
        'beneficiary_bank': 'bca',
        'amount': 150000
    }
    payout.update(overrides)
    return payout


class TestDisbursementService:
    """Tests for disbursements."""

    async def test_bank_disbursement(self, mock_http):
        service = DisbursementService(mock_http)

        await service.create_bank_disbursement({'payouts': [bank_payout()]})

        _, path, body = sent(mock_http.post)
        assert path == '/v1/disbursements'
        assert body['external_id'].startswith('DISB-')
        assert 'timestamp' in body
        assert body['payouts'][0]['notes'] == 'Disbursement payment'
        assert len(body['payouts'][0]['external_id']) == 12

    async def test_payout_errors_name_index(self, mock_http):
        service = DisbursementService(mock_http)

        with pytest.raises(ValidationError, match="Payout at index 1 is missing required fields"):
            await service.create_bank_disbursement({
                'payouts': [bank_payout(), bank_payout(beneficiary_bank=None)]
            })

        with pytest.raises(ValidationError, match="Payout at index 0 must have a positive amount"):
            await service.create_bank_disbursement({'payouts': [bank_payout(amount='100')]})

        with pytest.raises(ValidationError, match="non-empty array"):
            await service.create_bank_disbursement({'payouts': 'none'})

    async def test_gopay_disbursement(self, mock_http):
        service = DisbursementService(mock_http)

        await service.create_simple_gopay_disbursement('EXT-1', 'Siti', '081234567890', 50000)

        _, _, body = sent(mock_http.post)
        assert body['external_id'] == 'EXT-1'
        assert body['payouts'][0]['beneficiary_bank'] == 'gopay'

    async def test_gopay_phone_validated(self, mock_http):
        service = DisbursementService(mock_http)

        with pytest.raises(ValidationError, match="invalid phone number"):
            await service.create_simple_gopay_disbursement('EXT-1', 'Siti', '12345', 50000)

    async def test_reject(self, mock_http):
        service = DisbursementService(mock_http)

        await service.reject('disb-1')

        _, path, body = sent(mock_http.post)
        assert path == '/v1/disbursements/disb-1/reject'
        assert body['reason'] == 'Rejected by system'

    def test_helpers(self):
        assert format_gopay_phone('0812-3456-7890') == '6281234567890'
        assert format_gopay_phone('+62 812 3456') == '628123456'
        assert format_gopay_phone('81234') == '6281234'
        assert disbursement_fee('gopay') == 2500
        assert disbursement_fee('bank') == 4000


class TestPayoutService:
    """Tests for Iris payouts."""

    async def test_amount_sent_as_string(self, mock_http):
        service = PayoutService(mock_http)

        await service.create({'payouts': [bank_payout(amount=150000.0)]})

        base_url, path, body = sent(mock_http.post)
        assert base_url == SANDBOX_APP
        assert path == '/iris/api/v1/payouts'
        assert body['payouts'][0]['amount'] == '150000'
        assert 'beneficiary_email' not in body['payouts'][0]

    async def test_amount_limits(self, mock_http):
        service = PayoutService(mock_http)

        with pytest.raises(ValidationError, match="minimum amount is Rp 10.000"):
            await service.create({'payouts': [bank_payout(amount=9999)]})

        with pytest.raises(ValidationError, match="maximum amount is Rp 500.000.000"):
            await service.create({'payouts': [bank_payout(amount=500000001)]})

    async def test_bulk(self, mock_http):
        service = PayoutService(mock_http)

        await service.create_bulk([
            {'name': 'A', 'account': '1', 'bank': 'bni', 'amount': 20000},
            {'name': 'B', 'account': '2', 'bank': 'bri', 'amount': 30000, 'notes': 'Bonus'}
        ])

        _, _, body = sent(mock_http.post)
        assert [p['notes'] for p in body['payouts']] == ['Bulk payout', 'Bonus']

    async def test_approve_requires_otp(self, mock_http):
        service = PayoutService(mock_http)

        with pytest.raises(ValidationError, match="OTP is required"):
            await service.approve(['ref-1'], '')

        with pytest.raises(ValidationError, match="Reference numbers array"):
            await service.approve([], '123456')

    async def test_balance_for_bank(self, mock_http):
        service = PayoutService(mock_http)

        await service.get_balance('bca')

        assert mock_http.get.call_args.args[1:] == ('/iris/api/v1/balance', {'bank': 'bca'})

    async def test_beneficiary_alias(self, mock_http):
        service = PayoutService(mock_http)
        beneficiary = {'name': 'Siti', 'account': '123', 'bank': 'bca', 'alias_name': 'siti-bca'}

        with pytest.raises(ValidationError, match="Alias name can only contain"):
            await service.create_beneficiary(beneficiary)

        with pytest.raises(ValidationError, match="alias_name is required for beneficiary"):
            await service.create_beneficiary({'name': 'Siti', 'account': '123', 'bank': 'bca'})

    def test_fee(self):
        assert payout_fee('CIMB') == 5000
        assert payout_fee('unknown') == 2500


def invoice_data(**details):
    invoice_details = {
        'invoice_number': 'INV-001',
        'due_date': '2030-01-31',
        'invoice_items': [
            {'name': 'Widget', 'quantity': 2, 'price': 50000},
            {'name': 'Gadget', 'quantity': 1, 'price': 25000}
        ]
    }
    invoice_details.update(details)
    return {
        'invoice_details': invoice_details,
        'customer_details': {'email': 'budi@example.com'}
    }


class TestInvoiceService:
    """Tests for invoices."""

    async def test_create_computes_totals(self, mock_http):
        service = InvoiceService(mock_http)

        await service.create(invoice_data(tax_amount=12500, discount_amount=2500))

        _, path, body = sent(mock_http.post)
        details = body['invoice_details']
        assert path == '/v1/invoices'
        assert details['total_amount'] == 135000
        assert details['currency'] == 'IDR'
        assert details['invoice_date'] == date.today().isoformat()
        assert body['external_id'].startswith('INV-')

    async def test_explicit_total_kept(self, mock_http):
        service = InvoiceService(mock_http)

        await service.create(invoice_data(total_amount=99))

        assert sent(mock_http.post)[2]['invoice_details']['total_amount'] == 99

    async def test_item_validation(self, mock_http):
        service = InvoiceService(mock_http)
        bad = invoice_data(invoice_items=[{'name': 'Widget', 'quantity': 2, 'price': -1}])

        with pytest.raises(ValidationError, match="index 0 must have a positive price"):
            await service.create(bad)

    async def test_customer_contact_required(self, mock_http):
        service = InvoiceService(mock_http)
        data = invoice_data()
        data['customer_details'] = {'first_name': 'Budi'}

        with pytest.raises(ValidationError, match="email or phone"):
            await service.create(data)

    async def test_add_payment(self, mock_http):
        service = InvoiceService(mock_http)

        with pytest.raises(ValidationError, match="payment_method is required for payment"):
            await service.add_payment('inv-1', {'amount': 1000})

        await service.add_payment('inv-1', {'amount': 1000, 'payment_method': 'gopay'})
        assert sent(mock_http.post)[1] == '/v1/invoices/inv-1/payments'

    def test_calculate_totals(self):
        totals = calculate_totals([{'quantity': 3, 'price': 1000}], tax_amount=300, discount_amount=100)

        assert totals == {
            'subtotal': 3000,
            'tax_amount': 300,
            'discount_amount': 100,
            'total_amount': 3200
        }

    def test_overdue(self):
        today = date(2024, 6, 15)

        assert is_overdue('2024-06-14', 'pending', today=today)
        assert not is_overdue('2024-06-14', 'paid', today=today)
        assert not is_overdue('2024-06-15', 'pending', today=today)
        assert days_until_due('2024-06-20', today=today) == 5
        assert days_until_due('2024-06-10', today=today) == -5

    def test_invoice_number(self):
        number = generate_invoice_number('BILL', today=date(2024, 1, 31))

        assert re.fullmatch(r'BILL-20240131-[A-Za-z0-9]{4}', number)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
