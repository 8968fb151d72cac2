"""Shared fixtures for the Midtrans gateway tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from config import MidtransConfig
from models.result import GatewayResult

SERVER_KEY = 'SB-Mid-server-XXXX'
CLIENT_KEY = 'SB-Mid-client-XXXX'


@pytest.fixture
def midtrans_config():
    """Sandbox config with dummy keys."""
    return MidtransConfig(
        server_key=SERVER_KEY,
        client_key=CLIENT_KEY,
        callback_url='https://shop.example.com/callback'
    )


@pytest.fixture
def production_config():
    return MidtransConfig(
        server_key='Mid-server-XXXX',
        client_key='Mid-client-XXXX',
        environment='production'
    )


@pytest.fixture
def mock_http(midtrans_config):
    """HttpClient stand-in whose calls all succeed with an empty body."""
    http = MagicMock()
    http.config = midtrans_config
    for verb in ('get', 'post', 'put', 'patch', 'delete', 'request'):
        setattr(http, verb, AsyncMock(return_value=GatewayResult.success({})))
    return http


@pytest.fixture
def transaction_data():
    return {
        'transaction_details': {
            'order_id': 'ORDER-123',
            'gross_amount': 10000
        },
        'customer_details': {
            'first_name': 'Budi',
            'email': 'budi@example.com',
            'phone': '081234567890'
        }
    }
