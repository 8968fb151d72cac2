"""Generators for order ids, refund keys and similar references."""

import secrets
import string
import time

ALPHABET = string.ascii_letters + string.digits


def generate_random_string(length: int = 16) -> str:
    """Random alphanumeric string."""
    return ''.join(secrets.choice(ALPHABET) for _ in range(length))


def generate_order_id(prefix: str = 'ORDER') -> str:
    """
    Generate an order id of the form PREFIX-<epoch millis>-<6 chars>.

    Args:
        prefix: Leading label, e.g. 'SNAP' or 'INV'
    """
    timestamp = int(time.time() * 1000)
    return f"{prefix}-{timestamp}-{generate_random_string(6)}"
