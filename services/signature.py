"""
Notification signature verification.

Midtrans signs every notification with
SHA512(order_id + status_code + gross_amount + server_key), so a
receiver can authenticate it without calling back to the gateway.
"""

import hashlib
import hmac
import logging
from typing import Any, Mapping, Union

from config import MidtransConfig
from models.notification import SIGNED_FIELDS, Notification

logger = logging.getLogger(__name__)


def compute_signature(
    order_id: str,
    status_code: str,
    gross_amount: str,
    server_key: str
) -> str:
    """
    Compute the notification signature.

    The four values are concatenated as-is, with no separator.
    gross_amount must be the exact string the gateway sent ("10000.00").

    Returns:
        Lowercase hex SHA-512 digest
    """
    signature_string = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(signature_string.encode('utf-8')).hexdigest()


class SignatureVerifier:
    """Validates inbound notifications against the configured server key."""

    def __init__(self, config: MidtransConfig):
        self.config = config

    def compute(self, order_id: str, status_code: str, gross_amount: str) -> str:
        """Signature for the given fields using the configured server key."""
        return compute_signature(order_id, status_code, gross_amount, self.config.server_key)

    def validate(self, notification: Union[Mapping[str, Any], Notification]) -> bool:
        """
        Check a notification's signature_key.

        Fails closed: a missing, empty or non-string signed field makes
        the notification invalid rather than raising.

        Args:
            notification: Decoded notification body or Notification

        Returns:
            True if the signature matches
        """
        values = {name: notification.get(name) for name in SIGNED_FIELDS}

        if not all(isinstance(value, str) and value for value in values.values()):
            if not self.config.is_production():
                missing = [name for name, value in values.items()
                           if not (isinstance(value, str) and value)]
                logger.warning(
                    f"Missing required fields for signature validation: {', '.join(missing)}"
                )
            return False

        expected = self.compute(
            values['order_id'],
            values['status_code'],
            values['gross_amount']
        )
        is_valid = hmac.compare_digest(
            expected.encode('utf-8'),
            values['signature_key'].encode('utf-8')
        )

        if not self.config.is_production():
            logger.info(
                f"Signature validation: order_id={values['order_id']} "
                f"status_code={values['status_code']} "
                f"gross_amount={values['gross_amount']} "
                f"received={values['signature_key']} "
                f"expected={expected} "
                f"valid={is_valid}"
            )

        return is_valid
