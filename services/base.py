"""Shared plumbing for the Midtrans API services."""

import copy
from typing import Any, Dict, Iterable, List, Mapping, Optional
from urllib.parse import quote

from models.errors import ValidationError
from models.payment_method import format_rupiah
from .http_client import HttpClient


def is_positive_number(value: Any) -> bool:
    """True for int/float values above zero (bools excluded)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def require(value: Any, message: str) -> None:
    """
    Reject a falsy value before any request is made.

    Raises:
        ValidationError: If value is falsy
    """
    if not value:
        raise ValidationError(message)


def require_fields(data: Mapping[str, Any], fields: Iterable[str], suffix: str = '') -> None:
    """Check that every field in fields is present and truthy in data."""
    if not isinstance(data, Mapping):
        raise ValidationError('Request data must be an object')
    for field_name in fields:
        if not data.get(field_name):
            raise ValidationError(f"{field_name} is required{suffix}")


def validate_payout_items(
    payouts: Any,
    required: Iterable[str],
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None
) -> None:
    """
    Validate a batch of payout entries.

    Raises:
        ValidationError: Naming the index of the first bad entry
    """
    if not isinstance(payouts, list) or len(payouts) == 0:
        raise ValidationError('payouts must be a non-empty array')

    required = tuple(required)
    for index, payout in enumerate(payouts):
        if not isinstance(payout, Mapping) or not all(payout.get(f) for f in required):
            raise ValidationError(f"Payout at index {index} is missing required fields")

        amount = payout['amount']
        if not is_positive_number(amount):
            raise ValidationError(f"Payout at index {index} must have a positive amount")

        if min_amount is not None and amount < min_amount:
            raise ValidationError(
                f"Payout at index {index}: minimum amount is {format_rupiah(min_amount)}"
            )

        if max_amount is not None and amount > max_amount:
            raise ValidationError(
                f"Payout at index {index}: maximum amount is {format_rupiah(max_amount)}"
            )


def segment(value: Any) -> str:
    """
    Escape a caller-supplied ID for use as one URL path segment.

    Slashes, query and fragment characters are percent-encoded so the
    request stays on the intended endpoint.

    Raises:
        ValidationError: If the ID is a dot segment
    """
    text = str(value)
    if text in ('.', '..'):
        raise ValidationError(f"Invalid identifier: {text}")
    return quote(text, safe='')


def drop_none(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


def clone(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep copy caller data so defaults never leak back into it."""
    return copy.deepcopy(dict(data))


class BaseService:
    """
    Base for services that talk to one Midtrans capability.

    Subclasses set BASE_URL_KEY to the name of their entry in
    config.base_urls.
    """

    BASE_URL_KEY = 'api'

    def __init__(self, http_client: HttpClient):
        """
        Initialize the service.

        Args:
            http_client: Shared HTTP client
        """
        self.http = http_client
        self.config = http_client.config

    @property
    def base_url(self) -> str:
        return getattr(self.config.base_urls, self.BASE_URL_KEY)

    @staticmethod
    def page_params(filters: Mapping[str, Any], keys: List[str], per_page: int = 10) -> Dict[str, Any]:
        """Listing query: page/per_page defaults plus the given filter keys."""
        params = {
            'page': filters.get('page') or 1,
            'per_page': filters.get('per_page') or per_page
        }
        for key in keys:
            params[key] = filters.get(key)
        return drop_none(params)
