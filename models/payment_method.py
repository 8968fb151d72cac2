"""
Payment method registry.

Each payment instrument Midtrans accepts through the Core API charge
endpoint is described by one PaymentMethodSpec record. A single builder
turns caller data into a charge payload using that record, so adding a
method means adding data, not code.

Source paths are dotted lookups into a scope of the form
{'input': <caller data>, 'config': <client defaults>}.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

from .errors import ValidationError


CATEGORIES = ('ewallet', 'bank', 'card', 'retail', 'qris')

QR_IMAGE_SERVICE = 'https://api.qrserver.com/v1/create-qr-code/?size=300x300&data='


@dataclass(frozen=True)
class OptionField:
    """
    One key of the method-specific payload section.

    The first source that resolves to a truthy value wins, otherwise
    default is used. A key that ends up None is left out.
    """
    key: str
    sources: Tuple[str, ...] = ()
    default: Any = None
    choices: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Requirement:
    """At least one of paths must resolve to a truthy value."""
    paths: Tuple[str, ...]
    message: str


@dataclass(frozen=True)
class PaymentMethodSpec:
    """
    Configuration record for one payment method.

    Attributes:
        name: Method name used by callers (e.g. 'bca_va')
        category: Grouping used for listings
        payment_type: Value of the payload's payment_type
        section: Name of the method-specific payload section, if any
        fields: Keys of that section resolved from caller data
        fixed: Keys of that section with constant values (applied last)
        requirements: Checks run before building
        response_actions: Response key -> name of an entry in 'actions'
            whose url should be copied to that key
        qr_image: Add a rendered QR image URL for response qr_string
        min_amount: Smallest accepted gross amount (IDR)
        max_amount: Largest accepted gross amount (IDR)
    """
    name: str
    category: str
    payment_type: str
    section: Optional[str] = None
    fields: Tuple[OptionField, ...] = ()
    fixed: Mapping[str, Any] = field(default_factory=dict)
    requirements: Tuple[Requirement, ...] = ()
    response_actions: Mapping[str, str] = field(default_factory=dict)
    qr_image: bool = False
    min_amount: Optional[int] = None
    max_amount: Optional[int] = None


def _callback_section(payment_type: str) -> PaymentMethodSpec:
    return PaymentMethodSpec(
        name=payment_type,
        category='ewallet',
        payment_type=payment_type,
        section=payment_type,
        fields=(OptionField('callback_url', ('input.callback_url', 'config.callback_url')),),
        fixed={'enable_callback': True},
        response_actions={'deeplink': 'deeplink-redirect'}
    )


def _phone_section(name: str, payment_type: str, label: str) -> PaymentMethodSpec:
    return PaymentMethodSpec(
        name=name,
        category='ewallet',
        payment_type=payment_type,
        section=payment_type,
        fields=(OptionField('phone_number', ('input.customer_details.phone',)),),
        requirements=(
            Requirement(
                ('input.customer_details.phone',),
                f"Phone number is required for {label} payment"
            ),
        )
    )


def _virtual_account(bank: str) -> PaymentMethodSpec:
    return PaymentMethodSpec(
        name=f"{bank}_va",
        category='bank',
        payment_type='bank_transfer',
        section='bank_transfer',
        fields=(OptionField('va_number', ('input.custom_va_number',)),),
        fixed={'bank': bank}
    )


def _internet_banking(name: str, label: str) -> PaymentMethodSpec:
    return PaymentMethodSpec(
        name=name,
        category='bank',
        payment_type=name,
        section=name,
        fields=(OptionField('description', ('input.description',), f"Payment via {label}"),)
    )


_CARD_FIELDS = (
    OptionField('token_id', ('input.card_token', 'input.saved_token_id')),
    OptionField('authentication', ('input.authentication',), False),
    OptionField('save_token_id', ('input.save_card',), False),
    OptionField('bank', ('input.bank',)),
)

_CARD_REQUIREMENTS = (
    Requirement(
        ('input.card_token', 'input.saved_token_id'),
        'Either card_token or saved_token_id is required'
    ),
)


_SPECS = (
    # E-wallets
    PaymentMethodSpec(
        name='gopay',
        category='ewallet',
        payment_type='gopay',
        section='gopay',
        fields=(OptionField('callback_url', ('input.callback_url', 'config.callback_url')),),
        fixed={'enable_callback': True},
        response_actions={
            'qr_string': 'generate-qr-code',
            'deeplink': 'deeplink-redirect'
        }
    ),
    _phone_section('ovo', 'ovo', 'OVO'),
    _callback_section('dana'),
    _callback_section('shopeepay'),
    _phone_section('linkaja', 'telkomsel_cash', 'LinkAja'),

    # Bank transfer and internet banking
    _virtual_account('bca'),
    _virtual_account('bni'),
    _virtual_account('bri'),
    PaymentMethodSpec(
        name='mandiri_va',
        category='bank',
        payment_type='echannel',
        section='echannel',
        fields=(
            OptionField('bill_info1', ('input.bill_info1',), 'Payment for Order'),
            OptionField('bill_info2', ('input.bill_info2', 'input.transaction_details.order_id')),
        )
    ),
    PaymentMethodSpec(
        name='permata_va',
        category='bank',
        payment_type='permata',
        section='permata',
        fields=(
            OptionField(
                'recipient_name',
                ('input.recipient_name', 'input.customer_details.first_name')
            ),
        )
    ),
    _internet_banking('cimb_clicks', 'CIMB Clicks'),
    _internet_banking('bca_klikpay', 'BCA KlikPay'),
    _internet_banking('danamon_online', 'Danamon Online Banking'),

    # Cards
    PaymentMethodSpec(
        name='credit_card',
        category='card',
        payment_type='credit_card',
        section='credit_card',
        fields=_CARD_FIELDS,
        requirements=_CARD_REQUIREMENTS
    ),
    PaymentMethodSpec(
        name='credit_card_3ds',
        category='card',
        payment_type='credit_card',
        section='credit_card',
        fields=_CARD_FIELDS,
        fixed={'authentication': True},
        requirements=_CARD_REQUIREMENTS
    ),

    # Convenience stores
    PaymentMethodSpec(
        name='indomaret',
        category='retail',
        payment_type='cstore',
        section='cstore',
        fields=(OptionField('message', ('input.message',), 'Payment via Indomaret'),),
        fixed={'store': 'indomaret'},
        min_amount=10000,
        max_amount=5000000
    ),
    PaymentMethodSpec(
        name='alfamart',
        category='retail',
        payment_type='cstore',
        section='cstore',
        fields=(
            OptionField(
                'alfamart_free_text_1',
                ('input.alfamart_free_text_1', 'input.customer_details.first_name'),
                ''
            ),
            OptionField(
                'alfamart_free_text_2',
                ('input.alfamart_free_text_2', 'input.transaction_details.order_id'),
                ''
            ),
            OptionField('alfamart_free_text_3', ('input.alfamart_free_text_3',), 'Payment'),
        ),
        fixed={'store': 'alfamart'},
        min_amount=10000,
        max_amount=2500000
    ),

    # QRIS
    PaymentMethodSpec(
        name='qris',
        category='qris',
        payment_type='qris',
        section='qris',
        fields=(OptionField('acquirer', ('input.acquirer',), 'gopay', choices=('gopay', 'shopeepay')),),
        qr_image=True,
        min_amount=1,
        max_amount=10000000
    ),
)

PAYMENT_METHODS: Dict[str, PaymentMethodSpec] = {spec.name: spec for spec in _SPECS}


def get_payment_method(name: Optional[str]) -> PaymentMethodSpec:
    """
    Look up a payment method (case-insensitive).

    Raises:
        ValidationError: If the method is not registered
    """
    spec = PAYMENT_METHODS.get((name or '').lower())
    if spec is None:
        raise ValidationError(f"Unsupported payment method: {name}")
    return spec


def is_supported(name: Optional[str]) -> bool:
    return (name or '').lower() in PAYMENT_METHODS


def available_methods() -> Dict[str, List[str]]:
    """Registered method names grouped by category."""
    grouped: Dict[str, List[str]] = {category: [] for category in CATEGORIES}
    for spec in _SPECS:
        grouped[spec.category].append(spec.name)
    return grouped


def _resolve(path: str, scope: Mapping[str, Any]) -> Any:
    value: Any = scope
    for part in path.split('.'):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _first_value(sources: Tuple[str, ...], scope: Mapping[str, Any]) -> Any:
    for source in sources:
        value = _resolve(source, scope)
        if value:
            return value
    return None


def build_charge_payload(
    method: str,
    data: Mapping[str, Any],
    defaults: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """
    Build a Core API charge payload.

    Args:
        method: Registered payment method name
        data: Caller data (transaction_details, customer_details,
            item_details and method-specific options)
        defaults: Client-level defaults, addressable as 'config.<key>'

    Returns:
        Payload ready to POST to /v2/charge

    Raises:
        ValidationError: If the method is unknown or data is incomplete
    """
    spec = get_payment_method(method)

    if not isinstance(data, Mapping):
        raise ValidationError('Payment data must be an object')

    transaction_details = data.get('transaction_details')
    if not transaction_details or not isinstance(transaction_details, Mapping):
        raise ValidationError('transaction_details is required')

    if not transaction_details.get('order_id') or not transaction_details.get('gross_amount'):
        raise ValidationError('order_id and gross_amount are required in transaction_details')

    scope = {'input': data, 'config': dict(defaults or {})}

    for requirement in spec.requirements:
        if not _first_value(requirement.paths, scope):
            raise ValidationError(requirement.message)

    payload: Dict[str, Any] = {
        'payment_type': spec.payment_type,
        'transaction_details': dict(transaction_details)
    }

    for key in ('customer_details', 'item_details'):
        if data.get(key) is not None:
            payload[key] = data[key]

    if spec.section:
        section: Dict[str, Any] = {}
        for option in spec.fields:
            value = _first_value(option.sources, scope)
            if value is None:
                value = option.default
            if value is None:
                continue
            if option.choices and value not in option.choices:
                raise ValidationError(
                    f"{option.key} must be one of: {', '.join(option.choices)}"
                )
            section[option.key] = value

        section.update(spec.fixed)
        if section:
            payload[spec.section] = section

    return payload


def qr_image_url(qr_string: Optional[str]) -> Optional[str]:
    """Render URL for a QR code image of qr_string."""
    if not qr_string:
        return None
    return QR_IMAGE_SERVICE + quote(qr_string, safe='')


def enrich_charge_response(spec: PaymentMethodSpec, response: Any) -> Any:
    """
    Lift action URLs and QR images to the top level of a charge response.

    Non-dict responses are returned untouched.
    """
    if not isinstance(response, dict):
        return response

    enriched = dict(response)
    actions = response.get('actions') or []

    for key, action_name in spec.response_actions.items():
        enriched[key] = next(
            (
                action.get('url') for action in actions
                if isinstance(action, dict) and action.get('name') == action_name
            ),
            None
        )

    if spec.qr_image:
        enriched['qr_image_url'] = qr_image_url(response.get('qr_string'))

    return enriched


def format_rupiah(amount: float) -> str:
    """Format an IDR amount the way Indonesian locales do: Rp 10.000"""
    return f"Rp {int(amount):,}".replace(',', '.')


def validate_amount(method: str, amount: float) -> Tuple[bool, str]:
    """
    Check amount against the method's limits.

    Returns:
        Tuple of (is_valid, message)
    """
    spec = get_payment_method(method)

    if spec.min_amount is not None and amount < spec.min_amount:
        return False, f"Minimum payment amount for {spec.name} is {format_rupiah(spec.min_amount)}"

    if spec.max_amount is not None and amount > spec.max_amount:
        return False, f"Maximum payment amount for {spec.name} is {format_rupiah(spec.max_amount)}"

    return True, "Payment amount is valid"
