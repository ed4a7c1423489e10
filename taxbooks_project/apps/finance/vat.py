"""
UAE VAT 201 Return computation (FTA format).

Box structure:
- Box 1a-1g: Standard rated supplies per Emirate (amount, VAT, adjustment)
- Box 2: Tax refunds provided to tourists
- Box 3: Supplies subject to the reverse charge
- Box 4: Zero rated supplies (no VAT column)
- Box 5: Exempt supplies (no VAT column)
- Box 6: Goods imported into the UAE
- Box 7: Adjustments to goods imported into the UAE
- Box 8: Totals (outputs)
- Box 9: Standard rated expenses
- Box 10: Supplies subject to the reverse charge (inputs)
- Box 11: Totals (inputs)
- Box 12-14: Due tax, recoverable tax, net payable / refundable
"""
import copy
import logging
import re
from collections import namedtuple

from apps.core.utils import ZERO, calculate_vat, money_sum, quantize_money, to_decimal

logger = logging.getLogger(__name__)


EMIRATES = [
    # (box, field prefix, English, Arabic)
    ('1a', 'box1a_abu_dhabi', 'Abu Dhabi', 'أبو ظبي'),
    ('1b', 'box1b_dubai', 'Dubai', 'دبي'),
    ('1c', 'box1c_sharjah', 'Sharjah', 'الشارقة'),
    ('1d', 'box1d_ajman', 'Ajman', 'عجمان'),
    ('1e', 'box1e_umm_al_quwain', 'Umm Al Quwain', 'أم القيوين'),
    ('1f', 'box1f_ras_al_khaimah', 'Ras Al Khaimah', 'رأس الخيمة'),
    ('1g', 'box1g_fujairah', 'Fujairah', 'الفجيرة'),
]

# Boxes with an amount and a VAT column
VAT_BEARING_PREFIXES = [prefix for _, prefix, _, _ in EMIRATES] + [
    'box2_tourist_refund',
    'box3_reverse_charge',
    'box6_imports',
    'box7_imports_adj',
    'box9_expenses',
    'box10_reverse_charge',
]

# Boxes 4 and 5 never carry VAT
NON_VAT_AMOUNT_FIELDS = ['box4_zero_rated_amount', 'box5_exempt_amount']

ADJUSTMENT_PREFIXES = [prefix for _, prefix, _, _ in EMIRATES] + ['box9_expenses']

LOCKED_STATUSES = ('submitted', 'accepted', 'filed')

PAYABLE = 'Payable'
REFUNDABLE = 'Refundable'


def _build_field_names():
    names = []
    for prefix in VAT_BEARING_PREFIXES:
        names.append(f'{prefix}_amount')
        names.append(f'{prefix}_vat')
        if prefix in ADJUSTMENT_PREFIXES:
            names.append(f'{prefix}_adjustment')
    return names + NON_VAT_AMOUNT_FIELDS


FIELD_NAMES = _build_field_names()


def to_camel(field_name):
    """box1a_abu_dhabi_adjustment -> box1aAbuDhabiAdj"""
    box, *words = field_name.split('_')
    if words and words[-1] == 'adjustment':
        words[-1] = 'adj'
    return box + ''.join(word.capitalize() for word in words)


def _build_aliases():
    aliases = {}
    for name in FIELD_NAMES:
        aliases[name] = name
        camel = to_camel(name)
        aliases[camel] = name
        if camel.endswith('Adj'):
            aliases[camel + 'ustment'] = name
    return aliases


FIELD_ALIASES = _build_aliases()


class VATFieldError(KeyError):
    """Raised for a field name that is not part of the VAT 201 form."""


class VATReturnLockedError(Exception):
    """Raised when editing a return that has already been submitted/filed."""


NetVATPosition = namedtuple('NetVATPosition', ['net', 'amount', 'label'])


def resolve_field(field_name):
    """Map a snake_case or camelCase field name to its canonical name."""
    try:
        return FIELD_ALIASES[field_name]
    except KeyError:
        raise VATFieldError(field_name) from None


def vat_field_for(amount_field):
    """
    Sibling VAT field for an amount field, or None when the box is not
    VAT-bearing (zero rated / exempt).
    """
    if not amount_field.endswith('_amount') or amount_field in NON_VAT_AMOUNT_FIELDS:
        return None
    return re.sub(r'_amount$', '_vat', amount_field)


class VATReturnInput:
    """
    One VAT 201 return for a filing period.

    Every field is a Decimal defaulting to zero. Editing an amount on a
    VAT-bearing box recomputes its VAT at the standard rate; VAT and
    adjustment fields can be edited directly and keep their value until the
    sibling amount changes again.
    """

    def __init__(self, status='draft', rate=None, **values):
        self.status = status or 'draft'
        self.rate = rate
        for name in FIELD_NAMES:
            setattr(self, name, ZERO)
        for key, value in values.items():
            setattr(self, resolve_field(key), to_decimal(value))

    def __repr__(self):
        return f"<VATReturnInput status={self.status} net_vat={self.net_vat()}>"

    @classmethod
    def from_dict(cls, data, status=None, rate=None):
        """Build from a plain record (snake_case or backend camelCase keys)."""
        data = data or {}
        if not isinstance(data, dict):
            raise TypeError(f"VAT 201 draft must be a mapping, not {type(data).__name__}")
        values = {key: value for key, value in data.items() if key in FIELD_ALIASES}
        return cls(status=status or data.get('status', 'draft'), rate=rate, **values)

    @classmethod
    def from_draft(cls, draft, rate=None):
        """
        Build from a server-generated draft. VAT values in the draft are kept
        exactly as given; nothing is recomputed.
        """
        return cls.from_dict(draft, rate=rate)

    def to_dict(self, camel=False):
        if camel:
            return {to_camel(name): getattr(self, name) for name in FIELD_NAMES}
        return {name: getattr(self, name) for name in FIELD_NAMES}

    def copy(self):
        return copy.copy(self)

    @property
    def locked(self):
        return self.status in LOCKED_STATUSES

    def update_field(self, field_name, raw_value):
        """
        Set a field from raw user input.

        Invalid or empty input becomes 0. Setting the amount of a VAT-bearing
        box overwrites its VAT with amount x rate (rounded to 2 places).

        Raises:
            VATFieldError: unknown field name
            VATReturnLockedError: the return has been submitted/filed
        """
        name = resolve_field(field_name)
        if self.locked:
            logger.warning("Rejected edit of %s on %s VAT return", name, self.status)
            raise VATReturnLockedError(
                f"VAT return is {self.status} and can no longer be edited."
            )

        value = to_decimal(raw_value)
        setattr(self, name, value)

        vat_field = vat_field_for(name)
        if vat_field:
            setattr(self, vat_field, calculate_vat(value, self.rate))
        return value

    update_amount = update_field

    def apply_edits(self, edits):
        """Apply a sequence of (field, raw value) pairs in order."""
        for field_name, raw_value in edits:
            self.update_field(field_name, raw_value)
        return self

    # ---- Box 8: outputs ----

    def _fields(self, *names):
        return [getattr(self, name) for name in names]

    def _emirate_fields(self, suffix):
        return self._fields(*[f'{prefix}_{suffix}' for _, prefix, _, _ in EMIRATES])

    def total_sales_amount(self):
        return money_sum(self._emirate_fields('amount') + self._fields(
            'box2_tourist_refund_amount',
            'box3_reverse_charge_amount',
            'box4_zero_rated_amount',
            'box5_exempt_amount',
            'box6_imports_amount',
            'box7_imports_adj_amount',
        ))

    def total_sales_vat(self):
        return money_sum(self._emirate_fields('vat') + self._fields(
            'box2_tourist_refund_vat',
            'box3_reverse_charge_vat',
            'box6_imports_vat',
            'box7_imports_adj_vat',
        ))

    def total_sales_adjustment(self):
        return money_sum(self._emirate_fields('adjustment'))

    # ---- Box 11: inputs ----

    def total_input_amount(self):
        return money_sum(self._fields('box9_expenses_amount', 'box10_reverse_charge_amount'))

    def total_input_vat(self):
        return money_sum(self._fields('box9_expenses_vat', 'box10_reverse_charge_vat'))

    def total_input_adjustment(self):
        return self.box9_expenses_adjustment

    # ---- Boxes 12-14 ----

    def total_due_tax(self):
        return self.total_sales_vat()

    def total_recoverable_tax(self):
        return self.total_input_vat()

    def net_vat(self):
        """Output tax minus input tax. Negative means refundable."""
        return money_sum([self.total_sales_vat(), self.total_input_vat().copy_negate()])

    def net_vat_position(self):
        """Box 14 as absolute amount with a Payable/Refundable label."""
        net = self.net_vat()
        label = REFUNDABLE if quantize_money(net) < 0 else PAYABLE
        return NetVATPosition(net=net, amount=net.copy_abs(), label=label)

    @property
    def is_refund(self):
        return self.net_vat_position().label == REFUNDABLE

    def emirate_rows(self):
        return [
            {
                'box': box,
                'emirate': name_en,
                'emirate_ar': name_ar,
                'amount': getattr(self, f'{prefix}_amount'),
                'vat': getattr(self, f'{prefix}_vat'),
                'adjustment': getattr(self, f'{prefix}_adjustment'),
            }
            for box, prefix, name_en, name_ar in EMIRATES
        ]

    def summary(self):
        """All computed box totals, rounded for presentation."""
        position = self.net_vat_position()
        return {
            'total_sales_amount': quantize_money(self.total_sales_amount()),
            'total_sales_vat': quantize_money(self.total_sales_vat()),
            'total_sales_adjustment': quantize_money(self.total_sales_adjustment()),
            'total_input_amount': quantize_money(self.total_input_amount()),
            'total_input_vat': quantize_money(self.total_input_vat()),
            'total_input_adjustment': quantize_money(self.total_input_adjustment()),
            'total_due_tax': quantize_money(self.total_due_tax()),
            'total_recoverable_tax': quantize_money(self.total_recoverable_tax()),
            'net_vat': quantize_money(position.net),
            'net_vat_amount': quantize_money(position.amount),
            'net_vat_label': position.label,
        }
