"""
Utility functions for the TaxBooks system.
Numeric parsing and money formatting shared by VAT and ledger code.
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext

from django.conf import settings


ZERO = Decimal('0.00')
CENT = Decimal('0.01')
DEFAULT_VAT_RATE = Decimal('0.05')

# Amounts above 1e99 are treated as invalid input
MAX_EXPONENT = 99
MONEY_PRECISION = MAX_EXPONENT + 20


def to_decimal(value):
    """
    Parse a raw value into a Decimal.

    Empty strings, None, non-numeric text, NaN, infinities and magnitudes
    beyond 1e99 all become Decimal('0.00'). Never raises.

    Args:
        value: str, int, float, Decimal or None

    Returns:
        Decimal
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value)) if value == value else ZERO
    else:
        text = str(value).strip()
        if not text:
            return ZERO
        try:
            result = Decimal(text)
        except (InvalidOperation, ValueError):
            return ZERO
    if not result.is_finite() or result.adjusted() > MAX_EXPONENT:
        return ZERO
    return result


def quantize_money(value):
    """Round to 2 decimal places (half up)."""
    if not (isinstance(value, Decimal) and value.is_finite()):
        value = to_decimal(value)
    with localcontext() as ctx:
        # wide enough for any accepted amount and totals of them
        ctx.prec = MONEY_PRECISION
        return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(values):
    """Exact sum of amounts, never rounded to the default 28 digits."""
    with localcontext() as ctx:
        ctx.prec = MONEY_PRECISION
        return sum(values, ZERO)


def format_number(value):
    """Format as 1,234.50"""
    return f"{quantize_money(value):,.2f}"


def format_amount(value):
    """Plain two-decimal string for exports, e.g. 1234.50"""
    return f"{quantize_money(value):.2f}"


def format_currency(value, currency='AED'):
    """Format decimal as currency string."""
    return f"{currency} {format_number(value)}"


def format_percent(value):
    """
    Format a fraction as a percentage with at most one decimal.
    0.05 -> '5%', 0.125 -> '12.5%'
    """
    pct = (to_decimal(value) * 100).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)
    if pct == pct.to_integral_value():
        return f"{int(pct)}%"
    return f"{pct}%"


def display_amount(value):
    """On-screen debit/credit cell: zero shows as a dash."""
    amount = quantize_money(value)
    if amount == 0:
        return '-'
    return format_number(amount)


def get_vat_rate():
    """Configured UAE standard VAT rate."""
    return to_decimal(getattr(settings, 'VAT_STANDARD_RATE', DEFAULT_VAT_RATE))


def calculate_vat(amount, rate=None):
    """Calculate VAT on an amount (5% UAE standard rate by default)."""
    if rate is None:
        rate = get_vat_rate()
    with localcontext() as ctx:
        ctx.prec = MONEY_PRECISION
        return quantize_money(to_decimal(amount) * to_decimal(rate))


def calculate_total(subtotal, vat_amount):
    return to_decimal(subtotal) + to_decimal(vat_amount)


def slugify_filename(name):
    """Replace whitespace runs with underscores for download filenames."""
    return re.sub(r'\s+', '_', str(name or '').strip())
