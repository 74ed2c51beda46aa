"""
Cell parsers for trip export values: dates, money (as integer cents) and
cancellation flags. All functions are pure and never raise on bad input.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

import pandas as pd

_PARENS = re.compile(r'^\((.*)\)$')
_MONEY_STRIP = re.compile(r'[$€£¥,\s]')
_DECIMAL = re.compile(r'^[+-]?(?:\d+(?:\.\d*)?|\.\d+)$')
_HAS_DIGIT = re.compile(r'\d')

TRUE_FLAGS = {'true', 'yes', '1'}
FALSE_FLAGS = {'false', 'no', '0'}


def _is_blank(value) -> bool:
    if value is None:
        return True
    try:
        if pd.isna(value):
            return True
    except (TypeError, ValueError):
        pass
    return str(value).strip() == ''


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def parse_date(value) -> Optional[datetime]:
    """Parse a locale-formatted date/time string, or return None.

    No fixed format is enforced: anything pandas/dateutil understands is
    accepted ("2025-01-01 10:00 AM", "1/5/2025 9:30", "Jan 5, 2025" ...).
    Timezone-aware values are converted to naive UTC. Values without a digit
    ("now", "today") are rejected so results do not depend on the clock.
    """
    if _is_blank(value):
        return None
    text = str(value).strip()
    if not _HAS_DIGIT.search(text):
        return None
    try:
        ts = pd.to_datetime(text, errors='coerce')
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert('UTC').tz_localize(None)
    return ts.to_pydatetime()


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------

def parse_money_cents(value) -> Optional[int]:
    """Parse a currency cell into integer cents.

    "$1,234.56" -> 123456, "(100.00)" -> -10000, "($45.00)" -> -4500.
    Empty strings, a lone "-" and anything that is not a plain signed
    decimal after cleaning return None.
    """
    if _is_blank(value):
        return None

    s = str(value).strip()
    negative = False
    m = _PARENS.match(s)
    if m:
        negative = True
        s = m.group(1)

    cleaned = _MONEY_STRIP.sub('', s)
    if negative:
        cleaned = '-' + cleaned
    if cleaned in ('', '-', '+'):
        return None
    if not _DECIMAL.match(cleaned):
        return None

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    return int((amount * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def cents_to_amount(cents: Optional[int]) -> Optional[float]:
    """Convert integer cents to a 2-dp currency amount at the output boundary."""
    if cents is None:
        return None
    return round(cents / 100, 2)


def format_cents(cents: Optional[int]) -> Optional[str]:
    """Render cents as a plain 2-dp string, e.g. -10000 -> '-100.00'."""
    if cents is None:
        return None
    sign = '-' if cents < 0 else ''
    whole, frac = divmod(abs(cents), 100)
    return f'{sign}{whole}.{frac:02d}'


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

def parse_cancelled(flag_value=None, status_value=None, has_flag_column: bool = False) -> bool:
    """Decide whether a trip was cancelled.

    An explicit flag column wins when it holds a recognised value;
    otherwise the status text is checked for "cancel".
    """
    if has_flag_column and not _is_blank(flag_value):
        flag = str(flag_value).strip().lower()
        if flag in TRUE_FLAGS:
            return True
        if flag in FALSE_FLAGS:
            return False

    if _is_blank(status_value):
        return False
    return 'cancel' in str(status_value).lower()


def clean_text(value) -> Optional[str]:
    """Trimmed string, or None for blank cells."""
    if _is_blank(value):
        return None
    return str(value).strip()
