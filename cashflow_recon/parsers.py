"""
Cell coercion for raw spreadsheet grids.

Grids hold loosely typed cells (text, numbers, datetimes or None). These
helpers turn a cell into text, a date or a non-negative amount. None of them
raise on bad input: a defect in one row resolves to a safe default so the
rest of the sheet still loads.
"""

import re
import logging
import warnings
from datetime import datetime, date

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Excel serial day numbers count from this date (with the 1900 leap-year bug)
EXCEL_EPOCH = '1899-12-30'

_RE_DMY_DOTS = re.compile(r'^(\d{1,2})\.(\d{1,2})\.(\d{4})$')
_RE_DMY_DOTS_SHORT = re.compile(r'^(\d{1,2})\.(\d{1,2})\.(\d{2})$')
_RE_ISO = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})$')
_RE_DMY_SLASHES = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})$')
_RE_LOOKS_LIKE_DATE = re.compile(r'\d{1,4}\D+\d{1,2}')

_RE_WHITESPACE = re.compile(r'\s+')
_RE_AMOUNT_JUNK = re.compile(r'[^\d.\-]')
_RE_LEADING_NUMBER = re.compile(r'-?(?:\d+(?:\.\d*)?|\.\d+)')


def is_number(value):
    """True for int/float/numpy numeric cells (bool excluded)."""
    return isinstance(value, (int, float, np.number)) and not isinstance(value, (bool, np.bool_))


def is_blank(value):
    """True for None, NaN and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    if is_number(value):
        return bool(np.isnan(value)) if isinstance(value, (float, np.floating)) else False
    return False


def cell_text(value):
    """
    Coerce a grid cell to trimmed text.

    Args:
        value: Raw cell value (str, number, datetime or None)

    Returns:
        str: Text form of the cell, '' for empty cells
    """
    if is_blank(value):
        return ''
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, datetime):
        if value.hour or value.minute or value.second:
            return value.strftime('%d.%m.%Y %H:%M:%S')
        return value.strftime('%d.%m.%Y')
    if isinstance(value, date):
        return value.strftime('%d.%m.%Y')
    if is_number(value):
        if float(value).is_integer():
            return str(int(value))
        return str(float(value))
    return str(value).strip()


def _build_date(year, month, day):
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def _from_excel_serial(value):
    if isinstance(value, (float, np.floating)) and np.isnan(value):
        return None
    try:
        ts = pd.to_datetime(float(value), unit='D', origin=EXCEL_EPOCH)
    except (ValueError, OverflowError, pd.errors.OutOfBoundsDatetime):
        return None
    return datetime(ts.year, ts.month, ts.day)


def parse_date(value):
    """
    Parse a date cell.

    Accepted inputs, tried in order:
    - datetime / date cells (returned as datetime)
    - numbers, read as Excel serial day numbers
    - DD.MM.YYYY, DD.MM.YY (YY < 50 means 20YY), YYYY-MM-DD, DD/MM/YYYY
    - anything else pandas can read as a date

    Args:
        value: Raw cell value

    Returns:
        datetime or None: Parsed date, or None if the cell is empty or unparseable
    """
    if is_blank(value):
        return None

    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if is_number(value):
        if value == 0:
            return None
        return _from_excel_serial(value)

    s = str(value).strip()
    if not s:
        return None

    match = _RE_DMY_DOTS.match(s)
    if match:
        result = _build_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        if result:
            return result

    match = _RE_DMY_DOTS_SHORT.match(s)
    if match:
        year = int(match.group(3))
        year += 2000 if year < 50 else 1900
        result = _build_date(year, int(match.group(2)), int(match.group(1)))
        if result:
            return result

    match = _RE_ISO.match(s)
    if match:
        result = _build_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if result:
            return result

    match = _RE_DMY_SLASHES.match(s)
    if match:
        result = _build_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        if result:
            return result

    # Last resort: let pandas try, but only on strings shaped like a date
    if not _RE_LOOKS_LIKE_DATE.search(s):
        return None
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        ts = pd.to_datetime(s, errors='coerce', dayfirst=True)
    if pd.isna(ts):
        logger.debug(f"Unparseable date value: {s!r}")
        return None
    if ts.year < 1900 or ts.year > 2100:
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts.to_pydatetime()


def parse_amount(value):
    """
    Parse an amount cell to a non-negative float.

    Strings may carry currency symbols, spaces (including non-breaking) as
    thousands separators and a comma as the decimal separator. When both a
    comma and a dot appear, the later one is the decimal separator.

    Args:
        value: Raw cell value

    Returns:
        float: Absolute amount, 0.0 when the cell is empty or unparseable
    """
    if is_blank(value) or isinstance(value, (bool, np.bool_)):
        return 0.0
    if is_number(value):
        return abs(float(value))

    s = _RE_WHITESPACE.sub('', str(value))
    if ',' in s and '.' in s:
        if s.rfind(',') > s.rfind('.'):
            s = s.replace('.', '')
        else:
            s = s.replace(',', '')
    s = s.replace(',', '.')
    s = _RE_AMOUNT_JUNK.sub('', s)

    match = _RE_LEADING_NUMBER.match(s)
    if not match:
        return 0.0
    try:
        return abs(float(match.group(0)))
    except ValueError:
        return 0.0
