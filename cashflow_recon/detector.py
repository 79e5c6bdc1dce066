"""
Header row discovery and sheet classification.

Exports from the clinics' accounting tools rarely start with the header on
the first row: there are titles, period captions and blank lines above it.
``find_header_row`` scores the first rows of a grid and picks the one that
looks most like a header. ``detect_sheet_type`` then classifies the sheet
as a cash journal, bank journal, reference sheet or unknown, first from the
sheet name and then from the header texts.

All keyword tables below are ordered; the first matching group wins.
"""

import logging
from datetime import date

from .models import SheetClassification, SheetType
from .parsers import cell_text, is_number
from .utils import normalize_header

logger = logging.getLogger(__name__)

HEADER_SCAN_ROWS = 10

# Domain terms expected in header cells
HEADER_KEYWORDS = [
    'дата', 'сумма', 'статья', 'контрагент', 'период', 'документ',
    'аналитика', 'кошелек', 'кошелёк', 'филиал', 'примечание',
    'кредит', 'дебет', 'сальдо', 'группа', 'справочник',
    'статья ддс', 'вид деятельности', 'назначение', 'поступлен',
]

# Sheet name markers: substring matches, plus exact names for short markers
REFERENCE_NAME_MARKERS = ['справочник', 'статьи', 'статья ддс', 'reference']
REFERENCE_NAME_EXACT = ['ддс', 'ref']

# Cash journals are usually named after the clinic/point of sale
CASH_JOURNAL_NAME_MARKERS = ['журнал', 'касса', 'моби', 'леонов', 'мира', 'дик', 'точк']

BANK_JOURNAL_NAME_MARKERS = [
    'р/с', 'р\\с', 'расч', 'рс ', 'банк', 'счет', 'счёт', 'bank',
]
BANK_JOURNAL_NAME_PREFIXES = ['рс']


def _is_numeric_cell(value):
    if is_number(value) or isinstance(value, date):
        return True
    try:
        float(str(value).strip())
        return True
    except ValueError:
        return False


def score_header_row(row):
    """
    Score how much a row looks like a header row.

    Each cell containing a header keyword scores 2 points; each non-numeric
    cell longer than one character scores another 0.5.

    Args:
        row (list): Raw cells of one grid row

    Returns:
        float: Row score
    """
    score = 0.0
    for cell in row:
        text = normalize_header(cell_text(cell))
        if not text:
            continue
        if any(kw in text for kw in HEADER_KEYWORDS):
            score += 2
        if not _is_numeric_cell(cell) and len(text) > 1:
            score += 0.5
    return score


def find_header_row(grid, max_rows=HEADER_SCAN_ROWS):
    """
    Locate the header row within the first rows of a grid.

    The highest-scoring row wins; on ties the earliest row is kept, and row 0
    is the default when nothing scores.

    Args:
        grid (list): Rows of raw cell values
        max_rows (int): Number of leading rows to scan

    Returns:
        tuple: (header_row_index, headers) with headers as text
    """
    best_row = 0
    best_score = 0.0

    for i, row in enumerate(grid[:max_rows]):
        score = score_header_row(row or [])
        if score > best_score:
            best_score = score
            best_row = i

    headers = [cell_text(h) for h in (grid[best_row] if best_row < len(grid) else []) or []]
    logger.debug(f"Header row {best_row} (score {best_score}): {headers}")
    return best_row, headers


def detect_sheet_type_by_name(sheet_name):
    """
    Classify a sheet by its name.

    Args:
        sheet_name (str): Sheet name

    Returns:
        SheetType or None: Detected type, or None when the name gives no hint
    """
    lower = (sheet_name or '').lower().strip()

    if any(m in lower for m in REFERENCE_NAME_MARKERS) or lower in REFERENCE_NAME_EXACT:
        return SheetType.REFERENCE

    if any(m in lower for m in CASH_JOURNAL_NAME_MARKERS):
        return SheetType.CASH_JOURNAL

    if (any(m in lower for m in BANK_JOURNAL_NAME_MARKERS)
            or any(lower.startswith(p) for p in BANK_JOURNAL_NAME_PREFIXES)):
        return SheetType.BANK_JOURNAL

    return None


def _is_reference_headers(joined):
    return (
        ('статья ддс' in joined and 'группа' in joined)
        or 'справочник контрагентов' in joined
    )


def _is_cash_journal_headers(joined):
    return (
        'дата оплаты' in joined
        or 'кошелек' in joined
        or 'кошелёк' in joined
        or ('филиал' in joined and 'статья дохода' in joined)
        or ('контрагент' in joined and 'статья дохода' in joined)
        or ('сумма в рублях' in joined and 'контрагент' in joined)
    )


def _is_bank_journal_headers(joined):
    return (
        ('период' in joined and 'аналитика' in joined)
        or 'аналитика дт' in joined
        or 'аналитика кт' in joined
        or ('сумма для ддс' in joined and 'статья' in joined)
        or ('документ' in joined and 'дебет' in joined and 'кредит' in joined)
    )


def _is_loose_cash_journal_headers(joined):
    return 'статья дохода' in joined or 'статья расхода' in joined


# Evaluated in order; the first predicate that holds decides the type
HEADER_PREDICATES = [
    (_is_reference_headers, SheetType.REFERENCE),
    (_is_cash_journal_headers, SheetType.CASH_JOURNAL),
    (_is_bank_journal_headers, SheetType.BANK_JOURNAL),
    (_is_loose_cash_journal_headers, SheetType.CASH_JOURNAL),
]


def detect_sheet_type_by_headers(headers):
    """
    Classify a sheet by its header texts.

    Args:
        headers (list): Header cell texts

    Returns:
        SheetType: Detected type, SheetType.UNKNOWN when nothing matches
    """
    joined = '|'.join(normalize_header(h) for h in headers)
    for predicate, sheet_type in HEADER_PREDICATES:
        if predicate(joined):
            return sheet_type
    return SheetType.UNKNOWN


def detect_sheet_type(sheet_name, headers):
    """Classify by sheet name first, then by headers."""
    by_name = detect_sheet_type_by_name(sheet_name)
    if by_name is not None:
        return by_name
    return detect_sheet_type_by_headers(headers)


def classify_sheet(grid, sheet_name):
    """
    Find the header row of a grid and classify the sheet.

    Args:
        grid (list): Rows of raw cell values
        sheet_name (str): Sheet name

    Returns:
        SheetClassification: Header row index, header texts and sheet type
    """
    header_row_index, headers = find_header_row(grid)
    sheet_type = detect_sheet_type(sheet_name, headers)
    logger.info(f"Sheet {sheet_name!r} classified as {sheet_type} (header row {header_row_index})")
    return SheetClassification(header_row_index=header_row_index, headers=headers, type=sheet_type)
