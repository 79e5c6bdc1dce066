"""
Journal extractors.

Turns the rows of a classified journal sheet into Transaction records:
- Cash journals ("журнал кассы"), one per clinic/point of sale
- Bank journals ("журнал р/с"), settlement-account postings with
  debit/credit analytics columns
- A fallback for unclassified sheets that still have a date or amount column

Columns are located by keyword; candidates for each field are tried in
order and the first header containing a candidate wins. Direction (in/out)
comes from the cash-flow article dictionary, with a keyword heuristic when
the article is not in it.
"""

import logging

from .models import (
    DIRECTION_IN,
    DIRECTION_OUT,
    SheetType,
    new_transaction,
)
from .parsers import cell_text, parse_amount, parse_date
from .utils import normalize_header

logger = logging.getLogger(__name__)

# Column candidates per field, most specific first
CASH_COLUMNS = {
    'date': ['дата оплаты', 'дата поступления', 'дата'],
    'wallet': ['кошелек', 'кошелёк'],
    'amount': ['сумма в рублях', 'сумма'],
    'note': ['примечание', 'назначение'],
    'branch': ['филиал'],
    'counterparty': ['контрагент'],
    'article': ['статья дохода', 'статья расхода', 'статья'],
    'accrual_month': ['месяц начисления'],
}

BANK_COLUMNS = {
    'date': ['период', 'дата'],
    'document': ['документ'],
    'debit_analytics': ['аналитика дт'],
    'credit_analytics': ['аналитика кт'],
    'amount': ['сумма для ддс', 'сумма ддс', 'сумма'],
    'article': ['статья'],
    'accrual_month': ['месяц начисления'],
}

FALLBACK_COLUMNS = {
    'date': ['дата', 'период', 'date'],
    'amount': ['сумма', 'amount', 'итого'],
    'article': ['статья', 'назначение', 'категория'],
    'counterparty': ['контрагент', 'получатель', 'плательщик'],
    'note': ['примечание', 'комментарий', 'описание', 'назначение'],
}

# Substrings of the reference "Группа" column
GROUP_INCOME = 'поступление'
GROUP_EXPENSE = 'выбытие'

# Article name fragments that mean money coming in
INCOME_ARTICLE_KEYWORDS = ['поступлени', 'доход', 'вклад', 'получени']


def find_column_index(headers, *keywords):
    """
    Find the first column whose normalized header contains a keyword.

    Keywords are tried in order, so earlier keywords take precedence over
    column position.

    Args:
        headers (list): Header texts
        *keywords (str): Candidate substrings, most specific first

    Returns:
        int: Column index, or -1 when no keyword matches
    """
    normalized = [normalize_header(h) for h in headers]
    for kw in keywords:
        kw_lower = kw.lower()
        for idx, h in enumerate(normalized):
            if kw_lower in h:
                return idx
    return -1


def resolve_columns(headers, candidates):
    """Map each field of a candidates table to its column index (-1 if absent)."""
    return {name: find_column_index(headers, *keywords) for name, keywords in candidates.items()}


def get_direction(article, articles):
    """
    Infer whether a transaction is income or expense.

    The article is looked up (case and whitespace insensitive) in the
    cash-flow article dictionary. The dictionary group decides only when it
    clearly says "поступление" or "выбытие"; otherwise the article name is
    checked for income keywords.

    Args:
        article (str): Article text of the transaction
        articles (list): ArticleDDS entries

    Returns:
        str: 'in' or 'out'
    """
    if not article:
        return DIRECTION_OUT

    key = article.lower().strip()
    found = next((a for a in articles if a.name.lower().strip() == key), None)

    if found is not None:
        group = found.group.lower()
        if GROUP_INCOME in group:
            return DIRECTION_IN
        if GROUP_EXPENSE in group:
            return DIRECTION_OUT

    lower = article.lower()
    if any(kw in lower for kw in INCOME_ARTICLE_KEYWORDS):
        return DIRECTION_IN
    return DIRECTION_OUT


def _cell(row, idx):
    if idx == -1 or idx >= len(row):
        return None
    return row[idx]


def _text(row, idx):
    return cell_text(_cell(row, idx))


def _data_rows(grid, header_row_index):
    for row in grid[header_row_index + 1:]:
        yield row or []


def _headers(grid, header_row_index):
    return [cell_text(h) for h in grid[header_row_index] or []]


def parse_cash_journal(grid, sheet_name, source_name, articles, header_row_index, next_id):
    """
    Extract transactions from a cash journal sheet.

    Args:
        grid (list): Rows of raw cell values
        sheet_name (str): Sheet name
        source_name (str): Name of the file/source the sheet belongs to
        articles (list): ArticleDDS entries used for direction inference
        header_row_index (int): Index of the header row
        next_id (callable): Transaction id generator

    Returns:
        list: Transaction records
    """
    if len(grid) < header_row_index + 2:
        return []

    cols = resolve_columns(_headers(grid, header_row_index), CASH_COLUMNS)
    logger.debug(f"Cash journal {sheet_name!r} columns: {cols}")

    transactions = []
    for row in _data_rows(grid, header_row_index):
        date = parse_date(_cell(row, cols['date']))
        amount = parse_amount(_cell(row, cols['amount']))
        article = _text(row, cols['article'])

        # Blank rows, repeated headers and subtotals
        if not date and not amount and not article:
            continue
        if amount == 0:
            continue

        transactions.append(new_transaction(
            next_id,
            date=date,
            source=source_name,
            sheet=sheet_name,
            sheet_type=SheetType.CASH_JOURNAL,
            wallet=_text(row, cols['wallet']),
            amount=amount,
            direction=get_direction(article, articles),
            note=_text(row, cols['note']),
            branch=_text(row, cols['branch']),
            counterparty=_text(row, cols['counterparty']),
            article=article,
            accrual_month=_text(row, cols['accrual_month']),
        ))

    logger.info(f"Cash journal {sheet_name!r}: {len(transactions)} transactions")
    return transactions


def parse_bank_journal(grid, sheet_name, source_name, articles, header_row_index, next_id):
    """
    Extract transactions from a settlement-account (bank) journal sheet.

    Outflows take the counterparty from the debit analytics column
    ("Аналитика Дт"), inflows from the credit analytics column
    ("Аналитика Кт").

    Args:
        grid (list): Rows of raw cell values
        sheet_name (str): Sheet name
        source_name (str): Name of the file/source the sheet belongs to
        articles (list): ArticleDDS entries used for direction inference
        header_row_index (int): Index of the header row
        next_id (callable): Transaction id generator

    Returns:
        list: Transaction records
    """
    if len(grid) < header_row_index + 2:
        return []

    cols = resolve_columns(_headers(grid, header_row_index), BANK_COLUMNS)
    logger.debug(f"Bank journal {sheet_name!r} columns: {cols}")

    transactions = []
    for row in _data_rows(grid, header_row_index):
        date = parse_date(_cell(row, cols['date']))
        amount = parse_amount(_cell(row, cols['amount']))
        article = _text(row, cols['article'])

        if not date and not amount and not article:
            continue
        if amount == 0:
            continue

        direction = get_direction(article, articles)
        if direction == DIRECTION_OUT:
            counterparty = _text(row, cols['debit_analytics'])
        else:
            counterparty = _text(row, cols['credit_analytics'])

        transactions.append(new_transaction(
            next_id,
            date=date,
            source=source_name,
            sheet=sheet_name,
            sheet_type=SheetType.BANK_JOURNAL,
            amount=amount,
            direction=direction,
            counterparty=counterparty,
            article=article,
            accrual_month=_text(row, cols['accrual_month']),
            document=_text(row, cols['document']),
        ))

    logger.info(f"Bank journal {sheet_name!r}: {len(transactions)} transactions")
    return transactions


def parse_fallback_sheet(grid, sheet_name, source_name, articles, header_row_index, next_id):
    """
    Extract transactions from a sheet that matched no known layout.

    The sheet needs at least a date or an amount column; otherwise nothing
    is extracted. Rows are recorded as cash-journal transactions.

    Returns:
        list: Transaction records ([] when the sheet has no usable columns)
    """
    if len(grid) < header_row_index + 2:
        return []

    cols = resolve_columns(_headers(grid, header_row_index), FALLBACK_COLUMNS)
    if cols['date'] == -1 and cols['amount'] == -1:
        logger.debug(f"Sheet {sheet_name!r} has no date or amount column")
        return []

    transactions = []
    for row in _data_rows(grid, header_row_index):
        date = parse_date(_cell(row, cols['date']))
        amount = parse_amount(_cell(row, cols['amount']))
        article = _text(row, cols['article'])

        if not date and not amount:
            continue
        if amount == 0:
            continue

        transactions.append(new_transaction(
            next_id,
            date=date,
            source=source_name,
            sheet=sheet_name,
            sheet_type=SheetType.CASH_JOURNAL,
            amount=amount,
            direction=get_direction(article, articles),
            note=_text(row, cols['note']),
            counterparty=_text(row, cols['counterparty']),
            article=article,
        ))

    logger.info(f"Fallback sheet {sheet_name!r}: {len(transactions)} transactions")
    return transactions


EXTRACTORS = {
    SheetType.CASH_JOURNAL: parse_cash_journal,
    SheetType.BANK_JOURNAL: parse_bank_journal,
}
