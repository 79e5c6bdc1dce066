"""
Cash-flow Recon - unified ledger from clinic cash and bank journals.

This package provides functionality to:
- Read journal workbooks (.xlsx, .csv, Google Sheets exports)
- Find header rows and classify sheets (cash journal, bank journal, reference)
- Extract transactions into one unified ledger
- Reconcile free-text counterparty names against reference dictionaries
- Filter the ledger and build grouped income/expense reports

Each transaction carries:
- date, source (file), sheet and sheet type
- amount (never negative) and direction ('in' or 'out')
- wallet, branch, note, article, accrual month, document
- counterparty (raw after extraction, resolved by LedgerSession)
"""

from .counterparty import (
    NOT_IN_DICTIONARY,
    build_counterparty_dictionary,
    clean_counterparty,
    resolve_counterparty_name,
)
from .detector import classify_sheet, detect_sheet_type, find_header_row
from .extractors import get_direction, parse_bank_journal, parse_cash_journal, parse_fallback_sheet
from .models import ArticleDDS, CounterpartyRef, IdGenerator, SheetType, Transaction
from .parsers import parse_amount, parse_date
from .profiler import build_sheet_profile
from .reference import parse_reference_sheet
from .report import Filters, apply_filters, group_transactions
from .sources import DataSource, LedgerSession
from .workbook import WorkbookError, parse_workbook, parse_workbook_bytes, read_workbook

__all__ = [
    'NOT_IN_DICTIONARY',
    'build_counterparty_dictionary',
    'clean_counterparty',
    'resolve_counterparty_name',
    'classify_sheet',
    'detect_sheet_type',
    'find_header_row',
    'get_direction',
    'parse_bank_journal',
    'parse_cash_journal',
    'parse_fallback_sheet',
    'ArticleDDS',
    'CounterpartyRef',
    'IdGenerator',
    'SheetType',
    'Transaction',
    'parse_amount',
    'parse_date',
    'build_sheet_profile',
    'parse_reference_sheet',
    'Filters',
    'apply_filters',
    'group_transactions',
    'DataSource',
    'LedgerSession',
    'WorkbookError',
    'parse_workbook',
    'parse_workbook_bytes',
    'read_workbook',
]
