"""
Workbook decoding and the per-source ingestion pipeline.

``read_workbook`` turns raw file bytes (.xlsx or .csv) into one grid per
visible sheet. ``parse_workbook`` runs every grid through header detection
and classification, reads the reference sheets first so their article
dictionary is available for direction inference, and then extracts the
journals.
"""

import io
import csv
import logging
import zipfile
from dataclasses import dataclass, field
from typing import List

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from .detector import classify_sheet
from .extractors import EXTRACTORS, parse_fallback_sheet
from .models import IdGenerator, ParsedSheet, SheetType
from .parsers import is_blank
from .profiler import build_sheet_profile
from .reference import parse_reference_sheet

logger = logging.getLogger(__name__)

CSV_ENCODINGS = ['utf-8-sig', 'utf-8', 'cp1251']
CSV_DELIMITERS = ';,\t'
CSV_SHEET_NAME = 'Sheet1'

_ZIP_MAGIC = b'PK\x03\x04'
_OLE_MAGIC = b'\xd0\xcf\x11\xe0'


class WorkbookError(ValueError):
    """Raised when workbook bytes cannot be decoded into sheets."""


@dataclass
class WorkbookResult:
    name: str
    sheets: List[ParsedSheet] = field(default_factory=list)
    sheet_profiles: list = field(default_factory=list)
    transactions: list = field(default_factory=list)
    articles: list = field(default_factory=list)
    counterparties: list = field(default_factory=list)


def _trim_grid(rows):
    """Drop trailing rows that hold no values."""
    grid = [list(row) for row in rows]
    while grid and all(is_blank(v) for v in grid[-1]):
        grid.pop()
    return grid


def _read_xlsx(data):
    try:
        wb = openpyxl.load_workbook(io.BytesIO(data), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise WorkbookError(f"Could not read workbook: {str(e)}")

    worksheets = wb.worksheets
    visible = [ws for ws in worksheets if ws.sheet_state == 'visible']
    if visible:
        hidden = len(worksheets) - len(visible)
        if hidden:
            logger.info(f"Skipping {hidden} hidden sheet(s)")
        worksheets = visible

    sheets = [(ws.title, _trim_grid(ws.iter_rows(values_only=True))) for ws in worksheets]
    wb.close()
    return sheets


def _read_csv(data):
    text = None
    for encoding in CSV_ENCODINGS:
        try:
            text = data.decode(encoding)
            logger.debug(f"Decoded CSV with encoding: {encoding}")
            break
        except UnicodeDecodeError:
            continue
    if text is None:
        raise WorkbookError("Could not read CSV file with any supported encoding")

    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=CSV_DELIMITERS)
        delimiter = dialect.delimiter
    except csv.Error:
        delimiter = ';' if text.count(';') > text.count(',') else ','

    reader = csv.reader(io.StringIO(text, newline=''), delimiter=delimiter, quotechar='"')
    return [(CSV_SHEET_NAME, _trim_grid(reader))]


def read_workbook(data):
    """
    Decode workbook bytes into sheet grids.

    Args:
        data (bytes): Raw .xlsx or .csv file contents

    Returns:
        list: (sheet_name, grid) pairs for the visible sheets; when every
            sheet is hidden, all sheets are returned

    Raises:
        WorkbookError: If the bytes are empty, in an unsupported format or
            cannot be decoded, or the workbook has no sheets
    """
    if not data:
        raise WorkbookError("File is empty")

    if data.startswith(_OLE_MAGIC):
        raise WorkbookError("Legacy .xls workbooks are not supported, save the file as .xlsx")

    reader = _read_xlsx if data.startswith(_ZIP_MAGIC) else _read_csv
    try:
        sheets = reader(data)
    except WorkbookError:
        raise
    except Exception as e:
        # Malformed sheet XML or CSV fields surface while the grids are read
        raise WorkbookError(f"Could not read workbook: {str(e)}") from e

    if not sheets:
        raise WorkbookError("Workbook has no sheets")
    return sheets


def parse_workbook(sheets, source_name, next_id=None):
    """
    Run the ingestion pipeline over decoded sheets.

    Args:
        sheets (list): (sheet_name, grid) pairs from read_workbook
        source_name (str): Display name of the source (file name)
        next_id (callable, optional): Transaction id generator. A fresh
            IdGenerator is used when omitted.

    Returns:
        WorkbookResult: Sheet summaries, profiles, transactions and the
            reference dictionaries of the source
    """
    next_id = next_id or IdGenerator()
    result = WorkbookResult(name=source_name)

    classified = []
    for sheet_name, grid in sheets:
        if not grid:
            logger.debug(f"Skipping empty sheet {sheet_name!r}")
            continue
        classification = classify_sheet(grid, sheet_name)
        classified.append((sheet_name, grid, classification))
        result.sheet_profiles.append(
            build_sheet_profile(grid, classification.header_row_index, sheet_name=sheet_name)
        )

    # References first: journals need the article dictionary
    for sheet_name, grid, classification in classified:
        if classification.type != SheetType.REFERENCE:
            continue
        result.articles, result.counterparties = parse_reference_sheet(grid, classification.header_row_index)
        row_count = len(grid) - classification.header_row_index - 1
        result.sheets.append(ParsedSheet.create(sheet_name, SheetType.REFERENCE, row_count, source_name))

    for sheet_name, grid, classification in classified:
        if classification.type == SheetType.REFERENCE:
            continue

        extractor = EXTRACTORS.get(classification.type)
        if extractor is not None:
            transactions = extractor(grid, sheet_name, source_name, result.articles,
                                     classification.header_row_index, next_id)
            sheet_type = classification.type
        else:
            transactions = parse_fallback_sheet(grid, sheet_name, source_name, result.articles,
                                                classification.header_row_index, next_id)
            sheet_type = SheetType.CASH_JOURNAL if transactions else SheetType.UNKNOWN

        result.transactions.extend(transactions)
        result.sheets.append(ParsedSheet.create(sheet_name, sheet_type, len(transactions), source_name))

    logger.info(
        f"Parsed {source_name!r}: {len(result.sheets)} sheets, {len(result.transactions)} transactions, "
        f"{len(result.articles)} articles, {len(result.counterparties)} counterparties"
    )
    return result


def parse_workbook_bytes(data, source_name, next_id=None):
    """Decode workbook bytes and run the ingestion pipeline over them."""
    return parse_workbook(read_workbook(data), source_name, next_id=next_id)
