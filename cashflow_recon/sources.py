"""
Loaded data sources and the ingestion session.

A ``LedgerSession`` holds every loaded source (uploaded file or Google
Sheets export) and recomputes the combined ledger on demand. Counterparty
dictionary membership is global across sources, so the resolution pass is
rerun over all transactions every time ``all_transactions`` is called.

A source that fails to load is kept with ``status='error'`` and its
message; it never affects the other sources.
"""

import os
import re
import logging
import itertools
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional

import requests

from .counterparty import build_counterparty_dictionary, resolve_counterparty_name
from .models import ArticleDDS, CounterpartyRef, IdGenerator, SheetType, insert_if_absent
from .profiler import column_values
from .utils import get_fetch_timeout
from .workbook import WorkbookError, parse_workbook_bytes

logger = logging.getLogger(__name__)

STATUS_LOADING = 'loading'
STATUS_READY = 'ready'
STATUS_ERROR = 'error'

SOURCE_FILE = 'file'
SOURCE_GOOGLE_SHEETS = 'google_sheets'

SUPPORTED_EXTENSIONS = ['.xlsx', '.csv']

GOOGLE_EXPORT_URL = 'https://docs.google.com/spreadsheets/d/{spreadsheet_id}/export?format=xlsx'
_RE_SPREADSHEET_ID = re.compile(r'/spreadsheets/d/([a-zA-Z0-9_-]+)')


class SourceFetchError(WorkbookError):
    """Raised when a remote spreadsheet cannot be downloaded."""


@dataclass
class DataSource:
    id: str
    name: str
    type: str = SOURCE_FILE
    url: Optional[str] = None
    status: str = STATUS_LOADING
    error: Optional[str] = None
    sheets: list = field(default_factory=list)
    transactions: list = field(default_factory=list)
    articles: List[ArticleDDS] = field(default_factory=list)
    counterparties: List[CounterpartyRef] = field(default_factory=list)
    sheet_profiles: list = field(default_factory=list)


def extract_spreadsheet_id(url):
    """
    Extract the spreadsheet id from a Google Sheets link.

    Args:
        url (str): Link like https://docs.google.com/spreadsheets/d/<id>/edit

    Returns:
        str or None: Spreadsheet id, None when the link has no id
    """
    match = _RE_SPREADSHEET_ID.search(url or '')
    return match.group(1) if match else None


def fetch_google_sheet(url, timeout=None):
    """
    Download a Google Sheets document as .xlsx.

    Args:
        url (str): Google Sheets link
        timeout (float, optional): Request timeout in seconds; defaults to
            CASHFLOW_FETCH_TIMEOUT

    Returns:
        tuple: (display_name, xlsx_bytes)

    Raises:
        SourceFetchError: If the link has no spreadsheet id or the download fails
    """
    spreadsheet_id = extract_spreadsheet_id(url)
    if not spreadsheet_id:
        raise SourceFetchError(
            "Could not extract the spreadsheet id from the link. Expected "
            "https://docs.google.com/spreadsheets/d/SPREADSHEET_ID/..."
        )

    export_url = GOOGLE_EXPORT_URL.format(spreadsheet_id=spreadsheet_id)
    timeout = timeout if timeout is not None else get_fetch_timeout()
    logger.info(f"Downloading Google Sheet {spreadsheet_id}")
    try:
        response = requests.get(export_url, timeout=timeout)
    except requests.RequestException as e:
        raise SourceFetchError(f"Could not download the spreadsheet: {str(e)}")

    if response.status_code != 200:
        raise SourceFetchError(
            f"Could not download the spreadsheet (HTTP {response.status_code}). "
            "Make sure the sheet is shared by link."
        )

    return f"Google Sheet ({spreadsheet_id[:8]}...)", response.content


class LedgerSession:
    """Loaded sources plus the derived, reconciled ledger."""

    def __init__(self, next_id=None):
        self.sources: List[DataSource] = []
        self.next_id = next_id or IdGenerator()
        self._source_counter = itertools.count(1)

    def _new_source_id(self):
        return f"src_{next(self._source_counter)}_{int(time.time() * 1000)}"

    def get_source(self, source_id):
        """Return the source with the given id, or None."""
        return next((s for s in self.sources if s.id == source_id), None)

    def ready_sources(self):
        return [s for s in self.sources if s.status == STATUS_READY]

    def _load(self, name, source_type, loader, url=None):
        source = DataSource(id=self._new_source_id(), name=name, type=source_type, url=url)
        self.sources.append(source)

        try:
            result = loader()
        except WorkbookError as e:
            logger.error(f"Error loading source {name!r}: {str(e)}")
            source.status = STATUS_ERROR
            source.error = str(e)
            return source
        except Exception as e:
            logger.exception(f"Unexpected error loading source {name!r}")
            source.status = STATUS_ERROR
            source.error = f"Unexpected error: {str(e)}"
            return source

        for sheet in result.sheets:
            sheet.source_id = source.id
        source.name = result.name
        source.sheets = result.sheets
        source.transactions = result.transactions
        source.articles = result.articles
        source.counterparties = result.counterparties
        source.sheet_profiles = result.sheet_profiles
        source.status = STATUS_READY
        return source

    def add_bytes(self, data, name, source_type=SOURCE_FILE, url=None):
        """
        Load a source from raw workbook bytes.

        Args:
            data (bytes): .xlsx or .csv contents
            name (str): Display name (usually the file name)

        Returns:
            DataSource: The new source, 'ready' or 'error'
        """
        return self._load(name, source_type,
                          lambda: parse_workbook_bytes(data, name, next_id=self.next_id), url=url)

    def add_file(self, file_path):
        """
        Load a source from a file on disk.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the path is a directory or has an unsupported extension
        """
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")
        if os.path.isdir(file_path):
            raise ValueError("Path is a directory")
        _, ext = os.path.splitext(file_path)
        if ext.lower() not in SUPPORTED_EXTENSIONS:
            raise ValueError(f"Unsupported file format: {ext}")

        with open(file_path, 'rb') as f:
            data = f.read()
        return self.add_bytes(data, os.path.basename(file_path))

    def add_google_sheet(self, url):
        """Load a source from a shared Google Sheets link."""
        def loader():
            name, data = fetch_google_sheet(url)
            return parse_workbook_bytes(data, name, next_id=self.next_id)

        return self._load('Google Sheet', SOURCE_GOOGLE_SHEETS, loader, url=url)

    def remove_source(self, source_id):
        self.sources = [s for s in self.sources if s.id != source_id]

    def toggle_sheet_selection(self, source_id, sheet_name):
        source = self.get_source(source_id)
        if source is None:
            return
        for sheet in source.sheets:
            if sheet.name == sheet_name:
                sheet.selected = not sheet.selected

    def set_all_sheets_selection(self, source_id, selected):
        """Select or deselect every journal sheet of a source."""
        source = self.get_source(source_id)
        if source is None:
            return
        for sheet in source.sheets:
            if sheet.type not in (SheetType.REFERENCE, SheetType.UNKNOWN):
                sheet.selected = selected

    def apply_reference_from_column(self, source_id, sheet_name, column_name, target='counterparties'):
        """
        Replace a source's reference list with the values of a profiled column.

        Used when a reference sheet was not detected automatically.

        Args:
            source_id (str): Source holding the sheet
            sheet_name (str): Sheet name
            column_name (str): Column name as listed in the sheet profile
            target (str): 'counterparties' or 'articles'

        Returns:
            int: Number of loaded entries

        Raises:
            ValueError: If the target is unknown, the source or sheet cannot
                be found, or the column has no values
        """
        if target not in ('counterparties', 'articles'):
            raise ValueError(f"Invalid reference target: {target}")

        source = self.get_source(source_id)
        if source is None or source.status != STATUS_READY:
            raise ValueError(f"Source not found: {source_id}")
        profile = next((p for p in source.sheet_profiles if p.sheet_name == sheet_name), None)
        if profile is None:
            raise ValueError(f"Sheet not found: {sheet_name}")

        values = column_values(profile, column_name)
        if not values:
            raise ValueError(f"Column {column_name!r} has no values")

        if target == 'counterparties':
            source.counterparties = [CounterpartyRef(name=v) for v in values]
        else:
            source.articles = [ArticleDDS(name=v) for v in values]
        logger.info(f"Loaded {len(values)} {target} from {sheet_name!r}/{column_name!r}")
        return len(values)

    def selected_sheets(self):
        """(source_id, sheet_name) pairs of the selected sheets of ready sources."""
        return {
            (source.id, sheet.name)
            for source in self.ready_sources()
            for sheet in source.sheets
            if sheet.selected
        }

    def all_transactions(self):
        """
        Combined ledger of all ready sources with resolved counterparties.

        Only transactions from selected sheets are included. The returned
        records are copies; the extracted originals keep the raw
        counterparty text.

        Returns:
            list: Transaction records
        """
        selected = self.selected_sheets()
        dictionary = build_counterparty_dictionary(self.sources)
        return [
            replace(t, counterparty=resolve_counterparty_name(t.counterparty, dictionary))
            for source in self.ready_sources()
            for t in source.transactions
            if (source.id, t.sheet) in selected
        ]

    def all_articles(self):
        merged = {}
        for source in self.ready_sources():
            for article in source.articles:
                insert_if_absent(merged, article.name, article)
        return list(merged.values())

    def all_counterparties(self):
        merged = {}
        for source in self.ready_sources():
            for ref in source.counterparties:
                insert_if_absent(merged, ref.name, ref)
        return list(merged.values())


def unique_values(transactions, attribute):
    """Sorted distinct non-empty values of one transaction attribute."""
    return sorted({getattr(t, attribute) for t in transactions if getattr(t, attribute)})
