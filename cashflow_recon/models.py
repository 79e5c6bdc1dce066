"""
Data model for the cash-flow ledger.

Every record produced by the ingestion pipeline lives here:
- Transaction: one row of a cash or bank journal in unified form
- ArticleDDS: cash-flow article ("статья ДДС") from a reference sheet
- CounterpartyRef: counterparty display name from a reference sheet
- ParsedSheet / SheetProfile: per-sheet summaries for the caller
- CounterpartyDictionary: lookup maps used by the counterparty resolver
"""

import itertools
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

# Stored in place of an unparseable transaction date
EPOCH = datetime(1970, 1, 1)

DIRECTION_IN = 'in'
DIRECTION_OUT = 'out'


class SheetType(str, Enum):
    CASH_JOURNAL = 'cash_journal'
    BANK_JOURNAL = 'bank_journal'
    REFERENCE = 'reference'
    UNKNOWN = 'unknown'

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class SheetClassification:
    header_row_index: int
    headers: List[str]
    type: SheetType


@dataclass
class ArticleDDS:
    name: str
    group: str = ''          # Поступление / Выбытие
    activity_type: str = ''  # Операционная / Инвестиционная / Финансовая
    comment: str = ''


@dataclass
class CounterpartyRef:
    name: str


@dataclass
class Transaction:
    id: str
    date: datetime
    source: str
    sheet: str
    sheet_type: SheetType
    amount: float
    direction: str
    wallet: str = ''
    note: str = ''
    branch: str = ''
    counterparty: str = ''
    article: str = ''
    accrual_month: str = ''
    document: str = ''


@dataclass
class ParsedSheet:
    name: str
    type: SheetType
    row_count: int
    source_id: str = ''
    source_name: str = ''
    selected: bool = True

    @classmethod
    def create(cls, name, sheet_type, row_count, source_name=''):
        """Journals start selected; reference and unknown sheets do not."""
        selected = sheet_type not in (SheetType.REFERENCE, SheetType.UNKNOWN)
        return cls(name=name, type=sheet_type, row_count=row_count,
                   source_name=source_name, selected=selected)


@dataclass
class SheetProfile:
    sheet_name: str
    columns: List[str]
    values_by_column: Dict[str, List[str]]


@dataclass
class CounterpartyDictionary:
    exact_map: Dict[str, str] = field(default_factory=dict)
    token_map: Dict[str, str] = field(default_factory=dict)
    has_references: bool = False


def insert_if_absent(mapping, key, value):
    """Set mapping[key] only if the key is new. Returns True when inserted."""
    if not key or key in mapping:
        return False
    mapping[key] = value
    return True


class IdGenerator:
    """Monotonic transaction id source owned by an ingestion session.

    Ids look like ``tx_<n>_<millis>``; the counter guarantees uniqueness
    within the generator, the timestamp salts ids across runs.
    """

    def __init__(self, prefix='tx', start=1):
        self.prefix = prefix
        self._counter = itertools.count(start)

    def __call__(self) -> str:
        return f"{self.prefix}_{next(self._counter)}_{int(time.time() * 1000)}"


def new_transaction(next_id, **fields) -> Transaction:
    """Build a Transaction, substituting EPOCH for a missing date."""
    date: Optional[datetime] = fields.pop('date', None)
    return Transaction(id=next_id(), date=date or EPOCH, **fields)
