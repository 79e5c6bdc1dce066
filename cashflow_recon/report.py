"""
Filtering and aggregate reports over the reconciled ledger.

Filters combine with AND; an empty collection for a dimension means no
restriction. Grouped reports are computed with pandas and return one row
per group with income, expense and balance totals.
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, time
from typing import Optional

import pandas as pd

from .counterparty import NOT_IN_DICTIONARY, clean_counterparty
from .models import DIRECTION_IN, DIRECTION_OUT

logger = logging.getLogger(__name__)

DIRECTION_ALL = 'all'

NO_COUNTERPARTY_LABEL = '(не указан)'
NO_ARTICLE_LABEL = '(без статьи)'

GROUP_MODES = ['article', 'counterparty', 'counterparty-article', 'article-counterparty']

REPORT_COLUMNS = ['label', 'sub_label', 'count', 'income', 'expense', 'balance']

TRANSACTION_COLUMNS = [
    'id', 'date', 'source', 'sheet', 'sheet_type', 'wallet', 'amount', 'direction',
    'note', 'branch', 'counterparty', 'article', 'accrual_month', 'document',
]


@dataclass
class Filters:
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    articles: set = field(default_factory=set)
    branches: set = field(default_factory=set)
    counterparties: set = field(default_factory=set)
    sheets: set = field(default_factory=set)
    direction: str = DIRECTION_ALL


def _as_datetime(value):
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def _end_of_day(value):
    day = value.date() if isinstance(value, datetime) else value
    return datetime.combine(day, time.max)


def apply_filters(transactions, filters):
    """
    Filter transactions.

    Args:
        transactions (list): Transaction records
        filters (Filters): Active filters; date_to is inclusive up to
            the end of that day

    Returns:
        list: Matching transactions in their original order
    """
    if filters.direction not in (DIRECTION_ALL, DIRECTION_IN, DIRECTION_OUT):
        raise ValueError(f"Invalid direction filter: {filters.direction}")

    date_from = _as_datetime(filters.date_from) if filters.date_from else None
    date_to = _end_of_day(filters.date_to) if filters.date_to else None

    result = []
    for t in transactions:
        if date_from and t.date < date_from:
            continue
        if date_to and t.date > date_to:
            continue
        if filters.articles and t.article not in filters.articles:
            continue
        if filters.branches and t.branch not in filters.branches:
            continue
        if filters.counterparties and t.counterparty not in filters.counterparties:
            continue
        if filters.sheets and t.sheet not in filters.sheets:
            continue
        if filters.direction != DIRECTION_ALL and t.direction != filters.direction:
            continue
        result.append(t)
    return result


def transactions_to_frame(transactions):
    """
    Convert transactions to a DataFrame.

    Args:
        transactions (list): Transaction records

    Returns:
        pd.DataFrame: One row per transaction with TRANSACTION_COLUMNS
    """
    if not transactions:
        return pd.DataFrame(columns=TRANSACTION_COLUMNS)
    df = pd.DataFrame([asdict(t) for t in transactions], columns=TRANSACTION_COLUMNS)
    df['sheet_type'] = df['sheet_type'].astype(str)
    df['date'] = pd.to_datetime(df['date'])
    return df


def group_transactions(transactions, mode='counterparty-article', sort_by='expense', ascending=False):
    """
    Aggregate transactions by counterparty and/or article.

    Counterparty labels pass through clean_counterparty; empty values are
    labelled '(не указан)' and '(без статьи)'.

    Args:
        transactions (list): Transaction records
        mode (str): One of GROUP_MODES
        sort_by (str): Report column to sort by
        ascending (bool): Sort direction

    Returns:
        pd.DataFrame: REPORT_COLUMNS; sub_label is '' for single-level modes

    Raises:
        ValueError: If mode or sort_by is invalid
    """
    if mode not in GROUP_MODES:
        raise ValueError(f"Invalid group mode: {mode}. Expected one of: {GROUP_MODES}")
    if sort_by not in REPORT_COLUMNS:
        raise ValueError(f"Invalid sort column: {sort_by}. Expected one of: {REPORT_COLUMNS}")

    df = transactions_to_frame(transactions)
    if df.empty:
        return pd.DataFrame(columns=REPORT_COLUMNS)

    df['counterparty_label'] = df['counterparty'].map(lambda c: clean_counterparty(c) or NO_COUNTERPARTY_LABEL)
    df['article_label'] = df['article'].map(lambda a: a or NO_ARTICLE_LABEL)
    df['income'] = df['amount'].where(df['direction'] == DIRECTION_IN, 0.0)
    df['expense'] = df['amount'].where(df['direction'] == DIRECTION_OUT, 0.0)

    if mode == 'article':
        df['label'], df['sub_label'] = df['article_label'], ''
    elif mode == 'counterparty':
        df['label'], df['sub_label'] = df['counterparty_label'], ''
    elif mode == 'counterparty-article':
        df['label'], df['sub_label'] = df['counterparty_label'], df['article_label']
    else:
        df['label'], df['sub_label'] = df['article_label'], df['counterparty_label']

    grouped = (
        df.groupby(['label', 'sub_label'], sort=False)
        .agg(count=('amount', 'size'), income=('income', 'sum'), expense=('expense', 'sum'))
        .reset_index()
    )
    grouped['balance'] = grouped['income'] - grouped['expense']
    grouped = grouped[REPORT_COLUMNS].sort_values(sort_by, ascending=ascending, kind='stable')
    return grouped.reset_index(drop=True)


def format_report_summary(transactions):
    """
    Format a text summary of a set of transactions.

    Args:
        transactions (list): Transaction records

    Returns:
        str: Summary lines
    """
    income = sum(t.amount for t in transactions if t.direction == DIRECTION_IN)
    expense = sum(t.amount for t in transactions if t.direction == DIRECTION_OUT)
    missing = sum(1 for t in transactions if t.counterparty == NOT_IN_DICTIONARY)

    summary = [
        f"Total Transactions: {len(transactions)}",
        f"Income: {income:,.2f}",
        f"Expense: {expense:,.2f}",
        f"Balance: {income - expense:,.2f}",
        f"Counterparties not in dictionary: {missing}",
    ]
    return "\n".join(summary)
