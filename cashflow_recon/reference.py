"""
Reference sheet parsing.

A reference sheet ("справочник") may hold the cash-flow article dictionary
(article, group, activity type, comment) and/or a counterparty list,
usually side by side on the same sheet.
"""

import logging

from .models import ArticleDDS, CounterpartyRef
from .parsers import cell_text
from .utils import normalize_header

logger = logging.getLogger(__name__)

ARTICLE_HEADER = 'статья ддс'
GROUP_HEADER = 'группа'
ACTIVITY_HEADER = 'вид деятельности'
COMMENT_HEADER = 'комментарий'
COUNTERPARTY_REFERENCE_HEADER = 'справочник контрагентов'
COUNTERPARTY_HEADER = 'контрагент'

# Values containing this word are captions, not counterparties
REFERENCE_LABEL = 'справочник'


def _first_index(headers, keyword):
    return next((i for i, h in enumerate(headers) if keyword in h), -1)


def _value(row, idx):
    if idx == -1 or idx >= len(row):
        return ''
    return cell_text(row[idx])


def parse_reference_sheet(grid, header_row_index):
    """
    Extract articles and counterparties from a reference sheet.

    Either list may be empty; a missing article column does not prevent the
    counterparty column from being read and vice versa.

    Args:
        grid (list): Rows of raw cell values
        header_row_index (int): Index of the header row

    Returns:
        tuple: (articles, counterparties) as lists of ArticleDDS and CounterpartyRef
    """
    articles = []
    counterparties = []

    if len(grid) <= header_row_index:
        return articles, counterparties

    headers = [normalize_header(cell_text(h)) for h in grid[header_row_index] or []]

    article_col = _first_index(headers, ARTICLE_HEADER)
    group_col = _first_index(headers, GROUP_HEADER)
    activity_col = _first_index(headers, ACTIVITY_HEADER)
    comment_col = _first_index(headers, COMMENT_HEADER)

    # An explicit "справочник контрагентов" column wins over any "контрагент" column
    counterparty_col = _first_index(headers, COUNTERPARTY_REFERENCE_HEADER)
    if counterparty_col == -1:
        counterparty_col = _first_index(headers, COUNTERPARTY_HEADER)

    for row in grid[header_row_index + 1:]:
        row = row or []

        if article_col != -1:
            name = _value(row, article_col)
            if name:
                articles.append(ArticleDDS(
                    name=name,
                    group=_value(row, group_col),
                    activity_type=_value(row, activity_col),
                    comment=_value(row, comment_col),
                ))

        if counterparty_col != -1:
            name = _value(row, counterparty_col)
            if name and REFERENCE_LABEL not in name.lower():
                counterparties.append(CounterpartyRef(name=name))

    logger.info(f"Reference sheet: {len(articles)} articles, {len(counterparties)} counterparties")
    return articles, counterparties
