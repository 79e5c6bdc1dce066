"""
Per-sheet column profiles.

A profile lists the columns of a sheet together with a sample of their
distinct values. Callers use it to pick a column by hand when a reference
sheet was not detected automatically.
"""

import logging

from .models import SheetProfile
from .parsers import cell_text
from .utils import column_letter

logger = logging.getLogger(__name__)

MAX_PROFILE_VALUES = 300
BLANK_COLUMN_LABEL = 'Колонка'


def profile_columns(header_row):
    """
    Build unique column names for a header row.

    Blank headers become 'Колонка <letter>'; a repeated header gets its
    column letter appended, e.g. 'Сумма (D)'.

    Args:
        header_row (list): Raw header cells

    Returns:
        list: Column names, one per header cell
    """
    headers = [
        cell_text(h) or f"{BLANK_COLUMN_LABEL} {column_letter(idx)}"
        for idx, h in enumerate(header_row)
    ]
    columns = []
    for idx, h in enumerate(headers):
        if headers.index(h) == idx:
            columns.append(h)
        else:
            columns.append(f"{h} ({column_letter(idx)})")
    return columns


def build_sheet_profile(grid, header_row_index, sheet_name=''):
    """
    Profile the columns of a sheet.

    Args:
        grid (list): Rows of raw cell values
        header_row_index (int): Index of the header row
        sheet_name (str): Sheet name recorded on the profile

    Returns:
        SheetProfile: Columns and up to 300 distinct values per column in
            first-seen order
    """
    header_row = grid[header_row_index] if header_row_index < len(grid) else []
    columns = profile_columns(header_row or [])

    buckets = {col: {} for col in columns}
    for row in grid[header_row_index + 1:]:
        row = row or []
        for c, column in enumerate(columns):
            if c >= len(row):
                break
            value = cell_text(row[c])
            if value:
                # dict keeps first-seen order and gives O(1) membership
                buckets[column].setdefault(value, None)

    values_by_column = {col: list(values)[:MAX_PROFILE_VALUES] for col, values in buckets.items()}
    return SheetProfile(sheet_name=sheet_name, columns=columns, values_by_column=values_by_column)


def column_values(profile, column_name):
    """
    Distinct non-blank values of one profiled column.

    Args:
        profile (SheetProfile): Sheet profile
        column_name (str): Column name as listed in profile.columns

    Returns:
        list: Trimmed, de-duplicated values in profile order ([] for an unknown column)
    """
    seen = {}
    for value in profile.values_by_column.get(column_name, []):
        value = str(value or '').strip()
        if value:
            seen.setdefault(value, None)
    return list(seen)
