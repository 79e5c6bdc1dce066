"""
Utility functions for the cash-flow ledger.

This module contains helpers shared across the package that are not
themselves part of sheet parsing or counterparty matching.
"""

import os
import re
import logging

logger = logging.getLogger(__name__)

_RE_WHITESPACE = re.compile(r'\s+')


def setup_logging(debug=False, log_level='info'):
    """Configure logging for the application."""
    # Determine log level
    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    # Get log file path from environment or use default
    log_file = os.getenv('LOG_FILE', 'cashflow_recon.log')

    # Create log directory if needed
    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    # Set up logging to file and console
    logging.basicConfig(
        level=level,
        format=format,
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler()
        ]
    )

    return log_file


def normalize_header(text):
    """
    Normalize a header or cell text for keyword matching.

    Args:
        text (str or None): Raw header text

    Returns:
        str: Lowercased text with newlines and runs of whitespace collapsed
    """
    return _RE_WHITESPACE.sub(' ', (text or '').lower().replace('\n', ' ')).strip()


def column_letter(index):
    """
    Convert a zero-based column index to a spreadsheet column letter.

    Args:
        index (int): Zero-based column index

    Returns:
        str: Column letter ('A', 'Z', 'AA', ...)
    """
    n = index + 1
    out = ''
    while n > 0:
        rem = (n - 1) % 26
        out = chr(65 + rem) + out
        n = (n - 1) // 26
    return out


def get_fetch_timeout():
    """Seconds to wait for a remote spreadsheet download."""
    raw = os.getenv('CASHFLOW_FETCH_TIMEOUT', '30')
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid CASHFLOW_FETCH_TIMEOUT value: {raw!r}, using 30")
        return 30.0
