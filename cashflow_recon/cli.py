"""
Command line entrypoint.

Loads one or more workbooks (file paths or Google Sheets links), prints a
summary of every source and sheet, and prints a grouped report of the
filtered, reconciled ledger.
"""

import argparse
import logging
from datetime import datetime

import pandas as pd

from .report import (
    DIRECTION_ALL,
    GROUP_MODES,
    Filters,
    apply_filters,
    format_report_summary,
    group_transactions,
)
from .sources import STATUS_ERROR, LedgerSession
from .utils import setup_logging

logger = logging.getLogger(__name__)


def _parse_cli_date(value):
    try:
        return datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {value}")


def build_parser():
    parser = argparse.ArgumentParser(description='Build a reconciled cash-flow ledger from journal workbooks')
    parser.add_argument('inputs', nargs='+',
                        help='Workbook paths (.xlsx, .csv) or Google Sheets links')
    parser.add_argument('--group-by', choices=GROUP_MODES, default='counterparty-article',
                        help='Grouping of the report')
    parser.add_argument('--direction', choices=[DIRECTION_ALL, 'in', 'out'], default=DIRECTION_ALL,
                        help='Only income or only expense transactions')
    parser.add_argument('--date-from', type=_parse_cli_date, help='First day (YYYY-MM-DD)')
    parser.add_argument('--date-to', type=_parse_cli_date, help='Last day, inclusive (YYYY-MM-DD)')
    parser.add_argument('--sheet', action='append', default=[], help='Restrict to a sheet (repeatable)')
    parser.add_argument('--branch', action='append', default=[], help='Restrict to a branch (repeatable)')
    parser.add_argument('--article', action='append', default=[], help='Restrict to an article (repeatable)')
    parser.add_argument('--counterparty', action='append', default=[],
                        help='Restrict to a resolved counterparty (repeatable)')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    return parser


def load_inputs(session, inputs):
    for item in inputs:
        if item.startswith('http://') or item.startswith('https://'):
            session.add_google_sheet(item)
        else:
            session.add_file(item)


def describe_sources(session):
    lines = []
    for source in session.sources:
        if source.status == STATUS_ERROR:
            lines.append(f"{source.name}: ERROR - {source.error}")
            continue
        lines.append(f"{source.name}: {len(source.transactions)} transactions")
        for sheet in source.sheets:
            lines.append(f"  {sheet.name} [{sheet.type}] rows={sheet.row_count}")
    return "\n".join(lines)


def main(argv=None):
    """Main execution function."""
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        logger.info("Starting ledger build")
        session = LedgerSession()
        load_inputs(session, args.inputs)

        filters = Filters(
            date_from=args.date_from,
            date_to=args.date_to,
            articles=set(args.article),
            branches=set(args.branch),
            counterparties=set(args.counterparty),
            sheets=set(args.sheet),
            direction=args.direction,
        )
        transactions = apply_filters(session.all_transactions(), filters)
        report = group_transactions(transactions, mode=args.group_by)

        print(describe_sources(session))
        print()
        print(format_report_summary(transactions))
        print()
        with pd.option_context('display.max_rows', None, 'display.width', 200):
            print(report.to_string(index=False))
    except Exception as e:
        logger.error(f"Error during ledger build: {str(e)}")
        raise

    return 0


if __name__ == '__main__':
    main()
