from datetime import date, datetime

import pytest

from cashflow_recon.cli import build_parser, main
from cashflow_recon.counterparty import NOT_IN_DICTIONARY
from cashflow_recon.models import IdGenerator, SheetType, new_transaction
from cashflow_recon.report import (
    REPORT_COLUMNS,
    Filters,
    apply_filters,
    format_report_summary,
    group_transactions,
    transactions_to_frame,
)


@pytest.fixture
def ledger():
    next_id = IdGenerator()

    def make(day, direction, amount, article='', counterparty='', branch='', sheet='Точка Мира'):
        return new_transaction(
            next_id, date=day, source='clinic.xlsx', sheet=sheet, sheet_type=SheetType.CASH_JOURNAL,
            amount=amount, direction=direction, article=article, counterparty=counterparty, branch=branch,
        )

    return [
        make(datetime(2024, 1, 10), 'in', 1000.0, 'Выручка', 'ООО Ромашка', 'Мира'),
        make(datetime(2024, 1, 15), 'out', 300.0, 'Аренда', 'ООО Ромашка', 'Мира'),
        make(datetime(2024, 1, 31, 18, 30), 'out', 500.0, 'Аренда', 'ПАО Сбербанк', 'Леонова', sheet='Р/С Сбер'),
        make(datetime(2024, 2, 1), 'out', 200.0),
        make(datetime(2024, 1, 20), 'out', 100.0, 'Связь', NOT_IN_DICTIONARY, 'Мира'),
    ]


def amounts(transactions):
    return [t.amount for t in transactions]


class TestFilters:
    """Test suite for ledger filters"""

    def test_no_filters(self, ledger):
        """Test empty filters keep everything in order"""
        assert apply_filters(ledger, Filters()) == ledger

    def test_date_to_inclusive(self, ledger):
        """Test the end date covers the whole day"""
        result = apply_filters(ledger, Filters(date_to=datetime(2024, 1, 31)))
        assert amounts(result) == [1000.0, 300.0, 500.0, 100.0]

    def test_date_range_with_dates(self, ledger):
        """Test plain dates as bounds"""
        result = apply_filters(ledger, Filters(date_from=date(2024, 1, 15), date_to=date(2024, 1, 20)))
        assert amounts(result) == [300.0, 100.0]

    def test_direction(self, ledger):
        """Test direction filter"""
        assert amounts(apply_filters(ledger, Filters(direction='in'))) == [1000.0]
        assert len(apply_filters(ledger, Filters(direction='out'))) == 4

    def test_invalid_direction(self, ledger):
        """Test an unknown direction"""
        with pytest.raises(ValueError):
            apply_filters(ledger, Filters(direction='both'))

    def test_dimension_filters(self, ledger):
        """Test article, branch, counterparty and sheet filters"""
        assert amounts(apply_filters(ledger, Filters(articles={'Аренда'}))) == [300.0, 500.0]
        assert amounts(apply_filters(ledger, Filters(branches={'Леонова'}))) == [500.0]
        assert amounts(apply_filters(ledger, Filters(counterparties={'ООО Ромашка'}))) == [1000.0, 300.0]
        assert amounts(apply_filters(ledger, Filters(sheets={'Р/С Сбер'}))) == [500.0]

    def test_filters_combine(self, ledger):
        """Test filters combine with AND"""
        result = apply_filters(ledger, Filters(articles={'Аренда'}, branches={'Мира'}))
        assert amounts(result) == [300.0]


class TestGrouping:
    """Test suite for grouped reports"""

    def test_by_counterparty(self, ledger):
        """Test totals per counterparty sorted by expense"""
        report = group_transactions(ledger, mode='counterparty')

        assert list(report.columns) == REPORT_COLUMNS
        assert list(report['label']) == ['ПАО Сбербанк', 'ООО Ромашка', '(не указан)', NOT_IN_DICTIONARY]
        row = report[report['label'] == 'ООО Ромашка'].iloc[0]
        assert row['count'] == 2
        assert row['income'] == 1000.0
        assert row['expense'] == 300.0
        assert row['balance'] == 700.0
        assert set(report['sub_label']) == {''}

    def test_by_article(self, ledger):
        """Test totals per article"""
        report = group_transactions(ledger, mode='article')
        assert list(report['label']) == ['Аренда', '(без статьи)', 'Связь', 'Выручка']
        assert list(report['expense']) == [800.0, 200.0, 100.0, 0.0]

    def test_two_levels(self, ledger):
        """Test counterparty/article and article/counterparty modes"""
        report = group_transactions(ledger, mode='counterparty-article')
        assert len(report) == 5
        row = report[(report['label'] == 'ООО Ромашка') & (report['sub_label'] == 'Аренда')].iloc[0]
        assert row['expense'] == 300.0

        report = group_transactions(ledger, mode='article-counterparty', sort_by='label', ascending=True)
        assert list(report['label'])[:2] == ['(без статьи)', 'Аренда']
        assert set(report[report['label'] == 'Аренда']['sub_label']) == {'ООО Ромашка', 'ПАО Сбербанк'}

    def test_raw_names_grouped_by_cleaned_label(self, ledger):
        """Test raw counterparty texts are cleaned before grouping"""
        ledger[0].counterparty = 'ООО Ромашка Договор №45 от 01.01.24'
        report = group_transactions(ledger, mode='counterparty')
        assert (report['label'] == 'ООО Ромашка').sum() == 1

    def test_empty(self):
        """Test grouping an empty ledger"""
        report = group_transactions([])
        assert report.empty
        assert list(report.columns) == REPORT_COLUMNS

    def test_invalid_arguments(self, ledger):
        """Test unknown modes and sort columns"""
        with pytest.raises(ValueError):
            group_transactions(ledger, mode='branch')
        with pytest.raises(ValueError):
            group_transactions(ledger, sort_by='amount')

    def test_frame(self, ledger):
        """Test ledger conversion to a DataFrame"""
        df = transactions_to_frame(ledger)
        assert len(df) == 5
        assert df['sheet_type'].iloc[0] == 'cash_journal'
        assert transactions_to_frame([]).empty

    def test_summary(self, ledger):
        """Test the text summary"""
        summary = format_report_summary(ledger)
        assert 'Total Transactions: 5' in summary
        assert 'Income: 1,000.00' in summary
        assert 'Expense: 1,100.00' in summary
        assert 'Balance: -100.00' in summary
        assert 'Counterparties not in dictionary: 1' in summary


class TestCli:
    """Test suite for the command line entrypoint"""

    @pytest.fixture
    def workbook_path(self, tmp_path, monkeypatch, clinic_workbook_bytes):
        monkeypatch.setenv('LOG_FILE', str(tmp_path / 'logs' / 'test.log'))
        path = tmp_path / 'clinic.xlsx'
        path.write_bytes(clinic_workbook_bytes)
        return str(path)

    def test_report(self, workbook_path, capsys):
        """Test the full report output"""
        assert main([workbook_path, '--group-by', 'article']) == 0

        out = capsys.readouterr().out
        assert 'clinic.xlsx: 4 transactions' in out
        assert 'Точка Мира [cash_journal] rows=2' in out
        assert 'Заметки [unknown] rows=0' in out
        assert 'Total Transactions: 4' in out
        assert 'Закупка материалов' in out

    def test_filters(self, workbook_path, capsys):
        """Test filter options"""
        main([workbook_path, '--direction', 'in'])
        assert 'Total Transactions: 2' in capsys.readouterr().out

        main([workbook_path, '--date-from', '2024-01-11', '--sheet', 'Точка Мира', '--sheet', 'Р/С Сбер'])
        assert 'Total Transactions: 3' in capsys.readouterr().out

    def test_invalid_date(self):
        """Test a malformed date option"""
        with pytest.raises(SystemExit):
            build_parser().parse_args(['book.xlsx', '--date-from', '15.01.2024'])

    def test_missing_file(self, tmp_path, monkeypatch):
        """Test errors are re-raised"""
        monkeypatch.setenv('LOG_FILE', str(tmp_path / 'test.log'))
        with pytest.raises(FileNotFoundError):
            main([str(tmp_path / 'missing.xlsx')])
