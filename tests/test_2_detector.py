import pytest

from cashflow_recon.detector import (
    classify_sheet,
    detect_sheet_type,
    detect_sheet_type_by_headers,
    detect_sheet_type_by_name,
    find_header_row,
    score_header_row,
)
from cashflow_recon.models import SheetType


class TestHeaderRowDetection:
    """Test suite for header row discovery"""

    def test_header_below_title(self, cash_grid):
        """Test a title row above the header is skipped"""
        index, headers = find_header_row(cash_grid)
        assert index == 1
        assert headers[0] == 'Дата оплаты'
        assert headers[2] == 'Сумма в рублях'

    def test_header_on_first_row(self, bank_grid):
        """Test a header on the first row"""
        index, headers = find_header_row(bank_grid)
        assert index == 0
        assert 'Аналитика Дт' in headers

    def test_deterministic(self, cash_grid):
        """Test identical grids always give the same row"""
        results = {find_header_row([list(r) for r in cash_grid])[0] for _ in range(5)}
        assert results == {1}

    def test_ties_keep_earliest_row(self):
        """Test equal scores keep the first row"""
        grid = [
            ['Отчёт'],
            ['Дата', 'Сумма'],
            ['Дата', 'Сумма'],
        ]
        assert find_header_row(grid)[0] == 1

    def test_scan_limited_to_first_rows(self):
        """Test rows past the scan window are never chosen"""
        grid = [[None]] * 11 + [['Дата', 'Сумма', 'Статья']]
        index, _ = find_header_row(grid)
        assert index == 0

    def test_empty_grid(self):
        """Test an empty grid defaults to row 0"""
        assert find_header_row([]) == (0, [])

    def test_row_scoring(self):
        """Test keyword and text scoring"""
        assert score_header_row(['Дата', 'Сумма']) == 5.0
        assert score_header_row(['Касса', '125', 15]) == 0.5
        assert score_header_row([None, '', 'x']) == 0.0


class TestSheetTypeByName:
    """Test suite for name-based classification"""

    @pytest.mark.parametrize('name', ['Справочник', 'Статьи ДДС', 'ДДС', 'ref', 'Reference data'])
    def test_reference_names(self, name):
        """Test reference sheet names"""
        assert detect_sheet_type_by_name(name) == SheetType.REFERENCE

    @pytest.mark.parametrize('name', ['Журнал', 'Касса Леонова', 'Точка Мира', 'Моби'])
    def test_cash_journal_names(self, name):
        """Test cash journal sheet names"""
        assert detect_sheet_type_by_name(name) == SheetType.CASH_JOURNAL

    @pytest.mark.parametrize('name', ['Р/С Сбер', 'РС-1', 'Расчётный', 'Банк', 'Bank statement', 'Счёт 40702'])
    def test_bank_journal_names(self, name):
        """Test bank journal sheet names"""
        assert detect_sheet_type_by_name(name) == SheetType.BANK_JOURNAL

    def test_group_order(self):
        """Test earlier keyword groups win"""
        assert detect_sheet_type_by_name('Журнал банк') == SheetType.CASH_JOURNAL
        assert detect_sheet_type_by_name('Справочник касс') == SheetType.REFERENCE

    def test_no_hint(self):
        """Test names without markers"""
        assert detect_sheet_type_by_name('Sheet1') is None
        assert detect_sheet_type_by_name('Лист1') is None


class TestSheetTypeByHeaders:
    """Test suite for header-based classification"""

    def test_reference_headers(self):
        """Test reference sheet headers"""
        assert detect_sheet_type_by_headers(['Статья ДДС', 'Группа']) == SheetType.REFERENCE
        assert detect_sheet_type_by_headers(['Справочник контрагентов']) == SheetType.REFERENCE

    def test_reference_before_cash(self):
        """Test reference predicates are evaluated first"""
        assert detect_sheet_type_by_headers(['Статья ДДС', 'Группа', 'Кошелек']) == SheetType.REFERENCE

    def test_cash_journal_headers(self):
        """Test cash journal headers without a name hint"""
        headers = ['Дата оплаты', 'Кошелёк', 'Сумма в рублях', 'Статья дохода', 'Контрагент']
        assert detect_sheet_type_by_headers(headers) == SheetType.CASH_JOURNAL
        assert detect_sheet_type('Лист1', headers) == SheetType.CASH_JOURNAL

    def test_bank_journal_headers(self):
        """Test bank journal headers"""
        assert detect_sheet_type_by_headers(['Период', 'Аналитика Дт', 'Сумма']) == SheetType.BANK_JOURNAL
        assert detect_sheet_type_by_headers(['Документ', 'Дебет', 'Кредит']) == SheetType.BANK_JOURNAL
        assert detect_sheet_type_by_headers(['Сумма для ДДС', 'Статья']) == SheetType.BANK_JOURNAL

    def test_loose_heuristics(self):
        """Test single-keyword fallback to cash journal"""
        assert detect_sheet_type_by_headers(['Статья расхода', 'Сумма']) == SheetType.CASH_JOURNAL

    def test_multiline_headers(self):
        """Test headers with line breaks are normalized"""
        assert detect_sheet_type_by_headers(['Аналитика\nДт']) == SheetType.BANK_JOURNAL

    def test_unknown(self):
        """Test headers matching nothing"""
        assert detect_sheet_type_by_headers(['Наименование', 'Цена']) == SheetType.UNKNOWN
        assert detect_sheet_type_by_headers([]) == SheetType.UNKNOWN

    def test_name_takes_precedence(self):
        """Test the sheet name is checked before headers"""
        headers = ['Период', 'Аналитика Дт']
        assert detect_sheet_type('Касса', headers) == SheetType.CASH_JOURNAL


class TestClassifySheet:
    """Test suite for full sheet classification"""

    def test_classify_bank_grid(self, bank_grid):
        """Test classification by headers"""
        result = classify_sheet(bank_grid, 'Лист2')
        assert result.type == SheetType.BANK_JOURNAL
        assert result.header_row_index == 0

    def test_classify_cash_grid(self, cash_grid):
        """Test classification by name"""
        result = classify_sheet(cash_grid, 'Точка Мира')
        assert result.type == SheetType.CASH_JOURNAL
        assert result.header_row_index == 1
