import io
import zipfile
from datetime import datetime

import openpyxl
import pytest

from cashflow_recon.models import IdGenerator

# Cash journal with a title row above the header, a blank row, a total row
# and a zero-amount row
cash_journal_grid = [
    ['Журнал операций за январь', None, None, None, None, None, None, None],
    ['Дата оплаты', 'Кошелёк', 'Сумма в рублях', 'Статья дохода', 'Контрагент', 'Филиал', 'Примечание', 'Месяц начисления'],
    ['15.01.2024', 'Касса', '12 500,00', 'Поступление от пациентов', 'Иванов Иван Иванович', 'Мира', 'приём', 'январь'],
    [datetime(2024, 1, 16), 'Р/с', 3000, 'Аренда', 'ООО Ромашка Договор №45 от 01.01.24', 'Мира', None, 'январь'],
    [None, None, None, None, None, None, None, None],
    [None, None, 'Итого', None, None, None, None, None],
    ['17.01.2024', 'Касса', '0', 'Аренда', None, None, None, None],
]

bank_journal_grid = [
    ['Период', 'Документ', 'Аналитика Дт', 'Аналитика Кт', 'Сумма для ДДС', 'Статья', 'Месяц начисления'],
    ['10.01.2024', 'Списание с р/с 00001', 'ООО "Медтехника"\nСписание по договору', 'Расчётный счёт', '45 000', 'Закупка материалов', 'январь'],
    ['11.01.2024', 'Поступление на р/с 00002', 'Расчётный счёт', 'ПАО Сбербанк', '100 000,50', 'Поступление эквайринг', 'январь'],
]

reference_grid = [
    ['Статья ДДС', 'Группа', 'Вид деятельности', 'Комментарий', None, 'Справочник контрагентов'],
    ['Выручка', 'Поступление', 'Операционная', 'Выручка', None, 'ООО Ромашка'],
    ['Аренда', 'Выбытие', 'Операционная', 'Постоянные расходы', None, 'ПАО Сбербанк'],
    ['Закупка материалов', 'Выбытие', 'Операционная', 'Переменные расходы', None, 'Иванов Иван Иванович'],
    ['Возврат займа', 'Прочее', 'Финансовая', None, None, 'Справочник поставщиков'],
    [None, None, None, None, None, 'ООО "Медтехника"'],
]

notes_grid = [
    ['просто текст'],
    ['ещё текст'],
]


def build_workbook_bytes(sheets, hidden=()):
    """Build .xlsx bytes from a {sheet_name: rows} mapping"""
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(list(row))
        if name in hidden:
            ws.sheet_state = 'hidden'
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def cash_grid():
    return [list(row) for row in cash_journal_grid]


@pytest.fixture
def bank_grid():
    return [list(row) for row in bank_journal_grid]


@pytest.fixture
def reference_rows():
    return [list(row) for row in reference_grid]


@pytest.fixture
def next_id():
    return IdGenerator()


@pytest.fixture
def clinic_workbook_bytes():
    """Workbook with a reference sheet, both journal types and an unrelated sheet"""
    return build_workbook_bytes({
        'Справочник': reference_grid,
        'Точка Мира': cash_journal_grid,
        'Р/С Сбер': bank_journal_grid,
        'Заметки': notes_grid,
    })


@pytest.fixture
def journals_only_workbook_bytes():
    """Workbook without any reference sheet"""
    return build_workbook_bytes({
        'Точка Мира': cash_journal_grid,
        'Р/С Сбер': bank_journal_grid,
    })


def truncate_zip_member(data, member='xl/worksheets/sheet1.xml'):
    """Return .xlsx bytes with one archive member cut in half"""
    source = zipfile.ZipFile(io.BytesIO(data))
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as target:
        for item in source.infolist():
            content = source.read(item.filename)
            if item.filename == member:
                content = content[:len(content) // 2]
            target.writestr(item, content)
    return buffer.getvalue()


@pytest.fixture
def oversized_field_csv_bytes():
    """CSV whose counterparty field exceeds the csv module's field limit"""
    return ('Дата;Сумма;Контрагент\n01.01.2024;100;' + 'x' * 200000 + '\n').encode('utf-8')
