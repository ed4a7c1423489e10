"""
Export Utilities for the Account Ledger and VAT 201 Return.
CSV via the csv module, Excel via openpyxl, PDF via WeasyPrint.

Exports always take the full filtered entry set (ledger.all_entries),
never the page currently on screen.
"""
import csv
import io
import logging
from collections import namedtuple

from django.conf import settings
from django.template.loader import render_to_string
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.cell.cell import MergedCell
from openpyxl.styles import Font, Alignment, Border, Side, PatternFill

from apps.core.utils import format_amount, slugify_filename

logger = logging.getLogger(__name__)


LEDGER_HEADERS = ['Date', 'Entry #', 'Description', 'Debit', 'Credit', 'Balance']

CONTENT_TYPES = {
    'csv': 'text/csv; charset=utf-8',
    'pdf': 'application/pdf',
    'xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
}

# Tabular document geometry (A4, millimetres)
PAGE_WIDTH = 210
PAGE_HEIGHT = 297
LEFT_MARGIN = 14
COLUMN_WIDTHS = [25, 25, 65, 25, 25, 25]
TABLE_HEADER_Y = 52
ROW_HEIGHT = 6
PAGE_BREAK_Y = 280
CONTINUATION_Y = 20
PAGE_BOTTOM = 290

TextItem = namedtuple('TextItem', ['x', 'y', 'text', 'size', 'bold'])
Band = namedtuple('Band', ['x', 'y', 'width', 'height'])


class ExportError(Exception):
    """Document generation failed; nothing was written."""

    def __init__(self, export_format, original=None):
        self.export_format = export_format
        self.original = original
        super().__init__(f"{export_format.upper()} export failed: {original}")


def ledger_export_filename(account_name, extension, today=None):
    """ledger_<account name>_<YYYYMMDD>.<ext>"""
    today = today or timezone.localdate()
    return f"ledger_{slugify_filename(account_name)}_{today.strftime('%Y%m%d')}.{extension}"


# ============ CSV ============

def ledger_csv_rows(ledger):
    """Rows of the delimited export, header and totals blocks included."""
    summary = ledger.summary
    rows = [
        [f'Account Ledger: {ledger.account.name}'],
        [f'Opening Balance: {format_amount(summary.opening_balance)}'],
        [],
        LEDGER_HEADERS,
    ]
    for entry in ledger.all_entries:
        rows.append([
            entry.date.strftime('%Y-%m-%d'),
            entry.entry_number,
            entry.display_description,
            format_amount(entry.debit),
            format_amount(entry.credit),
            format_amount(entry.running_balance),
        ])
    rows += [
        [],
        [f'Total Debit: {format_amount(summary.total_debit)}'],
        [f'Total Credit: {format_amount(summary.total_credit)}'],
        [f'Closing Balance: {format_amount(summary.closing_balance)}'],
    ]
    return rows


def export_ledger_csv(ledger):
    """
    Delimited-text ledger export.
    Fields containing commas, quotes or newlines are quoted.
    """
    output = io.StringIO()
    try:
        writer = csv.writer(output, lineterminator='\n')
        writer.writerows(ledger_csv_rows(ledger))
    except Exception as exc:
        logger.exception("Ledger CSV export failed for %s", ledger.account.name)
        raise ExportError('csv', exc) from exc
    logger.info("Exported ledger CSV for %s (%d rows)", ledger.account.name, ledger.total_count)
    return output.getvalue()


# ============ PDF ============

def _column_positions():
    positions = []
    x = LEFT_MARGIN
    for width in COLUMN_WIDTHS:
        positions.append(x)
        x += width
    return positions


def ledger_pdf_row(entry, description_width=None):
    """Cells for one tabular-document row. Descriptions are truncated here only."""
    if description_width is None:
        description_width = getattr(settings, 'LEDGER_PDF_DESCRIPTION_WIDTH', 40)
    return [
        entry.date.strftime('%b %d'),
        entry.entry_number[-8:],
        entry.display_description[:description_width],
        format_amount(entry.debit) if entry.debit > 0 else '-',
        format_amount(entry.credit) if entry.credit > 0 else '-',
        format_amount(entry.running_balance),
    ]


def layout_ledger_pages(ledger, generated_at=None):
    """
    Position every text item of the tabular document.

    Returns a list of pages, each {'number', 'items', 'bands'}. The header
    block appears on the first page only; a new page starts whenever the
    next row would be drawn below y=280.
    """
    generated_at = generated_at or timezone.localtime()
    summary = ledger.summary
    columns = _column_positions()

    first = {'number': 1, 'items': [], 'bands': []}
    pages = [first]
    items = first['items']

    items.append(TextItem(LEFT_MARGIN, 22, f'Account Ledger: {ledger.account.name}', 18, True))
    items.append(TextItem(LEFT_MARGIN, 30, f"Generated: {generated_at.strftime('%b %d, %Y %H:%M')}", 10, False))
    items.append(TextItem(LEFT_MARGIN, 36, f'Opening Balance: AED {format_amount(summary.opening_balance)}', 10, False))
    items.append(TextItem(LEFT_MARGIN, 42, ledger.period_label, 10, False))

    y = TABLE_HEADER_Y
    first['bands'].append(Band(LEFT_MARGIN, y - 4, PAGE_WIDTH - 2 * LEFT_MARGIN, 8))
    for x, header in zip(columns, LEDGER_HEADERS):
        items.append(TextItem(x, y, header, 9, True))

    y += 8
    for entry in ledger.all_entries:
        if y > PAGE_BREAK_Y:
            page = {'number': len(pages) + 1, 'items': [], 'bands': []}
            pages.append(page)
            items = page['items']
            y = CONTINUATION_Y
        for x, cell in zip(columns, ledger_pdf_row(entry)):
            items.append(TextItem(x, y, cell, 8, False))
        y += ROW_HEIGHT

    y += 8
    if y + ROW_HEIGHT > PAGE_BOTTOM:
        page = {'number': len(pages) + 1, 'items': [], 'bands': []}
        pages.append(page)
        items = page['items']
        y = CONTINUATION_Y
    items.append(TextItem(LEFT_MARGIN, y, f'Total Debit: AED {format_amount(summary.total_debit)}', 8, True))
    items.append(TextItem(90, y, f'Total Credit: AED {format_amount(summary.total_credit)}', 8, True))
    items.append(TextItem(LEFT_MARGIN, y + ROW_HEIGHT, f'Closing Balance: AED {format_amount(summary.closing_balance)}', 8, True))
    return pages


def render_ledger_html(ledger, generated_at=None):
    pages = layout_ledger_pages(ledger, generated_at)
    return render_to_string('finance/ledger_pdf.html', {
        'pages': pages,
        'account': ledger.account,
        'page_width': PAGE_WIDTH,
        'page_height': PAGE_HEIGHT,
    })


def _render_pdf(html_string):
    from weasyprint import HTML

    return HTML(string=html_string).write_pdf()


def export_ledger_pdf(ledger, generated_at=None):
    """Paginated tabular ledger document as PDF bytes."""
    try:
        pdf = _render_pdf(render_ledger_html(ledger, generated_at))
    except Exception as exc:
        logger.exception("Ledger PDF export failed for %s", ledger.account.name)
        raise ExportError('pdf', exc) from exc
    logger.info("Exported ledger PDF for %s (%d rows)", ledger.account.name, ledger.total_count)
    return pdf


# ============ EXCEL ============

HEADER_FILL = PatternFill(start_color='366092', end_color='366092', fill_type='solid')


def style_header_row(ws, row_num, col_count):
    """Apply header styling to a row."""
    header_font = Font(bold=True, color='FFFFFF')
    header_align = Alignment(horizontal='center', vertical='center')

    for col in range(1, col_count + 1):
        cell = ws.cell(row=row_num, column=col)
        cell.font = header_font
        cell.fill = HEADER_FILL
        cell.alignment = header_align


def style_title_row(ws, row_num, title, col_count):
    """Add and style a title row."""
    ws.merge_cells(start_row=row_num, start_column=1, end_row=row_num, end_column=col_count)
    cell = ws.cell(row=row_num, column=1, value=title)
    cell.font = Font(bold=True, size=14)
    cell.alignment = Alignment(horizontal='center')


def auto_width_columns(ws):
    """Auto-adjust column widths based on content."""
    for column_cells in ws.columns:
        max_length = 0
        column = None
        for cell in column_cells:
            if isinstance(cell, MergedCell):
                continue
            if column is None:
                column = cell.column_letter
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))
        if column:
            ws.column_dimensions[column].width = min(max_length + 2, 50)


def excel_number(value):
    """Decimal to a two-decimal float for numeric cells."""
    return float(format_amount(value))


def _set_money(ws, row, column, value, bold=False):
    cell = ws.cell(row=row, column=column, value=excel_number(value))
    cell.number_format = '#,##0.00'
    if bold:
        cell.font = Font(bold=True)
    return cell


def _workbook_bytes(wb):
    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def export_ledger_excel(ledger):
    """Ledger workbook: same rows as the CSV export, numeric cells."""
    try:
        wb = Workbook()
        ws = wb.active
        ws.title = 'Account Ledger'
        summary = ledger.summary

        style_title_row(ws, 1, f'Account Ledger - {ledger.account.name}', len(LEDGER_HEADERS))
        ws.cell(row=2, column=1, value=ledger.period_label)
        ws.cell(row=3, column=1, value='Opening Balance')
        _set_money(ws, 3, 6, summary.opening_balance)

        for col, header in enumerate(LEDGER_HEADERS, 1):
            ws.cell(row=5, column=col, value=header)
        style_header_row(ws, 5, len(LEDGER_HEADERS))

        row = 6
        for entry in ledger.all_entries:
            ws.cell(row=row, column=1, value=entry.date).number_format = 'yyyy-mm-dd'
            ws.cell(row=row, column=2, value=entry.entry_number)
            ws.cell(row=row, column=3, value=entry.display_description)
            _set_money(ws, row, 4, entry.debit)
            _set_money(ws, row, 5, entry.credit)
            _set_money(ws, row, 6, entry.running_balance)
            row += 1

        ws.cell(row=row, column=3, value='TOTAL').font = Font(bold=True)
        _set_money(ws, row, 4, summary.total_debit, bold=True)
        _set_money(ws, row, 5, summary.total_credit, bold=True)
        for col in range(1, len(LEDGER_HEADERS) + 1):
            ws.cell(row=row, column=col).border = Border(top=Side(style='double'))
        row += 1
        ws.cell(row=row, column=3, value='Closing Balance').font = Font(bold=True)
        _set_money(ws, row, 6, summary.closing_balance, bold=True)

        auto_width_columns(ws)
        content = _workbook_bytes(wb)
    except Exception as exc:
        logger.exception("Ledger Excel export failed for %s", ledger.account.name)
        raise ExportError('excel', exc) from exc
    logger.info("Exported ledger Excel for %s (%d rows)", ledger.account.name, ledger.total_count)
    return content


# ============ VAT 201 EXPORT ============

def vat_return_rows(vat_return):
    """(box, description, amount, vat, adjustment) rows in VAT 201 order. None = no column."""
    rows = []
    for emirate in vat_return.emirate_rows():
        rows.append((
            emirate['box'],
            f"Standard rated supplies in {emirate['emirate']}",
            emirate['amount'], emirate['vat'], emirate['adjustment'],
        ))
    rows += [
        ('2', 'Tax refunds provided to tourists',
         vat_return.box2_tourist_refund_amount, vat_return.box2_tourist_refund_vat, None),
        ('3', 'Supplies subject to the reverse charge provisions',
         vat_return.box3_reverse_charge_amount, vat_return.box3_reverse_charge_vat, None),
        ('4', 'Zero rated supplies', vat_return.box4_zero_rated_amount, None, None),
        ('5', 'Exempt supplies', vat_return.box5_exempt_amount, None, None),
        ('6', 'Goods imported into the UAE',
         vat_return.box6_imports_amount, vat_return.box6_imports_vat, None),
        ('7', 'Adjustments to goods imported into the UAE',
         vat_return.box7_imports_adj_amount, vat_return.box7_imports_adj_vat, None),
        ('8', 'Totals', vat_return.total_sales_amount(), vat_return.total_sales_vat(),
         vat_return.total_sales_adjustment()),
        ('9', 'Standard rated expenses', vat_return.box9_expenses_amount,
         vat_return.box9_expenses_vat, vat_return.box9_expenses_adjustment),
        ('10', 'Supplies subject to the reverse charge provisions',
         vat_return.box10_reverse_charge_amount, vat_return.box10_reverse_charge_vat, None),
        ('11', 'Totals', vat_return.total_input_amount(), vat_return.total_input_vat(),
         vat_return.total_input_adjustment()),
    ]
    return rows


def export_vat_return_excel(vat_return, company=None, period=None):
    """VAT 201 workbook with boxes 1a-14."""
    company = company or {}
    period = period or {}
    try:
        wb = Workbook()
        ws = wb.active
        ws.title = 'VAT 201'

        style_title_row(ws, 1, 'VAT 201 Return', 5)
        ws.cell(row=2, column=1, value=f"TRN: {company.get('trn_number') or 'N/A'}")
        ws.cell(row=3, column=1, value=company.get('name', ''))
        if period.get('period_start') and period.get('period_end'):
            ws.cell(row=4, column=1, value=f"Period: {period['period_start']} - {period['period_end']}")

        headers = ['Box', 'Description', 'Amount (AED)', 'VAT Amount (AED)', 'Adjustment (AED)']
        for col, header in enumerate(headers, 1):
            ws.cell(row=6, column=col, value=header)
        style_header_row(ws, 6, len(headers))

        row = 7
        for box, description, amount, vat, adjustment in vat_return_rows(vat_return):
            ws.cell(row=row, column=1, value=box)
            ws.cell(row=row, column=2, value=description)
            bold = box in ('8', '11')
            _set_money(ws, row, 3, amount, bold=bold)
            if vat is not None:
                _set_money(ws, row, 4, vat, bold=bold)
            if adjustment is not None:
                _set_money(ws, row, 5, adjustment, bold=bold)
            row += 1

        row += 1
        position = vat_return.net_vat_position()
        ws.cell(row=row, column=1, value='12')
        ws.cell(row=row, column=2, value='Total value of due tax for the period')
        _set_money(ws, row, 4, vat_return.total_due_tax(), bold=True)
        row += 1
        ws.cell(row=row, column=1, value='13')
        ws.cell(row=row, column=2, value='Total value of recoverable tax for the period')
        _set_money(ws, row, 4, vat_return.total_recoverable_tax(), bold=True)
        row += 1
        ws.cell(row=row, column=1, value='14')
        ws.cell(row=row, column=2, value=f'Net VAT {position.label}')
        ws.cell(row=row, column=2).font = Font(bold=True, size=12)
        _set_money(ws, row, 4, position.amount, bold=True)
        ws.cell(row=row, column=5, value=position.label).font = Font(bold=True)

        auto_width_columns(ws)
        content = _workbook_bytes(wb)
    except Exception as exc:
        logger.exception("VAT 201 Excel export failed")
        raise ExportError('excel', exc) from exc
    return content


def vat_return_filename(today=None):
    today = today or timezone.localdate()
    return f"vat201_{today.strftime('%Y%m%d')}.xlsx"
