"""
Export utilities for list data.
Supports Excel (.xlsx), CSV (.csv), and Text (.txt) formats.

Column definitions are dicts with 'key', 'header' and optional 'width'.
"""
import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from django.http import HttpResponse
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter


class ExportFormat:
    EXCEL = 'xlsx'
    CSV = 'csv'
    TXT = 'txt'

    CHOICES = [EXCEL, CSV, TXT]
    CONTENT_TYPES = {
        EXCEL: 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        CSV: 'text/csv',
        TXT: 'text/plain',
    }


def format_value(value: Any) -> str:
    """Format a value for export."""
    if value is None:
        return ''
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    return str(value)


def export_to_excel(data: list[dict], columns: list[dict], title: str = 'Export',
                    sheet_name: str = 'Data') -> bytes:
    """Export rows to an .xlsx workbook with a styled, frozen header row."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name

    header_font = Font(bold=True, color='FFFFFF')
    header_fill = PatternFill(start_color='2F5597', end_color='2F5597', fill_type='solid')

    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(columns))
    title_cell = ws.cell(row=1, column=1, value=title)
    title_cell.font = Font(bold=True, size=14)
    title_cell.alignment = Alignment(horizontal='center')

    header_row = 3
    for col_idx, col in enumerate(columns, 1):
        cell = ws.cell(row=header_row, column=col_idx, value=col['header'])
        cell.font = header_font
        cell.fill = header_fill
        ws.column_dimensions[get_column_letter(col_idx)].width = col.get('width', 15)

    for row_idx, row_data in enumerate(data, header_row + 1):
        for col_idx, col in enumerate(columns, 1):
            ws.cell(row=row_idx, column=col_idx, value=format_value(row_data.get(col['key'], '')))

    ws.freeze_panes = ws.cell(row=header_row + 1, column=1)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def export_to_csv(data: list[dict], columns: list[dict], delimiter: str = ',') -> str:
    output = io.StringIO()
    writer = csv.writer(output, delimiter=delimiter, quoting=csv.QUOTE_MINIMAL)
    writer.writerow([col['header'] for col in columns])
    for row_data in data:
        writer.writerow([format_value(row_data.get(col['key'], '')) for col in columns])
    return output.getvalue()


def export_to_txt(data: list[dict], columns: list[dict], separator: str = '\t') -> str:
    """Fixed-width text export; columns are capped at 50 characters."""
    widths = []
    for col in columns:
        width = col.get('width', len(col['header']))
        for row_data in data:
            width = max(width, len(format_value(row_data.get(col['key'], ''))))
        widths.append(min(width, 50))

    lines = [separator.join(col['header'].ljust(widths[i]) for i, col in enumerate(columns))]
    lines.append(separator.join('-' * w for w in widths))
    for row_data in data:
        parts = []
        for i, col in enumerate(columns):
            value = format_value(row_data.get(col['key'], ''))
            if len(value) > widths[i]:
                value = value[:widths[i] - 3] + '...'
            parts.append(value.ljust(widths[i]))
        lines.append(separator.join(parts))
    return '\n'.join(lines)


def create_export_response(data: list[dict], columns: list[dict], format: str, filename: str,
                           title: str = 'Export') -> HttpResponse:
    """
    Create an HTTP response with the exported file.

    Raises:
        ValueError: for an unknown format
    """
    if format not in ExportFormat.CHOICES:
        raise ValueError(f"Invalid format: {format}. Must be one of {ExportFormat.CHOICES}")

    content_type = ExportFormat.CONTENT_TYPES[format]

    if format == ExportFormat.EXCEL:
        response = HttpResponse(export_to_excel(data, columns, title=title), content_type=content_type)
    elif format == ExportFormat.CSV:
        response = HttpResponse(export_to_csv(data, columns), content_type=content_type)
        response.charset = 'utf-8-sig'  # BOM for Excel compatibility
    else:
        response = HttpResponse(export_to_txt(data, columns), content_type=content_type)

    response['Content-Disposition'] = f'attachment; filename="{filename}.{format}"'
    return response
