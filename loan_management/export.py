"""
Excel Export Module

Renders lists of records as .xlsx workbooks.
"""

import io
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import openpyxl
from openpyxl.styles import Alignment, Font


XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

MAX_COLUMN_WIDTH = 60


def _cell_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, Decimal, date, datetime)):
        if isinstance(value, datetime) and value.tzinfo is not None:
            # Excel has no time zones
            return value.replace(tzinfo=None)
        return value
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _header_label(key: str) -> str:
    return key.replace('_', ' ').title()


def rows_to_workbook(rows: List[Dict[str, Any]], sheet_name: str = "Sheet1",
                     columns: Optional[Sequence[str]] = None) -> bytes:
    """
    Build a workbook with one sheet holding the rows.

    Args:
        rows: Records as dictionaries
        sheet_name: Worksheet title (truncated to Excel's 31 characters)
        columns: Keys to export, in order; defaults to the keys of the first row

    Returns:
        The .xlsx file contents
    """
    if columns is None:
        columns = list(rows[0].keys()) if rows else []

    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = sheet_name[:31]

    sheet.append([_header_label(column) for column in columns])
    for cell in sheet[1]:
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal='center')

    for row in rows:
        sheet.append([_cell_value(row.get(column)) for column in columns])

    for col in sheet.columns:
        width = max((len(str(cell.value)) for cell in col if cell.value is not None), default=0)
        sheet.column_dimensions[col[0].column_letter].width = min(width + 2, MAX_COLUMN_WIDTH)

    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()
