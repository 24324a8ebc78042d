"""Export service for itemized statements (spreadsheet file and clipboard text)."""

import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Callable, Iterable, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from architrack.exceptions import CopyFailedError, ExportFailedError
from architrack.services.pivot_service import quantize_quantity, to_decimal
from architrack.utils.formatters import clean_cell_text, export_filename, format_quantity

logger = logging.getLogger(__name__)

SPREADSHEET_FORMAT = 'spreadsheet'
CLIPBOARD_FORMAT = 'clipboard'
EXPORT_FORMATS = (SPREADSHEET_FORMAT, CLIPBOARD_FORMAT)

SPREADSHEET_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
CLIPBOARD_MIMETYPE = 'text/plain; charset=utf-8'

# (attribute, header label) in output column order
EXPORT_COLUMNS = (
    ('custom_category', 'Category'),
    ('work_type', 'Work Type'),
    ('name', 'Name'),
    ('specification', 'Specification'),
    ('quantity', 'Quantity'),
    ('unit', 'Unit'),
)
QUANTITY_NUMBER_FORMAT = '0.00'
SHEET_TITLE = 'Itemized Statement'

HEADER_FONT = Font(bold=True, color='FFFFFF')
HEADER_FILL = PatternFill(start_color='2F5496', end_color='2F5496', fill_type='solid')
THIN_BORDER = Border(
    left=Side(style='thin'), right=Side(style='thin'),
    top=Side(style='thin'), bottom=Side(style='thin')
)


@dataclass(frozen=True)
class ExportPayload:
    """Fully rendered export, ready to hand to a response or a file."""
    format: str
    filename: Optional[str]
    mimetype: str
    content: bytes
    row_count: int


def build_export_filename(statement_name: str, moment: Optional[datetime] = None) -> str:
    return export_filename(statement_name, moment, 'xlsx')


def spreadsheet_text(value: Optional[str]) -> Optional[str]:
    """Cell text with characters XML worksheets cannot hold removed; None stays empty."""
    if not value:
        return None
    return ILLEGAL_CHARACTERS_RE.sub('', str(value)) or None


def _header_labels() -> List[str]:
    return [label for _, label in EXPORT_COLUMNS]


def _auto_width(ws, max_width=60):
    for col in range(1, ws.max_column + 1):
        max_len = 0
        for row in ws.iter_rows(min_row=1, max_row=min(ws.max_row, 200), min_col=col, max_col=col):
            for cell in row:
                if cell.value is not None:
                    max_len = max(max_len, min(len(str(cell.value)), max_width))
        ws.column_dimensions[get_column_letter(col)].width = max(max_len + 2, 10)


def render_spreadsheet(rows: Iterable) -> BytesIO:
    """
    Render rows into an in-memory .xlsx workbook.

    The quantity column is written as a numeric cell with two decimals,
    every other column as text (empty for missing values).

    Raises:
        ExportFailedError: If the workbook cannot be built or serialized
    """
    try:
        wb = Workbook()
        ws = wb.active
        ws.title = SHEET_TITLE

        ws.append(_header_labels())
        for cell in ws[1]:
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.alignment = Alignment(horizontal='center', vertical='center')
            cell.border = THIN_BORDER

        quantity_col = [attr for attr, _ in EXPORT_COLUMNS].index('quantity') + 1
        for row in rows:
            values = []
            for attr, _ in EXPORT_COLUMNS:
                if attr == 'quantity':
                    values.append(quantize_quantity(to_decimal(row.quantity)))
                else:
                    values.append(spreadsheet_text(getattr(row, attr)))
            ws.append(values)
            for cell in ws[ws.max_row]:
                if cell.column == quantity_col:
                    cell.number_format = QUANTITY_NUMBER_FORMAT
                elif isinstance(cell.value, str) and cell.value.startswith('='):
                    # Row text is data, never a formula
                    cell.data_type = 's'

        ws.freeze_panes = 'A2'
        _auto_width(ws)

        buffer = BytesIO()
        wb.save(buffer)
        buffer.seek(0)
        return buffer
    except ExportFailedError:
        raise
    except Exception as e:
        logger.error(f"Spreadsheet rendering failed: {e}", exc_info=True)
        raise ExportFailedError(f'Spreadsheet export failed: {e}') from e


def write_spreadsheet_file(rows: Sequence, directory: str, filename: str) -> str:
    """
    Write a spreadsheet export to ``directory/filename``.

    The workbook is rendered fully in memory, written to a temporary file in
    the same directory and then renamed into place, so a failed export never
    leaves a partial file behind.

    Returns:
        Absolute path of the written file
    """
    buffer = render_spreadsheet(rows)
    target = os.path.abspath(os.path.join(directory, filename))
    tmp_path = None
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.export-', suffix='.xlsx.tmp')
        with os.fdopen(fd, 'wb') as fh:
            fh.write(buffer.getvalue())
        os.replace(tmp_path, target)
        tmp_path = None
    except OSError as e:
        logger.error(f"Failed to write export file {target}: {e}")
        raise ExportFailedError(f'Could not write export file: {e}') from e
    finally:
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)

    logger.info(f"Spreadsheet export written to {target} ({len(rows)} rows)")
    return target


def render_clipboard_text(rows: Iterable) -> str:
    """Tab-separated text with a header line, one line per row."""
    lines = ['\t'.join(_header_labels())]
    for row in rows:
        cells = []
        for attr, _ in EXPORT_COLUMNS:
            if attr == 'quantity':
                cells.append(format_quantity(row.quantity))
            else:
                cells.append(clean_cell_text(getattr(row, attr)))
        lines.append('\t'.join(cells))
    return '\n'.join(lines)


def copy_to_clipboard(rows: Iterable, sink: Optional[Callable[[str], None]]) -> str:
    """
    Build clipboard text and hand it to ``sink`` in a single call.

    Raises:
        CopyFailedError: If no sink is available or the sink rejects the text
    """
    if sink is None:
        raise CopyFailedError('Clipboard is not available')

    text = render_clipboard_text(rows)
    try:
        sink(text)
    except Exception as e:
        logger.warning(f"Clipboard sink rejected export: {e}")
        raise CopyFailedError(f'Copy to clipboard failed: {e}') from e
    return text


def export_rows(rows: Sequence, export_format: str, statement_name: str,
                moment: Optional[datetime] = None) -> ExportPayload:
    """
    Render an export payload for already filtered and sorted rows.

    Args:
        rows: Unpaginated rows, in output order
        export_format: 'spreadsheet' or 'clipboard'
        statement_name: Used for the spreadsheet filename
        moment: Export time (defaults to now)
    """
    rows = list(rows)
    if export_format == SPREADSHEET_FORMAT:
        buffer = render_spreadsheet(rows)
        return ExportPayload(
            format=export_format,
            filename=build_export_filename(statement_name, moment),
            mimetype=SPREADSHEET_MIMETYPE,
            content=buffer.getvalue(),
            row_count=len(rows),
        )
    if export_format == CLIPBOARD_FORMAT:
        try:
            content = render_clipboard_text(rows).encode('utf-8')
        except Exception as e:
            raise CopyFailedError(f'Copy to clipboard failed: {e}') from e
        return ExportPayload(
            format=export_format,
            filename=None,
            mimetype=CLIPBOARD_MIMETYPE,
            content=content,
            row_count=len(rows),
        )
    raise ValueError(f'Unsupported export format: {export_format}')
