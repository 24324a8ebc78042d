"""
Formatting helpers used at the output boundary (JSON, exports).
"""
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union, Optional

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/\x00]')
_CELL_BREAKS = re.compile(r'[\t\r\n]+')


def format_quantity(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Render a quantity with exactly two decimals.

    Examples:
        format_quantity(Decimal('30.75')) -> "30.75"
        format_quantity(Decimal('5')) -> "5.00"
        format_quantity(None) -> ""
    """
    if value is None or value == "":
        return ""
    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return ""
    return f"{num.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):.2f}"


def format_export_date(moment: Optional[Union[date, datetime]] = None) -> str:
    """YYYYMMDD stamp used in export filenames."""
    moment = moment or datetime.now()
    return moment.strftime('%Y%m%d')


def export_filename(statement_name: str, moment: Optional[Union[date, datetime]] = None, extension: str = 'xlsx') -> str:
    """
    Build ``{statementName}_{YYYYMMDD}.{ext}``.

    Path separators in the statement name are replaced so the result is
    always a single file name.
    """
    safe_name = _UNSAFE_FILENAME_CHARS.sub('_', statement_name)
    return f"{safe_name}_{format_export_date(moment)}.{extension}"


def clean_cell_text(value: Optional[str]) -> str:
    """Empty string for None; tabs and line breaks collapse to one space."""
    if value is None:
        return ""
    return _CELL_BREAKS.sub(' ', str(value))
