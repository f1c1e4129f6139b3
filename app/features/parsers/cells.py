"""Cell-level coercion for ZSBMS spreadsheet values.

Portal exports mix native workbook types (numbers, datetimes, times) with
text formatted the Portuguese way ("1.234,56", "15-03-2025"). Everything
here is total: a value that cannot be coerced becomes 0 / None, never an
exception.
"""

import math
import re
import unicodedata
from datetime import date, datetime, time, timedelta
from typing import Any

# Excel's 1900 date system, including the fictitious 1900-02-29
EXCEL_EPOCH = date(1899, 12, 30)
EXCEL_SERIAL_MIN = 30000  # 1982-02-17
EXCEL_SERIAL_MAX = 60000  # 2064-04-08

_NUMBER_NOISE_RE = re.compile(r"[\s €%]")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_DMY_DATE_RE = re.compile(r"^(\d{2})[/-](\d{2})[/-](\d{4})$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    """Remove diacritics ("Família" -> "Familia")."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_header(value: Any) -> str:
    """Normalize header text for fuzzy matching.

    Accents are stripped, case folded and whitespace collapsed, so
    "Total  Líquido" and "total liquido" compare equal.
    """
    text = cell_text(value)
    return _WHITESPACE_RE.sub(" ", strip_accents(text).lower())


def cell_text(value: Any) -> str:
    """Render a cell as stripped text; integral floats lose their ".0"."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def to_number(value: Any) -> float:
    """Coerce a cell to float using the European number convention.

    Args:
        value: Native number or text such as "1.234,56" or "12,5 €".

    Returns:
        The parsed number, or 0.0 when empty or unparseable.
    """
    if value is None:
        return 0.0
    if isinstance(value, int | float):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    text = _NUMBER_NOISE_RE.sub("", str(value))
    if not text:
        return 0.0
    # "," is the only decimal separator, every "." groups thousands
    text = text.replace(".", "").replace(",", ".")

    try:
        number = float(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def to_int(value: Any) -> int:
    """Coerce a cell to int, rounding half up."""
    return math.floor(to_number(value) + 0.5)


def to_iso_date(value: Any) -> str | None:
    """Normalize a date cell to ISO "YYYY-MM-DD".

    Accepts date/datetime objects, Excel serial day numbers, ISO text and
    dd-mm-yyyy / dd/mm/yyyy text.

    Returns:
        ISO date string, or None if the value is not a valid date.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        if EXCEL_SERIAL_MIN < value < EXCEL_SERIAL_MAX:
            return (EXCEL_EPOCH + timedelta(days=int(value))).isoformat()
        return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    match = _ISO_DATE_RE.match(text)
    if match:
        year, month, day = match.groups()
    else:
        match = _DMY_DATE_RE.match(text)
        if not match:
            return None
        day, month, year = match.groups()

    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def parse_time_slot(value: Any) -> str | None:
    """Normalize an hour cell to "HH:MM".

    Workbooks store times as a fraction of a day (0.5 == 12:00); openpyxl
    may already hand back ``time``/``timedelta`` objects. Text such as
    "9:30" is zero-padded.

    Returns:
        "HH:MM", or None when the cell is not a time of day.
    """
    if isinstance(value, datetime):
        value = value.time()
    if isinstance(value, time):
        return f"{value.hour:02d}:{value.minute:02d}"
    if isinstance(value, timedelta):
        value = value.total_seconds() / 86400
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        if not 0 <= value < 1:
            return None
        total_minutes = math.floor(value * 24 * 60 + 0.5)
        hours, minutes = divmod(total_minutes, 60)
        if hours > 23:
            return None
        return f"{hours:02d}:{minutes:02d}"
    if isinstance(value, str):
        match = _TIME_RE.match(value.strip())
        if match:
            hours, minutes = int(match.group(1)), int(match.group(2))
            if hours <= 23 and minutes <= 59:
                return f"{hours:02d}:{minutes:02d}"
    return None
