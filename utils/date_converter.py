from datetime import date, datetime, timezone
import pandas as pd
from typing import Any, Optional, Union
from utils.logger import get_logger

"""
Value Converter Utility:

Converts spreadsheet cell values (strings, numbers, Excel dates read as
datetime/Timestamp) to the text representation used by the U-Bahn API fields.

"""

logger = get_logger('date_converter')


def convert_to_iso_date(date_input: Union[str, datetime, date, None]) -> Optional[str]:
    """
    Convert a date string, date, datetime or pandas Timestamp to an ISO-8601 UTC string.
    Strings that cannot be parsed by the known formats are returned unchanged and
    left to the API to validate.

    Args:
        date_input: Date as string, date/datetime object, or None

    Returns:
        Date in YYYY-MM-DDTHH:MM:SS.sssZ format, the original string, or None
    """
    if date_input is None or (not isinstance(date_input, str) and pd.isna(date_input)):
        return None

    # A pandas Timestamp is also a datetime
    if isinstance(date_input, pd.Timestamp):
        date_input = date_input.to_pydatetime()

    if isinstance(date_input, datetime):
        dt = date_input if date_input.tzinfo else date_input.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

    if isinstance(date_input, date):
        return convert_to_iso_date(datetime(date_input.year, date_input.month, date_input.day))

    text = str(date_input).strip()
    if not text:
        return None

    formats = [
        "%Y-%m-%dT%H:%M:%S.%fZ",   # Already ISO
        "%Y-%m-%dT%H:%M:%SZ",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d",
        "%m/%d/%Y",
        "%Y/%m/%d"
    ]

    for fmt in formats:
        try:
            return convert_to_iso_date(datetime.strptime(text, fmt))
        except ValueError:
            continue  # Try the next format

    logger.warning(f"Unable to parse date format: {text}. Sending it as is.")
    return text


def convert_to_text(value: Any) -> Optional[str]:
    """
    Coerce a cell value to the string expected by text-typed API fields.
    Whole floats (Excel stores 5 as 5.0) lose their trailing .0
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
