"""Calendar date parsing for receipts and submission forms."""

from datetime import date, datetime
from typing import Any, Optional


DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d", "%d.%m.%Y")


def parse_calendar_date(value: Any) -> Optional[date]:
    """
    Read a real calendar date from a date, datetime or string.
    
    Strings may be ISO dates or datetimes ("2024-03-05T10:00:00Z") or one
    of DATE_FORMATS. Returns None when nothing valid can be read,
    including impossible dates such as 2024-02-30.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    
    text = value.strip()
    if not text:
        return None
    
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None
