"""Date parsing for dates embedded in topics and file names."""

import re
from datetime import date

import dateparser

ISO_DATE = re.compile(r"(?<!\d)(\d{4}-\d{2}-\d{2})(?!\d)")
US_DATE = re.compile(r"(?<!\d)(\d{1,2}/\d{1,2}/\d{4})(?!\d)")


def normalize_date(raw_date: str | None) -> date | None:
    """Parse one explicit date string (``2024-09-15`` or ``9/15/2024``).

    Args:
        raw_date: Date text cut out of a topic or file name

    Returns:
        Parsed date, or None if raw_date is empty or parsing fails

    Examples:
        >>> normalize_date("9/15/2024")
        datetime.date(2024, 9, 15)
        >>> normalize_date("2024-13-45")
        None
    """
    if raw_date is None or not raw_date.strip():
        return None

    settings: dict = {
        "DATE_ORDER": "YMD" if ISO_DATE.fullmatch(raw_date.strip()) else "MDY",
        "STRICT_PARSING": True,
        "RETURN_AS_TIMEZONE_AWARE": False,
    }

    try:
        parsed = dateparser.parse(raw_date.strip(), settings=settings)
    except Exception:
        # dateparser can raise various exceptions on malformed input
        return None
    if parsed is None:
        return None
    return parsed.date()


def find_dates(text: str | None) -> list[date]:
    """Every explicit date found in text, in order of appearance."""
    if not text:
        return []
    found: list[tuple[int, date]] = []
    for pattern in (ISO_DATE, US_DATE):
        for match in pattern.finditer(text):
            parsed = normalize_date(match.group(1))
            if parsed is not None:
                found.append((match.start(), parsed))
    return [d for _, d in sorted(found, key=lambda item: item[0])]
