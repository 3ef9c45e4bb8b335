"""Output formatting utilities.

Provides reusable functions for:
- Formatting dates for display and for export files
- Formatting rupee amounts
- Parsing free-form bill strings
- Outstanding-amount arithmetic
"""

from typing import Optional

from utils.patterns import NON_NUMERIC

PLACEHOLDER = "—"

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def format_date(ns: Optional[int]) -> str:
    """Format a nanosecond timestamp for display.

    Examples:
        format_date(1774915200000000000) -> "Mar 31, 2026"
        format_date(None) -> "—"
    """
    if ns is None:
        return PLACEHOLDER
    from utils.timestamps import nanos_to_datetime
    dt = nanos_to_datetime(ns)
    return f"{_MONTHS[dt.month - 1]} {dt.day}, {dt.year}"


def format_export_date(ns: Optional[int]) -> str:
    """Format a nanosecond timestamp as dd/mm/yyyy (UTC), or "" if missing."""
    if ns is None:
        return ""
    from utils.timestamps import nanos_to_datetime
    return nanos_to_datetime(ns).strftime("%d/%m/%Y")


def format_optional_text(value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        return PLACEHOLDER
    return str(value)


def format_currency(value: Optional[float], precision: int = 0) -> str:
    """Format a rupee amount with thousands separators.

    Examples:
        format_currency(50000) -> "₹50,000"
        format_currency(None) -> "—"
    """
    if value is None:
        return PLACEHOLDER
    sign = "-" if value < 0 else ""
    return f"{sign}₹{abs(value):,.{precision}f}"

def parse_bill_amount(bill) -> float:
    """Parse a bill string into a number.

    Strips everything that is not a digit, sign or decimal point, so
    "₹ 1,200.50" becomes 1200.5.  Empty or unparseable bills are 0.0.
    """
    if bill is None:
        return 0.0
    if isinstance(bill, (int, float)):
        return float(bill)
    cleaned = NON_NUMERIC.sub("", str(bill))
    if not cleaned:
        return 0.0
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def compute_outstanding(bill, advance_received: Optional[int]) -> Optional[int]:
    """Return bill minus advance, floored at zero; None when there is no bill."""
    if bill is None or str(bill).strip() == "":
        return None
    amount = int(parse_bill_amount(bill))
    return max(amount - (advance_received or 0), 0)
