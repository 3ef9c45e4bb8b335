"""String processing utilities shared by import parsing and search.

The import path calls these once per cell, so they avoid anything heavier than
a pre-compiled regex.
"""

from typing import Optional

from utils.patterns import LABEL_SEPARATORS, UNSAFE_FILENAME_CHARS, WHITESPACE


def normalize_whitespace(s: str) -> str:
    """Collapse runs of whitespace to single spaces and strip the ends.

    Example:
        "  File   GST\\n return " -> "File GST return"
    """
    return WHITESPACE.sub(' ', s).strip()


def label_key(s: Optional[str]) -> str:
    """Reduce an enum label to its comparison key.

    Lower-cases and drops whitespace, underscores and hyphens so that
    "In Progress", "in_progress", "INPROGRESS" and " inProgress " all
    compare equal.
    """
    if s is None:
        return ""
    s = getattr(s, "value", s)
    return LABEL_SEPARATORS.sub('', str(s)).lower()


def empty_to_none(value: Optional[str]) -> Optional[str]:
    """Return the stripped string, or None when it is empty."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def safe_filename(name: str) -> str:
    """Make *name* safe for a Content-Disposition filename."""
    cleaned = UNSAFE_FILENAME_CHARS.sub('_', name).strip('_')
    return cleaned or "export"
