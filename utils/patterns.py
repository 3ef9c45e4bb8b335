"""Pre-compiled regex patterns shared by the import, export and formatting code.

Usage:
    from utils.patterns import WHITESPACE, NON_NUMERIC

    WHITESPACE.sub(" ", text)
"""

import re

# Upload file extensions accepted by the bulk import endpoints
IMPORTABLE_EXTENSIONS = re.compile(r'\.(csv|txt|xlsx)$', re.IGNORECASE)

# Whitespace normalization: multiple spaces/tabs/newlines
WHITESPACE = re.compile(r'\s+')

# Separators ignored when matching enum labels: "In Progress", "in-progress"
LABEL_SEPARATORS = re.compile(r'[\s_\-]+')

# Everything except digits, sign and decimal point (bill amounts like "₹ 1,200")
NON_NUMERIC = re.compile(r'[^0-9.\-]')

# Characters that make a filename unsafe in a Content-Disposition header
UNSAFE_FILENAME_CHARS = re.compile(r'[^A-Za-z0-9._-]+')
