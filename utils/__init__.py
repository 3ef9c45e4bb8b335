"""Shared utilities for TaskDesk.

Import from the submodules directly or from this package:

    from utils import parse_task_status, SortState, now_nanos
"""

# Pattern definitions
from utils.patterns import (
    IMPORTABLE_EXTENSIONS,
    WHITESPACE,
    NON_NUMERIC,
)

# String utilities
from utils.strings import normalize_whitespace, label_key, empty_to_none, safe_filename

# Database utilities
from utils.database import (
    init_pragmas,
    batch_insert,
    get_table_count,
    query_to_dicts,
)

# Timestamps
from utils.timestamps import (
    NANOS_PER_DAY,
    now_nanos,
    millis_to_nanos,
    nanos_to_millis,
    nanos_to_datetime,
    datetime_to_nanos,
    date_to_nanos,
    parse_date_to_nanos,
    day_number,
)

# Labels and enums
from utils.labels import (
    TaskStatus,
    PaymentStatus,
    Recurring,
    TaskType,
    ClientStatus,
    UserRole,
    parse_task_type,
    parse_task_status,
    parse_payment_status,
    parse_recurring,
)

# Formatting
from utils.formatting import (
    PLACEHOLDER,
    format_date,
    format_export_date,
    format_optional_text,
    format_currency,
    parse_bill_amount,
    compute_outstanding,
)

# Sorting and filtering
from utils.sorting import TASK_STATUS_ORDER, compare_task_status, SortState, sort_records
from utils.filtering import matches_search_term, apply_task_filter, filter_todos

# Cache and config
from utils.cache import TTLCache
from utils.config import AppConfig, ANONYMOUS_PRINCIPAL

__all__ = [
    # Patterns
    "IMPORTABLE_EXTENSIONS",
    "WHITESPACE",
    "NON_NUMERIC",
    # Strings
    "normalize_whitespace",
    "label_key",
    "empty_to_none",
    "safe_filename",
    # Database
    "init_pragmas",
    "batch_insert",
    "get_table_count",
    "query_to_dicts",
    # Timestamps
    "NANOS_PER_DAY",
    "now_nanos",
    "millis_to_nanos",
    "nanos_to_millis",
    "nanos_to_datetime",
    "datetime_to_nanos",
    "date_to_nanos",
    "parse_date_to_nanos",
    "day_number",
    # Labels
    "TaskStatus",
    "PaymentStatus",
    "Recurring",
    "TaskType",
    "ClientStatus",
    "UserRole",
    "parse_task_type",
    "parse_task_status",
    "parse_payment_status",
    "parse_recurring",
    # Formatting
    "PLACEHOLDER",
    "format_date",
    "format_export_date",
    "format_optional_text",
    "format_currency",
    "parse_bill_amount",
    "compute_outstanding",
    # Sorting / filtering
    "TASK_STATUS_ORDER",
    "compare_task_status",
    "SortState",
    "sort_records",
    "matches_search_term",
    "apply_task_filter",
    "filter_todos",
    # Cache / config
    "TTLCache",
    "AppConfig",
    "ANONYMOUS_PRINCIPAL",
]
