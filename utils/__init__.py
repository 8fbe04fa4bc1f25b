"""Shared utilities for the bill tracker: storage, entity mapping, query planning."""

# Common utilities
from utils.common import elapsed, format_datetime, parse_datetime, sqldatetime, utcnow

# Database utilities
from utils.database import (
    create_database,
    get_connection,
    get_table_count,
    init_pragmas,
    init_schema,
)

# Entity mapping
from utils.bills import (
    Bill,
    BillPayloadError,
    FinalizedBill,
    Finance,
    PendingBill,
    bill_from_payload,
    finalize,
    insert_pending,
    load_bill,
    load_bills,
)

# Query planning and paging
from utils.query import parse_order_param, plan_bill_ids, plan_pending_ids
from utils.pager import fetch_size, next_cursor, page

# HTTP utilities
from utils.http import RetryStrategy, SessionManager

# Configuration
from utils.config import AppConfig, Config

__all__ = [
    # Common
    "elapsed",
    "format_datetime",
    "parse_datetime",
    "sqldatetime",
    "utcnow",
    # Database
    "create_database",
    "get_connection",
    "get_table_count",
    "init_pragmas",
    "init_schema",
    # Bills
    "Bill",
    "BillPayloadError",
    "FinalizedBill",
    "Finance",
    "PendingBill",
    "bill_from_payload",
    "finalize",
    "insert_pending",
    "load_bill",
    "load_bills",
    # Query / paging
    "parse_order_param",
    "plan_bill_ids",
    "plan_pending_ids",
    "fetch_size",
    "next_cursor",
    "page",
    # HTTP
    "RetryStrategy",
    "SessionManager",
    # Config
    "AppConfig",
    "Config",
]
