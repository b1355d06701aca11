"""
Storage Services Package

Provides the abstract expense store and its implementations.
Google Sheets is the hosted backend; the in-memory store serves tests and
local runs without credentials.
"""

from expense_tracker.services.storage.interface import (
    DEFAULT_QUERY_LIMIT,
    DuplicateError,
    ExpenseStorageInterface,
    PersistenceError,
    StorageConnectionError,
)
from expense_tracker.services.storage.memory import InMemoryExpenseStorage
from expense_tracker.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
)

__all__ = [
    # Interface
    "DEFAULT_QUERY_LIMIT",
    "ExpenseStorageInterface",
    # Exceptions
    "DuplicateError",
    "PersistenceError",
    "StorageConnectionError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "InMemoryExpenseStorage",
]
