"""
Data Models Package

This package contains all Pydantic models used in the Voice Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.expense import (
    UNCATEGORIZED,
    AggregatedView,
    AudioInput,
    CategorySpend,
    DailySpend,
    ExpenseDraft,
    ExpenseRecord,
    ParseContext,
    ParsedExpense,
    ParseInput,
    ParseResponse,
    ReviewDecision,
    TextInput,
    TimeWindow,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from expense_tracker.models.notification import (
    Notification,
    NotificationInbox,
    NotificationVariant,
    Notifier,
)

__all__ = [
    # Expense models
    "UNCATEGORIZED",
    "AggregatedView",
    "AudioInput",
    "CategorySpend",
    "DailySpend",
    "ExpenseDraft",
    "ExpenseRecord",
    "ParseContext",
    "ParsedExpense",
    "ParseInput",
    "ParseResponse",
    "ReviewDecision",
    "TextInput",
    "TimeWindow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Notifications
    "Notification",
    "NotificationInbox",
    "NotificationVariant",
    "Notifier",
]
