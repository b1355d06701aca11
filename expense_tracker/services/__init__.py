"""Services package."""

from expense_tracker.services.audio import (
    AudioCapture,
    AudioClip,
    DeviceUnavailableError,
    MicrophoneDevice,
    RecordedClipDevice,
)
from expense_tracker.services.auth import (
    AuthProvider,
    AuthRequiredError,
    StaticAuthProvider,
)
from expense_tracker.services.parser import ParseRequestClient, TransportError
from expense_tracker.services.storage import (
    DuplicateError,
    ExpenseStorageInterface,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryExpenseStorage,
    PersistenceError,
    StorageConnectionError,
)

__all__ = [
    # Voice capture
    "AudioCapture",
    "AudioClip",
    "DeviceUnavailableError",
    "MicrophoneDevice",
    "RecordedClipDevice",
    # Auth
    "AuthProvider",
    "AuthRequiredError",
    "StaticAuthProvider",
    # Parser
    "ParseRequestClient",
    "TransportError",
    # Storage services
    "DuplicateError",
    "ExpenseStorageInterface",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "InMemoryExpenseStorage",
    "PersistenceError",
    "StorageConnectionError",
]
