"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the capture and dashboard flows decoupled from storage

The interface is intentionally small. There is no update operation:
saved expenses are immutable, they can only be deleted.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from expense_tracker.models.expense import ExpenseRecord, TimeWindow


DEFAULT_QUERY_LIMIT = 100


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage operations.
    
    Every read and delete is scoped to one owner.
    """
    
    @abstractmethod
    async def save_expense(self, record: ExpenseRecord) -> ExpenseRecord:
        """
        Insert one expense.
        
        Args:
            record: The finalized record to insert
            
        Returns:
            The stored record
            
        Raises:
            PersistenceError: On constraint violation or lost connectivity
        """
        pass
    
    @abstractmethod
    async def list_expenses(
        self,
        owner_id: str,
        window: TimeWindow = TimeWindow.ALL,
        today: Optional[date] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> list[ExpenseRecord]:
        """
        List an owner's expenses inside a time window.
        
        Args:
            owner_id: Whose expenses to return
            window: Only dates on or after the window start are returned
            today: Reference date for the window (defaults to date.today())
            limit: Maximum number of results
            
        Returns:
            Expenses ordered by date descending. Ties on the same date keep
            the backend's natural order.
            
        Raises:
            PersistenceError: If the backend cannot be read
        """
        pass
    
    @abstractmethod
    async def delete_expense(self, expense_id: UUID, owner_id: str) -> bool:
        """
        Delete an expense by ID.
        
        Deleting an ID that does not exist is not an error.
        
        Returns:
            True if a row was removed, False if it was already absent
            
        Raises:
            PersistenceError: If the backend cannot be written
        """
        pass


class PersistenceError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(PersistenceError):
    """Attempted to insert an expense whose ID already exists."""
    pass


class StorageConnectionError(PersistenceError):
    """Could not connect to storage backend."""
    pass
