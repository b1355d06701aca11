"""
In-memory expense storage.

Used by the test-suite and for running the app without Google credentials.
Data lives for the lifetime of the process only.
"""

import asyncio
from datetime import date
from typing import Optional
from uuid import UUID

from expense_tracker.models.expense import ExpenseRecord, TimeWindow
from expense_tracker.services.storage.interface import (
    DEFAULT_QUERY_LIMIT,
    DuplicateError,
    ExpenseStorageInterface,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """
    Dictionary-backed store.
    
    `latency` adds an artificial await on every call so concurrent
    callers interleave the way they would against a remote backend.
    """
    
    def __init__(self, latency: float = 0.0):
        self._rows: dict[UUID, ExpenseRecord] = {}
        self._latency = latency
    
    async def _round_trip(self) -> None:
        await asyncio.sleep(self._latency)
    
    async def save_expense(self, record: ExpenseRecord) -> ExpenseRecord:
        await self._round_trip()
        if record.id in self._rows:
            raise DuplicateError(f"Expense already exists: {record.id}")
        self._rows[record.id] = record
        return record
    
    async def list_expenses(
        self,
        owner_id: str,
        window: TimeWindow = TimeWindow.ALL,
        today: Optional[date] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> list[ExpenseRecord]:
        await self._round_trip()
        start = window.start_date(today or date.today())
        
        rows = [
            row for row in self._rows.values()
            if row.owner_id == owner_id and (start is None or row.date >= start)
        ]
        # Stable sort: same-date rows keep insertion order
        rows.sort(key=lambda r: r.date, reverse=True)
        return rows[:limit]
    
    async def delete_expense(self, expense_id: UUID, owner_id: str) -> bool:
        await self._round_trip()
        row = self._rows.get(expense_id)
        if row is None or row.owner_id != owner_id:
            return False
        del self._rows[expense_id]
        return True
