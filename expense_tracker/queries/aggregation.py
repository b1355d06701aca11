"""
Dashboard Aggregation

DESIGN DECISION: Aggregation is a pure function of the loaded records.
It is recomputed on every fetch and never stored, so the dashboard can
never show a summary that disagrees with the list below it.

Amounts are summed as Decimal; the daily series always adds up to the
total exactly.
"""

from decimal import Decimal
from typing import Iterable

from expense_tracker.models.expense import (
    UNCATEGORIZED,
    AggregatedView,
    CategorySpend,
    DailySpend,
    ExpenseRecord,
)


DEFAULT_TOP_CATEGORIES = 5


class AggregationEngine:
    """
    Builds an AggregatedView from a sequence of records.
    
    - Daily series: one point per distinct stored date, ascending. Dates are
      grouped exactly as stored; no timezone shifting happens here.
    - Top categories: a missing category counts as "Uncategorized" for
      grouping only. Sorted by amount descending; equal amounts keep the
      order in which the categories were first seen.
    """
    
    def __init__(self, top_n: int = DEFAULT_TOP_CATEGORIES):
        self.top_n = top_n
    
    def aggregate(self, records: Iterable[ExpenseRecord]) -> AggregatedView:
        records = list(records)
        if not records:
            return AggregatedView()
        
        total = sum((r.amount for r in records), Decimal("0"))
        count = len(records)
        
        return AggregatedView(
            total_spend=total,
            transaction_count=count,
            average_per_transaction=total / count,
            daily_series=self._daily_series(records),
            top_categories=self._top_categories(records),
        )
    
    def _daily_series(self, records: list[ExpenseRecord]) -> list[DailySpend]:
        by_date: dict = {}
        for record in records:
            by_date[record.date] = by_date.get(record.date, Decimal("0")) + record.amount
        
        return [
            DailySpend(date=day, amount=amount)
            for day, amount in sorted(by_date.items(), key=lambda item: item[0])
        ]
    
    def _top_categories(self, records: list[ExpenseRecord]) -> list[CategorySpend]:
        by_category: dict[str, Decimal] = {}
        for record in records:
            key = record.category or UNCATEGORIZED
            by_category[key] = by_category.get(key, Decimal("0")) + record.amount
        
        # sorted() is stable, so ties keep first-seen order
        ranked = sorted(by_category.items(), key=lambda item: item[1], reverse=True)
        return [
            CategorySpend(category=category, amount=amount)
            for category, amount in ranked[: self.top_n]
        ]


def aggregate(
    records: Iterable[ExpenseRecord],
    top_n: int = DEFAULT_TOP_CATEGORIES,
) -> AggregatedView:
    """Shortcut for AggregationEngine(top_n).aggregate(records)."""
    return AggregationEngine(top_n).aggregate(records)
