"""Dashboard aggregation package."""

from expense_tracker.queries.aggregation import (
    DEFAULT_TOP_CATEGORIES,
    AggregationEngine,
    aggregate,
)

__all__ = ["DEFAULT_TOP_CATEGORIES", "AggregationEngine", "aggregate"]
