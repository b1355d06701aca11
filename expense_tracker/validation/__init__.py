"""Review policy package."""

from expense_tracker.validation.review import (
    DEFAULT_REVIEW_THRESHOLD,
    ConfidenceGate,
    finalize_draft,
)

__all__ = ["DEFAULT_REVIEW_THRESHOLD", "ConfidenceGate", "finalize_draft"]
