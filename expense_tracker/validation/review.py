"""
Review Policy

Two small, deliberately permissive rules sit between a parse and a save:

1. CONFIDENCE GATE - decides whether the review card is highlighted.
   A score below the threshold asks the user to double-check. A MISSING
   score is trusted. The gate never blocks saving.

2. DRAFT FINALIZATION - the one place where missing fields get defaults
   (amount -> 0, date -> today, description -> the typed phrase).
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from expense_tracker.models.expense import (
    ExpenseDraft,
    ExpenseRecord,
    ReviewDecision,
)


DEFAULT_REVIEW_THRESHOLD = 0.70


class ConfidenceGate:
    """Classifies a parser confidence score."""
    
    def __init__(self, threshold: float = DEFAULT_REVIEW_THRESHOLD):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"Threshold must be within [0, 1], got {threshold}")
        self.threshold = threshold
    
    def evaluate(self, confidence: Optional[float]) -> ReviewDecision:
        if confidence is not None and confidence < self.threshold:
            return ReviewDecision.REQUIRE_REVIEW
        return ReviewDecision.AUTO_ACCEPT
    
    def requires_review(self, confidence: Optional[float]) -> bool:
        return self.evaluate(confidence) is ReviewDecision.REQUIRE_REVIEW


def finalize_draft(
    draft: ExpenseDraft,
    owner_id: str,
    today: Optional[date] = None,
) -> ExpenseRecord:
    """
    Turn a draft into a record ready for insertion.
    
    Defaults applied here and only here:
    - amount: 0 when the parser found none
    - date: `today` when the parser found none
    - description: the raw typed phrase when the parser gave none
    
    The category is left exactly as parsed (None stays None).
    """
    return ExpenseRecord(
        owner_id=owner_id,
        amount=draft.amount if draft.amount is not None else Decimal("0"),
        currency=draft.currency,
        date=draft.date or today or date.today(),
        category=draft.category,
        vendor=draft.vendor,
        description=draft.description or draft.source_text,
        ai_confidence=draft.ai_confidence,
    )
