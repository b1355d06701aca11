"""Tests for the confidence gate and draft finalization."""

import pytest
from datetime import date
from decimal import Decimal

from expense_tracker.models.expense import ExpenseDraft, ReviewDecision
from expense_tracker.validation import ConfidenceGate, finalize_draft


class TestConfidenceGate:

    @pytest.mark.parametrize("confidence", [0.0, 0.1, 0.55, 0.69, 0.6999])
    def test_low_scores_require_review(self, confidence):
        assert ConfidenceGate().evaluate(confidence) == ReviewDecision.REQUIRE_REVIEW

    @pytest.mark.parametrize("confidence", [0.70, 0.7, 0.92, 1.0])
    def test_threshold_and_above_auto_accept(self, confidence):
        assert ConfidenceGate().evaluate(confidence) == ReviewDecision.AUTO_ACCEPT

    def test_missing_confidence_is_trusted(self):
        assert ConfidenceGate().evaluate(None) == ReviewDecision.AUTO_ACCEPT

    def test_custom_threshold(self):
        gate = ConfidenceGate(threshold=0.9)
        assert gate.requires_review(0.85) is True
        assert gate.requires_review(0.9) is False

    def test_threshold_must_be_a_probability(self):
        with pytest.raises(ValueError):
            ConfidenceGate(threshold=1.5)


class TestFinalizeDraft:

    def test_missing_date_becomes_today(self):
        draft = ExpenseDraft(amount=Decimal("120"), currency="INR")
        record = finalize_draft(draft, "user-1", today=date(2025, 10, 19))
        assert record.amount == Decimal("120")
        assert record.currency == "INR"
        assert record.date == date(2025, 10, 19)
        assert record.owner_id == "user-1"

    def test_today_defaults_to_system_date(self):
        record = finalize_draft(ExpenseDraft(amount=Decimal("1")), "user-1")
        assert record.date == date.today()

    def test_missing_amount_becomes_zero(self):
        record = finalize_draft(ExpenseDraft(), "user-1", today=date(2025, 1, 1))
        assert record.amount == Decimal("0")

    def test_parsed_date_is_kept(self):
        draft = ExpenseDraft(amount=Decimal("5"), date=date(2025, 9, 30))
        record = finalize_draft(draft, "user-1", today=date(2025, 10, 19))
        assert record.date == date(2025, 9, 30)

    def test_description_falls_back_to_typed_text(self):
        draft = ExpenseDraft(amount=Decimal("120"), source_text="coffee 120")
        assert finalize_draft(draft, "user-1").description == "coffee 120"

        draft = ExpenseDraft(amount=Decimal("120"), description="Coffee", source_text="coffee 120")
        assert finalize_draft(draft, "user-1").description == "Coffee"

    def test_category_is_not_relabelled(self):
        record = finalize_draft(ExpenseDraft(amount=Decimal("1")), "user-1")
        assert record.category is None

    def test_confidence_and_vendor_carried(self):
        draft = ExpenseDraft(amount=Decimal("1"), vendor="Cafe", ai_confidence=0.55)
        record = finalize_draft(draft, "user-1")
        assert record.vendor == "Cafe"
        assert record.ai_confidence == 0.55
