"""Dashboard refresh scheduling package."""

from expense_tracker.scheduling.refresh import RefreshCallback, RefreshScheduler

__all__ = ["RefreshCallback", "RefreshScheduler"]
