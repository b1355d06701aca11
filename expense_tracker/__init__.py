"""
Voice Expense Tracker - Source Package

Capture an expense by typing or speaking a short phrase, let an external
parsing service turn it into structured fields, confirm it when the parser
is unsure, and review spending on an auto-refreshing dashboard.

DESIGN PRINCIPLES:
1. The parser suggests, the user saves
2. Low confidence is surfaced, never hidden
3. Every failure reaches the user as a notification
4. Saved expenses are never edited in place
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Voice Expense Tracker Team"
