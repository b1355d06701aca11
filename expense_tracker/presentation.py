"""
Presentation helpers for the Streamlit app.

Kept free of Streamlit calls so they can be tested directly.
"""

import html
from contextlib import contextmanager
from typing import Iterator, Sequence

from expense_tracker.models.expense import ExpenseDraft, ExpenseRecord
from expense_tracker.services.auth import AuthRequiredError, StaticAuthProvider


RECENT_EXPENSE_LIMIT = 25


@contextmanager
def sign_out_on_auth_error(auth: StaticAuthProvider) -> Iterator[None]:
    """
    Sign the session out when an action finds nobody signed in.
    
    The caller checks `auth.owner_id` afterwards and sends the user to the
    sign-in page.
    """
    try:
        yield
    except AuthRequiredError:
        auth.sign_out()


def recent_records(
    records: Sequence[ExpenseRecord],
    limit: int = RECENT_EXPENSE_LIMIT,
) -> list[ExpenseRecord]:
    """Records shown in the dashboard list, newest first."""
    return list(records[:limit])


def review_card_html(draft: ExpenseDraft, low_confidence: bool) -> str:
    """
    Markup for the review card.
    
    Every parsed value is escaped; they come straight from the parser.
    """
    amount = draft.amount if draft.amount is not None else "?"
    fields = [
        ("Amount", f"{amount} {draft.currency}"),
        ("Date", draft.date.isoformat() if draft.date else "Today"),
        ("Category", draft.category),
        ("Vendor", draft.vendor),
        ("Description", draft.description),
    ]
    lines = [
        f"<p><strong>{label}:</strong> {html.escape(str(value))}</p>"
        for label, value in fields
        if value
    ]
    css_class = "review-box low" if low_confidence else "review-box"
    return f"<div class='{css_class}'>{''.join(lines)}</div>"
