"""
Streamlit Frontend for Voice Expense Tracker

DESIGN PRINCIPLES:
1. One box: type "coffee 120" or press record
2. Low-confidence parses are highlighted, never silently saved or blocked
3. Every failure shows up as a toast
4. Saved expenses can be deleted, not edited

The UI holds no business logic. It calls the flows in
expense_tracker.orchestrator and renders their state.
"""

import asyncio

import streamlit as st

from expense_tracker.config import get_settings, validate_all_settings
from expense_tracker.models.expense import TimeWindow
from expense_tracker.models.notification import NotificationInbox, NotificationVariant
from expense_tracker.orchestrator import (
    DashboardFlow,
    ExpenseCaptureFlow,
    create_app_components,
    create_storage,
)
from expense_tracker.presentation import (
    recent_records,
    review_card_html,
    sign_out_on_auth_error,
)
from expense_tracker.services.audio import RecordedClipDevice
from expense_tracker.services.auth import StaticAuthProvider


# Page configuration
st.set_page_config(
    page_title="Voice Expense Tracker",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .review-box {
        padding: 16px;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        background-color: #f1f8f3;
        margin: 10px 0;
    }
    .review-box.low {
        border-left-color: #dc3545;
        background-color: #fdf1f2;
    }
</style>
""", unsafe_allow_html=True)


PAGES = ["➕ Add Expense", "📊 Dashboard", "⚙️ Settings"]


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_storage():
    """One expense store shared by all sessions (cached)."""
    return create_storage()


def get_session() -> tuple[StaticAuthProvider, NotificationInbox, ExpenseCaptureFlow, DashboardFlow]:
    """Per-browser-session auth, inbox and flows."""
    if "auth" not in st.session_state:
        st.session_state.auth = StaticAuthProvider()
        st.session_state.inbox = NotificationInbox()
        capture, dashboard = create_app_components(
            auth=st.session_state.auth,
            storage=get_storage(),
            notifier=st.session_state.inbox,
        )
        st.session_state.capture_flow = capture
        st.session_state.dashboard_flow = dashboard
    return (
        st.session_state.auth,
        st.session_state.inbox,
        st.session_state.capture_flow,
        st.session_state.dashboard_flow,
    )


def show_notifications(inbox: NotificationInbox) -> None:
    for notification in inbox.drain():
        icon = "⚠️" if notification.variant is NotificationVariant.DESTRUCTIVE else "✅"
        st.toast(f"**{notification.title}** - {notification.description}", icon=icon)


def main():
    """Main application entry point."""
    auth, inbox, capture_flow, dashboard_flow = get_session()

    if not auth.owner_id:
        render_sign_in_page(auth)
        return

    st.sidebar.title("💸 Voice Expense Tracker")
    st.sidebar.caption(f"Signed in as **{auth.owner_id}**")
    st.sidebar.markdown("---")
    page = st.sidebar.radio("Navigate to:", PAGES, index=0)
    st.sidebar.markdown("---")
    if st.sidebar.button("Sign out"):
        auth.sign_out()
        st.rerun()

    try:
        with sign_out_on_auth_error(auth):
            if page == PAGES[0]:
                render_add_expense_page(capture_flow)
            elif page == PAGES[1]:
                render_dashboard_page(dashboard_flow, auth)
            else:
                render_settings_page()
    finally:
        show_notifications(inbox)
    if not auth.owner_id:
        st.rerun()


def render_sign_in_page(auth: StaticAuthProvider):
    """Sign-in entry point. Nothing else is reachable without an owner."""
    st.title("👋 Sign in")
    st.markdown("Sign in to record and review your expenses.")
    owner_id = st.text_input("Email or user ID")
    if st.button("Continue", type="primary") and owner_id.strip():
        auth.sign_in(owner_id)
        st.rerun()


def render_add_expense_page(flow: ExpenseCaptureFlow):
    """Render the quick entry page."""
    st.title("➕ Add Expense")
    st.caption('Type or say "coffee 120" or "rent 12000 Oct 2025"')

    col1, col2 = st.columns([4, 1])
    with col1:
        text = st.text_input(
            "Quick entry",
            value=flow.message,
            placeholder='Type or say "coffee 120" or "rent 12000 Oct 2025"',
            disabled=flow.is_processing,
            label_visibility="collapsed",
        )
    with col2:
        if st.button("Send", type="primary", disabled=not text.strip()):
            with st.spinner("Processing..."):
                run_async(flow.submit_text(text))

    max_seconds = get_settings().capture.max_recording_seconds
    recording = st.audio_input(
        f"🎙️ Record (only the first {max_seconds:.0f} seconds are sent)"
    )
    if recording is not None and st.button("Send recording"):
        audio_format = (recording.type or "audio/webm").split("/")[-1]
        device = RecordedClipDevice(
            recording.getvalue(),
            audio_format=audio_format,
            max_seconds=max_seconds,
        )
        if device.trimmed:
            st.info(f"Recording trimmed to the first {max_seconds:.0f} seconds.")
        with st.spinner("Processing..."):
            run_async(flow.record(device))

    if flow.draft is not None:
        render_review_card(flow)


def render_review_card(flow: ExpenseCaptureFlow):
    """Show the parsed expense with Save / Discard."""
    draft = flow.draft
    low = flow.requires_review

    st.markdown("---")
    header, badge = st.columns([3, 1])
    with header:
        st.subheader("📋 Review Expense")
    with badge:
        if draft.ai_confidence is not None:
            st.markdown(f"{'🔴' if low else '🟢'} **Confidence: {draft.ai_confidence:.0%}**")

    if low:
        st.error("Low confidence - please confirm before saving.")

    st.markdown(review_card_html(draft, low), unsafe_allow_html=True)

    col1, col2 = st.columns([3, 1])
    with col1:
        if st.button("✅ Save to My Expenses", type="primary", disabled=flow.is_saving):
            if run_async(flow.save()) is not None:
                st.rerun()
    with col2:
        if st.button("❌ Discard"):
            run_async(flow.discard())
            st.rerun()


def render_dashboard_page(flow: DashboardFlow, auth: StaticAuthProvider):
    """Render the dashboard; the fragment re-runs on the refresh interval."""
    st.title("📊 Dashboard")

    windows = list(TimeWindow)
    selected = st.selectbox(
        "Time range",
        options=windows,
        index=windows.index(flow.window),
        format_func=lambda w: w.label,
    )
    if selected is not flow.window:
        run_async(flow.set_window(selected))

    render_dashboard_body(flow, auth)


@st.fragment(run_every=get_settings().dashboard.refresh_interval_seconds)
def render_dashboard_body(flow: DashboardFlow, auth: StaticAuthProvider):
    # Timed reruns bypass main(), so auth and toasts are handled here too
    with sign_out_on_auth_error(auth):
        render_dashboard_content(flow)
    show_notifications(st.session_state.inbox)
    if not auth.owner_id:
        st.rerun(scope="app")


def render_dashboard_content(flow: DashboardFlow):
    run_async(flow.refresh())
    view = flow.view

    if flow.last_refresh:
        st.caption(f"Last refreshed: {flow.last_refresh.astimezone():%H:%M:%S}")

    col1, col2, col3 = st.columns(3)
    col1.metric("Total Spend", f"₹{view.total_spend:,.2f}")
    col2.metric("Transactions", view.transaction_count)
    col3.metric("Avg per Txn", f"₹{view.average_per_transaction:,.2f}")

    chart1, chart2 = st.columns(2)
    with chart1:
        st.markdown("#### Daily Spending Trend")
        if view.daily_series:
            st.area_chart(
                [{"date": p.date.isoformat(), "amount": float(p.amount)} for p in view.daily_series],
                x="date",
                y="amount",
            )
        else:
            st.caption("No data available")
    with chart2:
        st.markdown("#### Top Categories")
        if view.top_categories:
            st.bar_chart(
                [{"category": c.category, "amount": float(c.amount)} for c in view.top_categories],
                x="category",
                y="amount",
                horizontal=True,
            )
        else:
            st.caption("No data available")

    st.markdown("#### Recent Expenses")
    if not flow.records:
        st.info("No expenses yet. Use 'Add Expense' to record your first one.")
        return

    pending = st.session_state.get("pending_delete")
    for record in recent_records(flow.records):
        cols = st.columns([2, 2, 2, 3, 1, 1])
        cols[0].write(record.date.isoformat())
        cols[1].write(f"{record.amount} {record.currency}")
        cols[2].write(record.category or "-")
        cols[3].write(record.description or "")
        cols[4].button("✏️", key=f"edit-{record.id}", disabled=True, help="Editing is not available")
        if cols[5].button("🗑️", key=f"delete-{record.id}"):
            st.session_state.pending_delete = record.id
            st.rerun(scope="fragment")

        if pending == record.id:
            st.warning("Are you sure you want to delete this expense?")
            yes, no = st.columns(2)
            if yes.button("Yes, delete", key=f"confirm-{record.id}", type="primary"):
                run_async(flow.delete(record.id, confirmed=True))
                st.session_state.pending_delete = None
                st.rerun(scope="fragment")
            if no.button("Cancel", key=f"cancel-{record.id}"):
                st.session_state.pending_delete = None
                st.rerun(scope="fragment")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")
    st.markdown("### Configuration Status")

    status = validate_all_settings()
    sections = [
        ("Expense parser", "parser"),
        ("Voice capture", "capture"),
        ("Dashboard", "dashboard"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Application", "app"),
    ]
    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "Configure the application with environment variables or a `.env` file "
        "(`PARSER_ENDPOINT_URL`, `GOOGLE_SHEETS_CREDENTIALS_PATH`, ...)."
    )


if __name__ == "__main__":
    main()
