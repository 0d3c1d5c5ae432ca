"""
Streamlit Frontend for Bill Tracker

The household's monthly view of what is owed and what is already paid.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before anything is deleted
3. Clear error messages in simple language
4. The sync indicator is always visible
5. No hidden actions

Local state changes immediately; the cloud copy follows in the background.
A failed cloud write never undoes what the user did. It only shows up in
the sync indicator until "Sync everything" succeeds.
"""

import asyncio
from uuid import UUID

import streamlit as st

from bill_tracker.audit import configure_logging
from bill_tracker.config import get_settings, validate_all_settings
from bill_tracker.models.bill import Bill, StatusFilter
from bill_tracker.orchestrator import (
    BillTracker,
    TrackerError,
    create_app_components,
)
from bill_tracker.series import month_label
from bill_tracker.validation import BillValidationError


# Page configuration
st.set_page_config(
    page_title="Bill Tracker",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)

STATUS_LABELS = {
    StatusFilter.ALL: "All",
    StatusFilter.PENDING: "Pending",
    StatusFilter.PAID: "Paid",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def run_mutation(tracker: BillTracker, action, *args, **kwargs):
    """Apply a mutation and let its cloud write finish before rerendering."""
    async def _apply():
        result = action(*args, **kwargs)
        await tracker.wait_for_sync()
        return result

    return run_async(_apply())


@st.cache_resource
def get_tracker() -> BillTracker:
    """Get or create the tracker (cached), reconciled with the cloud once."""
    configure_logging(get_settings().app.debug_mode)
    try:
        tracker = create_app_components(use_remote=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        tracker = create_app_components(use_remote=False)
    run_async(tracker.start())
    return tracker


def main():
    """Main application entry point."""
    tracker = get_tracker()

    if "month" not in st.session_state:
        default_month = get_settings().app.default_month
        months = list(tracker.months)
        st.session_state.month = default_month if default_month in months else months[0]
    if "editing_bill_id" not in st.session_state:
        st.session_state.editing_bill_id = None

    st.sidebar.title("💸 Bill Tracker")
    render_sync_indicator(tracker)
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📅 Month", "🗂️ Groups", "⚙️ Settings"],
        index=0,
    )

    if page == "📅 Month":
        render_month_page(tracker)
    elif page == "🗂️ Groups":
        render_groups_page(tracker)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_sync_indicator(tracker: BillTracker):
    status = tracker.sync_status
    if status.is_syncing:
        st.sidebar.info("🔄 Syncing...")
    elif status.has_error:
        st.sidebar.error(f"⚠️ {status.error_message}")
    elif status.last_sync is not None:
        st.sidebar.success(f"☁️ Synced at {status.last_sync:%H:%M:%S}")
    else:
        st.sidebar.warning("Not synced yet")

    if st.sidebar.button("🔁 Sync everything"):
        with st.spinner("Sending every bill to the cloud..."):
            if run_async(tracker.force_full_sync()):
                st.sidebar.success("All bills are in the cloud")
            else:
                st.sidebar.error("Sync failed, your bills are still saved on this device")


def render_month_page(tracker: BillTracker):
    """Render the monthly list with totals."""
    months = list(tracker.months)
    col1, col2 = st.columns([2, 1])

    with col1:
        month = st.selectbox(
            "Month",
            options=months,
            index=months.index(st.session_state.month) if st.session_state.month in months else 0,
            format_func=month_label,
        )
        st.session_state.month = month

    with col2:
        status_filter = st.radio(
            "Show",
            options=list(StatusFilter),
            format_func=STATUS_LABELS.get,
            horizontal=True,
        )

    stats = tracker.monthly_stats(month)
    col1, col2, col3 = st.columns(3)
    col1.metric("Total", f"R$ {stats.total:,.2f}")
    col2.metric("Paid", f"R$ {stats.paid:,.2f}")
    col3.metric("Pending", f"R$ {stats.pending:,.2f}")
    st.caption(f"'{tracker.extra_group}' is listed below but left out of these totals.")

    st.markdown("---")

    grouped = tracker.grouped_bills(month, status_filter)
    totals = tracker.group_totals(month, status_filter)
    if not grouped:
        st.info("📋 No bills for this month yet. Add one below.")

    for group, bills in grouped.items():
        with st.expander(f"{group} · R$ {totals[group]:,.2f}", expanded=True):
            for bill in bills:
                render_bill_row(tracker, bill)

    filename, content = tracker.export_csv(month, status_filter)
    st.download_button(
        "⬇️ Export CSV",
        data=content,
        file_name=filename,
        mime="text/csv",
    )

    st.markdown("---")
    render_bill_form(tracker, month)


def render_bill_row(tracker: BillTracker, bill: Bill):
    col1, col2, col3, col4, col5 = st.columns([4, 2, 1, 1, 2])
    paid = bill.status.value == "paid"

    label = f"~~{bill.name}~~" if paid else f"**{bill.name}**"
    if bill.is_installment:
        label += f" ({bill.installment_label})"
    if bill.is_fixed:
        label += " 📌"
    col1.markdown(label)
    col2.markdown(f"R$ {bill.amount:,.2f}")

    if col3.button("✅" if not paid else "↩️", key=f"toggle-{bill.id}"):
        run_mutation(tracker, tracker.toggle_status, bill.id)
        st.rerun()

    if col4.button("✏️", key=f"edit-{bill.id}"):
        st.session_state.editing_bill_id = bill.id
        st.rerun()

    with col5:
        confirmed = st.checkbox("Confirm", key=f"confirm-{bill.id}")
        if st.button("🗑️", key=f"delete-{bill.id}", disabled=not confirmed):
            run_mutation(tracker, tracker.delete_bill, bill.id, confirmed=True)
            st.rerun()


def render_bill_form(tracker: BillTracker, month: str):
    """Add a bill, or edit the one picked from the list."""
    editing_id: UUID = st.session_state.editing_bill_id
    editing = None
    if editing_id is not None:
        try:
            editing = tracker.get_bill(editing_id)
        except TrackerError:
            st.session_state.editing_bill_id = None

    st.subheader("✏️ Edit bill" if editing else "➕ Add bill")
    groups = tracker.groups

    with st.form("bill_form", clear_on_submit=editing is None):
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input("Name", value=editing.name if editing else "")
            amount = st.text_input("Amount", value=str(editing.amount) if editing else "")
            group = st.selectbox(
                "Group",
                options=groups,
                index=groups.index(editing.group) if editing and editing.group in groups else 0,
            )
            due_day = st.text_input(
                "Due day (optional)",
                value=str(editing.due_day) if editing and editing.due_day else "",
            )
        with col2:
            is_fixed = st.checkbox(
                "Fixed (repeats every month)", value=editing.is_fixed if editing else False
            )
            is_installment = st.checkbox(
                "Installment", value=editing.is_installment if editing else False
            )
            installment_index = st.number_input(
                "Current installment",
                min_value=1,
                value=editing.installment_index or 1 if editing else 1,
            )
            installment_count = st.number_input(
                "Total installments",
                min_value=1,
                value=editing.installment_count or 1 if editing else 1,
            )
        notes = st.text_area("Notes", value=(editing.notes or "") if editing else "")

        submitted = st.form_submit_button("💾 Save", type="primary")

    if editing and st.button("Cancel editing"):
        st.session_state.editing_bill_id = None
        st.rerun()

    if not submitted:
        return

    form = {
        "name": name,
        "amount": amount,
        "group": group,
        "is_fixed": is_fixed,
        "is_installment": is_installment,
        "installment_index": installment_index,
        "installment_count": installment_count,
        "status": editing.status.value if editing else "pending",
        "notes": notes,
        "category": editing.category if editing else None,
        "due_day": due_day,
    }
    try:
        run_mutation(tracker, tracker.save_bill, form, month, editing_id)
    except BillValidationError as e:
        st.error("Please fix the following:")
        for issue in e.result.issues:
            if issue.severity == "error":
                st.markdown(f"- {issue.message}")
        return

    st.session_state.editing_bill_id = None
    st.success("Saved!")
    st.rerun()


def render_groups_page(tracker: BillTracker):
    """Add, rename and delete groups."""
    st.title("🗂️ Groups")

    with st.form("add_group", clear_on_submit=True):
        new_group = st.text_input("New group")
        if st.form_submit_button("➕ Add group"):
            try:
                tracker.add_group(new_group)
                st.rerun()
            except TrackerError as e:
                st.error(str(e))

    st.markdown("---")

    for group in tracker.groups:
        with st.expander(group):
            new_name = st.text_input("New name", key=f"rename-{group}")
            if st.button("Rename", key=f"rename-btn-{group}"):
                try:
                    run_mutation(tracker, tracker.rename_group, group, new_name)
                    st.rerun()
                except TrackerError as e:
                    st.error(str(e))

            count = sum(1 for bill in tracker.bills if bill.group == group)
            st.warning(f"Deleting this group also deletes its {count} bills in every month.")
            confirmed = st.checkbox("I understand", key=f"confirm-group-{group}")
            if st.button("🗑️ Delete group", key=f"delete-group-{group}", disabled=not confirmed):
                run_mutation(tracker, tracker.delete_group, group, confirmed=True)
                st.rerun()


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Cloud copy)", "google_sheets"),
        ("Local snapshot", "local_store"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your "
        "Google Sheets credentials. Without them the app runs offline."
    )


if __name__ == "__main__":
    main()
