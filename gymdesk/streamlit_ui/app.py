import streamlit as st
st.set_page_config(page_title="Gym Desk", layout="wide")
import pandas as pd
from datetime import datetime

from gymdesk.app_api import ERROR, FOUND, NOT_FOUND, AppAPI
from gymdesk.checkin import IDLE, CheckInSession
from gymdesk.config import ConfigError, load_settings
from gymdesk.database_manager import DatabaseManager
from gymdesk.dates import Clock, format_calendar_date, format_display_date, parse_calendar_date
from gymdesk.ledger import TYPE_FILTERS, format_amount, month_period, today_period
from gymdesk.models import EXPENSE, INCOME
from gymdesk.plans import ACTIVE, EXPIRED, describe_status
from gymdesk.store import StoreError, create_store


@st.cache_resource
def get_api(store_url, store_key, local_db, store_timeout):
    settings = load_settings(
        {
            "GYMDESK_STORE_URL": store_url or "",
            "GYMDESK_STORE_KEY": store_key or "",
            "GYMDESK_LOCAL_DB": local_db or "",
            "GYMDESK_STORE_TIMEOUT": str(store_timeout),
        }
    )
    return AppAPI(db_manager=DatabaseManager(create_store(settings)), clock=Clock())


try:
    settings = load_settings()
except ConfigError as e:
    st.error(f"Configuration error: {e}")
    st.stop()

api = get_api(settings.store_url, settings.store_key, settings.local_db, settings.store_timeout)


def flash(key, success, message):
    """Keeps a result message for the next run and re-runs the page so every
    list and total is fetched again."""
    st.session_state[key] = (success, message)
    st.rerun()


def show_flash(key):
    if st.session_state.get(key):
        success, message = st.session_state[key]
        st.session_state[key] = None
        if success:
            st.success(message)
        else:
            st.error(message)


def reset_member_form(member=None, plan_options=None):
    """Starts a fresh member form, pre-filled from `member` when editing."""
    form_key = f"member_form_{datetime.now().timestamp()}"
    st.session_state.member_form_key = form_key
    st.session_state.member_edit_dni = member.dni if member else None
    st.session_state[f"{form_key}_dni"] = member.dni if member else ""
    st.session_state[f"{form_key}_name"] = member.name if member else ""
    st.session_state[f"{form_key}_phone"] = (member.phone or "") if member else ""
    st.session_state[f"{form_key}_start"] = (
        parse_calendar_date(member.start_date) if member else api.clock.today()
    )
    if member and member.membership_type in (plan_options or {}):
        st.session_state[f"{form_key}_plan"] = member.membership_type


# Initialize session state keys to prevent KeyErrors and ensure defined starting states
if "checkin_session" not in st.session_state:
    st.session_state.checkin_session = CheckInSession(
        api, display_seconds=settings.checkin_display_seconds
    )
if "checkin_flash" not in st.session_state:
    st.session_state.checkin_flash = None
if "member_form_key" not in st.session_state:
    reset_member_form()
if "members_flash" not in st.session_state:
    st.session_state.members_flash = None
if "member_search" not in st.session_state:
    st.session_state.member_search = ""
if "confirm_delete_member_dni" not in st.session_state:
    st.session_state.confirm_delete_member_dni = None
if "ledger_mode" not in st.session_state:
    st.session_state.ledger_mode = "Today"
if "transaction_form_key" not in st.session_state:
    st.session_state.transaction_form_key = "transaction_form_initial"
if "ledger_flash" not in st.session_state:
    st.session_state.ledger_flash = None

STATUS_ICONS = {ACTIVE: "🟢", EXPIRED: "🔴"}


def status_icon(state):
    return STATUS_ICONS.get(state, "🟡")


def render_checkin_result():
    session = st.session_state.checkin_session
    was_showing = session.state != IDLE
    if session.tick() == IDLE:
        if was_showing:
            # Countdown over: redraw the whole page so the form is ready again.
            st.session_state.checkin_flash = None
            st.rerun()
        return

    result = session.result
    if result.outcome == FOUND:
        member = result.member
        status = result.status
        message = (
            f"{status_icon(status.state)} **{member.name}** (DNI {member.dni}) - "
            f"{status.label}: {describe_status(status)}. Expires {format_display_date(member.expiry_date)}."
        )
        if status.state == EXPIRED:
            st.error(message)
        elif status.state == ACTIVE:
            st.success(message)
        else:
            st.warning(message)
        if not result.recorded:
            st.warning("The check-in could not be saved. Please try again.")
    elif result.outcome == NOT_FOUND:
        st.warning(f"No member found with DNI {session.dni}.")
    elif result.outcome == ERROR:
        st.error(result.message)

    st.caption(f"Clearing in {session.remaining_seconds()} s")
    if session.can_renew:
        if st.button("Renew membership", key="checkin_renew_button"):
            success, message = session.renew()
            st.session_state.checkin_flash = (success, message)
            st.rerun()
    if st.button("Dismiss", key="checkin_dismiss_button"):
        session.dismiss()
        st.rerun()


def render_checkin_tab():
    st.header("Check-In")
    session = st.session_state.checkin_session

    with st.form(key="checkin_form", clear_on_submit=True):
        dni_val = st.text_input("Member DNI", key="checkin_dni_input")
        search_button = st.form_submit_button("Check in", key="checkin_submit")

    if search_button:
        st.session_state.checkin_flash = None
        session.search(dni_val)

    if st.session_state.checkin_flash:
        success, message = st.session_state.checkin_flash
        (st.success if success else st.error)(message)

    run_every = 1 if session.state != IDLE else None
    st.fragment(run_every=run_every)(render_checkin_result)()

    st.divider()
    st.subheader("Today's check-ins")
    try:
        checkins = api.get_today_checkins()
    except StoreError as e:
        st.error(f"Error fetching today's check-ins: {e}")
        checkins = []
    if not checkins:
        st.info("No check-ins yet today.")
    else:
        df_checkins = pd.DataFrame(
            [
                {
                    "Time": c.check_in_time[11:16],
                    "DNI": c.member_dni,
                    "Name": c.member_name,
                    "Status": c.membership_status,
                }
                for c in checkins
            ]
        )
        st.dataframe(df_checkins, hide_index=True, use_container_width=True)


def render_members_tab():
    st.header("Manage Members")
    show_flash("members_flash")

    try:
        catalog = api.get_plan_catalog()
        plan_options = {plan.key: f"{plan.name} ({plan.duration_days} days, {format_amount(plan.price)})" for plan in catalog}
    except StoreError as e:
        st.error(f"Error loading membership plans: {e}")
        plan_options = {}

    editing_dni = st.session_state.member_edit_dni

    left_col, right_col = st.columns([1, 2])
    with left_col:
        st.subheader(f"Edit Member (DNI {editing_dni})" if editing_dni else "Register Member")
        form_key = st.session_state.member_form_key
        with st.form(key=form_key):
            form_dni = st.text_input("DNI", key=f"{form_key}_dni", disabled=editing_dni is not None)
            form_name = st.text_input("Name", key=f"{form_key}_name")
            form_phone = st.text_input("Phone", key=f"{form_key}_phone")
            form_plan = st.selectbox(
                "Membership plan",
                options=list(plan_options.keys()),
                format_func=lambda key: plan_options.get(key, key),
                key=f"{form_key}_plan",
            )
            form_start = st.date_input("Start date", key=f"{form_key}_start")
            save_button = st.form_submit_button(
                "Update Member" if editing_dni else "Save Member", key="member_form_submit"
            )

        if editing_dni and st.button("Cancel edit", key="member_cancel_edit"):
            reset_member_form()
            st.rerun()

        if save_button:
            success, message = api.save_member(
                dni=editing_dni or form_dni,
                name=form_name,
                membership_type=form_plan,
                start_date=format_calendar_date(form_start) if form_start else None,
                phone=form_phone,
                update_existing=editing_dni is not None,
            )
            if success:
                reset_member_form()
                flash("members_flash", success, message)
            else:
                st.error(message)

    with right_col:
        st.subheader("Members")
        search_val = st.text_input("Search by name or DNI", key="member_search")
        try:
            views = api.get_all_members_for_view(search=search_val)
        except StoreError as e:
            st.error(f"Error fetching members: {e}")
            views = []

        if not views:
            st.info("No members found.")
            return

        df_members = pd.DataFrame(
            [
                {
                    "": status_icon(v.status.state),
                    "DNI": v.member.dni,
                    "Name": v.member.name,
                    "Phone": v.member.phone or "",
                    "Plan": v.plan_name,
                    "Start": format_display_date(v.member.start_date),
                    "Expiry": format_display_date(v.member.expiry_date),
                    "Status": v.status.label,
                    "Detail": describe_status(v.status),
                }
                for v in views
            ]
        )
        st.dataframe(df_members, hide_index=True, use_container_width=True)

        members_by_dni = {v.member.dni: v.member for v in views}
        member_options = {v.member.dni: f"{v.member.name} (DNI {v.member.dni})" for v in views}
        selected_dni = st.selectbox(
            "Select member",
            options=list(member_options.keys()),
            format_func=lambda dni: member_options[dni],
            key="member_action_select",
        )
        renew_plan = st.selectbox(
            "Renew on plan",
            options=list(plan_options.keys()),
            format_func=lambda key: plan_options.get(key, key),
            key="member_renew_plan",
        )
        action_cols = st.columns(3)
        with action_cols[0]:
            if st.button("Edit member", key="member_edit_button"):
                reset_member_form(members_by_dni[selected_dni], plan_options)
                st.rerun()
        with action_cols[1]:
            if st.button("Renew membership", key="member_renew_button"):
                success, message = api.renew_membership(selected_dni, renew_plan)
                flash("members_flash", success, message)
        with action_cols[2]:
            if st.button("Delete member", key="member_delete_button"):
                st.session_state.confirm_delete_member_dni = selected_dni

        if st.session_state.confirm_delete_member_dni is not None:
            dni_to_delete = st.session_state.confirm_delete_member_dni
            st.warning(
                f"Are you sure you want to delete {member_options.get(dni_to_delete, dni_to_delete)}? "
                "This action cannot be undone."
            )
            confirm_cols = st.columns(2)
            with confirm_cols[0]:
                if st.button("YES, DELETE Member Permanently", key=f"confirm_delete_member_{dni_to_delete}"):
                    success, message = api.delete_member(dni_to_delete)
                    st.session_state.confirm_delete_member_dni = None
                    if success and st.session_state.member_edit_dni == dni_to_delete:
                        reset_member_form()
                    flash("members_flash", success, message)
            with confirm_cols[1]:
                if st.button("Cancel", key=f"cancel_delete_member_{dni_to_delete}"):
                    st.session_state.confirm_delete_member_dni = None
                    st.rerun()


def render_cash_tab():
    st.header("Cash Register")
    show_flash("ledger_flash")

    mode = st.radio("View", ["Today", "Date range"], horizontal=True, key="ledger_mode")
    if mode == "Today":
        start_date, end_date = today_period(api.clock)
    else:
        default_start, default_end = month_period(api.clock.today())
        range_cols = st.columns(2)
        with range_cols[0]:
            start_date = st.date_input("From", value=default_start, key="ledger_start")
        with range_cols[1]:
            end_date = st.date_input("To", value=default_end, key="ledger_end")
        if start_date > end_date:
            st.error("The start date must not be after the end date.")
            return

    type_filter = st.selectbox(
        "Type",
        options=list(TYPE_FILTERS),
        format_func=lambda value: {"all": "All", INCOME: "Income", EXPENSE: "Expense"}[value],
        key="ledger_type_filter",
    )

    with st.expander("Add transaction"):
        tx_form_key = st.session_state.transaction_form_key
        with st.form(key=tx_form_key):
            tx_type = st.selectbox(
                "Type", options=[INCOME, EXPENSE], format_func=str.capitalize, key=f"{tx_form_key}_type"
            )
            tx_amount = st.number_input("Amount", min_value=0.0, step=100.0, format="%.2f", key=f"{tx_form_key}_amount")
            tx_concept = st.text_input("Concept", key=f"{tx_form_key}_concept")
            add_button = st.form_submit_button("Add Transaction")
        if add_button:
            success, message = api.add_transaction(tx_type, tx_amount, tx_concept)
            if success:
                st.session_state.transaction_form_key = f"transaction_form_{datetime.now().timestamp()}"
                flash("ledger_flash", success, message)
            else:
                st.error(message)

    try:
        transactions, summary = api.get_ledger(start_date, end_date, type_filter)
    except StoreError as e:
        st.error(f"Error fetching transactions: {e}")
        return

    metric_cols = st.columns(4)
    metric_cols[0].metric("Income", format_amount(summary.income))
    metric_cols[1].metric("Expense", format_amount(summary.expense))
    metric_cols[2].metric("Balance", format_amount(summary.balance))
    metric_cols[3].metric("Transactions", summary.count)

    if not transactions:
        st.info("No transactions for this period.")
        return

    df_transactions = pd.DataFrame(
        [
            {
                "ID": t.id,
                "Date": format_display_date(t.date),
                "Time": t.time,
                "Type": t.type.capitalize(),
                "Concept": t.concept,
                "Amount": t.amount,
            }
            for t in transactions
        ]
    )
    st.dataframe(
        df_transactions,
        hide_index=True,
        use_container_width=True,
        column_config={"Amount": st.column_config.NumberColumn("Amount", format="$%.2f")},
    )

    period = f"{format_calendar_date(start_date)}_{format_calendar_date(end_date)}"
    download_cols = st.columns(2)
    with download_cols[0]:
        st.download_button(
            label="Download as Excel",
            data=api.export_ledger_excel(transactions, summary),
            file_name=f"transactions_{period}.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            key="ledger_download_excel",
        )
    with download_cols[1]:
        st.download_button(
            label="Download as CSV",
            data=df_transactions.to_csv(index=False).encode("utf-8"),
            file_name=f"transactions_{period}.csv",
            mime="text/csv",
            key="ledger_download_csv",
        )

    tx_options = {t.id: f"{t.date} {t.time} - {t.concept} ({format_amount(t.amount)})" for t in transactions}
    tx_to_delete = st.selectbox(
        "Delete transaction",
        options=list(tx_options.keys()),
        format_func=lambda tx_id: tx_options[tx_id],
        key="ledger_delete_select",
    )
    if st.button("Delete selected transaction", key="ledger_delete_button"):
        success, message = api.delete_transaction(tx_to_delete)
        flash("ledger_flash", success, message)


tab_titles = ["Check-In", "Members", "Cash"]
tab_checkin, tab_members, tab_cash = st.tabs(tab_titles)

with tab_checkin:
    render_checkin_tab()

with tab_members:
    render_members_tab()

with tab_cash:
    render_cash_tab()
