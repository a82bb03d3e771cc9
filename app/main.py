"""
Streamlit Frontend for finledger

The dashboard where the user records income, expenses and debts, and
the pages for groups that share expenses.

DESIGN PRINCIPLES:
1. Every number on screen is recomputed from the current ledger
2. Prompts are explicit request/response forms with a Cancel button
3. Clear error messages in simple language
4. Visual feedback for all operations
5. Nothing is lost on reload (autosave + form drafts)
"""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import UUID, NAMESPACE_DNS, uuid5

import streamlit as st

from finledger.config import get_settings, validate_all_settings
from finledger.errors import LedgerError
from finledger.groups import to_money
from finledger.ledger import due_label, format_currency, format_date_br, format_day_month
from finledger.models import (
    ActionResult,
    ActionStatus,
    ContributionStatus,
    GroupType,
    LedgerReport,
    SplitType,
    TransactionInput,
    TransactionKind,
    UrgencyBucket,
)
from finledger.orchestrator import GroupFlow, LedgerFlow, create_app_components
from finledger.services.storage import StorageError
from finledger.validation import parse_locale_amount


# Page configuration
st.set_page_config(
    page_title="finledger",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .overdue {
        color: #dc3545;
        font-weight: bold;
    }
    .due-soon {
        color: #b8860b;
        font-weight: bold;
    }
    .scheduled {
        color: #28a745;
    }
</style>
""", unsafe_allow_html=True)

URGENCY_CLASS = {
    UrgencyBucket.OVERDUE: "overdue",
    UrgencyBucket.DUE_SOON: "due-soon",
    UrgencyBucket.SCHEDULED: "scheduled",
}

FORM_FIELDS = ["kind", "amount", "occurred_on", "description", "category", "due_on"]


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    ledger_flow, group_flow, sheets_client = create_app_components(use_remote_storage=True)
    ledger_flow.load()
    ledger_flow.autosaver.start()
    return ledger_flow, group_flow, sheets_client


def money(value) -> str:
    return format_currency(float(value), get_settings().app.currency_symbol)


def show_result(result: ActionResult) -> None:
    """Give feedback for a ledger operation."""
    if result.status == ActionStatus.APPLIED:
        st.toast(f"✅ {result.message}")
    elif result.status == ActionStatus.REJECTED:
        st.error(f"❌ {result.message}")


def main():
    """Main application entry point."""
    ledger_flow, group_flow, sheets_client = get_components()

    st.sidebar.title("💰 finledger")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🏠 Dashboard", "📈 Reports", "👥 Groups", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    if sheets_client is None:
        st.sidebar.caption("Groups are kept in memory (Google Sheets not configured).")

    if page == "🏠 Dashboard":
        render_dashboard_page(ledger_flow)
    elif page == "📈 Reports":
        render_reports_page(ledger_flow)
    elif page == "👥 Groups":
        render_groups_page(group_flow)
    elif page == "⚙️ Settings":
        render_settings_page(ledger_flow)


# =============================================================================
# DASHBOARD
# =============================================================================

def render_dashboard_page(ledger_flow: LedgerFlow):
    st.title("🏠 Dashboard")

    render_summary(ledger_flow)
    st.markdown("---")

    col1, col2 = st.columns([1, 1])
    with col1:
        render_transaction_form(ledger_flow)
    with col2:
        render_upcoming_debts(ledger_flow)

    render_pending_prompt(ledger_flow)

    st.markdown("---")
    render_charts(ledger_flow)
    st.markdown("---")
    render_transaction_table(ledger_flow)


def render_summary(ledger_flow: LedgerFlow):
    totals = ledger_flow.totals()

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Income", money(totals.total_income))
    col2.metric("Expenses", money(totals.total_expenses))
    col3.metric("Open debts", money(totals.total_debt))
    col4.metric(
        "Balance",
        money(totals.current_balance),
        delta=f"{money(totals.balance_with_debt)} with debts",
        delta_color="normal" if totals.is_positive else "inverse",
    )


def _restore_draft(ledger_flow: LedgerFlow) -> None:
    """Fill the form widgets from a saved draft, once per session."""
    if st.session_state.get("draft_restored"):
        return
    st.session_state.draft_restored = True
    if ledger_flow.drafts is None:
        return
    draft = ledger_flow.drafts.load_draft()
    if not draft:
        return
    for field in FORM_FIELDS:
        if field in draft and draft[field] not in ("", None):
            st.session_state[f"form_{field}"] = draft[field]
    st.info("📝 Restored the transaction you were typing.")


def render_transaction_form(ledger_flow: LedgerFlow):
    st.subheader("➕ New transaction")

    if st.session_state.pop("reset_form", False):
        for field in FORM_FIELDS:
            st.session_state.pop(f"form_{field}", None)
    _restore_draft(ledger_flow)

    st.session_state.setdefault("form_occurred_on", date.today().isoformat())

    kind = st.selectbox(
        "Type",
        options=[k.value for k in TransactionKind],
        format_func=lambda value: value.capitalize(),
        key="form_kind",
    )
    amount = st.text_input("Amount *", placeholder="1.234,56", key="form_amount")
    occurred_on = st.text_input("Date *", help="YYYY-MM-DD", key="form_occurred_on")
    description = st.text_input("Description", key="form_description")
    category = st.text_input("Category", placeholder="Other", key="form_category")
    due_on = ""
    if kind == TransactionKind.DEBT.value:
        due_on = st.text_input("Due date *", help="YYYY-MM-DD", key="form_due_on")

    values = {
        "kind": kind,
        "amount": amount,
        "occurred_on": occurred_on,
        "description": description,
        "category": category,
        "due_on": due_on,
    }
    typed = {k: values[k] for k in ("amount", "description", "category", "due_on")}
    if ledger_flow.drafts is not None:
        if any(v.strip() for v in typed.values()):
            ledger_flow.drafts.save_draft(values)
        else:
            ledger_flow.drafts.save_draft(typed)

    if st.button("💾 Add", type="primary"):
        result = ledger_flow.add_transaction(TransactionInput(**values))
        if result.ok:
            st.session_state.reset_form = True
            st.toast(f"✅ {result.message}")
            st.rerun()
        for issue in result.issues:
            st.error(f"❌ {issue.message}")
        if not result.issues:
            show_result(result)


def render_upcoming_debts(ledger_flow: LedgerFlow):
    st.subheader("⏰ Upcoming debts")

    upcoming = ledger_flow.upcoming_debts()
    if not upcoming:
        st.info("No open debts. 🎉")
        return

    for item in upcoming:
        debt = item.transaction
        label = due_label(item.urgency)
        css = URGENCY_CLASS.get(item.urgency.bucket, "") if item.urgency else ""
        due_text = format_date_br(debt.due_on) if debt.due_on else "no date"

        col1, col2, col3 = st.columns([3, 1, 1])
        with col1:
            st.markdown(
                f"**{debt.description or debt.category}** · {money(debt.amount)}<br>"
                f"Due {due_text} · <span class='{css}'>{label}</span>",
                unsafe_allow_html=True,
            )
        with col2:
            if st.button("Pay", key=f"pay_{debt.id}"):
                st.session_state.pending_action = ("pay", debt.id)
        with col3:
            if st.button("Edit", key=f"edit_{debt.id}"):
                st.session_state.pending_action = ("edit", debt.id)


def render_pending_prompt(ledger_flow: LedgerFlow):
    """The pay / edit prompt: submit returns the value, Cancel returns None."""
    pending = st.session_state.get("pending_action")
    if not pending:
        return

    action, transaction_id = pending
    with st.form(f"prompt_{action}_{transaction_id}"):
        if action == "pay":
            raw = st.text_input("Payment date (YYYY-MM-DD)", value=date.today().isoformat())
        else:
            raw = st.text_input("New amount", placeholder="1.234,56")
        col1, col2 = st.columns(2)
        confirmed = col1.form_submit_button("Confirm", type="primary")
        cancelled = col2.form_submit_button("Cancel")

    if not (confirmed or cancelled):
        return

    answer = raw if confirmed else None
    if action == "pay":
        result = ledger_flow.pay_debt(transaction_id, answer)
    else:
        result = ledger_flow.edit_amount(transaction_id, answer)

    st.session_state.pending_action = None
    if result.status == ActionStatus.REJECTED:
        show_result(result)
    else:
        show_result(result)
        st.rerun()


def render_charts(ledger_flow: LedgerFlow):
    col1, col2, col3 = st.columns(3)

    with col1:
        st.markdown("**Distribution**")
        shares = ledger_flow.kind_distribution()
        if shares:
            st.bar_chart(
                [{"kind": s.name, "amount": s.amount} for s in shares],
                x="kind",
                y="amount",
            )
        else:
            st.caption("No data yet.")

    with col2:
        st.markdown("**Expenses by category**")
        categories = ledger_flow.category_chart()
        if categories:
            st.bar_chart(
                [{"category": c.category, "amount": c.amount} for c in categories],
                x="category",
                y="amount",
            )
        else:
            st.caption("No expenses yet.")

    with col3:
        st.markdown("**Last days**")
        st.bar_chart(
            [
                {"day": format_day_month(b.day), "Income": b.income, "Expenses": b.expenses}
                for b in ledger_flow.timeline()
            ],
            x="day",
            y=["Income", "Expenses"],
        )


def render_transaction_table(ledger_flow: LedgerFlow):
    st.subheader("📋 Transactions")

    transactions = ledger_flow.transactions_for_display()
    if not transactions:
        st.info("Your transactions will appear here once you add them.")
        return

    for transaction in transactions:
        col1, col2, col3, col4, col5, col6 = st.columns([2, 3, 2, 2, 1, 1])
        col1.write(format_date_br(transaction.occurred_on))
        col2.write(f"{transaction.description or '-'} · _{transaction.category}_")
        col3.write(transaction.kind.value.capitalize()
                   + (f" ({transaction.status.value})" if transaction.status else ""))
        col4.write(money(transaction.amount))
        if col5.button("✏️", key=f"amount_{transaction.id}", help="Edit amount"):
            st.session_state.pending_action = ("edit", transaction.id)
            st.rerun()
        if col6.button("🗑️", key=f"delete_{transaction.id}", help="Delete"):
            show_result(ledger_flow.delete_transaction(transaction.id))
            st.rerun()


# =============================================================================
# REPORTS
# =============================================================================

def render_report(report: LedgerReport):
    st.markdown(f"### {report.label}")
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Income", money(report.total_income))
    col2.metric("Expenses", money(report.total_expenses))
    col3.metric("Balance", money(report.balance))
    col4.metric("Transactions", report.transaction_count)

    if report.top_categories:
        st.markdown("**Top categories**")
        for item in report.top_categories:
            st.write(f"{item.category}: {money(item.amount)} ({report.category_share(item):.1f}%)")
    else:
        st.caption("No expenses in this period.")


def render_reports_page(ledger_flow: LedgerFlow):
    st.title("📈 Reports")

    col1, col2 = st.columns(2)
    if col1.button("This week"):
        st.session_state.report = ledger_flow.report_week()
    if col2.button("This month"):
        st.session_state.report = ledger_flow.report_month()

    with st.form("custom_report"):
        col1, col2 = st.columns(2)
        start = col1.date_input("From", value=date.today().replace(day=1))
        end = col2.date_input("To", value=date.today())
        if st.form_submit_button("Generate"):
            report, result = ledger_flow.report_custom(start.isoformat(), end.isoformat())
            if report is None:
                show_result(result)
            st.session_state.report = report

    if st.session_state.get("report"):
        render_report(st.session_state.report)


# =============================================================================
# GROUPS
# =============================================================================

def current_user_id() -> UUID:
    """Users are identified by the name they type (no login)."""
    name = st.session_state.get("user_name", "").strip().lower()
    return uuid5(NAMESPACE_DNS, f"{name}.users.finledger")


def render_groups_page(group_flow: GroupFlow):
    st.title("👥 Groups")

    name = st.text_input("Your name", key="user_name")
    if not name.strip():
        st.info("Enter your name to see your groups.")
        return

    user_id = current_user_id()
    try:
        run_async(group_flow.ensure_profile(user_id, name))
        render_notifications(group_flow, user_id)
        render_group_actions(group_flow, user_id)

        groups = run_async(group_flow.list_groups(user_id))
        if not groups:
            st.info("You are not in any group yet.")
            return

        selected = st.selectbox(
            "Group",
            options=groups,
            format_func=lambda g: f"{g.name} ({g.group_type.value})",
        )
        render_group_detail(group_flow, selected.id, user_id)
    except (LedgerError, StorageError) as e:
        st.error(f"❌ {GroupFlow.describe_error(e)}")


def render_notifications(group_flow: GroupFlow, user_id: UUID):
    unread = run_async(group_flow.notifications(user_id, unread_only=True))
    if not unread:
        return
    with st.expander(f"🔔 {len(unread)} new notification(s)"):
        for notification in unread:
            st.markdown(f"**{notification.title}** · {notification.message}")
            if st.button("Mark as read", key=f"read_{notification.id}"):
                run_async(group_flow.mark_notification_read(notification.id))
                st.rerun()


def render_group_actions(group_flow: GroupFlow, user_id: UUID):
    col1, col2 = st.columns(2)

    with col1, st.form("create_group"):
        st.markdown("**Create a group**")
        name = st.text_input("Group name")
        description = st.text_input("Description")
        group_type = st.selectbox(
            "Type",
            options=list(GroupType),
            format_func=lambda t: t.value.capitalize(),
        )
        if st.form_submit_button("Create"):
            group = run_async(group_flow.create_group(user_id, name, description, group_type))
            st.success(f"✅ Group created. Share this code to invite friends: `{group.id}`")

    with col2, st.form("join_group"):
        st.markdown("**Join a group**")
        code = st.text_input("Group code")
        if st.form_submit_button("Join"):
            try:
                group_id = UUID(code.strip())
            except ValueError:
                st.error("❌ That is not a valid group code.")
            else:
                run_async(group_flow.join_group(group_id, user_id))
                st.success("✅ You joined the group.")


def render_group_detail(group_flow: GroupFlow, group_id: UUID, user_id: UUID):
    overview = run_async(group_flow.group_overview(group_id, user_id))

    col1, col2, col3 = st.columns(3)
    col1.metric("Group total", money(overview.totals.total_spent))
    col2.metric("You paid", money(overview.totals.my_total))
    col3.metric("Expenses", overview.totals.expense_count)

    st.markdown("**Balances**")
    for balance in overview.balances:
        who = "You" if balance.user_id == user_id else str(balance.user_id)[:8]
        st.write(f"{who}: receives {money(balance.to_receive)}, owes {money(balance.owes)}")

    render_shared_expense_form(group_flow, overview, user_id)
    render_shared_expenses(group_flow, overview, user_id)
    render_pools(group_flow, group_id, user_id)

    if st.button("Leave group"):
        run_async(group_flow.leave_group(group_id, user_id))
        st.rerun()


def render_shared_expense_form(group_flow, overview, user_id: UUID):
    with st.expander("➕ Add shared expense"):
        title = st.text_input("Title", key="shared_title")
        raw_amount = st.text_input("Amount", placeholder="1.234,56", key="shared_amount")
        expense_date = st.date_input("Date", value=date.today(), key="shared_date")
        category = st.text_input("Category", key="shared_category")
        split_type = st.selectbox(
            "Split",
            options=list(SplitType),
            format_func=lambda t: t.value.capitalize(),
            key="shared_split",
        )

        shares = None
        if split_type != SplitType.EQUAL:
            label = "%" if split_type == SplitType.PERCENTAGE else "Amount"
            shares = {}
            for member in overview.members:
                who = "You" if member.user_id == user_id else str(member.user_id)[:8]
                value = st.number_input(f"{who} ({label})", min_value=0.0, step=0.01,
                                        key=f"share_{member.user_id}")
                shares[member.user_id] = Decimal(str(value))

        if st.button("Add expense", type="primary"):
            amount = to_money(parse_locale_amount(raw_amount))
            run_async(group_flow.add_shared_expense(
                overview.group.id, user_id, title, amount, expense_date,
                category=category, split_type=split_type, shares=shares,
            ))
            st.rerun()


def render_shared_expenses(group_flow: GroupFlow, overview, user_id: UUID):
    if not overview.expenses:
        st.caption("No shared expenses yet.")
        return

    for expense in overview.expenses:
        with st.expander(f"{format_date_br(expense.expense_date)} · {expense.title} · {money(expense.amount)}"):
            splits = run_async(group_flow.expense_splits(expense.id))
            for split in splits:
                who = "You" if split.user_id == user_id else str(split.user_id)[:8]
                status = "✅ paid" if split.is_paid else "⏳ open"
                col1, col2, col3 = st.columns([3, 1, 1])
                col1.write(f"{who}: {money(split.amount)} · {status}")
                if split.is_paid:
                    continue
                if col2.button("Mark paid", key=f"split_paid_{split.id}"):
                    run_async(group_flow.mark_split_paid(split.id))
                    st.rerun()
                if split.user_id == user_id and col3.button("PIX", key=f"pix_{split.id}"):
                    st.session_state.pix_split = split.id

            if st.session_state.get("pix_split") in {s.id for s in splits}:
                with st.form(f"pix_form_{expense.id}"):
                    pix_key = st.text_input("Receiver's PIX key")
                    if st.form_submit_button("Generate PIX code"):
                        _, payload = run_async(
                            group_flow.request_split_payment(st.session_state.pix_split, pix_key)
                        )
                        st.code(payload)


def render_pools(group_flow: GroupFlow, group_id: UUID, user_id: UUID):
    st.markdown("**Pools**")
    pools = run_async(group_flow.pools(group_id))

    for pool, contributions in pools:
        target = f" of {money(pool.target_amount)}" if pool.target_amount else ""
        st.write(f"🏦 {pool.name}: {money(pool.current_amount)}{target}")
        if pool.progress is not None:
            st.progress(min(pool.progress, 1.0))

        for contribution in contributions:
            col1, col2, col3 = st.columns([3, 1, 1])
            col1.write(f"{money(contribution.amount)} · {contribution.status.value}")
            if contribution.status != ContributionStatus.PENDING:
                continue
            if col2.button("Confirm", key=f"confirm_{contribution.id}"):
                run_async(group_flow.confirm_contribution(contribution.id))
                st.rerun()
            if col3.button("Cancel", key=f"cancel_{contribution.id}"):
                run_async(group_flow.cancel_contribution(contribution.id))
                st.rerun()

        with st.form(f"contribute_{pool.id}"):
            raw = st.text_input("Contribution", placeholder="50,00")
            if st.form_submit_button("Contribute"):
                amount = to_money(parse_locale_amount(raw))
                run_async(group_flow.contribute(pool.id, user_id, amount))
                st.rerun()

    with st.form("create_pool"):
        name = st.text_input("New pool name")
        target = st.number_input("Target (optional)", min_value=0.0, step=10.0)
        if st.form_submit_button("Create pool"):
            run_async(group_flow.create_pool(
                group_id, name, to_money(target) if target > 0 else None
            ))
            st.rerun()


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page(ledger_flow: LedgerFlow):
    st.title("⚙️ Settings")

    st.markdown("### Initial balance")
    current = ledger_flow.state.initial_balance
    new_balance = st.number_input("Starting balance", value=float(current), step=100.0)
    if st.button("Save balance"):
        show_result(ledger_flow.set_initial_balance(new_balance))

    st.markdown("---")
    st.markdown("### Connection Status")

    status = validate_all_settings()
    services = [
        ("Ledger (local storage)", "ledger"),
        ("Google Sheets (groups)", "google_sheets"),
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
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
