"""
Streamlit Frontend for Fintrack

This is the interface people use to track their accounts, cards and
day-to-day income and expenses.

DESIGN PRINCIPLES:
1. Simple, clear pages (dashboard, accounts, cards, transactions, profile)
2. Explicit confirmation before any edit or delete
3. Every outcome shown as a short notification
4. Failed saves keep the dialog open for a retry
5. Data always comes from the live collections, never from page state

Async work (backend calls, change channels) runs on one background
event loop; the page script only waits for results.
"""

from datetime import date

import streamlit as st

from fintrack.analytics import (
    credit_card_summaries,
    filter_transactions,
    group_accounts,
    income_expense_bars,
    monthly_income_expense,
    recent_transactions,
    spending_by_category,
    spending_pie,
    total_balance,
    total_expenses,
    total_income,
)
from fintrack.config import validate_all_settings
from fintrack.formatting import (
    format_currency,
    full_name,
    initials,
    long_date,
    masked_card_number,
    short_date,
)
from fintrack.models import (
    Account,
    AccountForm,
    AccountType,
    NotificationBuilder,
    PasswordChangeForm,
    PaymentForm,
    ProfileForm,
    SignInForm,
    SubmitStatus,
    Transaction,
    TransactionForm,
    TransactionType,
    WriteKind,
)
from fintrack.notifications import configure_logging
from fintrack.orchestrator import AppComponents, create_app_components
from fintrack.runtime import run_async


# Page configuration
st.set_page_config(
    page_title="Fintrack",
    page_icon="💳",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .balance-card {
        padding: 20px;
        background: linear-gradient(135deg, #2563eb, #7c3aed);
        color: white;
        border-radius: 16px;
        margin: 10px 0;
    }
    .balance-card .big-number {
        font-size: 2.2em;
        font-weight: bold;
    }
    .income { color: #16a34a; font-weight: 600; }
    .expense { color: #ef4444; font-weight: 600; }
    .avatar {
        width: 64px;
        height: 64px;
        border-radius: 50%;
        background-color: #2563eb;
        color: white;
        font-size: 1.6em;
        font-weight: bold;
        display: flex;
        align-items: center;
        justify-content: center;
    }
</style>
""", unsafe_allow_html=True)


PAGES = ["🏠 Dashboard", "💼 Accounts", "💳 Cards", "🧾 Transactions", "👤 Profile"]


def get_components() -> AppComponents:
    """Get or create the components of this browser session."""
    if "components" not in st.session_state:
        configure_logging()
        components = run_async(create_app_components(use_backend=True))
        run_async(components.auth.restore())
        st.session_state.components = components
    return st.session_state.components


def flush_notifications(components: AppComponents) -> None:
    """Show every notification raised since the last render."""
    for notification in components.notifier.drain():
        icon = "⚠️" if notification.is_error else "✅"
        text = f"**{notification.title}**"
        if notification.description:
            text += f"  \n{notification.description}"
        st.toast(text, icon=icon)


def money(components: AppComponents, value) -> str:
    return format_currency(value, components.settings.currency_symbol)


def handle_outcome(components: AppComponents, flow_name: str, outcome) -> None:
    """
    React to a dialog submit.

    Saved → close the dialog. Confirmation → close and open the confirm dialog.
    Anything else → stay open and show the message here.
    """
    if outcome.status == SubmitStatus.SAVED:
        st.rerun()
    elif outcome.status == SubmitStatus.CONFIRMATION_REQUIRED:
        st.session_state.pending_write = (flow_name, outcome.pending)
        st.rerun()
    else:
        flush_notifications(components)
        if outcome.notification and outcome.notification.description:
            st.error(outcome.notification.description)


# =============================================================================
# DIALOGS
# =============================================================================

@st.dialog("Account")
def account_dialog(components: AppComponents, editing: Account = None):
    st.subheader("Edit Account" if editing else "Add New Account")

    types = list(AccountType)
    name = st.text_input("Account Name *", value=editing.name if editing else "", placeholder="My Bank Account")
    account_type = st.selectbox(
        "Account Type *",
        options=types,
        index=types.index(editing.type) if editing else None,
        format_func=lambda t: t.label,
        placeholder="Select type",
    )
    is_credit = account_type == AccountType.CREDIT
    balance = st.text_input(
        "Current Debt *" if is_credit else "Balance *",
        value=f"{editing.balance:.2f}" if editing else "",
        placeholder="0.00",
    )

    credit_limit = ""
    statement_date = None
    payment_due_date = None
    if is_credit:
        credit_limit = st.text_input(
            "Credit Limit *",
            value=f"{editing.credit_limit:.2f}" if editing and editing.credit_limit is not None else "",
        )
        statement_date = st.date_input(
            "Statement Date *",
            value=editing.statement_date if editing else None,
        )
        payment_due_date = st.date_input(
            "Payment Due Date *",
            value=editing.payment_due_date if editing else None,
        )

    if st.button("Save Changes" if editing else "Add Account", type="primary"):
        form = AccountForm(
            name=name,
            type=account_type.value if account_type else "",
            balance=balance,
            credit_limit=credit_limit,
            statement_date=statement_date,
            payment_due_date=payment_due_date,
        )
        outcome = run_async(components.accounts.submit(form, editing=editing))
        handle_outcome(components, "accounts", outcome)


@st.dialog("Transaction")
def transaction_dialog(
    components: AppComponents,
    kind: TransactionType = TransactionType.EXPENSE,
    editing: Transaction = None,
):
    kind = editing.type if editing else kind
    is_income = kind == TransactionType.INCOME
    st.subheader(("Edit " if editing else "Add ") + ("Income" if is_income else "Expense"))

    categories = run_async(components.session.categories_of(kind).refetch())
    accounts = components.session.accounts.items
    category_ids = [c.id for c in categories]
    account_ids = [a.id for a in accounts]

    amount = st.text_input("Amount *", value=f"{editing.amount:.2f}" if editing else "", placeholder="0.00")
    category_id = st.selectbox(
        "Category *",
        options=category_ids,
        index=category_ids.index(editing.category_id) if editing and editing.category_id in category_ids else None,
        format_func=lambda cid: next(c.name for c in categories if c.id == cid),
        placeholder="Select category",
    )
    account_id = st.selectbox(
        "Account *",
        options=account_ids,
        index=account_ids.index(editing.account_id) if editing and editing.account_id in account_ids else None,
        format_func=lambda aid: next(a.name for a in accounts if a.id == aid),
        placeholder="Select account",
    )
    description = st.text_input("Description", value=(editing.description or "") if editing else "")

    if st.button("Save Changes" if editing else "Add Transaction", type="primary"):
        form = TransactionForm(
            type=kind,
            amount=amount,
            category_id=str(category_id) if category_id else "",
            account_id=str(account_id) if account_id else "",
            description=description,
        )
        outcome = run_async(components.transactions.submit(form, editing=editing))
        handle_outcome(components, "transactions", outcome)


@st.dialog("Pay Credit Card")
def pay_now_dialog(components: AppComponents, card: Account):
    flow = components.payments
    sources = flow.source_accounts(components.session.accounts.items)
    default = flow.prepare(card)

    st.markdown(f"**{card.name}**  \nBalance: {money(components, card.balance)}")

    source_ids = [a.id for a in sources]
    source_id = st.selectbox(
        "Pay From Account *",
        options=source_ids,
        index=None,
        format_func=lambda aid: next(
            f"{a.name} - {money(components, a.balance)}" for a in sources if a.id == aid
        ),
        placeholder="Select an account",
    )

    key = f"pay_amount_{card.id}"
    if key not in st.session_state:
        st.session_state[key] = default.amount
    col1, col2 = st.columns(2)
    if col1.button("Full balance"):
        st.session_state[key] = default.amount
    if col2.button("Half balance"):
        st.session_state[key] = flow.half_balance(card)
    amount = st.text_input("Amount *", key=key)

    if st.button("Pay Now", type="primary"):
        form = PaymentForm(from_account_id=str(source_id) if source_id else "", amount=amount)
        outcome = flow.submit(card, form, sources)
        if outcome.succeeded:
            del st.session_state[key]
        handle_outcome(components, "payments", outcome)


@st.dialog("Please confirm")
def confirm_dialog(components: AppComponents):
    flow_name, pending = st.session_state.pending_write
    flow = getattr(components, flow_name)

    st.markdown(f"### {pending.title}")
    st.write(pending.prompt)

    col1, col2 = st.columns(2)
    if col1.button("Cancel"):
        del st.session_state.pending_write
        st.rerun()
    label = "Delete" if pending.kind == WriteKind.DELETE else "Save"
    if col2.button(label, type="primary"):
        outcome = run_async(flow.confirm(pending))
        if outcome.succeeded:
            del st.session_state.pending_write
        handle_outcome(components, flow_name, outcome)


# =============================================================================
# PAGES
# =============================================================================

def render_login_page(components: AppComponents):
    st.title("💳 Fintrack")
    st.markdown("Track your accounts, cards and spending in one place.")

    if components.is_demo:
        st.info(
            "Running in offline demo mode (Supabase is not configured). "
            "Sign in with **demo@fintrack.local** / **demo-password**."
        )

    with st.form("sign_in"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign In", type="primary")

    if submitted:
        outcome = run_async(components.auth.sign_in(SignInForm(email=email, password=password)))
        if outcome.succeeded:
            st.rerun()
        flush_notifications(components)


def render_transaction_row(components: AppComponents, transaction: Transaction, names: dict, actions: bool = False):
    col1, col2, col3 = st.columns([4, 2, 2] if actions else [5, 2, 1])
    with col1:
        st.markdown(f"**{transaction.description or names.get(transaction.category_id, 'Unknown')}**")
        st.caption(f"{names.get(transaction.category_id, 'Unknown')} · {short_date(transaction.date)}")
    with col2:
        css = "income" if transaction.is_income else "expense"
        sign = "+" if transaction.is_income else "-"
        st.markdown(
            f"<span class='{css}'>{sign}{money(components, transaction.amount)}</span>",
            unsafe_allow_html=True,
        )
    if actions:
        with col3:
            edit, delete = st.columns(2)
            if edit.button("✏️", key=f"edit_t_{transaction.id}"):
                transaction_dialog(components, editing=transaction)
            if delete.button("🗑️", key=f"delete_t_{transaction.id}"):
                outcome = components.transactions.delete(transaction)
                handle_outcome(components, "transactions", outcome)


def render_dashboard_page(components: AppComponents):
    session = components.session
    accounts = session.accounts.items
    transactions = session.transactions.items
    names = session.categories.names()

    st.title(f"Hello, {full_name(session.profile.profile)} 👋")

    st.markdown(f"""
    <div class="balance-card">
        <p>Total Balance</p>
        <p class="big-number">{money(components, total_balance(accounts))}</p>
    </div>
    """, unsafe_allow_html=True)

    col1, col2 = st.columns(2)
    col1.metric("Income", money(components, total_income(transactions)))
    col2.metric("Expenses", money(components, total_expenses(transactions)))

    col1, col2 = st.columns(2)
    if col1.button("➕ Add Income"):
        transaction_dialog(components, TransactionType.INCOME)
    if col2.button("➖ Add Expense"):
        transaction_dialog(components, TransactionType.EXPENSE)

    st.markdown("---")
    symbol = components.settings.currency_symbol
    col1, col2 = st.columns(2)
    with col1:
        pie = spending_pie(spending_by_category(transactions, session.categories.items), symbol)
        if pie:
            st.plotly_chart(pie, use_container_width=True)
        else:
            st.info("No spending recorded yet.")
    with col2:
        bars = income_expense_bars(monthly_income_expense(transactions), symbol)
        if bars:
            st.plotly_chart(bars, use_container_width=True)
        else:
            st.info("No income or expenses to chart yet.")

    st.markdown("### Recent Transactions")
    recent = recent_transactions(transactions, components.settings.recent_transactions_limit)
    if not recent:
        st.caption("No transactions yet. Add your first one above.")
    for transaction in recent:
        render_transaction_row(components, transaction, names)


def render_accounts_page(components: AppComponents):
    st.title("💼 Accounts")
    if st.button("➕ Add Account"):
        account_dialog(components)

    session = components.session
    if session.accounts.error:
        st.error(session.accounts.error)

    for group in group_accounts(session.accounts.items):
        st.markdown(f"### {group.title}")
        if not group.accounts:
            st.caption(f"No {group.title.lower()} yet.")
        for account in group.accounts:
            col1, col2, col3 = st.columns([4, 2, 2])
            with col1:
                st.markdown(f"**{account.name}**")
                st.caption(account.type.label)
            with col2:
                st.markdown(money(components, account.balance))
            with col3:
                edit, delete = st.columns(2)
                if edit.button("✏️", key=f"edit_a_{account.id}"):
                    account_dialog(components, editing=account)
                if delete.button("🗑️", key=f"delete_a_{account.id}"):
                    handle_outcome(components, "accounts", components.accounts.delete(account))


def render_cards_page(components: AppComponents):
    st.title("💳 Credit Cards")
    settings = components.settings
    session = components.session
    portfolio = credit_card_summaries(
        session.accounts.items,
        session.transactions.items,
        recent_limit=settings.card_recent_transactions_limit,
        near_limit_threshold=settings.near_limit_threshold_percent,
    )

    col1, col2, col3 = st.columns(3)
    col1.metric("Total Credit Used", money(components, portfolio.total_debt))
    col2.metric("Available Credit", money(components, portfolio.total_available))
    col3.metric("Cards Near Limit", portfolio.near_limit_count)
    st.caption(f"of {money(components, portfolio.total_limit)} total limit")

    if not portfolio.cards:
        st.info("No credit cards yet. Add one from the Accounts page.")

    names = session.categories.names()
    for summary in portfolio.cards:
        card = summary.card
        st.markdown("---")
        st.markdown(f"### {card.name}")
        st.caption(masked_card_number(card.id))
        utilization = min(summary.utilization_percent, 100.0)
        st.progress(utilization / 100, text=f"{summary.utilization_percent:.1f}% used")
        if summary.near_limit:
            st.warning("This card is close to its credit limit.")

        col1, col2, col3 = st.columns(3)
        col1.metric("Balance", money(components, card.balance))
        col2.metric("Remaining", money(components, summary.remaining_credit))
        col3.metric("Spend", money(components, summary.spend))

        col1, col2 = st.columns(2)
        if col1.button("Pay Now", key=f"pay_{card.id}"):
            pay_now_dialog(components, card)
        with col2.expander("View Details"):
            st.write(f"Statement Date: {long_date(card.statement_date)}")
            st.write(f"Payment Due Date: {long_date(card.payment_due_date)}")
            st.write(f"Credit Limit: {money(components, card.credit_limit)}")

        for transaction in summary.recent_transactions:
            render_transaction_row(components, transaction, names)


def render_transactions_page(components: AppComponents):
    st.title("🧾 Transactions")
    session = components.session
    transactions = session.transactions.items

    col1, col2 = st.columns(2)
    col1.metric("Total Income", money(components, total_income(transactions)))
    col2.metric("Total Expenses", money(components, total_expenses(transactions)))

    col1, col2 = st.columns(2)
    if col1.button("➕ Add Income"):
        transaction_dialog(components, TransactionType.INCOME)
    if col2.button("➖ Add Expense"):
        transaction_dialog(components, TransactionType.EXPENSE)

    kind = st.radio("Show", ["all", "income", "expense"], horizontal=True, format_func=str.title)
    search = st.text_input("Search transactions", placeholder="Search by description")

    if session.transactions.error:
        st.error(session.transactions.error)

    shown = filter_transactions(transactions, kind, search)
    if not shown:
        st.caption("No transactions found.")
    names = session.categories.names()
    for transaction in shown:
        render_transaction_row(components, transaction, names, actions=True)


def render_profile_page(components: AppComponents):
    session = components.session
    profile = session.profile.profile

    col1, col2 = st.columns([1, 5])
    col1.markdown(f"<div class='avatar'>{initials(profile)}</div>", unsafe_allow_html=True)
    with col2:
        st.title(full_name(profile))
        st.caption(profile.email if profile else "")

    tab_edit, tab_security, tab_settings = st.tabs(["Edit Profile", "Security", "Settings"])

    with tab_edit:
        prefill = components.profile.prefill()
        if st.button("📷 Change photo"):
            components.notifier.notify(NotificationBuilder.coming_soon("avatar upload"))
            flush_notifications(components)
        with st.form("edit_profile"):
            first_name = st.text_input("First Name", value=prefill.first_name)
            last_name = st.text_input("Last Name", value=prefill.last_name)
            phone = st.text_input("Phone", value=prefill.phone)
            address = st.text_area("Address", value=prefill.address)
            if st.form_submit_button("Save Changes", type="primary"):
                form = ProfileForm(first_name=first_name, last_name=last_name, phone=phone, address=address)
                run_async(components.profile.save(form))
                flush_notifications(components)

    with tab_security:
        with st.form("change_password", clear_on_submit=True):
            new_password = st.text_input("New Password", type="password")
            confirm_password = st.text_input("Confirm New Password", type="password")
            if st.form_submit_button("Update Password", type="primary"):
                form = PasswordChangeForm(new_password=new_password, confirm_password=confirm_password)
                run_async(components.security.change_password(form))
                flush_notifications(components)

    with tab_settings:
        render_settings(components)

    st.markdown("---")
    if st.button("🚪 Log Out"):
        run_async(components.auth.sign_out())
        st.rerun()


def render_settings(components: AppComponents):
    """Connection status and configuration help."""
    st.markdown("### Connection Status")

    status = validate_all_settings()
    services = [
        ("Supabase (Backend)", "supabase"),
        ("App Settings", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if components.is_demo:
        st.warning("Using the in-memory demo backend. Changes are lost when the session ends.")

    st.markdown("### Configuration")
    st.markdown(
        "To connect a Supabase project, create a `.env` file with its URL and anon key. "
        "See `.env.example` for the required variables."
    )


def main():
    """Main application entry point."""
    components = get_components()
    flush_notifications(components)

    if components.session.user is None:
        render_login_page(components)
        return

    if "pending_write" in st.session_state:
        confirm_dialog(components)

    # Sidebar navigation
    st.sidebar.title("💳 Fintrack")
    st.sidebar.caption(components.session.user.email or "")
    st.sidebar.markdown("---")
    page = st.sidebar.radio("Navigate to:", PAGES, index=0)
    st.sidebar.markdown("---")
    st.sidebar.caption(f"Today is {long_date(date.today())}")

    # Route to appropriate page
    if page == "🏠 Dashboard":
        render_dashboard_page(components)
    elif page == "💼 Accounts":
        render_accounts_page(components)
    elif page == "💳 Cards":
        render_cards_page(components)
    elif page == "🧾 Transactions":
        render_transactions_page(components)
    elif page == "👤 Profile":
        render_profile_page(components)


if __name__ == "__main__":
    main()
