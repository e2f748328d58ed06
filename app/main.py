import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
import logging
from datetime import date, datetime

import streamlit as st
import pandas as pd
import numpy as np
import plotly.graph_objects as go
import plotly.express as px

from condoledger.balances import accounts_by_balance, available_years
from condoledger.config import get_settings
from condoledger.domain import expense_categories, income_categories
from condoledger.errors import (
    DuplicateRecordError,
    ExportError,
    ExtractionServiceError,
    ImportFormatError,
    ValidationError,
)
from condoledger.extraction import ExtractionClient, FileInput
from condoledger.filters import FilterSpec, apply_filter
from condoledger.functional import account_name
from condoledger.grouping import GroupMode, group_expenses
from condoledger.money import format_currency, format_date
from condoledger.reconcile import (
    monthly_income_summary,
    parse_expense_xml,
    parse_income_xml,
    reconcile_expenses,
    reconcile_incomes,
)
from condoledger import exports
from condoledger.services import DashboardService, LedgerService
from condoledger.storage import JsonFileStore

settings = get_settings()
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
LANG = settings.language

st.set_page_config(page_title=settings.app_name, layout="wide")


def money(amount):
    return format_currency(amount, LANG, settings.currency)


def show_save(result):
    for w in result.warnings:
        st.warning(f"Saved in this session only: {w}")


st.sidebar.markdown("### 🏢 Condominium")
condo_name = st.sidebar.text_input("Name", value=st.session_state.get("condo_name", "Condominio Demo")).strip() or "Condominio Demo"

if st.session_state.get("condo_name") != condo_name or "service" not in st.session_state:
    service = LedgerService(JsonFileStore(settings.data_dir), condo_name, seed_path=settings.seed_path)
    service.load()
    st.session_state.service = service
    st.session_state.condo_name = condo_name
    st.session_state.pending_import = None

service: LedgerService = st.session_state.service
ledger = service.ledger
accounts = ledger.bank_accounts
today = date.today()

menu = st.sidebar.radio(
    "Menu",
    ["🏠 Dashboard", "🧾 Expenses", "💶 Incomes", "💳 Accounts", "📑 Reports", "📥 Import", "💾 Backup"]
)


def filter_panel(key, categories, with_status):
    with st.expander("🔎 Filters", expanded=False):
        search = st.text_input("Search", key=f"{key}_search")
        c1, c2, c3, c4 = st.columns(4)
        with c1:
            start = st.date_input("From", value=None, key=f"{key}_start")
        with c2:
            end = st.date_input("To", value=None, key=f"{key}_end")
        with c3:
            category = st.selectbox("Category", ["", *categories], key=f"{key}_cat")
        with c4:
            acc_names = {"": ""} | {a.name: a.id for a in accounts}
            account = acc_names[st.selectbox("Account", list(acc_names), key=f"{key}_acc")]
        status = ""
        if with_status:
            status = st.radio("Status", ["", "paid", "unpaid"], horizontal=True, key=f"{key}_status")
    spec = FilterSpec(
        search_text=search,
        start_date=start.isoformat() if start else None,
        end_date=end.isoformat() if end else None,
        category=category or None,
        account_id=account or None,
        status=status or None,
    )
    if spec.active_filter_count:
        st.caption(f"{spec.active_filter_count} active filters")
    return spec


def downloads(prefix, result, csv_fn, xml_fn, pdf_fn):
    c1, c2, c3 = st.columns(3)
    try:
        with c1:
            st.download_button("⬇ CSV", csv_fn(result, accounts),
                               file_name=exports.export_filename(prefix, condo_name, "csv", today))
        with c2:
            st.download_button("⬇ XML", xml_fn(result, accounts),
                               file_name=exports.export_filename(prefix, condo_name, "xml", today))
        with c3:
            table = pdf_fn(result, accounts, condo_name, today, LANG)
            st.download_button("⬇ PDF", exports.render_pdf(table),
                               file_name=exports.export_filename(prefix, condo_name, "pdf", today))
    except ExportError as e:
        st.error(str(e))


if menu == "🏠 Dashboard":
    st.title(f"🏠 {condo_name}")
    year = st.selectbox("Year", available_years(ledger.expenses, ledger.incomes, today))
    report = DashboardService(language=LANG).yearly_report(year, ledger, today)["result"]
    summary = report["summary"]

    k1, k2, k3, k4 = st.columns(4)
    with k1:
        st.metric("Total Expenses", money(summary.total_expense))
    with k2:
        st.metric("Paid", f"{summary.paid_percentage}%")
    with k3:
        st.metric("Total Income", money(summary.total_income))
    with k4:
        st.metric("Net Balance", money(summary.net_balance))

    monthly = report["monthly"]
    labels = [p.label for p in monthly]
    net = np.cumsum([float(p.income - p.expense) for p in monthly])
    fig_ts = go.Figure()
    fig_ts.add_trace(go.Bar(x=labels, y=[float(p.income) for p in monthly], name="Income"))
    fig_ts.add_trace(go.Bar(x=labels, y=[float(p.expense) for p in monthly], name="Expense"))
    fig_ts.add_trace(go.Scatter(x=labels, y=net, mode="lines+markers", name="Cumulative net"))
    fig_ts.update_layout(template="plotly_dark", barmode="group", margin=dict(t=30, b=10, l=10, r=10))
    st.plotly_chart(fig_ts, use_container_width=True)

    col_left, col_right = st.columns([2, 3])
    with col_left:
        st.subheader("💳 Accounts")
        for acc, bal in report["accounts"]:
            st.metric(acc.name, money(bal))
    with col_right:
        if report["categories"]:
            df_cat = pd.DataFrame([{"Category": c, "Total": float(t)} for c, t in report["categories"]])
            fig_cat = px.pie(df_cat, values="Total", names="Category", title="Expenses by Category")
            fig_cat.update_layout(height=320)
            st.plotly_chart(fig_cat, use_container_width=True)
        else:
            st.info("No expenses recorded for this year.")

    st.subheader("⏰ Overdue")
    if report["overdue"]:
        st.table(pd.DataFrame([
            {
                "Date": format_date(o.expense.date, LANG),
                "Description": o.expense.description,
                "Amount": money(o.expense.amount),
                "Days overdue": o.days_overdue,
            }
            for o in report["overdue"]
        ]))
    else:
        st.success("Nothing overdue.")

elif menu == "🧾 Expenses":
    st.title("🧾 Expenses")
    with st.form("expense_form", clear_on_submit=True):
        c1, c2 = st.columns(2)
        with c1:
            description = st.text_input("Description")
            amount = st.text_input("Amount")
            when = st.date_input("Date", value=today)
        with c2:
            category = st.selectbox("Category", expense_categories())
            status = st.radio("Status", ["unpaid", "paid"], horizontal=True)
            acc_names = {"": ""} | {a.name: a.id for a in accounts}
            acc = acc_names[st.selectbox("Account", list(acc_names))]
        confirm = st.checkbox("Save even if it looks like a duplicate")
        submitted = st.form_submit_button("Add Expense")
    if submitted:
        raw = {"description": description, "amount": amount, "date": when.isoformat(),
               "category": category, "status": status, "bank_account_id": acc}
        try:
            show_save(service.add_expense(raw, confirm_duplicate=confirm))
            st.rerun()
        except DuplicateRecordError as e:
            st.warning(f"{e}. Tick the confirmation box to save it anyway.")
        except ValidationError as e:
            st.error(str(e))

    spec = filter_panel("exp", expense_categories(), with_status=True)
    result = apply_filter(ledger.expenses, spec, accounts)
    st.metric(f"{result.count} expenses", money(result.total))
    for e in result.records:
        c1, c2, c3, c4, c5 = st.columns([4, 2, 2, 1, 1])
        c1.markdown(f"**{e.description}**  \n{format_date(e.date, LANG)} · {e.category} · "
                    f"{account_name(accounts, e.bank_account_id) or 'N/A'}")
        c2.write(money(e.amount))
        if c3.button("✅ Paid" if e.is_paid else "⌛ Mark paid", key=f"pay_{e.id}"):
            show_save(service.mark_paid(e.id, not e.is_paid))
            st.rerun()
        if c4.button("📄", key=f"dup_{e.id}", help="Duplicate"):
            show_save(service.duplicate_expense(e.id))
            st.rerun()
        if c5.button("🗑", key=f"del_{e.id}"):
            show_save(service.delete_expense(e.id))
            st.rerun()
    downloads("spese", result, exports.expenses_csv, exports.expenses_xml, exports.expenses_pdf_table)

elif menu == "💶 Incomes":
    st.title("💶 Incomes")
    with st.form("income_form", clear_on_submit=True):
        c1, c2 = st.columns(2)
        with c1:
            description = st.text_input("Description")
            amount = st.text_input("Amount")
            when = st.date_input("Date", value=today)
        with c2:
            category = st.selectbox("Category", income_categories())
            acc_names = {"": ""} | {a.name: a.id for a in accounts}
            acc = acc_names[st.selectbox("Account", list(acc_names))]
        confirm = st.checkbox("Save even if it looks like a duplicate")
        submitted = st.form_submit_button("Add Income")
    if submitted:
        raw = {"description": description, "amount": amount, "date": when.isoformat(),
               "category": category, "bank_account_id": acc}
        try:
            show_save(service.add_income(raw, confirm_duplicate=confirm))
            st.rerun()
        except DuplicateRecordError as e:
            st.warning(f"{e}. Tick the confirmation box to save it anyway.")
        except ValidationError as e:
            st.error(str(e))

    spec = filter_panel("inc", income_categories(), with_status=False)
    result = apply_filter(ledger.incomes, spec, accounts)
    st.metric(f"{result.count} incomes", money(result.total))
    st.dataframe(pd.DataFrame([
        {"Date": format_date(i.date, LANG), "Description": i.description, "Category": i.category,
         "Account": account_name(accounts, i.bank_account_id), "Amount": float(i.amount)}
        for i in result.records
    ]), use_container_width=True)
    remove = st.selectbox("Delete income", ["", *[i.id for i in result.records]],
                          format_func=lambda rid: next((f"{i.date} {i.description}" for i in result.records if i.id == rid), ""))
    if remove and st.button("🗑 Delete"):
        show_save(service.delete_income(remove))
        st.rerun()
    downloads("incassi", result, exports.incomes_csv, exports.incomes_xml, exports.incomes_pdf_table)

elif menu == "💳 Accounts":
    st.title("💳 Bank Accounts")
    for acc, bal in accounts_by_balance(accounts, ledger.expenses, ledger.incomes):
        c1, c2, c3 = st.columns([3, 2, 1])
        c1.markdown(f"**{acc.name}**  \n{acc.iban or '-'}")
        c2.metric("Balance", money(bal))
        if c3.button("🗑", key=f"delacc_{acc.id}"):
            show_save(service.delete_account(acc.id))
            st.rerun()
    with st.form("account_form", clear_on_submit=True):
        name = st.text_input("Name")
        iban = st.text_input("IBAN")
        initial = st.number_input("Initial balance", value=0.0, step=100.0)
        if st.form_submit_button("Add Account"):
            try:
                show_save(service.add_account({"name": name, "iban": iban, "initial_balance": str(initial)}))
                st.rerun()
            except ValidationError as e:
                st.error(str(e))

elif menu == "📑 Reports":
    st.title("📑 Expense Report")
    col_a, col_b = st.columns(2)
    with col_a:
        year = st.selectbox("Year", available_years(ledger.expenses, ledger.incomes, today))
    with col_b:
        mode = GroupMode(st.radio("Group by", [GroupMode.BY_MONTH.value, GroupMode.BY_CATEGORY.value], horizontal=True))
    groups = group_expenses(ledger.expenses, mode, year, "it" if LANG == "it" else "en")
    if not groups:
        st.info("No expenses for this year.")
    for g in groups:
        with st.expander(f"{g.label} · {money(g.total)} ({g.count})"):
            st.table(pd.DataFrame([
                {"": item.label, "Amount": money(item.amount), "Count": item.count} for item in g.items
            ]))
    try:
        sheets = exports.workbook_sheets(condo_name, ledger, year, today, LANG)
        st.download_button("⬇ Excel", exports.render_workbook(sheets),
                           file_name=exports.export_filename("report", condo_name, "xlsx", today))
    except ExportError as e:
        st.error(str(e))

elif menu == "📥 Import":
    st.title("📥 Import")
    kind = st.radio("Records", ["expenses", "incomes"], horizontal=True)
    source = st.radio("Source", ["Documents (AI)", "XML export", "Monthly dues summary"], horizontal=True)
    candidates = None

    if source == "Documents (AI)":
        text = st.text_area("Notes or pasted text")
        uploads = st.file_uploader("Receipts, invoices, statements", accept_multiple_files=True)
        if st.button("Extract"):
            files = [FileInput(u.getvalue(), u.type or "application/octet-stream", u.name) for u in uploads or ()]
            try:
                candidates = asyncio.run(ExtractionClient(settings).extract(text, files, kind))
            except ExtractionServiceError as e:
                st.error(str(e))
    elif source == "XML export":
        upload = st.file_uploader("XML file", type=["xml"])
        if upload is not None:
            try:
                parse = parse_expense_xml if kind == "expenses" else parse_income_xml
                candidates = parse(upload.getvalue().decode("utf-8"))
            except ImportFormatError as e:
                st.error(str(e))
    else:
        c1, c2, c3 = st.columns(3)
        year = c1.number_input("Year", value=today.year, step=1)
        month = c2.number_input("Month", min_value=1, max_value=12, value=today.month)
        amount = c3.text_input("Collected amount")
        if st.button("Prepare"):
            kind = "incomes"
            candidates = [monthly_income_summary(int(year), int(month), amount, LANG)]

    if candidates is not None:
        reconcile = reconcile_expenses if kind == "expenses" else reconcile_incomes
        existing = ledger.expenses if kind == "expenses" else ledger.incomes
        st.session_state.pending_import = (kind, reconcile(candidates, existing, accounts, today))

    pending = st.session_state.get("pending_import")
    if pending:
        kind, batch = pending
        st.metric(f"{len(batch.accepted)} of {batch.submitted} ready", money(batch.total))
        for r in batch.rejected:
            st.error(f"#{r.index + 1}: {r.error.get('message')}")
        rows = []
        for idx, rec in enumerate(batch.accepted):
            rows.append({
                "Date": rec.date, "Description": rec.description, "Category": rec.category,
                "Amount": float(rec.amount),
                "Flags": ", ".join(f for f, on in (("duplicate", idx in batch.duplicates),
                                                   ("uncategorized", idx in batch.uncategorized)) if on),
            })
        st.dataframe(pd.DataFrame(rows), use_container_width=True)
        if batch.accepted and st.button("Confirm import"):
            commit = service.import_expenses if kind == "expenses" else service.import_incomes
            show_save(commit(batch))
            st.session_state.pending_import = None
            st.rerun()

elif menu == "💾 Backup":
    st.title("💾 Backup")
    try:
        payload = exports.backup_json(condo_name, ledger, datetime.now(), settings.backup_version)
        st.download_button("⬇ Download backup", payload,
                           file_name=exports.export_filename("backup", condo_name, "json", today))
    except ExportError as e:
        st.error(str(e))
    upload = st.file_uploader("Restore from backup", type=["json"])
    if upload is not None and st.button("Restore"):
        try:
            _, restored = exports.restore_backup(upload.getvalue().decode("utf-8"), today)
            show_save(service.restore(restored))
            st.rerun()
        except ImportFormatError as e:
            st.error(str(e))
