"""Export payloads for filtered lists and full-ledger backups.

Filtered exports (CSV, XML, PDF table) transcribe a ``FilterResult`` row for
row and print its ``total`` in the footer; they never re-sum the rows. The
spreadsheet and JSON backup cover the whole ledger regardless of filters.
"""

from __future__ import annotations

import functools
import io
import json
import logging
import os
import re
import tempfile
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

import pandas as pd

from condoledger.balances import year_summary
from condoledger.domain import BankAccount, Ledger
from condoledger.errors import ExportError, ImportFormatError
from condoledger.filters import FilterResult
from condoledger.functional import account_name
from condoledger.money import format_amount_csv, format_amount_plain, format_currency, format_date
from condoledger.transforms import (
    account_to_dict,
    expense_to_dict,
    generate_id,
    income_to_dict,
)
from condoledger.validation import validate_bank_account, validate_expense, validate_income

logger = logging.getLogger(__name__)

BOM = "\ufeff"
TOTAL_LABEL = "TOTALE"
BACKUP_VERSION = "1.0"

EXPENSE_CSV_COLUMNS = [
    "ID", "Data", "Descrizione", "Categoria", "Importo",
    "StatoPagamento", "ContoCorrente", "IDConto", "NumeroAllegati",
]
INCOME_CSV_COLUMNS = ["ID", "Data", "Descrizione", "Categoria", "Importo", "ContoCorrente", "IDConto"]

T = TypeVar("T")


def _reported(kind: str) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Turn any failure inside an export builder into a single ExportError."""
    def wrap(fn: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(fn)
        def inner(*args: Any, **kwargs: Any) -> T:
            try:
                return fn(*args, **kwargs)
            except ExportError:
                raise
            except Exception as e:
                logger.error("%s export failed: %s", kind, e)
                raise ExportError(f"{kind} export failed: {e}") from e
        return inner
    return wrap


def export_filename(prefix: str, condo_name: str, extension: str, today: date) -> str:
    slug = re.sub(r"\s", "_", condo_name)
    return f"{prefix}_{slug}_{today.isoformat()}.{extension}"


# --- CSV


def _csv_text(rows: List[Dict[str, Any]], columns: List[str]) -> str:
    df = pd.DataFrame(rows, columns=columns)
    return BOM + df.to_csv(sep=";", index=False, lineterminator="\n")


@_reported("CSV")
def expenses_csv(result: FilterResult, accounts: Sequence[BankAccount]) -> str:
    rows = [
        {
            "ID": e.id,
            "Data": e.date,
            "Descrizione": e.description,
            "Categoria": e.category,
            "Importo": format_amount_csv(e.amount),
            "StatoPagamento": e.status,
            "ContoCorrente": account_name(accounts, e.bank_account_id),
            "IDConto": e.bank_account_id or "",
            "NumeroAllegati": str(len(e.attachments)),
        }
        for e in result.records
    ]
    rows.append({c: "" for c in EXPENSE_CSV_COLUMNS} | {
        "Categoria": TOTAL_LABEL, "Importo": format_amount_csv(result.total),
    })
    return _csv_text(rows, EXPENSE_CSV_COLUMNS)


@_reported("CSV")
def incomes_csv(result: FilterResult, accounts: Sequence[BankAccount]) -> str:
    rows = [
        {
            "ID": i.id,
            "Data": i.date,
            "Descrizione": i.description,
            "Categoria": i.category,
            "Importo": format_amount_csv(i.amount),
            "ContoCorrente": account_name(accounts, i.bank_account_id),
            "IDConto": i.bank_account_id or "",
        }
        for i in result.records
    ]
    rows.append({c: "" for c in INCOME_CSV_COLUMNS} | {
        "Categoria": TOTAL_LABEL, "Importo": format_amount_csv(result.total),
    })
    return _csv_text(rows, INCOME_CSV_COLUMNS)


# --- XML


def _xml_text(root: ET.Element) -> str:
    ET.indent(root, space="  ")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode")


def _sub(parent: ET.Element, tag: str, text: str) -> None:
    ET.SubElement(parent, tag).text = text


@_reported("XML")
def expenses_xml(result: FilterResult, accounts: Sequence[BankAccount]) -> str:
    root = ET.Element("expenses")
    for e in result.records:
        node = ET.SubElement(root, "expense")
        _sub(node, "id", e.id)
        _sub(node, "date", e.date)
        _sub(node, "description", e.description)
        _sub(node, "category", e.category)
        _sub(node, "amount", format_amount_plain(e.amount))
        _sub(node, "status", e.status)
        _sub(node, "bankAccount", account_name(accounts, e.bank_account_id))
    _sub(root, "total", format_amount_plain(result.total))
    return _xml_text(root)


@_reported("XML")
def incomes_xml(result: FilterResult, accounts: Sequence[BankAccount]) -> str:
    root = ET.Element("incomes")
    for i in result.records:
        node = ET.SubElement(root, "income")
        _sub(node, "id", i.id)
        _sub(node, "date", i.date)
        _sub(node, "description", i.description)
        _sub(node, "category", i.category)
        _sub(node, "amount", format_amount_plain(i.amount))
        _sub(node, "bankAccount", account_name(accounts, i.bank_account_id))
    _sub(root, "total", format_amount_plain(result.total))
    return _xml_text(root)


# --- PDF


@dataclass(frozen=True)
class PdfTable:
    title: str
    subtitle: str
    head: tuple[str, ...]
    body: tuple[tuple[str, ...], ...]
    foot: tuple[str, ...]


_STATUS_LABELS = {"paid": "Pagato", "unpaid": "Da Pagare"}


@_reported("PDF")
def expenses_pdf_table(
    result: FilterResult,
    accounts: Sequence[BankAccount],
    condo_name: str,
    today: date,
    language: str = "it",
) -> PdfTable:
    body = tuple(
        (
            format_date(e.date, language),
            e.description,
            e.category,
            account_name(accounts, e.bank_account_id) or "N/A",
            _STATUS_LABELS.get(e.status, e.status),
            format_currency(e.amount, language),
        )
        for e in result.records
    )
    return PdfTable(
        title=f"Riepilogo Spese - {condo_name}",
        subtitle=f"Report generato il {format_date(today.isoformat(), language)}",
        head=("Data", "Descrizione", "Categoria", "Conto", "Stato", "Importo"),
        body=body,
        foot=("", "", "", "", TOTAL_LABEL, format_currency(result.total, language)),
    )


@_reported("PDF")
def incomes_pdf_table(
    result: FilterResult,
    accounts: Sequence[BankAccount],
    condo_name: str,
    today: date,
    language: str = "it",
) -> PdfTable:
    body = tuple(
        (
            format_date(i.date, language),
            i.description,
            i.category,
            account_name(accounts, i.bank_account_id) or "N/A",
            format_currency(i.amount, language),
        )
        for i in result.records
    )
    return PdfTable(
        title=f"Riepilogo Incassi - {condo_name}",
        subtitle=f"Report generato il {format_date(today.isoformat(), language)}",
        head=("Data", "Descrizione", "Categoria", "Conto", "Importo"),
        body=body,
        foot=("", "", "", TOTAL_LABEL, format_currency(result.total, language)),
    )


@_reported("PDF")
def render_pdf(table: PdfTable) -> bytes:
    from reportlab.lib import colors
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.styles import getSampleStyleSheet
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4, title=table.title)
    styles = getSampleStyleSheet()
    grid = Table([list(table.head), *[list(r) for r in table.body], list(table.foot)], repeatRows=1)
    grid.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#4f46e5")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("BACKGROUND", (0, -1), (-1, -1), colors.HexColor("#f1f5f9")),
        ("ALIGN", (-1, 1), (-1, -1), "RIGHT"),
    ]))
    doc.build([
        Paragraph(table.title, styles["Title"]),
        Paragraph(table.subtitle, styles["Normal"]),
        Spacer(1, 12),
        grid,
    ])
    return buf.getvalue()


# --- Spreadsheet


@_reported("Spreadsheet")
def workbook_sheets(
    condo_name: str, ledger: Ledger, year: int, today: date, language: str = "it"
) -> Dict[str, List[Dict[str, Any]]]:
    """Four flat sheets: Summary (for ``year``), then every expense, income and account."""
    summary = year_summary(ledger.expenses, ledger.incomes, year)
    accounts = ledger.bank_accounts
    return {
        "Summary": [
            {"Key": "Condominium", "Value": condo_name},
            {"Key": "Export Date", "Value": format_date(today.isoformat(), language)},
            {"Key": "Year", "Value": year},
            {"Key": "Total Expenses", "Value": float(summary.total_expense)},
            {"Key": "Total Paid Expenses", "Value": float(summary.total_paid_expense)},
            {"Key": "Total Income", "Value": float(summary.total_income)},
            {"Key": "Net Balance", "Value": float(summary.net_balance)},
        ],
        "Expenses": [
            {
                "ID": e.id,
                "Date": e.date,
                "Description": e.description,
                "Category": e.category,
                "Amount": float(e.amount),
                "Status": e.status,
                "Account_ID": e.bank_account_id or "",
                "Account_Name": account_name(accounts, e.bank_account_id),
            }
            for e in ledger.expenses
        ],
        "Incomes": [
            {
                "ID": i.id,
                "Date": i.date,
                "Description": i.description,
                "Category": i.category,
                "Amount": float(i.amount),
                "Account_ID": i.bank_account_id or "",
                "Account_Name": account_name(accounts, i.bank_account_id),
            }
            for i in ledger.incomes
        ],
        "Accounts": [
            {"ID": a.id, "Name": a.name, "IBAN": a.iban, "Initial_Balance": float(a.initial_balance)}
            for a in accounts
        ],
    }


@_reported("Spreadsheet")
def render_workbook(sheets: Dict[str, List[Dict[str, Any]]]) -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as xw:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(xw, sheet_name=name, index=False)
    return buf.getvalue()


# --- JSON backup


def backup_payload(condo_name: str, ledger: Ledger, now: datetime, version: str = BACKUP_VERSION) -> Dict[str, Any]:
    return {
        "condoName": condo_name,
        "exportDate": now.isoformat(),
        "expenses": [expense_to_dict(e) for e in ledger.expenses],
        "incomes": [income_to_dict(i) for i in ledger.incomes],
        "bankAccounts": [account_to_dict(a) for a in ledger.bank_accounts],
        "version": version,
    }


@_reported("Backup")
def backup_json(condo_name: str, ledger: Ledger, now: datetime, version: str = BACKUP_VERSION) -> str:
    return json.dumps(backup_payload(condo_name, ledger, now, version), indent=2, ensure_ascii=False)


def _restore_rows(rows: Any, kind: str, validate: Callable[[Mapping[str, Any], str], Any]) -> tuple[tuple, List[str]]:
    if not isinstance(rows, list):
        raise ImportFormatError(f"Backup field '{kind}' is not a list")
    records: List[Any] = []
    problems: List[str] = []
    for index, row in enumerate(rows):
        if not isinstance(row, Mapping):
            problems.append(f"{kind}[{index}]: not an object")
            continue
        result = validate(row, str(row.get("id") or "") or generate_id())
        if result.is_left():
            problems.append(f"{kind}[{index}]: {result.get_error()['message']}")
        else:
            records.append(result.get_or_else(None))
    return tuple(records), problems


def restore_backup(text: str, today: Optional[date] = None) -> tuple[str, Ledger]:
    """Parse a JSON backup; every row is validated as a manual entry would be.

    Ids are kept. Any invalid row rejects the whole file with ImportFormatError
    naming the offending rows.
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ImportFormatError(f"Not a valid backup file: {e}") from e
    if not isinstance(data, dict):
        raise ImportFormatError("Not a valid backup file: expected a JSON object")
    today = today or date.today()

    expenses, bad_expenses = _restore_rows(
        data.get("expenses", []), "expenses", lambda raw, rid: validate_expense(raw, today, rid)
    )
    incomes, bad_incomes = _restore_rows(
        data.get("incomes", []), "incomes", lambda raw, rid: validate_income(raw, today, rid)
    )
    accounts, bad_accounts = _restore_rows(data.get("bankAccounts", []), "bankAccounts", validate_bank_account)
    problems = bad_expenses + bad_incomes + bad_accounts
    if problems:
        logger.warning("Backup rejected, %d invalid rows", len(problems))
        raise ImportFormatError("Backup contains invalid rows: " + "; ".join(problems[:5]))
    return str(data.get("condoName") or ""), Ledger(expenses=expenses, incomes=incomes, bank_accounts=accounts)


def write_export(path: str, payload: bytes | str) -> str:
    """Write an export atomically; on failure no file is left behind."""
    data = payload.encode("utf-8") if isinstance(payload, str) else payload
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile("wb", dir=directory, delete=False, suffix=".part") as fh:
            tmp_path = fh.name
            fh.write(data)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)
        logger.error("Could not write export %s: %s", path, e)
        raise ExportError(f"Could not write {path}: {e}") from e
    return path
