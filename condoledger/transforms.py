import json
from dataclasses import replace
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar, Union
from uuid import uuid4

from condoledger.domain import Attachment, BankAccount, Expense, Income, Ledger
from condoledger.money import to_cents

R = TypeVar("R", Expense, Income)

DEFAULT_SEED_PATH = Path(__file__).resolve().parent.parent / "data" / "seed.json"


def generate_id() -> str:
    return str(uuid4())


# --- dict (de)serialisation, field names as stored by the browser app


def _amount_out(amount: Decimal) -> Union[int, float]:
    return int(amount) if amount == amount.to_integral_value() else float(amount)


def expense_to_dict(e: Expense) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "id": e.id,
        "description": e.description,
        "amount": _amount_out(e.amount),
        "date": e.date,
        "category": e.category,
        "status": e.status,
        "attachments": [
            {"id": a.id, "name": a.name, "url": a.url, "type": a.mime_type} for a in e.attachments
        ],
    }
    if e.bank_account_id:
        d["bankAccountId"] = e.bank_account_id
    return d


def income_to_dict(i: Income) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "id": i.id,
        "description": i.description,
        "amount": _amount_out(i.amount),
        "date": i.date,
        "category": i.category,
    }
    if i.bank_account_id:
        d["bankAccountId"] = i.bank_account_id
    return d


def account_to_dict(a: BankAccount) -> Dict[str, Any]:
    return {
        "id": a.id,
        "name": a.name,
        "initialBalance": _amount_out(a.initial_balance),
        "iban": a.iban,
    }


def expense_from_dict(d: Dict[str, Any]) -> Expense:
    return Expense(
        id=str(d["id"]),
        description=d["description"],
        amount=to_cents(d["amount"]),
        date=d["date"],
        category=d["category"],
        status=d.get("status", "unpaid"),
        bank_account_id=d.get("bankAccountId") or None,
        attachments=tuple(
            Attachment(id=a["id"], name=a["name"], url=a["url"], mime_type=a.get("type", ""))
            for a in d.get("attachments") or ()
        ),
    )


def income_from_dict(d: Dict[str, Any]) -> Income:
    return Income(
        id=str(d["id"]),
        description=d["description"],
        amount=to_cents(d["amount"]),
        date=d["date"],
        category=d["category"],
        bank_account_id=d.get("bankAccountId") or None,
    )


def account_from_dict(d: Dict[str, Any]) -> BankAccount:
    return BankAccount(
        id=str(d["id"]),
        name=d["name"],
        initial_balance=to_cents(d["initialBalance"]),
        iban=d.get("iban", ""),
    )


def ledger_from_dict(data: Dict[str, Any]) -> Ledger:
    return Ledger(
        expenses=tuple(expense_from_dict(e) for e in data.get("expenses", ())),
        incomes=tuple(income_from_dict(i) for i in data.get("incomes", ())),
        bank_accounts=tuple(account_from_dict(a) for a in data.get("bankAccounts", ())),
    )


def load_seed(path: Optional[Union[str, Path]] = None) -> Ledger:
    with open(path or DEFAULT_SEED_PATH, "r", encoding="utf-8") as f:
        data = json.load(f)
    return ledger_from_dict(data)


# --- immutable collection updates


def sort_by_date_desc(records: Tuple[R, ...]) -> Tuple[R, ...]:
    return tuple(sorted(records, key=lambda r: r.date, reverse=True))


def add_record(records: Tuple[R, ...], record: R) -> Tuple[R, ...]:
    """Prepend and keep the list newest-first, as the lists are shown."""
    return sort_by_date_desc((record,) + records)


def update_record(records: Tuple[R, ...], updated: R) -> Tuple[R, ...]:
    return sort_by_date_desc(tuple(updated if r.id == updated.id else r for r in records))


def delete_record(records: Tuple[Any, ...], record_id: str) -> Tuple[Any, ...]:
    return tuple(r for r in records if r.id != record_id)


def add_account(accounts: Tuple[BankAccount, ...], account: BankAccount) -> Tuple[BankAccount, ...]:
    return (account,) + accounts


def update_account(accounts: Tuple[BankAccount, ...], updated: BankAccount) -> Tuple[BankAccount, ...]:
    return tuple(updated if a.id == updated.id else a for a in accounts)


def delete_account(accounts: Tuple[BankAccount, ...], account_id: str) -> Tuple[BankAccount, ...]:
    # expenses and incomes keep their bank_account_id; lookups degrade to "no account"
    return delete_record(accounts, account_id)


def duplicate_expense(
    expense: Expense, today: date, id_factory: Callable[[], str] = generate_id
) -> Expense:
    return replace(
        expense,
        id=id_factory(),
        description=f"{expense.description} (Copy)",
        date=today.isoformat(),
        attachments=(),
    )
