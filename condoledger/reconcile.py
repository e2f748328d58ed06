"""Admission of externally sourced records into the ledger.

Candidates come from XML re-imports or the extraction service. Each one is
validated on its own; a bad candidate is rejected without touching the rest
of the batch. Duplicates of existing records are flagged but still admitted,
since a batch is reviewed as a whole before it is committed.
"""

from __future__ import annotations

import calendar
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence, TypeVar, Union

from condoledger.domain import (
    BankAccount,
    Expense,
    Income,
    IncomeCategory,
    expense_categories,
    income_categories,
)
from condoledger.errors import DuplicateRecordError, ImportFormatError
from condoledger.money import month_name, sum_amounts
from condoledger.transforms import generate_id
from condoledger.validation import (
    normalize_category,
    validate_expense,
    validate_income,
)

logger = logging.getLogger(__name__)

Record = Union[Expense, Income]
R = TypeVar("R", Expense, Income)


@dataclass(frozen=True)
class Rejection:
    index: int
    error: Dict[str, Any]


@dataclass(frozen=True)
class ImportBatch:
    accepted: tuple            # validated records with a pending (empty) id
    rejected: tuple[Rejection, ...]
    duplicates: tuple[int, ...]     # positions in ``accepted``
    uncategorized: tuple[int, ...]  # positions in ``accepted``
    total: Decimal

    @property
    def submitted(self) -> int:
        return len(self.accepted) + len(self.rejected)


def duplicate_key(record: Any) -> tuple:
    return (record.description.strip().lower(), record.amount, record.date)


def find_duplicates(record: Record, existing: Iterable[Record]) -> tuple:
    key = duplicate_key(record)
    return tuple(r for r in existing if duplicate_key(r) == key and r.id != record.id)


def is_duplicate(record: Record, existing: Iterable[Record]) -> bool:
    return bool(find_duplicates(record, existing))


def check_manual_entry(record: R, existing: Sequence[R], confirm_duplicate: bool = False) -> R:
    """Gate a single manual entry; a duplicate must be confirmed explicitly."""
    matches = find_duplicates(record, existing)
    if matches and not confirm_duplicate:
        raise DuplicateRecordError(record, matches)
    return record


def _resolve_account_ref(raw: Mapping[str, Any], accounts: Sequence[BankAccount]) -> Dict[str, Any]:
    data = dict(raw)
    ref = data.get("bank_account_id") or data.get("bankAccountId")
    if ref and not any(a.id == ref for a in accounts):
        ref = None
    if not ref:
        name = data.get("bank_account") or data.get("bankAccount")
        ref = next((a.id for a in accounts if name and a.name == name), None)
    data["bank_account_id"] = ref
    data.pop("bankAccountId", None)
    return data


def _reconcile(
    candidates: Sequence[Mapping[str, Any]],
    existing: Sequence[R],
    accounts: Sequence[BankAccount],
    validate: Callable[..., Any],
    known_categories: tuple[str, ...],
    today: date,
) -> ImportBatch:
    accepted: List[R] = []
    rejected: List[Rejection] = []
    duplicates: List[int] = []
    uncategorized: List[int] = []

    for index, raw in enumerate(candidates):
        if not isinstance(raw, Mapping):
            rejected.append(Rejection(index, {"error": "invalid_record", "message": "Candidate is not an object"}))
            continue
        result = validate(_resolve_account_ref(raw, accounts), today)
        if result.is_left():
            rejected.append(Rejection(index, result.get_error()))
            continue
        record = result.get_or_else(None)
        _, recognised = normalize_category(raw.get("category"), known_categories, "")
        if not recognised:
            uncategorized.append(len(accepted))
        if is_duplicate(record, existing):
            duplicates.append(len(accepted))
        accepted.append(record)

    if rejected:
        logger.info("Import: %d of %d candidates rejected", len(rejected), len(candidates))
    return ImportBatch(
        accepted=tuple(accepted),
        rejected=tuple(rejected),
        duplicates=tuple(duplicates),
        uncategorized=tuple(uncategorized),
        total=sum_amounts(accepted),
    )


def reconcile_expenses(
    candidates: Sequence[Mapping[str, Any]],
    existing: Sequence[Expense],
    accounts: Sequence[BankAccount],
    today: date,
) -> ImportBatch:
    return _reconcile(candidates, existing, accounts, validate_expense, expense_categories(), today)


def reconcile_incomes(
    candidates: Sequence[Mapping[str, Any]],
    existing: Sequence[Income],
    accounts: Sequence[BankAccount],
    today: date,
) -> ImportBatch:
    return _reconcile(candidates, existing, accounts, validate_income, income_categories(), today)


def commit_import(
    existing: tuple, batch: ImportBatch, id_factory: Callable[[], str] = generate_id
) -> tuple:
    """Append every accepted candidate under a fresh id; nothing is overwritten."""
    return existing + tuple(replace(r, id=id_factory()) for r in batch.accepted)


def monthly_income_summary(year: int, month: int, amount: Any, language: str = "en") -> Dict[str, Any]:
    """Candidate for a month's collected dues, dated on the month's last day."""
    last_day = calendar.monthrange(year, month)[1]
    label = "Income Summary" if language == "en" else "Riepilogo Incassi"
    return {
        "description": f"{label} - {month_name(month - 1, language)} {year}",
        "amount": amount,
        "date": f"{year:04d}-{month:02d}-{last_day:02d}",
        "category": IncomeCategory.DUES.value,
    }


def _parse_xml(text: str, tag: str, fields: Sequence[str]) -> List[Dict[str, Any]]:
    try:
        root = ET.fromstring(text.lstrip("\ufeff"))
    except ET.ParseError as e:
        raise ImportFormatError(f"Not a valid XML export: {e}") from e
    rows = []
    for item in root.iter(tag):
        row: Dict[str, Any] = {}
        for f in fields:
            node = item.find(f)
            if node is not None and node.text is not None:
                row[f] = node.text
        rows.append(row)
    return rows


def parse_expense_xml(text: str) -> List[Dict[str, Any]]:
    return _parse_xml(text, "expense", ("description", "amount", "category", "date", "status", "bankAccount"))


def parse_income_xml(text: str) -> List[Dict[str, Any]]:
    return _parse_xml(text, "income", ("description", "amount", "category", "date", "bankAccount"))
