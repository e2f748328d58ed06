import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from condoledger import balances, transforms
from condoledger.domain import BankAccount, Expense, Income, Ledger
from condoledger.errors import PersistenceError, RecordNotFoundError
from condoledger.reconcile import ImportBatch, check_manual_entry, commit_import
from condoledger.storage import Store, storage_key
from condoledger.validation import (
    Clock,
    require_valid,
    validate_bank_account,
    validate_expense,
    validate_income,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveResult:
    record: Any = None
    saved: bool = True
    warnings: tuple = ()


class LedgerService:
    """Session over one organization's ledger.

    Every mutation validates, updates the in-memory snapshot and then persists
    the touched collection. A refused write is reported in ``SaveResult.warnings``;
    the new snapshot stays in place either way.
    """

    def __init__(
        self,
        store: Store,
        condo_name: str,
        clock: Clock = date.today,
        id_factory: Callable[[], str] = transforms.generate_id,
        seed_path: Optional[str] = None,
    ):
        self.store = store
        self.condo_name = condo_name
        self.clock = clock
        self.id_factory = id_factory
        self.seed_path = seed_path
        self._ledger = Ledger()

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    def load(self) -> Ledger:
        """Read every collection; a collection never saved falls back to the demo data."""
        stored = {kind: self.store.load(storage_key(kind, self.condo_name)) for kind in ("expenses", "incomes", "bankAccounts")}
        seed = transforms.load_seed(self.seed_path) if any(v is None for v in stored.values()) else Ledger()
        self._ledger = Ledger(
            expenses=transforms.sort_by_date_desc(
                tuple(transforms.expense_from_dict(d) for d in stored["expenses"])
                if stored["expenses"] is not None else seed.expenses
            ),
            incomes=transforms.sort_by_date_desc(
                tuple(transforms.income_from_dict(d) for d in stored["incomes"])
                if stored["incomes"] is not None else seed.incomes
            ),
            bank_accounts=tuple(transforms.account_from_dict(d) for d in stored["bankAccounts"])
            if stored["bankAccounts"] is not None else seed.bank_accounts,
        )
        return self._ledger

    # persistence

    def _save(self, kind: str, record: Any = None) -> SaveResult:
        if kind == "expenses":
            payload = [transforms.expense_to_dict(e) for e in self._ledger.expenses]
        elif kind == "incomes":
            payload = [transforms.income_to_dict(i) for i in self._ledger.incomes]
        else:
            payload = [transforms.account_to_dict(a) for a in self._ledger.bank_accounts]
        try:
            self.store.save(storage_key(kind, self.condo_name), payload)
        except PersistenceError as e:
            logger.warning("Changes to %s for %s kept in memory only: %s", kind, self.condo_name, e)
            return SaveResult(record=record, saved=False, warnings=(str(e),))
        return SaveResult(record=record)

    def save_all(self) -> SaveResult:
        results = [self._save(kind) for kind in ("expenses", "incomes", "bankAccounts")]
        return SaveResult(
            saved=all(r.saved for r in results),
            warnings=tuple(w for r in results for w in r.warnings),
        )

    def restore(self, ledger: Ledger) -> SaveResult:
        """Replace the whole ledger, e.g. from a backup."""
        self._ledger = Ledger(
            expenses=transforms.sort_by_date_desc(ledger.expenses),
            incomes=transforms.sort_by_date_desc(ledger.incomes),
            bank_accounts=ledger.bank_accounts,
        )
        return self.save_all()

    # expenses

    def _find(self, records: Sequence[Any], record_id: str) -> Any:
        for r in records:
            if r.id == record_id:
                return r
        raise RecordNotFoundError(record_id)

    def add_expense(self, raw: Mapping[str, Any], confirm_duplicate: bool = False) -> SaveResult:
        expense = require_valid(validate_expense(raw, self.clock(), self.id_factory()))
        check_manual_entry(expense, self._ledger.expenses, confirm_duplicate)
        self._ledger = replace(self._ledger, expenses=transforms.add_record(self._ledger.expenses, expense))
        return self._save("expenses", expense)

    def update_expense(self, record_id: str, raw: Mapping[str, Any]) -> SaveResult:
        self._find(self._ledger.expenses, record_id)
        expense = require_valid(validate_expense(raw, self.clock(), record_id))
        self._ledger = replace(self._ledger, expenses=transforms.update_record(self._ledger.expenses, expense))
        return self._save("expenses", expense)

    def delete_expense(self, record_id: str) -> SaveResult:
        self._find(self._ledger.expenses, record_id)
        self._ledger = replace(self._ledger, expenses=transforms.delete_record(self._ledger.expenses, record_id))
        return self._save("expenses")

    def duplicate_expense(self, record_id: str) -> SaveResult:
        original: Expense = self._find(self._ledger.expenses, record_id)
        copy = transforms.duplicate_expense(original, self.clock(), self.id_factory)
        self._ledger = replace(self._ledger, expenses=transforms.add_record(self._ledger.expenses, copy))
        return self._save("expenses", copy)

    def mark_paid(self, record_id: str, paid: bool = True) -> SaveResult:
        expense: Expense = self._find(self._ledger.expenses, record_id)
        updated = replace(expense, status="paid" if paid else "unpaid")
        self._ledger = replace(self._ledger, expenses=transforms.update_record(self._ledger.expenses, updated))
        return self._save("expenses", updated)

    def import_expenses(self, batch: ImportBatch) -> SaveResult:
        merged = commit_import(self._ledger.expenses, batch, self.id_factory)
        self._ledger = replace(self._ledger, expenses=transforms.sort_by_date_desc(merged))
        return self._save("expenses")

    # incomes

    def add_income(self, raw: Mapping[str, Any], confirm_duplicate: bool = False) -> SaveResult:
        income = require_valid(validate_income(raw, self.clock(), self.id_factory()))
        check_manual_entry(income, self._ledger.incomes, confirm_duplicate)
        self._ledger = replace(self._ledger, incomes=transforms.add_record(self._ledger.incomes, income))
        return self._save("incomes", income)

    def update_income(self, record_id: str, raw: Mapping[str, Any]) -> SaveResult:
        self._find(self._ledger.incomes, record_id)
        income = require_valid(validate_income(raw, self.clock(), record_id))
        self._ledger = replace(self._ledger, incomes=transforms.update_record(self._ledger.incomes, income))
        return self._save("incomes", income)

    def delete_income(self, record_id: str) -> SaveResult:
        self._find(self._ledger.incomes, record_id)
        self._ledger = replace(self._ledger, incomes=transforms.delete_record(self._ledger.incomes, record_id))
        return self._save("incomes")

    def import_incomes(self, batch: ImportBatch) -> SaveResult:
        merged = commit_import(self._ledger.incomes, batch, self.id_factory)
        self._ledger = replace(self._ledger, incomes=transforms.sort_by_date_desc(merged))
        return self._save("incomes")

    # bank accounts

    def add_account(self, raw: Mapping[str, Any]) -> SaveResult:
        account = require_valid(validate_bank_account(raw, self.id_factory()))
        self._ledger = replace(self._ledger, bank_accounts=transforms.add_account(self._ledger.bank_accounts, account))
        return self._save("bankAccounts", account)

    def update_account(self, account_id: str, raw: Mapping[str, Any]) -> SaveResult:
        self._find(self._ledger.bank_accounts, account_id)
        account: BankAccount = require_valid(validate_bank_account(raw, account_id))
        self._ledger = replace(
            self._ledger, bank_accounts=transforms.update_account(self._ledger.bank_accounts, account)
        )
        return self._save("bankAccounts", account)

    def delete_account(self, account_id: str) -> SaveResult:
        self._find(self._ledger.bank_accounts, account_id)
        self._ledger = replace(
            self._ledger, bank_accounts=transforms.delete_account(self._ledger.bank_accounts, account_id)
        )
        return self._save("bankAccounts")


# dashboard calculators: (year, ledger, today, acc) -> partial result


def summary_step(year: int, ledger: Ledger, today: date, acc: Dict[str, Any]) -> Dict[str, Any]:
    return {"summary": balances.year_summary(ledger.expenses, ledger.incomes, year)}


def balances_step(year: int, ledger: Ledger, today: date, acc: Dict[str, Any]) -> Dict[str, Any]:
    return {"accounts": balances.accounts_by_balance(ledger.bank_accounts, ledger.expenses, ledger.incomes)}


def overdue_step(year: int, ledger: Ledger, today: date, acc: Dict[str, Any]) -> Dict[str, Any]:
    return {"overdue": balances.overdue_expenses(ledger.expenses, today)}


def monthly_step(year: int, ledger: Ledger, today: date, acc: Dict[str, Any]) -> Dict[str, Any]:
    return {"monthly": balances.monthly_series(ledger.expenses, ledger.incomes, year, acc.get("language", "en"))}


def categories_step(year: int, ledger: Ledger, today: date, acc: Dict[str, Any]) -> Dict[str, Any]:
    return {"categories": balances.category_breakdown(ledger.expenses, year)}


DEFAULT_CALCULATORS = (summary_step, balances_step, overdue_step, monthly_step, categories_step)


class DashboardService:
    """Facade running dashboard calculators in order and recording each step.

    calculators: sequence of functions taking (year, ledger, today, acc) -> dict (partial results)
    """

    def __init__(self, calculators: Sequence[Callable[..., Dict[str, Any]]] = DEFAULT_CALCULATORS, language: str = "en"):
        self.calculators = calculators
        self.language = language

    def yearly_report(self, year: int, ledger: Ledger, today: date) -> Dict[str, Any]:
        report = {"year": year, "steps": [], "result": {}}
        acc: Dict[str, Any] = {"language": self.language}
        for calc in self.calculators:
            out = calc(year, ledger, today, acc)
            report["steps"].append({"calculator": getattr(calc, "__name__", str(calc)), "output": out})
            if isinstance(out, dict):
                acc.update(out)
        acc.pop("language")
        report["result"] = acc
        return report
