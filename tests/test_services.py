from datetime import date
from decimal import Decimal

import pytest

from condoledger.domain import Ledger
from condoledger.errors import (
    DuplicateRecordError,
    InvalidAmount,
    PersistenceError,
    RecordNotFoundError,
)
from condoledger.reconcile import reconcile_expenses
from condoledger.services import DashboardService, LedgerService
from condoledger.storage import MemoryStore, storage_key

TODAY = date(2024, 1, 1)


def make_ids():
    n = iter(range(1, 1000))
    return lambda: f"id{next(n)}"


def make_service(store=None, name="Via Roma 1"):
    service = LedgerService(store or MemoryStore(), name, clock=lambda: TODAY, id_factory=make_ids())
    service.load()
    return service


class FailingStore(MemoryStore):
    def save(self, key, collection):
        raise PersistenceError("quota exceeded")


def test_load_falls_back_to_seed():
    service = make_service()
    assert len(service.ledger.expenses) == 5
    assert len(service.ledger.bank_accounts) == 2
    assert [e.date for e in service.ledger.expenses] == sorted((e.date for e in service.ledger.expenses), reverse=True)


def test_saved_collections_are_used():
    store = MemoryStore()
    store.save(storage_key("expenses", "Via Roma 1"), [])
    service = make_service(store)
    assert service.ledger.expenses == ()
    assert len(service.ledger.incomes) == 3


def test_add_expense_persists_and_sorts():
    store = MemoryStore()
    service = make_service(store)
    result = service.add_expense({"description": "Roof repair", "amount": "1.200,00", "date": "2023-12-01"})
    assert result.saved and result.warnings == ()
    assert result.record.id == "id1"
    assert service.ledger.expenses[0].description == "Roof repair"
    saved = store.load(storage_key("expenses", "Via Roma 1"))
    assert saved[0]["amount"] == 1200


def test_add_invalid_expense_leaves_ledger_untouched():
    service = make_service()
    before = service.ledger
    with pytest.raises(InvalidAmount):
        service.add_expense({"description": "x", "amount": "-5"})
    assert service.ledger is before


def test_duplicate_manual_entry_needs_confirmation():
    service = make_service()
    raw = {"description": "elevator maintenance", "amount": 450, "date": "2023-10-15"}
    with pytest.raises(DuplicateRecordError):
        service.add_expense(raw)
    assert service.add_expense(raw, confirm_duplicate=True).saved
    assert len(service.ledger.expenses) == 6


def test_update_is_not_checked_for_duplicates():
    service = make_service()
    result = service.update_expense("1", {"description": "Elevator Maintenance", "amount": 460,
                                          "date": "2023-10-15", "status": "paid", "bankAccountId": "acc1"})
    assert result.record.amount == Decimal("460")
    assert len(service.ledger.expenses) == 5
    with pytest.raises(RecordNotFoundError):
        service.update_expense("nope", {"description": "x", "amount": 1})


def test_duplicate_expense_copy():
    service = make_service()
    copy = service.duplicate_expense("1").record
    assert copy.id == "id1"
    assert copy.description == "Elevator Maintenance (Copy)"
    assert copy.date == "2024-01-01"
    assert copy.attachments == ()
    assert service.ledger.expenses[0] == copy


def test_mark_paid_and_delete():
    service = make_service()
    assert service.mark_paid("3").record.is_paid
    service.delete_expense("3")
    assert all(e.id != "3" for e in service.ledger.expenses)


def test_delete_account_does_not_cascade():
    service = make_service()
    service.delete_account("acc2")
    assert [a.id for a in service.ledger.bank_accounts] == ["acc1"]
    assert any(e.bank_account_id == "acc2" for e in service.ledger.expenses)


def test_add_account_prepends():
    service = make_service()
    acc = service.add_account({"name": "Reserve", "initial_balance": "250"}).record
    assert service.ledger.bank_accounts[0] == acc


def test_income_crud():
    service = make_service()
    inc = service.add_income({"description": "Dues - Rossi", "amount": 550, "date": "2023-12-05",
                              "category": "Dues"}).record
    assert service.ledger.incomes[0] == inc
    service.delete_income(inc.id)
    assert len(service.ledger.incomes) == 3


def test_persistence_failure_keeps_memory_state():
    service = make_service(FailingStore())
    result = service.add_expense({"description": "Roof repair", "amount": 10, "date": "2023-12-01"})
    assert not result.saved
    assert result.warnings == ("quota exceeded",)
    assert service.ledger.expenses[0].description == "Roof repair"


def test_import_commits_with_fresh_ids():
    service = make_service()
    batch = reconcile_expenses(
        [{"description": "Gardening", "amount": 80, "date": "2023-12-20"}, {"amount": 5}],
        service.ledger.expenses, service.ledger.bank_accounts, TODAY,
    )
    service.import_expenses(batch)
    assert service.ledger.expenses[0].description == "Gardening"
    assert service.ledger.expenses[0].id == "id1"
    assert len(service.ledger.expenses) == 6


def test_restore_replaces_everything():
    store = MemoryStore()
    service = make_service(store)
    result = service.restore(Ledger())
    assert result.saved
    assert store.load(storage_key("incomes", "Via Roma 1")) == []


def test_dashboard_report_steps():
    service = make_service()
    report = DashboardService().yearly_report(2023, service.ledger, TODAY)
    assert [s["calculator"] for s in report["steps"]] == [
        "summary_step", "balances_step", "overdue_step", "monthly_step", "categories_step",
    ]
    result = report["result"]
    assert result["summary"].total_expense == Decimal("1421.40")
    assert [o.expense.id for o in result["overdue"]] == ["3", "5"]
    assert len(result["monthly"]) == 12
    assert "language" not in result


def test_dashboard_custom_calculators_share_results():
    def count(year, ledger, today, acc):
        return {"count": len(ledger.expenses)}

    def double(year, ledger, today, acc):
        return {"double": acc["count"] * 2}

    report = DashboardService([count, double]).yearly_report(2023, make_service().ledger, TODAY)
    assert report["result"] == {"count": 5, "double": 10}
