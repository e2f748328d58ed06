from datetime import date
from decimal import Decimal

from condoledger import balances
from condoledger.domain import BankAccount, Expense, Income
from condoledger.transforms import delete_account, load_seed


def make_exp(id, amount, date, status="unpaid", acc=None, category="Maintenance"):
    return Expense(id=id, description=f"exp {id}", amount=Decimal(str(amount)), date=date,
                   category=category, status=status, bank_account_id=acc)


def make_inc(id, amount, date, acc=None):
    return Income(id=id, description=f"inc {id}", amount=Decimal(str(amount)), date=date,
                  category="Dues", bank_account_id=acc)


def make_acc(id, balance):
    return BankAccount(id=id, name=f"Account {id}", initial_balance=Decimal(str(balance)))


def test_account_balance_scenario():
    acc = make_acc("acc1", 5000)
    expenses = [make_exp("e1", 450, "2023-10-15", "paid", "acc1")]
    incomes = [make_inc("i1", 550, "2023-10-05", "acc1")]
    assert balances.account_balance(acc, expenses, incomes) == Decimal("5100")


def test_balance_ignores_other_accounts_and_status():
    acc = make_acc("acc1", 100)
    expenses = [make_exp("e1", 30, "2023-01-01", "unpaid", "acc1"), make_exp("e2", 999, "2023-01-01", "paid", "acc2")]
    assert balances.account_balance(acc, expenses, []) == Decimal("70")


def test_deleting_account_leaves_records_unattributed():
    ledger = load_seed()
    accounts = delete_account(ledger.bank_accounts, "acc2")
    result = balances.account_balances(accounts, ledger.expenses, ledger.incomes)
    assert set(result) == {"acc1"}
    assert any(e.bank_account_id == "acc2" for e in ledger.expenses)


def test_seed_balances():
    ledger = load_seed()
    result = balances.account_balances(ledger.bank_accounts, ledger.expenses, ledger.incomes)
    assert result["acc1"] == Decimal("5000") + Decimal("1100") - Decimal("1375.50")
    assert result["acc2"] == Decimal("10000") + Decimal("1200") - Decimal("45.90")
    ordered = balances.accounts_by_balance(ledger.bank_accounts, ledger.expenses, ledger.incomes)
    assert [a.id for a, _ in ordered] == ["acc2", "acc1"]


def test_paid_percentage_scenario():
    e1 = make_exp("e1", 300, "2023-05-01", "paid")
    assert balances.year_summary([e1], [], 2023).paid_percentage == 100
    e2 = make_exp("e2", 200, "2023-06-01", "unpaid")
    assert balances.year_summary([e1, e2], [], 2023).paid_percentage == 60


def test_paid_percentage_zero_when_no_expense():
    assert balances.paid_percentage(Decimal("0"), Decimal("0")) == 0
    assert balances.paid_percentage(Decimal("1"), Decimal("3")) == 33
    assert balances.paid_percentage(Decimal("1"), Decimal("8")) == 13


def test_year_summary_scoped_to_year():
    expenses = [make_exp("e1", 100, "2023-03-01", "paid"), make_exp("e2", 50, "2024-01-01")]
    incomes = [make_inc("i1", 400, "2023-02-01"), make_inc("i2", 10, "2022-12-31")]
    s = balances.year_summary(expenses, incomes, 2023)
    assert s.total_expense == Decimal("100")
    assert s.total_paid_expense == Decimal("100")
    assert s.total_income == Decimal("400")
    assert s.net_balance == Decimal("300")


def test_overdue_scenario():
    e = make_exp("e1", 300, "2023-11-01", "unpaid")
    late = balances.overdue_expenses([e], date(2024, 1, 1))
    assert len(late) == 1
    assert late[0].days_overdue == 61


def test_due_today_is_not_overdue():
    today = date(2024, 1, 1)
    assert balances.overdue_expenses([make_exp("e1", 10, "2024-01-01")], today) == ()
    assert balances.overdue_expenses([make_exp("e2", 10, "2023-01-01", "paid")], today) == ()


def test_overdue_sorted_oldest_first_across_years():
    today = date(2024, 6, 1)
    items = [make_exp("a", 1, "2024-05-01"), make_exp("b", 1, "2022-01-01"), make_exp("c", 1, "2023-07-01")]
    assert [o.expense.id for o in balances.overdue_expenses(items, today)] == ["b", "c", "a"]


def test_available_years_include_current_year():
    expenses = [make_exp("a", 1, "2021-05-01")]
    incomes = [make_inc("b", 1, "2023-01-01")]
    assert balances.available_years(expenses, incomes, date(2025, 2, 1)) == (2025, 2023, 2021)


def test_monthly_series_zero_filled():
    series = balances.monthly_series(
        [make_exp("a", 100, "2023-10-15")], [make_inc("b", 550, "2023-10-05")], 2023
    )
    assert len(series) == 12
    assert series[9].expense == Decimal("100")
    assert series[9].income == Decimal("550")
    assert series[9].label == "Oct"
    assert series[0].expense == Decimal("0")


def test_category_breakdown():
    expenses = [
        make_exp("a", 100, "2023-10-15", category="Maintenance"),
        make_exp("b", 50, "2023-11-15", category="Maintenance"),
        make_exp("c", 20, "2023-11-15", category="Cleaning"),
        make_exp("d", 5, "2022-11-15", category="Cleaning"),
    ]
    assert dict(balances.category_breakdown(expenses, 2023)) == {
        "Maintenance": Decimal("150"),
        "Cleaning": Decimal("20"),
    }


def test_overdue_starts_the_day_after_the_due_date():
    e = make_exp("e1", 300, "2023-11-01", "unpaid")
    assert not balances.is_overdue(e, date(2023, 11, 1))
    assert balances.overdue_expenses([e], date(2023, 11, 1)) == ()
    late = balances.overdue_expenses([e], date(2023, 11, 2))
    assert [(o.expense.id, o.days_overdue) for o in late] == [("e1", 1)]
