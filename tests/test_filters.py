from decimal import Decimal

import pytest

from condoledger.domain import BankAccount, Expense, Income
from condoledger.errors import MalformedRecordError
from condoledger.filters import FilterSpec, apply_filter, by_year, iter_matching


def make_exp(id, desc, amount, date, category="Maintenance", status="unpaid", acc=None):
    return Expense(id=id, description=desc, amount=Decimal(str(amount)), date=date,
                   category=category, status=status, bank_account_id=acc)


def make_inc(id, desc, amount, date, category="Dues", acc=None):
    return Income(id=id, description=desc, amount=Decimal(str(amount)), date=date,
                  category=category, bank_account_id=acc)


ACCOUNTS = (
    BankAccount(id="acc1", name="Main Account", initial_balance=Decimal("5000")),
    BankAccount(id="acc2", name="Savings Account", initial_balance=Decimal("10000")),
)

EXPENSES = (
    make_exp("1", "Elevator Maintenance", 450, "2023-10-15", "Maintenance", "paid", "acc1"),
    make_exp("2", "Stairwell Electricity Bill", "125.50", "2023-10-20", "Utilities", "paid", "acc1"),
    make_exp("3", "Common Areas Cleaning", 300, "2023-11-01", "Cleaning", "unpaid", "acc1"),
    make_exp("4", "Light Bulb Replacement", "45.90", "2023-11-05", "Maintenance", "paid", "acc2"),
)


def test_empty_spec_keeps_everything_in_order():
    res = apply_filter(EXPENSES, FilterSpec(), ACCOUNTS)
    assert res.records == EXPENSES
    assert res.total == Decimal("921.40")
    assert res.count == 4


def test_filters_combine_with_and():
    spec = FilterSpec(category="Maintenance", account_id="acc1")
    res = apply_filter(EXPENSES, spec, ACCOUNTS)
    assert [e.id for e in res.records] == ["1"]
    assert res.total == Decimal("450")


def test_search_matches_account_name_case_insensitive():
    res = apply_filter(EXPENSES, FilterSpec(search_text="SAVINGS"), ACCOUNTS)
    assert [e.id for e in res.records] == ["4"]
    res = apply_filter(EXPENSES, FilterSpec(search_text="clean"), ACCOUNTS)
    assert [e.id for e in res.records] == ["3"]


def test_date_range_is_inclusive():
    res = apply_filter(EXPENSES, FilterSpec(start_date="2023-10-20", end_date="2023-11-01"), ACCOUNTS)
    assert [e.id for e in res.records] == ["2", "3"]


def test_status_filter():
    res = apply_filter(EXPENSES, FilterSpec(status="unpaid"), ACCOUNTS)
    assert [e.id for e in res.records] == ["3"]


def test_status_filter_never_matches_incomes():
    incomes = (make_inc("i1", "Dues - Smith", 550, "2023-10-05", acc="acc1"),)
    assert apply_filter(incomes, FilterSpec(status="paid"), ACCOUNTS).count == 0


def test_total_equals_sum_of_kept_records():
    spec = FilterSpec(account_id="acc1")
    res = apply_filter(EXPENSES, spec, ACCOUNTS)
    assert res.total == sum((e.amount for e in res.records), Decimal("0"))


def test_stale_account_reference_is_not_an_error():
    stale = (make_exp("9", "Orphan", 10, "2023-01-01", acc="deleted"),)
    assert apply_filter(stale, FilterSpec(search_text="orphan"), ACCOUNTS).count == 1


def test_active_filter_count_ignores_search_text():
    assert FilterSpec(search_text="x").active_filter_count == 0
    assert FilterSpec(search_text="x", category="Cleaning", status="paid").active_filter_count == 2


def test_malformed_amount_fails_fast():
    bad = (Expense(id="b", description="bad", amount="12", date="2023-01-01", category="Cleaning"),)
    with pytest.raises(MalformedRecordError):
        apply_filter(bad, FilterSpec())


def test_iter_matching_is_lazy():
    gen = iter_matching(EXPENSES, by_year(2023))
    assert next(gen).id == "1"


def test_refiltering_the_result_changes_nothing():
    spec = FilterSpec(search_text="e", start_date="2023-10-01", account_id="acc1", status="paid")
    once = apply_filter(EXPENSES, spec, ACCOUNTS)
    twice = apply_filter(once.records, spec, ACCOUNTS)
    assert twice == once
