from decimal import Decimal

import pytest

from condoledger.domain import Expense
from condoledger.errors import MalformedRecordError
from condoledger.grouping import GroupMode, group_expenses, month_index


def make_exp(id, amount, date, category):
    return Expense(id=id, description=f"exp {id}", amount=Decimal(str(amount)), date=date, category=category)


EXPENSES = (
    make_exp("1", 450, "2023-10-15", "Maintenance"),
    make_exp("2", "125.50", "2023-10-20", "Utilities"),
    make_exp("3", 300, "2023-11-01", "Cleaning"),
    make_exp("4", "45.90", "2023-11-05", "Maintenance"),
    make_exp("5", 500, "2023-11-15", "Administration"),
    make_exp("6", 80, "2022-10-01", "Maintenance"),
)


def test_month_index_reads_the_string():
    assert month_index("2023-01-31") == 0
    assert month_index("2023-12-01") == 11


def test_by_month_only_selected_year_latest_first():
    groups = group_expenses(EXPENSES, GroupMode.BY_MONTH, 2023)
    assert [g.label for g in groups] == ["November", "October"]
    assert groups[0].total == Decimal("845.90")
    assert groups[1].total == Decimal("575.50")


def test_by_month_items_sorted_by_amount_desc():
    november = group_expenses(EXPENSES, GroupMode.BY_MONTH, 2023)[0]
    assert [i.label for i in november.items] == ["Administration", "Cleaning", "Maintenance"]


def test_single_expense_month():
    groups = group_expenses(EXPENSES[:1], "month", 2023)
    assert len(groups) == 1
    g = groups[0]
    assert g.label == "October"
    assert g.total == Decimal("450")
    assert [(i.label, i.amount, i.count) for i in g.items] == [("Maintenance", Decimal("450"), 1)]


def test_by_category_alphabetical_months_ascending():
    groups = group_expenses(EXPENSES, GroupMode.BY_CATEGORY, 2023)
    assert [g.label for g in groups] == ["Administration", "Cleaning", "Maintenance", "Utilities"]
    maint = groups[2]
    assert [i.label for i in maint.items] == ["October", "November"]
    assert maint.count == 2


def test_group_totals_cover_the_year():
    in_year = sum((e.amount for e in EXPENSES if e.date.startswith("2023")), Decimal("0"))
    for mode in GroupMode:
        groups = group_expenses(EXPENSES, mode, 2023)
        assert sum((g.total for g in groups), Decimal("0")) == in_year
        assert sum(g.count for g in groups) == 5


def test_italian_month_labels():
    groups = group_expenses(EXPENSES, GroupMode.BY_MONTH, 2023, "it")
    assert groups[0].label == "Novembre"


def test_empty_year():
    assert group_expenses(EXPENSES, GroupMode.BY_MONTH, 1999) == ()


def test_malformed_record_raises():
    bad = EXPENSES + (Expense(id="x", description="x", amount=None, date="2023-01-01", category="Cleaning"),)
    with pytest.raises(MalformedRecordError):
        group_expenses(bad, GroupMode.BY_CATEGORY, 2023)
