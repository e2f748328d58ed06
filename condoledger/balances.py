from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from condoledger.domain import BankAccount, Expense, Income, PaymentStatus
from condoledger.filters import by_account, by_status, by_year, iter_matching
from condoledger.grouping import month_index
from condoledger.money import month_name, sum_amounts


@dataclass(frozen=True)
class YearSummary:
    year: int
    total_expense: Decimal
    total_paid_expense: Decimal
    total_income: Decimal
    net_balance: Decimal
    paid_percentage: int


@dataclass(frozen=True)
class OverdueExpense:
    expense: Expense
    days_overdue: int


@dataclass(frozen=True)
class MonthPoint:
    month: int
    label: str
    expense: Decimal
    income: Decimal


def account_balance(account: BankAccount, expenses: Iterable[Expense], incomes: Iterable[Income]) -> Decimal:
    """Balance to date: initial balance plus every attributed income minus every attributed expense."""
    pred = by_account(account.id)
    return (
        account.initial_balance
        + sum_amounts(iter_matching(incomes, pred))
        - sum_amounts(iter_matching(expenses, pred))
    )


def account_balances(
    accounts: Iterable[BankAccount], expenses: Sequence[Expense], incomes: Sequence[Income]
) -> dict[str, Decimal]:
    return {a.id: account_balance(a, expenses, incomes) for a in accounts}


def accounts_by_balance(
    accounts: Sequence[BankAccount],
    expenses: Sequence[Expense],
    incomes: Sequence[Income],
    descending: bool = True,
) -> tuple[tuple[BankAccount, Decimal], ...]:
    balances = account_balances(accounts, expenses, incomes)
    return tuple(sorted(
        ((a, balances[a.id]) for a in accounts),
        key=lambda pair: pair[1],
        reverse=descending,
    ))


def total_expense(expenses: Iterable[Expense], year: int) -> Decimal:
    return sum_amounts(iter_matching(expenses, by_year(year)))


def total_paid_expense(expenses: Iterable[Expense], year: int) -> Decimal:
    in_year = iter_matching(expenses, by_year(year))
    return sum_amounts(iter_matching(in_year, by_status(PaymentStatus.PAID.value)))


def total_income(incomes: Iterable[Income], year: int) -> Decimal:
    return sum_amounts(iter_matching(incomes, by_year(year)))


def net_balance(expenses: Sequence[Expense], incomes: Sequence[Income], year: int) -> Decimal:
    # accrual view: every recorded expense counts, paid or not
    return total_income(incomes, year) - total_expense(expenses, year)


def paid_percentage(paid: Decimal, total: Decimal) -> int:
    if total == 0:
        return 0
    return int((Decimal(100) * paid / total).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def year_summary(expenses: Sequence[Expense], incomes: Sequence[Income], year: int) -> YearSummary:
    spent = total_expense(expenses, year)
    paid = total_paid_expense(expenses, year)
    received = total_income(incomes, year)
    return YearSummary(
        year=year,
        total_expense=spent,
        total_paid_expense=paid,
        total_income=received,
        net_balance=received - spent,
        paid_percentage=paid_percentage(paid, spent),
    )


def days_overdue(expense: Expense, today: date) -> int:
    # whole calendar days between two dates; no clock time is involved
    return (today - date.fromisoformat(expense.date)).days


def is_overdue(expense: Expense, today: date) -> bool:
    return expense.status == PaymentStatus.UNPAID.value and expense.date < today.isoformat()


def overdue_expenses(expenses: Iterable[Expense], today: date) -> tuple[OverdueExpense, ...]:
    """Unpaid expenses dated before ``today``, oldest first. Not scoped to any year."""
    late = sorted((e for e in expenses if is_overdue(e, today)), key=lambda e: e.date)
    return tuple(OverdueExpense(expense=e, days_overdue=days_overdue(e, today)) for e in late)


def available_years(expenses: Iterable[Expense], incomes: Iterable[Income], today: date) -> tuple[int, ...]:
    years = {int(r.date[:4]) for r in (*expenses, *incomes)}
    years.add(today.year)
    return tuple(sorted(years, reverse=True))


def monthly_series(
    expenses: Iterable[Expense], incomes: Iterable[Income], year: int, language: str = "en"
) -> tuple[MonthPoint, ...]:
    """Twelve zero-filled points of expense and income per month."""
    spent = [Decimal("0")] * 12
    received = [Decimal("0")] * 12
    for e in iter_matching(expenses, by_year(year)):
        spent[month_index(e.date)] += e.amount
    for i in iter_matching(incomes, by_year(year)):
        received[month_index(i.date)] += i.amount
    return tuple(
        MonthPoint(month=m, label=month_name(m, language)[:3], expense=spent[m], income=received[m])
        for m in range(12)
    )


def category_breakdown(expenses: Iterable[Expense], year: int) -> tuple[tuple[str, Decimal], ...]:
    totals: dict[str, Decimal] = {}
    for e in iter_matching(expenses, by_year(year)):
        totals[e.category] = totals.get(e.category, Decimal("0")) + e.amount
    return tuple(totals.items())
