from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable

from condoledger.domain import Expense
from condoledger.filters import by_year, iter_matching
from condoledger.money import ensure_amounts, month_name


class GroupMode(str, Enum):
    BY_MONTH = "month"
    BY_CATEGORY = "category"


@dataclass(frozen=True)
class GroupItem:
    key: str
    label: str
    amount: Decimal
    count: int


@dataclass(frozen=True)
class Group:
    key: str
    label: str
    total: Decimal
    items: tuple[GroupItem, ...]

    @property
    def count(self) -> int:
        return sum(i.count for i in self.items)


def month_index(iso_date: str) -> int:
    """0-based month taken straight from the ISO string, no timezone involved."""
    return int(iso_date[5:7]) - 1


def _subtotals(pairs: Iterable[tuple]) -> dict:
    # outer key -> inner key -> [amount, count]; dicts keep first-seen order
    buckets: dict = defaultdict(dict)
    for outer, inner, amount in pairs:
        slot = buckets[outer].setdefault(inner, [Decimal("0"), 0])
        slot[0] += amount
        slot[1] += 1
    return buckets


def group_by_month(expenses: Iterable[Expense], year: int, language: str = "en") -> tuple[Group, ...]:
    in_year = ensure_amounts(iter_matching(expenses, by_year(year)))
    buckets = _subtotals((month_index(e.date), e.category, e.amount) for e in in_year)

    groups = []
    for month in sorted(buckets, reverse=True):
        items = sorted(
            (GroupItem(key=cat, label=cat, amount=amount, count=count)
             for cat, (amount, count) in buckets[month].items()),
            key=lambda i: i.amount,
            reverse=True,
        )
        groups.append(Group(
            key=str(month),
            label=month_name(month, language),
            total=sum((i.amount for i in items), Decimal("0")),
            items=tuple(items),
        ))
    return tuple(groups)


def group_by_category(expenses: Iterable[Expense], year: int, language: str = "en") -> tuple[Group, ...]:
    in_year = ensure_amounts(iter_matching(expenses, by_year(year)))
    buckets = _subtotals((e.category, month_index(e.date), e.amount) for e in in_year)

    groups = []
    for cat in sorted(buckets):
        items = tuple(
            GroupItem(key=str(month), label=month_name(month, language), amount=amount, count=count)
            for month, (amount, count) in sorted(buckets[cat].items())
        )
        groups.append(Group(
            key=cat,
            label=cat,
            total=sum((i.amount for i in items), Decimal("0")),
            items=items,
        ))
    return tuple(groups)


def group_expenses(
    expenses: Iterable[Expense], mode: GroupMode, year: int, language: str = "en"
) -> tuple[Group, ...]:
    """Roll expenses of ``year`` up by month (latest first) or by category (A-Z).

    Each expense lands in exactly one top-level group, so group totals add up
    to the total of the in-year input.
    """
    if GroupMode(mode) is GroupMode.BY_MONTH:
        return group_by_month(expenses, year, language)
    return group_by_category(expenses, year, language)
