from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable, Iterator, Optional, Sequence, TypeVar, Union

from condoledger.domain import BankAccount, Expense, Income
from condoledger.functional import account_name
from condoledger.money import sum_amounts

Record = Union[Expense, Income]
R = TypeVar("R", Expense, Income)
Predicate = Callable[[Record], bool]


@dataclass(frozen=True)
class FilterSpec:
    search_text: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    category: Optional[str] = None
    account_id: Optional[str] = None
    status: Optional[str] = None

    @property
    def active_filter_count(self) -> int:
        # search text has its own box and is not counted on the badge
        return sum(1 for v in (self.start_date, self.end_date, self.category,
                               self.account_id, self.status) if v)


@dataclass(frozen=True)
class FilterResult:
    records: tuple
    total: Decimal

    @property
    def count(self) -> int:
        return len(self.records)


def by_search(text: str, accounts: Sequence[BankAccount]):
    needle = text.lower()

    def _filter(r: Record) -> bool:
        return (
            needle in r.description.lower()
            or needle in r.category.lower()
            or needle in account_name(accounts, r.bank_account_id).lower()
        )

    return _filter


def by_date_range(start: Optional[str], end: Optional[str]):
    def _filter(r: Record) -> bool:
        if start and r.date < start:
            return False
        if end and r.date > end:
            return False
        return True

    return _filter


def by_category(category: str):
    def _filter(r: Record) -> bool:
        return r.category == category

    return _filter


def by_account(account_id: str):
    def _filter(r: Record) -> bool:
        return r.bank_account_id == account_id

    return _filter


def by_status(status: str):
    def _filter(r: Record) -> bool:
        return getattr(r, "status", None) == status

    return _filter


def by_year(year: int):
    prefix = f"{year:04d}-"

    def _filter(r: Record) -> bool:
        return r.date.startswith(prefix)

    return _filter


def predicates_for(spec: FilterSpec, accounts: Sequence[BankAccount]) -> list[Predicate]:
    preds: list[Predicate] = []
    if spec.search_text:
        preds.append(by_search(spec.search_text, accounts))
    if spec.start_date or spec.end_date:
        preds.append(by_date_range(spec.start_date, spec.end_date))
    if spec.category:
        preds.append(by_category(spec.category))
    if spec.account_id:
        preds.append(by_account(spec.account_id))
    if spec.status:
        preds.append(by_status(spec.status))
    return preds


def matches(preds: Sequence[Predicate]) -> Predicate:
    def _filter(r: Record) -> bool:
        return all(p(r) for p in preds)

    return _filter


def iter_matching(records: Iterable[R], pred: Callable[[R], bool]) -> Iterator[R]:
    for r in records:
        if pred(r):
            yield r


def apply_filter(
    records: Iterable[R], spec: FilterSpec, accounts: Sequence[BankAccount] = ()
) -> FilterResult:
    """Filter records preserving order, and total the amounts of what is left.

    The returned total is the figure every export of this view must reuse.
    """
    kept = tuple(iter_matching(records, matches(predicates_for(spec, accounts))))
    return FilterResult(records=kept, total=sum_amounts(kept))
