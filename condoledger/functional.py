from abc import ABC, abstractmethod
from typing import Callable, Generic, Iterable, Optional, TypeVar

from condoledger.domain import BankAccount

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):
    """Optional value; used for references that may point at nothing."""

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Some(f(self._value))

    def get_or_else(self, default: T) -> T:
        return self._value

    def __repr__(self) -> str:
        return f"Some({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return self

    def get_or_else(self, default: T) -> T:
        return default

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):
    """Validation outcome: Right(record) or Left(error payload)."""

    @abstractmethod
    def is_left(self) -> bool:
        pass

    def is_right(self) -> bool:
        return not self.is_left()

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def get_error(self) -> E:
        pass


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def is_left(self) -> bool:
        return False

    def get_or_else(self, default: T) -> T:
        return self._value

    def get_error(self) -> E:
        raise ValueError("Right carries no error")

    def __repr__(self) -> str:
        return f"Right({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def is_left(self) -> bool:
        return True

    def get_or_else(self, default: T) -> T:
        return default

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def safe_account(accounts: Iterable[BankAccount], account_id: Optional[str]) -> Maybe[BankAccount]:
    """Resolve a weak bank-account reference; stale or missing ids give Nothing."""
    if not account_id:
        return Nothing()
    for acc in accounts:
        if acc.id == account_id:
            return Some(acc)
    return Nothing()


def account_name(accounts: Iterable[BankAccount], account_id: Optional[str]) -> str:
    return safe_account(accounts, account_id).map(lambda a: a.name).get_or_else("")
