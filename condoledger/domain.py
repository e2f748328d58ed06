from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional


class ExpenseCategory(str, Enum):
    MAINTENANCE = "Maintenance"
    UTILITIES = "Utilities"
    CLEANING = "Cleaning"
    STAIR_CLEANING = "Stair Cleaning"
    ADMINISTRATION = "Administration"
    ADMINISTRATOR_FEE = "Administrator Fee"
    INSURANCE = "Insurance"
    BANK_FEES = "Bank Fees"
    POSTAL_SLIP = "Postal Slip"
    WATER_READING = "Water Reading"
    MISCELLANEOUS = "Miscellaneous"


class IncomeCategory(str, Enum):
    DUES = "Dues"
    GARDEN_CLEANING = "Garden-Cleaning Fees"
    UTILITY_COOP_SHARE = "Utility-Co-op Share"
    OTHER = "Other"


class PaymentStatus(str, Enum):
    PAID = "paid"
    UNPAID = "unpaid"


DEFAULT_EXPENSE_CATEGORY = ExpenseCategory.MISCELLANEOUS.value
DEFAULT_INCOME_CATEGORY = IncomeCategory.OTHER.value


@dataclass(frozen=True)
class Attachment:
    id: str
    name: str        # display name
    url: str         # content reference (data URL or storage link)
    mime_type: str


@dataclass(frozen=True)
class Expense:
    id: str
    description: str
    amount: Decimal
    date: str        # YYYY-MM-DD
    category: str
    status: str = PaymentStatus.UNPAID.value
    bank_account_id: Optional[str] = None  # weak reference, never cascaded
    attachments: tuple[Attachment, ...] = ()

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID.value


@dataclass(frozen=True)
class Income:
    id: str
    description: str
    amount: Decimal
    date: str
    category: str
    bank_account_id: Optional[str] = None


@dataclass(frozen=True)
class BankAccount:
    id: str
    name: str
    initial_balance: Decimal  # the only signed stored amount
    iban: str = ""


# A full snapshot of one organization's books
@dataclass(frozen=True)
class Ledger:
    expenses: tuple[Expense, ...] = ()
    incomes: tuple[Income, ...] = ()
    bank_accounts: tuple[BankAccount, ...] = field(default_factory=tuple)


def expense_categories() -> tuple[str, ...]:
    return tuple(c.value for c in ExpenseCategory)


def income_categories() -> tuple[str, ...]:
    return tuple(c.value for c in IncomeCategory)


def normalize_iban(iban: Optional[str]) -> str:
    return (iban or "").strip().upper()
