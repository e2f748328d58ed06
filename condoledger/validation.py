"""Validation for every write path: manual entry, import and duplication.

Validators take a raw mapping (form data, parsed XML, extraction output)
and return ``Right(record)`` or ``Left({"error": code, "message": ..., "field": ...})``.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Optional

from condoledger.domain import (
    DEFAULT_EXPENSE_CATEGORY,
    DEFAULT_INCOME_CATEGORY,
    Attachment,
    BankAccount,
    Expense,
    Income,
    PaymentStatus,
    expense_categories,
    income_categories,
    normalize_iban,
)
from condoledger.errors import (
    InvalidDate,
    MissingField,
    ValidationError,
    error_from_payload,
)
from condoledger.functional import Either, Left, Right
from condoledger.money import parse_amount, to_cents

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

Clock = Callable[[], date]


def validate_description(value: Any) -> str:
    text = str(value or "").strip()
    if not text:
        raise MissingField("Description is required", "description")
    return text


def validate_date(value: Any, today: date) -> str:
    """Return an ISO date string; an empty value means today."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return today.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if not ISO_DATE.match(text):
        raise InvalidDate(f"Date {text!r} is not in YYYY-MM-DD format", "date")
    try:
        date.fromisoformat(text)
    except ValueError:
        raise InvalidDate(f"Date {text!r} is not a calendar date", "date") from None
    return text


def normalize_category(label: Any, known: Iterable[str], default: str) -> tuple[str, bool]:
    """Map a free-form label onto the enumeration.

    Returns ``(category, recognised)``; unknown labels fall into ``default``
    and are reported with ``recognised=False`` instead of being rejected.
    """
    text = str(label or "").strip()
    known = tuple(known)
    if text in known:
        return text, True
    lowered = text.lower()
    for k in known:
        if k.lower() == lowered:
            return k, True
    return default, False


def normalize_status(value: Any) -> str:
    text = str(value or "").strip().lower()
    if text == PaymentStatus.PAID.value:
        return PaymentStatus.PAID.value
    return PaymentStatus.UNPAID.value


def _attachments(raw: Any) -> tuple[Attachment, ...]:
    if not raw:
        return ()
    result = []
    for a in raw:
        if isinstance(a, Attachment):
            result.append(a)
        else:
            result.append(Attachment(
                id=str(a.get("id", "")),
                name=str(a.get("name", "")),
                url=str(a.get("url", "")),
                mime_type=str(a.get("type") or a.get("mime_type") or ""),
            ))
    return tuple(result)


def _optional_id(value: Any) -> Optional[str]:
    text = str(value or "").strip()
    return text or None


def _guard(build: Callable[[], Any]) -> Either[dict, Any]:
    try:
        return Right(build())
    except ValidationError as e:
        return Left(e.as_dict())


def validate_expense(raw: Mapping[str, Any], today: date, record_id: str = "") -> Either[dict, Expense]:
    def build() -> Expense:
        category, _ = normalize_category(raw.get("category"), expense_categories(), DEFAULT_EXPENSE_CATEGORY)
        return Expense(
            id=record_id,
            description=validate_description(raw.get("description")),
            amount=parse_amount(raw.get("amount")),
            date=validate_date(raw.get("date"), today),
            category=category,
            status=normalize_status(raw.get("status")),
            bank_account_id=_optional_id(raw.get("bank_account_id") or raw.get("bankAccountId")),
            attachments=_attachments(raw.get("attachments")),
        )

    return _guard(build)


def validate_income(raw: Mapping[str, Any], today: date, record_id: str = "") -> Either[dict, Income]:
    def build() -> Income:
        category, _ = normalize_category(raw.get("category"), income_categories(), DEFAULT_INCOME_CATEGORY)
        return Income(
            id=record_id,
            description=validate_description(raw.get("description")),
            amount=parse_amount(raw.get("amount")),
            date=validate_date(raw.get("date"), today),
            category=category,
            bank_account_id=_optional_id(raw.get("bank_account_id") or raw.get("bankAccountId")),
        )

    return _guard(build)


def validate_bank_account(raw: Mapping[str, Any], record_id: str = "") -> Either[dict, BankAccount]:
    def build() -> BankAccount:
        name = str(raw.get("name") or "").strip()
        if not name:
            raise MissingField("Account name is required", "name")
        balance = raw.get("initial_balance", raw.get("initialBalance"))
        return BankAccount(
            id=record_id,
            name=name,
            initial_balance=to_cents(balance),
            iban=normalize_iban(raw.get("iban")),
        )

    return _guard(build)


def require_valid(result: Either[dict, Any]) -> Any:
    """Unwrap a validation result, raising the matching ValidationError on Left."""
    if result.is_left():
        raise error_from_payload(result.get_error())
    return result.get_or_else(None)
