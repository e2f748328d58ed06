"""Amount parsing, fail-fast summation and locale display formatting.

All money is carried as ``Decimal``. Floats coming from JSON or the
extraction service are converted through ``str`` so that ``125.5`` becomes
``Decimal("125.5")`` rather than its binary expansion. Validated amounts are
whole cents, so a row printed with two decimals is the amount itself.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from condoledger.errors import InvalidAmount, MalformedRecordError

CENT = Decimal("0.01")

MONTH_NAMES = {
    "en": (
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ),
    "it": (
        "Gennaio", "Febbraio", "Marzo", "Aprile", "Maggio", "Giugno",
        "Luglio", "Agosto", "Settembre", "Ottobre", "Novembre", "Dicembre",
    ),
}

_CURRENCY_SYMBOLS = {"EUR": "€"}
_AMOUNT_NOISE = re.compile(r"[€\s]|EUR", re.IGNORECASE)
# one separator kind, every group after the first exactly three digits: 1,234 / 1.234.567
_GROUPED = re.compile(r"^-?[1-9]\d{0,2}([.,])\d{3}(?:\1\d{3})*$")


def to_decimal(value: Any) -> Decimal:
    """Coerce a numeric value to a finite Decimal or raise InvalidAmount."""
    if isinstance(value, bool):
        raise InvalidAmount(f"Amount {value!r} is not a number", "amount")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        result = _parse_text_amount(value)
    else:
        raise InvalidAmount(f"Amount {value!r} is not a number", "amount")
    if not result.is_finite():
        raise InvalidAmount(f"Amount {value!r} is not finite", "amount")
    return result


def to_cents(value: Any) -> Decimal:
    """Coerce and round half up to whole cents (single fixed currency)."""
    try:
        return quantize(to_decimal(value))
    except InvalidOperation:
        raise InvalidAmount(f"Amount {value!r} is out of range", "amount") from None


def parse_amount(value: Any) -> Decimal:
    """Parse a line-item amount: finite, >= 0, whole cents."""
    result = to_cents(value)
    if result < 0:
        raise InvalidAmount(f"Amount {value!r} is negative", "amount")
    return result


def _parse_text_amount(text: str) -> Decimal:
    cleaned = _AMOUNT_NOISE.sub("", text)
    if not cleaned:
        raise InvalidAmount("Amount is empty", "amount")
    if _GROUPED.match(cleaned):
        cleaned = cleaned.replace(",", "").replace(".", "")
    elif "," in cleaned and "." in cleaned:
        # the right-most separator is the decimal one: 1.234,56 or 1,234.56
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    else:
        cleaned = cleaned.replace(",", ".")
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise InvalidAmount(f"Amount {text!r} is not a number", "amount") from None


def _checked_amount(record: Any) -> Any:
    amount = getattr(record, "amount", None)
    if isinstance(amount, bool) or not isinstance(amount, (Decimal, int)):
        raise MalformedRecordError(
            f"Record {getattr(record, 'id', record)!r} has non-numeric amount {amount!r}"
        )
    if isinstance(amount, Decimal) and not amount.is_finite():
        raise MalformedRecordError(
            f"Record {getattr(record, 'id', record)!r} has non-finite amount {amount!r}"
        )
    return amount


def ensure_amounts(records: Iterable[Any]) -> tuple:
    """Materialise ``records``, failing fast on the first malformed amount."""
    items = tuple(records)
    for record in items:
        _checked_amount(record)
    return items


def sum_amounts(records: Iterable[Any]) -> Decimal:
    """Sum ``record.amount`` and fail fast on anything that is not a finite Decimal."""
    total = Decimal("0")
    for record in records:
        total += _checked_amount(record)
    return total


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount_csv(amount: Decimal) -> str:
    """Two decimals, comma as decimal separator: ``450.5`` -> ``450,50``."""
    return f"{quantize(amount):.2f}".replace(".", ",")


def format_amount_plain(amount: Decimal) -> str:
    return f"{quantize(amount):.2f}"


def format_currency(amount: Decimal, language: str = "it", currency: str = "EUR") -> str:
    symbol = _CURRENCY_SYMBOLS.get(currency, currency)
    value = quantize(amount)
    grouped = f"{abs(value):,.2f}"
    sign = "-" if value < 0 else ""
    if language == "it":
        grouped = grouped.replace(",", "_").replace(".", ",").replace("_", ".")
        return f"{sign}{grouped} {symbol}"
    return f"{sign}{symbol}{grouped}"


def format_date(iso_date: str, language: str = "it") -> str:
    d = date.fromisoformat(iso_date)
    if language == "en":
        return d.strftime("%m/%d/%Y")
    return d.strftime("%d/%m/%Y")


def month_name(month_index: int, language: str = "en") -> str:
    names = MONTH_NAMES.get(language, MONTH_NAMES["en"])
    return names[month_index]
