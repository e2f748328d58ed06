"""Error taxonomy for the ledger core and its boundaries."""

from __future__ import annotations

from typing import Any, Dict, Optional

INVALID_AMOUNT = "invalid_amount"
MISSING_FIELD = "missing_field"
INVALID_DATE = "invalid_date"
DUPLICATE_RECORD = "duplicate_record"


class LedgerError(Exception):
    """Base class for every error raised by condoledger."""


class ValidationError(LedgerError, ValueError):
    code = "invalid_record"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field

    def as_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": str(self), "field": self.field}


class InvalidAmount(ValidationError):
    code = INVALID_AMOUNT


class MissingField(ValidationError):
    code = MISSING_FIELD


class InvalidDate(ValidationError):
    code = INVALID_DATE


class MalformedRecordError(LedgerError, TypeError):
    """A record reached a pure computation without passing validation."""


class DuplicateRecordError(LedgerError):
    """Advisory: a manual entry matches an existing record and needs confirmation."""

    code = DUPLICATE_RECORD

    def __init__(self, record: Any, matches: tuple) -> None:
        super().__init__(
            f"'{record.description}' for {record.amount} on {record.date} is already recorded"
        )
        self.record = record
        self.matches = matches


class PersistenceError(LedgerError):
    """The storage substrate refused a write; in-memory state is still valid."""


class RecordNotFoundError(LedgerError, KeyError):
    def __str__(self) -> str:
        return f"No record with id {self.args[0]!r}"


class ImportFormatError(LedgerError):
    pass


class ExtractionServiceError(LedgerError):
    """The extraction service timed out, failed, or returned nothing usable."""


class ExportError(LedgerError):
    pass


_BY_CODE = {cls.code: cls for cls in (InvalidAmount, MissingField, InvalidDate)}


def error_from_payload(payload: Dict[str, Any]) -> ValidationError:
    cls = _BY_CODE.get(payload.get("error", ""), ValidationError)
    return cls(payload.get("message", ""), payload.get("field"))
