"""Typed errors raised by the inventory ledger.

Each error carries a stable ``code`` and the HTTP status the API layer maps it
to, so callers can inspect failures without parsing messages.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class LedgerError(Exception):
    code = "LEDGER_ERROR"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.message}


class ValidationError(LedgerError):
    code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in self.errors))

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["errors"] = [e.to_dict() for e in self.errors]
        return body


class NotFound(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


class AlreadyExists(LedgerError):
    code = "ALREADY_EXISTS"
    status_code = 409


class InsufficientStock(LedgerError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, material_id: str, current: int, requested: int):
        self.material_id = material_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Insufficient stock for material {material_id}. Current: {current}, requested: {requested}"
        )


class ConcurrencyConflict(LedgerError):
    code = "CONCURRENCY_CONFLICT"
    status_code = 409


class StoreUnavailable(LedgerError):
    code = "STORE_UNAVAILABLE"
    status_code = 503
