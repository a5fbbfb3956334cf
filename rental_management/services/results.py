from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from rental_management.schemas.users import User


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "Unauthenticated"
    WRONG_ROLE = "WrongRole"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    INVALID_INPUT = "InvalidInput"
    INVALID_CREDENTIAL = "InvalidCredential"
    ACCOUNT_BLOCKED = "AccountBlocked"
    NOT_AVAILABLE = "NotAvailable"
    CONFLICT = "Conflict"
    PERSISTENCE_FAILURE = "PersistenceFailure"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a core operation.

    Truthy exactly when the operation took effect. ``saved`` is False when the
    in-memory change was applied but writing it to storage failed; ``error`` is
    then ``PERSISTENCE_FAILURE``.
    """

    success: bool
    message: str = ""
    error: ErrorKind | None = None
    data: Any = None
    saved: bool = True

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: str = "", data: Any = None) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, error: ErrorKind, message: str) -> "OperationResult":
        return cls(success=False, message=message, error=error)

    def unsaved(self, reason: str) -> "OperationResult":
        return OperationResult(
            success=self.success,
            message=f"{self.message} (warning: changes could not be saved: {reason})".strip(),
            error=ErrorKind.PERSISTENCE_FAILURE,
            data=self.data,
            saved=False,
        )


@dataclass(frozen=True)
class AuthenticationResult:
    success: bool
    message: str
    user: User | None = None
    error: ErrorKind | None = None
    saved: bool = True

    def __bool__(self) -> bool:
        return self.success
