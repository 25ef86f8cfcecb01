"""
Error Taxonomy and Operation Results

Every domain failure is a BankingDemoError subclass. Operations raise these
internally and convert them to an OperationResult at their public boundary,
so callers branch on ``result.success`` instead of catching exceptions.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar


T = TypeVar("T")


class BankingDemoError(Exception):
    """Base class for all domain errors"""

    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BankingDemoError):
    """Bad input shape or value. Never retried."""

    code = "validation_error"


class NotFoundError(BankingDemoError):
    """Requested entity does not exist"""

    code = "not_found"


class AccountNotFoundError(NotFoundError):
    code = "account_not_found"

    def __init__(self, message: str = "Account not found"):
        super().__init__(message)


class InvestmentNotFoundError(NotFoundError):
    code = "investment_not_found"

    def __init__(self, message: str = "Investment not found"):
        super().__init__(message)


class LedgerEntryNotFoundError(NotFoundError):
    code = "ledger_entry_not_found"

    def __init__(self, message: str = "Transaction not found"):
        super().__init__(message)


class UserNotFoundError(NotFoundError):
    code = "user_not_found"

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class CardNotFoundError(NotFoundError):
    code = "card_not_found"

    def __init__(self, message: str = "Card not found"):
        super().__init__(message)


class AccessDeniedError(BankingDemoError):
    """Ownership mismatch. The message never describes the target entity."""

    code = "access_denied"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class AuthenticationError(BankingDemoError):
    code = "authentication_error"


class PersistenceError(BankingDemoError):
    """Underlying store failure. Safe to retry reads, never retried for writes."""

    code = "persistence_error"


@dataclass
class OperationResult(Generic[T]):
    """Discriminated success/failure result of a core operation"""
    success: bool
    value: Optional[T] = None
    error: Optional[BankingDemoError] = None
    message: str = ""
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, value: T, message: str = "", warnings: Optional[List[str]] = None) -> 'OperationResult[T]':
        return cls(success=True, value=value, message=message, warnings=warnings or [])

    @classmethod
    def fail(cls, error: BankingDemoError) -> 'OperationResult[T]':
        return cls(success=False, error=error, message=error.message)

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def unwrap(self) -> T:
        """Return the value or re-raise the captured error"""
        if not self.success:
            raise self.error
        return self.value


@contextmanager
def persistence_errors(action: str):
    """Re-raise storage failures as PersistenceError, leaving domain errors alone"""
    try:
        yield
    except BankingDemoError:
        raise
    except Exception as e:
        raise PersistenceError(f"Failed to {action}: {e}") from e
