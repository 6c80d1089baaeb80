"""
Error taxonomy for the budget engine.

Every error carries a human readable message plus, where it helps the caller
correct the request, the offending ``field`` and the ``rule`` that rejected it.
"""
from typing import Any, Dict, Optional


class BudgetError(Exception):
    """Base class for all budget engine errors."""
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, rule: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.rule = rule

    def to_details(self) -> Dict[str, Any]:
        details = {"type": type(self).__name__}
        if self.field:
            details["field"] = self.field
        if self.rule:
            details["rule"] = self.rule
        return details


class ValidationError(BudgetError):
    """Malformed or out-of-range input, including split sum mismatches."""
    status_code = 422


class AuthorizationError(BudgetError):
    """The acting user is not allowed to perform the action."""
    status_code = 403


class NotFoundError(BudgetError):
    """Budget, expense or trip does not exist."""
    status_code = 404


class ConflictError(BudgetError):
    """Duplicate budget creation or a concurrent write collision."""
    status_code = 409


class ConsistencyError(BudgetError):
    """Persisted state violates an internal invariant. Indicates a defect."""
    status_code = 500


class DirectoryUnavailableError(BudgetError):
    """The membership directory could not be reached."""
    status_code = 503
