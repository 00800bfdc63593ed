"""Error taxonomy for the ledger engine.

Low-level components (models, event store, allocator, registry) raise these
exceptions. The MutationGateway catches them and turns them into
MutationResult values, so callers at the gateway seam never see a raise for
a domain failure.

Each class also derives from the closest builtin so existing
``except ValueError`` / ``except LookupError`` handlers keep working.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for all ledger errors.

    Attributes:
        error_code (str): Stable machine-readable code used in results and
            HTTP responses.
    """

    error_code = "LEDGER_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code


class ValidationError(LedgerError, ValueError):
    """Malformed input: non-positive amount, empty category, unknown customer.

    Recoverable: the caller is expected to correct the named field and retry.
    """

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(LedgerError, LookupError):
    """The id targeted by a mutation does not exist."""

    error_code = "NOT_FOUND"


class AuthError(LedgerError, PermissionError):
    """Secret mismatch on delete, or a mutation attempted without authorization.

    The message never says whether the targeted record exists.
    """

    error_code = "AUTH_FAILED"


class InvariantViolation(LedgerError, RuntimeError):
    """Internal consistency failure, e.g. a debt amount that does not match its items."""

    error_code = "INVARIANT_VIOLATION"


def from_pydantic(error) -> ValidationError:
    """Convert the first error of a pydantic ValidationError into ours, naming its field."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    return ValidationError(first.get("msg", str(error)), field=field)
