"""Category value type.

A category is not a stored entity. It is the partition key that splits a
customer's events into independent sub-ledgers, and it exists only as long as
some event references it. The only rule is that it is non-empty once
surrounding whitespace is trimmed; case is preserved, so "Rice" and "rice"
are different sub-ledgers.
"""

from typing import Annotated, Any

from pydantic import AfterValidator

from ledgerconnect.errors import ValidationError


def normalize_category(value: Any) -> str:
    """Trim a category label and reject empty ones.

    Raises:
        ValidationError: If ``value`` is not a string or is blank after trimming.
    """
    if not isinstance(value, str):
        raise ValidationError("Category must be a string", field="category")
    cleaned = value.strip()
    if not cleaned:
        raise ValidationError("Category must not be empty", field="category")
    return cleaned


Category = Annotated[str, AfterValidator(normalize_category)]
