"""Input validation package."""

from finledger.validation.validator import (
    TransactionValidator,
    parse_iso_date,
    parse_locale_amount,
)

__all__ = ["TransactionValidator", "parse_iso_date", "parse_locale_amount"]
