"""
Domain Errors

ValidationError and NotFoundError abort the triggering operation and are
shown to the user; the ledger state is left untouched. Persistence
failures live in the storage package and are never shown as failed
operations.
"""

from typing import Optional

from finledger.models.ledger import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger operations."""

    @property
    def user_message(self) -> str:
        return str(self)


class ValidationError(LedgerError):
    """Bad user input: amount <= 0, malformed date, start after end..."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))

    @classmethod
    def single(
        cls,
        field: str,
        issue_type: str,
        message: str,
    ) -> 'ValidationError':
        """Build an error carrying exactly one issue."""
        return cls([
            ValidationIssue(field=field, issue_type=issue_type, message=message)
        ])


class NotFoundError(LedgerError):
    """An operation referenced a transaction that is not in the ledger."""

    def __init__(self, transaction_id: str, message: Optional[str] = None):
        self.transaction_id = transaction_id
        super().__init__(message or f"Transaction not found: {transaction_id}")
