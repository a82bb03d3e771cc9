"""
Transaction Intake Validation

DESIGN DECISION: Nothing enters the ledger without passing through here.

The form delivers raw text. The validator:
- parses locale-formatted amounts ("1.234,56")
- requires a calendar date, and a due date for debts
- fills in the default category
- trims free text

All field problems are collected before failing, so the user sees every
issue at once instead of fixing them one submit at a time.

IMPORTANT: Validation NEVER silently fixes bad values.
An unparsable amount is an error, not a zero.
"""

import math
import re
from datetime import date, datetime
from typing import Optional

from pydantic import ValidationError as SchemaError

from finledger.config import LedgerSettings, get_settings
from finledger.errors import ValidationError
from finledger.models.ledger import (
    DebtStatus,
    Transaction,
    TransactionInput,
    TransactionKind,
    ValidationIssue,
)


ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
WHITESPACE_PATTERN = re.compile(r"\s+")

MAX_DESCRIPTION_LENGTH = 500
MAX_CATEGORY_LENGTH = 100


def parse_locale_amount(raw: Optional[str], field: str = "amount") -> float:
    """
    Parse an amount typed with '.' as thousands separator and ',' as decimal mark.

    "1.234,56" -> 1234.56, "1200,5" -> 1200.5, "80" -> 80.0

    Raises:
        ValidationError: If the text is empty, not a number, not finite or <= 0
    """
    cleaned = WHITESPACE_PATTERN.sub("", raw or "")
    if not cleaned:
        raise ValidationError.single(field, "missing", "Enter an amount.")

    cleaned = cleaned.replace(".", "").replace(",", ".", 1)
    try:
        if "_" in cleaned:
            raise ValueError(cleaned)
        parsed = float(cleaned)
    except ValueError:
        raise ValidationError.single(
            field, "invalid_format", f"'{raw}' is not a valid amount."
        )

    if not math.isfinite(parsed) or parsed <= 0:
        raise ValidationError.single(
            field, "invalid_value", "Amount must be greater than zero."
        )
    return parsed


def parse_iso_date(raw: Optional[str], field: str = "date") -> date:
    """
    Parse a strict YYYY-MM-DD calendar date.

    Raises:
        ValidationError: If empty, not in YYYY-MM-DD form, or not a real date
    """
    value = (raw or "").strip()
    if not value:
        raise ValidationError.single(field, "missing", f"Enter the {_field_label(field)}.")
    if not ISO_DATE_PATTERN.match(value):
        raise ValidationError.single(
            field, "invalid_format", "Invalid date format. Use YYYY-MM-DD."
        )
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError.single(
            field, "invalid_value", f"{value} is not a valid calendar date."
        )


def _field_label(field: str) -> str:
    return {
        "occurred_on": "date",
        "due_on": "due date",
        "paid_on": "payment date",
    }.get(field, field.replace("_", " "))


class TransactionValidator:
    """
    Validates raw form input and prompt responses.

    Prompt parsers take ``None`` to mean the user cancelled and return
    ``None`` in that case; the caller treats it as "do nothing".
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def _collect_issues(
        self,
        data: TransactionInput,
    ) -> tuple[dict, list[ValidationIssue]]:
        """
        Check every field, keeping the parsed values that were valid.

        Returns: (parsed_values, list_of_issues)
        """
        values: dict = {}
        issues: list[ValidationIssue] = []

        try:
            values["amount"] = parse_locale_amount(data.amount)
        except ValidationError as e:
            issues.extend(e.issues)

        try:
            values["occurred_on"] = parse_iso_date(data.occurred_on, "occurred_on")
        except ValidationError as e:
            issues.extend(e.issues)

        # Due date only matters for debts; anything typed for other kinds is dropped
        if data.kind == TransactionKind.DEBT:
            try:
                values["due_on"] = parse_iso_date(data.due_on, "due_on")
            except ValidationError as e:
                issues.extend(e.issues)

        description = data.description.strip()
        if len(description) > MAX_DESCRIPTION_LENGTH:
            issues.append(ValidationIssue(
                field="description",
                issue_type="too_long",
                message=f"Description is limited to {MAX_DESCRIPTION_LENGTH} characters.",
            ))
        values["description"] = description

        category = data.category.strip() or self._settings.default_category
        if len(category) > MAX_CATEGORY_LENGTH:
            issues.append(ValidationIssue(
                field="category",
                issue_type="too_long",
                message=f"Category is limited to {MAX_CATEGORY_LENGTH} characters.",
            ))
        values["category"] = category

        return values, issues

    def build_transaction(
        self,
        data: TransactionInput,
        *,
        transaction_id: str,
        created_at: datetime,
    ) -> Transaction:
        """
        Turn form input into a new Transaction.

        Debts start OPEN with no payment date.

        Raises:
            ValidationError: With every issue found in the input
        """
        values, issues = self._collect_issues(data)
        if issues:
            raise ValidationError(issues)

        try:
            return Transaction(
                id=transaction_id,
                kind=data.kind,
                created_at=created_at,
                status=DebtStatus.OPEN if data.kind == TransactionKind.DEBT else None,
                **values,
            )
        except SchemaError as e:
            raise ValidationError([
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "transaction",
                    issue_type="schema",
                    message=error["msg"],
                )
                for error in e.errors()
            ])

    def parse_payment_date(self, raw: Optional[str]) -> Optional[date]:
        """Parse the pay-debt prompt. None means the user cancelled."""
        if raw is None:
            return None
        return parse_iso_date(raw, "paid_on")

    def parse_amount_prompt(self, raw: Optional[str]) -> Optional[float]:
        """Parse the edit-amount prompt. None means the user cancelled."""
        if raw is None:
            return None
        return parse_locale_amount(raw)

    def get_user_friendly_summary(self, issues: list[ValidationIssue]) -> str:
        """
        Generate a short summary of validation problems.

        This is what the form shows above the fields.
        """
        if not issues:
            return "✅ All fields look good."

        lines = ["❌ Please fix the following:"]
        for issue in issues:
            lines.append(f"   • {issue.message}")
        return "\n".join(lines)
