"""
Draft Validation

DESIGN DECISION: Drafts are validated before any network call.
Validation and protected-entity errors must block the action with a
specific message; only remote errors should reach the user as a generic
"try again".

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the form can show them next to the right field.
"""

from decimal import Decimal
from typing import Union

from moneytrack.exceptions import ValidationError
from moneytrack.models.ledger import (
    AccountDraft,
    Currency,
    ExpenseDraft,
    ExpenseUpdate,
    ValidationIssue,
)


def _missing(field: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="missing",
        message=message,
    )


class LedgerValidator:
    """
    Validates account and expense drafts.

    Returns lists of issues; the require_* helpers raise ValidationError
    when any error-level issue is present.
    """

    def validate_account_draft(self, draft: AccountDraft) -> list[ValidationIssue]:
        issues = []

        if not draft.name:
            issues.append(_missing("name", "Account name is required"))

        if not draft.currency:
            issues.append(_missing("currency", "Account currency is required"))
        elif draft.currency not in {c.value for c in Currency}:
            issues.append(ValidationIssue(
                field="currency",
                issue_type="invalid_value",
                message=f"Unsupported currency: {draft.currency}",
                suggested_fix=f"Use one of {', '.join(c.value for c in Currency)}",
            ))

        # Zero is a valid balance, only None is missing
        if draft.balance is None:
            issues.append(_missing("balance", "Account balance is required"))

        if not draft.color:
            issues.append(_missing("color", "Account color is required"))

        if not draft.user_id:
            issues.append(_missing("user_id", "User ID is required"))

        return issues

    def validate_expense_draft(self, draft: ExpenseDraft) -> list[ValidationIssue]:
        issues = []

        if not draft.title:
            issues.append(_missing("title", "Title is required"))

        issues.extend(self._validate_amount(draft.amount))

        if not draft.category:
            issues.append(_missing("category", "Category is required"))

        if draft.date is None:
            issues.append(_missing("date", "Date is required"))

        if not draft.account_id:
            issues.append(_missing("account_id", "Please select an account"))

        if not draft.user_id:
            issues.append(_missing("user_id", "User ID is required"))

        return issues

    def validate_expense_update(self, update: ExpenseUpdate) -> list[ValidationIssue]:
        """Fields present on an update must not be blank."""
        issues = []
        fields = update.model_fields_set

        if "title" in fields and not update.title:
            issues.append(_missing("title", "Title is required"))
        if "category" in fields and not update.category:
            issues.append(_missing("category", "Category is required"))
        if "amount" in fields:
            issues.extend(self._validate_amount(update.amount))
        if "date" in fields and update.date is None:
            issues.append(_missing("date", "Date is required"))
        if "account_id" in fields and not update.account_id:
            issues.append(_missing("account_id", "Please select an account"))

        return issues

    def _validate_amount(self, amount) -> list[ValidationIssue]:
        if amount is None:
            return [_missing("amount", "Amount is required")]
        if Decimal(amount) <= 0:
            return [ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Please enter a valid positive number",
            )]
        return []

    def require_valid(
        self,
        draft: Union[AccountDraft, ExpenseDraft, ExpenseUpdate],
    ) -> None:
        """Raise ValidationError if the draft has error-level issues."""
        if isinstance(draft, AccountDraft):
            issues = self.validate_account_draft(draft)
        elif isinstance(draft, ExpenseDraft):
            issues = self.validate_expense_draft(draft)
        else:
            issues = self.validate_expense_update(draft)

        errors = [issue for issue in issues if issue.severity == "error"]
        if errors:
            raise ValidationError(errors)
