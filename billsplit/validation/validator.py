"""
Two-Stage Expense Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- The document parses into an Expense
- Required fields presence (title, names, items)
- Positive item amounts

STAGE 2 - SEMANTIC VALIDATION:
- Every consumer, payer and split index points at a participant
- Item split records reconcile to the item amount
- Fee split records reconcile to the fee amount
- Items that nobody paid for

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Stage 2 needs a parsed Expense, so it only runs when the document parses

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the user fixes them.
"""

from collections.abc import Mapping
from typing import Optional, Union

from pydantic import ValidationError

from billsplit.audit import get_logger
from billsplit.config import get_settings
from billsplit.models.expense import Expense, ExpenseItem, Fee, ItemSplitType
from billsplit.models.validation import ValidationIssue, ValidationResult
from billsplit.money import format_money, to_cents


class ExpenseValidator:
    """
    Validates an expense document before it is saved.
    """

    def __init__(self, currency_symbol: Optional[str] = None):
        self._symbol = currency_symbol or get_settings().allocation.currency_symbol
        self._logger = get_logger("validation")

    def _money(self, cents: int) -> str:
        return format_money(cents, self._symbol)

    def _validate_schema(
        self,
        document: Union[Expense, Mapping],
    ) -> tuple[Optional[Expense], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed expense or None, list_of_issues)
        """
        issues = []

        if isinstance(document, Expense):
            expense = document
        else:
            try:
                expense = Expense.model_validate(document)
            except ValidationError as e:
                for error in e.errors():
                    issues.append(ValidationIssue(
                        field=".".join(str(part) for part in error["loc"]) or "expense",
                        issue_type="invalid_format",
                        message=error["msg"],
                        severity="error",
                    ))
                return None, issues

        if not expense.title:
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Please enter an expense title",
                severity="error",
            ))

        if not expense.participants:
            issues.append(ValidationIssue(
                field="participants",
                issue_type="missing",
                message="An expense needs at least one participant",
                severity="error",
            ))
        for index, participant in enumerate(expense.participants):
            if not participant.name:
                issues.append(ValidationIssue(
                    field=f"participants.{index}.name",
                    issue_type="missing",
                    message="Please enter names for all participants",
                    severity="error",
                ))

        if not expense.items:
            issues.append(ValidationIssue(
                field="items",
                issue_type="missing",
                message="Please add at least one item",
                severity="error",
            ))
        for index, item in enumerate(expense.items):
            if not item.name or item.amount <= 0:
                issues.append(ValidationIssue(
                    field=f"items.{index}",
                    issue_type="incomplete",
                    message="Please fill in all item details with valid amounts",
                    severity="error",
                ))

        for index, fee in enumerate(expense.fees):
            if not fee.name:
                issues.append(ValidationIssue(
                    field=f"fees.{index}.name",
                    issue_type="missing",
                    message="Please fill in all fee names",
                    severity="error",
                ))

        return expense, issues

    def _check_indices(
        self,
        path: str,
        entry: Union[ExpenseItem, Fee],
        participant_count: int,
    ) -> list[ValidationIssue]:
        issues = []
        references = [
            ("selected_payers", entry.selected_payers),
            ("splits", [split.participant_index for split in entry.splits]),
        ]
        if isinstance(entry, ExpenseItem):
            references.append(("selected_consumers", entry.selected_consumers))
        if entry.paid_by is not None:
            references.append(("paid_by", [entry.paid_by]))

        for name, indices in references:
            bad = sorted({i for i in indices if i >= participant_count})
            if bad:
                issues.append(ValidationIssue(
                    field=f"{path}.{name}",
                    issue_type="index_out_of_range",
                    message=f"References participant(s) {bad} but there are only {participant_count}",
                    severity="error",
                    suggested_fix="Re-select who consumed and who paid",
                ))
        return issues

    def _validate_semantic(
        self,
        expense: Expense,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        participant_count = len(expense.participants)

        for index, item in enumerate(expense.items):
            path = f"items.{index}"
            issues.extend(self._check_indices(path, item, participant_count))

            if item.splits:
                split_total = sum(to_cents(s.amount) for s in item.splits)
                item_total = to_cents(item.amount)
                if split_total != item_total:
                    issues.append(ValidationIssue(
                        field=f"{path}.splits",
                        issue_type="unbalanced",
                        message=(
                            f"Splits add up to {self._money(split_total)} "
                            f"but the item is {self._money(item_total)}"
                        ),
                        severity="error",
                        suggested_fix="Adjust the split amounts or unlock a share",
                    ))
            elif item.resolved_split_type() == ItemSplitType.CUSTOM:
                issues.append(ValidationIssue(
                    field=f"{path}.splits",
                    issue_type="missing",
                    message="Custom split has no split amounts",
                    severity="warning",
                ))

            if item.selected_consumers and not (item.payer_indices() or expense.selected_payers):
                issues.append(ValidationIssue(
                    field=f"{path}.selected_payers",
                    issue_type="missing",
                    message="Nobody is marked as having paid for this item",
                    severity="warning",
                    suggested_fix="Choose who paid, otherwise the first participant is assumed",
                ))

        for index, fee in enumerate(expense.fees):
            path = f"fees.{index}"
            issues.extend(self._check_indices(path, fee, participant_count))

            if fee.splits:
                split_total = sum(to_cents(s.amount) for s in fee.splits)
                fee_total = to_cents(fee.amount)
                if split_total != fee_total:
                    issues.append(ValidationIssue(
                        field=f"{path}.splits",
                        issue_type="unbalanced",
                        message=(
                            f"Fee splits add up to {self._money(split_total)} "
                            f"but the fee is {self._money(fee_total)}"
                        ),
                        severity="warning",
                        suggested_fix="Recalculate the fee split",
                    ))

        user_ids = [p.user_id for p in expense.participants if p.user_id]
        if len(user_ids) != len(set(user_ids)):
            issues.append(ValidationIssue(
                field="participants",
                issue_type="duplicate",
                message="The same person appears more than once",
                severity="warning",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(self, document: Union[Expense, Mapping]) -> ValidationResult:
        """
        Run the full two-stage validation pipeline.

        Args:
            document: An Expense or a persisted expense document

        Returns:
            ValidationResult with all issues found
        """
        expense, all_issues = self._validate_schema(document)
        schema_valid = expense is not None and not any(
            issue.severity == "error" for issue in all_issues
        )

        # Stage 2 needs a parsed expense; it still runs when stage 1
        # only found missing names so that every problem shows at once
        semantic_valid = False
        if expense is not None:
            semantic_valid, semantic_issues = self._validate_semantic(expense)
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        result = ValidationResult(
            expense_id=expense.id if expense else None,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

        if not result.is_valid:
            self._logger.info(
                "expense_validation_failed",
                expense_id=result.expense_id,
                error_count=result.error_count,
            )
        return result

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following before saving:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
