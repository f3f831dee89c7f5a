"""Custom exceptions for BillBreak."""


class BillBreakError(Exception):
    """Base exception for all BillBreak errors."""

    pass


class ConfigurationError(BillBreakError):
    """Raised when configuration is invalid or missing."""

    pass


class LedgerError(BillBreakError):
    """Base class for balance and settlement computation errors."""

    pass


class MalformedSplitDataError(LedgerError):
    """Raised when an expense's split payload cannot be decoded."""

    def __init__(self, expense_id: str, message: str | None = None):
        self.expense_id = expense_id
        super().__init__(
            message or f"Split data for expense {expense_id} could not be decoded"
        )


class UnknownGroupMemberError(LedgerError):
    """Raised when a record references a member id missing from the roster."""

    def __init__(
        self, member_id: str, expense_id: str | None = None, message: str | None = None
    ):
        self.member_id = member_id
        self.expense_id = expense_id
        source = f" (expense {expense_id})" if expense_id else ""
        super().__init__(message or f"Member {member_id} is not in the group{source}")


class GroupNotFoundError(BillBreakError):
    """Raised when a group does not exist in the ledger."""

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Group {group_id} not found")


class ExpenseNotFoundError(BillBreakError):
    """Raised when an expense does not exist in the ledger."""

    def __init__(self, expense_id: str):
        self.expense_id = expense_id
        super().__init__(f"Expense {expense_id} not found")


class APIError(BillBreakError):
    """Base class for API-related errors."""

    pass


class OpenAIAPIError(APIError):
    """Raised when OpenAI API request fails."""

    pass


class ExpenseParseError(BillBreakError):
    """Raised when expense details cannot be extracted from text."""

    pass
