"""Service layer that composes the ledger store and the balance engine.

The store supplies a snapshot of a group's roster, expenses and recorded
payments; the pure functions in ``balances`` and ``settlement`` do the math.
"""

import logging
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from .balances import compute_balances
from .clients.openai_client import ExpenseExtractor
from .config import Settings
from .db import Database
from .exceptions import (
    ConfigurationError,
    ExpenseNotFoundError,
    ExpenseParseError,
    GroupNotFoundError,
    OpenAIAPIError,
)
from .models import (
    Balance,
    BalanceReport,
    Expense,
    ExpenseCategory,
    ExpenseDetails,
    Group,
    Member,
    RecordedSettlement,
    SettlementTransaction,
    Split,
)
from .parser import simple_parse_expense
from .settlement import plan_settlements
from .splits import compute_equal_splits

logger = logging.getLogger(__name__)


class LedgerService:
    """Service for recording group expenses and working out who owes whom."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the ledger service."""
        self.settings = settings
        self.db = database

    # ========================================================================
    # Groups and members
    # ========================================================================

    def create_group(self, name: str, members: list[Member] | None = None) -> Group:
        """Create a group, optionally with an initial roster."""
        if not name.strip():
            raise ValueError("Group name is required")

        group = Group(name=name.strip())
        self.db.save_group(group)

        for member in members or []:
            self.add_member(group.id, member)

        logger.info(f"Created group '{group.name}' ({group.id})")
        return group

    def get_group(self, group_id: str) -> Group:
        """Get a group or raise GroupNotFoundError."""
        group = self.db.get_group(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    def list_groups(self) -> list[Group]:
        """List all groups, oldest first."""
        return self.db.get_all_groups()

    def rename_group(self, group_id: str, name: str) -> Group:
        """Rename a group."""
        if not name.strip():
            raise ValueError("Group name is required")

        if not self.db.update_group_name(group_id, name.strip()):
            raise GroupNotFoundError(group_id)

        logger.info(f"Renamed group {group_id} to '{name.strip()}'")
        return self.get_group(group_id)

    def delete_group(self, group_id: str) -> None:
        """Delete a group and everything recorded in it."""
        if not self.db.delete_group(group_id):
            raise GroupNotFoundError(group_id)
        logger.info(f"Deleted group {group_id}")

    def add_member(self, group_id: str, member: Member) -> Member:
        """Add a member to a group, registering the member if new."""
        self.get_group(group_id)
        if not member.display_name.strip():
            raise ValueError("Member name is required")

        self.db.save_member(member)
        self.db.add_group_member(group_id, member.id)

        logger.info(f"Added {member.display_name} ({member.id}) to group {group_id}")
        return member

    def get_members(self, group_id: str) -> list[Member]:
        """Get the roster of a group."""
        self.get_group(group_id)
        return self.db.get_group_members(group_id)

    # ========================================================================
    # Expenses
    # ========================================================================

    def add_expense(
        self,
        group_id: str,
        payer_id: str,
        amount: Decimal,
        *,
        splits: list[Split] | None = None,
        split_between: list[str] | None = None,
        category: ExpenseCategory = "other",
        description: str = "",
        date: datetime | None = None,
    ) -> Expense:
        """
        Record an expense for a group.

        Either pass explicit ``splits`` or let the amount be split equally
        between ``split_between`` (default: the whole roster). The payer only
        owes a share if they are among the split members.

        Args:
            group_id: Group the expense belongs to
            payer_id: Member who paid
            amount: Total paid
            splits: Explicit per-member shares
            split_between: Member IDs sharing the expense equally
            category: Expense category
            description: Free-text description
            date: When the expense happened (default: now)

        Returns:
            The saved expense
        """
        if splits is not None and split_between is not None:
            raise ValueError("Pass either splits or split_between, not both")

        self.get_group(group_id)
        if splits is None:
            member_ids = split_between or [
                m.id for m in self.db.get_group_members(group_id)
            ]
            splits = compute_equal_splits(amount, member_ids)

        expense = Expense.create(
            splits=splits,
            group_id=group_id,
            payer_id=payer_id,
            total_amount=amount,
            category=category,
            description=description,
            date=date or datetime.now(),
        )
        self.db.save_expense(expense)

        self._check_split_total(expense.id, splits, amount)

        logger.info(
            f"Recorded expense {expense.id}: {amount} paid by {payer_id} "
            f"({len(splits)} splits)"
        )
        return expense

    def update_expense(
        self,
        expense_id: str,
        *,
        amount: Decimal | None = None,
        splits: list[Split] | None = None,
        category: ExpenseCategory | None = None,
        description: str | None = None,
    ) -> Expense:
        """
        Replace an expense with an edited copy.

        Changing the amount without new splits re-splits the new amount
        equally between the members of the previous splits.
        """
        existing = self.db.get_expense(expense_id)
        if existing is None:
            raise ExpenseNotFoundError(expense_id)

        updates: dict = {}
        if amount is not None:
            updates["total_amount"] = amount
        if category is not None:
            updates["category"] = category
        if description is not None:
            updates["description"] = description

        if amount is not None and splits is None:
            previous = [s.member_id for s in existing.get_splits()]
            if not previous:
                raise ValueError(
                    f"Expense {expense_id} has no splits; pass splits with the new amount"
                )
            splits = compute_equal_splits(amount, previous)

        fields = {**existing.model_dump(), **updates}
        if splits is not None:
            fields.pop("split_data")
            updated = Expense.create(splits=splits, **fields)
        else:
            updated = Expense(**fields)

        self.db.save_expense(updated)
        if splits is not None:
            self._check_split_total(updated.id, splits, updated.total_amount)

        logger.info(f"Updated expense {expense_id}")
        return updated

    def delete_expense(self, expense_id: str) -> None:
        """Delete an expense."""
        if not self.db.delete_expense(expense_id):
            raise ExpenseNotFoundError(expense_id)
        logger.info(f"Deleted expense {expense_id}")

    def get_expenses(self, group_id: str) -> list[Expense]:
        """Get a group's expenses, newest first."""
        self.get_group(group_id)
        return self.db.get_group_expenses(group_id)

    def extract_expense_details(self, text: str) -> ExpenseDetails:
        """
        Extract expense details from text.

        Uses GPT when an OpenAI key is configured, falling back to keyword
        parsing when the key is missing or the AI reply is unusable.
        """
        if self.settings.openai_api_key:
            try:
                return self._extractor().parse_expense_text(text)
            except (ExpenseParseError, OpenAIAPIError) as e:
                logger.warning(f"AI extraction failed, using simple parser: {e}")
        return simple_parse_expense(text)

    def add_expense_from_text(
        self, group_id: str, payer_id: str, text: str
    ) -> tuple[Expense, ExpenseDetails]:
        """
        Record an expense described in free text.

        The expense is split equally between the payer and the roster
        members named in the text, or the whole roster if nobody named is
        in the group.

        Returns:
            Tuple of (saved expense, extracted details)
        """
        details = self.extract_expense_details(text)
        members = self.get_members(group_id)

        split_between = self._resolve_split_members(payer_id, details, members)

        expense = self.add_expense(
            group_id,
            payer_id,
            details.amount,
            split_between=split_between,
            category=details.category,
            description=details.description,
        )
        return expense, details

    def add_expense_from_audio(
        self, group_id: str, payer_id: str, audio_path: Path
    ) -> tuple[Expense, str]:
        """
        Record an expense from a voice recording.

        Returns:
            Tuple of (saved expense, transcribed text)
        """
        text = self._extractor().transcribe_audio(audio_path)
        expense, _details = self.add_expense_from_text(group_id, payer_id, text)
        return expense, text

    def _extractor(self) -> ExpenseExtractor:
        if not self.settings.openai_api_key:
            raise ConfigurationError(
                "BILLBREAK_OPENAI_API_KEY is required for AI expense extraction"
            )
        return ExpenseExtractor(
            api_key=self.settings.openai_api_key,
            model=self.settings.openai_model,
            transcription_model=self.settings.transcription_model,
        )

    @staticmethod
    def _resolve_split_members(
        payer_id: str, details: ExpenseDetails, members: list[Member]
    ) -> list[str]:
        """Match names from the text against the roster (case-insensitive)."""
        if not details.split_with:
            return [m.id for m in members]

        wanted = {name.strip().lower() for name in details.split_with}
        matched = [
            m.id
            for m in members
            if m.display_name.lower() in wanted or m.id.lower() in wanted
        ]

        unmatched = wanted - {
            key for m in members for key in (m.display_name.lower(), m.id.lower())
        }
        if unmatched:
            logger.warning(f"Names not in group, ignoring: {sorted(unmatched)}")

        if not matched:
            logger.warning("No named member is in the group, splitting with everyone")
            return [m.id for m in members]

        return [payer_id] + [m for m in matched if m != payer_id]

    @staticmethod
    def _check_split_total(
        expense_id: str, splits: list[Split], amount: Decimal
    ) -> None:
        """Warn when splits do not add up to the expense total."""
        split_total = sum((s.owed_amount for s in splits), Decimal("0"))
        if split_total != amount:
            logger.warning(
                f"Expense {expense_id} splits sum to {split_total}, total is {amount}"
            )

    # ========================================================================
    # Balances and settlements
    # ========================================================================

    def get_balances(self, group_id: str) -> list[Balance]:
        """Compute each member's net balance for a group."""
        members = self.get_members(group_id)
        expenses = self.db.get_group_expenses(group_id)
        settlements = self.db.get_group_settlements(group_id)

        balances = compute_balances(
            members,
            expenses,
            settlements=settlements,
            unknown_member_policy=self.settings.unknown_member_policy,
            malformed_split_policy=self.settings.malformed_split_policy,
        )

        logger.info(
            f"Computed {len(balances)} balances for group {group_id} "
            f"from {len(expenses)} expenses and {len(settlements)} settlements"
        )
        return list(balances.values())

    def get_settlement_suggestions(self, group_id: str) -> list[SettlementTransaction]:
        """Suggest payments that would settle all debts in a group."""
        return plan_settlements(
            self.get_balances(group_id), epsilon=self.settings.settlement_epsilon
        )

    def get_balance_report(self, group_id: str) -> BalanceReport:
        """Balances and suggested payments for a group, from one snapshot."""
        balances = self.get_balances(group_id)
        settlements = plan_settlements(
            balances, epsilon=self.settings.settlement_epsilon
        )
        return BalanceReport(
            group_id=group_id, balances=balances, settlements=settlements
        )

    def record_settlement(
        self, group_id: str, from_member_id: str, to_member_id: str, amount: Decimal
    ) -> RecordedSettlement:
        """
        Record a payment between two members of a group.

        Raises:
            ValueError: If the amount is not positive, the parties are the
                same, or either party is not in the group
        """
        if amount <= 0:
            raise ValueError("Settlement amount must be positive")
        if from_member_id == to_member_id:
            raise ValueError("A member cannot settle with themselves")

        roster = {m.id for m in self.get_members(group_id)}
        for member_id in (from_member_id, to_member_id):
            if member_id not in roster:
                raise ValueError(f"Member {member_id} is not in group {group_id}")

        settlement = RecordedSettlement(
            group_id=group_id,
            from_member_id=from_member_id,
            to_member_id=to_member_id,
            amount=amount,
        )
        self.db.save_settlement(settlement)

        logger.info(
            f"Recorded settlement: {from_member_id} paid {to_member_id} {amount}"
        )
        return settlement

    def get_recorded_settlements(self, group_id: str) -> list[RecordedSettlement]:
        """Get a group's recorded payments, newest first."""
        self.get_group(group_id)
        return self.db.get_group_settlements(group_id)
