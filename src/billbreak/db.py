"""SQLite database operations for BillBreak."""

import sqlite3
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from .models import Expense, Group, Member, RecordedSettlement


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS groups (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS members (
                id TEXT PRIMARY KEY,
                display_name TEXT NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS group_members (
                group_id TEXT NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                member_id TEXT NOT NULL REFERENCES members(id),
                joined_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (group_id, member_id)
            )
        """
        )

        # Amounts are stored as TEXT to keep exact Decimal values
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id TEXT PRIMARY KEY,
                group_id TEXT NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                payer_id TEXT NOT NULL,
                total_amount TEXT NOT NULL,
                split_data TEXT NOT NULL,
                category TEXT NOT NULL,
                description TEXT NOT NULL,
                date TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS settlements (
                id TEXT PRIMARY KEY,
                group_id TEXT NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
                from_member_id TEXT NOT NULL,
                to_member_id TEXT NOT NULL,
                amount TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Group operations
    # ========================================================================

    def save_group(self, group: Group) -> None:
        """Save a group."""
        self.conn.execute(
            "INSERT INTO groups (id, name, created_at) VALUES (?, ?, ?)",
            (group.id, group.name, group.created_at.isoformat()),
        )
        self.conn.commit()

    def get_group(self, group_id: str) -> Group | None:
        """Get a group by ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, name, created_at FROM groups WHERE id = ?", (group_id,)
        )
        row = cursor.fetchone()
        if not row:
            return None

        return Group(
            id=row["id"],
            name=row["name"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def get_all_groups(self) -> list[Group]:
        """Get all groups, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT id, name, created_at FROM groups ORDER BY created_at")
        return [
            Group(
                id=row["id"],
                name=row["name"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in cursor.fetchall()
        ]

    def update_group_name(self, group_id: str, name: str) -> bool:
        """Rename a group. Returns False if the group does not exist."""
        cursor = self.conn.execute(
            "UPDATE groups SET name = ? WHERE id = ?", (name, group_id)
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def delete_group(self, group_id: str) -> bool:
        """Delete a group along with its roster links, expenses and settlements."""
        cursor = self.conn.execute("DELETE FROM groups WHERE id = ?", (group_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    # ========================================================================
    # Member operations
    # ========================================================================

    def save_member(self, member: Member) -> None:
        """Save a member, updating the display name if it already exists."""
        self.conn.execute(
            """
            INSERT INTO members (id, display_name) VALUES (?, ?)
            ON CONFLICT(id) DO UPDATE SET display_name = excluded.display_name
            """,
            (member.id, member.display_name),
        )
        self.conn.commit()

    def get_member(self, member_id: str) -> Member | None:
        """Get a member by ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, display_name FROM members WHERE id = ?", (member_id,)
        )
        row = cursor.fetchone()
        if not row:
            return None
        return Member(id=row["id"], display_name=row["display_name"])

    def add_group_member(self, group_id: str, member_id: str) -> None:
        """Add a member to a group (no-op if already a member)."""
        self.conn.execute(
            """
            INSERT INTO group_members (group_id, member_id, joined_at)
            VALUES (?, ?, ?)
            ON CONFLICT(group_id, member_id) DO NOTHING
            """,
            (group_id, member_id, datetime.now().isoformat()),
        )
        self.conn.commit()

    def get_group_members(self, group_id: str) -> list[Member]:
        """Get the roster of a group, ordered by member ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT m.id, m.display_name
            FROM members m
            JOIN group_members gm ON gm.member_id = m.id
            WHERE gm.group_id = ?
            ORDER BY m.id
            """,
            (group_id,),
        )
        return [
            Member(id=row["id"], display_name=row["display_name"])
            for row in cursor.fetchall()
        ]

    # ========================================================================
    # Expense operations
    # ========================================================================

    def save_expense(self, expense: Expense) -> None:
        """Save an expense, replacing any existing record with the same ID."""
        self.conn.execute(
            """
            INSERT INTO expenses (
                id, group_id, payer_id, total_amount, split_data,
                category, description, date
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                payer_id = excluded.payer_id,
                total_amount = excluded.total_amount,
                split_data = excluded.split_data,
                category = excluded.category,
                description = excluded.description,
                date = excluded.date
            """,
            (
                expense.id,
                expense.group_id,
                expense.payer_id,
                str(expense.total_amount),
                expense.split_data,
                expense.category,
                expense.description,
                expense.date.isoformat(),
            ),
        )
        self.conn.commit()

    def _row_to_expense(self, row: sqlite3.Row) -> Expense:
        return Expense(
            id=row["id"],
            group_id=row["group_id"],
            payer_id=row["payer_id"],
            total_amount=Decimal(row["total_amount"]),
            split_data=row["split_data"],
            category=row["category"],
            description=row["description"],
            date=datetime.fromisoformat(row["date"]),
        )

    def get_expense(self, expense_id: str) -> Expense | None:
        """Get an expense by ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, group_id, payer_id, total_amount, split_data,
                   category, description, date
            FROM expenses
            WHERE id = ?
            """,
            (expense_id,),
        )
        row = cursor.fetchone()
        return self._row_to_expense(row) if row else None

    def get_group_expenses(self, group_id: str) -> list[Expense]:
        """Get all expenses of a group, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, group_id, payer_id, total_amount, split_data,
                   category, description, date
            FROM expenses
            WHERE group_id = ?
            ORDER BY date DESC, id
            """,
            (group_id,),
        )
        return [self._row_to_expense(row) for row in cursor.fetchall()]

    def delete_expense(self, expense_id: str) -> bool:
        """Delete an expense. Returns True if a row was removed."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    # ========================================================================
    # Settlement operations
    # ========================================================================

    def save_settlement(self, settlement: RecordedSettlement) -> None:
        """Save a recorded settlement payment."""
        self.conn.execute(
            """
            INSERT INTO settlements (
                id, group_id, from_member_id, to_member_id, amount, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                settlement.id,
                settlement.group_id,
                settlement.from_member_id,
                settlement.to_member_id,
                str(settlement.amount),
                settlement.created_at.isoformat(),
            ),
        )
        self.conn.commit()

    def get_group_settlements(self, group_id: str) -> list[RecordedSettlement]:
        """Get all recorded settlements of a group, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, group_id, from_member_id, to_member_id, amount, created_at
            FROM settlements
            WHERE group_id = ?
            ORDER BY created_at DESC, id
            """,
            (group_id,),
        )
        return [
            RecordedSettlement(
                id=row["id"],
                group_id=row["group_id"],
                from_member_id=row["from_member_id"],
                to_member_id=row["to_member_id"],
                amount=Decimal(row["amount"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in cursor.fetchall()
        ]
