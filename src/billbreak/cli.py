"""CLI for BillBreak using Typer."""

import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .db import Database
from .exceptions import BillBreakError
from .models import Balance, Member, SettlementTransaction
from .service import LedgerService

app = typer.Typer(
    name="billbreak",
    help="Track shared group expenses and work out who owes whom",
)
group_app = typer.Typer(help="Manage groups")
member_app = typer.Typer(help="Manage group members")
expense_app = typer.Typer(help="Record and list expenses")
settle_app = typer.Typer(help="Suggest and record settlement payments")

app.add_typer(group_app, name="group")
app.add_typer(member_app, name="member")
app.add_typer(expense_app, name="expense")
app.add_typer(settle_app, name="settle")

console = Console()

VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose output")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Network requests are too noisy at INFO
    for name in ("httpx", "openai"):
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)


@contextmanager
def open_service(verbose: bool) -> Iterator[LedgerService]:
    """Open the ledger and report errors the way every command does."""
    setup_logging(verbose)
    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path)
        yield LedgerService(settings, db)
    except (BillBreakError, ValueError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def parse_amount(value: str) -> Decimal:
    """Parse a money amount given on the command line."""
    try:
        amount = Decimal(value)
    except InvalidOperation as e:
        raise typer.BadParameter(f"'{value}' is not a valid amount") from e
    if not amount.is_finite() or amount <= 0:
        raise typer.BadParameter("Amount must be a positive number")
    return amount


def slugify(name: str) -> str:
    """Derive a member ID from a display name."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def format_money(amount: Decimal, use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: (85.02)
    Positive amounts have spaces:      85.02
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"([red]{abs_amount:,.2f}[/red])"
        return f"({abs_amount:,.2f})"
    if use_color:
        return f" [green]{abs_amount:,.2f}[/green] "
    return f" {abs_amount:,.2f} "


def display_balances(balances: list[Balance]):
    """Display balances in a table."""
    table = Table(title="Balances", show_header=True, header_style="bold magenta")
    table.add_column("Member", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Net", justify="right", width=14)
    table.add_column("Status")

    for balance in balances:
        if balance.net_amount > 0:
            status = "is owed"
        elif balance.net_amount < 0:
            status = "owes"
        else:
            status = "[dim]settled[/dim]"
        table.add_row(
            balance.display_name,
            balance.member_id,
            format_money(balance.net_amount),
            status,
        )

    console.print(table)


def display_settlements(transactions: list[SettlementTransaction]):
    """Display suggested payments in a table."""
    if not transactions:
        console.print("[green]✓ Everyone is settled up[/green]")
        return

    table = Table(
        title="Suggested Payments", show_header=True, header_style="bold magenta"
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("From", style="red")
    table.add_column("To", style="green")
    table.add_column("Amount", justify="right", width=14)

    for i, transaction in enumerate(transactions, 1):
        table.add_row(
            str(i),
            transaction.from_name or transaction.from_member_id,
            transaction.to_name or transaction.to_member_id,
            format_money(transaction.amount, use_color=False),
        )

    console.print(table)


# ============================================================================
# Group commands
# ============================================================================


@group_app.command("create")
def group_create(
    name: str = typer.Argument(..., help="Group name"),
    members: list[str] | None = typer.Option(
        None, "--member", "-m", help="Member display name (repeatable)"
    ),
    verbose: bool = VerboseOption,
):
    """Create a group, optionally with members."""
    with open_service(verbose) as service:
        roster = [Member(id=slugify(m), display_name=m) for m in members or []]
        group = service.create_group(name, roster)
        console.print(f"[green]✓ Created group '{group.name}'[/green] ({group.id})")


@group_app.command("list")
def group_list(verbose: bool = VerboseOption):
    """List all groups."""
    with open_service(verbose) as service:
        groups = service.list_groups()
        if not groups:
            console.print("[yellow]No groups yet.[/yellow]")
            return

        table = Table(title="Groups", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Members")
        for group in groups:
            members = service.get_members(group.id)
            table.add_row(
                group.id, group.name, ", ".join(m.display_name for m in members)
            )
        console.print(table)


@group_app.command("rename")
def group_rename(
    group_id: str = typer.Argument(..., help="Group ID"),
    name: str = typer.Argument(..., help="New group name"),
    verbose: bool = VerboseOption,
):
    """Rename a group."""
    with open_service(verbose) as service:
        group = service.rename_group(group_id, name)
        console.print(f"[green]✓ Renamed group to '{group.name}'[/green]")


@group_app.command("delete")
def group_delete(
    group_id: str = typer.Argument(..., help="Group ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    verbose: bool = VerboseOption,
):
    """Delete a group with all its expenses and settlements."""
    with open_service(verbose) as service:
        group = service.get_group(group_id)
        if not yes and not typer.confirm(
            f"Delete group '{group.name}' and everything recorded in it?"
        ):
            console.print("[yellow]Cancelled.[/yellow]")
            return
        service.delete_group(group_id)
        console.print(f"[green]✓ Deleted group '{group.name}'[/green]")


# ============================================================================
# Member commands
# ============================================================================


@member_app.command("add")
def member_add(
    group_id: str = typer.Argument(..., help="Group ID"),
    name: str = typer.Argument(..., help="Display name"),
    member_id: str | None = typer.Option(
        None, "--id", help="Member ID (default: derived from the name)"
    ),
    verbose: bool = VerboseOption,
):
    """Add a member to a group."""
    with open_service(verbose) as service:
        member = Member(id=member_id or slugify(name), display_name=name)
        service.add_member(group_id, member)
        console.print(f"[green]✓ Added {member.display_name}[/green] ({member.id})")


# ============================================================================
# Expense commands
# ============================================================================


@expense_app.command("add")
def expense_add(
    group_id: str = typer.Argument(..., help="Group ID"),
    payer_id: str = typer.Argument(..., help="ID of the member who paid"),
    amount: str = typer.Argument(..., help="Total amount paid"),
    description: str = typer.Option("", "--description", "-d", help="Description"),
    category: str = typer.Option("other", "--category", "-c", help="Category"),
    split_between: list[str] | None = typer.Option(
        None,
        "--split",
        "-s",
        help="Member ID sharing the cost equally (repeatable, default: everyone)",
    ),
    verbose: bool = VerboseOption,
):
    """Record an expense split equally between members."""
    total = parse_amount(amount)
    with open_service(verbose) as service:
        expense = service.add_expense(
            group_id,
            payer_id,
            total,
            split_between=split_between or None,
            category=category,  # type: ignore[arg-type]
            description=description,
        )
        console.print(
            f"[green]✓ Recorded expense[/green] {expense.id}: "
            f"{format_money(expense.total_amount)} paid by {payer_id}"
        )


@expense_app.command("list")
def expense_list(
    group_id: str = typer.Argument(..., help="Group ID"),
    verbose: bool = VerboseOption,
):
    """List a group's expenses, newest first."""
    with open_service(verbose) as service:
        expenses = service.get_expenses(group_id)
        if not expenses:
            console.print("[yellow]No expenses recorded.[/yellow]")
            return

        table = Table(title="Expenses", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=10)
        table.add_column("Date")
        table.add_column("Description", style="cyan", width=40)
        table.add_column("Category", style="yellow")
        table.add_column("Paid by")
        table.add_column("Amount", justify="right", width=14)

        for expense in expenses:
            desc = expense.description
            table.add_row(
                expense.id[:8],
                str(expense.date.date()),
                desc[:40] + "..." if len(desc) > 40 else desc,
                expense.category,
                expense.payer_id,
                format_money(expense.total_amount, use_color=False),
            )
        console.print(table)


@expense_app.command("delete")
def expense_delete(
    expense_id: str = typer.Argument(..., help="Expense ID"),
    verbose: bool = VerboseOption,
):
    """Delete an expense."""
    with open_service(verbose) as service:
        service.delete_expense(expense_id)
        console.print(f"[green]✓ Deleted expense {expense_id}[/green]")


@expense_app.command("text")
def expense_text(
    group_id: str = typer.Argument(..., help="Group ID"),
    payer_id: str = typer.Argument(..., help="ID of the member who paid"),
    text: str = typer.Argument(..., help='e.g. "paid 60 for dinner with Sam"'),
    verbose: bool = VerboseOption,
):
    """Record an expense described in plain language."""
    with open_service(verbose) as service:
        expense, details = service.add_expense_from_text(group_id, payer_id, text)
        console.print(
            f"[green]✓ Recorded expense[/green] {expense.id}: "
            f"{details.description} ({details.category}), "
            f"{format_money(details.amount)}"
        )


@expense_app.command("voice")
def expense_voice(
    group_id: str = typer.Argument(..., help="Group ID"),
    payer_id: str = typer.Argument(..., help="ID of the member who paid"),
    audio: Path = typer.Argument(..., exists=True, dir_okay=False, help="Recording"),
    verbose: bool = VerboseOption,
):
    """Record an expense from a voice recording."""
    with open_service(verbose) as service:
        console.print("[bold blue]Transcribing recording...[/bold blue]")
        expense, transcript = service.add_expense_from_audio(group_id, payer_id, audio)
        console.print(f"[dim]Heard: {transcript}[/dim]")
        console.print(
            f"[green]✓ Recorded expense[/green] {expense.id}: "
            f"{expense.description} ({expense.category}), "
            f"{format_money(expense.total_amount)}"
        )


# ============================================================================
# Balance and settlement commands
# ============================================================================


@app.command()
def balances(
    group_id: str = typer.Argument(..., help="Group ID"),
    verbose: bool = VerboseOption,
):
    """Show who owes whom, with suggested payments."""
    with open_service(verbose) as service:
        report = service.get_balance_report(group_id)
        if not report.balances:
            console.print("[yellow]This group has no members.[/yellow]")
            return
        display_balances(report.balances)
        console.print()
        display_settlements(report.settlements)


@settle_app.command("suggest")
def settle_suggest(
    group_id: str = typer.Argument(..., help="Group ID"),
    verbose: bool = VerboseOption,
):
    """Suggest payments that settle all debts."""
    with open_service(verbose) as service:
        display_settlements(service.get_settlement_suggestions(group_id))


@settle_app.command("record")
def settle_record(
    group_id: str = typer.Argument(..., help="Group ID"),
    from_member_id: str = typer.Argument(..., help="Member who paid"),
    to_member_id: str = typer.Argument(..., help="Member who received"),
    amount: str = typer.Argument(..., help="Amount paid"),
    verbose: bool = VerboseOption,
):
    """Record a settlement payment between two members."""
    paid = parse_amount(amount)
    with open_service(verbose) as service:
        service.record_settlement(group_id, from_member_id, to_member_id, paid)
        console.print(
            f"[green]✓ Recorded payment[/green] {from_member_id} → {to_member_id}: "
            f"{format_money(paid)}"
        )


@settle_app.command("list")
def settle_list(
    group_id: str = typer.Argument(..., help="Group ID"),
    verbose: bool = VerboseOption,
):
    """List recorded settlement payments, newest first."""
    with open_service(verbose) as service:
        settlements = service.get_recorded_settlements(group_id)
        if not settlements:
            console.print("[yellow]No payments recorded.[/yellow]")
            return

        table = Table(
            title="Recorded Payments", show_header=True, header_style="bold magenta"
        )
        table.add_column("Date")
        table.add_column("From", style="red")
        table.add_column("To", style="green")
        table.add_column("Amount", justify="right", width=14)
        for settlement in settlements:
            table.add_row(
                str(settlement.created_at.date()),
                settlement.from_member_id,
                settlement.to_member_id,
                format_money(settlement.amount, use_color=False),
            )
        console.print(table)


if __name__ == "__main__":
    app()
