"""CLI for Swiss Ledger using Typer."""

import logging
import sys
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .exceptions import ConfigurationError, SwissLedgerError
from .ledger import Ledger
from .models import AllocationStatus, MemberBalance, OwedAmount, PersonId
from .money import is_settled
from .settlement import is_over_settlement
from .snapshot import load_snapshot, save_snapshot
from .splits import allocation_status, total_paid, total_split
from .subscriptions import (
    calculate_next_billing_date,
    monthly_equivalent,
    my_share,
    yearly_equivalent,
)

app = typer.Typer(
    name="swiss-ledger",
    help="Shared expense, settlement and subscription balances",
)

console = Console()

SNAPSHOT_OPTION = typer.Option(
    None, "--snapshot", "-s", help="Ledger snapshot file (defaults to settings)"
)
VIEWER_OPTION = typer.Option(
    None, "--viewer", help="Person id to compute balances for"
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Verbose output")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def format_money(amount: Decimal, currency: str = "", use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: (85.02 USD)
    Positive amounts have spaces:      85.02 USD
    Settled amounts (under a cent) show as 0.00.
    """
    if is_settled(amount):
        amount = Decimal("0")
    suffix = f" {currency}" if currency else ""
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"([red]{abs_amount:,.2f}[/red]{suffix})"
        return f"({abs_amount:,.2f}{suffix})"
    if use_color:
        return f" [green]{abs_amount:,.2f}[/green]{suffix} "
    return f" {abs_amount:,.2f}{suffix} "


def parse_amount(raw: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation as e:
        raise typer.BadParameter(f"'{raw}' is not a number") from e


def open_ledger(snapshot: Path | None) -> tuple[Settings, Ledger, Path]:
    settings = load_settings()
    path = snapshot or settings.snapshot_path
    return settings, Ledger(load_snapshot(path), settings), path


def resolve_viewer(settings: Settings, ledger: Ledger, viewer: str | None) -> PersonId:
    """Viewer from the option, then settings, then the snapshot's current user."""
    viewer_id = viewer or settings.current_user_id
    if viewer_id is None:
        current = ledger.current_user()
        if current is None:
            raise ConfigurationError(
                "No viewer given. Pass --viewer, set CURRENT_USER_ID, or mark "
                "a person as current user in the snapshot."
            )
        viewer_id = current.id
    ledger.person(viewer_id)
    return viewer_id


def fail(e: Exception, verbose: bool):
    console.print(f"\n[bold red]Error:[/bold red] {e}")
    if verbose:
        raise e
    sys.exit(1)


def display_member_balances(title: str, rows: list[MemberBalance]):
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", width=10)
    table.add_column("Name", style="cyan")
    table.add_column("Balance", justify="right")
    table.add_column("Paid", justify="right")

    for row in rows:
        table.add_row(
            row.person_id,
            row.name,
            format_money(row.balance, row.currency),
            format_money(row.paid, row.currency, use_color=False),
        )

    console.print(table)


def display_owed(owe_you: list[OwedAmount], you_owe: list[OwedAmount]):
    console.print()
    if not owe_you and not you_owe:
        console.print("  [green]✓ All settled up[/green]")
        return
    for item in owe_you:
        console.print(
            f"  {item.name} owes you {format_money(item.amount, item.currency)}"
        )
    for item in you_owe:
        console.print(
            f"  You owe {item.name} {format_money(-item.amount, item.currency)}"
        )


@app.command()
def balances(
    snapshot: Path | None = SNAPSHOT_OPTION,
    viewer: str | None = VIEWER_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Show the viewer's balance with everyone in the address book."""
    setup_logging(verbose)

    try:
        settings, ledger, _ = open_ledger(snapshot)
        viewer_id = resolve_viewer(settings, ledger, viewer)

        rows = ledger.overall_balances(viewer_id)
        if not rows:
            console.print("[yellow]No other people in the ledger.[/yellow]")
            return

        display_member_balances("Balances", rows)
        display_owed(ledger.people_who_owe_you(viewer_id), ledger.people_you_owe(viewer_id))
    except SwissLedgerError as e:
        fail(e, verbose)


@app.command()
def person(
    person_id: str = typer.Argument(..., help="Person to show the balance with"),
    snapshot: Path | None = SNAPSHOT_OPTION,
    viewer: str | None = VIEWER_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Show the net balance with one person, per currency."""
    setup_logging(verbose)

    try:
        settings, ledger, _ = open_ledger(snapshot)
        viewer_id = resolve_viewer(settings, ledger, viewer)
        other = ledger.person(person_id)

        balance = ledger.balance_with(viewer_id, other.id)
        console.print(f"\n[bold]Balance with {other.display_name}:[/bold]")
        if balance.is_settled:
            console.print("  [green]✓ Settled up[/green]")
            return
        for code, amount in balance.sorted_currencies:
            direction = "owes you" if amount > 0 else "you owe"
            console.print(f"  {format_money(amount, code)} ({direction})")
    except SwissLedgerError as e:
        fail(e, verbose)


@app.command()
def group(
    group_id: str = typer.Argument(..., help="Group to show"),
    snapshot: Path | None = SNAPSHOT_OPTION,
    viewer: str | None = VIEWER_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Show member balances inside a group."""
    setup_logging(verbose)

    try:
        settings, ledger, _ = open_ledger(snapshot)
        viewer_id = resolve_viewer(settings, ledger, viewer)
        user_group = ledger.group(group_id)

        display_member_balances(
            user_group.display_name, ledger.group_member_balances(viewer_id, group_id)
        )
        display_owed(
            ledger.group_members_who_owe_you(viewer_id, group_id),
            ledger.group_members_you_owe(viewer_id, group_id),
        )
    except SwissLedgerError as e:
        fail(e, verbose)


@app.command()
def subscription(
    subscription_id: str = typer.Argument(..., help="Subscription to show"),
    snapshot: Path | None = SNAPSHOT_OPTION,
    viewer: str | None = VIEWER_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Show billing status and shared balances for a subscription."""
    setup_logging(verbose)

    try:
        settings, ledger, _ = open_ledger(snapshot)
        viewer_id = resolve_viewer(settings, ledger, viewer)
        sub = ledger.subscription(subscription_id)
        currency = sub.effective_currency(settings.default_currency)

        console.print(f"\n[bold]{sub.display_name}[/bold]")
        console.print(f"  Status: {ledger.billing_status(subscription_id).value}")
        console.print(f"  Next billing: {sub.next_billing_date}")
        console.print(
            f"  Cost: {format_money(sub.amount, currency)} / {sub.cycle.value}, "
            f"{format_money(monthly_equivalent(sub), currency, use_color=False)} / month, "
            f"{format_money(yearly_equivalent(sub), currency, use_color=False)} / year"
        )
        share = my_share(sub, viewer_id)
        console.print(f"  Your share: {format_money(share, currency, use_color=False)}")

        if not sub.is_shared:
            return

        console.print(
            f"  Your balance: "
            f"{format_money(ledger.subscription_balance(viewer_id, subscription_id), currency)}"
        )
        display_member_balances(
            "Members", ledger.subscription_member_balances(viewer_id, subscription_id)
        )
        display_owed(
            ledger.subscription_members_who_owe_you(viewer_id, subscription_id),
            ledger.subscription_members_you_owe(viewer_id, subscription_id),
        )
    except SwissLedgerError as e:
        fail(e, verbose)


@app.command()
def settle(
    member: str = typer.Argument(..., help="Person to settle with"),
    amount: str = typer.Argument(..., help="Amount paid"),
    currency: str | None = typer.Option(None, "--currency", "-c", help="Currency code"),
    subscription_id: str | None = typer.Option(
        None, "--subscription", help="Settle a subscription balance instead"
    ),
    note: str | None = typer.Option(None, "--note", "-n", help="Optional note"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    snapshot: Path | None = SNAPSHOT_OPTION,
    viewer: str | None = VIEWER_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """
    Record a settlement with a person.

    The amount is capped at what is currently outstanding and the direction
    follows the sign of the balance when the settlement is saved.
    """
    setup_logging(verbose)

    try:
        settings, ledger, path = open_ledger(snapshot)
        viewer_id = resolve_viewer(settings, ledger, viewer)
        entered = parse_amount(amount)
        code = currency or settings.default_currency

        if subscription_id:
            code = ledger.subscription(subscription_id).effective_currency(
                settings.default_currency
            )
            outstanding = abs(
                ledger.subscription_balance_with(viewer_id, subscription_id, member)
            )
        else:
            outstanding = abs(ledger.balance_with(viewer_id, member).amount(code))

        if is_over_settlement(entered, outstanding):
            console.print(
                f"[yellow]⚠️  Amount exceeds outstanding balance of "
                f"{format_money(outstanding, code, use_color=False).strip()}. "
                f"It will be capped.[/yellow]"
            )

        if not yes and not typer.confirm("Record this settlement?"):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        if subscription_id:
            record = ledger.record_subscription_settlement(
                subscription_id, viewer_id, member, entered, note=note
            )
        else:
            record = ledger.record_settlement(
                viewer_id, member, entered, currency=code, note=note
            )

        from_name = ledger.person(record.from_person).display_name
        to_name = ledger.person(record.to_person).display_name
        save_snapshot(ledger.snapshot(), path)
        console.print(
            f"\n[bold green]✓ Recorded {record.amount:,.2f} {code} "
            f"from {from_name} to {to_name}[/bold green]"
        )
    except SwissLedgerError as e:
        fail(e, verbose)


@app.command("next-billing")
def next_billing(
    subscription_id: str = typer.Argument(..., help="Subscription to advance"),
    from_date: datetime | None = typer.Option(
        None, "--from", formats=["%Y-%m-%d"], help="Reference date (default today)"
    ),
    snapshot: Path | None = SNAPSHOT_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Print the billing date one cycle after the reference date."""
    setup_logging(verbose)

    try:
        _, ledger, _ = open_ledger(snapshot)
        sub = ledger.subscription(subscription_id)
        reference = from_date.date() if from_date else date.today()
        console.print(str(calculate_next_billing_date(sub, reference)))
    except SwissLedgerError as e:
        fail(e, verbose)


@app.command()
def check(
    snapshot: Path | None = SNAPSHOT_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """List transactions whose payers or splits don't add up to the total."""
    setup_logging(verbose)

    try:
        _, ledger, _ = open_ledger(snapshot)

        unsettled = [
            tx
            for tx in ledger.transactions
            if allocation_status(tx) == AllocationStatus.UNSETTLED
        ]
        if not unsettled:
            console.print("[green]✓ All transactions add up[/green]")
            return

        table = Table(
            title="Unsettled Transactions", show_header=True, header_style="bold magenta"
        )
        table.add_column("ID", style="dim", width=10)
        table.add_column("Title", style="cyan", width=30)
        table.add_column("Amount", justify="right")
        table.add_column("Paid", justify="right")
        table.add_column("Split", justify="right")

        for tx in unsettled:
            title = tx.title or ""
            table.add_row(
                tx.id,
                title[:30] + "..." if len(title) > 30 else title,
                f"{tx.amount:,.2f}",
                f"{total_paid(tx):,.2f}",
                f"{total_split(tx):,.2f}",
            )

        console.print(table)
    except SwissLedgerError as e:
        fail(e, verbose)


if __name__ == "__main__":
    app()
